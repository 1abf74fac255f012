"""Color palette (colorblind-safe defaults)."""

# RGB tuples
BG = (18, 18, 24)
HUD_TEXT = (220, 220, 220)
HUD_DIM = (120, 120, 140)
MARK_CORRECT = (80, 220, 100)
MARK_MISTAKE = (220, 60, 60)
TARGET_ACTIVE = (255, 220, 60)
TARGET_IDLE = (66, 135, 245)
PLAYHEAD = (255, 220, 60)
