"""Global constants and default settings."""

WINDOW_WIDTH = 1280
WINDOW_HEIGHT = 720
FPS = 60
WINDOW_TITLE = "SightReader"

# Scroll tempo (quarter-note beats per minute)
DEFAULT_BPM = 80.0
MIN_BPM = 30.0
MAX_BPM = 240.0

# Input timing windows (beats)
EARLY_WINDOW_BEATS = 0.18  # about a sixteenth note early
LATE_WINDOW_BEATS = 0.12
HIGHLIGHT_LEAD_BEATS = 0.25

# Generation defaults
DEFAULT_KEY = "C"
DEFAULT_TIME_SIGNATURE = "4/4"
DEFAULT_TARGET_COUNT = 24
DEFAULT_MAX_POLYPHONY = 3
MAX_POLYPHONY_SETTING = 10
MAX_MEASURES = 512  # safety ceiling for a single generation run

# Stats display
TRICKY_DISPLAY_LIMIT = 6
