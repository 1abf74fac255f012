"""Per-onset pitch choice for one hand: melody, chord enrichment and bass roles."""

from __future__ import annotations

import math
import random
from enum import Enum

from sightreader.models import BeatStrength, Difficulty
from sightreader.sampling import clamp, weighted_choice
from sightreader.theory import fold_into_register, nearest_midi_in_pcs, nearest_midi_with_pc

# Hard caps applied to every voicing
MAX_HAND_NOTES = 5
MAX_HAND_SPAN = 14  # a ninth

TREBLE_RANGE = (60, 88)  # C4..E6
BASS_RANGE = (36, 64)  # C2..E4, high enough to allow ninth spans

_STEP_WEIGHTS: dict[Difficulty, list[tuple[float, int]]] = {
    Difficulty.EASY: [(8, 1), (8, 2), (2, 3), (1, 5)],
    Difficulty.MEDIUM: [(7, 1), (7, 2), (3, 3), (2, 5), (1, 7)],
    Difficulty.HARD: [(6, 1), (6, 2), (4, 3), (3, 5), (2, 7)],
}

_CHORD_BOOST = {Difficulty.EASY: 0.0, Difficulty.MEDIUM: 0.08, Difficulty.HARD: 0.15}


class TrebleStyle(Enum):
    MELODY = "melody"
    MELODY_DYADS = "melody+dyads"
    ARPEGGIO = "arpeggio"
    MELODY_CHORDS = "melody+chords"


class BassStyle(Enum):
    ROOT = "root"
    OCTAVES = "octaves"
    BROKEN = "broken"
    WALKING = "walking"


def register_center(register: tuple[int, int]) -> int:
    return round((register[0] + register[1]) / 2)


def harmony_intent(max_polyphony: int) -> float:
    """Texture density 0..1: 1 note -> 0.0, 7 or more -> 1.0."""
    return clamp((max_polyphony - 1) / 6, 0.0, 1.0)


def max_hand_notes(max_polyphony: int) -> int:
    return int(clamp(min(MAX_HAND_NOTES, max_polyphony), 1, MAX_HAND_NOTES))


def choose_hand_note_count(
    max_notes: int,
    intent: float,
    difficulty: Difficulty,
    accented: bool,
    rng: random.Random,
) -> int:
    """How many notes an onset should sound; larger chords grow likelier with intent."""
    if max_notes <= 1:
        return 1

    base = 0.35 if accented else 0.18
    p_chord = clamp(base + _CHORD_BOOST[difficulty] + 0.55 * intent, 0.0, 0.92)
    if rng.random() > p_chord:
        return 1

    alpha = 0.35 + 1.6 * intent
    return weighted_choice(rng, [(math.exp(alpha * (k - 2)), k) for k in range(2, max_notes + 1)])


def _drop_outlier(notes: list[int]) -> None:
    """Remove whichever extreme lies farthest from the midpoint of the span (top on ties)."""
    center = (notes[0] + notes[-1]) / 2
    if abs(notes[-1] - center) >= abs(notes[0] - center):
        notes.pop()
    else:
        notes.pop(0)


def _reduce_span_by_octaves(notes: list[int], register: tuple[int, int], max_span: int) -> list[int]:
    low_bound, high_bound = register
    folded = sorted(notes)
    guard = 0
    while len(folded) >= 2 and folded[-1] - folded[0] > max_span and guard < 32:
        guard += 1
        low, high = folded[0], folded[-1]
        if high - 12 >= low and high - 12 >= low_bound:
            folded[-1] = high - 12
        elif low + 12 <= high and low + 12 <= high_bound:
            folded[0] = low + 12
        else:
            break
        folded.sort()
    return sorted(set(folded))


def finalize_hand_notes(
    pitches: list[int] | tuple[int, ...],
    register: tuple[int, int],
    max_notes: int = MAX_HAND_NOTES,
    max_span: int = MAX_HAND_SPAN,
) -> list[int]:
    """Make a voicing playable by one hand.

    Deduplicates, folds every pitch into the register, caps the note count
    and narrows the span by octave folding before dropping outer notes. The
    global caps apply even when callers ask for more.
    """
    max_notes = max(1, min(max_notes, MAX_HAND_NOTES))
    max_span = min(max_span, MAX_HAND_SPAN)

    notes = sorted({fold_into_register(p, register) for p in pitches})
    while len(notes) > max_notes:
        _drop_outlier(notes)

    notes = _reduce_span_by_octaves(notes, register, max_span)
    while len(notes) >= 2 and notes[-1] - notes[0] > max_span:
        _drop_outlier(notes)
    return notes


def voice_chord_for_hand(
    chord_pcs: list[int],
    prev_voicing: list[int] | None,
    register: tuple[int, int],
    max_notes: int,
    rng: random.Random,
    prefer_closed: bool = True,
) -> list[int]:
    """Voice a chord near the previous voicing's centroid."""
    if prev_voicing:
        center = round(sum(prev_voicing) / len(prev_voicing))
    else:
        center = register_center(register)

    wanted = int(clamp(max_notes, 1, MAX_HAND_NOTES))
    picked = rng.sample(chord_pcs, min(wanted, len(chord_pcs)))
    notes = [fold_into_register(nearest_midi_with_pc(center, pc), register) for pc in picked]

    # More notes than chord tones: double the root or fifth
    doubling_center = center + (4 if prefer_closed else 8)
    while len(notes) < wanted:
        pc = rng.choice([chord_pcs[0], chord_pcs[2] if len(chord_pcs) > 2 else chord_pcs[0]])
        notes.append(fold_into_register(nearest_midi_with_pc(doubling_center, pc), register))

    notes = finalize_hand_notes(notes, register)
    if not notes:
        notes = [fold_into_register(nearest_midi_with_pc(register_center(register), chord_pcs[0]), register)]
    return notes[:wanted]


def enrich_with_chord_tones(
    base_notes: list[int],
    chord_pcs: list[int],
    prev_voicing: list[int] | None,
    register: tuple[int, int],
    max_notes: int,
    want_count: int,
    rng: random.Random,
) -> list[int]:
    """Thicken a seed note (or notes) into a chord of about ``want_count`` pitches."""
    if not base_notes:
        return []

    want = int(clamp(want_count, 1, max_notes))
    if want <= len(base_notes):
        return finalize_hand_notes(base_notes, register, max_notes)

    chord_notes = voice_chord_for_hand(
        chord_pcs,
        prev_voicing or base_notes,
        register,
        want,
        rng,
    )
    return finalize_hand_notes(chord_notes + list(base_notes), register, max_notes)


def choose_melody_midi(
    prev_midi: int | None,
    chord_pcs: list[int],
    scale_pcs: list[int],
    register: tuple[int, int],
    strength: BeatStrength,
    difficulty: Difficulty,
    contour: int,
    rng: random.Random,
) -> int:
    """Next melody pitch: mostly steps, biased along ``contour`` (-1, 0, +1)."""
    start = register_center(register) if prev_midi is None else prev_midi

    step = weighted_choice(rng, _STEP_WEIGHTS[difficulty])
    if contour == 0:
        direction = rng.choice((-1, 1))
    else:
        direction = contour if rng.random() < 0.7 else -contour

    # Strong beats land on chord tones; medium beats usually do
    if strength is BeatStrength.STRONG:
        pcs = chord_pcs
    elif strength is BeatStrength.MEDIUM:
        pcs = chord_pcs if rng.random() < 0.6 else scale_pcs
    else:
        pcs = scale_pcs

    return fold_into_register(nearest_midi_in_pcs(start + direction * step, pcs, register), register)


def bass_midi_for_role(
    chord_pcs: list[int],
    prev_midi: int | None,
    register: tuple[int, int],
    role_index: int,
) -> int:
    """Walking-bass motion cycling root, fifth, third, root."""
    root = chord_pcs[0]
    third = chord_pcs[1] if len(chord_pcs) > 1 else root
    fifth = chord_pcs[2] if len(chord_pcs) > 2 else root
    pc = (root, fifth, third, root)[role_index % 4]

    start = register_center(register) if prev_midi is None else prev_midi
    return fold_into_register(nearest_midi_with_pc(start, pc), register)


def pick_treble_style(difficulty: Difficulty, intent: float, rng: random.Random) -> TrebleStyle:
    easy = difficulty is Difficulty.EASY
    hard = difficulty is Difficulty.HARD
    return weighted_choice(
        rng,
        [
            ((7 if easy else 4) * (1.0 - 0.55 * intent), TrebleStyle.MELODY),
            ((2 if easy else 3) * (1.0 + 0.90 * intent), TrebleStyle.MELODY_DYADS),
            ((1 if easy else 3) * (1.0 + 0.50 * intent), TrebleStyle.ARPEGGIO),
            ((2 if hard else 0.8) * (0.6 + 2.0 * intent), TrebleStyle.MELODY_CHORDS),
        ],
    )


def pick_bass_style(difficulty: Difficulty, intent: float, rng: random.Random) -> BassStyle:
    easy = difficulty is Difficulty.EASY
    hard = difficulty is Difficulty.HARD
    return weighted_choice(
        rng,
        [
            ((6 if easy else 3) * (1.0 - 0.35 * intent), BassStyle.ROOT),
            ((2 if easy else 3) * (1.0 + 0.40 * intent), BassStyle.OCTAVES),
            ((2 if easy else 3) * (1.0 + 0.75 * intent), BassStyle.BROKEN),
            ((2 if hard else 1) * (1.0 + 0.35 * intent), BassStyle.WALKING),
        ],
    )
