"""Measure filling: exact-sum rhythm sequences from templates or a DP filler."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from sightreader.models import BeatStrength, Difficulty, Hand
from sightreader.sampling import weighted_choice
from sightreader.timing import DURATION_TICKS, TimeSignature

logger = logging.getLogger(__name__)

_FILL_GUARD = 512

# Tick grid: 1=16th, 2=8th, 3=dotted 8th, 4=quarter, 6=dotted quarter, 8=half, 12=dotted half, 16=whole
_TEMPLATES: dict[str, list[tuple[int, ...]]] = {
    "4/4": [
        (4, 4, 4, 4),
        (8, 4, 4),
        (4, 4, 8),
        (2, 2, 2, 2, 4, 4),
        (4, 2, 2, 4, 4),
        (3, 1, 4, 4, 4),
        (2, 2, 2, 2, 2, 2, 2, 2),
        (1, 1, 2, 4, 4, 4),  # sixteenth pickup burst
    ],
    "3/4": [
        (4, 4, 4),
        (6, 6),
        (4, 2, 2, 4),
        (2, 2, 2, 2, 2, 2),
        (3, 1, 4, 4),
    ],
    "6/8": [
        (2, 2, 2, 2, 2, 2),
        (3, 3, 3, 3),
        (6, 6),
    ],
}

# (strong offsets, medium offsets) in ticks from the barline
_ACCENTS: dict[str, tuple[frozenset[int], frozenset[int]]] = {
    "4/4": (frozenset({0, 8}), frozenset({4, 12})),
    "3/4": (frozenset({0}), frozenset({4, 8})),
    "6/8": (frozenset({0, 6}), frozenset({3, 9})),
}


@dataclass(frozen=True)
class DurationProfile:
    """Per-difficulty rhythm and rest settings."""

    treble_pool: tuple[int, ...]
    bass_pool: tuple[int, ...]
    treble_rest_chance: float
    bass_rest_chance: float

    def pool_for(self, hand: Hand) -> tuple[int, ...]:
        return self.treble_pool if hand is Hand.TREBLE else self.bass_pool

    def rest_chance(self, hand: Hand) -> float:
        return self.treble_rest_chance if hand is Hand.TREBLE else self.bass_rest_chance


_PROFILES: dict[Difficulty, DurationProfile] = {
    Difficulty.EASY: DurationProfile((8, 6, 4, 2), (12, 8, 6, 4, 2), 0.04, 0.02),
    Difficulty.MEDIUM: DurationProfile((8, 6, 4, 3, 2), (12, 8, 6, 4, 3, 2), 0.06, 0.04),
    Difficulty.HARD: DurationProfile((8, 6, 4, 3, 2, 1), (12, 8, 6, 4, 3, 2, 1), 0.10, 0.07),
}


def duration_profile(difficulty: Difficulty) -> DurationProfile:
    return _PROFILES[difficulty]


def beat_strength(offset_ticks: int, time_signature: TimeSignature) -> BeatStrength:
    """Classify an onset by the meter's accent grid. Unknown meters accent only the downbeat."""
    strong, medium = _ACCENTS.get(str(time_signature), (frozenset({0}), frozenset()))
    if offset_ticks in strong:
        return BeatStrength.STRONG
    if offset_ticks in medium:
        return BeatStrength.MEDIUM
    return BeatStrength.WEAK


def _template_weight(pattern: tuple[int, ...], hand: Hand, difficulty: Difficulty) -> float:
    if hand is Hand.BASS:
        # Bass keeps to simpler, longer patterns
        scale = {Difficulty.EASY: 2.0, Difficulty.MEDIUM: 1.5, Difficulty.HARD: 1.0}[difficulty]
        return (4.0 if len(pattern) <= 3 else 1.0) * scale

    has_sixteenth = 1 in pattern
    if difficulty is Difficulty.EASY:
        return 3.0 if len(pattern) <= 4 and not has_sixteenth else 1.0
    if difficulty is Difficulty.MEDIUM:
        return 2.0 if len(pattern) <= 6 else 1.0
    return 2.5 if has_sixteenth else 1.5


def rhythm_templates(
    time_signature: TimeSignature, hand: Hand, difficulty: Difficulty
) -> list[tuple[float, tuple[int, ...]]]:
    """Weighted rhythm templates for a meter and hand."""
    patterns = _TEMPLATES.get(str(time_signature), _TEMPLATES["4/4"])
    return [(_template_weight(p, hand, difficulty), p) for p in patterns]


def fill_measure(total_ticks: int, pool: tuple[int, ...] | list[int], rng: random.Random) -> list[int]:
    """Partition ``total_ticks`` into durations drawn from ``pool``.

    Falls back to the full duration set when ``pool`` cannot sum exactly to
    the budget; that set contains a one-tick value, so every budget fits.
    """
    values = sorted({t for t in pool if t > 0})

    # can_fill[r]: whether r ticks can be partitioned exactly by the pool
    can_fill = [False] * (max(total_ticks, 0) + 1)
    can_fill[0] = True
    for remaining in range(1, total_ticks + 1):
        can_fill[remaining] = any(t <= remaining and can_fill[remaining - t] for t in values)

    if total_ticks < 0 or not can_fill[total_ticks]:
        logger.debug("Pool %s cannot fill %d ticks; using full duration set", values, total_ticks)
        if set(values) >= set(DURATION_TICKS):
            return []
        return fill_measure(total_ticks, DURATION_TICKS, rng)

    out: list[int] = []
    remaining = total_ticks
    guard = 0
    while remaining > 0 and guard < _FILL_GUARD:
        guard += 1
        options = [t for t in values if t <= remaining and can_fill[remaining - t]]
        pick = rng.choice(options)
        out.append(pick)
        remaining -= pick
    return out


def pick_rhythm(
    measure_ticks: int,
    time_signature: TimeSignature,
    hand: Hand,
    difficulty: Difficulty,
    rng: random.Random,
) -> list[int]:
    """Choose one measure of durations for a hand, preferring idiomatic templates."""
    candidates = [
        (w, p)
        for w, p in rhythm_templates(time_signature, hand, difficulty)
        if sum(p) == measure_ticks
    ]
    if candidates:
        return list(weighted_choice(rng, candidates))
    return fill_measure(measure_ticks, duration_profile(difficulty).pool_for(hand), rng)
