"""Harmonic planning: a lazily extended degree plan and per-measure chord slots."""

from __future__ import annotations

import random

from sightreader.models import Difficulty, HarmonySlot
from sightreader.sampling import weighted_choice
from sightreader.theory import chord_pcs_for_degree

PLAN_CHUNK = 8  # measures added per extension

# Scale-degree progressions in a major key
PROGRESSION_TEMPLATES: list[tuple[float, tuple[int, ...]]] = [
    (4, (1, 5, 6, 4)),  # pop
    (3, (1, 6, 4, 5)),
    (3, (1, 4, 5, 1)),  # classical cadence
    (2, (6, 4, 1, 5)),  # minor-feel start
    (2, (1, 2, 5, 1)),  # ii-V-I
    (2, (1, 3, 6, 2)),  # circle-ish, resolves into the next phrase
]

CADENCE_ENDINGS: list[tuple[float, tuple[int, ...]]] = [
    (5, (2, 5, 1, 1)),
    (4, (4, 5, 1, 1)),
    (3, (6, 2, 5, 1)),
]

_CADENCE_CHANCE = {Difficulty.EASY: 0.35, Difficulty.MEDIUM: 0.45, Difficulty.HARD: 0.55}
_PASSING_CHANCE = {Difficulty.EASY: 0.0, Difficulty.MEDIUM: 0.35, Difficulty.HARD: 0.55}


def build_degrees(count: int, difficulty: Difficulty, rng: random.Random) -> list[int]:
    """Concatenate 4-bar phrases until ``count`` degrees exist; pad a short tail with the tonic."""
    degrees: list[int] = []
    while len(degrees) < count:
        remaining = count - len(degrees)
        if remaining < 4:
            degrees.extend([1] * remaining)
            break
        use_cadence = bool(degrees) and rng.random() < _CADENCE_CHANCE[difficulty]
        phrase = weighted_choice(rng, CADENCE_ENDINGS if use_cadence else PROGRESSION_TEMPLATES)
        degrees.extend(phrase)
    return degrees


class DegreePlan:
    """One scale degree per measure, extended on demand and never shrunk."""

    def __init__(self, difficulty: Difficulty, rng: random.Random) -> None:
        self._difficulty = difficulty
        self._rng = rng
        self._degrees: list[int] = build_degrees(PLAN_CHUNK, difficulty, rng)

    def __len__(self) -> int:
        return len(self._degrees)

    def ensure(self, measures: int) -> None:
        while len(self._degrees) < measures:
            self._degrees.extend(build_degrees(PLAN_CHUNK, self._difficulty, self._rng))

    def degree_at(self, measure_index: int) -> int:
        if measure_index < len(self._degrees):
            return self._degrees[measure_index]
        return 1

    @property
    def degrees(self) -> list[int]:
        return list(self._degrees)


def harmony_slots_for_measure(
    measure_ticks: int,
    degree: int,
    next_degree: int,
    difficulty: Difficulty,
    rng: random.Random,
) -> list[HarmonySlot]:
    """One or two chord slots for a measure.

    The optional second slot sits at the midpoint with a passing degree that
    leans toward the dominant.
    """
    first_seventh = False
    second: HarmonySlot | None = None

    if rng.random() < _PASSING_CHANCE[difficulty]:
        passing = weighted_choice(rng, [(4, 5), (3, 2), (2, 4), (1, next_degree or 5)])
        second = HarmonySlot(
            tick=measure_ticks // 2,
            degree=passing,
            seventh=passing == 5 and rng.random() < 0.65,
        )

    if degree == 5 and difficulty is not Difficulty.EASY and rng.random() < 0.45:
        first_seventh = True

    slots = [HarmonySlot(tick=0, degree=degree, seventh=first_seventh)]
    if second is not None:
        slots.append(second)
    return sorted(slots, key=lambda s: s.tick)


def slot_for_offset(offset_ticks: int, slots: list[HarmonySlot]) -> HarmonySlot:
    chosen = slots[0]
    for slot in slots:
        if slot.tick <= offset_ticks:
            chosen = slot
    return chosen


def chord_for_offset(offset_ticks: int, slots: list[HarmonySlot], scale_pcs: list[int]) -> list[int]:
    """Pitch classes of the chord governing an onset."""
    slot = slot_for_offset(offset_ticks, slots)
    return chord_pcs_for_degree(slot.degree, scale_pcs, slot.seventh)
