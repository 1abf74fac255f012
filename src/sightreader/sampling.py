"""Seedable randomness helpers shared by the generators."""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def make_rng(seed: int | None = None) -> random.Random:
    return random.Random(seed)


def weighted_choice(rng: random.Random, items: Sequence[tuple[float, T]]) -> T:
    """Pick a value from ``(weight, value)`` pairs proportionally to weight."""
    if not items:
        raise ValueError("weighted_choice() needs at least one item")
    weights = [w for w, _ in items]
    values = [value for _, value in items]
    return rng.choices(values, weights=weights, k=1)[0]


def clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))
