"""Fixed-grid time: beats <-> sixteenth-note ticks, meters and note durations."""

from __future__ import annotations

from dataclasses import dataclass

BEATS_PER_TICK = 0.25  # 1 tick = a sixteenth note

# Every duration the generator may emit, longest first (whole ... sixteenth)
DURATION_TICKS: tuple[int, ...] = (16, 12, 8, 6, 4, 3, 2, 1)


class TimeSignatureError(ValueError):
    """Raised when a time signature string cannot be parsed."""


class UnmappedDurationError(ValueError):
    """Raised for a tick count with no renderable note value."""


@dataclass(frozen=True)
class NoteDuration:
    name: str  # "w", "h", "q", "8", "16"
    dots: int = 0


_DURATIONS: dict[int, NoteDuration] = {
    16: NoteDuration("w"),
    12: NoteDuration("h", 1),
    8: NoteDuration("h"),
    6: NoteDuration("q", 1),
    4: NoteDuration("q"),
    3: NoteDuration("8", 1),
    2: NoteDuration("8"),
    1: NoteDuration("16"),
}


def ticks_from_beats(beats: float) -> int:
    """Snap a beat length to the tick grid. Any positive length is at least one tick."""
    if beats <= 0:
        return 0
    return max(1, round(beats / BEATS_PER_TICK))


def beats_from_ticks(ticks: int) -> float:
    return ticks * BEATS_PER_TICK


def duration_for_ticks(ticks: int) -> NoteDuration:
    try:
        return _DURATIONS[ticks]
    except KeyError:
        raise UnmappedDurationError(f"No note value spans {ticks} ticks") from None


@dataclass(frozen=True)
class TimeSignature:
    numerator: int
    denominator: int

    @property
    def beats_per_measure(self) -> float:
        """Measure length in quarter-note beats (6/8 -> 3.0)."""
        return self.numerator * (4 / self.denominator)

    @property
    def measure_ticks(self) -> int:
        return ticks_from_beats(self.beats_per_measure)

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"


def parse_time_signature(text: str) -> TimeSignature:
    """Parse strings like ``"4/4"`` or ``"6/8"``."""
    try:
        num_text, den_text = text.strip().split("/")
        numerator, denominator = int(num_text), int(den_text)
    except ValueError:
        raise TimeSignatureError(f"Malformed time signature: {text!r}") from None

    if not 1 <= numerator <= 32 or denominator not in (1, 2, 4, 8, 16):
        raise TimeSignatureError(f"Unsupported time signature: {text!r}")
    return TimeSignature(numerator, denominator)
