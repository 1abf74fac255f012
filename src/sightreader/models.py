"""Core data models shared across the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from sightreader.config import (
    DEFAULT_KEY,
    DEFAULT_MAX_POLYPHONY,
    DEFAULT_TARGET_COUNT,
    DEFAULT_TIME_SIGNATURE,
    TRICKY_DISPLAY_LIMIT,
)
from sightreader.timing import beats_from_ticks


class Hand(Enum):
    TREBLE = auto()  # right hand
    BASS = auto()  # left hand


class Difficulty(Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class BeatStrength(Enum):
    STRONG = auto()
    MEDIUM = auto()
    WEAK = auto()

    @property
    def accented(self) -> bool:
        return self is not BeatStrength.WEAK


class TargetState(Enum):
    PENDING = auto()
    WAITING = auto()  # playhead passed the late window without completion
    COMPLETED = auto()


class MarkKind(Enum):
    MISTAKE = "mistake"
    CORRECT = "correct"


def target_id_for_tick(tick: int) -> str:
    return f"g-{tick}"


@dataclass(frozen=True)
class GenerationParams:
    """Everything the assembler needs to build one exercise."""

    key: str = DEFAULT_KEY
    time_signature: str = DEFAULT_TIME_SIGNATURE
    difficulty: Difficulty = Difficulty.EASY
    max_polyphony: int = DEFAULT_MAX_POLYPHONY  # 1-10, hard-capped at 5 notes per hand
    target_count: int = DEFAULT_TARGET_COUNT
    lead_in_beats: float = 0.0
    seed: int | None = None


@dataclass(frozen=True)
class HandEvent:
    """One onset in one hand's stream. An empty pitch tuple is a rest."""

    id: str
    hand: Hand
    start_tick: int
    ticks: int
    midi_pitches: tuple[int, ...] = ()

    @property
    def beats(self) -> float:
        return beats_from_ticks(self.ticks)

    @property
    def is_rest(self) -> bool:
        return not self.midi_pitches

    @property
    def target_id(self) -> str | None:
        """Id of the merged target this onset grades against; rests have none."""
        return None if self.is_rest else target_id_for_tick(self.start_tick)


@dataclass(frozen=True)
class HarmonySlot:
    tick: int  # offset within the measure
    degree: int  # scale degree 1-7
    seventh: bool = False


@dataclass
class Target:
    """A graded onset, merged across both hands."""

    id: str
    start_tick: int
    offset_beats: float
    midi_pitches: tuple[int, ...] = ()
    hit_pitches: set[int] = field(default_factory=set)
    mistake_flag: bool = False
    state: TargetState = TargetState.PENDING

    @property
    def waiting(self) -> bool:
        return self.state is TargetState.WAITING

    @property
    def completed(self) -> bool:
        return self.state is TargetState.COMPLETED

    @property
    def fully_hit(self) -> bool:
        return set(self.midi_pitches) <= self.hit_pitches

    def missing_pitches(self) -> list[int]:
        return [p for p in self.midi_pitches if p not in self.hit_pitches]

    def add_pitches(self, pitches: tuple[int, ...] | list[int]) -> None:
        self.midi_pitches = tuple(sorted(set(self.midi_pitches) | set(pitches)))

    def reset(self) -> None:
        self.hit_pitches = set()
        self.mistake_flag = False
        self.state = TargetState.PENDING


@dataclass(frozen=True)
class MarkUpdate:
    target_id: str
    kind: MarkKind


@dataclass
class RunStats:
    correct_count: int = 0
    mistake_count: int = 0
    tricky_notes: dict[int, int] = field(default_factory=dict)  # pitch -> misses

    @property
    def accuracy_pct(self) -> float:
        total = self.correct_count + self.mistake_count
        return (self.correct_count / total * 100.0) if total > 0 else 0.0

    def record_tricky(self, pitch: int) -> None:
        self.tricky_notes[pitch] = self.tricky_notes.get(pitch, 0) + 1

    def ranked_tricky(self, limit: int = TRICKY_DISPLAY_LIMIT) -> list[tuple[int, int]]:
        """Most-missed pitches first; ties keep first-missed order."""
        ranked = sorted(self.tricky_notes.items(), key=lambda item: item[1], reverse=True)
        return ranked[:limit]

    def reset(self) -> None:
        self.correct_count = 0
        self.mistake_count = 0
        self.tricky_notes = {}


@dataclass
class Piece:
    """One generated exercise: two hand streams plus the graded targets."""

    params: GenerationParams
    treble: list[HandEvent] = field(default_factory=list)
    bass: list[HandEvent] = field(default_factory=list)
    targets: list[Target] = field(default_factory=list)
    measure_ticks: int = 16
    prefer_sharps: bool = True

    @property
    def measure_count(self) -> int:
        events = self.treble or self.bass
        if not events:
            return 0
        last = events[-1]
        return (last.start_tick + last.ticks) // self.measure_ticks

    def events_for(self, hand: Hand) -> list[HandEvent]:
        return self.treble if hand is Hand.TREBLE else self.bass
