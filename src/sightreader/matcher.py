"""Performance matching: grade live input against the scrolling targets."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sightreader.config import EARLY_WINDOW_BEATS, HIGHLIGHT_LEAD_BEATS, LATE_WINDOW_BEATS
from sightreader.models import MarkKind, MarkUpdate, RunStats, Target, TargetState

logger = logging.getLogger(__name__)

MarkListener = Callable[[str, MarkKind], None]


@dataclass(frozen=True)
class TimingWindows:
    """Input tolerance around each target's onset, in beats."""

    early_window_beats: float = EARLY_WINDOW_BEATS
    late_window_beats: float = LATE_WINDOW_BEATS
    highlight_lead_beats: float = HIGHLIGHT_LEAD_BEATS


class PerformanceMatcher:
    """Single owner of target grading state during a run.

    The current target is the first one not yet completed; earlier targets
    are history. Any mistake halts the scroll and pulls the cursor back to
    the offending onset until the target is completed.
    """

    def __init__(
        self,
        targets: list[Target],
        windows: TimingWindows | None = None,
        listener: MarkListener | None = None,
    ) -> None:
        self.targets = targets
        self.windows = windows or TimingWindows()
        self.listener = listener
        self.stats = RunStats()
        self.marks: dict[str, MarkKind] = {}
        self.progress: float = 0.0
        self.halted = False  # scroll stopped by a mistake
        self.user_paused = False
        self._cursor = 0

    def current_target(self) -> Target | None:
        while self._cursor < len(self.targets) and self.targets[self._cursor].completed:
            self._cursor += 1
        if self._cursor < len(self.targets):
            return self.targets[self._cursor]
        return None

    @property
    def finished(self) -> bool:
        return self.current_target() is None

    @property
    def scrolling(self) -> bool:
        return not self.halted and not self.user_paused

    def highlighted_target(self) -> Target | None:
        """The current target once the playhead is within the highlight lead."""
        target = self.current_target()
        if target is None:
            return None
        if self.progress >= target.offset_beats - self.windows.highlight_lead_beats:
            return target
        return None

    def on_clock_advance(self, progress: float) -> list[MarkUpdate]:
        """Record the clock's new progress and flag the current target if its late window passed."""
        self.progress = progress
        target = self.current_target()
        if target is None:
            return []

        late_edge = target.offset_beats + self.windows.late_window_beats
        if target.state is TargetState.PENDING and progress >= late_edge and not target.fully_hit:
            target.state = TargetState.WAITING
            missing = target.missing_pitches()
            pitch = missing[0] if missing else target.midi_pitches[0]
            logger.debug("Target %s timed out at %.3f beats", target.id, progress)
            return [self._mark_mistake(target, pitch)]
        return []

    def on_input_note(self, pitch: int, progress: float) -> MarkUpdate | None:
        """Grade one note-on against the current target.

        Returns the resulting mark, or None when the note was ignored or only
        partially completed a chord.
        """
        self.progress = progress
        target = self.current_target()
        if target is None:
            return None

        # Too early for the current target: no racing ahead
        if progress < target.offset_beats - self.windows.early_window_beats:
            return None

        if pitch in target.midi_pitches:
            target.hit_pitches.add(pitch)
            if target.fully_hit:
                return self._mark_correct(target)
            return None

        return self._mark_mistake(target, pitch)

    def reset(self, preserve_stats: bool = False) -> None:
        """Fresh grading state for the same targets; the cursor returns to the start."""
        for target in self.targets:
            target.reset()
        if not preserve_stats:
            self.stats.reset()
        self.marks = {}
        self.progress = 0.0
        self.halted = False
        self.user_paused = False
        self._cursor = 0

    def _mark_correct(self, target: Target) -> MarkUpdate:
        target.state = TargetState.COMPLETED
        # A counted mistake stays counted; only the flag clears
        target.mistake_flag = False
        self.stats.correct_count += 1
        self.halted = False
        return self._emit(target, MarkKind.CORRECT)

    def _mark_mistake(self, target: Target, pitch: int) -> MarkUpdate:
        if not target.mistake_flag:
            target.mistake_flag = True
            self.stats.mistake_count += 1
        self.stats.record_tricky(pitch)
        self.halted = True
        # Hold the cursor at the missed onset until the target is resolved
        self.progress = min(self.progress, target.offset_beats)
        return self._emit(target, MarkKind.MISTAKE)

    def _emit(self, target: Target, kind: MarkKind) -> MarkUpdate:
        self.marks[target.id] = kind
        if self.listener is not None:
            self.listener(target.id, kind)
        return MarkUpdate(target_id=target.id, kind=kind)
