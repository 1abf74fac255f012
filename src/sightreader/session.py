"""Exercise session: owns the progress clock and transport over one generated piece."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace

from sightreader.config import DEFAULT_BPM, MAX_BPM, MIN_BPM, TRICKY_DISPLAY_LIMIT
from sightreader.generator import generate_piece
from sightreader.matcher import MarkListener, PerformanceMatcher, TimingWindows
from sightreader.models import GenerationParams, MarkUpdate, Piece, Target
from sightreader.sampling import make_rng
from sightreader.theory import pitch_name

logger = logging.getLogger(__name__)


@dataclass
class StatsSnapshot:
    """Display-ready grading summary."""

    correct: int
    mistakes: int
    accuracy_pct: int
    tricky: list[tuple[str, int]]  # (pitch name, misses), most missed first

    def tricky_lines(self) -> list[str]:
        if not self.tricky:
            return ["No tricky notes yet."]
        return [f"{name} — {count} misses" for name, count in self.tricky]


class ExerciseSession:
    """Explicit run context shared by the clock loop, input handlers and UI.

    Clock ticks and note events must both be delivered on the thread that
    owns the session; every grading mutation goes through the matcher.
    """

    def __init__(
        self,
        params: GenerationParams,
        bpm: float = DEFAULT_BPM,
        windows: TimingWindows | None = None,
        listener: MarkListener | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.params = params
        self.bpm = DEFAULT_BPM
        self.set_bpm(bpm)
        self.windows = windows or TimingWindows()
        self.listener = listener
        self._rng = rng if rng is not None else make_rng(params.seed)
        self.piece: Piece = generate_piece(params, self._rng)
        self.matcher = PerformanceMatcher(self.piece.targets, self.windows, listener)

    @property
    def progress(self) -> float:
        return self.matcher.progress

    @property
    def targets(self) -> list[Target]:
        return self.piece.targets

    @property
    def paused(self) -> bool:
        return self.matcher.user_paused

    @property
    def running(self) -> bool:
        return self.matcher.scrolling

    @property
    def finished(self) -> bool:
        return self.matcher.finished

    def set_bpm(self, bpm: float) -> None:
        """Set scroll tempo, clamped to the supported range."""
        self.bpm = max(MIN_BPM, min(MAX_BPM, bpm))

    def advance(self, dt: float) -> list[MarkUpdate]:
        """Advance the clock by ``dt`` seconds, then check the late window at the new position."""
        if not self.matcher.scrolling:
            return []
        progress = self.matcher.progress + dt * self.bpm / 60.0
        return self.matcher.on_clock_advance(progress)

    def note_on(self, pitch: int, velocity: int = 80) -> MarkUpdate | None:
        """Deliver one note-on at the current progress. Velocity 0 is a note-off."""
        if velocity <= 0:
            return None
        return self.matcher.on_input_note(pitch, self.matcher.progress)

    def pause(self) -> None:
        self.matcher.user_paused = True

    def resume(self) -> None:
        self.matcher.user_paused = False

    def toggle_pause(self) -> bool:
        if self.paused:
            self.resume()
        else:
            self.pause()
        return self.paused

    def restart(self, preserve_stats: bool = False) -> None:
        """Rewind to the start with fresh grading state; the piece is kept."""
        self.matcher.reset(preserve_stats=preserve_stats)
        logger.info("Restarted exercise (stats %s)", "kept" if preserve_stats else "cleared")

    def regenerate(self, params: GenerationParams | None = None, **changes: object) -> Piece:
        """Discard the current piece and grading state and build a new exercise."""
        if params is None:
            params = replace(self.params, **changes) if changes else self.params
        if params.seed != self.params.seed:
            self._rng = make_rng(params.seed)
        piece = generate_piece(params, self._rng)
        self.params = params
        self.piece = piece
        self.matcher = PerformanceMatcher(piece.targets, self.windows, self.listener)
        logger.info(
            "Regenerated exercise: %d targets over %d measures", len(piece.targets), piece.measure_count
        )
        return piece

    def stats_snapshot(self, limit: int = TRICKY_DISPLAY_LIMIT) -> StatsSnapshot:
        stats = self.matcher.stats
        return StatsSnapshot(
            correct=stats.correct_count,
            mistakes=stats.mistake_count,
            accuracy_pct=round(stats.accuracy_pct),
            tricky=[
                (pitch_name(pitch, self.piece.prefer_sharps), count)
                for pitch, count in stats.ranked_tricky(limit)
            ],
        )
