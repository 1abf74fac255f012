"""Heads-up display: grading stats, transport state and the target strip."""

from __future__ import annotations

import pygame

from sightreader.models import MarkKind
from sightreader.renderer.colors import (
    HUD_DIM,
    HUD_TEXT,
    MARK_CORRECT,
    MARK_MISTAKE,
    PLAYHEAD,
    TARGET_ACTIVE,
    TARGET_IDLE,
)
from sightreader.session import ExerciseSession
from sightreader.theory import pitch_name

_PIXELS_PER_BEAT = 90
_PLAYHEAD_X = 160
_STRIP_Y = 320


def render_hud(surface: pygame.Surface, session: ExerciseSession) -> None:
    font = pygame.font.SysFont("monospace", 20)
    stats = session.stats_snapshot()

    state = "PAUSED" if session.paused else ("WAITING" if not session.running else "PLAYING")
    if session.finished:
        state = "DONE"
    lines = [
        f"Correct: {stats.correct}",
        f"Mistakes: {stats.mistakes}",
        f"Accuracy: {stats.accuracy_pct}%",
        f"Tempo: {session.bpm:.0f} BPM | {state}",
    ]

    y = 10
    for line in lines:
        surface.blit(font.render(line, True, HUD_TEXT), (10, y))
        y += 28

    y += 8
    surface.blit(font.render("Tricky notes:", True, HUD_TEXT), (10, y))
    for line in stats.tricky_lines():
        y += 24
        surface.blit(font.render(line, True, HUD_DIM), (30, y))


def render_target_strip(surface: pygame.Surface, session: ExerciseSession) -> None:
    """Targets as labelled blocks scrolling left past a fixed playhead."""
    font = pygame.font.SysFont("monospace", 14)
    width = surface.get_width()
    marks = session.matcher.marks
    active = session.matcher.highlighted_target()
    prefer_sharps = session.piece.prefer_sharps

    pygame.draw.line(surface, PLAYHEAD, (_PLAYHEAD_X, _STRIP_Y - 40), (_PLAYHEAD_X, _STRIP_Y + 200), 2)

    for target in session.targets:
        x = _PLAYHEAD_X + int((target.offset_beats - session.progress) * _PIXELS_PER_BEAT)
        if x < -40:
            continue
        if x > width + 40:
            break

        mark = marks.get(target.id)
        if mark is MarkKind.CORRECT:
            color = MARK_CORRECT
        elif mark is MarkKind.MISTAKE:
            color = MARK_MISTAKE
        elif target is active:
            color = TARGET_ACTIVE
        else:
            color = TARGET_IDLE

        for i, pitch in enumerate(reversed(target.midi_pitches)):
            label = font.render(pitch_name(pitch, prefer_sharps), True, color)
            surface.blit(label, (x - label.get_width() // 2, _STRIP_Y + i * 18))
