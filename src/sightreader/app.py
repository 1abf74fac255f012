"""Top-level application: initializes pygame, wires input to the session, and runs the clock loop."""

from __future__ import annotations

import logging

import pygame

from sightreader.config import FPS, WINDOW_HEIGHT, WINDOW_TITLE, WINDOW_WIDTH
from sightreader.matcher import TimingWindows
from sightreader.midi_input import (
    InputSource,
    KeyboardInput,
    MidiDeviceError,
    MidiInput,
    drain_in_arrival_order,
)
from sightreader.models import GenerationParams
from sightreader.renderer.colors import BG
from sightreader.renderer.hud import render_hud, render_target_strip
from sightreader.session import ExerciseSession

logger = logging.getLogger(__name__)

_TEMPO_STEP = 5.0


class App:
    def __init__(
        self,
        params: GenerationParams,
        bpm: float,
        windows: TimingWindows | None = None,
        midi_port: int | None = None,
    ) -> None:
        pygame.init()
        self.screen = pygame.display.set_mode((WINDOW_WIDTH, WINDOW_HEIGHT))
        pygame.display.set_caption(WINDOW_TITLE)
        self.clock = pygame.time.Clock()

        # Optional subsystems gracefully degrade
        self._midi_input = self._try_midi(midi_port)
        self._keyboard_input = KeyboardInput()

        self.session = ExerciseSession(params, bpm=bpm, windows=windows)

    def run(self) -> None:
        running = True
        while running:
            dt = self.clock.tick(FPS) / 1000.0
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type in (pygame.KEYDOWN, pygame.KEYUP) and KeyboardInput.handles(event.key):
                    self._keyboard_input.feed_event(event)
                elif not self._handle_transport(event):
                    running = False

            # Notes that arrived since the last frame are graded at the progress
            # they were received at, before the clock moves on
            self._drain_inputs()
            self.session.advance(dt)

            self.screen.fill(BG)
            render_target_strip(self.screen, self.session)
            render_hud(self.screen, self.session)
            pygame.display.flip()

        self._cleanup()
        pygame.quit()

    def _drain_inputs(self) -> None:
        sources: list[InputSource] = [self._keyboard_input]
        if self._midi_input is not None:
            sources.append(self._midi_input)
        for note in drain_in_arrival_order(sources):
            if note.is_note_on:
                self.session.note_on(note.pitch, note.velocity)

    def _handle_transport(self, event: pygame.event.Event) -> bool:
        """Apply transport keys. Returns False when the app should quit."""
        if event.type != pygame.KEYDOWN:
            return True
        if event.key == pygame.K_ESCAPE:
            return False
        if event.key == pygame.K_SPACE:
            self.session.toggle_pause()
        elif event.key == pygame.K_BACKSPACE:
            self.session.restart()
        elif event.key == pygame.K_RETURN:
            self.session.regenerate()
        elif event.key == pygame.K_MINUS:
            self.session.set_bpm(self.session.bpm - _TEMPO_STEP)
        elif event.key == pygame.K_EQUALS:
            self.session.set_bpm(self.session.bpm + _TEMPO_STEP)
        return True

    def _cleanup(self) -> None:
        self._keyboard_input.close()
        if self._midi_input is not None:
            self._midi_input.close()

    @staticmethod
    def _try_midi(port_index: int | None) -> MidiInput | None:
        try:
            mi = MidiInput(port_index)
            mi.open()
            return mi
        except MidiDeviceError as exc:
            logger.warning("MIDI input unavailable (%s); using the computer keyboard", exc)
            ports = MidiInput.list_ports()
            if ports:
                logger.warning("Available MIDI ports: %s", ", ".join(f"{i}: {name}" for i, name in enumerate(ports)))
            return None
