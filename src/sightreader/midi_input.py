"""Live note input: hardware MIDI ports and a computer-keyboard piano."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import mido
import pygame

try:
    import rtmidi
    _HAS_RTMIDI = True
except ImportError:
    _HAS_RTMIDI = False

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteMessage:
    """A note-on or note-off; velocity 0 means the key was released."""

    pitch: int
    velocity: int
    timestamp: float

    @property
    def is_note_on(self) -> bool:
        return self.velocity > 0


class MidiDeviceError(Exception):
    """Raised when a MIDI input port cannot be opened."""


@runtime_checkable
class InputSource(Protocol):
    def poll(self) -> NoteMessage | None: ...
    def close(self) -> None: ...


def decode_message(data: list[int] | bytes, timestamp: float) -> NoteMessage | None:
    """Decode one raw MIDI message; anything but note-on/note-off yields None."""
    try:
        msg = mido.parse(list(data))
    except ValueError:
        logger.debug("Ignoring malformed MIDI data %r", data)
        return None
    if msg is None or msg.type not in ("note_on", "note_off"):
        return None
    velocity = msg.velocity if msg.type == "note_on" else 0
    return NoteMessage(pitch=msg.note, velocity=velocity, timestamp=timestamp)


def _row(keys: str, first_pitch: int) -> dict[int, int]:
    # pygame keycodes for printable keys are their character codes
    return {ord(ch): first_pitch + i for i, ch in enumerate(keys)}


# Two chromatic rows laid out like a piano: white keys on the letter row,
# black keys on the row above. Bottom row C3-C4, top row C4-E5.
_KEY_TO_PITCH: dict[int, int] = {**_row("zsxdcvgbhnjm,", 48), **_row("q2w3er5t6y7ui9o0p", 60)}


class KeyboardInput:
    """Plays notes from the computer keyboard; key auto-repeat is ignored."""

    def __init__(self, velocity: int = 80) -> None:
        self._velocity = velocity
        self._queue: deque[NoteMessage] = deque()
        self._down: set[int] = set()

    @staticmethod
    def handles(key: int) -> bool:
        return key in _KEY_TO_PITCH

    def feed_event(self, event: pygame.event.Event) -> None:
        if event.type not in (pygame.KEYDOWN, pygame.KEYUP):
            return
        pitch = _KEY_TO_PITCH.get(event.key)
        if pitch is None:
            return
        if event.type == pygame.KEYDOWN:
            if pitch in self._down:
                return
            self._down.add(pitch)
            velocity = self._velocity
        else:
            self._down.discard(pitch)
            velocity = 0
        self._queue.append(NoteMessage(pitch=pitch, velocity=velocity, timestamp=time.time()))

    def poll(self) -> NoteMessage | None:
        return self._queue.popleft() if self._queue else None

    def close(self) -> None:
        self._queue.clear()
        self._down.clear()


class MidiInput:
    """A python-rtmidi input port; messages are decoded with mido.

    rtmidi delivers messages on its own thread. They are timestamped on
    arrival and queued until the app loop polls them.
    """

    def __init__(self, port_index: int | None = None) -> None:
        if not _HAS_RTMIDI:
            raise MidiDeviceError("python-rtmidi is not installed")
        try:
            self._port = rtmidi.MidiIn()
        except rtmidi.RtMidiError as exc:
            raise MidiDeviceError(f"MIDI backend unavailable: {exc}") from exc
        self._port_index = port_index or 0
        self._queue: deque[NoteMessage] = deque()
        self.port_name: str | None = None

    @staticmethod
    def list_ports() -> list[str]:
        if not _HAS_RTMIDI:
            return []
        try:
            return rtmidi.MidiIn().get_ports()
        except rtmidi.RtMidiError:
            return []

    def open(self) -> None:
        try:
            ports = self._port.get_ports()
            if not ports:
                raise MidiDeviceError("No MIDI input devices found")
            if not 0 <= self._port_index < len(ports):
                raise MidiDeviceError(f"MIDI port {self._port_index} does not exist ({len(ports)} available)")
            self._port.open_port(self._port_index)
            self._port.set_callback(self._on_message)
        except rtmidi.RtMidiError as exc:
            raise MidiDeviceError(f"Cannot open MIDI port {self._port_index}: {exc}") from exc
        self.port_name = ports[self._port_index]
        logger.info("Listening on MIDI port %s", self.port_name)

    def _on_message(self, received: tuple[list[int], float], _data: object = None) -> None:
        data, _delta = received
        note = decode_message(data, time.time())
        if note is not None:
            self._queue.append(note)

    def poll(self) -> NoteMessage | None:
        """Next note message received on the port; clock, pedal and other traffic is dropped."""
        return self._queue.popleft() if self._queue else None

    def close(self) -> None:
        if self.port_name is not None:
            self._port.cancel_callback()
            self._port.close_port()
            self.port_name = None
        self._queue.clear()


def drain_in_arrival_order(sources: list[InputSource]) -> list[NoteMessage]:
    """Everything pending on every source, merged by timestamp (stable for ties)."""
    pending: list[NoteMessage] = []
    for source in sources:
        while (note := source.poll()) is not None:
            pending.append(note)
    pending.sort(key=lambda note: note.timestamp)
    return pending
