"""Tests for note input decoding."""

import types

import pygame
import pytest

from sightreader import midi_input
from sightreader.midi_input import (
    KeyboardInput,
    MidiDeviceError,
    MidiInput,
    NoteMessage,
    decode_message,
    drain_in_arrival_order,
)


def test_note_on_decodes():
    event = decode_message([0x90, 60, 100], 1.5)
    assert event.pitch == 60
    assert event.velocity == 100
    assert event.timestamp == 1.5
    assert event.is_note_on


def test_zero_velocity_note_on_is_note_off():
    event = decode_message([0x90, 60, 0], 0.0)
    assert not event.is_note_on
    assert event.velocity == 0


def test_note_off_decodes():
    event = decode_message(bytes([0x80, 64, 40]), 0.0)
    assert event.pitch == 64
    assert not event.is_note_on


def test_other_messages_are_ignored():
    assert decode_message([0xB0, 64, 127], 0.0) is None  # sustain pedal
    assert decode_message([0xC0, 5], 0.0) is None


def test_keyboard_input_maps_keys_to_pitches():
    keyboard = KeyboardInput()
    keyboard.feed_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_q))
    keyboard.feed_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_q))  # auto-repeat
    keyboard.feed_event(pygame.event.Event(pygame.KEYUP, key=pygame.K_q))
    keyboard.feed_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_SPACE))

    down = keyboard.poll()
    assert down.pitch == 60 and down.is_note_on
    up = keyboard.poll()
    assert up.pitch == 60 and not up.is_note_on
    assert keyboard.poll() is None
    assert KeyboardInput.handles(pygame.K_z)
    assert not KeyboardInput.handles(pygame.K_SPACE)


class _QueuedSource:
    def __init__(self, notes):
        self._notes = list(notes)

    def poll(self):
        return self._notes.pop(0) if self._notes else None

    def close(self):
        self._notes.clear()


def test_sources_are_merged_in_arrival_order():
    keyboard = _QueuedSource([NoteMessage(60, 80, 1.0), NoteMessage(64, 80, 3.0)])
    device = _QueuedSource([NoteMessage(62, 90, 2.0), NoteMessage(65, 0, 4.0)])
    merged = drain_in_arrival_order([keyboard, device])
    assert [n.pitch for n in merged] == [60, 62, 64, 65]
    assert keyboard.poll() is None
    assert device.poll() is None


class _BackendError(Exception):
    pass


class _Port:
    def __init__(self, ports=("Digital Piano",), fail_open=False):
        self._ports = list(ports)
        self._fail_open = fail_open
        self.callback = None
        self.closed = False

    def get_ports(self):
        return self._ports

    def open_port(self, index):
        if self._fail_open:
            raise _BackendError("port busy")

    def set_callback(self, func, data=None):
        self.callback = func

    def cancel_callback(self):
        self.callback = None

    def close_port(self):
        self.closed = True


def _install_backend(monkeypatch, midi_in):
    backend = types.SimpleNamespace(RtMidiError=_BackendError, MidiIn=midi_in)
    monkeypatch.setattr(midi_input, "rtmidi", backend, raising=False)
    monkeypatch.setattr(midi_input, "_HAS_RTMIDI", True)


def _broken_backend():
    raise _BackendError("ALSA sequencer unavailable")


def test_backend_failure_becomes_device_error(monkeypatch):
    _install_backend(monkeypatch, _broken_backend)
    with pytest.raises(MidiDeviceError):
        MidiInput()
    assert MidiInput.list_ports() == []


def test_port_open_failure_becomes_device_error(monkeypatch):
    _install_backend(monkeypatch, lambda: _Port(fail_open=True))
    with pytest.raises(MidiDeviceError):
        MidiInput(0).open()


def test_bad_port_index_is_a_device_error(monkeypatch):
    _install_backend(monkeypatch, lambda: _Port())
    with pytest.raises(MidiDeviceError):
        MidiInput(3).open()


def test_app_runs_without_a_usable_midi_backend(monkeypatch):
    from sightreader.app import App

    _install_backend(monkeypatch, _broken_backend)
    assert App._try_midi(None) is None


def test_device_messages_are_queued_on_arrival(monkeypatch):
    port = _Port()
    _install_backend(monkeypatch, lambda: port)
    device = MidiInput()
    device.open()
    assert device.port_name == "Digital Piano"

    port.callback(([0xF8], 0.0), None)  # clock tick
    port.callback(([0x90, 67, 70], 0.01), None)
    note = device.poll()
    assert note.pitch == 67 and note.is_note_on
    assert device.poll() is None

    device.close()
    assert port.closed
    assert port.callback is None
