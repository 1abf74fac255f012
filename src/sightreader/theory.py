"""Keys, scales, chord pitch classes and pitch-to-register helpers."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

NOTE_NAMES_SHARP = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
NOTE_NAMES_FLAT = ["C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B"]

MAJOR_SCALE = [0, 2, 4, 5, 7, 9, 11]

_SHARP_ORDER = ["F", "C", "G", "D", "A", "E", "B"]
_FLAT_ORDER = ["B", "E", "A", "D", "G", "C", "F"]


class UnknownKeyError(ValueError):
    """Raised for a key name outside the fifteen supported major keys."""


@dataclass(frozen=True)
class KeyInfo:
    name: str
    tonic_pc: int
    accidentals: int  # positive = sharps, negative = flats

    @property
    def prefer_sharps(self) -> bool:
        return self.accidentals > 0


KEY_INFO: dict[str, KeyInfo] = {
    k.name: k
    for k in (
        KeyInfo("C", 0, 0),
        KeyInfo("G", 7, 1),
        KeyInfo("D", 2, 2),
        KeyInfo("A", 9, 3),
        KeyInfo("E", 4, 4),
        KeyInfo("B", 11, 5),
        KeyInfo("F#", 6, 6),
        KeyInfo("C#", 1, 7),
        KeyInfo("F", 5, -1),
        KeyInfo("Bb", 10, -2),
        KeyInfo("Eb", 3, -3),
        KeyInfo("Ab", 8, -4),
        KeyInfo("Db", 1, -5),
        KeyInfo("Gb", 6, -6),
        KeyInfo("Cb", 11, -7),
    )
}


def key_info(key: str) -> KeyInfo:
    try:
        return KEY_INFO[key]
    except KeyError:
        raise UnknownKeyError(f"Unknown key: {key!r}") from None


def scale_pcs_for_key(key: str) -> list[int]:
    """Pitch classes of the major scale, ordered degree 1..7."""
    tonic = key_info(key).tonic_pc
    return [(tonic + step) % 12 for step in MAJOR_SCALE]


def key_signature(key: str) -> dict[str, str]:
    """Letter -> accidental ("#" or "b") for the key's signature."""
    count = key_info(key).accidentals
    if count > 0:
        return {letter: "#" for letter in _SHARP_ORDER[:count]}
    if count < 0:
        return {letter: "b" for letter in _FLAT_ORDER[:-count]}
    return {}


def chord_pcs_for_degree(degree: int, scale_pcs: list[int], seventh: bool = False) -> list[int]:
    """Stack scale thirds on a degree: root, third, fifth (and seventh)."""
    i = (degree - 1) % 7
    pcs = [scale_pcs[i], scale_pcs[(i + 2) % 7], scale_pcs[(i + 4) % 7]]
    if seventh:
        pcs.append(scale_pcs[(i + 6) % 7])
    return pcs


def pitch_name(midi: int, prefer_sharps: bool = True) -> str:
    names = NOTE_NAMES_SHARP if prefer_sharps else NOTE_NAMES_FLAT
    octave = (midi // 12) - 1
    return f"{names[midi % 12]}{octave}"


def nearest_midi_with_pc(target: float, pc: int) -> int:
    """The pitch of class ``pc`` closest to ``target``."""
    return pc + 12 * round((target - pc) / 12)


def fold_into_register(midi: int, register: tuple[int, int]) -> int:
    """Shift by octaves until inside the register.

    A register narrower than an octave may have no octave of ``midi`` inside
    it; the result is then hard-clamped to the nearest boundary.
    """
    low, high = register
    while midi < low:
        midi += 12
    while midi > high:
        midi -= 12
    return max(low, min(midi, high))


def nearest_midi_in_pcs(target: float, pcs: Iterable[int], register: tuple[int, int]) -> int:
    """Closest in-register pitch to ``target`` whose class is in ``pcs``.

    Each class is tried at its nearest octave and one octave either side,
    since folding into the register can push the nearest candidate away.
    """
    best: int | None = None
    best_dist = float("inf")
    for pc in pcs:
        base = nearest_midi_with_pc(target, pc)
        for offset in (0, -12, 12):
            candidate = fold_into_register(base + offset, register)
            dist = abs(candidate - target)
            if dist < best_dist:
                best_dist = dist
                best = candidate
    if best is None:
        return fold_into_register(round(target), register)
    return best
