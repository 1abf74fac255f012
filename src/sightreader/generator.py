"""Piece assembly: rhythm, harmony and voicing for both hands, measure by measure."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from sightreader.config import MAX_MEASURES, MAX_POLYPHONY_SETTING
from sightreader.harmony import DegreePlan, PLAN_CHUNK, chord_for_offset, harmony_slots_for_measure
from sightreader.models import (
    BeatStrength,
    Difficulty,
    GenerationParams,
    Hand,
    HandEvent,
    HarmonySlot,
    Piece,
    Target,
    target_id_for_tick,
)
from sightreader.rhythm import beat_strength, duration_profile, pick_rhythm
from sightreader.sampling import make_rng, weighted_choice
from sightreader.theory import (
    fold_into_register,
    key_info,
    nearest_midi_in_pcs,
    nearest_midi_with_pc,
    scale_pcs_for_key,
)
from sightreader.timing import TimeSignature, beats_from_ticks, parse_time_signature
from sightreader.voicing import (
    BASS_RANGE,
    TREBLE_RANGE,
    BassStyle,
    TrebleStyle,
    bass_midi_for_role,
    choose_hand_note_count,
    choose_melody_midi,
    enrich_with_chord_tones,
    finalize_hand_notes,
    harmony_intent,
    max_hand_notes,
    pick_bass_style,
    pick_treble_style,
)

logger = logging.getLogger(__name__)


class GenerationParamsError(ValueError):
    """Raised when generation parameters are out of range."""


@dataclass
class _HandState:
    """Voice-leading memory carried across onsets for one hand."""

    prev_midi: int
    prev_chord: list[int] = field(default_factory=list)
    cycle_index: int = 0  # arpeggio position (treble) or bass role

    def voicing_seed(self, fallback: list[int]) -> list[int]:
        return self.prev_chord if self.prev_chord else fallback

    def remember(self, midis: list[int], force: bool = False) -> None:
        if force or len(midis) > 1:
            self.prev_chord = list(midis)


@dataclass(frozen=True)
class PlaybackEvent:
    """A sounding onset for the audio collaborator, in beats from the start."""

    start_beats: float
    duration_beats: float
    pitches: tuple[int, ...]


def validate_params(params: GenerationParams) -> TimeSignature:
    """Check parameters before any generation work; returns the parsed meter."""
    key_info(params.key)
    meter = parse_time_signature(params.time_signature)
    if params.target_count < 1:
        raise GenerationParamsError(f"target_count must be at least 1, got {params.target_count}")
    if not 1 <= params.max_polyphony <= MAX_POLYPHONY_SETTING:
        raise GenerationParamsError(
            f"max_polyphony must be within 1-{MAX_POLYPHONY_SETTING}, got {params.max_polyphony}"
        )
    if params.lead_in_beats < 0:
        raise GenerationParamsError("lead_in_beats cannot be negative")
    return meter


class PieceAssembler:
    """Builds one exercise until the requested number of targets exists."""

    def __init__(self, params: GenerationParams, rng: random.Random | None = None) -> None:
        self.params = params
        self.meter = validate_params(params)
        self.rng = rng if rng is not None else make_rng(params.seed)

        self.measure_ticks = self.meter.measure_ticks
        self.scale_pcs = scale_pcs_for_key(params.key)
        self.difficulty = params.difficulty
        self.max_notes = max_hand_notes(params.max_polyphony)
        # Polyphony settings above the hand cap still thicken the texture
        self.intent = harmony_intent(params.max_polyphony)
        self.profile = duration_profile(params.difficulty)

        self._treble: list[HandEvent] = []
        self._bass: list[HandEvent] = []
        self._targets: dict[int, Target] = {}
        self._treble_state = _HandState(prev_midi=72)
        self._bass_state = _HandState(prev_midi=48)

    def assemble(self) -> Piece:
        rng = self.rng
        plan = DegreePlan(self.difficulty, rng)
        contour = weighted_choice(rng, [(1, -1), (2, 0), (1, 1)])
        ceiling = max(MAX_MEASURES, self.params.target_count)

        measure_index = 0
        measure_start = 0
        while len(self._targets) < self.params.target_count and measure_index < ceiling:
            plan.ensure(measure_index + PLAN_CHUNK)
            slots = harmony_slots_for_measure(
                self.measure_ticks,
                plan.degree_at(measure_index),
                plan.degree_at(measure_index + 1),
                self.difficulty,
                rng,
            )
            treble_rhythm = pick_rhythm(self.measure_ticks, self.meter, Hand.TREBLE, self.difficulty, rng)
            bass_rhythm = pick_rhythm(self.measure_ticks, self.meter, Hand.BASS, self.difficulty, rng)
            treble_style = pick_treble_style(self.difficulty, self.intent, rng)
            bass_style = pick_bass_style(self.difficulty, self.intent, rng)

            # Reverse the melodic contour roughly every phrase
            if measure_index % 4 == 3 and rng.random() < 0.6:
                contour = -contour or -1

            self._fill_hand(Hand.TREBLE, measure_start, treble_rhythm, slots, treble_style, contour)
            self._fill_hand(Hand.BASS, measure_start, bass_rhythm, slots, bass_style, contour)

            measure_start += self.measure_ticks
            measure_index += 1

        piece = self._trimmed_piece()
        logger.debug(
            "Generated %d measures (%d kept), %d targets, key=%s meter=%s difficulty=%s",
            measure_index,
            piece.measure_count,
            len(piece.targets),
            self.params.key,
            self.meter,
            self.difficulty.value,
        )
        return piece

    def _fill_hand(
        self,
        hand: Hand,
        measure_start: int,
        rhythm: list[int],
        slots: list[HarmonySlot],
        style: TrebleStyle | BassStyle,
        contour: int,
    ) -> None:
        events = self._treble if hand is Hand.TREBLE else self._bass
        state = self._treble_state if hand is Hand.TREBLE else self._bass_state
        state.cycle_index = 0
        rest_chance = self.profile.rest_chance(hand)

        offset = 0
        for ticks in rhythm:
            start_tick = measure_start + offset
            strength = beat_strength(offset, self.meter)
            chord_pcs = chord_for_offset(offset, slots, self.scale_pcs)

            if strength is not BeatStrength.STRONG and self.rng.random() < rest_chance:
                midis: list[int] = []
            elif hand is Hand.TREBLE:
                midis = self._treble_onset(state, chord_pcs, strength, style, contour)
            else:
                midis = self._bass_onset(state, chord_pcs, strength, style)

            events.append(
                HandEvent(
                    id=f"{hand.name.lower()}-{start_tick}",
                    hand=hand,
                    start_tick=start_tick,
                    ticks=ticks,
                    midi_pitches=tuple(midis),
                )
            )
            if midis:
                self._upsert_target(start_tick, midis)
            offset += ticks

    def _treble_onset(
        self,
        state: _HandState,
        chord_pcs: list[int],
        strength: BeatStrength,
        style: TrebleStyle,
        contour: int,
    ) -> list[int]:
        rng = self.rng
        want = choose_hand_note_count(self.max_notes, self.intent, self.difficulty, strength.accented, rng)

        if style is TrebleStyle.ARPEGGIO:
            pc = chord_pcs[state.cycle_index % len(chord_pcs)]
            state.cycle_index += 1
            drift = 0 if contour == 0 else contour * (1 if rng.random() < 0.7 else 2)
            seed = fold_into_register(nearest_midi_with_pc(state.prev_midi + drift, pc), TREBLE_RANGE)
        else:
            seed = choose_melody_midi(
                state.prev_midi,
                chord_pcs,
                self.scale_pcs,
                TREBLE_RANGE,
                strength,
                self.difficulty,
                contour,
                rng,
            )
            if style is TrebleStyle.MELODY_CHORDS:
                want = max(2, want)
            elif style is TrebleStyle.MELODY_DYADS:
                want = max(2, min(3, want))
        state.prev_midi = seed

        midis = enrich_with_chord_tones(
            [seed],
            chord_pcs,
            state.voicing_seed([seed]),
            TREBLE_RANGE,
            self.max_notes,
            want,
            rng,
        )
        state.remember(midis, force=style is TrebleStyle.MELODY_CHORDS)
        return midis

    def _bass_onset(
        self,
        state: _HandState,
        chord_pcs: list[int],
        strength: BeatStrength,
        style: BassStyle,
    ) -> list[int]:
        rng = self.rng
        bass_cap = min(self.max_notes, 3)

        if style is BassStyle.WALKING and self.difficulty is Difficulty.HARD:
            step = rng.choice((1, -1)) if rng.random() < 0.6 else rng.choice((2, -2))
            root = nearest_midi_in_pcs(state.prev_midi + step, self.scale_pcs, BASS_RANGE)
            state.prev_midi = root
            want = choose_hand_note_count(bass_cap, self.intent, self.difficulty, strength.accented, rng)
            midis = enrich_with_chord_tones(
                [root], chord_pcs, state.voicing_seed([root]), BASS_RANGE, bass_cap, want, rng
            )
            state.remember(midis)
            return midis

        role = {BeatStrength.STRONG: 0, BeatStrength.MEDIUM: 1, BeatStrength.WEAK: 2}[strength]
        root = bass_midi_for_role(chord_pcs, state.prev_midi, BASS_RANGE, state.cycle_index + role)
        state.cycle_index += 1
        state.prev_midi = root
        want = choose_hand_note_count(min(self.max_notes, 4), self.intent, self.difficulty, strength.accented, rng)

        if style is BassStyle.OCTAVES and strength is BeatStrength.STRONG and want >= 2:
            midis = finalize_hand_notes([root, fold_into_register(root + 12, BASS_RANGE)], BASS_RANGE, 2)
            if self.intent > 0.55 and self.max_notes >= 3 and rng.random() < 0.35:
                midis = enrich_with_chord_tones(
                    midis, chord_pcs, state.voicing_seed(midis), BASS_RANGE, bass_cap, 3, rng
                )
            state.remember(midis, force=True)
            return midis

        if style is BassStyle.BROKEN and not (strength.accented and want >= 2):
            return [root]

        midis = enrich_with_chord_tones(
            [root], chord_pcs, state.voicing_seed([root]), BASS_RANGE, bass_cap, min(3, want), rng
        )
        state.remember(midis)
        return midis

    def _upsert_target(self, start_tick: int, midis: list[int]) -> None:
        target = self._targets.get(start_tick)
        if target is None:
            target = Target(
                id=target_id_for_tick(start_tick),
                start_tick=start_tick,
                offset_beats=beats_from_ticks(start_tick) + self.params.lead_in_beats,
            )
            self._targets[start_tick] = target
        target.add_pitches(midis)

    def _trimmed_piece(self) -> Piece:
        targets = sorted(self._targets.values(), key=lambda t: t.start_tick)[: self.params.target_count]
        if targets:
            last_tick = targets[-1].start_tick
            keep_until = (last_tick // self.measure_ticks + 1) * self.measure_ticks
        else:
            keep_until = 0
        return Piece(
            params=self.params,
            treble=[e for e in self._treble if e.start_tick < keep_until],
            bass=[e for e in self._bass if e.start_tick < keep_until],
            targets=targets,
            measure_ticks=self.measure_ticks,
            prefer_sharps=key_info(self.params.key).prefer_sharps,
        )


def generate_piece(params: GenerationParams, rng: random.Random | None = None) -> Piece:
    """Generate a two-handed exercise with exactly ``params.target_count`` targets."""
    return PieceAssembler(params, rng).assemble()


def playback_events(piece: Piece) -> list[PlaybackEvent]:
    """Sounding onsets of both hands in start order; rests are silent."""
    events = [
        PlaybackEvent(
            start_beats=beats_from_ticks(e.start_tick),
            duration_beats=e.beats,
            pitches=e.midi_pitches,
        )
        for e in piece.treble + piece.bass
        if not e.is_rest
    ]
    events.sort(key=lambda e: e.start_beats)
    return events
