"""Tests for piece assembly."""

from dataclasses import replace

import pytest

from sightreader.generator import GenerationParamsError, generate_piece, playback_events
from sightreader.models import Difficulty, GenerationParams, Hand
from sightreader.sampling import make_rng
from sightreader.theory import UnknownKeyError, scale_pcs_for_key
from sightreader.timing import DURATION_TICKS, TimeSignatureError
from sightreader.voicing import BASS_RANGE, MAX_HAND_NOTES, MAX_HAND_SPAN, TREBLE_RANGE, max_hand_notes

KEYS = ["C", "F#", "Bb", "Cb"]
METERS = ["4/4", "3/4", "6/8", "5/4"]


def _params(**changes):
    return replace(GenerationParams(target_count=24, seed=11), **changes)


@pytest.mark.parametrize("meter", METERS)
@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_every_measure_fills_exactly(meter, difficulty):
    for key in KEYS:
        piece = generate_piece(_params(key=key, time_signature=meter, difficulty=difficulty, max_polyphony=6))
        for hand in Hand:
            events = piece.events_for(hand)
            assert events
            cursor = 0
            for event in events:
                assert event.start_tick == cursor
                assert event.ticks in DURATION_TICKS
                # No event crosses a barline
                assert event.start_tick // piece.measure_ticks == (cursor + event.ticks - 1) // piece.measure_ticks
                cursor += event.ticks
            assert cursor % piece.measure_ticks == 0
            assert cursor == piece.measure_count * piece.measure_ticks


@pytest.mark.parametrize("count", [1, 2, 7, 24, 60])
@pytest.mark.parametrize("meter", METERS)
@pytest.mark.parametrize("polyphony", [1, 3, 5, 10])
def test_target_count_is_exact(count, meter, polyphony):
    for difficulty in Difficulty:
        piece = generate_piece(
            _params(target_count=count, time_signature=meter, max_polyphony=polyphony, difficulty=difficulty)
        )
        ticks = [t.start_tick for t in piece.targets]
        assert len(ticks) == count
        assert ticks == sorted(set(ticks))
        assert all(t.midi_pitches for t in piece.targets)


def test_trailing_material_ends_with_last_target_measure():
    piece = generate_piece(_params(target_count=9, time_signature="3/4"))
    last_measure = piece.targets[-1].start_tick // piece.measure_ticks
    assert piece.measure_count == last_measure + 1


@pytest.mark.parametrize("polyphony", [1, 3, 5, 10])
def test_voicings_respect_register_and_hand_caps(polyphony):
    for difficulty in Difficulty:
        for seed in range(3):
            piece = generate_piece(_params(max_polyphony=polyphony, difficulty=difficulty, seed=seed, key="Eb"))
            cap = max_hand_notes(polyphony)
            for hand, register in ((Hand.TREBLE, TREBLE_RANGE), (Hand.BASS, BASS_RANGE)):
                for event in piece.events_for(hand):
                    pitches = event.midi_pitches
                    assert len(pitches) <= min(cap, MAX_HAND_NOTES)
                    assert all(register[0] <= p <= register[1] for p in pitches)
                    if len(pitches) >= 2:
                        assert max(pitches) - min(pitches) <= MAX_HAND_SPAN


def test_polyphony_one_is_single_notes():
    piece = generate_piece(_params(max_polyphony=1, difficulty=Difficulty.HARD))
    for hand in Hand:
        assert all(len(e.midi_pitches) <= 1 for e in piece.events_for(hand))


def test_targets_merge_both_hands():
    piece = generate_piece(_params(seed=21))
    by_tick = {t.start_tick: t for t in piece.targets}
    last_tick = piece.targets[-1].start_tick
    for hand in Hand:
        for event in piece.events_for(hand):
            if event.is_rest or event.start_tick > last_tick:
                continue
            target = by_tick[event.start_tick]
            assert event.target_id == target.id
            assert set(event.midi_pitches) <= set(target.midi_pitches)
    for target in piece.targets:
        sounding = set()
        for hand in Hand:
            for event in piece.events_for(hand):
                if event.start_tick == target.start_tick:
                    sounding.update(event.midi_pitches)
        assert sounding == set(target.midi_pitches)


def test_downbeats_are_never_rests():
    piece = generate_piece(_params(difficulty=Difficulty.HARD, target_count=40))
    for hand in Hand:
        for event in piece.events_for(hand):
            if event.start_tick % piece.measure_ticks == 0:
                assert not event.is_rest


def test_pitches_stay_diatonic_in_easy_mode():
    piece = generate_piece(_params(key="A", difficulty=Difficulty.EASY))
    scale = set(scale_pcs_for_key("A"))
    for target in piece.targets:
        assert {p % 12 for p in target.midi_pitches} <= scale


def test_lead_in_offsets_targets():
    piece = generate_piece(_params(lead_in_beats=2.0))
    for target in piece.targets:
        assert target.offset_beats == target.start_tick * 0.25 + 2.0


def test_same_seed_same_piece():
    a = generate_piece(_params(seed=99, difficulty=Difficulty.HARD))
    b = generate_piece(_params(seed=99, difficulty=Difficulty.HARD))
    assert a.treble == b.treble
    assert a.bass == b.bass
    assert [t.midi_pitches for t in a.targets] == [t.midi_pitches for t in b.targets]


def test_shared_rng_is_used():
    rng = make_rng(5)
    first = generate_piece(_params(seed=None), rng)
    second = generate_piece(_params(seed=None), rng)
    again = generate_piece(_params(seed=None), make_rng(5))
    assert first.treble == again.treble
    assert first.treble != second.treble


def test_invalid_params_raise():
    with pytest.raises(UnknownKeyError):
        generate_piece(_params(key="H"))
    with pytest.raises(TimeSignatureError):
        generate_piece(_params(time_signature="4/3"))
    with pytest.raises(GenerationParamsError):
        generate_piece(_params(target_count=0))
    with pytest.raises(GenerationParamsError):
        generate_piece(_params(max_polyphony=11))
    with pytest.raises(GenerationParamsError):
        generate_piece(_params(lead_in_beats=-1.0))


def test_playback_events_skip_rests_and_are_ordered():
    piece = generate_piece(_params(difficulty=Difficulty.HARD, seed=4))
    events = playback_events(piece)
    assert events
    assert all(e.pitches for e in events)
    starts = [e.start_beats for e in events]
    assert starts == sorted(starts)
    sounding = sum(1 for hand in Hand for e in piece.events_for(hand) if not e.is_rest)
    assert len(events) == sounding
