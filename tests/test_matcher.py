"""Tests for real-time performance grading."""

import random

from sightreader.matcher import PerformanceMatcher, TimingWindows
from sightreader.models import MarkKind, MarkUpdate, Target, TargetState


def _target(tick, *pitches):
    return Target(id=f"g-{tick}", start_tick=tick, offset_beats=tick * 0.25, midi_pitches=pitches)


def test_correct_single_note():
    target = _target(8, 60)
    matcher = PerformanceMatcher([target])
    update = matcher.on_input_note(60, 2.02)
    assert update == MarkUpdate("g-8", MarkKind.CORRECT)
    assert target.completed
    assert matcher.stats.correct_count == 1
    assert matcher.stats.mistake_count == 0
    assert matcher.finished


def test_wrong_note_then_correct_chord():
    target = _target(8, 60, 64)
    matcher = PerformanceMatcher([target])

    assert matcher.on_input_note(61, 2.0) == MarkUpdate("g-8", MarkKind.MISTAKE)
    assert target.mistake_flag
    assert matcher.stats.mistake_count == 1
    assert matcher.stats.tricky_notes == {61: 1}
    assert matcher.halted

    assert matcher.on_input_note(60, 2.05) is None
    assert target.hit_pitches == {60}
    assert matcher.on_input_note(64, 2.06) == MarkUpdate("g-8", MarkKind.CORRECT)
    assert target.hit_pitches == {60, 64}
    assert target.completed
    assert not target.mistake_flag
    assert matcher.stats.mistake_count == 1
    assert matcher.stats.correct_count == 1
    assert not matcher.halted


def test_repeated_wrong_notes_count_once():
    target = _target(8, 60)
    matcher = PerformanceMatcher([target])
    for pitch in (61, 62, 61):
        matcher.on_input_note(pitch, 2.0)
    assert matcher.stats.mistake_count == 1
    assert matcher.stats.tricky_notes == {61: 2, 62: 1}
    assert matcher.stats.ranked_tricky() == [(61, 2), (62, 1)]


def test_timeout_marks_waiting_and_halts():
    target = _target(16, 60, 64)
    matcher = PerformanceMatcher([target], TimingWindows(late_window_beats=0.1))

    assert matcher.on_clock_advance(4.05) == []
    updates = matcher.on_clock_advance(4.11)
    assert updates == [MarkUpdate("g-16", MarkKind.MISTAKE)]
    assert target.waiting
    assert matcher.stats.mistake_count == 1
    assert matcher.stats.tricky_notes == {60: 1}
    assert matcher.halted
    # Held at the missed onset
    assert matcher.progress == 4.0


def test_timeout_synthesizes_an_unstruck_pitch():
    target = _target(16, 60, 64)
    matcher = PerformanceMatcher([target], TimingWindows(late_window_beats=0.1))
    matcher.on_input_note(60, 3.95)
    matcher.on_clock_advance(4.2)
    assert matcher.stats.tricky_notes == {64: 1}


def test_mistaken_target_that_times_out_does_not_double_count():
    target = _target(16, 60, 64)
    matcher = PerformanceMatcher([target], TimingWindows(late_window_beats=0.1))

    matcher.on_input_note(62, 4.0)
    assert matcher.stats.mistake_count == 1
    matcher.on_clock_advance(4.2)
    assert target.waiting
    assert matcher.stats.mistake_count == 1
    assert matcher.stats.tricky_notes == {62: 1, 60: 1}

    # Stalling does not re-fire the timeout
    assert matcher.on_clock_advance(4.5) == []
    assert matcher.on_clock_advance(9.0) == []
    assert matcher.stats.mistake_count == 1

    matcher.on_input_note(60, matcher.progress)
    assert matcher.on_input_note(64, matcher.progress) == MarkUpdate("g-16", MarkKind.CORRECT)
    assert target.state is TargetState.COMPLETED
    assert matcher.stats.mistake_count == 1


def test_early_input_is_ignored():
    target = _target(8, 60)
    matcher = PerformanceMatcher([target])
    assert matcher.on_input_note(60, 1.5) is None
    assert matcher.on_input_note(61, 1.5) is None
    assert target.hit_pitches == set()
    assert target.state is TargetState.PENDING
    assert not target.mistake_flag
    assert matcher.stats.correct_count == 0
    assert matcher.stats.mistake_count == 0
    assert matcher.marks == {}

    # Inside the early window counts
    assert matcher.on_input_note(60, 1.85) == MarkUpdate("g-8", MarkKind.CORRECT)


def test_cannot_race_ahead_to_a_later_target():
    first, second = _target(8, 60), _target(16, 67)
    matcher = PerformanceMatcher([first, second])
    assert matcher.on_input_note(67, 2.0).kind is MarkKind.MISTAKE
    assert matcher.current_target() is first
    matcher.on_input_note(60, 2.0)
    assert matcher.current_target() is second
    assert matcher.on_input_note(67, 3.95).kind is MarkKind.CORRECT
    assert matcher.finished


def test_listener_sees_every_mark():
    seen = []
    target = _target(4, 60)
    matcher = PerformanceMatcher([target], listener=lambda target_id, kind: seen.append((target_id, kind)))
    matcher.on_input_note(59, 1.0)
    matcher.on_input_note(60, 1.0)
    assert seen == [("g-4", MarkKind.MISTAKE), ("g-4", MarkKind.CORRECT)]
    assert matcher.marks == {"g-4": MarkKind.CORRECT}


def test_highlighted_target_follows_lead():
    target = _target(8, 60)
    matcher = PerformanceMatcher([target])
    matcher.on_clock_advance(1.7)
    assert matcher.highlighted_target() is None
    matcher.on_clock_advance(1.8)
    assert matcher.highlighted_target() is target


def test_reset_restores_fresh_grading_state():
    targets = [_target(4, 60), _target(8, 62)]
    matcher = PerformanceMatcher(targets)
    matcher.on_input_note(61, 1.0)
    matcher.on_input_note(60, 1.0)
    matcher.reset()
    assert all(t.state is TargetState.PENDING and not t.hit_pitches and not t.mistake_flag for t in targets)
    assert matcher.stats.correct_count == 0
    assert matcher.stats.mistake_count == 0
    assert matcher.stats.tricky_notes == {}
    assert matcher.marks == {}
    assert matcher.progress == 0.0
    assert not matcher.halted
    assert matcher.current_target() is targets[0]


def test_reset_can_keep_stats():
    matcher = PerformanceMatcher([_target(4, 60)])
    matcher.on_input_note(60, 1.0)
    matcher.reset(preserve_stats=True)
    assert matcher.stats.correct_count == 1
    assert not matcher.targets[0].completed


def test_no_targets_is_a_no_op():
    matcher = PerformanceMatcher([])
    assert matcher.finished
    assert matcher.on_clock_advance(10.0) == []
    assert matcher.on_input_note(60, 10.0) is None
    assert matcher.stats.mistake_count == 0


def test_grading_is_monotonic_under_random_input():
    rng = random.Random(17)
    for _ in range(20):
        targets = [_target(4 * i, 60 + i % 5, 64 + i % 3) for i in range(1, 9)]
        matcher = PerformanceMatcher(targets)
        completions = {t.id: 0 for t in targets}
        progress = 0.0
        for _ in range(400):
            if rng.random() < 0.5:
                if matcher.scrolling:
                    progress += rng.uniform(0.0, 0.2)
                for update in matcher.on_clock_advance(progress):
                    assert update.kind is MarkKind.MISTAKE
                progress = matcher.progress
            else:
                update = matcher.on_input_note(rng.randint(58, 68), progress)
                if update is not None and update.kind is MarkKind.CORRECT:
                    completions[update.target_id] += 1
                progress = matcher.progress
        assert all(count <= 1 for count in completions.values())
        assert matcher.stats.correct_count == sum(completions.values())
        assert matcher.stats.correct_count == sum(t.completed for t in targets)
        assert matcher.stats.mistake_count <= len(targets)
