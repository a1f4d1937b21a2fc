"""Tests for the historical playback state machine."""

import pytest

from conftest import vehicle
from mission_replay.config import PlaybackConfig
from mission_replay.context import build_context, empty_context
from mission_replay.engine.playback import PlaybackController
from mission_replay.models import EntityKind, MissionInfo, PlaybackState


@pytest.fixture()
def playback(scheduler, display):
    return PlaybackController(scheduler, display)


@pytest.fixture()
def bound(playback, sample_context):
    playback.bind(sample_context)
    return playback


class TestBind:
    def test_paused_at_start(self, bound, sample_context):
        assert bound.state is PlaybackState.PAUSED
        assert bound.index == 0
        assert sample_context.current_index == 0

    def test_empty_slots_idle(self, playback, display):
        playback.bind(empty_context("m-2"))
        assert playback.state is PlaybackState.IDLE
        assert playback.index is None
        assert display.snapshots == []

    def test_clamps_index(self, playback, sample_context):
        sample_context.current_index = 99
        playback.bind(sample_context)
        assert sample_context.current_index == len(sample_context.slots) - 1

    def test_invalid_speed_reset(self, playback, sample_context):
        sample_context.play_speed = 3
        playback.bind(sample_context)
        assert playback.speed == 1


class TestSeek:
    def test_renders_slot(self, bound, display):
        snap = bound.seek(2)
        assert snap is not None
        assert snap.slot_index == 2
        assert display.last is snap
        assert {e.entity_id for e in snap.entities_of(EntityKind.VEHICLE)} == {"E1", "E2"}

    def test_clamps_out_of_range(self, bound, sample_context):
        assert bound.seek(-5).slot_index == 0
        assert bound.seek(100).slot_index == len(sample_context.slots) - 1
        assert sample_context.current_index == len(sample_context.slots) - 1

    def test_idempotent(self, bound):
        first = bound.seek(1)
        second = bound.seek(1)
        assert first == second

    def test_scrub_back_and_forth(self, bound):
        first = bound.seek(2)
        bound.seek(3)
        bound.seek(0)
        assert bound.seek(2) == first

    def test_shows_time(self, bound, display, sample_context):
        bound.seek(3)
        start, shown = display.times[-1]
        assert start == sample_context.start_time
        assert shown == sample_context.slots[3].instant

    def test_ignored_in_live(self, bound, display, sample_context):
        sample_context.is_live = True
        assert bound.seek(2) is None
        assert display.snapshots == []
        assert sample_context.current_index == 0

    def test_unparseable_slot_uses_last_valid_instant(self, playback):
        context = build_context(
            MissionInfo(mission_id="m-3"),
            [vehicle("A", "2024-01-01 10:00:00"), vehicle("B", "broken")],
        )
        playback.bind(context)
        snap = playback.seek(1)
        assert snap.time == context.slots[0].instant
        assert {e.entity_id for e in snap.entities} == {"A"}


class TestPlay:
    def test_plays_to_end_and_pauses(self, bound, scheduler, display, sample_context):
        assert bound.play() is True
        assert bound.is_playing
        scheduler.advance(1000 * 10)
        assert bound.state is PlaybackState.PAUSED
        assert sample_context.current_index == len(sample_context.slots) - 1
        assert [s.slot_index for s in display.snapshots] == [1, 2, 3]
        assert scheduler.active_timers == 0

    def test_one_slot_per_tick(self, bound, scheduler, sample_context):
        bound.play()
        scheduler.advance(999)
        assert sample_context.current_index == 0
        scheduler.advance(1)
        assert sample_context.current_index == 1

    def test_play_twice_single_timer(self, bound, scheduler):
        bound.play()
        bound.play()
        assert scheduler.active_timers == 1

    def test_pause_stops_advancing(self, bound, scheduler, sample_context):
        bound.play()
        scheduler.advance(1000)
        bound.pause()
        scheduler.advance(5000)
        assert sample_context.current_index == 1
        assert bound.state is PlaybackState.PAUSED
        assert scheduler.active_timers == 0

    def test_toggle(self, bound):
        assert bound.toggle() is True
        assert bound.toggle() is False
        assert not bound.is_playing

    def test_play_at_last_slot_pauses_on_next_tick(self, bound, scheduler, sample_context):
        bound.seek(3)
        bound.play()
        scheduler.advance(1000)
        assert bound.state is PlaybackState.PAUSED
        assert sample_context.current_index == 3

    def test_cannot_play_empty(self, playback):
        playback.bind(empty_context("m-2"))
        assert playback.play() is False

    def test_cannot_play_live(self, bound, sample_context):
        sample_context.is_live = True
        assert bound.play() is False


class TestChangeSpeed:
    def test_cycles(self, bound):
        assert bound.change_speed() == 2
        assert bound.change_speed() == 4
        assert bound.change_speed() == 1

    def test_interval(self, bound):
        bound.change_speed(4)
        assert bound.interval_ms == 250

    def test_unsupported_rejected(self, bound):
        with pytest.raises(ValueError):
            bound.change_speed(3)

    def test_reschedules_while_playing(self, bound, scheduler, sample_context):
        bound.play()
        bound.change_speed(2)
        assert scheduler.active_timers == 1
        scheduler.advance(500)
        assert sample_context.current_index == 1

    def test_ignored_in_live(self, bound, sample_context):
        sample_context.is_live = True
        assert bound.change_speed(4) == 1

    def test_custom_speeds(self, scheduler, display, sample_context):
        playback = PlaybackController(scheduler, display, PlaybackConfig(speeds=[1, 4]))
        playback.bind(sample_context)
        assert playback.change_speed() == 4
        assert playback.interval_ms == 250
        assert playback.change_speed() == 1


class TestRebind:
    def test_shrink_clamps(self, bound, sample_mission):
        bound.seek(3)
        smaller = build_context(sample_mission, [vehicle("E1", "2024-01-01 10:00:00")])
        smaller.current_index = 3
        bound.bind(smaller)
        assert smaller.current_index == 0

    def test_to_empty_clears_display(self, bound, display):
        bound.seek(1)
        bound.bind(empty_context("m-1"))
        assert bound.state is PlaybackState.IDLE
        assert display.count("clear") == 1

    def test_destroy_cancels(self, bound, scheduler):
        bound.play()
        bound.destroy()
        assert scheduler.active_timers == 0
        assert bound.context is None
