"""
Unit tests for EventPlayer.

Playback runs against a manual clock and scheduler, so every emission happens
at an exact, test-controlled instant.
"""

import pytest

from blereplay.logging_config import LogCapture
from blereplay.scenario.event_types import EventType
from blereplay.scenario.models import Event
from blereplay.scenario.player import EventPlayer
from blereplay.scenario.validator import MissingInstanceId, OrphanResponse


@pytest.fixture
def three_events():
    return [Event.advertising_start(0, "a"), Event.connect(100, "a"), Event.disconnect(250, "a")]


@pytest.fixture
def make_player(scheduler, clock):
    def _make(events, **kwargs):
        player = EventPlayer(events, scheduler=scheduler, clock=clock, **kwargs)
        emitted = []
        player.subscribe(emitted.append)
        return player, emitted
    return _make


class TestConstruction:
    """Test validation and ordering at construction."""

    @pytest.mark.unit
    def test_events_sorted_by_timestamp(self, make_player):
        """Test that events are stored ascending by timestamp."""
        player, _ = make_player([Event.disconnect(1000, "a"), Event.advertising_start(0, "a"),
                                 Event.connect(500, "a")])
        assert [e.t for e in player.events] == [0, 500, 1000]
        assert player.duration_ms == 1000
        assert player.events[0].t == 0

    @pytest.mark.unit
    def test_ties_keep_input_order(self, make_player):
        """Test that events sharing a timestamp keep their input order."""
        b = Event.connect(50, "b")
        a = Event.advertising_start(0, "a")
        c = Event.connect(50, "c")
        player, _ = make_player([b, a, c])
        assert list(player.events) == [a, b, c]

    @pytest.mark.unit
    def test_invalid_stream_is_rejected(self, scheduler, clock):
        """Test that the validating constructor raises the first validation error."""
        with pytest.raises(MissingInstanceId):
            EventPlayer([Event.connect(0, "")], scheduler=scheduler, clock=clock)

        with pytest.raises(OrphanResponse):
            EventPlayer([Event.mtu_request(0, "a", "req-1", 247), Event.mtu_response(5, "a", "req-2", 23)],
                        scheduler=scheduler, clock=clock)

    @pytest.mark.unit
    def test_without_validation_accepts_invalid_stream(self, scheduler, clock):
        """Test that the non-validating constructor accepts a malformed stream."""
        player = EventPlayer.without_validation([Event.connect(0, "")], scheduler=scheduler, clock=clock)
        assert player.event_count == 1

    @pytest.mark.unit
    def test_initial_state(self, make_player, three_events):
        """Test the idle state of a new player."""
        player, emitted = make_player(three_events)
        assert not player.is_playing
        assert not player.is_completed
        assert player.current_event_index == 0
        assert player.current_position_ms == 0
        assert player.progress == 0.0
        assert player.next_event == three_events[0]
        assert player.remaining_event_count == 3
        assert emitted == []


class TestPlayback:
    """Test timed emission."""

    @pytest.mark.unit
    def test_emits_each_event_at_its_timestamp(self, make_player, scheduler, three_events):
        """Test that each event is emitted once its timestamp elapses."""
        player, emitted = make_player(three_events)

        player.start()
        assert player.is_playing
        assert emitted == three_events[:1]

        scheduler.advance(0.099)
        assert emitted == three_events[:1]

        scheduler.advance(0.001)
        assert emitted == three_events[:2]
        assert player.current_position_ms == 100

        scheduler.advance(0.150)
        assert emitted == three_events
        assert player.is_completed
        assert not player.is_playing

    @pytest.mark.unit
    def test_simultaneous_events_fire_before_any_timer(self, make_player, scheduler):
        """Test that events at t=0 all fire synchronously on start()."""
        events = [Event.advertising_start(0, "a"), Event.advertising_start(0, "b"), Event.connect(10, "a")]
        player, emitted = make_player(events)

        player.start()

        assert emitted == events[:2]
        assert len(scheduler.handles) == 1
        assert scheduler.handles[0].deadline == pytest.approx(0.010)

    @pytest.mark.unit
    def test_completion_pins_progress(self, make_player, scheduler, three_events):
        """Test that a completed player reports full progress."""
        player, _ = make_player(three_events)
        player.start()
        scheduler.advance(5.0)

        assert player.progress == 1.0
        assert player.current_position_ms == player.duration_ms
        assert player.remaining_ms == 0
        assert player.remaining_event_count == 0
        assert player.next_event is None
        assert player.wait_until_complete(timeout=0)

    @pytest.mark.unit
    def test_progress_is_non_decreasing(self, make_player, scheduler, three_events):
        """Test that progress never goes backwards during playback."""
        player, _ = make_player(three_events)
        player.start()

        samples = []
        for _ in range(30):
            samples.append(player.progress)
            scheduler.advance(0.01)
        samples.append(player.progress)

        assert samples == sorted(samples)
        assert samples[-1] == 1.0

    @pytest.mark.unit
    def test_empty_stream_completes_immediately(self, make_player):
        """Test that an empty stream completes on start()."""
        player, emitted = make_player([])
        player.start()

        assert player.is_completed
        assert player.progress == 0.0
        assert player.duration_ms == 0
        assert emitted == []

    @pytest.mark.unit
    def test_start_while_playing_is_ignored(self, make_player, scheduler, three_events):
        """Test that start() while playing arms no second timer."""
        player, emitted = make_player(three_events)
        player.start()
        player.start()

        assert emitted == three_events[:1]
        assert len(scheduler.pending) == 1

    @pytest.mark.unit
    def test_start_after_completion_is_ignored(self, make_player, scheduler, three_events):
        """Test that start() after completion is a no-op."""
        player, emitted = make_player(three_events)
        player.start()
        scheduler.advance(1.0)
        player.start()

        assert len(emitted) == 3
        assert scheduler.pending == []


class TestTransport:
    """Test pause, resume, stop and seek."""

    @pytest.mark.unit
    def test_pause_and_resume_keep_relative_timing(self, make_player, scheduler, three_events):
        """Test that resuming keeps the remaining delay of the next event."""
        player, emitted = make_player(three_events)
        player.start()
        scheduler.advance(0.05)

        player.pause()
        assert not player.is_playing
        assert player.current_position_ms == 50
        assert scheduler.pending == []

        scheduler.advance(10.0)
        assert emitted == three_events[:1]
        assert player.current_position_ms == 50

        player.start()
        scheduler.advance(0.049)
        assert emitted == three_events[:1]
        scheduler.advance(0.001)
        assert emitted == three_events[:2]

    @pytest.mark.unit
    def test_pause_when_idle_is_ignored(self, make_player):
        """Test that pause() on an idle player is a no-op."""
        player, _ = make_player([Event.connect(0, "a")])
        player.pause()
        assert not player.is_playing
        assert player.current_position_ms == 0

    @pytest.mark.unit
    def test_stop_resets_and_cancels_timer(self, make_player, scheduler, three_events):
        """Test that stop() returns to idle and cancels the armed timer."""
        player, emitted = make_player(three_events)
        player.start()
        scheduler.advance(0.1)

        player.stop()

        assert not player.is_playing
        assert not player.is_completed
        assert player.current_event_index == 0
        assert player.current_position_ms == 0
        assert scheduler.pending == []
        assert player.wait_until_complete(timeout=0)

        scheduler.advance(10.0)
        assert emitted == three_events[:2]

    @pytest.mark.unit
    def test_restart_after_stop_replays_from_beginning(self, make_player, scheduler, three_events):
        """Test that a run after reset() replays the whole stream."""
        player, emitted = make_player(three_events)
        player.start()
        scheduler.advance(1.0)
        player.reset()

        player.start()
        scheduler.advance(1.0)

        assert emitted == three_events + three_events

    @pytest.mark.unit
    def test_stale_timer_does_not_emit(self, make_player, scheduler, three_events):
        """Test that a timer from an earlier run does nothing when it fires."""
        player, emitted = make_player(three_events)
        player.start()
        stale = scheduler.handles[0]

        player.pause()
        player.start()
        stale.callback()

        assert stale.cancelled
        assert emitted == three_events[:1]
        assert player.current_event_index == 1

    @pytest.mark.unit
    def test_seek_while_stopped(self, make_player, three_events):
        """Test that seek() from idle moves the index and logical clock."""
        player, _ = make_player(three_events)
        player.seek(1)

        assert player.current_event_index == 1
        assert player.next_event == three_events[1]
        assert player.current_position_ms == 100

    @pytest.mark.unit
    def test_fresh_start_begins_at_first_event_after_idle_seek(self, make_player, scheduler, three_events):
        """Test that a fresh start resets to the first event even after seek() from idle."""
        player, emitted = make_player(three_events)
        player.seek(1)
        player.start()

        assert emitted == [three_events[0]]
        assert player.current_event_index == 1
        assert player.current_position_ms == 0

        scheduler.advance(0.1)
        assert emitted == three_events[:2]

    @pytest.mark.unit
    def test_fresh_start_after_stop_ignores_seek(self, make_player, scheduler, three_events):
        """Test that seek() after stop() does not change where the next run begins."""
        player, emitted = make_player(three_events)
        player.start()
        scheduler.advance(0.1)
        player.stop()

        player.seek(2)
        player.start()

        assert emitted == three_events[:2] + three_events[:1]

    @pytest.mark.unit
    def test_seek_while_paused_resumes_from_target(self, make_player, scheduler, three_events):
        """Test that seek() during a pause makes the resumed run emit the target event at once."""
        player, emitted = make_player(three_events)
        player.start()
        scheduler.advance(0.05)
        player.pause()

        player.seek(2)
        player.start()

        assert emitted == [three_events[0], three_events[2]]
        assert player.is_completed

    @pytest.mark.unit
    def test_seek_while_playing_is_ignored(self, make_player, three_events):
        """Test that seek() during playback leaves the index unchanged."""
        player, _ = make_player(three_events)
        player.start()
        player.seek(2)
        assert player.current_event_index == 1

    @pytest.mark.unit
    def test_seek_out_of_range_is_ignored(self, make_player):
        """Test that out-of-range seek() targets are ignored."""
        player, _ = make_player([Event.connect(0, "a")])
        player.seek(10)
        player.seek(-1)
        assert player.current_event_index == 0

    @pytest.mark.unit
    def test_seek_after_completion_allows_replay(self, make_player, scheduler, three_events):
        """Test that seek() after completion allows replaying from the target."""
        player, emitted = make_player(three_events)
        player.start()
        scheduler.advance(1.0)

        player.seek(2)
        assert not player.is_completed
        player.start()

        assert emitted[-1] == three_events[2]
        assert len(emitted) == 4
        assert player.is_completed


class TestObservers:
    """Test observer delivery."""

    @pytest.mark.unit
    def test_every_observer_receives_every_event(self, scheduler, clock, three_events):
        """Test that all observers receive all events in order."""
        player = EventPlayer(three_events, scheduler=scheduler, clock=clock)
        first, second = [], []
        player.subscribe(first.append)
        player.subscribe(second.append)

        player.start()
        scheduler.advance(1.0)

        assert first == three_events
        assert second == three_events

    @pytest.mark.unit
    def test_unsubscribe(self, scheduler, clock, three_events):
        """Test that the returned callable removes the observer."""
        player = EventPlayer(three_events, scheduler=scheduler, clock=clock)
        received = []
        unsubscribe = player.subscribe(received.append)

        player.start()
        unsubscribe()
        scheduler.advance(1.0)

        assert received == three_events[:1]

    @pytest.mark.unit
    def test_index_advances_before_notification(self, scheduler, clock, three_events):
        """Test that observers see the index already past the emitted event."""
        player = EventPlayer(three_events, scheduler=scheduler, clock=clock)
        indices = []
        player.subscribe(lambda event: indices.append(player.current_event_index))

        player.start()
        scheduler.advance(1.0)

        assert indices == [1, 2, 3]

    @pytest.mark.unit
    def test_observer_can_stop_during_burst(self, scheduler, clock):
        """Test that stop() inside an observer ends a burst of due events."""
        events = [Event.advertising_start(0, "a"), Event.advertising_start(0, "b"), Event.connect(5, "a")]
        player = EventPlayer(events, scheduler=scheduler, clock=clock)
        received = []

        def stop_on_first(event):
            received.append(event)
            player.stop()

        player.subscribe(stop_on_first)
        player.start()
        scheduler.advance(1.0)

        assert received == events[:1]
        assert not player.is_playing
        assert player.current_event_index == 0

    @pytest.mark.unit
    def test_observer_can_pause(self, scheduler, clock, three_events):
        """Test that pause() inside an observer leaves no timer armed."""
        player = EventPlayer(three_events, scheduler=scheduler, clock=clock)
        received = []

        def pause_on_connect(event):
            received.append(event)
            if event.type is EventType.CONNECT:
                player.pause()

        player.subscribe(pause_on_connect)
        player.start()
        scheduler.advance(1.0)

        assert received == three_events[:2]
        assert player.current_event_index == 2
        assert scheduler.pending == []

    @pytest.mark.unit
    def test_failing_observer_is_logged_and_skipped(self, scheduler, clock, three_events):
        """Test that an observer exception is logged and playback continues."""
        player = EventPlayer(three_events, scheduler=scheduler, clock=clock)
        received = []

        def broken(event):
            raise RuntimeError("boom")

        player.subscribe(broken)
        player.subscribe(received.append)

        with LogCapture("blereplay.scenario.player") as capture:
            player.start()
            scheduler.advance(1.0)

        assert received == three_events
        errors = capture.get_logs("ERROR")
        assert len(errors) == 3
        assert "boom" in errors[0]["message"]


class TestQueries:
    """Test read-only accessors."""

    @pytest.mark.unit
    def test_filters(self, scheduler, clock, sample_events):
        """Test the per-instance and per-type event queries."""
        player = EventPlayer(sample_events + [Event.connect(1200, "hr-2")], scheduler=scheduler, clock=clock)

        assert player.instance_ids == ["hr-1", "hr-2"]
        assert len(player.events_for("hr-2")) == 1
        assert [e.t for e in player.events_of_type(EventType.CONNECT)] == [500, 1200]

    @pytest.mark.unit
    def test_status_snapshot(self, make_player, scheduler, three_events):
        """Test the status dictionary mid-playback."""
        player, _ = make_player(three_events)
        player.start()
        scheduler.advance(0.125)

        status = player.get_status()
        assert status == {
            "playing": True,
            "completed": False,
            "current_index": 2,
            "event_count": 3,
            "position_ms": 125,
            "duration_ms": 250,
            "progress": 0.5
        }
        assert player.remaining_ms == 125
        assert player.duration_seconds == 0.25
