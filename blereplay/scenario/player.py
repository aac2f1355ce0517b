"""
Real-time scenario playback.

``EventPlayer`` replays a sorted event stream against wall-clock time and
notifies observers as each event's timestamp elapses. Playback can be paused,
resumed, stopped and repositioned with ``seek`` while not playing.

All state changes, including timer callbacks, run under one re-entrant lock.
Every call that leaves the playing state cancels the armed timer and bumps a
run generation, so a timer from an earlier run can never emit.
"""

import threading
import time
from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, Iterable, List, Optional, Tuple

from blereplay.logging_config import get_logger, log_event_emission
from .event_types import EventType
from .models import Event
from .validator import EventValidator

EventObserver = Callable[[Event], None]

# Re-anchoring the clock on resume/seek leaves float noise well below a millisecond
_DUE_TOLERANCE_S = 1e-6


class TimerHandle(ABC):
    """Handle to a pending one-shot callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running if it has not started yet."""


class Scheduler(ABC):
    """Runs a callback once after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """
        Schedule a callback.

        Args:
            delay: Seconds to wait before running the callback
            callback: Zero-argument callable

        Returns:
            Handle that can cancel the callback
        """


class _ThreadingTimerHandle(TimerHandle):

    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return _ThreadingTimerHandle(timer)


class EventPlayer:
    """Replays BLE events in real time with transport controls."""

    def __init__(self, events: Iterable[Event], validate: bool = True,
                 scheduler: Optional[Scheduler] = None,
                 clock: Optional[Callable[[], float]] = None):
        """
        Initialize the player.

        Args:
            events: Event stream, in any order
            validate: Run the validator first and refuse invalid streams
            scheduler: Timer source, defaults to ThreadingScheduler
            clock: Monotonic clock in seconds, defaults to time.monotonic

        Raises:
            EventValidationError: First validation error when validate is True
        """
        events = list(events)
        if validate:
            EventValidator.validate(events)

        self.logger = get_logger(__name__)

        # sorted() is stable, so equal timestamps keep their input order
        self._events: Tuple[Event, ...] = tuple(sorted(events, key=lambda event: event.t))
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock or time.monotonic

        self._lock = threading.RLock()
        self._observers: List[EventObserver] = []
        self._finished = threading.Event()

        self._current_index = 0
        self._is_playing = False
        self._is_completed = False
        self._start_time: Optional[float] = None
        self._paused_elapsed_time = 0.0
        self._timer: Optional[TimerHandle] = None
        self._generation = 0

        self.logger.debug(f"Created player with {len(self._events)} events ({self.duration_ms}ms)")

    @classmethod
    def without_validation(cls, events: Iterable[Event],
                           scheduler: Optional[Scheduler] = None,
                           clock: Optional[Callable[[], float]] = None) -> "EventPlayer":
        """Create a player for a stream that is intentionally left unvalidated."""
        return cls(events, validate=False, scheduler=scheduler, clock=clock)

    # Observers

    def subscribe(self, observer: EventObserver) -> Callable[[], None]:
        """
        Register a callback for emitted events.

        Callbacks run synchronously, in emission order, on whichever thread
        fires the event. They may call pause() or stop().

        Returns:
            Callable that removes the subscription
        """
        with self._lock:
            self._observers.append(observer)
        return partial(self.unsubscribe, observer)

    def unsubscribe(self, observer: EventObserver) -> None:
        """Remove a previously registered callback."""
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    # Transport controls

    def start(self) -> None:
        """Start or resume playback."""
        with self._lock:
            if self._is_playing or self._is_completed:
                self.logger.debug("start() ignored: already playing or completed")
                return

            now = self._clock()
            if self._start_time is None:
                # Fresh start from idle or after stop()
                self._start_time = now
                self._current_index = 0
                self._paused_elapsed_time = 0.0
            else:
                self._start_time = now - self._paused_elapsed_time
            self._is_playing = True
            self._generation += 1
            self._finished.clear()

            self.logger.debug(f"Playback started at index {self._current_index} "
                              f"({(now - self._start_time) * 1000:.0f}ms)")
            self._schedule_next()

    def pause(self) -> None:
        """Suspend playback, keeping the position."""
        with self._lock:
            if not self._is_playing:
                self.logger.debug("pause() ignored: not playing")
                return

            self._cancel_timer()
            self._paused_elapsed_time = self._clock() - self._start_time
            self._is_playing = False
            self.logger.debug(f"Playback paused at index {self._current_index}")

    def stop(self) -> None:
        """Stop playback and return to the initial state."""
        with self._lock:
            self._cancel_timer()
            self._is_playing = False
            self._is_completed = False
            self._start_time = None
            self._paused_elapsed_time = 0.0
            self._current_index = 0
            self._finished.set()
            self.logger.debug("Playback stopped")

    def reset(self) -> None:
        """Alias for stop()."""
        self.stop()

    def seek(self, index: int) -> None:
        """
        Move to the event at index and put the logical clock at its timestamp.

        Resuming a paused or completed run continues from that event. A fresh
        start from idle, or after stop(), always begins at the first event.
        Ignored while playing or when index is out of range.
        """
        with self._lock:
            if self._is_playing:
                self.logger.debug("seek() ignored while playing")
                return
            if not 0 <= index < len(self._events):
                self.logger.debug(f"seek() ignored: index {index} out of range")
                return

            self._current_index = index
            self._is_completed = False
            self._paused_elapsed_time = self._events[index].t / 1000.0

    def wait_until_complete(self, timeout: Optional[float] = None) -> bool:
        """
        Block until playback completes or is stopped.

        Returns:
            False if the timeout expired first
        """
        return self._finished.wait(timeout)

    # Scheduling

    def _cancel_timer(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_next(self) -> None:
        """Emit every event that is due, then arm a timer for the next one."""
        generation = self._generation

        while self._is_playing and self._generation == generation:
            if self._current_index >= len(self._events):
                self._complete()
                return

            event = self._events[self._current_index]
            elapsed = self._clock() - self._start_time
            delay = event.t / 1000.0 - elapsed

            if delay > _DUE_TOLERANCE_S:
                self._timer = self._scheduler.call_later(delay, partial(self._on_timer, generation))
                return

            self._fire()

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or not self._is_playing:
                return

            self._timer = None
            self._fire()
            if generation == self._generation:
                self._schedule_next()

    def _fire(self) -> None:
        index = self._current_index
        event = self._events[index]
        self._current_index = index + 1

        log_event_emission(self.logger, event, index)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                self.logger.error(f"Observer {observer!r} failed on event #{index}: {e}", exc_info=True)

    def _complete(self) -> None:
        self._is_completed = True
        self._is_playing = False
        self._timer = None
        self._finished.set()
        self.logger.info(f"Playback completed: {len(self._events)} events")

    # Read-only state

    @property
    def events(self) -> Tuple[Event, ...]:
        return self._events

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def is_completed(self) -> bool:
        return self._is_completed

    @property
    def duration_ms(self) -> int:
        return self._events[-1].t if self._events else 0

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000.0

    @property
    def event_count(self) -> int:
        return len(self._events)

    @property
    def current_position_ms(self) -> int:
        """Logical playback position. Pinned to the duration once completed."""
        with self._lock:
            if self._is_completed:
                return self.duration_ms
            if self._is_playing and self._start_time is not None:
                return round((self._clock() - self._start_time) * 1000)
            return round(self._paused_elapsed_time * 1000)

    @property
    def remaining_ms(self) -> int:
        return max(0, self.duration_ms - self.current_position_ms)

    @property
    def progress(self) -> float:
        duration = self.duration_ms
        if duration <= 0:
            return 0.0
        return min(1.0, self.current_position_ms / duration)

    @property
    def current_event_index(self) -> int:
        return self._current_index

    @property
    def remaining_event_count(self) -> int:
        return max(0, len(self._events) - self._current_index)

    @property
    def next_event(self) -> Optional[Event]:
        with self._lock:
            if self._current_index >= len(self._events):
                return None
            return self._events[self._current_index]

    def events_for(self, instance_id: str) -> List[Event]:
        """Get events for one device instance."""
        return [event for event in self._events if event.instance_id == instance_id]

    def events_of_type(self, event_type: EventType) -> List[Event]:
        """Get events of one kind."""
        return [event for event in self._events if event.type == event_type]

    @property
    def instance_ids(self) -> List[str]:
        """Distinct instance ids in first-seen order."""
        return list(dict.fromkeys(event.instance_id for event in self._events))

    def get_status(self) -> dict:
        """Get a snapshot of the playback state."""
        with self._lock:
            return {
                "playing": self._is_playing,
                "completed": self._is_completed,
                "current_index": self._current_index,
                "event_count": len(self._events),
                "position_ms": self.current_position_ms,
                "duration_ms": self.duration_ms,
                "progress": self.progress
            }
