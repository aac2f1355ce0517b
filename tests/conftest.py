"""
Central pytest configuration and fixtures.

This module provides the fixtures shared across all test modules: sample
event streams, a manual clock and scheduler for deterministic playback tests,
temporary scenario files and logging isolation.
"""

import json
import logging
from collections.abc import Generator
from pathlib import Path
from typing import Callable, List

import pytest

from blereplay.config_models import SystemConfig
from blereplay.scenario.models import DeviceRef, Event, Scenario
from blereplay.scenario.player import Scheduler, TimerHandle

HEART_RATE_SERVICE = "180D"
HEART_RATE_MEASUREMENT = "2A37"
BATTERY_SERVICE = "180F"
BATTERY_LEVEL = "2A19"


# ================================================================================
# Deterministic time
# ================================================================================

class ManualClock:
    """Monotonic clock that only moves when a test moves it."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTimerHandle(TimerHandle):

    def __init__(self, deadline: float, sequence: int, callback: Callable[[], None]):
        self.deadline = deadline
        self.sequence = sequence
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler whose timers run only when advance() passes their deadline."""

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.handles: List[ManualTimerHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = ManualTimerHandle(self.clock.now + delay, len(self.handles), callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualTimerHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running due callbacks in deadline order."""
        target = self.clock.now + seconds
        while True:
            due = [h for h in self.pending if h.deadline <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: (h.deadline, h.sequence))
            self.clock.now = max(self.clock.now, handle.deadline)
            handle.fired = True
            handle.callback()
        self.clock.now = max(self.clock.now, target)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock: ManualClock) -> ManualScheduler:
    return ManualScheduler(clock)


# ================================================================================
# Sample data
# ================================================================================

@pytest.fixture
def sample_events() -> List[Event]:
    """A valid heart-rate session: connect, MTU exchange, read, notify, disconnect."""
    return [
        Event.advertising_start(0, "hr-1"),
        Event.connect(500, "hr-1"),
        Event.mtu_request(600, "hr-1", "req-1", 247),
        Event.mtu_response(650, "hr-1", "req-1", 185),
        Event.read_request(700, "hr-1", "req-2", BATTERY_SERVICE, BATTERY_LEVEL),
        Event.read_response(720, "hr-1", "req-2", BATTERY_SERVICE, BATTERY_LEVEL, "64"),
        Event.notify(800, "hr-1", HEART_RATE_SERVICE, HEART_RATE_MEASUREMENT, "0048"),
        Event.disconnect(1000, "hr-1", reason="remote_user_terminated"),
    ]


@pytest.fixture
def sample_scenario(sample_events: List[Event]) -> Scenario:
    return Scenario(
        version="1.0",
        device_refs=[DeviceRef(device_id="polar-h10", instance_id="hr-1")],
        events=sample_events
    )


@pytest.fixture
def scenario_file(tmp_path: Path, sample_scenario: Scenario) -> Path:
    path = tmp_path / "heart_rate.json"
    sample_scenario.save_to_file(path)
    return path


@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[str, object], Path]:
    """Write arbitrary JSON data into the test's temporary directory."""
    def _write(name: str, data: object) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data))
        return path
    return _write


@pytest.fixture
def config() -> SystemConfig:
    return SystemConfig()


# ================================================================================
# Isolation
# ================================================================================

@pytest.fixture(autouse=True)
def _isolate_logging() -> Generator[None, None, None]:
    """Undo setup_logging() so handlers never outlive the test's streams."""
    yield
    logger = logging.getLogger("blereplay")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep env overrides and a stray config/blereplay.yml out of tests."""
    for name in ("BLEREPLAY_LOG_LEVEL", "BLEREPLAY_LOG_DIR", "BLEREPLAY_SCENARIO_DIR",
                 "BLEREPLAY_OUTPUT_FORMAT", "BLEREPLAY_REALTIME"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


# ================================================================================
# Pytest hooks
# ================================================================================

def pytest_collection_modifyitems(config: pytest.Config, items) -> None:
    """Add markers based on test path."""
    for item in items:
        path = str(item.fspath)
        if "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "unit" in path:
            item.add_marker(pytest.mark.unit)
