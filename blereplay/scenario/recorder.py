"""
Scenario recording for authoring test fixtures.

A ``RecordingSession`` builds a scenario timeline event by event, either from
wall-clock time since the session started or from explicit timestamps. The
ATT helpers allocate request ids and emit request/response pairs so recorded
fixtures satisfy the validator by construction.
"""

import itertools
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from blereplay import __version__
from blereplay.logging_config import get_logger
from .event_types import EventType
from .models import DeviceRef, Event, Scenario, ScenarioMetadata
from .validator import EventValidator


class RecordingSession:
    """Manages a single scenario recording session."""

    def __init__(self, name: str, clock: Optional[Callable[[], float]] = None,
                 platform: str = "manual"):
        """Initialize recording session."""
        self.name = name
        self.platform = platform
        self.logger = get_logger(__name__)

        self._clock = clock or time.monotonic
        self._request_ids = itertools.count(1)

        self.device_refs: List[DeviceRef] = []
        self.events: List[Event] = []

        self.is_recording = False
        self.start_time: Optional[float] = None

        self.logger.info(f"Created recording session: {name}")

    def start_recording(self) -> None:
        """Start recording; timestamps are measured from here."""
        if self.is_recording:
            self.logger.warning("Recording already in progress")
            return

        self.is_recording = True
        self.start_time = self._clock()
        self.logger.info(f"Started recording scenario: {self.name}")

    def stop_recording(self) -> Scenario:
        """Stop recording and finalize the scenario."""
        if not self.is_recording:
            self.logger.warning("No recording in progress")
        self.is_recording = False

        scenario = self.get_current_scenario()
        result = EventValidator.validate_with_result(scenario.events)
        scenario.metadata = ScenarioMetadata(
            recorded_at=datetime.now(timezone.utc).isoformat(),
            recorder_version=__version__,
            platform=self.platform,
            platform_capability="full",
            validity="valid" if result.is_valid else "invalid",
            errors=[str(error) for error in result.errors] or None
        )

        self.logger.info(f"Stopped recording scenario: {self.name} ({len(self.events)} events)")
        return scenario

    def add_device(self, instance_id: str, device_id: str) -> None:
        """Declare a device instance used by recorded events."""
        if any(ref.instance_id == instance_id for ref in self.device_refs):
            self.logger.warning(f"Device instance already declared: {instance_id}")
            return
        self.device_refs.append(DeviceRef(device_id=device_id, instance_id=instance_id))
        self.logger.debug(f"Added device {device_id} as {instance_id}")

    def elapsed_ms(self) -> int:
        """Milliseconds since recording started."""
        if self.start_time is None:
            return 0
        return int((self._clock() - self.start_time) * 1000)

    def next_request_id(self) -> str:
        return f"req-{next(self._request_ids)}"

    def record(self, event_type: EventType, instance_id: str, at: Optional[int] = None,
               **fields: Any) -> Optional[Event]:
        """
        Record a single event.

        Args:
            event_type: Kind of event
            instance_id: Device instance the event belongs to
            at: Timestamp in ms; defaults to time elapsed since start
            **fields: Remaining Event fields (request_id, value, ...)

        Returns:
            The recorded event, or None when not recording
        """
        if not self.is_recording:
            self.logger.warning(f"Cannot record {event_type.value} - recording not active")
            return None

        event = Event(
            t=self.elapsed_ms() if at is None else at,
            type=event_type,
            instance_id=instance_id,
            **fields
        )
        self.events.append(event)
        self.logger.debug(f"Recorded {event_type.value} for {instance_id} at {event.t}ms")
        return event

    # Convenience recorders

    def record_advertising(self, instance_id: str, at: Optional[int] = None) -> Optional[Event]:
        return self.record(EventType.ADVERTISING_START, instance_id, at)

    def record_connect(self, instance_id: str, at: Optional[int] = None) -> Optional[Event]:
        return self.record(EventType.CONNECT, instance_id, at)

    def record_disconnect(self, instance_id: str, reason: Optional[str] = None,
                          at: Optional[int] = None) -> Optional[Event]:
        return self.record(EventType.DISCONNECT, instance_id, at, reason=reason)

    def record_rssi(self, instance_id: str, rssi: int, at: Optional[int] = None) -> Optional[Event]:
        return self.record(EventType.RSSI, instance_id, at, rssi=rssi)

    def record_mtu_exchange(self, instance_id: str, requested: int, negotiated: int,
                            at: Optional[int] = None, latency_ms: int = 0) -> str:
        """Record an MTU request and its response; returns the request id."""
        request_id = self.next_request_id()
        request = self.record(EventType.MTU_REQUEST, instance_id, at, request_id=request_id, mtu=requested)
        if request is not None:
            self.record(EventType.MTU_RESPONSE, instance_id, request.t + latency_ms,
                        request_id=request_id, mtu=negotiated, status="success")
        return request_id

    def record_read(self, instance_id: str, service_uuid: str, characteristic_uuid: str,
                    value: str, at: Optional[int] = None, latency_ms: int = 0,
                    status: str = "success") -> str:
        """Record a read request and its response; returns the request id."""
        request_id = self.next_request_id()
        address = {"service_uuid": service_uuid, "characteristic_uuid": characteristic_uuid}
        request = self.record(EventType.READ_REQUEST, instance_id, at, request_id=request_id, **address)
        if request is not None:
            self.record(EventType.READ_RESPONSE, instance_id, request.t + latency_ms,
                        request_id=request_id, value=value, status=status, **address)
        return request_id

    def record_write(self, instance_id: str, service_uuid: str, characteristic_uuid: str,
                     value: str, at: Optional[int] = None, latency_ms: int = 0,
                     status: str = "success") -> str:
        """Record a write request and its response; returns the request id."""
        request_id = self.next_request_id()
        request = self.record(EventType.WRITE_REQUEST, instance_id, at, request_id=request_id,
                              service_uuid=service_uuid, characteristic_uuid=characteristic_uuid,
                              value=value)
        if request is not None:
            self.record(EventType.WRITE_RESPONSE, instance_id, request.t + latency_ms,
                        request_id=request_id, status=status)
        return request_id

    def record_notify(self, instance_id: str, service_uuid: str, characteristic_uuid: str,
                      value: str, at: Optional[int] = None, indicate: bool = False) -> Optional[Event]:
        event_type = EventType.INDICATE if indicate else EventType.NOTIFY
        return self.record(event_type, instance_id, at, service_uuid=service_uuid,
                           characteristic_uuid=characteristic_uuid, value=value)

    def get_current_scenario(self) -> Scenario:
        """Get current scenario state."""
        return Scenario(
            version="1.0",
            device_refs=list(self.device_refs),
            events=list(self.events)
        )


class ScenarioRecorder:
    """Records scenarios and keeps them in a storage directory."""

    def __init__(self, storage_dir: Path):
        """Initialize scenario recorder."""
        self.storage_dir = storage_dir
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.logger = get_logger(__name__)

        self.active_session: Optional[RecordingSession] = None

        self.logger.info(f"Initialized scenario recorder with storage: {storage_dir}")

    def start_recording(self, name: str, clock: Optional[Callable[[], float]] = None) -> RecordingSession:
        """Start recording a new scenario."""
        if self.active_session and self.active_session.is_recording:
            self.logger.warning("Stopping previous recording session")
            self.stop_recording()

        self.active_session = RecordingSession(name, clock=clock)
        self.active_session.start_recording()

        return self.active_session

    def stop_recording(self) -> Optional[Scenario]:
        """Stop the current session and save its scenario."""
        if not self.active_session:
            self.logger.warning("No active recording session")
            return None

        session = self.active_session
        scenario = session.stop_recording()
        self.save_scenario(scenario, session.name)

        self.active_session = None
        return scenario

    def save_scenario(self, scenario: Scenario, name: str) -> Path:
        """Save scenario to storage."""
        file_path = self.storage_dir / f"{name.replace(' ', '_')}.json"

        scenario.save_to_file(file_path)
        self.logger.info(f"Saved scenario to: {file_path}")

        return file_path

    def load_scenario(self, file_path: Path) -> Scenario:
        """Load scenario from file."""
        scenario = Scenario.load_from_file(file_path)
        self.logger.info(f"Loaded scenario: {file_path.name}")
        return scenario

    def list_scenarios(self) -> List[Dict[str, Any]]:
        """List all scenarios in the storage directory."""
        scenarios = []

        for file_path in sorted(self.storage_dir.glob("*.json")):
            try:
                scenario = self.load_scenario(file_path)
            except Exception as e:
                self.logger.error(f"Failed to load scenario {file_path}: {e}")
                continue
            scenarios.append({
                "file_path": str(file_path),
                "summary": scenario.get_summary()
            })

        return scenarios

    def is_recording(self) -> bool:
        """Check if currently recording."""
        return self.active_session is not None and self.active_session.is_recording
