"""
Scenario model, validation and real-time playback.

This package holds the BLE event timeline model, the protocol-invariant
validator, the timed replay engine, and the loading, conversion and recording
helpers built around them.
"""

from .event_types import EventCategory, EventType
from .models import DeviceRef, Event, GattAddress, Scenario, ScenarioMetadata, ScenarioStructureError
from .validator import (
    DuplicateRequestId,
    EventValidationError,
    EventValidator,
    InvalidGattAddress,
    MissingInstanceId,
    MissingRequestId,
    MtuEventWithGattAddress,
    OrphanResponse,
    OutOfOrderTimestamps,
    ValidationResult,
)
from .player import EventPlayer, Scheduler, ThreadingScheduler, TimerHandle
from .loader import ScenarioDecodeError, load_events, load_scenario
from .converter import ConversionError, ConversionResult, convert_file, migrate_to_new_format
from .recorder import RecordingSession, ScenarioRecorder

__all__ = [
    "EventCategory",
    "EventType",
    "DeviceRef",
    "Event",
    "GattAddress",
    "Scenario",
    "ScenarioMetadata",
    "ScenarioStructureError",
    "EventValidationError",
    "EventValidator",
    "ValidationResult",
    "OrphanResponse",
    "DuplicateRequestId",
    "MissingRequestId",
    "MissingInstanceId",
    "InvalidGattAddress",
    "MtuEventWithGattAddress",
    "OutOfOrderTimestamps",
    "EventPlayer",
    "Scheduler",
    "ThreadingScheduler",
    "TimerHandle",
    "ScenarioDecodeError",
    "load_events",
    "load_scenario",
    "ConversionError",
    "ConversionResult",
    "convert_file",
    "migrate_to_new_format",
    "RecordingSession",
    "ScenarioRecorder",
]
