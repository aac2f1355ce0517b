"""
Migration of older scenario files to the current schema.

Only fields that were actually observed are carried over. Missing request ids,
GATT addresses or instance ids are never synthesised; each gap is reported as
a warning and the validator will flag the converted trace as invalid.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from blereplay.logging_config import get_logger
from .event_types import EventType
from .loader import parse_events, parse_scenario, read_json, ScenarioDecodeError
from .models import DeviceRef, Event, Scenario

logger = get_logger(__name__)

SCHEMA_VERSION = "1.0"
UNKNOWN_DEVICE_ID = "unknown"

# Event type names used before request/response kinds were split
_LEGACY_TYPE_NAMES = {
    "write": EventType.WRITE_REQUEST,
    "read": EventType.READ_REQUEST,
    "mtu": EventType.MTU_REQUEST,
}


class ConversionError(Exception):
    """Raised when a file cannot be converted."""


class UnsupportedFormat(ConversionError):
    """Input is neither a current scenario, an event array, nor a legacy scenario."""

    def __init__(self):
        super().__init__("Unsupported input format")


class UnknownEventType(ConversionError):
    """Legacy event type with no current equivalent."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"Unknown event type: {type_name}")


class LegacyEvent(BaseModel):
    """Event as written by the legacy recorder."""

    model_config = ConfigDict(populate_by_name=True)

    t: int
    type: str
    instance_id: Optional[str] = Field(default=None, alias="instanceId")
    request_id: Optional[str] = Field(default=None, alias="requestId")
    mtu: Optional[int] = None
    service_uuid: Optional[str] = Field(default=None, alias="serviceUUID")
    characteristic_uuid: Optional[str] = Field(default=None, alias="characteristicUUID")
    value: Optional[str] = None
    status: Optional[str] = None
    reason: Optional[str] = None
    rssi: Optional[int] = None


class LegacyScenario(BaseModel):
    """Scenario as written by the legacy recorder."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: Optional[str] = Field(default=None, alias="deviceId")
    events: List[LegacyEvent]


class ConversionResult:
    """Converted scenario plus the gaps found while converting."""

    def __init__(self, scenario: Scenario, warnings: Optional[List[str]] = None,
                 source_format: str = "scenario"):
        self.scenario = scenario
        self.warnings = warnings or []
        self.source_format = source_format

    @property
    def event_count(self) -> int:
        return len(self.scenario.events)

    def get_summary(self) -> Dict[str, Any]:
        return {
            "sourceFormat": self.source_format,
            "eventCount": self.event_count,
            "warningCount": len(self.warnings),
            "warnings": list(self.warnings)
        }


def migrate_event_type(type_name: str) -> EventType:
    """
    Map a legacy event type name to the current EventType.

    Raises:
        UnknownEventType: If the name has no current equivalent
    """
    if type_name in _LEGACY_TYPE_NAMES:
        return _LEGACY_TYPE_NAMES[type_name]
    try:
        return EventType(type_name)
    except ValueError:
        raise UnknownEventType(type_name) from None


def migrate_event(legacy: LegacyEvent, index: int) -> tuple:
    """
    Convert one legacy event.

    Returns:
        (Event, list of warning strings)
    """
    event_type = migrate_event_type(legacy.type)
    warnings: List[str] = []

    if legacy.instance_id is None:
        warnings.append(
            f"Event {index} (t={legacy.t}, type={legacy.type}): missing instanceId "
            f"- left empty, trace will be invalid"
        )

    if event_type.requires_request_id and legacy.request_id is None:
        warnings.append(
            f"Event {index} (t={legacy.t}, type={event_type.value}): missing requestId "
            f"- not synthesized, trace will be invalid"
        )

    if event_type.requires_gatt_address and legacy.service_uuid is None:
        warnings.append(
            f"Event {index} (t={legacy.t}, type={event_type.value}): missing serviceUUID "
            f"- not synthesized, trace will be invalid"
        )

    event = Event(
        t=legacy.t,
        type=event_type,
        instance_id=legacy.instance_id or "",
        request_id=legacy.request_id,
        mtu=legacy.mtu,
        service_uuid=legacy.service_uuid,
        characteristic_uuid=legacy.characteristic_uuid,
        value=legacy.value,
        status=legacy.status,
        reason=legacy.reason,
        rssi=legacy.rssi
    )
    return event, warnings


def _device_refs_for(events: List[Event], device_id: str) -> List[DeviceRef]:
    instance_ids = dict.fromkeys(event.instance_id for event in events)
    return [DeviceRef(device_id=device_id, instance_id=instance_id) for instance_id in instance_ids]


def migrate_legacy_scenario(legacy: LegacyScenario) -> ConversionResult:
    """Convert a legacy scenario, collecting warnings for every unobserved field."""
    events: List[Event] = []
    warnings: List[str] = []

    for index, legacy_event in enumerate(legacy.events):
        event, event_warnings = migrate_event(legacy_event, index)
        events.append(event)
        warnings.extend(event_warnings)

    scenario = Scenario(
        version=SCHEMA_VERSION,
        device_refs=_device_refs_for(events, legacy.device_id or UNKNOWN_DEVICE_ID),
        events=events
    )
    return ConversionResult(scenario, warnings, source_format="legacy")


def migrate_to_new_format(data: Any) -> ConversionResult:
    """
    Convert decoded JSON of any supported shape to a current scenario.

    Tried in order: current scenario, bare event array, legacy scenario.

    Raises:
        UnknownEventType: If a legacy event type cannot be mapped
        UnsupportedFormat: If the data matches none of the shapes
    """
    if isinstance(data, dict):
        try:
            return ConversionResult(parse_scenario(data), source_format="scenario")
        except ScenarioDecodeError:
            pass

    if isinstance(data, list):
        try:
            events = parse_events(data)
        except ScenarioDecodeError:
            pass
        else:
            scenario = Scenario(
                version=SCHEMA_VERSION,
                device_refs=_device_refs_for(events, UNKNOWN_DEVICE_ID),
                events=events
            )
            return ConversionResult(scenario, source_format="events")

    try:
        legacy = LegacyScenario.model_validate(data)
    except ValidationError:
        raise UnsupportedFormat() from None

    return migrate_legacy_scenario(legacy)


def convert_file(input_path: Union[str, Path], output_path: Union[str, Path]) -> ConversionResult:
    """
    Convert a scenario file and write the result as pretty-printed JSON.

    Raises:
        ScenarioDecodeError: If the input is not readable JSON
        ConversionError: If the input cannot be converted or the output cannot be written
    """
    result = migrate_to_new_format(read_json(input_path))

    output_path = Path(output_path)
    try:
        with open(output_path, "w") as f:
            json.dump(result.scenario.to_dict(), f, indent=2, sort_keys=True)
    except OSError as e:
        raise ConversionError(f"Failed to write {output_path}: {e}") from e

    logger.info(f"Converted {input_path} -> {output_path} ({result.event_count} events, "
                f"{len(result.warnings)} warnings)")
    return result
