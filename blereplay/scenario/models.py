"""
Data models for recorded BLE scenarios.

This module defines the event timeline, device references and scenario
container, together with their JSON encoding. Field names are snake_case in
Python and camelCase on the wire.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .event_types import EventType


class ScenarioStructureError(Exception):
    """Raised when a scenario's device references do not line up with its events."""


class EmptyDeviceRefs(ScenarioStructureError):
    """Scenario declares no device references."""

    def __init__(self):
        super().__init__("Scenario has no device references")


class DuplicateInstanceId(ScenarioStructureError):
    """Two device references share an instance id."""

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"Duplicate instanceId in deviceRefs: '{instance_id}'")


class UndefinedInstanceId(ScenarioStructureError):
    """An event references an instance id with no device reference."""

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"Event references undefined instanceId: '{instance_id}'")


class GattAddress(BaseModel):
    """Service UUID + characteristic UUID pair identifying a characteristic."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    service_uuid: str = Field(..., alias="serviceUUID")
    characteristic_uuid: str = Field(..., alias="characteristicUUID")

    @property
    def path(self) -> str:
        return f"{self.service_uuid}/{self.characteristic_uuid}"


class Event(BaseModel):
    """A single BLE event on a scenario timeline."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Required
    t: int = Field(..., description="Milliseconds since scenario start")
    type: EventType = Field(..., description="Event kind")
    instance_id: str = Field(..., alias="instanceId", description="Device instance this event belongs to")

    # ATT request/response linkage
    request_id: Optional[str] = Field(default=None, alias="requestId")
    mtu: Optional[int] = Field(default=None)

    # GATT addressing
    service_uuid: Optional[str] = Field(default=None, alias="serviceUUID")
    characteristic_uuid: Optional[str] = Field(default=None, alias="characteristicUUID")

    # Payload and metadata
    value: Optional[str] = Field(default=None, description="Hex-encoded value, opaque")
    status: Optional[str] = Field(default=None)
    reason: Optional[str] = Field(default=None)
    rssi: Optional[int] = Field(default=None)

    # Protocol-level detail, passed through untouched when a recorder saw it
    att_opcode: Optional[int] = Field(default=None, alias="attOpcode")
    att_handle: Optional[int] = Field(default=None, alias="attHandle")
    att_error_code: Optional[int] = Field(default=None, alias="attErrorCode")
    l2cap_cid: Optional[int] = Field(default=None, alias="l2capCid")
    raw_pdu: Optional[str] = Field(default=None, alias="rawPDU")

    @property
    def gatt_address(self) -> Optional[GattAddress]:
        """GATT address when both UUIDs are present and non-empty."""
        if not self.service_uuid or not self.characteristic_uuid:
            return None
        return GattAddress(service_uuid=self.service_uuid, characteristic_uuid=self.characteristic_uuid)

    @property
    def has_gatt_address(self) -> bool:
        return self.gatt_address is not None

    @property
    def has_any_gatt_field(self) -> bool:
        return bool(self.service_uuid) or bool(self.characteristic_uuid)

    @property
    def is_missing_required_gatt_address(self) -> bool:
        return self.type.requires_gatt_address and not self.has_gatt_address

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to its JSON wire form, omitting unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Create event from its JSON wire form."""
        return cls.model_validate(data)

    # Factories

    @classmethod
    def advertising_start(cls, at: int, instance_id: str) -> "Event":
        return cls(t=at, type=EventType.ADVERTISING_START, instance_id=instance_id)

    @classmethod
    def advertising_stop(cls, at: int, instance_id: str) -> "Event":
        return cls(t=at, type=EventType.ADVERTISING_STOP, instance_id=instance_id)

    @classmethod
    def advertising_update(cls, at: int, instance_id: str) -> "Event":
        return cls(t=at, type=EventType.ADVERTISING_UPDATE, instance_id=instance_id)

    @classmethod
    def connect(cls, at: int, instance_id: str) -> "Event":
        return cls(t=at, type=EventType.CONNECT, instance_id=instance_id)

    @classmethod
    def disconnect(cls, at: int, instance_id: str, reason: Optional[str] = None) -> "Event":
        return cls(t=at, type=EventType.DISCONNECT, instance_id=instance_id, reason=reason)

    @classmethod
    def rssi_update(cls, at: int, instance_id: str, rssi: int) -> "Event":
        return cls(t=at, type=EventType.RSSI, instance_id=instance_id, rssi=rssi)

    @classmethod
    def mtu_request(cls, at: int, instance_id: str, request_id: str, mtu: int) -> "Event":
        return cls(t=at, type=EventType.MTU_REQUEST, instance_id=instance_id, request_id=request_id, mtu=mtu)

    @classmethod
    def mtu_response(cls, at: int, instance_id: str, request_id: str, mtu: int,
                     status: str = "success") -> "Event":
        return cls(t=at, type=EventType.MTU_RESPONSE, instance_id=instance_id,
                   request_id=request_id, mtu=mtu, status=status)

    @classmethod
    def read_request(cls, at: int, instance_id: str, request_id: str,
                     service_uuid: str, characteristic_uuid: str) -> "Event":
        return cls(t=at, type=EventType.READ_REQUEST, instance_id=instance_id, request_id=request_id,
                   service_uuid=service_uuid, characteristic_uuid=characteristic_uuid)

    @classmethod
    def read_response(cls, at: int, instance_id: str, request_id: str,
                      service_uuid: str, characteristic_uuid: str, value: str,
                      status: str = "success") -> "Event":
        return cls(t=at, type=EventType.READ_RESPONSE, instance_id=instance_id, request_id=request_id,
                   service_uuid=service_uuid, characteristic_uuid=characteristic_uuid,
                   value=value, status=status)

    @classmethod
    def write_request(cls, at: int, instance_id: str, request_id: str,
                      service_uuid: str, characteristic_uuid: str, value: str) -> "Event":
        return cls(t=at, type=EventType.WRITE_REQUEST, instance_id=instance_id, request_id=request_id,
                   service_uuid=service_uuid, characteristic_uuid=characteristic_uuid, value=value)

    @classmethod
    def write_response(cls, at: int, instance_id: str, request_id: str,
                       status: str = "success") -> "Event":
        return cls(t=at, type=EventType.WRITE_RESPONSE, instance_id=instance_id,
                   request_id=request_id, status=status)

    @classmethod
    def notify(cls, at: int, instance_id: str, service_uuid: str,
               characteristic_uuid: str, value: str) -> "Event":
        return cls(t=at, type=EventType.NOTIFY, instance_id=instance_id,
                   service_uuid=service_uuid, characteristic_uuid=characteristic_uuid, value=value)

    @classmethod
    def indicate(cls, at: int, instance_id: str, service_uuid: str,
                 characteristic_uuid: str, value: str) -> "Event":
        return cls(t=at, type=EventType.INDICATE, instance_id=instance_id,
                   service_uuid=service_uuid, characteristic_uuid=characteristic_uuid, value=value)


class DeviceRef(BaseModel):
    """Links a static device definition to an instance id used by events."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    device_id: str = Field(..., alias="deviceId", description="Device definition identifier")
    instance_id: str = Field(..., alias="instanceId", description="Unique instance id within the scenario")


class ScenarioMetadata(BaseModel):
    """How, when and on what platform a scenario was captured."""

    model_config = ConfigDict(populate_by_name=True)

    recorded_at: Optional[str] = Field(default=None, alias="recordedAt", description="ISO 8601 capture time")
    recorder_version: Optional[str] = Field(default=None, alias="recorderVersion")
    platform: Optional[str] = Field(default=None, description="bluez_dbus, bluez_hybrid, esp32, stm32, manual")
    platform_capability: Optional[str] = Field(default=None, alias="platformCapability")
    validity: Optional[str] = Field(default=None, description="valid, degraded or invalid")
    errors: Optional[List[str]] = Field(default=None)


class Scenario(BaseModel):
    """A recorded scenario: device references plus one global event timeline."""

    model_config = ConfigDict(populate_by_name=True)

    version: Optional[str] = Field(default=None, description="Schema version")
    metadata: Optional[ScenarioMetadata] = Field(default=None)
    device_refs: List[DeviceRef] = Field(..., alias="deviceRefs")
    events: List[Event] = Field(...)

    @property
    def sorted_events(self) -> List[Event]:
        """Events ascending by timestamp; ties keep file order."""
        return sorted(self.events, key=lambda event: event.t)

    @property
    def duration_ms(self) -> int:
        return max((event.t for event in self.events), default=0)

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000.0

    @property
    def event_instance_ids(self) -> List[str]:
        """Instance ids referenced by events, first-seen order."""
        return list(dict.fromkeys(event.instance_id for event in self.events))

    @property
    def defined_instance_ids(self) -> List[str]:
        return list(dict.fromkeys(ref.instance_id for ref in self.device_refs))

    @property
    def has_valid_instance_references(self) -> bool:
        return set(self.event_instance_ids) <= set(self.defined_instance_ids)

    def events_for(self, instance_id: str) -> List[Event]:
        """Get events for one device instance."""
        return [event for event in self.events if event.instance_id == instance_id]

    def device_ref_for(self, instance_id: str) -> Optional[DeviceRef]:
        """Get device reference by instance id."""
        for ref in self.device_refs:
            if ref.instance_id == instance_id:
                return ref
        return None

    def validate_structure(self) -> None:
        """
        Check device references against the event timeline.

        This does not look at event content; use EventValidator for that.

        Raises:
            EmptyDeviceRefs: If no device references are declared
            DuplicateInstanceId: If an instance id is declared twice
            UndefinedInstanceId: If an event uses an undeclared instance id
        """
        if not self.device_refs:
            raise EmptyDeviceRefs()

        seen = set()
        for ref in self.device_refs:
            if ref.instance_id in seen:
                raise DuplicateInstanceId(ref.instance_id)
            seen.add(ref.instance_id)

        for event in self.events:
            if event.instance_id not in seen:
                raise UndefinedInstanceId(event.instance_id)

    def get_summary(self) -> Dict[str, Any]:
        """Get scenario summary information."""
        instance_counts: Dict[str, int] = {}
        type_counts: Dict[str, int] = {}
        for event in self.events:
            instance_counts[event.instance_id] = instance_counts.get(event.instance_id, 0) + 1
            type_counts[event.type.value] = type_counts.get(event.type.value, 0) + 1

        return {
            "version": self.version or "unspecified",
            "durationMs": self.duration_ms,
            "eventCount": len(self.events),
            "deviceRefs": [ref.model_dump(by_alias=True) for ref in self.device_refs],
            "instanceIds": dict(sorted(instance_counts.items())),
            "eventTypes": dict(sorted(type_counts.items()))
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert scenario to its JSON wire form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scenario":
        """Create scenario from its JSON wire form."""
        return cls.model_validate(data)

    def save_to_file(self, file_path: Path) -> None:
        """Save scenario to JSON file."""
        with open(file_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, sort_keys=True)

    @classmethod
    def load_from_file(cls, file_path: Path) -> "Scenario":
        """Load scenario from JSON file."""
        with open(file_path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
