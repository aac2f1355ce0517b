"""
BLE event kinds and their protocol classification.

Every kind is classified once, in ``_CLASSIFICATION``; the validator, player,
converter and formatters only ever ask an ``EventType`` about itself.
"""

from enum import Enum
from typing import Dict, NamedTuple


class EventCategory(str, Enum):
    """Role of an event kind in the ATT request/response discipline."""

    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"
    PLAIN = "plain"


class EventType(str, Enum):
    """Types of BLE events that can appear in a scenario timeline."""

    # Advertising
    ADVERTISING_START = "advertising_start"
    ADVERTISING_STOP = "advertising_stop"
    ADVERTISING_UPDATE = "advertising_update"

    # Connection
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    RSSI = "rssi"

    # ATT request/response pairs
    MTU_REQUEST = "mtu_request"
    MTU_RESPONSE = "mtu_response"
    READ_REQUEST = "read_request"
    READ_RESPONSE = "read_response"
    WRITE_REQUEST = "write_request"
    WRITE_RESPONSE = "write_response"

    # Server-initiated, no request needed
    NOTIFY = "notify"
    INDICATE = "indicate"

    @property
    def category(self) -> EventCategory:
        return _CLASSIFICATION[self].category

    @property
    def is_request(self) -> bool:
        return self.category is EventCategory.REQUEST

    @property
    def is_response(self) -> bool:
        return self.category is EventCategory.RESPONSE

    @property
    def is_notification(self) -> bool:
        return self.category is EventCategory.NOTIFICATION

    @property
    def requires_request_id(self) -> bool:
        return self.is_request or self.is_response

    @property
    def requires_gatt_address(self) -> bool:
        return _CLASSIFICATION[self].gatt_addressed

    @property
    def is_mtu_event(self) -> bool:
        return self in (EventType.MTU_REQUEST, EventType.MTU_RESPONSE)

    @property
    def is_advertising(self) -> bool:
        return self in (EventType.ADVERTISING_START, EventType.ADVERTISING_STOP, EventType.ADVERTISING_UPDATE)


class _Classification(NamedTuple):
    category: EventCategory
    gatt_addressed: bool


# write_response carries no GATT address; the request already named the characteristic
_CLASSIFICATION: Dict[EventType, _Classification] = {
    EventType.ADVERTISING_START: _Classification(EventCategory.PLAIN, False),
    EventType.ADVERTISING_STOP: _Classification(EventCategory.PLAIN, False),
    EventType.ADVERTISING_UPDATE: _Classification(EventCategory.PLAIN, False),
    EventType.CONNECT: _Classification(EventCategory.PLAIN, False),
    EventType.DISCONNECT: _Classification(EventCategory.PLAIN, False),
    EventType.RSSI: _Classification(EventCategory.PLAIN, False),
    EventType.MTU_REQUEST: _Classification(EventCategory.REQUEST, False),
    EventType.MTU_RESPONSE: _Classification(EventCategory.RESPONSE, False),
    EventType.READ_REQUEST: _Classification(EventCategory.REQUEST, True),
    EventType.READ_RESPONSE: _Classification(EventCategory.RESPONSE, True),
    EventType.WRITE_REQUEST: _Classification(EventCategory.REQUEST, True),
    EventType.WRITE_RESPONSE: _Classification(EventCategory.RESPONSE, False),
    EventType.NOTIFY: _Classification(EventCategory.NOTIFICATION, True),
    EventType.INDICATE: _Classification(EventCategory.NOTIFICATION, True),
}
