"""
Protocol-invariant checking for BLE event streams.

The validator enforces the ATT request/response discipline, GATT addressing
rules and instance ids over an event stream, in the order the events are
given. It never raises mid-scan: problems are collected into a
``ValidationResult``. ``EventValidator.validate`` is the fail-fast wrapper.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from blereplay.logging_config import get_logger
from .models import Event

logger = get_logger(__name__)


class EventValidationError(Exception):
    """Base class for problems found in an event stream."""

    fatal = True

    def __init__(self, message: str, event: Optional[Event] = None):
        super().__init__(message)
        self.event = event

    @property
    def message(self) -> str:
        return str(self)

    def _identity(self) -> tuple:
        return (type(self), self.event)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EventValidationError):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self})"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": type(self).__name__, "fatal": self.fatal, "message": str(self)}
        if self.event is not None:
            data["t"] = self.event.t
            data["type"] = self.event.type.value
            data["instanceId"] = self.event.instance_id
            if self.event.request_id is not None:
                data["requestId"] = self.event.request_id
        return data


class OrphanResponse(EventValidationError):
    """Response event with no matching, not-yet-answered request."""

    def __init__(self, event: Event):
        super().__init__(
            f"Orphan response: {event.type.value} at t={event.t} has no matching request "
            f"(requestId: {event.request_id})",
            event
        )


class DuplicateRequestId(EventValidationError):
    """A request id was used by more than one request."""

    def __init__(self, request_id: str, event: Optional[Event] = None):
        super().__init__(f"Duplicate requestId: '{request_id}' was already used", event)
        self.request_id = request_id

    def _identity(self) -> tuple:
        return (type(self), self.request_id)


class MissingRequestId(EventValidationError):
    """Request or response event without a request id."""

    def __init__(self, event: Event):
        super().__init__(f"Missing requestId: {event.type.value} at t={event.t} requires a requestId", event)


class MissingInstanceId(EventValidationError):
    """Event with an empty instance id."""

    def __init__(self, event: Event):
        super().__init__(f"Missing instanceId: {event.type.value} at t={event.t} has empty instanceId", event)


class InvalidGattAddress(EventValidationError):
    """GATT event lacking its service or characteristic UUID."""

    def __init__(self, event: Event):
        super().__init__(
            f"Invalid GATT address: {event.type.value} at t={event.t} requires both "
            f"serviceUUID and characteristicUUID",
            event
        )


class MtuEventWithGattAddress(EventValidationError):
    """MTU exchange event that carries GATT addressing."""

    def __init__(self, event: Event):
        super().__init__(
            f"MTU event with GATT address: {event.type.value} at t={event.t} should not have "
            f"serviceUUID or characteristicUUID",
            event
        )


class OutOfOrderTimestamps(EventValidationError):
    """Event timestamp is earlier than the one before it. Warning only."""

    fatal = False

    def __init__(self, event: Event, previous_timestamp: int):
        super().__init__(
            f"Out of order: {event.type.value} at t={event.t} comes after t={previous_timestamp}",
            event
        )
        self.previous_timestamp = previous_timestamp

    def _identity(self) -> tuple:
        return (type(self), self.event, self.previous_timestamp)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating an event stream."""

    errors: List[EventValidationError] = field(default_factory=list)
    warnings: List[EventValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.is_valid,
            "errorCount": len(self.errors),
            "warningCount": len(self.warnings),
            "errors": [str(error) for error in self.errors],
            "warnings": [str(warning) for warning in self.warnings],
            "details": [issue.to_dict() for issue in self.errors + self.warnings]
        }


class EventValidator:
    """Validates BLE event streams for invariant compliance."""

    @staticmethod
    def validate(events: Iterable[Event]) -> None:
        """
        Validate an event stream, failing fast.

        The full pass always runs; the error raised is the first one in scan
        order, not necessarily the earliest by timestamp.

        Raises:
            EventValidationError: The first error found
        """
        result = EventValidator.validate_with_result(events)
        if result.errors:
            raise result.errors[0]

    @staticmethod
    def validate_with_result(events: Iterable[Event]) -> ValidationResult:
        """
        Validate an event stream in the order given.

        Each event contributes at most one error: the first rule it breaks.

        Args:
            events: Events to check, not necessarily sorted

        Returns:
            ValidationResult with errors and warnings in discovery order
        """
        errors: List[EventValidationError] = []
        warnings: List[EventValidationError] = []

        seen_request_ids: Set[str] = set()
        pending_requests: Dict[str, Event] = {}
        previous_timestamp: Optional[int] = None

        for event in events:
            if previous_timestamp is not None and event.t < previous_timestamp:
                warnings.append(OutOfOrderTimestamps(event, previous_timestamp))
            previous_timestamp = event.t

            if not event.instance_id:
                errors.append(MissingInstanceId(event))
                continue

            kind = event.type

            if kind.is_request:
                if not event.request_id:
                    errors.append(MissingRequestId(event))
                    continue
                if event.request_id in seen_request_ids:
                    errors.append(DuplicateRequestId(event.request_id, event))
                    continue
                seen_request_ids.add(event.request_id)
                pending_requests[event.request_id] = event

            if kind.is_response:
                if not event.request_id:
                    errors.append(MissingRequestId(event))
                    continue
                if event.request_id not in pending_requests:
                    errors.append(OrphanResponse(event))
                    continue
                # A response consumes its request
                del pending_requests[event.request_id]

            if event.is_missing_required_gatt_address:
                errors.append(InvalidGattAddress(event))
                continue

            if kind.is_mtu_event and event.has_any_gatt_field:
                errors.append(MtuEventWithGattAddress(event))
                continue

        if pending_requests:
            logger.debug(f"{len(pending_requests)} request(s) left without a response")

        logger.debug(f"Validated stream: {len(errors)} error(s), {len(warnings)} warning(s)")
        return ValidationResult(errors=errors, warnings=warnings)

    @staticmethod
    def validate_single(event: Event) -> List[EventValidationError]:
        """
        Check one event without stream context.

        No request pairing or ordering checks are made, and every problem of
        the event is reported rather than only the first.
        """
        errors: List[EventValidationError] = []

        if not event.instance_id:
            errors.append(MissingInstanceId(event))

        if event.type.requires_request_id and not event.request_id:
            errors.append(MissingRequestId(event))

        if event.is_missing_required_gatt_address:
            errors.append(InvalidGattAddress(event))

        if event.type.is_mtu_event and event.has_any_gatt_field:
            errors.append(MtuEventWithGattAddress(event))

        return errors
