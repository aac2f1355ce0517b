"""Text and JSON renderers for command-line output."""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .scenario.converter import ConversionResult
from .scenario.event_types import EventCategory, EventType
from .scenario.models import Event, Scenario
from .scenario.validator import ValidationResult

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
MAGENTA = "\033[35m"
CYAN = "\033[36m"
GRAY = "\033[90m"

_CATEGORY_COLORS = {
    EventCategory.REQUEST: BLUE,
    EventCategory.RESPONSE: MAGENTA,
    EventCategory.NOTIFICATION: YELLOW,
}

_PLAIN_COLORS = {
    EventType.CONNECT: GREEN,
    EventType.DISCONNECT: RED,
    EventType.RSSI: GRAY,
}


class OutputFormatter(ABC):
    """Renders core results for the terminal."""

    @abstractmethod
    def format_validation_result(self, result: ValidationResult, events: List[Event]) -> str:
        pass

    @abstractmethod
    def format_scenario_info(self, scenario: Scenario) -> str:
        pass

    @abstractmethod
    def format_event(self, event: Event, elapsed_ms: int) -> str:
        pass

    @abstractmethod
    def format_playback_header(self, file: str, event_count: int, duration_ms: int) -> str:
        pass

    @abstractmethod
    def format_playback_footer(self, events_played: int, duration_ms: int) -> str:
        pass

    @abstractmethod
    def format_conversion_result(self, input_path: str, output_path: str, result: ConversionResult) -> str:
        pass

    @abstractmethod
    def format_error(self, error: BaseException) -> str:
        pass


class TextFormatter(OutputFormatter):
    """Human-readable output with optional ANSI colors."""

    def __init__(self, use_color: bool = True, value_preview_length: int = 20):
        self.use_color = use_color
        self.value_preview_length = value_preview_length

    def _color(self, text: str, color: str) -> str:
        """Apply ANSI color if colors are enabled."""
        if self.use_color and color:
            return f"{color}{text}{RESET}"
        return text

    def format_validation_result(self, result: ValidationResult, events: List[Event]) -> str:
        lines = []

        if result.is_valid:
            lines.append(f"{self._color('OK', GREEN)} Validation passed ({len(events)} events)")
        else:
            lines.append(f"{self._color('FAILED', RED)} Validation failed")

        if result.errors:
            lines.append("")
            lines.append(self._color("Errors:", BOLD + RED))
            lines.extend(f"  - {error}" for error in result.errors)

        if result.warnings:
            lines.append("")
            lines.append(self._color("Warnings:", BOLD + YELLOW))
            lines.extend(f"  - {warning}" for warning in result.warnings)

        return "\n".join(lines)

    def format_scenario_info(self, scenario: Scenario) -> str:
        summary = scenario.get_summary()
        lines = [
            self._color("Scenario", BOLD),
            f"  Version: {summary['version']}",
            f"  Duration: {scenario.duration_seconds:.2f}s ({scenario.duration_ms}ms)",
            f"  Events: {summary['eventCount']}",
        ]

        if scenario.device_refs:
            lines.append("")
            lines.append(self._color("Devices:", BOLD))
            for ref in scenario.device_refs:
                lines.append(f"  - {ref.device_id} (instance: {ref.instance_id})")

        if summary["instanceIds"]:
            lines.append("")
            lines.append(self._color("Instance IDs:", BOLD))
            for instance_id, count in summary["instanceIds"].items():
                lines.append(f"  - {instance_id}: {count} events")

        lines.append("")
        lines.append(self._color("Event Types:", BOLD))
        for type_name, count in summary["eventTypes"].items():
            lines.append(f"  - {type_name}: {count}")

        return "\n".join(lines)

    def _event_type_color(self, event_type: EventType) -> str:
        if event_type.is_advertising:
            return CYAN
        return _CATEGORY_COLORS.get(event_type.category) or _PLAIN_COLORS.get(event_type, "")

    def format_event(self, event: Event, elapsed_ms: int) -> str:
        details = []
        if event.gatt_address is not None:
            details.append(f"char={event.gatt_address.path}")
        if event.mtu is not None:
            details.append(f"mtu={event.mtu}")
        if event.value is not None:
            value = event.value
            if len(value) > self.value_preview_length:
                value = value[:self.value_preview_length] + "..."
            details.append(f"value={value}")
        if event.status is not None:
            details.append(f"status={event.status}")
        if event.rssi is not None:
            details.append(f"rssi={event.rssi}")
        if event.reason is not None:
            details.append(f"reason={event.reason}")

        timestamp = self._color(f"[{elapsed_ms:6d}ms]", GRAY)
        type_name = self._color(f"{event.type.value:<20}", self._event_type_color(event.type))
        details_str = "  " + " ".join(details) if details else ""

        return f"{timestamp} {type_name} {event.instance_id}{details_str}"

    def format_playback_header(self, file: str, event_count: int, duration_ms: int) -> str:
        return f"{self._color('Playing:', BOLD)} {file} ({event_count} events, {duration_ms / 1000.0:.1f}s)"

    def format_playback_footer(self, events_played: int, duration_ms: int) -> str:
        footer = self._color("Completed:", BOLD + GREEN)
        return f"{footer} {events_played} events in {duration_ms / 1000.0:.2f}s"

    def format_hint(self, text: str) -> str:
        return self._color(text, DIM)

    def format_conversion_result(self, input_path: str, output_path: str, result: ConversionResult) -> str:
        return (f"{self._color('OK', GREEN)} Converted {input_path} -> {output_path} "
                f"({result.event_count} events)")

    def format_error(self, error: BaseException) -> str:
        return f"{self._color('Error:', BOLD + RED)} {error}"


class JsonFormatter(OutputFormatter):
    """Machine-readable output with sorted keys."""

    use_color = False

    @staticmethod
    def _to_json(data: Dict[str, Any]) -> str:
        return json.dumps(data, indent=2, sort_keys=True)

    @staticmethod
    def _to_json_compact(data: Dict[str, Any]) -> str:
        return json.dumps(data, sort_keys=True)

    def format_validation_result(self, result: ValidationResult, events: List[Event]) -> str:
        data = result.to_dict()
        data["eventCount"] = len(events)
        return self._to_json(data)

    def format_scenario_info(self, scenario: Scenario) -> str:
        return self._to_json(scenario.get_summary())

    def format_event(self, event: Event, elapsed_ms: int) -> str:
        data = event.to_dict()
        data["t"] = elapsed_ms
        return self._to_json_compact(data)

    def format_playback_header(self, file: str, event_count: int, duration_ms: int) -> str:
        return self._to_json_compact({
            "status": "started",
            "file": file,
            "eventCount": event_count,
            "durationMs": duration_ms
        })

    def format_playback_footer(self, events_played: int, duration_ms: int) -> str:
        return self._to_json_compact({
            "status": "completed",
            "eventsPlayed": events_played,
            "durationMs": duration_ms
        })

    def format_conversion_result(self, input_path: str, output_path: str, result: ConversionResult) -> str:
        return self._to_json({
            "status": "success",
            "inputPath": input_path,
            "outputPath": output_path,
            "eventCount": result.event_count,
            "warnings": list(result.warnings)
        })

    def format_error(self, error: BaseException) -> str:
        return self._to_json({"error": True, "message": str(error)})


def create_formatter(output_format: str, use_color: bool, value_preview_length: int = 20) -> OutputFormatter:
    """Create the formatter for an output format name."""
    if output_format == "json":
        return JsonFormatter()
    if output_format == "text":
        return TextFormatter(use_color=use_color, value_preview_length=value_preview_length)
    raise ValueError(f"Unsupported output format: {output_format}")
