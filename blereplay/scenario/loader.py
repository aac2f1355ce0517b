"""
Scenario file loading.

A scenario file holds either a full scenario object or a bare JSON array of
events. Decoding only checks the shape of the data; protocol invariants are
left to ``EventValidator``.
"""

import json
from pathlib import Path
from typing import Any, List, Union

from pydantic import TypeAdapter, ValidationError

from blereplay.logging_config import get_logger
from .models import Event, Scenario

logger = get_logger(__name__)

_EVENT_LIST = TypeAdapter(List[Event])


class ScenarioDecodeError(Exception):
    """Raised when a scenario file cannot be read or decoded."""


def read_json(path: Union[str, Path]) -> Any:
    """
    Read and parse a JSON file.

    Raises:
        ScenarioDecodeError: If the file cannot be read or is not valid JSON
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ScenarioDecodeError(f"Malformed JSON in {path}: {e}") from e
    except OSError as e:
        raise ScenarioDecodeError(f"Failed to read {path}: {e}") from e


def parse_scenario(data: Any) -> Scenario:
    """
    Decode a scenario object.

    Raises:
        ScenarioDecodeError: If data does not match the scenario schema
    """
    if not isinstance(data, dict):
        raise ScenarioDecodeError("Expected a scenario object")
    try:
        return Scenario.from_dict(data)
    except ValidationError as e:
        raise ScenarioDecodeError(f"Invalid scenario: {e}") from e


def parse_events(data: Any) -> List[Event]:
    """
    Decode an event list from a scenario object or a bare event array.

    Raises:
        ScenarioDecodeError: If data is neither
    """
    if isinstance(data, dict):
        return parse_scenario(data).events
    try:
        return _EVENT_LIST.validate_python(data)
    except ValidationError as e:
        raise ScenarioDecodeError(f"Invalid event list: {e}") from e


def load_scenario(path: Union[str, Path]) -> Scenario:
    """Load a scenario object from a JSON file."""
    scenario = parse_scenario(read_json(path))
    logger.debug(f"Loaded scenario from {path}: {len(scenario.events)} events")
    return scenario


def load_events(path: Union[str, Path]) -> List[Event]:
    """Load events from a scenario file or a bare event array file."""
    events = parse_events(read_json(path))
    logger.debug(f"Loaded {len(events)} events from {path}")
    return events
