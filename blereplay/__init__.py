"""BLE scenario validation and deterministic replay for integration testing."""

# Version information
__version__ = "0.1.0"
__author__ = "blereplay developers"

# Import key modules for easy access
from . import config_loader as config_loader
from . import scenario as scenario

# Expose commonly used classes
from .config_loader import load_config as load_config
from .scenario.models import Event as Event
from .scenario.models import Scenario as Scenario
from .scenario.player import EventPlayer as EventPlayer
from .scenario.validator import EventValidator as EventValidator

__all__ = [
    "config_loader",
    "scenario",
    "load_config",
    "Event",
    "Scenario",
    "EventPlayer",
    "EventValidator",
]
