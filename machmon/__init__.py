"""machmon package for machine-monitor."""

from .device import DeviceMachine
from .errors import ValidationError
from .registry import DeviceRegistry
from .state import DeviceState, PinReport, TimeInterval

__all__ = ["DeviceMachine", "DeviceRegistry", "DeviceState", "PinReport", "TimeInterval", "ValidationError"]
