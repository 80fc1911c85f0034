from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .constants import PINS
from .errors import ValidationError


_TRUE_PINS = (1, "1", True)
_FALSE_PINS = (0, "0", False)


def _pin(payload: dict, key: str) -> bool:
    value = payload.get(key)
    if value is None:
        return False
    # bool is an int subclass, so 1 == True; strings are matched separately.
    if isinstance(value, str):
        value = value.strip()
    if value in _TRUE_PINS:
        return True
    if value in _FALSE_PINS:
        return False
    raise ValidationError(f"Invalid value for {key}: {value!r}")


@dataclass(frozen=True)
class PinSnapshot:
    """Raw pin triple as last observed from a device."""
    pin2: bool = False
    pin3: bool = False
    pin4: bool = False

    def as_dict(self) -> dict:
        return {"pin2": int(self.pin2), "pin3": int(self.pin3), "pin4": int(self.pin4)}


@dataclass(frozen=True)
class PinReport:
    """One periodic report from a device controller.

    Pins arrive as loosely typed 0/1 values; they are converted to booleans here,
    once, so nothing downstream deals with the wire representation."""
    name: str
    pin2: bool = False
    pin3: bool = False
    pin4: bool = False
    on_time_ms: Optional[float] = None

    @classmethod
    def from_payload(cls, payload) -> "PinReport":
        if not isinstance(payload, dict):
            raise ValidationError("Report body must be a JSON object")
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Missing device name")
        on_time = payload.get("onTime")
        if isinstance(on_time, bool) or not isinstance(on_time, (int, float)) or not math.isfinite(on_time):
            on_time = None
        return cls(
            name=name,
            pin2=_pin(payload, "pin2"),
            pin3=_pin(payload, "pin3"),
            pin4=_pin(payload, "pin4"),
            on_time_ms=on_time,
        )

    @property
    def pins(self) -> PinSnapshot:
        return PinSnapshot(self.pin2, self.pin3, self.pin4)


@dataclass(frozen=True)
class TimeInterval:
    """A closed run. start/end are epoch ms, duration is whole seconds."""
    start: int
    end: int
    duration: int

    @classmethod
    def closed(cls, start: int, end: int) -> "TimeInterval":
        return cls(start=start, end=end, duration=(end - start) // 1000)

    def as_dict(self) -> dict:
        return {"start": self.start, "end": self.end, "duration": self.duration}


def _pin_clock() -> Dict[str, int]:
    return {p: 0 for p in PINS}


@dataclass
class DeviceState:
    """Holds mutable tracking state for one device.

    Two run trackers are driven by the same reports: the spindle pin (pin2)
    accumulates spindle-on seconds, and the manufacturing pin (pin3) splits the
    device's timeline into manufacturing and idle runs. Once a device is known,
    exactly one of manufacturing_active / idle_active is set."""
    name: str

    spindle_on: bool = False
    spindle_started_at: Optional[int] = None
    spindle_accumulated_seconds: int = 0

    manufacturing_active: bool = False
    manufacturing_started_at: Optional[int] = None
    manufacturing_runs: List[TimeInterval] = field(default_factory=list)

    idle_active: bool = False
    idle_started_at: Optional[int] = None
    idle_runs: List[TimeInterval] = field(default_factory=list)

    last_pins: PinSnapshot = field(default_factory=PinSnapshot)
    # pin3 gate: last raw transition. pin2 gate: last accepted transition.
    last_raw_change_at: Dict[str, int] = field(default_factory=_pin_clock)
    last_debounced_change_at: Dict[str, int] = field(default_factory=_pin_clock)

    powered_on_seconds: int = 0
    last_report_at: int = 0

    def snapshot(self) -> "DeviceState":
        """Copy whose containers are detached from this (live) state."""
        return dataclasses.replace(
            self,
            manufacturing_runs=list(self.manufacturing_runs),
            idle_runs=list(self.idle_runs),
            last_raw_change_at=dict(self.last_raw_change_at),
            last_debounced_change_at=dict(self.last_debounced_change_at),
        )

    def all_runs(self) -> List[TimeInterval]:
        return sorted(self.manufacturing_runs + self.idle_runs, key=lambda r: r.start)
