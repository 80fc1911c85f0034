from __future__ import annotations

import threading
from typing import Callable, Dict, List

from .constants import DEBOUNCE_MS
from .device import DeviceMachine
from .logging import JsonLogger
from .state import DeviceState, PinReport
from .util import now_ms, now_s


class DeviceRegistry:
    """In-memory store of device state machines, keyed by device name.

    The registry is owned by whoever builds the service and passed to the HTTP
    layer; nothing is module-global. One lock serializes ingest, snapshot and
    reset, so a query never sees a half-applied report and a reset is either
    fully visible or not at all."""
    def __init__(
        self,
        logger: JsonLogger,
        clock: Callable[[], int] = now_ms,
        debounce_ms: int = DEBOUNCE_MS,
        verbose: bool = False,
    ):
        self.logger = logger
        self.clock = clock
        self.debounce_ms = int(debounce_ms)
        self.verbose = bool(verbose)
        self._devices: Dict[str, DeviceMachine] = {}
        self._overlaps_seen: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._started_s = now_s()

    def now(self) -> int:
        return self.clock()

    def uptime_s(self) -> float:
        return now_s() - self._started_s

    def ingest(self, payload) -> dict:
        """Apply one device report.

        Validation happens before the lock is taken, so a rejected report has no
        side effect. The report time is captured once and used for every
        duration derived from it."""
        report = PinReport.from_payload(payload)
        with self._lock:
            now = self.clock()
            machine = self._devices.get(report.name)
            if machine is None:
                machine = DeviceMachine(report.name, self.logger, debounce_ms=self.debounce_ms)
                self._devices[report.name] = machine
            machine.apply(report, now)
        if self.verbose:
            self.logger.emit("report", device=report.name, **report.pins.as_dict())
        return {"success": True}

    def snapshot(self) -> Dict[str, DeviceState]:
        """Detached copies of every device state, taken atomically."""
        with self._lock:
            return {name: m.state.snapshot() for name, m in self._devices.items()}

    def restore(self, state: DeviceState) -> None:
        """Install a device with previously captured state, replacing any live one."""
        with self._lock:
            self._devices[state.name] = DeviceMachine(
                state.name, self.logger, debounce_ms=self.debounce_ms, state=state.snapshot()
            )

    def overlaps_changed(self, name: str, count: int) -> bool:
        """Record the overlap count seen for a device; True when it differs from the last one."""
        with self._lock:
            if self._overlaps_seen.get(name, 0) == count:
                return False
            self._overlaps_seen[name] = count
            return True

    def device_names(self) -> List[str]:
        with self._lock:
            return list(self._devices)

    def reset(self) -> int:
        """Drop every device. Returns how many were dropped."""
        with self._lock:
            dropped = len(self._devices)
            self._devices = {}
            self._overlaps_seen = {}
        self.logger.emit("registry_reset", devices=dropped)
        return dropped

    def __contains__(self, name) -> bool:
        with self._lock:
            return name in self._devices

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)
