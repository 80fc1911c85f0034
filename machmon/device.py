from __future__ import annotations

from typing import Optional

from .constants import DEBOUNCE_MS, MANUFACTURING_PIN, MIN_VALID_DURATION_S, SPINDLE_PIN
from .logging import JsonLogger
from .state import DeviceState, PinReport, TimeInterval


class DeviceMachine:
    """Debounced run tracker for one machine tool.

    Consumes periodic pin reports and keeps two independent sub-machines:

    - spindle (pin2): rising edges are gated on the last *accepted* spindle edge;
      falling edges always close the open spindle run.
    - manufacturing/idle (pin3): rising edges are gated on the last *raw* pin3
      transition, close the open idle run and open a manufacturing run; falling
      edges close manufacturing and open idle at the same instant.

    Runs shorter than one second are treated as noise: they close state but are
    never appended. The machine never reads a clock; every call gets `now_ms`."""
    def __init__(
        self,
        name: str,
        logger: JsonLogger,
        debounce_ms: int = DEBOUNCE_MS,
        state: Optional[DeviceState] = None,
    ):
        # A machine built from existing state is already registered.
        self.state = state if state is not None else DeviceState(name=name)
        self.logger = logger
        self.debounce_ms = int(debounce_ms)
        self._registered = state is not None

    @property
    def name(self) -> str:
        return self.state.name

    def apply(self, report: PinReport, now_ms: int):
        """Apply one report observed at `now_ms`.

        Repeating a report with unchanged pins only refreshes the bookkeeping
        fields (last pins, last report time, powered-on seconds)."""
        st = self.state
        prev = st.last_pins

        if not self._registered:
            self._registered = True
            self.logger.emit("device_registered", device=st.name)
            # A new device is idle until pin3 proves otherwise.
            if not report.pin3:
                self._open_idle(now_ms, reason="connected")

        if report.pin2 and not prev.pin2:
            self._on_spindle_rising(now_ms)
        elif not report.pin2 and prev.pin2 and st.spindle_started_at is not None:
            self._on_spindle_falling(now_ms)

        if report.pin3 and not prev.pin3:
            self._on_manufacturing_rising(now_ms)
        elif not report.pin3 and prev.pin3 and st.manufacturing_active:
            self._on_manufacturing_falling(now_ms)

        if report.on_time_ms is not None:
            st.powered_on_seconds = int(report.on_time_ms // 1000)
        st.last_pins = report.pins
        st.last_report_at = now_ms

    # ---------------- Spindle (pin2) ----------------

    def _on_spindle_rising(self, now: int):
        st = self.state
        if now - st.last_debounced_change_at[SPINDLE_PIN] < self.debounce_ms:
            return
        st.spindle_on = True
        st.spindle_started_at = now
        st.last_debounced_change_at[SPINDLE_PIN] = now
        self.logger.emit("spindle_on", device=st.name)

    def _on_spindle_falling(self, now: int):
        # No debounce on close: a bounce must never swallow a real stop.
        st = self.state
        duration = (now - st.spindle_started_at) // 1000
        if duration >= MIN_VALID_DURATION_S:
            st.spindle_accumulated_seconds += duration
            self.logger.emit("spindle_off", device=st.name, duration_s=duration)
        st.spindle_on = False
        st.spindle_started_at = None

    # ---------------- Manufacturing / idle (pin3) ----------------

    def _on_manufacturing_rising(self, now: int):
        st = self.state
        if now - st.last_raw_change_at[MANUFACTURING_PIN] < self.debounce_ms:
            return
        if st.idle_active:
            self._close_idle(now)
        st.manufacturing_active = True
        st.manufacturing_started_at = now
        st.last_raw_change_at[MANUFACTURING_PIN] = now
        self.logger.emit("manufacturing_start", device=st.name)

    def _on_manufacturing_falling(self, now: int):
        st = self.state
        run = self._close(st.manufacturing_started_at, now)
        if run is not None:
            st.manufacturing_runs.append(run)
            self.logger.emit("manufacturing_end", device=st.name, duration_s=run.duration)
        st.manufacturing_active = False
        st.manufacturing_started_at = None
        st.last_raw_change_at[MANUFACTURING_PIN] = now
        self._open_idle(now, reason="manufacturing_ended")

    def _open_idle(self, now: int, reason: str):
        st = self.state
        st.idle_active = True
        st.idle_started_at = now
        self.logger.emit("idle_start", device=st.name, reason=reason)

    def _close_idle(self, now: int):
        st = self.state
        run = self._close(st.idle_started_at, now)
        if run is not None:
            st.idle_runs.append(run)
            self.logger.emit("idle_end", device=st.name, duration_s=run.duration)
        st.idle_active = False
        st.idle_started_at = None

    @staticmethod
    def _close(started_at, now: int):
        """Build the closed run, or None when it is too short to count."""
        if started_at is None:
            return None
        run = TimeInterval.closed(started_at, now)
        if run.duration < MIN_VALID_DURATION_S:
            return None
        return run
