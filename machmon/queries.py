from __future__ import annotations

import math
from datetime import tzinfo
from typing import Optional, Tuple

from .constants import SHIFT_SECONDS
from .errors import ValidationError
from .intervals import find_overlaps, overlap_seconds
from .registry import DeviceRegistry
from .shifts import ShiftWindow, shift_window_for
from .state import DeviceState, PinSnapshot


def _seconds_in(st: DeviceState, start: int, end: int, now: int) -> Tuple[int, int]:
    """(manufacturing, idle) seconds inside [start, end), open runs clamped at now."""
    mfg = sum(overlap_seconds(r.start, r.end, start, end) for r in st.manufacturing_runs)
    if st.manufacturing_active and st.manufacturing_started_at is not None:
        mfg += overlap_seconds(st.manufacturing_started_at, now, start, end)

    idle = sum(overlap_seconds(r.start, r.end, start, end) for r in st.idle_runs)
    if st.idle_active and st.idle_started_at is not None:
        idle += overlap_seconds(st.idle_started_at, now, start, end)
    return mfg, idle


def machine_status(pins: PinSnapshot) -> str:
    """Operator-facing status from the cycle pin (pin3) and the part-done pin (pin4)."""
    if pins.pin3 and not pins.pin4:
        return "Manufacturing"
    if pins.pin4 and not pins.pin3:
        return "Completed"
    return "Idle"


def live_snapshot(registry: DeviceRegistry, now: Optional[int] = None, tz: Optional[tzinfo] = None) -> dict:
    """Per-device view aligned to the shift enclosing `now`.

    This is what the dashboard polls every few seconds. Shift totals are clamped
    at the fixed shift length; if a device's runs overlap (which would make the
    clamp hide double counting) a `run_overlap_detected` event is logged once
    each time the number of overlapping pairs changes."""
    if now is None:
        now = registry.now()
    shift = shift_window_for(now, tz)
    result = {}

    for name, st in registry.snapshot().items():
        overlaps = find_overlaps(st.all_runs())
        if registry.overlaps_changed(name, len(overlaps)) and overlaps:
            registry.logger.emit(
                "run_overlap_detected",
                device=name,
                pairs=len(overlaps),
                first_start=overlaps[0][1].start,
            )

        mfg, idle = _seconds_in(st, shift.start_ms, shift.end_ms, now)
        total = min(mfg + idle, SHIFT_SECONDS)
        manufacturing = [r.as_dict() for r in st.manufacturing_runs]
        recent = sorted(st.manufacturing_runs + st.idle_runs, key=lambda r: r.start, reverse=True)
        last_part = st.manufacturing_runs[-1] if st.manufacturing_runs else None

        result[name] = {
            "spindle": int(st.spindle_on),
            "spindleTime": st.spindle_accumulated_seconds,
            "manufacturingActive": st.manufacturing_active,
            "manufacturingRuns": manufacturing,
            "idleActive": st.idle_active,
            "idleRuns": [r.as_dict() for r in st.idle_runs],
            "recent": [r.as_dict() for r in recent],
            "parts": list(manufacturing),
            "partsCount": len(manufacturing),
            "lastPart": last_part.as_dict() if last_part else None,
            "lastPartSeconds": last_part.duration if last_part else 0,
            "spindleStatus": "Running" if st.spindle_on else "Stopped",
            "status": machine_status(st.last_pins),
            "onTime": st.powered_on_seconds,
            "totalShiftOnSeconds": total,
            "efficiencyPercent": round(100.0 * total / SHIFT_SECONDS, 2),
            "shiftName": shift.name,
            "lastUpdate": st.last_report_at,
            "currentState": st.last_pins.as_dict(),
        }
    return result


def _epoch_ms(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f):
        return None
    return int(f)


def parse_range(from_value, to_value) -> Tuple[int, int]:
    """Validate a [from, to) range given as epoch ms (numbers or numeric strings)."""
    from_ms = _epoch_ms(from_value)
    to_ms = _epoch_ms(to_value)
    if not from_ms or not to_ms or from_ms <= 0 or to_ms <= 0 or from_ms >= to_ms:
        raise ValidationError("Invalid date range")
    return from_ms, to_ms


def range_report(registry: DeviceRegistry, from_ms, to_ms, now: Optional[int] = None) -> dict:
    """Manufacturing/idle totals per device over an arbitrary [from, to) range."""
    from_ms, to_ms = parse_range(from_ms, to_ms)
    if now is None:
        now = registry.now()
    range_seconds = (to_ms - from_ms) // 1000
    report = {}

    for name, st in registry.snapshot().items():
        mfg, idle = _seconds_in(st, from_ms, to_ms, now)
        total = mfg + idle
        efficiency = (100.0 * total / range_seconds) if range_seconds > 0 else 0.0
        report[name] = {
            "manufacturingSeconds": mfg,
            "idleSeconds": idle,
            "totalOnSeconds": total,
            "efficiencyPercent": round(efficiency, 2),
        }
    return {"devices": report}


def _segment(kind: str, start: int, end: int, window: ShiftWindow, is_open: bool) -> Optional[dict]:
    s = max(start, window.start_ms)
    e = min(end, window.end_ms)
    if e <= s:
        return None
    span = float(window.end_ms - window.start_ms)
    return {
        "kind": kind,
        "start": s,
        "end": e,
        "duration": (e - s) // 1000,
        "open": is_open,
        "offsetPercent": round((s - window.start_ms) / span * 100.0, 3),
        "widthPercent": round((e - s) / span * 100.0, 3),
    }


def timeline(registry: DeviceRegistry, window: ShiftWindow, now: Optional[int] = None) -> dict:
    """Manufacturing/idle segments per device clipped to a window, plus fleet stats.

    Efficiency in `stats` is averaged over devices: active seconds divided by the
    window length times the number of devices."""
    if now is None:
        now = registry.now()
    machines = {}
    total_mfg = 0
    total_idle = 0

    for name, st in registry.snapshot().items():
        segments = []
        for kind, runs, active, started_at in (
            ("manufacturing", st.manufacturing_runs, st.manufacturing_active, st.manufacturing_started_at),
            ("idle", st.idle_runs, st.idle_active, st.idle_started_at),
        ):
            for r in runs:
                seg = _segment(kind, r.start, r.end, window, False)
                if seg:
                    segments.append(seg)
            if active and started_at is not None:
                seg = _segment(kind, started_at, now, window, True)
                if seg:
                    segments.append(seg)
        segments.sort(key=lambda seg: seg["start"])

        mfg, idle = _seconds_in(st, window.start_ms, window.end_ms, now)
        total_mfg += mfg
        total_idle += idle
        machines[name] = {"segments": segments, "manufacturingSeconds": mfg, "idleSeconds": idle}

    active = total_mfg + total_idle
    capacity = window.duration_seconds * len(machines)
    return {
        "window": {"name": window.name, "start": window.start_ms, "end": window.end_ms},
        "devices": machines,
        "stats": {
            "manufacturingSeconds": total_mfg,
            "idleSeconds": total_idle,
            "activeSeconds": active,
            "efficiencyPercent": round(100.0 * active / capacity, 2) if capacity > 0 else 0.0,
        },
    }


def health(registry: DeviceRegistry) -> dict:
    return {
        "status": "online",
        "devices": registry.device_names(),
        "uptime": round(registry.uptime_s(), 3),
    }
