from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from .constants import SHIFT1_NAME, SHIFT1_START, SHIFT2_NAME, SHIFT2_START
from .errors import ValidationError


@dataclass(frozen=True)
class ShiftWindow:
    """A half-open reporting window [start_ms, end_ms)."""
    name: str
    start_ms: int
    end_ms: int

    @property
    def duration_seconds(self) -> int:
        return (self.end_ms - self.start_ms) // 1000

    def contains(self, instant_ms: int) -> bool:
        return self.start_ms <= instant_ms < self.end_ms


def _at(day: date, hm: tuple, tz: Optional[tzinfo]) -> int:
    """Epoch ms of a local wall-clock time on a calendar day."""
    naive = datetime(day.year, day.month, day.day, hm[0], hm[1])
    if tz is None:
        local = naive  # naive datetimes are interpreted in host local time
    elif hasattr(tz, "localize"):
        local = tz.localize(naive)  # pytz zones
    else:
        local = naive.replace(tzinfo=tz)
    return int(round(local.timestamp() * 1000))


def _local_date(instant_ms: int, tz: Optional[tzinfo]) -> date:
    return datetime.fromtimestamp(instant_ms / 1000.0, tz).date()


def shift_window_for(instant_ms: int, tz: Optional[tzinfo] = None) -> ShiftWindow:
    """Return the shift window enclosing an instant.

    Shift1 covers [08:30, 20:30) of a local day, Shift2 covers [20:30, 08:30) and
    wraps midnight. Boundaries are computed from the local calendar date so month
    ends and DST changes are handled by the calendar, not by seconds-of-day math.

    Args:
        instant_ms: Epoch milliseconds.
        tz: Timezone for the local day. None uses the host's local time.
    """
    day = _local_date(instant_ms, tz)
    s1_start = _at(day, SHIFT1_START, tz)
    s1_end = _at(day, SHIFT2_START, tz)

    if s1_start <= instant_ms < s1_end:
        return ShiftWindow(SHIFT1_NAME, s1_start, s1_end)
    if instant_ms < s1_start:
        prev_start = _at(day - timedelta(days=1), SHIFT2_START, tz)
        return ShiftWindow(SHIFT2_NAME, prev_start, s1_start)
    next_end = _at(day + timedelta(days=1), SHIFT1_START, tz)
    return ShiftWindow(SHIFT2_NAME, s1_end, next_end)


def window_for_selection(day: date, selection: str, tz: Optional[tzinfo] = None) -> ShiftWindow:
    """Window for a calendar date and a selector: shift1, shift2 or day."""
    sel = (selection or "").strip().lower()
    if sel == "shift1":
        return ShiftWindow(SHIFT1_NAME, _at(day, SHIFT1_START, tz), _at(day, SHIFT2_START, tz))
    if sel == "shift2":
        return ShiftWindow(
            SHIFT2_NAME, _at(day, SHIFT2_START, tz), _at(day + timedelta(days=1), SHIFT1_START, tz)
        )
    if sel == "day":
        return ShiftWindow("Day", _at(day, (0, 0), tz), _at(day + timedelta(days=1), (0, 0), tz))
    raise ValidationError(f"Unknown shift selection: {selection!r}")
