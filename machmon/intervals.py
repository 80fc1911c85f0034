from __future__ import annotations

from typing import Iterable, List, Tuple

from .state import TimeInterval


def overlap_seconds(a_start: int, a_end: int, b_start: int, b_end: int) -> int:
    """Whole seconds shared by [a_start, a_end) and [b_start, b_end); 0 if disjoint."""
    s = max(a_start, b_start)
    e = min(a_end, b_end)
    if e <= s:
        return 0
    return (e - s) // 1000


def find_overlaps(runs: Iterable[TimeInterval]) -> List[Tuple[TimeInterval, TimeInterval]]:
    """Return neighbouring run pairs that overlap once sorted by start.

    Manufacturing and idle runs of one device must tile its timeline without
    overlapping, so any pair returned here means the totals double count."""
    ordered = sorted(runs, key=lambda r: (r.start, r.end))
    out = []
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start < prev.end:
            out.append((prev, cur))
    return out
