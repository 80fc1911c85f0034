from __future__ import annotations

import time


def now_s() -> float:
    """Monotonic clock in seconds."""
    return time.monotonic()


def now_ms() -> int:
    """Wall clock in integer epoch milliseconds."""
    return int(time.time() * 1000)
