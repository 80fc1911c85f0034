from __future__ import annotations

from datetime import timedelta

from .logging import JsonLogger
from .queries import live_snapshot, range_report
from .registry import DeviceRegistry
from .shifts import shift_window_for
from .util import now_ms


class _ManualClock:
    def __init__(self, t: int):
        self.t = t

    def __call__(self) -> int:
        return self.t


def run_self_test(args, tz=None) -> int:
    """Replay a short report sequence through a private registry and check the numbers.

    Safe: nothing is bound to the network and the live registry is not touched.
    Returns 0 when every check passes, 1 otherwise."""
    print("Self-Test")
    logger = JsonLogger(enable_json=bool(getattr(args, "json", False)))
    # Start one hour into the current shift so the sequence stays inside it.
    t0 = shift_window_for(now_ms(), tz).start_ms + int(timedelta(hours=1).total_seconds() * 1000)
    clock = _ManualClock(t0)
    reg = DeviceRegistry(logger, clock=clock, debounce_ms=getattr(args, "debounce_ms", 500))

    steps = [(0, 0), (2000, 1), (7000, 0)]
    for offset, pin3 in steps:
        clock.t = t0 + offset
        reg.ingest({"name": "selftest", "pin2": 0, "pin3": pin3, "pin4": 0})
        print(f"  Sent: t0+{offset}ms pin3={pin3}")

    failures = 0

    def check(label, got, want):
        nonlocal failures
        if got == want:
            print(f"  OK: {label} = {got}")
        else:
            failures += 1
            print(f"  WARN: {label} = {got} (expected {want})")

    live = live_snapshot(reg, now=clock.t, tz=tz)["selftest"]
    check("totalShiftOnSeconds", live["totalShiftOnSeconds"], 7)
    check("runs", len(live["manufacturingRuns"]) + len(live["idleRuns"]), 2)

    rep = range_report(reg, t0, t0 + 7000, now=clock.t)["devices"]["selftest"]
    check("manufacturingSeconds", rep["manufacturingSeconds"], 5)
    check("idleSeconds", rep["idleSeconds"], 2)
    check("efficiencyPercent", rep["efficiencyPercent"], 100.0)

    reg.reset()
    check("devices after reset", live_snapshot(reg, now=clock.t, tz=tz), {})

    print("Self-test complete." if not failures else f"Self-test finished with {failures} warning(s).")
    return 0 if not failures else 1
