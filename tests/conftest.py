from datetime import datetime

import pytest
import pytz

from machmon.registry import DeviceRegistry

TZ = pytz.timezone("Europe/Copenhagen")


def local_ms(*args) -> int:
    """Epoch ms of a Copenhagen wall-clock time."""
    return int(TZ.localize(datetime(*args)).timestamp() * 1000)


class CapturingLogger:
    """Minimal logger that matches the .emit(event, **fields) contract."""
    def __init__(self):
        self.events = []

    def emit(self, event: str, **fields):
        self.events.append((event, fields))

    def names(self):
        return [e for e, _ in self.events]


class ManualClock:
    def __init__(self, t: int):
        self.t = t

    def __call__(self) -> int:
        return self.t


@pytest.fixture
def logger():
    return CapturingLogger()


@pytest.fixture
def t0():
    # Tuesday 10:00 local, well inside Shift1.
    return local_ms(2024, 3, 5, 10, 0, 0)


@pytest.fixture
def clock(t0):
    return ManualClock(t0)


@pytest.fixture
def registry(logger, clock):
    return DeviceRegistry(logger, clock=clock)


@pytest.fixture
def send(registry, clock, t0):
    """Send a report for `name` observed at t0 + offset_ms."""
    def _send(name, offset_ms, pin3=0, pin2=0, pin4=0, **extra):
        clock.t = t0 + offset_ms
        return registry.ingest({"name": name, "pin2": pin2, "pin3": pin3, "pin4": pin4, **extra})
    return _send
