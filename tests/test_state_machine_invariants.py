import random

import pytest

from machmon.device import DeviceMachine
from machmon.state import PinReport, TimeInterval


def _rep(pin3=0, pin2=0, pin4=0, **kw):
    return PinReport(name="cnc-1", pin2=bool(pin2), pin3=bool(pin3), pin4=bool(pin4), **kw)


def _machine(logger, **kw):
    return DeviceMachine("cnc-1", logger, **kw)


def test_first_report_low_opens_idle(logger):
    m = _machine(logger)
    m.apply(_rep(pin3=0), 1_000_000)

    st = m.state
    assert st.idle_active is True
    assert st.idle_started_at == 1_000_000
    assert st.manufacturing_active is False
    assert logger.names()[:2] == ["device_registered", "idle_start"]


def test_first_report_high_opens_manufacturing(logger):
    m = _machine(logger)
    m.apply(_rep(pin3=1), 1_000_000)

    st = m.state
    assert st.manufacturing_active is True
    assert st.manufacturing_started_at == 1_000_000
    assert st.idle_active is False
    assert st.idle_runs == []


def test_rising_then_falling_appends_runs_without_gap(logger):
    m = _machine(logger)
    t = 1_000_000
    m.apply(_rep(pin3=0), t)
    m.apply(_rep(pin3=1), t + 2000)
    m.apply(_rep(pin3=0), t + 7000)

    st = m.state
    assert st.idle_runs == [TimeInterval(t, t + 2000, 2)]
    assert st.manufacturing_runs == [TimeInterval(t + 2000, t + 7000, 5)]
    # Manufacturing end and idle start share the same instant.
    assert st.idle_active is True
    assert st.idle_started_at == t + 7000
    assert st.manufacturing_active is False


def test_duplicate_reports_only_touch_bookkeeping(logger):
    m = _machine(logger)
    t = 1_000_000
    m.apply(_rep(pin3=0), t)
    m.apply(_rep(pin3=1), t + 3000)
    before = m.state.snapshot()
    n_events = len(logger.events)

    for i in range(1, 6):
        m.apply(_rep(pin3=1), t + 3000 + i * 1000)

    after = m.state
    assert after.manufacturing_runs == before.manufacturing_runs
    assert after.idle_runs == before.idle_runs
    assert after.manufacturing_started_at == before.manufacturing_started_at
    assert after.last_report_at == t + 8000
    assert len(logger.events) == n_events


def test_manufacturing_rising_edges_inside_debounce_open_once(logger):
    m = _machine(logger)
    t = 1_000_000
    m.apply(_rep(pin3=0), t)
    m.apply(_rep(pin3=1), t + 1000)   # accepted
    m.apply(_rep(pin3=0), t + 1200)   # closes (sub-second, dropped), stamps raw change
    m.apply(_rep(pin3=1), t + 1400)   # 200ms after the last raw change: rejected

    assert logger.names().count("manufacturing_start") == 1
    st = m.state
    assert st.manufacturing_active is False
    assert st.idle_active is True
    assert st.manufacturing_runs == []


def test_manufacturing_rising_after_debounce_is_accepted(logger):
    m = _machine(logger)
    t = 1_000_000
    m.apply(_rep(pin3=0), t)
    m.apply(_rep(pin3=1), t + 1000)
    m.apply(_rep(pin3=0), t + 3000)
    m.apply(_rep(pin3=1), t + 3500)   # exactly DEBOUNCE_MS after the falling edge

    assert logger.names().count("manufacturing_start") == 2
    assert m.state.manufacturing_active is True


def test_sub_second_runs_are_dropped_silently(logger):
    m = _machine(logger)
    t = 1_000_000
    m.apply(_rep(pin3=0), t)
    m.apply(_rep(pin3=1), t + 600)   # idle lasted 600ms
    m.apply(_rep(pin3=0), t + 1500)  # manufacturing lasted 900ms

    st = m.state
    assert st.idle_runs == []
    assert st.manufacturing_runs == []
    assert st.idle_active is True
    assert "idle_end" not in logger.names()
    assert "manufacturing_end" not in logger.names()


def test_spindle_accumulates_whole_seconds(logger):
    m = _machine(logger)
    t = 1_000_000
    m.apply(_rep(pin2=0), t)
    m.apply(_rep(pin2=1), t + 1000)
    m.apply(_rep(pin2=0), t + 4500)

    st = m.state
    assert st.spindle_on is False
    assert st.spindle_started_at is None
    assert st.spindle_accumulated_seconds == 3


def test_spindle_close_is_not_debounced(logger):
    m = _machine(logger)
    t = 1_000_000
    m.apply(_rep(pin2=1), t)
    m.apply(_rep(pin2=0), t + 100)

    st = m.state
    assert st.spindle_on is False
    assert st.spindle_started_at is None
    assert st.spindle_accumulated_seconds == 0


def test_spindle_reopen_gated_on_accepted_edge(logger):
    m = _machine(logger)
    t = 1_000_000
    m.apply(_rep(pin2=1), t)          # accepted
    m.apply(_rep(pin2=0), t + 100)    # closes
    m.apply(_rep(pin2=1), t + 300)    # 300ms after the accepted edge: rejected
    assert m.state.spindle_on is False

    m.apply(_rep(pin2=0), t + 400)
    m.apply(_rep(pin2=1), t + 600)    # 600ms after the accepted edge: accepted
    assert m.state.spindle_on is True
    assert m.state.spindle_started_at == t + 600


def test_spindle_is_independent_of_manufacturing(logger):
    m = _machine(logger)
    t = 1_000_000
    m.apply(_rep(pin3=0, pin2=1), t)
    m.apply(_rep(pin3=1, pin2=1), t + 2000)
    m.apply(_rep(pin3=1, pin2=0), t + 5000)

    st = m.state
    assert st.spindle_accumulated_seconds == 5
    assert st.manufacturing_active is True
    assert st.idle_runs == [TimeInterval(t, t + 2000, 2)]


def test_on_time_and_pins_are_recorded(logger):
    m = _machine(logger)
    m.apply(_rep(pin3=0, pin4=1, on_time_ms=12_345.0), 1_000_000)
    assert m.state.powered_on_seconds == 12
    assert m.state.last_pins.as_dict() == {"pin2": 0, "pin3": 0, "pin4": 1}

    m.apply(_rep(pin3=0), 1_001_000)
    # Absent onTime keeps the last value.
    assert m.state.powered_on_seconds == 12


@pytest.mark.parametrize("seed", [1, 7, 42, 2024])
def test_random_sequences_tile_the_timeline(logger, seed):
    rnd = random.Random(seed)
    m = _machine(logger)
    t = 1_000_000
    first = t
    m.apply(_rep(pin3=rnd.randint(0, 1)), t)
    for _ in range(200):
        # Steps of at least 1s keep every run above the noise floor.
        t += rnd.randint(1, 20) * 1000
        m.apply(_rep(pin3=rnd.randint(0, 1), pin2=rnd.randint(0, 1)), t)

    st = m.state
    # Exactly one run is open at any time once a device is known.
    assert st.manufacturing_active != st.idle_active

    runs = st.all_runs()
    for r in runs:
        assert r.end > r.start
        assert r.duration == (r.end - r.start) // 1000
        assert r.duration >= 1

    assert not runs or runs[0].start == first
    for prev, cur in zip(runs, runs[1:]):
        assert cur.start == prev.end

    open_start = st.manufacturing_started_at if st.manufacturing_active else st.idle_started_at
    assert open_start == (runs[-1].end if runs else first)
