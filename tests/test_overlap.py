from machmon.intervals import find_overlaps, overlap_seconds
from machmon.state import TimeInterval


def test_partial_overlap():
    assert overlap_seconds(0, 10000, 5000, 15000) == 5


def test_disjoint_ranges():
    assert overlap_seconds(0, 1000, 2000, 3000) == 0
    assert overlap_seconds(2000, 3000, 0, 1000) == 0


def test_identical_ranges():
    a, b = 1_700_000_000_123, 1_700_000_042_999
    assert overlap_seconds(a, b, a, b) == (b - a) // 1000


def test_touching_and_containment():
    assert overlap_seconds(0, 5000, 5000, 9000) == 0
    assert overlap_seconds(0, 60000, 10000, 12500) == 2
    assert overlap_seconds(10000, 12500, 0, 60000) == 2


def test_sub_second_overlap_floors_to_zero():
    assert overlap_seconds(0, 1999, 1000, 5000) == 0


def test_find_overlaps_on_tiled_runs_is_empty():
    runs = [TimeInterval.closed(0, 2000), TimeInterval.closed(2000, 7000), TimeInterval.closed(7000, 9000)]
    assert find_overlaps(runs) == []


def test_find_overlaps_reports_double_counting():
    a = TimeInterval.closed(0, 5000)
    b = TimeInterval.closed(4000, 8000)
    c = TimeInterval.closed(9000, 10000)
    assert find_overlaps([c, b, a]) == [(a, b)]
