from datetime import datetime, timedelta

import pytest
from billboard_booking.domain.errors import InvalidInputError
from billboard_booking.domain.intervals import Interval, overlaps


def _iv(start_h: float, end_h: float) -> Interval:
    base = datetime(2025, 12, 1)
    return Interval(base + timedelta(hours=start_h), base + timedelta(hours=end_h))


def test_touching_is_not_overlapping() -> None:
    assert overlaps(_iv(0, 10), _iv(10, 20)) is False
    assert overlaps(_iv(10, 20), _iv(0, 10)) is False


@pytest.mark.parametrize(
    "a, b",
    [
        ((8, 12), (10, 14)),  # partial, candidate ends later
        ((10, 14), (8, 12)),  # partial, candidate starts earlier
        ((8, 12), (9, 10)),  # contains
        ((9, 10), (8, 12)),  # contained
        ((8, 12), (8, 12)),  # identical
    ],
)
def test_overlap_detected_and_symmetric(a: tuple[int, int], b: tuple[int, int]) -> None:
    left, right = _iv(*a), _iv(*b)
    assert overlaps(left, right) is True
    assert overlaps(right, left) is True
    assert left.overlaps(right) is True


def test_disjoint_intervals_do_not_overlap() -> None:
    assert overlaps(_iv(0, 1), _iv(5, 6)) is False


def test_rejects_empty_or_inverted_interval() -> None:
    with pytest.raises(InvalidInputError):
        _iv(5, 5)
    with pytest.raises(InvalidInputError):
        _iv(6, 5)


def test_duration_and_contains() -> None:
    outer = _iv(0, 24)
    assert outer.duration == timedelta(hours=24)
    assert outer.contains(_iv(3, 4))
    assert not _iv(3, 4).contains(outer)
