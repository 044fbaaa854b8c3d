"""
Tests for date window normalization
"""
import pytest
from datetime import date, datetime

from offshore.domain.window import DateWindow, end_of_day, normalize_window, start_of_day


def test_same_day_window_spans_whole_day():
    window = normalize_window(datetime(2025, 1, 10, 15, 0), datetime(2025, 1, 10, 9, 0))
    assert window.start == datetime(2025, 1, 10)
    assert window.end == datetime(2025, 1, 10, 23, 59, 59, 999999)
    assert window.contains(datetime(2025, 1, 10, 0, 0))
    assert window.contains(datetime(2025, 1, 10, 23, 59, 59))
    assert not window.contains(datetime(2025, 1, 11))


def test_inverted_input_is_swapped():
    window = normalize_window(date(2025, 1, 31), date(2025, 1, 1))
    assert window.start == datetime(2025, 1, 1)
    assert window.end.date() == date(2025, 1, 31)
    assert window.days == 31


def test_direct_construction_rejects_inverted_range():
    with pytest.raises(ValueError):
        DateWindow(start=datetime(2025, 2, 1), end=datetime(2025, 1, 1))


def test_contains_plain_date():
    window = normalize_window(date(2025, 1, 1), date(2025, 1, 31))
    assert window.contains(date(2025, 1, 31))
    assert not window.contains(date(2024, 12, 31))


def test_label():
    window = normalize_window(date(2025, 1, 1), date(2025, 1, 31))
    assert window.label() == "Jan 1, 2025 through Jan 31, 2025"


def test_day_boundaries_from_date_and_datetime():
    assert start_of_day(date(2025, 3, 4)) == datetime(2025, 3, 4)
    assert end_of_day(datetime(2025, 3, 4, 8, 15)) == datetime(2025, 3, 4, 23, 59, 59, 999999)
    assert end_of_day(date(2025, 3, 4)) == datetime(2025, 3, 4, 23, 59, 59, 999999)
