"""
Tests for row sorting and search filtering
"""
import pytest
from datetime import datetime
from decimal import Decimal

from offshore.domain.category import Category, UNCATEGORIZED
from offshore.domain.records import PlannedExpenseRecord, VariableExpenseRecord
from offshore.domain.sorting import SortMode, Segment, filter_records, parse_enum, sort_records

_D = Decimal


def _planned(id, description, planned, actual, day):
    return PlannedExpenseRecord(
        id=id, budget_id=1, description=description,
        planned_amount=_D(planned), actual_amount=_D(actual),
        transaction_date=datetime(2025, 1, day),
    )


def _variable(id, description, amount, day, category=UNCATEGORIZED):
    return VariableExpenseRecord(
        id=id, card_id=1, description=description, amount=_D(amount),
        transaction_date=datetime(2025, 1, day), category=category,
    )


@pytest.fixture
def planned_rows():
    return [
        _planned(1, "rent", "1000", "1000", 1),
        _planned(2, "Groceries", "200", "180", 5),
        _planned(3, "", "50", "0", 5),
        _planned(4, "Gym", "200", "40", 3),
    ]


def _ids(rows):
    return [r.id for r in rows]


class TestSortRecords:
    def test_title_is_case_insensitive_with_placeholder(self, planned_rows):
        # "" sorts as "Untitled"
        assert _ids(sort_records(planned_rows, SortMode.TITLE_AZ)) == [2, 4, 1, 3]

    def test_planned_amount_drives_amount_sort(self, planned_rows):
        assert _ids(sort_records(planned_rows, SortMode.AMOUNT_LOW_HIGH)) == [3, 2, 4, 1]

    def test_amount_high_low_is_stable_for_ties(self, planned_rows):
        # Groceries and Gym tie at 200 and keep input order
        assert _ids(sort_records(planned_rows, SortMode.AMOUNT_HIGH_LOW)) == [1, 2, 4, 3]

    def test_date_old_new_breaks_ties_by_title(self, planned_rows):
        assert _ids(sort_records(planned_rows, SortMode.DATE_OLD_NEW)) == [1, 4, 2, 3]

    def test_date_new_old(self, planned_rows):
        assert _ids(sort_records(planned_rows, SortMode.DATE_NEW_OLD)) == [2, 3, 4, 1]

    def test_returns_new_list(self, planned_rows):
        result = sort_records(planned_rows, SortMode.TITLE_AZ)
        assert result is not planned_rows
        assert _ids(planned_rows) == [1, 2, 3, 4]

    def test_variable_rows_sort_by_amount(self):
        rows = [_variable(1, "a", "5", 1), _variable(2, "b", "2.50", 2)]
        assert _ids(sort_records(rows, SortMode.AMOUNT_LOW_HIGH)) == [2, 1]


class TestFilterRecords:
    def test_blank_query_keeps_everything(self, planned_rows):
        assert _ids(filter_records(planned_rows, "   ")) == [1, 2, 3, 4]

    def test_description_substring_case_insensitive(self, planned_rows):
        assert _ids(filter_records(planned_rows, "GRO")) == [2]

    def test_category_name_only_for_variable(self):
        food = Category(id=7, name="Food")
        rows = [_variable(1, "Lunch", "12", 1, food), _variable(2, "Taxi", "30", 2)]
        assert _ids(filter_records(rows, "food", include_category=True)) == [1]
        assert _ids(filter_records(rows, "food")) == []


class TestParseEnum:
    def test_known_value(self):
        assert parse_enum(SortMode, "Amount_High_Low", SortMode.TITLE_AZ) is SortMode.AMOUNT_HIGH_LOW

    def test_unknown_value_falls_back(self):
        assert parse_enum(Segment, "both", Segment.PLANNED) is Segment.PLANNED
        assert parse_enum(Segment, None, Segment.VARIABLE) is Segment.VARIABLE


@pytest.fixture
def distinct_rows():
    # distinct titles, planned amounts and dates
    return [
        _planned(1, "Rent", "1000", "1000", 1),
        _planned(2, "groceries", "200", "180", 9),
        _planned(3, "Internet", "60", "60", 4),
        _planned(4, "Gym", "35", "40", 20),
        _planned(5, "Water", "25.50", "0", 12),
    ]


class TestSortStability:
    @pytest.mark.parametrize("mode", list(SortMode))
    def test_resorting_keeps_order(self, planned_rows, mode):
        once = sort_records(planned_rows, mode)
        assert _ids(sort_records(once, mode)) == _ids(once)

    @pytest.mark.parametrize("first", list(SortMode))
    @pytest.mark.parametrize("other", list(SortMode))
    def test_switching_back_restores_order(self, distinct_rows, first, other):
        original = sort_records(distinct_rows, first)
        round_trip = sort_records(sort_records(original, other), first)
        assert _ids(round_trip) == _ids(original)
