"""Tests for time bucketing and grouping."""

from datetime import datetime

import pytest

from maintenance_core.aggregator import bucket, count, group_by, sum_of
from maintenance_core.errors import InvalidArgument
from maintenance_core.models import TimeUnit, TimeWindow
from maintenance_core.timewindow import windows

ANCHOR = datetime(2024, 3, 15, 12)
MONTHS = windows(3, TimeUnit.MONTH, ANCHOR)


def _at(*args):
    return {"at": datetime(*args), "amount": 1}


def _key(record):
    return record["at"]


class TestGapFilling:
    def test_empty_records_give_one_zero_per_window(self):
        result = bucket([], MONTHS, _key, 0, count)
        assert [b.window for b in result] == MONTHS
        assert [b.value for b in result] == [0, 0, 0]

    def test_empty_middle_window_still_present(self):
        records = [_at(2024, 1, 5), _at(2024, 3, 2)]
        result = bucket(records, MONTHS, _key, 0, count)
        assert [b.window.label for b in result] == ["2024-01", "2024-02", "2024-03"]
        assert [b.value for b in result] == [1, 0, 1]

    def test_no_windows(self):
        assert bucket([_at(2024, 1, 5)], [], _key, 0, count) == []


class TestAssignment:
    def test_boundaries_are_half_open(self):
        records = [
            _at(2024, 1, 1),         # first instant of January
            _at(2024, 2, 1),         # start of February, not end of January
            _at(2024, 3, 15, 12),    # the anchor itself is outside
        ]
        result = bucket(records, MONTHS, _key, 0, count)
        assert [b.value for b in result] == [1, 1, 0]

    def test_out_of_range_and_missing_keys_are_dropped(self):
        records = [_at(2023, 12, 31), _at(2024, 4, 1), {"at": None, "amount": 1}, _at(2024, 2, 10)]
        result = bucket(records, MONTHS, _key, 0, count)
        assert [b.value for b in result] == [0, 1, 0]

    def test_every_in_range_record_counted_once(self):
        records = [_at(2024, month, day) for month in (1, 2, 3) for day in (1, 9, 14)]
        result = bucket(records, MONTHS, _key, 0, count)
        assert sum(b.value for b in result) == len(records)

    def test_input_order_does_not_matter(self):
        records = [_at(2024, 3, 1), _at(2024, 1, 20), _at(2024, 2, 2), _at(2024, 1, 2)]
        forward = bucket(records, MONTHS, _key, 0, count)
        backward = bucket(list(reversed(records)), MONTHS, _key, 0, count)
        assert [b.value for b in forward] == [b.value for b in backward]

    def test_sum_reducer(self):
        records = [
            {"at": datetime(2024, 1, 3), "amount": 2.5},
            {"at": datetime(2024, 1, 4), "amount": 4.0},
            {"at": datetime(2024, 3, 4), "amount": 1.0},
        ]
        result = bucket(records, MONTHS, _key, 0.0, sum_of(lambda r: r["amount"]))
        assert [b.value for b in result] == [6.5, 0.0, 1.0]

    def test_mutable_initial_value_is_not_shared(self):
        def collect(acc, record):
            acc.append(record["at"].day)
            return acc

        result = bucket([_at(2024, 1, 7), _at(2024, 3, 9)], MONTHS, _key, [], collect)
        assert [b.value for b in result] == [[7], [], [9]]


class TestWindowValidation:
    def test_overlapping_windows_rejected(self):
        overlapping = [
            TimeWindow(start=datetime(2024, 1, 1), end=datetime(2024, 1, 10), label="a"),
            TimeWindow(start=datetime(2024, 1, 5), end=datetime(2024, 1, 20), label="b"),
        ]
        with pytest.raises(InvalidArgument):
            bucket([], overlapping, _key, 0, count)

    def test_backwards_window_rejected(self):
        backwards = [TimeWindow(start=datetime(2024, 1, 10), end=datetime(2024, 1, 1), label="a")]
        with pytest.raises(InvalidArgument):
            bucket([], backwards, _key, 0, count)

    def test_gaps_between_windows_allowed(self):
        sparse = [
            TimeWindow(start=datetime(2024, 1, 1), end=datetime(2024, 1, 2), label="a"),
            TimeWindow(start=datetime(2024, 1, 5), end=datetime(2024, 1, 6), label="b"),
        ]
        records = [_at(2024, 1, 1, 5), _at(2024, 1, 3), _at(2024, 1, 5, 23)]
        assert [b.value for b in bucket(records, sparse, _key, 0, count)] == [1, 1]


class TestGroupBy:
    def test_keeps_first_seen_order(self):
        rows = [("b", 1), ("a", 2), ("b", 3)]
        groups = group_by(rows, lambda r: r[0])
        assert list(groups) == ["b", "a"]
        assert groups["b"] == [("b", 1), ("b", 3)]

    def test_empty(self):
        assert group_by([], lambda r: r) == {}
