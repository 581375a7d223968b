"""Tests for period buckets and month arithmetic"""
from datetime import date, timedelta

import pytest

from budgetbook.domain.period import (
    Bucket, InvalidRangeError, add_months, bucket_label, build_buckets, validate_range,
)


class TestBuildBuckets:
    def test_month_buckets_are_clipped_to_range(self):
        buckets = build_buckets(date(2024, 1, 15), date(2024, 3, 2), "month")

        assert [b.label for b in buckets] == ["2024-01", "2024-02", "2024-03"]
        assert buckets[0] == Bucket(date(2024, 1, 15), date(2024, 1, 31), "2024-01")
        assert buckets[1] == Bucket(date(2024, 2, 1), date(2024, 2, 29), "2024-02")
        assert buckets[2] == Bucket(date(2024, 3, 1), date(2024, 3, 2), "2024-03")

    def test_day_buckets(self):
        buckets = build_buckets(date(2024, 2, 27), date(2024, 3, 1), "day")
        assert [b.label for b in buckets] == ["2024-02-27", "2024-02-28", "2024-02-29", "2024-03-01"]

    def test_single_day_range(self):
        for granularity in ("day", "week", "month", "year"):
            buckets = build_buckets(date(2024, 5, 5), date(2024, 5, 5), granularity)
            assert len(buckets) == 1
            assert buckets[0].start == buckets[0].end == date(2024, 5, 5)

    def test_week_buckets_start_on_monday(self):
        # 2024-01-03 is a Wednesday
        buckets = build_buckets(date(2024, 1, 3), date(2024, 1, 15), "week")

        assert [b.label for b in buckets] == ["2024-W01", "2024-W02", "2024-W03"]
        assert buckets[1].start == date(2024, 1, 8)
        assert buckets[1].end == date(2024, 1, 14)
        assert buckets[2] == Bucket(date(2024, 1, 15), date(2024, 1, 15), "2024-W03")

    def test_week_label_uses_iso_year(self):
        assert bucket_label(date(2024, 12, 30), "week") == "2025-W01"

    def test_year_buckets(self):
        buckets = build_buckets(date(2023, 6, 1), date(2025, 2, 1), "year")
        assert [b.label for b in buckets] == ["2023", "2024", "2025"]
        assert buckets[0].end == date(2023, 12, 31)
        assert buckets[2].start == date(2025, 1, 1)

    def test_buckets_are_contiguous_and_cover_range(self):
        start, end = date(2023, 11, 17), date(2024, 4, 9)
        for granularity in ("day", "week", "month", "year"):
            buckets = build_buckets(start, end, granularity)
            assert buckets[0].start == start
            assert buckets[-1].end == end
            for prev, nxt in zip(buckets, buckets[1:]):
                assert nxt.start == prev.end + timedelta(days=1)

    def test_every_day_is_in_its_labelled_bucket(self):
        buckets = build_buckets(date(2024, 1, 1), date(2024, 3, 31), "week")
        by_label = {b.label: b for b in buckets}
        d = date(2024, 1, 1)
        while d <= date(2024, 3, 31):
            assert by_label[bucket_label(d, "week")].contains(d)
            d += timedelta(days=1)

    def test_rejects_reversed_range(self):
        with pytest.raises(InvalidRangeError):
            build_buckets(date(2024, 2, 1), date(2024, 1, 1), "month")

    def test_reversed_range_is_value_error(self):
        with pytest.raises(ValueError):
            validate_range(date(2024, 2, 1), date(2024, 1, 31))

    def test_rejects_unknown_granularity(self):
        with pytest.raises(ValueError, match="granularity"):
            build_buckets(date(2024, 1, 1), date(2024, 1, 31), "fortnight")


class TestAddMonths:
    def test_clips_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_rolls_year(self):
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_negative(self):
        assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
