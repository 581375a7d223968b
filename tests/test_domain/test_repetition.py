"""Tests for the limit repetition expander and overlap attribution"""
from datetime import date
from decimal import Decimal

import pytest

from budgetbook.domain.repetition import LimitSpec, Repetition, attribute, iter_repetitions


def _spec(start, freq="MONTHLY", repeats=True, limit_id=1, amount="100.00", until=None):
    return LimitSpec(
        limit_id=limit_id, budget_id=10, amount=Decimal(amount),
        start_date=start, repeat_freq=freq, repeats=repeats, until_date=until,
    )


def _rep(start, end, limit_id=1):
    return Repetition(
        budget_limit_id=limit_id, budget_id=10,
        start_date=start, end_date=end, amount=Decimal("100.00"),
    )


class TestIterRepetitions:
    def test_monthly_from_month_end_does_not_drift(self):
        reps = list(iter_repetitions(_spec(date(2024, 1, 31)), date(2024, 1, 1), date(2024, 4, 30)))

        assert [r.start_date for r in reps] == [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30),
        ]
        assert reps[-1].end_date == date(2024, 5, 31)

    def test_windows_of_one_limit_never_overlap(self):
        for freq in ("WEEKLY", "MONTHLY", "QUARTERLY", "YEARLY"):
            reps = list(iter_repetitions(_spec(date(2023, 3, 15), freq), date(2023, 1, 1), date(2026, 1, 1)))
            assert reps
            for prev, nxt in zip(reps, reps[1:]):
                assert prev.end_date == nxt.start_date

    def test_skips_cycles_before_window(self):
        reps = list(iter_repetitions(_spec(date(2020, 1, 15)), date(2024, 6, 1), date(2024, 6, 30)))

        assert [(r.start_date, r.end_date) for r in reps] == [
            (date(2024, 5, 15), date(2024, 6, 15)),
            (date(2024, 6, 15), date(2024, 7, 15)),
        ]

    def test_weekly(self):
        reps = list(iter_repetitions(_spec(date(2024, 1, 1), "WEEKLY"), date(2024, 1, 10), date(2024, 1, 20)))

        assert [r.start_date for r in reps] == [date(2024, 1, 8), date(2024, 1, 15)]
        assert all(r.duration_days == 7 for r in reps)

    def test_quarterly_and_yearly(self):
        quarterly = list(iter_repetitions(_spec(date(2024, 1, 1), "QUARTERLY"), date(2024, 5, 1), date(2024, 5, 1)))
        yearly = list(iter_repetitions(_spec(date(2022, 7, 1), "YEARLY"), date(2024, 1, 1), date(2024, 1, 1)))

        assert [(r.start_date, r.end_date) for r in quarterly] == [(date(2024, 4, 1), date(2024, 7, 1))]
        assert [(r.start_date, r.end_date) for r in yearly] == [(date(2023, 7, 1), date(2024, 7, 1))]

    def test_non_repeating_has_single_window(self):
        spec = _spec(date(2024, 1, 1), repeats=False)

        assert len(list(iter_repetitions(spec, date(2024, 1, 1), date(2024, 12, 31)))) == 1
        assert list(iter_repetitions(spec, date(2024, 3, 1), date(2024, 3, 31))) == []

    def test_window_before_limit_start(self):
        assert list(iter_repetitions(_spec(date(2024, 6, 1)), date(2024, 1, 1), date(2024, 5, 31))) == []

    def test_end_date_is_exclusive(self):
        reps = list(iter_repetitions(_spec(date(2024, 1, 1)), date(2024, 2, 1), date(2024, 2, 1)))
        assert [r.start_date for r in reps] == [date(2024, 2, 1)]

    def test_carries_amount(self):
        reps = list(iter_repetitions(_spec(date(2024, 1, 1), amount="250.50"), date(2024, 1, 1), date(2024, 1, 1)))
        assert reps[0].amount == Decimal("250.50")

    def test_until_date_stops_later_cycles(self):
        spec = _spec(date(2024, 1, 1), until=date(2024, 5, 31))
        reps = list(iter_repetitions(spec, date(2024, 1, 1), date(2024, 12, 31)))

        assert [r.start_date for r in reps] == [date(2024, m, 1) for m in range(1, 6)]
        assert reps[-1].end_date == date(2024, 6, 1)
        assert list(iter_repetitions(spec, date(2024, 6, 1), date(2024, 6, 30))) == []

    def test_until_date_is_inclusive(self):
        spec = _spec(date(2024, 1, 1), "WEEKLY", until=date(2024, 1, 15))
        reps = list(iter_repetitions(spec, date(2024, 1, 1), date(2024, 3, 1)))
        assert [r.start_date for r in reps] == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]

    def test_invalid_frequency(self):
        with pytest.raises(ValueError):
            list(iter_repetitions(_spec(date(2024, 1, 1), "DAILY"), date(2024, 1, 1), date(2024, 1, 31)))


class TestRepetition:
    def test_contains_is_half_open(self):
        rep = _rep(date(2024, 1, 1), date(2024, 2, 1))
        assert rep.contains(date(2024, 1, 1))
        assert rep.contains(date(2024, 1, 31))
        assert not rep.contains(date(2024, 2, 1))

    def test_intersects_inclusive_range(self):
        rep = _rep(date(2024, 1, 1), date(2024, 2, 1))
        assert rep.intersects(date(2023, 12, 1), date(2024, 1, 1))
        assert not rep.intersects(date(2024, 2, 1), date(2024, 2, 29))


class TestAttribute:
    def test_latest_start_wins(self):
        yearly = _rep(date(2024, 1, 1), date(2025, 1, 1), limit_id=1)
        monthly = _rep(date(2024, 3, 1), date(2024, 4, 1), limit_id=2)

        assert attribute([yearly, monthly], date(2024, 3, 10)) == monthly
        assert attribute([yearly, monthly], date(2024, 5, 10)) == yearly

    def test_same_start_shorter_wins(self):
        quarterly = _rep(date(2024, 1, 1), date(2024, 4, 1), limit_id=1)
        monthly = _rep(date(2024, 1, 1), date(2024, 2, 1), limit_id=2)

        assert attribute([quarterly, monthly], date(2024, 1, 20)) == monthly

    def test_identical_windows_lowest_limit_id(self):
        a = _rep(date(2024, 1, 1), date(2024, 2, 1), limit_id=7)
        b = _rep(date(2024, 1, 1), date(2024, 2, 1), limit_id=3)

        assert attribute([a, b], date(2024, 1, 5)).budget_limit_id == 3

    def test_no_repetition_contains_date(self):
        assert attribute([_rep(date(2024, 1, 1), date(2024, 2, 1))], date(2024, 2, 1)) is None
        assert attribute([], date(2024, 2, 1)) is None
