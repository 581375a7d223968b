"""
Deterministic budget-limit repetition expander.

A BudgetLimit recurs every WEEKLY / MONTHLY / QUARTERLY / YEARLY period from its
start_date. Each cycle k is a half-open window [start + k*period, start + (k+1)*period).
Windows are always computed from the anchor, so a limit starting on Jan 31 gives
Jan 31, Feb 29, Mar 31, ... (clipped to month end, no drift).

Expansion is a lazy generator: it only walks the cycles that can intersect the
requested window, so an open-ended recurrence is finite for any finite query.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Iterator

from budgetbook.domain.period import add_months, validate_range


FREQ_MONTHS = {"MONTHLY": 1, "QUARTERLY": 3, "YEARLY": 12}
VALID_FREQ = frozenset({"WEEKLY", "MONTHLY", "QUARTERLY", "YEARLY"})


@dataclass(frozen=True)
class LimitSpec:
    limit_id: int
    budget_id: int
    amount: Decimal
    start_date: date
    repeat_freq: str
    repeats: bool
    until_date: date | None = None  # inclusive; no cycle starts after it


@dataclass(frozen=True)
class Repetition:
    budget_limit_id: int
    budget_id: int
    start_date: date
    end_date: date  # exclusive
    amount: Decimal
    repetition_id: int | None = None

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days

    def contains(self, d: date) -> bool:
        return self.start_date <= d < self.end_date

    def intersects(self, start: date, end: date) -> bool:
        """True if the window shares at least one day with the inclusive range [start, end]."""
        return self.start_date <= end and self.end_date > start


def limit_spec_from_db(row) -> LimitSpec:
    """Build LimitSpec from a BudgetLimit row (any object with matching attributes)."""
    freq = (row.repeat_freq or "MONTHLY").upper()
    return LimitSpec(
        limit_id=row.id,
        budget_id=row.budget_id,
        amount=Decimal(row.amount),
        start_date=row.start_date,
        repeat_freq=freq,
        repeats=bool(row.repeats),
        until_date=row.until_date,
    )


def repetition_from_db(row, budget_id: int) -> Repetition:
    """Build Repetition from a LimitRepetition row."""
    return Repetition(
        budget_limit_id=row.budget_limit_id,
        budget_id=budget_id,
        start_date=row.start_date,
        end_date=row.end_date,
        amount=Decimal(row.amount),
        repetition_id=row.id,
    )


def cycle_start(spec: LimitSpec, k: int) -> date:
    """Start date of cycle k (cycle 0 starts on spec.start_date)."""
    if spec.repeat_freq == "WEEKLY":
        return spec.start_date + timedelta(weeks=k)
    return add_months(spec.start_date, k * FREQ_MONTHS[spec.repeat_freq])


def _first_candidate_cycle(spec: LimitSpec, window_start: date) -> int:
    # Lower bound only: the caller still skips cycles that end before the window.
    if window_start <= spec.start_date:
        return 0
    if spec.repeat_freq == "WEEKLY":
        return (window_start - spec.start_date).days // 7
    months = (window_start.year - spec.start_date.year) * 12 + window_start.month - spec.start_date.month
    return max(0, months // FREQ_MONTHS[spec.repeat_freq] - 1)


def iter_repetitions(spec: LimitSpec, window_start: date, window_end: date) -> Iterator[Repetition]:
    """Yield the limit's windows intersecting [window_start, window_end], ascending."""
    validate_range(window_start, window_end)
    if spec.repeat_freq not in VALID_FREQ:
        raise ValueError(f"invalid repeat_freq: {spec.repeat_freq}")

    k = _first_candidate_cycle(spec, window_start) if spec.repeats else 0
    while True:
        start = cycle_start(spec, k)
        if start > window_end:
            return
        if spec.until_date is not None and start > spec.until_date:
            return
        end = cycle_start(spec, k + 1)
        if end > window_start:
            yield Repetition(
                budget_limit_id=spec.limit_id,
                budget_id=spec.budget_id,
                start_date=start,
                end_date=end,
                amount=spec.amount,
            )
        if not spec.repeats:
            return
        k += 1


def attribute(repetitions: Iterable[Repetition], on_date: date) -> Repetition | None:
    """
    Pick the single repetition a transaction dated on_date belongs to.

    Among repetitions containing on_date: latest start_date wins, then the
    shortest window, then the lowest limit id. None if nothing contains the date.
    """
    candidates = [r for r in repetitions if r.contains(on_date)]
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda r: (-r.start_date.toordinal(), r.duration_days, r.budget_limit_id),
    )
