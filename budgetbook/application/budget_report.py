"""
Budget set reporter: aggregation across a collection of budgets.

Per-budget series are keyed by budget id and contain one (label, amount)
pair for every bucket of the requested range. Expenses are loaded with a
single grouped query per report.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from budgetbook.domain.period import build_buckets, bucket_label, validate_range
from budgetbook.domain.repetition import Repetition
from budgetbook.infrastructure.db.models import Budget, TransactionJournal
from budgetbook.application.budgets import get_active_budgets, get_budgets, get_inactive_budgets
from budgetbook.application.expenses import fold_into_buckets
from budgetbook.application.limits import LimitRepetitionResolver

_ZERO = Decimal("0")

Series = List[Tuple[str, Decimal]]


class BudgetSetReporter:
    """Fleet-level budget figures for one user."""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id

    # ------------------------------------------------------------------
    # Budget partitions
    # ------------------------------------------------------------------

    def active_budgets(self) -> List[Budget]:
        return get_active_budgets(self.db, self.user_id)

    def inactive_budgets(self) -> List[Budget]:
        return get_inactive_budgets(self.db, self.user_id)

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def expenses_per_month(
        self, budgets: Iterable[Budget], account_ids: Iterable[int] | None, start: date, end: date,
    ) -> Dict[int, Series]:
        return self._expenses_per_bucket(budgets, account_ids, start, end, "month")

    def expenses_per_year(
        self, budgets: Iterable[Budget], account_ids: Iterable[int] | None, start: date, end: date,
    ) -> Dict[int, Series]:
        return self._expenses_per_bucket(budgets, account_ids, start, end, "year")

    def budgets_and_expenses_per_month(
        self, account_ids: Iterable[int] | None, start: date, end: date,
    ) -> Dict[int, Series]:
        """Monthly expenses of every active budget."""
        return self.expenses_per_month(self.active_budgets(), account_ids, start, end)

    def _expenses_per_bucket(
        self,
        budgets: Iterable[Budget],
        account_ids: Iterable[int] | None,
        start: date,
        end: date,
        granularity: str,
    ) -> Dict[int, Series]:
        validate_range(start, end)
        budgets = list(budgets)
        if not budgets:
            return {}

        q = self.db.query(
            TransactionJournal.budget_id,
            TransactionJournal.occurred_on,
            func.sum(TransactionJournal.amount).label("total"),
        ).filter(
            TransactionJournal.budget_id.in_([b.id for b in budgets]),
            TransactionJournal.amount < 0,
            TransactionJournal.occurred_on >= start,
            TransactionJournal.occurred_on <= end,
        )
        if account_ids is not None:
            q = q.filter(TransactionJournal.source_account_id.in_(list(account_ids)))
        rows = q.group_by(TransactionJournal.budget_id, TransactionJournal.occurred_on).all()

        daily: Dict[int, Dict[date, Decimal]] = {b.id: {} for b in budgets}
        for row in rows:
            daily[row.budget_id][row.occurred_on] = row.total or _ZERO

        return {b.id: fold_into_buckets(daily[b.id], start, end, granularity) for b in budgets}

    # ------------------------------------------------------------------
    # Budgeted amounts
    # ------------------------------------------------------------------

    def budgeted_per_year(self, budgets: Iterable[Budget], start: date, end: date) -> Dict[int, Series]:
        """
        Budgeted amount per year bucket.

        Each repetition intersecting [start, end] is counted once, in the year
        that contains max(repetition.start_date, start).
        """
        buckets = build_buckets(start, end, "year")
        resolver = LimitRepetitionResolver(self.db)
        result: Dict[int, Series] = {}
        for budget in budgets:
            totals = {b.label: _ZERO for b in buckets}
            for rep in resolver.repetitions_in_range(budget, start, end):
                totals[bucket_label(max(rep.start_date, start), "year")] += rep.amount
            result[budget.id] = [(b.label, totals[b.label]) for b in buckets]
        return result

    def budgets_and_limits_in_range(self, start: date, end: date) -> List[Tuple[Budget, Repetition | None]]:
        """One row per (budget, repetition); budgets without repetitions appear once with None."""
        resolver = LimitRepetitionResolver(self.db)
        rows: List[Tuple[Budget, Repetition | None]] = []
        for budget in get_budgets(self.db, self.user_id):
            reps = resolver.repetitions_in_range(budget, start, end)
            if not reps:
                rows.append((budget, None))
            rows.extend((budget, rep) for rep in reps)
        return rows

    # ------------------------------------------------------------------
    # Spending outside any budget
    # ------------------------------------------------------------------

    def _without_budget_criteria(self, start: date, end: date) -> list:
        validate_range(start, end)
        live_budget_ids = select(Budget.id).where(Budget.deleted_at.is_(None))
        return [
            TransactionJournal.user_id == self.user_id,
            TransactionJournal.amount < 0,
            TransactionJournal.occurred_on >= start,
            TransactionJournal.occurred_on <= end,
            or_(
                TransactionJournal.budget_id.is_(None),
                TransactionJournal.budget_id.not_in(live_budget_ids),
            ),
        ]

    def without_budget(self, start: date, end: date) -> List[TransactionJournal]:
        """Expenditure journals not linked to a (non-deleted) budget, newest first."""
        return self.db.query(TransactionJournal).filter(
            *self._without_budget_criteria(start, end),
        ).order_by(TransactionJournal.occurred_on.desc(), TransactionJournal.id.desc()).all()

    def without_budget_sum(self, start: date, end: date) -> Decimal:
        """
        Sum of without_budget(start, end).

        Journals on an inactive (not deleted) budget count neither here nor in
        the active budgets' series, so active sums plus this sum only equal total
        spending when inactive budgets have no expenditure in the range.
        """
        total = self.db.query(func.sum(TransactionJournal.amount)).filter(
            *self._without_budget_criteria(start, end),
        ).scalar()
        return total or _ZERO
