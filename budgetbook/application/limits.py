"""
Limit repetition resolver: which budget-limit windows apply to a date range.

Repetitions are expanded on the fly from the budget's limits (see
budgetbook.domain.repetition); nothing here writes to the store.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from budgetbook.domain.period import validate_range
from budgetbook.domain.repetition import Repetition, attribute, iter_repetitions, limit_spec_from_db
from budgetbook.infrastructure.db.models import Budget, BudgetLimit
from budgetbook.application.budgets import get_budget_limits, local_today

logger = logging.getLogger(__name__)


class LimitRepetitionResolver:
    """Resolve budget-limit repetitions for a budget."""

    def __init__(self, db: Session):
        self.db = db

    def repetitions_in_range(self, budget: Budget, start: date, end: date) -> List[Repetition]:
        """
        All repetitions of all the budget's limits intersecting [start, end],
        sorted by start_date. Overlapping limits are returned side by side.
        """
        validate_range(start, end)
        reps = [
            rep
            for limit in get_budget_limits(self.db, budget)
            for rep in iter_repetitions(limit_spec_from_db(limit), start, end)
        ]
        reps.sort(key=lambda r: (r.start_date, r.end_date, r.budget_limit_id))
        logger.debug("Budget #%d: %d repetition(s) in %s..%s", budget.id, len(reps), start, end)
        return reps

    def repetitions_per_budget(
        self, budgets: Iterable[Budget], start: date, end: date,
    ) -> Dict[int, List[Repetition]]:
        return {b.id: self.repetitions_in_range(b, start, end) for b in budgets}

    def current_repetition(
        self, budget: Budget, start: date, end: date, today: date | None = None,
    ) -> Repetition | None:
        """
        The repetition containing the reference day: the later of today and
        the middle of [start, end], clipped to the range. None when no limit
        is active there.
        """
        validate_range(start, end)
        if today is None:
            today = local_today()
        midpoint = start + (end - start) // 2
        reference = min(max(today, midpoint), end)
        return attribute(self.repetitions_in_range(budget, reference, reference), reference)

    def first_limit_date(self, budget: Budget) -> date | None:
        return self.db.query(func.min(BudgetLimit.start_date)).filter(
            BudgetLimit.budget_id == budget.id,
        ).scalar()

    def last_limit_date(self, budget: Budget, today: date | None = None) -> date | None:
        """
        Deprecated. End (exclusive) of the latest repetition that has started by
        today, or of the latest non-started limit's first window.
        """
        first = self.first_limit_date(budget)
        if first is None:
            return None
        latest_start = self.db.query(func.max(BudgetLimit.start_date)).filter(
            BudgetLimit.budget_id == budget.id,
        ).scalar()
        horizon = max(today or local_today(), latest_start)
        reps = self.repetitions_in_range(budget, first, horizon)
        return max(r.end_date for r in reps)

    def limit_amount_on_date(self, budget: Budget, on_date: date) -> Decimal | None:
        """Deprecated. Amount of the repetition covering on_date."""
        rep = self.current_repetition(budget, on_date, on_date, today=on_date)
        return rep.amount if rep else None
