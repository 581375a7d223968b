"""
Balance correction: budget spend with internal transfers netted out.

A journal is an internal transfer when both its source and destination
accounts are in the queried account set and both belong to the budget owner.
Such a journal moves money between the user's own pockets, so it never counts
as budget spend, even when it is tagged to the budget.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from budgetbook.domain.period import validate_range
from budgetbook.infrastructure.db.models import Budget, TransactionJournal
from budgetbook.application.accounts import get_account_ownership
from budgetbook.application.expenses import ExpenseAggregator

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


class BalanceCorrector:

    def __init__(self, db: Session):
        self.db = db
        self.aggregator = ExpenseAggregator(db)

    def balance_in_period(
        self, budget: Budget, start: date, end: date, account_ids: Iterable[int],
    ) -> Decimal:
        """
        Budget spend in [start, end] from account_ids, internal transfers excluded.

        Returns a signed amount; negative = net outflow.
        """
        validate_range(start, end)
        ids = set(account_ids)

        raw = sum(
            (amount for _, amount in self.aggregator.expenses_per_bucket(budget, start, end, "year", ids)),
            _ZERO,
        )
        internal = self._internal_transfer_sum(budget, start, end, self._own_account_ids(budget, ids))
        if internal:
            logger.debug("Budget #%d: netting %s of internal transfers", budget.id, internal)
        return raw - internal

    def _own_account_ids(self, budget: Budget, ids: Set[int]) -> Set[int]:
        ownership = get_account_ownership(self.db, ids)
        return {
            account_id
            for account_id, (owner_id, is_own) in ownership.items()
            if is_own and owner_id == budget.user_id
        }

    def _internal_transfer_sum(
        self, budget: Budget, start: date, end: date, own_ids: Set[int],
    ) -> Decimal:
        if not own_ids:
            return _ZERO
        total = self.db.query(func.sum(TransactionJournal.amount)).filter(
            TransactionJournal.budget_id == budget.id,
            TransactionJournal.amount < 0,
            TransactionJournal.occurred_on >= start,
            TransactionJournal.occurred_on <= end,
            TransactionJournal.source_account_id.in_(own_ids),
            TransactionJournal.destination_account_id.in_(own_ids),
        ).scalar()
        return total or _ZERO
