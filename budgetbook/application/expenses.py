"""
Expense aggregation for a single budget.

"Expenses" are journals with a negative amount (money leaving the source
account) linked to the budget. Sums are computed per day in SQL and folded
into period buckets in Python; all amounts stay Decimal.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from budgetbook.config import get_settings
from budgetbook.domain.period import build_buckets, bucket_label, validate_range
from budgetbook.domain.repetition import Repetition, attribute
from budgetbook.infrastructure.db.models import Budget, JournalTag, Tag, TransactionJournal
from budgetbook.application.limits import LimitRepetitionResolver

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


@dataclass(frozen=True)
class JournalCursor:
    """Sort key of the last journal on a page: (occurred_on, id)."""
    occurred_on: date
    journal_id: int


@dataclass
class JournalPage:
    items: List[TransactionJournal]
    next_cursor: JournalCursor | None
    total: int


def daily_expense_sums(
    db: Session,
    start: date,
    end: date,
    *criteria,
    account_ids: Iterable[int] | None = None,
) -> Dict[date, Decimal]:
    """Sum of negative journal amounts per day in [start, end] matching criteria."""
    q = db.query(
        TransactionJournal.occurred_on,
        func.sum(TransactionJournal.amount).label("total"),
    ).filter(
        *criteria,
        TransactionJournal.amount < 0,
        TransactionJournal.occurred_on >= start,
        TransactionJournal.occurred_on <= end,
    )
    if account_ids is not None:
        q = q.filter(TransactionJournal.source_account_id.in_(list(account_ids)))
    rows = q.group_by(TransactionJournal.occurred_on).all()
    return {row.occurred_on: row.total or _ZERO for row in rows}


def fold_into_buckets(
    daily: Dict[date, Decimal], start: date, end: date, granularity: str,
) -> List[Tuple[str, Decimal]]:
    """Fold per-day sums into one (label, amount) pair per bucket of [start, end]."""
    buckets = build_buckets(start, end, granularity)
    totals: Dict[str, Decimal] = {b.label: _ZERO for b in buckets}
    for day, amount in daily.items():
        totals[bucket_label(day, granularity)] += amount
    return [(b.label, totals[b.label]) for b in buckets]


class ExpenseAggregator:
    """Spent figures for one budget."""

    def __init__(self, db: Session):
        self.db = db

    def expenses_per_bucket(
        self,
        budget: Budget,
        start: date,
        end: date,
        granularity: str = "day",
        account_ids: Iterable[int] | None = None,
    ) -> List[Tuple[str, Decimal]]:
        """
        Expenses per bucket, one entry for every bucket in [start, end].

        Args:
            account_ids: only journals whose source account is in this set
                (None = every account)

        Example:
            >>> agg.expenses_per_bucket(groceries, date(2024, 1, 1), date(2024, 2, 29), "month")
            [("2024-01", Decimal("-50.00")), ("2024-02", Decimal("-30.00"))]
        """
        validate_range(start, end)
        daily = daily_expense_sums(
            self.db, start, end,
            TransactionJournal.budget_id == budget.id,
            account_ids=account_ids,
        )
        return fold_into_buckets(daily, start, end, granularity)

    def expenses_per_day(self, budget: Budget, start: date, end: date) -> List[Tuple[str, Decimal]]:
        return self.expenses_per_bucket(budget, start, end, "day")

    def expenses_per_month(self, budget: Budget, start: date, end: date) -> List[Tuple[str, Decimal]]:
        return self.expenses_per_bucket(budget, start, end, "month")

    def spent_per_day(self, budget: Budget, start: date, end: date) -> Dict[str, Decimal]:
        """{"YYYY-MM-DD": amount} for days with spending only."""
        validate_range(start, end)
        daily = daily_expense_sums(self.db, start, end, TransactionJournal.budget_id == budget.id)
        return {day.isoformat(): amount for day, amount in sorted(daily.items()) if amount != 0}

    def spent_on_date(self, budget: Budget, on_date: date) -> Decimal:
        """
        Expenses on one day, counting journals linked to the budget directly
        or through a tag associated with the budget. A journal matching both
        ways is counted once.
        """
        tagged_journal_ids = (
            select(JournalTag.journal_id)
            .join(Tag, Tag.id == JournalTag.tag_id)
            .where(Tag.budget_id == budget.id)
        )
        total = self.db.query(func.sum(TransactionJournal.amount)).filter(
            TransactionJournal.occurred_on == on_date,
            TransactionJournal.amount < 0,
            or_(
                TransactionJournal.budget_id == budget.id,
                TransactionJournal.id.in_(tagged_journal_ids),
            ),
        ).scalar()
        return total or _ZERO

    def spent_per_repetition(
        self, budget: Budget, start: date, end: date,
    ) -> List[Tuple[Repetition, Decimal]]:
        """
        Expenses per repetition in [start, end]. With overlapping limits each
        day's spending goes to exactly one repetition (see domain.repetition.attribute).
        """
        reps = LimitRepetitionResolver(self.db).repetitions_in_range(budget, start, end)
        totals: Dict[Repetition, Decimal] = {rep: _ZERO for rep in reps}
        daily = daily_expense_sums(self.db, start, end, TransactionJournal.budget_id == budget.id)
        for day, amount in daily.items():
            rep = attribute(reps, day)
            if rep is not None:
                totals[rep] += amount
        return [(rep, totals[rep]) for rep in reps]

    def journals_for_budget(
        self,
        budget: Budget,
        repetition: Repetition | None = None,
        page_size: int | None = None,
        cursor: JournalCursor | None = None,
    ) -> JournalPage:
        """
        Journals linked to the budget, newest first, one page at a time.

        Pages are cut on the (occurred_on, id) sort key rather than an offset:
        pass page.next_cursor to fetch the next page. Journals appended between
        calls never shift the remaining pages.
        """
        if page_size is None:
            page_size = get_settings().JOURNALS_PAGE_SIZE
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if repetition is not None and repetition.budget_id != budget.id:
            raise ValueError(f"repetition belongs to budget #{repetition.budget_id}, not #{budget.id}")

        q = self.db.query(TransactionJournal).filter(TransactionJournal.budget_id == budget.id)
        if repetition is not None:
            q = q.filter(
                TransactionJournal.occurred_on >= repetition.start_date,
                TransactionJournal.occurred_on < repetition.end_date,
            )
        total = q.count()

        if cursor is not None:
            q = q.filter(or_(
                TransactionJournal.occurred_on < cursor.occurred_on,
                and_(
                    TransactionJournal.occurred_on == cursor.occurred_on,
                    TransactionJournal.id < cursor.journal_id,
                ),
            ))

        rows = q.order_by(
            TransactionJournal.occurred_on.desc(),
            TransactionJournal.id.desc(),
        ).limit(page_size + 1).all()

        items = rows[:page_size]
        next_cursor = None
        if len(rows) > page_size:
            last = items[-1]
            next_cursor = JournalCursor(occurred_on=last.occurred_on, journal_id=last.id)
        return JournalPage(items=items, next_cursor=next_cursor, total=total)

    def first_activity(self, budget: Budget) -> date | None:
        """Date of the earliest journal linked to the budget."""
        return self.db.query(func.min(TransactionJournal.occurred_on)).filter(
            TransactionJournal.budget_id == budget.id,
        ).scalar()
