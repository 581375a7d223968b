"""
Budget administration: CRUD use cases, limit maintenance and query helpers.

Budgets, limits and repetitions are plain CRUD over the store.
Use cases commit their own unit of work; query helpers never write.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from budgetbook.config import get_settings
from budgetbook.domain.period import validate_range
from budgetbook.domain.repetition import (
    Repetition, VALID_FREQ, attribute, iter_repetitions, limit_spec_from_db, repetition_from_db,
)
from budgetbook.infrastructure.db.models import Budget, BudgetLimit, LimitRepetition
from budgetbook.utils.validation import parse_amount

logger = logging.getLogger(__name__)


class BudgetValidationError(ValueError):
    pass


class NotFoundError(LookupError):
    """A budget / limit / repetition addressed by id does not exist"""
    pass


def local_today() -> date:
    """Today in the configured TIMEZONE."""
    return datetime.now(ZoneInfo(get_settings().TIMEZONE)).date()


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------


def get_budgets(db: Session, user_id: int) -> list[Budget]:
    """All non-deleted budgets of the user, ordered by name."""
    return db.query(Budget).filter(
        Budget.user_id == user_id,
        Budget.deleted_at.is_(None),
    ).order_by(Budget.name.asc(), Budget.id.asc()).all()


def get_active_budgets(db: Session, user_id: int) -> list[Budget]:
    return [b for b in get_budgets(db, user_id) if b.is_active]


def get_inactive_budgets(db: Session, user_id: int) -> list[Budget]:
    return [b for b in get_budgets(db, user_id) if not b.is_active]


def get_budget(db: Session, user_id: int, budget_id: int) -> Budget:
    budget = db.query(Budget).filter(
        Budget.id == budget_id,
        Budget.user_id == user_id,
        Budget.deleted_at.is_(None),
    ).first()
    if budget is None:
        raise NotFoundError(f"Budget #{budget_id} not found")
    return budget


def get_budget_limits(db: Session, budget: Budget) -> list[BudgetLimit]:
    """Limits of the budget ordered by start_date."""
    return db.query(BudgetLimit).filter(
        BudgetLimit.budget_id == budget.id,
    ).order_by(BudgetLimit.start_date.asc(), BudgetLimit.id.asc()).all()


def get_budget_limit(db: Session, limit_id: int) -> BudgetLimit:
    limit = db.query(BudgetLimit).filter(BudgetLimit.id == limit_id).first()
    if limit is None:
        raise NotFoundError(f"Budget limit #{limit_id} not found")
    return limit


def get_budget_reps(db: Session, budget: Budget) -> list[Repetition]:
    """Every materialized repetition of the budget's limits, ordered by start_date."""
    rows = (
        db.query(LimitRepetition)
        .join(BudgetLimit, BudgetLimit.id == LimitRepetition.budget_limit_id)
        .filter(BudgetLimit.budget_id == budget.id)
        .order_by(LimitRepetition.start_date.asc(), LimitRepetition.id.asc())
        .all()
    )
    return [repetition_from_db(row, budget.id) for row in rows]


def get_repetition(db: Session, repetition_id: int) -> Repetition:
    row = (
        db.query(LimitRepetition, BudgetLimit.budget_id)
        .join(BudgetLimit, BudgetLimit.id == LimitRepetition.budget_limit_id)
        .filter(LimitRepetition.id == repetition_id)
        .first()
    )
    if row is None:
        raise NotFoundError(f"Limit repetition #{repetition_id} not found")
    repetition, budget_id = row
    return repetition_from_db(repetition, budget_id)


# ---------------------------------------------------------------------------
# Budget CRUD
# ---------------------------------------------------------------------------


class StoreBudgetUseCase:
    """Create a new budget for the user."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, user_id: int, name: str, is_active: bool = True) -> Budget:
        name = (name or "").strip()
        if not name:
            raise BudgetValidationError("Budget name is required")
        _ensure_unique_name(self.db, user_id, name)

        budget = Budget(user_id=user_id, name=name, is_active=is_active)
        self.db.add(budget)
        self.db.commit()
        logger.info("Budget #%d '%s' created for user %d", budget.id, name, user_id)
        return budget


class UpdateBudgetUseCase:
    """Rename and/or (de)activate a budget."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, budget: Budget, name: str | None = None, is_active: bool | None = None) -> Budget:
        if name is not None:
            name = name.strip()
            if not name:
                raise BudgetValidationError("Budget name is required")
            if name != budget.name:
                _ensure_unique_name(self.db, budget.user_id, name, exclude_id=budget.id)
            budget.name = name
        if is_active is not None:
            budget.is_active = is_active
        self.db.commit()
        return budget


class DestroyBudgetUseCase:
    """Soft-delete a budget. Its limits become orphans for CleanupBudgetsUseCase."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, budget: Budget) -> bool:
        budget.deleted_at = datetime.now(timezone.utc)
        self.db.commit()
        logger.info("Budget #%d soft-deleted", budget.id)
        return True


def _ensure_unique_name(db: Session, user_id: int, name: str, exclude_id: int | None = None) -> None:
    q = db.query(Budget).filter(
        Budget.user_id == user_id,
        Budget.name == name,
        Budget.deleted_at.is_(None),
    )
    if exclude_id is not None:
        q = q.filter(Budget.id != exclude_id)
    if q.first() is not None:
        raise BudgetValidationError(f"Budget '{name}' already exists")


# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------


class StoreBudgetLimitUseCase:
    """Attach a recurring limit to a budget and materialize its windows up to today."""

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        budget: Budget,
        amount,
        start_date: date,
        repeat_freq: str = "MONTHLY",
        repeats: bool = True,
    ) -> BudgetLimit:
        freq = repeat_freq.upper()
        if freq not in VALID_FREQ:
            raise BudgetValidationError(f"Invalid repeat_freq: {repeat_freq}")
        value = _parse_limit_amount(amount)

        limit = BudgetLimit(
            budget_id=budget.id,
            amount=value,
            start_date=start_date,
            repeat_freq=freq,
            repeats=repeats,
        )
        self.db.add(limit)
        self.db.flush()
        _materialize_new_limit(self.db, limit)
        self.db.commit()
        return limit


class UpdateLimitAmountUseCase:
    """
    Set the budgeted amount from the cycle containing on_date onwards.

    - a limit covers on_date when one of its repetitions contains it; with
      several covering limits the attribution policy picks one
    - no covering limit: a one-off MONTHLY limit starting on on_date is created
    - on_date in the covering limit's first cycle: the limit is updated in place
      (amount 0 deletes it and its repetitions)
    - on_date in a later cycle: the limit is ended before that cycle and, unless
      the amount is 0, a new limit with the same cadence takes over from it.
      Earlier cycles keep their amount.

    The budget's limits are locked and every change (limits and materialized
    repetitions) is written in a single commit.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, budget: Budget, on_date: date, amount) -> BudgetLimit | None:
        value = _parse_limit_amount(amount)

        limits = (
            self.db.query(BudgetLimit)
            .filter(BudgetLimit.budget_id == budget.id)
            .order_by(BudgetLimit.id.asc())
            .with_for_update()
            .all()
        )
        covering, rep = _covering_limit(limits, on_date)

        if covering is None:
            if value == 0:
                return None
            limit = self._add_limit(budget, value, on_date, "MONTHLY", repeats=False)
            self.db.commit()
            logger.info("Budget #%d: new limit %s from %s", budget.id, value, on_date.isoformat())
            return limit

        if rep.start_date == covering.start_date:
            if value == 0:
                _delete_limit(self.db, covering)
                self.db.commit()
                logger.info("Budget #%d: limit #%d removed (amount 0)", budget.id, covering.id)
                return None
            covering.amount = value
            self.db.query(LimitRepetition).filter(
                LimitRepetition.budget_limit_id == covering.id,
            ).update({LimitRepetition.amount: value}, synchronize_session=False)
            self.db.commit()
            logger.info("Budget #%d: limit #%d amount set to %s", budget.id, covering.id, value)
            return covering

        # Split: the covering limit stops before the cycle that contains on_date
        old_until = covering.until_date
        covering.until_date = rep.start_date - timedelta(days=1)
        self.db.query(LimitRepetition).filter(
            LimitRepetition.budget_limit_id == covering.id,
            LimitRepetition.start_date >= rep.start_date,
        ).delete(synchronize_session=False)

        limit = None
        if value > 0:
            limit = self._add_limit(
                budget, value, rep.start_date, covering.repeat_freq,
                repeats=covering.repeats, until_date=old_until,
            )
        self.db.commit()
        logger.info(
            "Budget #%d: limit #%d ended on %s, amount %s from %s",
            budget.id, covering.id, covering.until_date.isoformat(), value, rep.start_date.isoformat(),
        )
        return limit

    def _add_limit(
        self,
        budget: Budget,
        value: Decimal,
        start_date: date,
        repeat_freq: str,
        repeats: bool,
        until_date: date | None = None,
    ) -> BudgetLimit:
        limit = BudgetLimit(
            budget_id=budget.id,
            amount=value,
            start_date=start_date,
            repeat_freq=repeat_freq,
            repeats=repeats,
            until_date=until_date,
        )
        self.db.add(limit)
        self.db.flush()
        _materialize_new_limit(self.db, limit)
        return limit


def _parse_limit_amount(amount) -> Decimal:
    try:
        value = parse_amount(amount)
    except ValueError as e:
        raise BudgetValidationError(str(e)) from e
    if value < 0:
        raise BudgetValidationError("amount must be >= 0")
    return value


def _covering_limit(
    limits: List[BudgetLimit], on_date: date,
) -> Tuple[BudgetLimit | None, Repetition | None]:
    by_id = {limit.id: limit for limit in limits}
    candidates = [
        rep
        for limit in limits
        for rep in iter_repetitions(limit_spec_from_db(limit), on_date, on_date)
    ]
    chosen = attribute(candidates, on_date)
    if chosen is None:
        return None, None
    return by_id[chosen.budget_limit_id], chosen


def _delete_limit(db: Session, limit: BudgetLimit) -> None:
    db.query(LimitRepetition).filter(
        LimitRepetition.budget_limit_id == limit.id,
    ).delete(synchronize_session=False)
    db.delete(limit)


def _materialize_limit(db: Session, limit: BudgetLimit, start: date, end: date) -> int:
    """Add the limit's missing repetition rows for [start, end]. Does not commit."""
    existing = {
        row.start_date
        for row in db.query(LimitRepetition.start_date).filter(
            LimitRepetition.budget_limit_id == limit.id,
        ).all()
    }
    count = 0
    for rep in iter_repetitions(limit_spec_from_db(limit), start, end):
        if rep.start_date in existing:
            continue
        db.add(LimitRepetition(
            budget_limit_id=limit.id,
            start_date=rep.start_date,
            end_date=rep.end_date,
            amount=rep.amount,
        ))
        count += 1
    return count


def _materialize_new_limit(db: Session, limit: BudgetLimit) -> int:
    # From the first window up to today; the nightly job fills the months ahead
    end = max(limit.start_date, local_today())
    return _materialize_limit(db, limit, limit.start_date, end)


class CleanupBudgetsUseCase:
    """
    Remove limits that can never be matched to spending.

    Deletes, in order:
    1. limits with amount 0
    2. limits whose budget is soft-deleted (or missing, on a global run)
    3. duplicate (budget, start_date, repeat_freq) limits, keeping the newest
    4. materialized repetitions whose limit no longer exists

    Returns the number of deleted rows.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, user_id: int | None = None) -> int:
        live_q = select(Budget.id).where(Budget.deleted_at.is_(None))
        limits_q = self.db.query(BudgetLimit)
        if user_id is not None:
            live_q = live_q.where(Budget.user_id == user_id)
            limits_q = limits_q.filter(
                BudgetLimit.budget_id.in_(select(Budget.id).where(Budget.user_id == user_id))
            )
        live_budget_ids = set(self.db.scalars(live_q).all())

        seen: set = set()
        doomed: list[BudgetLimit] = []
        for limit in limits_q.order_by(BudgetLimit.id.desc()).all():
            if limit.amount == 0 or limit.budget_id not in live_budget_ids:
                doomed.append(limit)
                continue
            key = (limit.budget_id, limit.start_date, limit.repeat_freq)
            if key in seen:
                doomed.append(limit)
                continue
            seen.add(key)

        for limit in doomed:
            self.db.delete(limit)
        self.db.flush()

        orphan_reps = self.db.query(LimitRepetition).filter(
            LimitRepetition.budget_limit_id.not_in(select(BudgetLimit.id)),
        ).delete(synchronize_session=False)

        self.db.commit()
        removed = len(doomed) + orphan_reps
        logger.info("Budget cleanup: removed %d limit(s), %d repetition(s)", len(doomed), orphan_reps)
        return removed


class MaterializeRepetitionsUseCase:
    """Insert missing limit_repetitions rows for [start, end] (idempotent)."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, budget: Budget, start: date, end: date) -> int:
        validate_range(start, end)
        count = 0
        for limit in get_budget_limits(self.db, budget):
            count += _materialize_limit(self.db, limit, start, end)
        if count:
            self.db.commit()
            logger.info("Budget #%d: materialized %d repetition(s)", budget.id, count)
        return count
