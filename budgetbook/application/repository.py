"""
BudgetRepository: one entry point for every budget operation of a user.

Delegates to the resolver, aggregator, corrector and reporter, and to the
administrative use cases. No logic of its own.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from sqlalchemy.orm import Session

from budgetbook.domain.repetition import Repetition
from budgetbook.infrastructure.db.models import Budget, BudgetLimit, TransactionJournal
from budgetbook.application.balance import BalanceCorrector
from budgetbook.application.budget_report import BudgetSetReporter, Series
from budgetbook.application.budgets import (
    CleanupBudgetsUseCase, DestroyBudgetUseCase, StoreBudgetUseCase, UpdateBudgetUseCase,
    UpdateLimitAmountUseCase, get_budget_limits, get_budget_reps, get_budgets,
)
from budgetbook.application.expenses import ExpenseAggregator, JournalCursor, JournalPage
from budgetbook.application.limits import LimitRepetitionResolver


class BudgetRepository:

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id
        self.resolver = LimitRepetitionResolver(db)
        self.expenses = ExpenseAggregator(db)
        self.corrector = BalanceCorrector(db)
        self.reporter = BudgetSetReporter(db, user_id)

    # --- administration ---

    def store(self, data: dict) -> Budget:
        return StoreBudgetUseCase(self.db).execute(
            user_id=self.user_id,
            name=data.get("name", ""),
            is_active=data.get("is_active", True),
        )

    def update(self, budget: Budget, data: dict) -> Budget:
        return UpdateBudgetUseCase(self.db).execute(
            budget, name=data.get("name"), is_active=data.get("is_active"),
        )

    def destroy(self, budget: Budget) -> bool:
        return DestroyBudgetUseCase(self.db).execute(budget)

    def update_limit_amount(self, budget: Budget, on_date: date, amount) -> BudgetLimit | None:
        return UpdateLimitAmountUseCase(self.db).execute(budget, on_date, amount)

    def cleanup_budgets(self) -> int:
        return CleanupBudgetsUseCase(self.db).execute(user_id=self.user_id)

    # --- budgets & limits ---

    def get_budgets(self) -> List[Budget]:
        return get_budgets(self.db, self.user_id)

    def get_active_budgets(self) -> List[Budget]:
        return self.reporter.active_budgets()

    def get_inactive_budgets(self) -> List[Budget]:
        return self.reporter.inactive_budgets()

    def get_budget_limits(self, budget: Budget) -> List[BudgetLimit]:
        return get_budget_limits(self.db, budget)

    def get_budget_reps(self, budget: Budget) -> List[Repetition]:
        return get_budget_reps(self.db, budget)

    def get_budget_limit_repetitions(self, budget: Budget, start: date, end: date) -> List[Repetition]:
        return self.resolver.repetitions_in_range(budget, start, end)

    def get_budgets_and_limits_in_range(self, start: date, end: date) -> List[Tuple[Budget, Repetition | None]]:
        return self.reporter.budgets_and_limits_in_range(start, end)

    def get_current_repetition(self, budget: Budget, start: date, end: date) -> Repetition | None:
        return self.resolver.current_repetition(budget, start, end)

    def get_first_budget_limit_date(self, budget: Budget) -> date | None:
        return self.resolver.first_limit_date(budget)

    def get_last_budget_limit_date(self, budget: Budget) -> date | None:
        """Deprecated: derive from get_budget_limit_repetitions instead."""
        return self.resolver.last_limit_date(budget)

    def get_limit_amount_on_date(self, budget: Budget, on_date: date) -> Decimal | None:
        """Deprecated: use get_current_repetition(budget, on_date, on_date).amount."""
        return self.resolver.limit_amount_on_date(budget, on_date)

    # --- expenses ---

    def first_activity(self, budget: Budget) -> date | None:
        return self.expenses.first_activity(budget)

    def get_expenses_per_day(self, budget: Budget, start: date, end: date) -> Series:
        return self.expenses.expenses_per_day(budget, start, end)

    def get_expenses_per_month(self, budget: Budget, start: date, end: date) -> Series:
        return self.expenses.expenses_per_month(budget, start, end)

    def spent_per_day(self, budget: Budget, start: date, end: date) -> Dict[str, Decimal]:
        return self.expenses.spent_per_day(budget, start, end)

    def expenses_on_day(self, budget: Budget, on_date: date) -> Decimal:
        return self.expenses.spent_on_date(budget, on_date)

    def get_journals(
        self,
        budget: Budget,
        repetition: Repetition | None = None,
        take: int = 50,
        cursor: JournalCursor | None = None,
    ) -> JournalPage:
        return self.expenses.journals_for_budget(budget, repetition, page_size=take, cursor=cursor)

    def balance_in_period(self, budget: Budget, start: date, end: date, account_ids: Iterable[int]) -> Decimal:
        return self.corrector.balance_in_period(budget, start, end, account_ids)

    # --- budget sets ---

    def get_budgets_and_expenses_per_month(
        self, account_ids: Iterable[int] | None, start: date, end: date,
    ) -> Dict[int, Series]:
        return self.reporter.budgets_and_expenses_per_month(account_ids, start, end)

    def get_budgets_and_expenses_per_year(
        self, budgets: Iterable[Budget], account_ids: Iterable[int] | None, start: date, end: date,
    ) -> Dict[int, Series]:
        return self.reporter.expenses_per_year(budgets, account_ids, start, end)

    def get_budgeted_per_year(self, budgets: Iterable[Budget], start: date, end: date) -> Dict[int, Series]:
        return self.reporter.budgeted_per_year(budgets, start, end)

    def get_without_budget(self, start: date, end: date) -> List[TransactionJournal]:
        return self.reporter.without_budget(start, end)

    def get_without_budget_sum(self, start: date, end: date) -> Decimal:
        return self.reporter.without_budget_sum(start, end)
