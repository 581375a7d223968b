"""
Tests for the maintenance scheduler jobs.
"""
import logging
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

from budgetbook.infrastructure.db.models import BudgetLimit, LimitRepetition
from budgetbook.application import scheduler
from budgetbook.application.budgets import DestroyBudgetUseCase, StoreBudgetLimitUseCase


def _session_factory(session):
    return patch(
        "budgetbook.infrastructure.db.session.get_session_factory",
        return_value=lambda: session,
    )


class TestCleanupJob:
    def test_removes_limits_of_deleted_budgets(self, db_session, make_budget):
        budget = make_budget("Gone")
        StoreBudgetLimitUseCase(db_session).execute(budget, "10", date(2024, 1, 1))
        DestroyBudgetUseCase(db_session).execute(budget)

        with _session_factory(db_session):
            scheduler._run_cleanup_budgets()

        assert db_session.query(BudgetLimit).count() == 0

    def test_failure_is_logged_and_session_closed(self, caplog):
        session = MagicMock()
        with _session_factory(session), patch(
            "budgetbook.application.budgets.CleanupBudgetsUseCase.execute",
            side_effect=RuntimeError("boom"),
        ):
            with caplog.at_level(logging.ERROR):
                scheduler._run_cleanup_budgets()

        assert "Budget cleanup job failed" in caplog.text
        session.close.assert_called_once()


class TestMaterializeJob:
    def test_materializes_active_budgets_only(self, db_session, make_budget):
        active = make_budget("Rent")
        inactive = make_budget("Old", is_active=False)
        db_session.add_all([
            BudgetLimit(budget_id=active.id, amount=Decimal("800"), start_date=date(2024, 1, 1), repeat_freq="MONTHLY"),
            BudgetLimit(budget_id=inactive.id, amount=Decimal("50"), start_date=date(2024, 1, 1), repeat_freq="MONTHLY"),
        ])
        db_session.flush()

        with _session_factory(db_session), \
                patch("budgetbook.application.budgets.local_today", return_value=date(2024, 1, 15)), \
                patch("budgetbook.config.get_settings") as settings:
            settings.return_value.MATERIALIZE_MONTHS_AHEAD = 3
            scheduler._run_materialize_repetitions()

        rows = db_session.query(LimitRepetition).order_by(LimitRepetition.start_date).all()
        assert [r.start_date for r in rows] == [date(2024, m, 1) for m in range(1, 5)]
        assert {r.amount for r in rows} == {Decimal("800")}

    def test_failure_is_logged(self, caplog):
        session = MagicMock()
        session.query.side_effect = RuntimeError("db down")
        with _session_factory(session), \
                patch("budgetbook.application.budgets.local_today", return_value=date(2024, 1, 15)):
            with caplog.at_level(logging.ERROR):
                scheduler._run_materialize_repetitions()

        assert "Repetition materialization job failed" in caplog.text
        session.close.assert_called_once()


class TestSchedulerLifecycle:
    def test_start_registers_jobs(self):
        with patch.object(scheduler, "scheduler") as mock_scheduler:
            scheduler.start_scheduler()

        ids = [c.kwargs["id"] for c in mock_scheduler.add_job.call_args_list]
        assert ids == ["cleanup_budgets", "materialize_repetitions"]
        mock_scheduler.start.assert_called_once()

    def test_shutdown(self):
        with patch.object(scheduler, "scheduler") as mock_scheduler:
            mock_scheduler.running = True
            scheduler.shutdown_scheduler()
        mock_scheduler.shutdown.assert_called_once_with(wait=False)
