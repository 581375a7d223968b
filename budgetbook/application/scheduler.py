"""
Background scheduler for budget maintenance.

Jobs:
  - Budget cleanup (nightly, CLEANUP_HOUR_UTC:00 UTC)
  - Repetition materialization (nightly, CLEANUP_HOUR_UTC:30 UTC)
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(daemon=True)


def _run_cleanup_budgets():
    from budgetbook.infrastructure.db.session import get_session_factory
    from budgetbook.application.budgets import CleanupBudgetsUseCase

    Session = get_session_factory()
    db = Session()
    try:
        CleanupBudgetsUseCase(db).execute()
    except Exception:
        logger.exception("Budget cleanup job failed")
    finally:
        db.close()


def _run_materialize_repetitions():
    from budgetbook.config import get_settings
    from budgetbook.domain.period import add_months
    from budgetbook.infrastructure.db.models import Budget
    from budgetbook.infrastructure.db.session import get_session_factory
    from budgetbook.application.budgets import MaterializeRepetitionsUseCase
    from budgetbook.application.budgets import local_today

    Session = get_session_factory()
    db = Session()
    try:
        start = local_today()
        end = add_months(start, get_settings().MATERIALIZE_MONTHS_AHEAD)
        budgets = db.query(Budget).filter(
            Budget.deleted_at.is_(None),
            Budget.is_active == True,
        ).order_by(Budget.id.asc()).all()

        use_case = MaterializeRepetitionsUseCase(db)
        total = 0
        for budget in budgets:
            total += use_case.execute(budget, start, end)
        logger.info("Materialized %d repetition(s) for %d budget(s)", total, len(budgets))
    except Exception:
        logger.exception("Repetition materialization job failed")
    finally:
        db.close()


def start_scheduler():
    """Start the background scheduler with the maintenance jobs."""
    from budgetbook.config import get_settings

    hour = get_settings().CLEANUP_HOUR_UTC

    scheduler.add_job(
        _run_cleanup_budgets,
        CronTrigger(hour=hour, minute=0),
        id="cleanup_budgets",
        replace_existing=True,
    )

    # After cleanup, so removed limits are not materialized again
    scheduler.add_job(
        _run_materialize_repetitions,
        CronTrigger(hour=hour, minute=30),
        id="materialize_repetitions",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started: cleanup_budgets (%02d:00 UTC), materialize_repetitions (%02d:30 UTC)",
        hour, hour,
    )


def shutdown_scheduler():
    """Gracefully stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    from budgetbook.config import get_settings

    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _run_cleanup_budgets()
    _run_materialize_repetitions()
