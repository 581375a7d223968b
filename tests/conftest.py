"""
Pytest fixtures for testing
"""
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from budgetbook.infrastructure.db.session import Base
from budgetbook.infrastructure.db.models import Account, Budget, TransactionJournal


@pytest.fixture
def db_engine():
    """Create in-memory SQLite engine for tests"""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sample_user_id():
    """Sample user ID for tests"""
    return 1


@pytest.fixture
def accounts(db_session, sample_user_id):
    """checking + savings (own), supermarket (external), foreign (someone else's own account)."""
    checking = Account(user_id=sample_user_id, name="Checking", is_own=True)
    savings = Account(user_id=sample_user_id, name="Savings", is_own=True)
    supermarket = Account(user_id=sample_user_id, name="Supermarket", is_own=False)
    foreign = Account(user_id=sample_user_id + 1, name="Friend's wallet", is_own=True)
    db_session.add_all([checking, savings, supermarket, foreign])
    db_session.flush()
    return {"checking": checking, "savings": savings, "supermarket": supermarket, "foreign": foreign}


@pytest.fixture
def make_budget(db_session, sample_user_id):
    def _make(name: str, is_active: bool = True) -> Budget:
        budget = Budget(user_id=sample_user_id, name=name, is_active=is_active)
        db_session.add(budget)
        db_session.flush()
        return budget
    return _make


@pytest.fixture
def add_journal(db_session, sample_user_id):
    """Insert a journal; amount is a string like "-50.00"."""
    def _add(occurred_on, amount, source, destination, budget=None, description="") -> TransactionJournal:
        journal = TransactionJournal(
            user_id=sample_user_id,
            occurred_on=occurred_on,
            amount=Decimal(amount),
            source_account_id=source.id,
            destination_account_id=destination.id,
            budget_id=budget.id if budget is not None else None,
            description=description,
        )
        db_session.add(journal)
        db_session.flush()
        return journal
    return _add
