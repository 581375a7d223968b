"""
SQLAlchemy ORM models (budgets, limits, repetitions + read-only journal/account tables)
"""
from decimal import Decimal
from datetime import date as date_type
from sqlalchemy import String, DateTime, Integer, Text, TIMESTAMP, Date, func, Boolean, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from budgetbook.infrastructure.db.session import Base


# ============================================================================
# Budgets & limits (owned by this package)
# ============================================================================


class Budget(Base):
    """A named spending category tracked by a user"""
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true", default=True)
    deleted_at: Mapped[DateTime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index('ix_budget_user_active', 'user_id', 'is_active'),
    )


class BudgetLimit(Base):
    """Recurring ceiling amount set on a budget"""
    __tablename__ = "budget_limits"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    budget_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> budgets

    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    repeat_freq: Mapped[str] = mapped_column(String(16), nullable=False, server_default="MONTHLY")  # WEEKLY/MONTHLY/QUARTERLY/YEARLY
    repeats: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true", default=True)
    until_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)  # no cycle starts after this day

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index('ix_budget_limit_budget_start', 'budget_id', 'start_date'),
    )


class LimitRepetition(Base):
    """Materialized occurrence of a BudgetLimit for one window [start_date, end_date)"""
    __tablename__ = "limit_repetitions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    budget_limit_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> budget_limits

    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    end_date: Mapped[date_type] = mapped_column(Date, nullable=False)  # exclusive
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint('budget_limit_id', 'start_date', name='uq_limit_repetition_start'),
    )


# ============================================================================
# Journal store (read-only for the reconciliation engine)
# ============================================================================


class Account(Base):
    """Financial account; is_own marks accounts that belong to the user"""
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_own: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true", default=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class TransactionJournal(Base):
    """
    Recorded money movement.

    amount is signed from the source account's point of view:
    negative = money leaving source_account_id.
    """
    __tablename__ = "transaction_journals"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    occurred_on: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)

    source_account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    destination_account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    budget_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="", default="")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index('ix_journal_budget_date', 'budget_id', 'occurred_on'),
    )


class Tag(Base):
    """Descriptive tag; budget_id links the tag (and every journal carrying it) to a budget"""
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    budget_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'name', name='uq_tag_user_name'),
    )


class JournalTag(Base):
    """Join table: tags attached to a journal"""
    __tablename__ = "journal_tags"

    journal_id: Mapped[int] = mapped_column(Integer, nullable=False, primary_key=True)
    tag_id: Mapped[int] = mapped_column(Integer, nullable=False, primary_key=True)

    __table_args__ = (
        Index('ix_journal_tags_tag', 'tag_id'),
    )
