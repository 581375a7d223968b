"""create budget tables

Revision ID: 5d1e0c7a9b21
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5d1e0c7a9b21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'budgets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_budget_user_active', 'budgets', ['user_id', 'is_active'])

    op.create_table(
        'budget_limits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('budget_id', sa.Integer(), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('repeat_freq', sa.String(16), nullable=False, server_default='MONTHLY'),
        sa.Column('repeats', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('until_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_budget_limit_budget_start', 'budget_limits', ['budget_id', 'start_date'])

    op.create_table(
        'limit_repetitions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('budget_limit_id', sa.Integer(), nullable=False, index=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('budget_limit_id', 'start_date', name='uq_limit_repetition_start'),
    )

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_own', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'transaction_journals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('occurred_on', sa.Date(), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('source_account_id', sa.Integer(), nullable=False, index=True),
        sa.Column('destination_account_id', sa.Integer(), nullable=False, index=True),
        sa.Column('budget_id', sa.Integer(), nullable=True, index=True),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_journal_budget_date', 'transaction_journals', ['budget_id', 'occurred_on'])

    op.create_table(
        'tags',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('budget_id', sa.Integer(), nullable=True, index=True),
        sa.UniqueConstraint('user_id', 'name', name='uq_tag_user_name'),
    )

    op.create_table(
        'journal_tags',
        sa.Column('journal_id', sa.Integer(), primary_key=True),
        sa.Column('tag_id', sa.Integer(), primary_key=True),
    )
    op.create_index('ix_journal_tags_tag', 'journal_tags', ['tag_id'])


def downgrade() -> None:
    op.drop_index('ix_journal_tags_tag', table_name='journal_tags')
    op.drop_table('journal_tags')
    op.drop_table('tags')
    op.drop_index('ix_journal_budget_date', table_name='transaction_journals')
    op.drop_table('transaction_journals')
    op.drop_table('accounts')
    op.drop_table('limit_repetitions')
    op.drop_index('ix_budget_limit_budget_start', table_name='budget_limits')
    op.drop_table('budget_limits')
    op.drop_index('ix_budget_user_active', table_name='budgets')
    op.drop_table('budgets')
