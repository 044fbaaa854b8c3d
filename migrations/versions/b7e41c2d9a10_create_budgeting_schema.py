"""create budgeting schema

Revision ID: b7e41c2d9a10
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b7e41c2d9a10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'budgets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurrence_type', sa.String(32), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'cards',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'budget_cards',
        sa.Column('budget_id', sa.Integer(), sa.ForeignKey('budgets.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('card_id', sa.Integer(), sa.ForeignKey('cards.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'expense_categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('color', sa.String(16), nullable=True),
    )

    op.create_table(
        'planned_expenses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('budget_id', sa.Integer(), sa.ForeignKey('budgets.id', ondelete='CASCADE'), nullable=True),
        sa.Column('description', sa.String(255), nullable=False, server_default=''),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('expense_categories.id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('planned_amount', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('actual_amount', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('transaction_date', sa.DateTime(), nullable=False),
        sa.Column('is_global', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('global_template_id', sa.Integer(), nullable=True),
    )
    op.create_index('ix_planned_expenses_budget_id', 'planned_expenses', ['budget_id'])
    op.create_index('ix_planned_expenses_global_template_id', 'planned_expenses', ['global_template_id'])
    op.create_index('ix_planned_budget_date', 'planned_expenses', ['budget_id', 'transaction_date'])

    op.create_table(
        'unplanned_expenses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('card_id', sa.Integer(), sa.ForeignKey('cards.id', ondelete='CASCADE'), nullable=False),
        sa.Column('description', sa.String(255), nullable=False, server_default=''),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('expense_categories.id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('transaction_date', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_unplanned_expenses_card_id', 'unplanned_expenses', ['card_id'])
    op.create_index('ix_unplanned_card_date', 'unplanned_expenses', ['card_id', 'transaction_date'])

    op.create_table(
        'incomes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('source', sa.String(255), nullable=False),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('is_planned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurrence', sa.String(32), nullable=True),
        sa.Column('recurrence_end_date', sa.DateTime(), nullable=True),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('incomes.id', ondelete='CASCADE'), nullable=True),
    )
    op.create_index('ix_incomes_date', 'incomes', ['date'])
    op.create_index('ix_incomes_parent_id', 'incomes', ['parent_id'])

    op.create_table(
        'app_preferences',
        sa.Column('key', sa.String(128), primary_key=True),
        sa.Column('value', sa.String(255), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('app_preferences')
    op.drop_index('ix_incomes_parent_id', table_name='incomes')
    op.drop_index('ix_incomes_date', table_name='incomes')
    op.drop_table('incomes')
    op.drop_index('ix_unplanned_card_date', table_name='unplanned_expenses')
    op.drop_index('ix_unplanned_expenses_card_id', table_name='unplanned_expenses')
    op.drop_table('unplanned_expenses')
    op.drop_index('ix_planned_budget_date', table_name='planned_expenses')
    op.drop_index('ix_planned_expenses_global_template_id', table_name='planned_expenses')
    op.drop_index('ix_planned_expenses_budget_id', table_name='planned_expenses')
    op.drop_table('planned_expenses')
    op.drop_table('expense_categories')
    op.drop_table('budget_cards')
    op.drop_table('cards')
    op.drop_table('budgets')
