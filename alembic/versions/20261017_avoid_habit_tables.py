"""add avoid habit slips and day states

Revision ID: 20261017_avoid_habits
Revises: 20261017_habit_tracking
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261017_avoid_habits'
down_revision = '20261017_habit_tracking'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'habit_slips',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('habit_id', sa.Integer(), sa.ForeignKey('habits.id'), nullable=False),
        sa.Column('occurred_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('local_date', sa.String(length=10), nullable=False),
        sa.Column('severity', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_habit_slips_habit_id', 'habit_slips', ['habit_id'])
    op.create_index('ix_habit_slips_local_date', 'habit_slips', ['local_date'])

    op.create_table(
        'habit_days',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('habit_id', sa.Integer(), sa.ForeignKey('habits.id'), nullable=False),
        sa.Column('local_date', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('habit_id', 'local_date', name='uq_habit_days_habit_date'),
    )
    op.create_index('ix_habit_days_habit_id', 'habit_days', ['habit_id'])
    op.create_index('ix_habit_days_local_date', 'habit_days', ['local_date'])


def downgrade() -> None:
    op.drop_index('ix_habit_days_local_date', table_name='habit_days')
    op.drop_index('ix_habit_days_habit_id', table_name='habit_days')
    op.drop_table('habit_days')
    op.drop_index('ix_habit_slips_local_date', table_name='habit_slips')
    op.drop_index('ix_habit_slips_habit_id', table_name='habit_slips')
    op.drop_table('habit_slips')
