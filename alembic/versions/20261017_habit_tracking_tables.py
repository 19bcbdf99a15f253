"""create habit tracking, task and project tables

Revision ID: 20261017_habit_tracking
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261017_habit_tracking'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'habits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.String(length=1000), nullable=True),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('unit', sa.String(length=40), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('period', sa.String(length=10), nullable=True),
        sa.Column('quota_amount', sa.Float(), nullable=True),
        sa.Column('near_threshold_percent', sa.Integer(), nullable=True),
        sa.Column('allow_soft_over', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('build_target', sa.Float(), nullable=True),
        sa.Column('schedule_pattern', sa.JSON(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('archived_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_habits_owner_id', 'habits', ['owner_id'])
    op.create_index('ix_habits_kind', 'habits', ['kind'])
    op.create_index('ix_habits_active', 'habits', ['active'])
    op.create_index('ix_habits_deleted_at', 'habits', ['deleted_at'])

    op.create_table(
        'habit_periods',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('habit_id', sa.Integer(), sa.ForeignKey('habits.id'), nullable=False),
        sa.Column('local_period_start', sa.String(length=10), nullable=False),
        sa.Column('local_period_end', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('total_amount', sa.Float(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('habit_id', 'local_period_start', name='uq_habit_periods_habit_start'),
    )
    op.create_index('ix_habit_periods_habit_id', 'habit_periods', ['habit_id'])
    op.create_index('ix_habit_periods_local_period_start', 'habit_periods', ['local_period_start'])

    op.create_table(
        'habit_usage_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('habit_id', sa.Integer(), sa.ForeignKey('habits.id'), nullable=False),
        sa.Column('occurred_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('local_date', sa.String(length=10), nullable=False),
        sa.Column('local_period_start', sa.String(length=10), nullable=False),
        sa.Column('local_period_end', sa.String(length=10), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_habit_usage_events_habit_id', 'habit_usage_events', ['habit_id'])
    op.create_index('ix_habit_usage_events_local_period_start', 'habit_usage_events', ['local_period_start'])

    op.create_table(
        'habit_schedule_occurrences',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('habit_id', sa.Integer(), sa.ForeignKey('habits.id'), nullable=False),
        sa.Column('scheduled_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('local_date', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('habit_id', 'scheduled_at', name='uq_habit_occurrences_habit_slot'),
    )
    op.create_index('ix_habit_schedule_occurrences_habit_id', 'habit_schedule_occurrences', ['habit_id'])
    op.create_index('ix_habit_schedule_occurrences_local_date', 'habit_schedule_occurrences', ['local_date'])

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_projects_owner_id', 'projects', ['owner_id'])
    op.create_index('ix_projects_deleted_at', 'projects', ['deleted_at'])

    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_tasks_owner_id', 'tasks', ['owner_id'])
    op.create_index('ix_tasks_project_id', 'tasks', ['project_id'])
    op.create_index('ix_tasks_status', 'tasks', ['status'])
    op.create_index('ix_tasks_deleted_at', 'tasks', ['deleted_at'])

    op.create_table(
        'time_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('tasks.id'), nullable=False),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('ended_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=False),
    )
    op.create_index('ix_time_entries_task_id', 'time_entries', ['task_id'])


def downgrade() -> None:
    op.drop_table('time_entries')
    op.drop_table('tasks')
    op.drop_table('projects')
    op.drop_table('habit_schedule_occurrences')
    op.drop_table('habit_usage_events')
    op.drop_table('habit_periods')
    op.drop_table('habits')
