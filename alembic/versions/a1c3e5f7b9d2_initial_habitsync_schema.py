"""initial habitsync schema: users, habits, checkins

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b9d2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tg_user_id', sa.BigInteger(), nullable=False),
        sa.Column('first_name', sa.String(length=200), nullable=True),
        sa.Column('username', sa.String(length=200), nullable=True),
        sa.Column('language_code', sa.String(length=16), nullable=True),
        sa.Column('user_timezone', sa.String(), nullable=True),
        sa.Column('plan', sa.String(length=20), nullable=False, server_default='free'),
        sa.Column('trial_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('tg_user_id', name='uq_users_tg_user_id'),
    )
    op.create_index('ix_users_tg_user_id', 'users', ['tg_user_id'])
    op.create_index('ix_users_user_timezone', 'users', ['user_timezone'])

    op.create_table(
        'habits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False, server_default='boolean'),
        sa.Column('counter_target', sa.Integer(), nullable=True),
        sa.Column('counter_step', sa.Integer(), nullable=True),
        sa.Column('timer_duration', sa.Integer(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_habits_user_id', 'habits', ['user_id'])
    op.create_index('ix_habits_sort_order', 'habits', ['sort_order'])
    op.create_index('ix_habits_active', 'habits', ['active'])

    op.create_table(
        'checkins',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('habit_id', sa.Integer(), sa.ForeignKey('habits.id'), nullable=False),
        sa.Column('checkin_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('user_id', 'habit_id', 'checkin_date', name='uq_checkins_user_habit_date'),
    )
    op.create_index('ix_checkins_user_id', 'checkins', ['user_id'])
    op.create_index('ix_checkins_habit_id', 'checkins', ['habit_id'])
    op.create_index('ix_checkins_checkin_date', 'checkins', ['checkin_date'])


def downgrade() -> None:
    op.drop_table('checkins')
    op.drop_table('habits')
    op.drop_table('users')
