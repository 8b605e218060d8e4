"""Initial migration - profiles, earnings ledger, run tracking

Revision ID: 001
Revises: 
Create Date: 2025-01-15 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


profile_status = sa.Enum(
    'pending_investment', 'pending_approval', 'active', 'inactive', 'rejected', 'blocked',
    name='profilestatus'
)


def upgrade() -> None:
    op.create_table('profiles',
        sa.Column('id', sa.String(length=36), nullable=False, comment='Opaque user identifier'),
        sa.Column('username', sa.String(length=64), nullable=True, comment='Display name'),
        sa.Column('balance', sa.BigInteger(), nullable=False, comment='Withdrawable accrued amount in PKR'),
        sa.Column('daily_earnings', sa.BigInteger(), nullable=False, comment='Cumulative daily earnings credited in PKR'),
        sa.Column('referral_earnings', sa.BigInteger(), nullable=False, comment='Cumulative referral bonuses in PKR'),
        sa.Column('total_investment', sa.BigInteger(), nullable=False, comment='Sum of approved investments in PKR'),
        sa.Column('status', profile_status, nullable=False, comment='Lifecycle status'),
        sa.Column('selected_plan', sa.String(length=16), nullable=True, comment='Plan identifier chosen at investment time'),
        sa.Column('plan_start_date', sa.DateTime(timezone=True), nullable=True, comment='When the current plan became active'),
        sa.Column('referred_by', sa.String(length=36), nullable=True, comment='Profile id of the referrer'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_profiles_status', 'profiles', ['status'])

    op.create_table('earnings_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False, comment='Credited profile'),
        sa.Column('amount', sa.BigInteger(), nullable=False, comment='Amount credited in PKR'),
        sa.Column('type', sa.String(length=32), nullable=False, comment='Entry type (daily_earnings, referral_bonus)'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('earnings_date', sa.Date(), nullable=True, comment='UTC calendar day paid for; set on daily_earnings rows'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'type', 'earnings_date', name='uq_earnings_history_user_type_day')
    )
    op.create_index('idx_earnings_history_type_time', 'earnings_history', ['type', 'created_at'])
    op.create_index('idx_earnings_history_user_time', 'earnings_history', ['user_id', 'created_at'])

    op.create_table('daily_earnings_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('earnings_date', sa.Date(), nullable=False, comment='UTC day the run accrued for'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='Current status of the run'),
        sa.Column('triggered_by', sa.String(length=20), nullable=False, comment='What triggered this run (scheduler/api/cli)'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed', sa.Integer(), nullable=False, comment='Profiles paid'),
        sa.Column('expired', sa.Integer(), nullable=False, comment='Profiles moved to inactive'),
        sa.Column('skipped', sa.Integer(), nullable=False, comment='Profiles with unknown plans'),
        sa.Column('already_paid', sa.Integer(), nullable=False, comment='Profiles paid earlier that day'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_daily_earnings_runs_date_status', 'daily_earnings_runs', ['earnings_date', 'status'])


def downgrade() -> None:
    op.drop_index('idx_daily_earnings_runs_date_status', table_name='daily_earnings_runs')
    op.drop_table('daily_earnings_runs')
    op.drop_index('idx_earnings_history_user_time', table_name='earnings_history')
    op.drop_index('idx_earnings_history_type_time', table_name='earnings_history')
    op.drop_table('earnings_history')
    op.drop_index('idx_profiles_status', table_name='profiles')
    op.drop_table('profiles')
    profile_status.drop(op.get_bind(), checkfirst=True)
