"""create experts and sessions tables

Revision ID: a3c91e0d5b27
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a3c91e0d5b27'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create experts table
    op.create_table('experts',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('user_id', sa.String(length=100), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
    sa.Column('positioning', sa.String(length=255), nullable=False),
    sa.Column('bio', sa.Text(), nullable=True),
    sa.Column('expertise_areas', sa.JSON(), nullable=False),
    sa.Column('example_problems', sa.JSON(), nullable=False),
    sa.Column('years_experience', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('linkedin_url', sa.String(length=500), nullable=True),
    sa.Column('portfolio_url', sa.String(length=500), nullable=True),
    sa.Column('rate_10min', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('rate_20min', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('availability_slots', sa.JSON(), nullable=False),
    sa.Column('accept_asap_calls', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('timezone', sa.String(length=64), nullable=False, server_default='Europe/London'),
    sa.Column('total_sessions', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('average_rating', sa.Float(), nullable=False, server_default='0'),
    sa.Column('nps_score', sa.Float(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint("status IN ('pending', 'approved', 'rejected', 'suspended')", name='expert_status_check'),
    sa.CheckConstraint('average_rating >= 0 AND average_rating <= 5', name='expert_rating_range'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id')
    )
    op.create_index('idx_experts_status', 'experts', ['status'], unique=False)
    op.create_index('idx_experts_user_id', 'experts', ['user_id'], unique=False)

    # Create sessions table
    op.create_table('sessions',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('buyer_id', sa.String(length=100), nullable=False),
    sa.Column('expert_id', sa.Uuid(), nullable=True),
    sa.Column('problem_title', sa.String(length=255), nullable=False),
    sa.Column('problem_description', sa.Text(), nullable=False),
    sa.Column('problem_category', sa.String(length=50), nullable=False, server_default='other'),
    sa.Column('problem_structured', sa.JSON(), nullable=False),
    sa.Column('duration_minutes', sa.Integer(), nullable=False),
    sa.Column('price_gbp', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('platform_fee_gbp', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('expert_payout_gbp', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('scheduled_time', sa.DateTime(timezone=True), nullable=True),
    sa.Column('urgency', sa.String(length=20), nullable=False, server_default='this_week'),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='pending_payment'),
    sa.Column('ai_summary', sa.Text(), nullable=True),
    sa.Column('action_items', sa.JSON(), nullable=False),
    sa.Column('problem_resolved', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('buyer_rating', sa.Integer(), nullable=True),
    sa.Column('buyer_feedback', sa.Text(), nullable=True),
    sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('duration_minutes IN (10, 20)', name='session_duration_check'),
    sa.CheckConstraint('buyer_rating IS NULL OR (buyer_rating >= 1 AND buyer_rating <= 5)', name='session_rating_range'),
    sa.ForeignKeyConstraint(['expert_id'], ['experts.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id')
    )

    # Create indexes for performance
    op.create_index('idx_sessions_status', 'sessions', ['status'], unique=False)
    op.create_index('idx_sessions_expert', 'sessions', ['expert_id'], unique=False)
    op.create_index('idx_sessions_buyer', 'sessions', ['buyer_id'], unique=False)


def downgrade() -> None:
    # Drop indexes
    op.drop_index('idx_sessions_buyer', table_name='sessions')
    op.drop_index('idx_sessions_expert', table_name='sessions')
    op.drop_index('idx_sessions_status', table_name='sessions')
    op.drop_index('idx_experts_user_id', table_name='experts')
    op.drop_index('idx_experts_status', table_name='experts')

    # Drop tables
    op.drop_table('sessions')
    op.drop_table('experts')
