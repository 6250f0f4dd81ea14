"""Admission-control schema

Revision ID: 001_admission
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_admission'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the admission-control tables:
    - policy_configurations: singleton policy row keyed "global"
    - rate_limit_buckets: one token bucket per subject
    - blacklist_entries: suspensions, expired rows kept as history
    """
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    # Tables may already exist when the app ran with AUTO_CREATE_TABLES
    if 'policy_configurations' not in existing_tables:
        op.create_table(
            'policy_configurations',
            sa.Column('key', sa.String(length=32), nullable=False),
            sa.Column('max_tokens', sa.Integer(), nullable=False),
            sa.Column('refill_rate_per_minute', sa.Float(), nullable=False),
            sa.Column('standard_request_cost', sa.Integer(), nullable=False),
            sa.Column('shorten_url_cost', sa.Integer(), nullable=False),
            sa.Column('blacklist_threshold', sa.Integer(), nullable=False),
            sa.Column('blacklist_duration_hours', sa.Float(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('key')
        )

    if 'rate_limit_buckets' not in existing_tables:
        op.create_table(
            'rate_limit_buckets',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('subject_id', sa.String(length=255), nullable=False),
            sa.Column('tokens', sa.Integer(), nullable=False),
            sa.Column('last_refill_at', sa.DateTime(), nullable=False),
            sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('attempt_window_start', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(
            'ix_rate_limit_buckets_subject_id',
            'rate_limit_buckets',
            ['subject_id'],
            unique=True
        )

    if 'blacklist_entries' not in existing_tables:
        op.create_table(
            'blacklist_entries',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('subject_id', sa.String(length=255), nullable=False),
            sa.Column('blacklisted_at', sa.DateTime(), nullable=False),
            sa.Column('blacklisted_until', sa.DateTime(), nullable=False),
            sa.Column('reason', sa.String(length=255), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_blacklist_entries_subject_id', 'blacklist_entries', ['subject_id'])
        op.create_index('ix_blacklist_entries_blacklisted_at', 'blacklist_entries', ['blacklisted_at'])
        op.create_index('ix_blacklist_entries_blacklisted_until', 'blacklist_entries', ['blacklisted_until'])


def downgrade() -> None:
    """Drop the admission-control tables."""
    op.drop_index('ix_blacklist_entries_blacklisted_until', table_name='blacklist_entries')
    op.drop_index('ix_blacklist_entries_blacklisted_at', table_name='blacklist_entries')
    op.drop_index('ix_blacklist_entries_subject_id', table_name='blacklist_entries')
    op.drop_table('blacklist_entries')
    op.drop_index('ix_rate_limit_buckets_subject_id', table_name='rate_limit_buckets')
    op.drop_table('rate_limit_buckets')
    op.drop_table('policy_configurations')
