"""Job queue, dead-letter sink and ops incidents

Revision ID: 004_sync_job_queue
Revises: 003_unified_sales
Create Date: 2025-01-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '004_sync_job_queue'
down_revision: Union[str, None] = '003_unified_sales'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'sync_jobs',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('queue_name', sa.String(100), nullable=False),
        sa.Column('payload', postgresql.JSON(), nullable=False),
        sa.Column('read_ct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('enqueued_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('visible_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
    )
    op.create_index('idx_sync_jobs_queue_visible', 'sync_jobs', ['queue_name', 'visible_at'])

    op.create_table(
        'dead_letter_jobs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('original_job_id', sa.BigInteger(), nullable=False),
        sa.Column('queue_name', sa.String(100), nullable=False),
        sa.Column('payload', postgresql.JSON(), nullable=False),
        sa.Column('read_ct', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('enqueued_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('dead_lettered_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_dead_letter_jobs_queue', 'dead_letter_jobs', ['queue_name', 'dead_lettered_at'])

    op.create_table(
        'ops_incidents',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('restaurant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=True),
        sa.Column('kind', sa.String(50), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('status', sa.String(20), nullable=False, server_default='open'),
        sa.Column('meta', postgresql.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_ops_incidents_status', 'ops_incidents', ['status', 'created_at'])


def downgrade() -> None:
    op.drop_index('idx_ops_incidents_status', table_name='ops_incidents')
    op.drop_table('ops_incidents')
    op.drop_index('idx_dead_letter_jobs_queue', table_name='dead_letter_jobs')
    op.drop_table('dead_letter_jobs')
    op.drop_index('idx_sync_jobs_queue_visible', table_name='sync_jobs')
    op.drop_table('sync_jobs')
