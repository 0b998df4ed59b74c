"""Unified sales ledger, split allocations and sync runs

Revision ID: 003_unified_sales
Revises: 002_pos_staging
Create Date: 2025-01-13

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '003_unified_sales'
down_revision: Union[str, None] = '002_pos_staging'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'unified_sales',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('restaurant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pos_system', sa.String(20), nullable=False),
        sa.Column('external_order_id', sa.String(), nullable=False),
        sa.Column('external_item_id', sa.String(), nullable=False),
        sa.Column('item_name', sa.String(), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('sale_time', sa.Time(), nullable=True),
        sa.Column('pos_category', sa.String(), nullable=True),
        sa.Column('item_type', sa.String(20), nullable=False, server_default='sale'),
        sa.Column('adjustment_type', sa.String(20), nullable=True),
        sa.Column('category_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('chart_of_accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_categorized', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('suggested_category_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('chart_of_accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('ai_confidence', sa.String(10), nullable=True),
        sa.Column('ai_reasoning', sa.Text(), nullable=True),
        sa.Column('is_split', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('parent_sale_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('unified_sales.id', ondelete='CASCADE'), nullable=True),
        sa.Column('raw_data', postgresql.JSON(), nullable=True),
        sa.Column('synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("NOT (parent_sale_id IS NOT NULL AND is_split)", name='ck_unified_sales_no_nested_split'),
        sa.CheckConstraint(
            "pos_system IN ('square', 'clover', 'toast', 'shift4', 'manual', 'manual_upload')",
            name='ck_unified_sales_pos_system',
        ),
        sa.CheckConstraint(
            "adjustment_type IS NULL OR adjustment_type IN ('tax', 'tip', 'service_charge', 'discount', 'fee', 'void')",
            name='ck_unified_sales_adjustment_type',
        ),
    )
    # Identity among top-level rows; the ON CONFLICT target of every sync
    op.create_index(
        'uq_unified_sales_identity',
        'unified_sales',
        ['restaurant_id', 'pos_system', 'external_order_id', 'external_item_id'],
        unique=True,
        postgresql_where=sa.text('parent_sale_id IS NULL'),
    )
    op.create_index('idx_unified_sales_restaurant_date', 'unified_sales', ['restaurant_id', 'sale_date'])
    op.create_index('idx_unified_sales_parent', 'unified_sales', ['parent_sale_id'])

    op.create_table(
        'unified_sales_splits',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('sale_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('unified_sales.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('chart_of_accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_unified_sales_splits_sale', 'unified_sales_splits', ['sale_id'])
    op.create_index('idx_unified_sales_splits_category', 'unified_sales_splits', ['category_id'])

    op.create_table(
        'sync_runs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('restaurant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pos_system', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='RUNNING'),
        sa.Column('rows_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rows_affected', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rows_skipped', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rows_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('errors', postgresql.JSON(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_sync_runs_restaurant', 'sync_runs', ['restaurant_id', 'pos_system', 'started_at'])


def downgrade() -> None:
    op.drop_index('idx_sync_runs_restaurant', table_name='sync_runs')
    op.drop_table('sync_runs')
    op.drop_index('idx_unified_sales_splits_category', table_name='unified_sales_splits')
    op.drop_index('idx_unified_sales_splits_sale', table_name='unified_sales_splits')
    op.drop_table('unified_sales_splits')
    op.drop_index('idx_unified_sales_parent', table_name='unified_sales')
    op.drop_index('idx_unified_sales_restaurant_date', table_name='unified_sales')
    op.drop_index('uq_unified_sales_identity', table_name='unified_sales')
    op.drop_table('unified_sales')
