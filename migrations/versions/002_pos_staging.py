"""POS connections and per-vendor staging tables

Revision ID: 002_pos_staging
Revises: 001_initial_schema
Create Date: 2025-01-08

Staging rows keep each vendor's native units (cents, thousandths, dollars);
conversion happens in the sync procedures.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '002_pos_staging'
down_revision: Union[str, None] = '001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _restaurant_fk():
    return sa.Column(
        'restaurant_id', postgresql.UUID(as_uuid=True),
        sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False,
    )


def _created_at():
    return sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True)


def upgrade() -> None:
    op.create_table(
        'pos_connections',
        _id(),
        _restaurant_fk(),
        sa.Column('pos_system', sa.String(20), nullable=False),
        sa.Column('merchant_id', sa.String(), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint('restaurant_id', 'pos_system', 'merchant_id', name='uq_pos_connections_merchant'),
    )

    # Square: money in cents, quantity as decimal string
    op.create_table(
        'square_orders',
        _id(),
        _restaurant_fk(),
        sa.Column('order_id', sa.String(), nullable=False),
        sa.Column('location_id', sa.String(), nullable=True),
        sa.Column('state', sa.String(20), nullable=True),
        sa.Column('service_date', sa.Date(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('raw_json', postgresql.JSON(), nullable=True),
        _created_at(),
        sa.UniqueConstraint('restaurant_id', 'order_id', name='uq_square_orders_order'),
    )
    op.create_table(
        'square_order_line_items',
        _id(),
        _restaurant_fk(),
        sa.Column('order_id', sa.String(), nullable=False),
        sa.Column('uid', sa.String(), nullable=True),
        sa.Column('catalog_object_id', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('quantity', sa.String(20), nullable=True),
        sa.Column('base_price_money', sa.BigInteger(), nullable=True),
        sa.Column('total_money', sa.BigInteger(), nullable=True),
        sa.Column('category_id', sa.String(), nullable=True),
        sa.Column('raw_json', postgresql.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index('idx_square_line_items_order', 'square_order_line_items', ['restaurant_id', 'order_id'])

    # Clover: price in cents, unit_quantity in thousandths
    op.create_table(
        'clover_orders',
        _id(),
        _restaurant_fk(),
        sa.Column('order_id', sa.String(), nullable=False),
        sa.Column('state', sa.String(20), nullable=True),
        sa.Column('service_date', sa.Date(), nullable=True),
        sa.Column('closed_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('raw_json', postgresql.JSON(), nullable=True),
        _created_at(),
        sa.UniqueConstraint('restaurant_id', 'order_id', name='uq_clover_orders_order'),
    )
    op.create_table(
        'clover_order_line_items',
        _id(),
        _restaurant_fk(),
        sa.Column('order_id', sa.String(), nullable=False),
        sa.Column('line_item_id', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('price', sa.BigInteger(), nullable=True),
        sa.Column('unit_quantity', sa.Integer(), nullable=True),
        sa.Column('is_revenue', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('category_id', sa.String(), nullable=True),
        sa.Column('raw_json', postgresql.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index('idx_clover_line_items_order', 'clover_order_line_items', ['restaurant_id', 'order_id'])

    # Toast: dollars, except refund_amount in cents
    op.create_table(
        'toast_orders',
        _id(),
        _restaurant_fk(),
        sa.Column('toast_order_guid', sa.String(), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=True),
        sa.Column('closed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_voided', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('raw_json', postgresql.JSON(), nullable=True),
        _created_at(),
        sa.UniqueConstraint('restaurant_id', 'toast_order_guid', name='uq_toast_orders_guid'),
    )
    op.create_table(
        'toast_order_items',
        _id(),
        _restaurant_fk(),
        sa.Column('toast_order_guid', sa.String(), nullable=False),
        sa.Column('toast_item_guid', sa.String(), nullable=True),
        sa.Column('item_name', sa.String(), nullable=True),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('is_voided', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('menu_category', sa.String(), nullable=True),
        sa.Column('raw_json', postgresql.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index('idx_toast_order_items_order', 'toast_order_items', ['restaurant_id', 'toast_order_guid'])
    op.create_table(
        'toast_payments',
        _id(),
        _restaurant_fk(),
        sa.Column('toast_payment_guid', sa.String(), nullable=False),
        sa.Column('toast_order_guid', sa.String(), nullable=False),
        sa.Column('payment_type', sa.String(30), nullable=True),
        sa.Column('payment_status', sa.String(30), nullable=True),
        sa.Column('paid_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tip_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('refund_amount', sa.BigInteger(), nullable=True),
        sa.Column('raw_json', postgresql.JSON(), nullable=True),
        _created_at(),
        sa.UniqueConstraint('restaurant_id', 'toast_payment_guid', name='uq_toast_payments_guid'),
    )
    op.create_index('idx_toast_payments_order', 'toast_payments', ['restaurant_id', 'toast_order_guid'])

    # Shift4: cents, created_at_ts in unix seconds
    op.create_table(
        'shift4_charges',
        _id(),
        _restaurant_fk(),
        sa.Column('charge_id', sa.String(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=True),
        sa.Column('tip_amount', sa.BigInteger(), nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('captured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('refunded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at_ts', sa.BigInteger(), nullable=True),
        sa.Column('service_date', sa.Date(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('raw_json', postgresql.JSON(), nullable=True),
        _created_at(),
        sa.UniqueConstraint('restaurant_id', 'charge_id', name='uq_shift4_charges_charge'),
    )
    op.create_table(
        'shift4_refunds',
        _id(),
        _restaurant_fk(),
        sa.Column('refund_id', sa.String(), nullable=False),
        sa.Column('charge_id', sa.String(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('created_at_ts', sa.BigInteger(), nullable=True),
        sa.Column('service_date', sa.Date(), nullable=True),
        sa.Column('raw_json', postgresql.JSON(), nullable=True),
        _created_at(),
        sa.UniqueConstraint('restaurant_id', 'refund_id', name='uq_shift4_refunds_refund'),
    )


def downgrade() -> None:
    op.drop_table('shift4_refunds')
    op.drop_table('shift4_charges')
    op.drop_index('idx_toast_payments_order', table_name='toast_payments')
    op.drop_table('toast_payments')
    op.drop_index('idx_toast_order_items_order', table_name='toast_order_items')
    op.drop_table('toast_order_items')
    op.drop_table('toast_orders')
    op.drop_index('idx_clover_line_items_order', table_name='clover_order_line_items')
    op.drop_table('clover_order_line_items')
    op.drop_table('clover_orders')
    op.drop_index('idx_square_line_items_order', table_name='square_order_line_items')
    op.drop_table('square_order_line_items')
    op.drop_table('square_orders')
    op.drop_table('pos_connections')
