"""
Per-vendor staging tables, written by the vendor API clients in each
vendor's native units and read by the sync procedures.

Units as stored:
- Square: money in cents, quantity as a decimal string
- Clover: price in cents, unit_quantity in thousandths (1000 = 1 unit)
- Toast: dollars; item price and discount are line totals; refund_amount in cents
- Shift4: money in cents, created_at_ts in unix seconds
"""
import uuid
from sqlalchemy import (
    Column, String, DateTime, Date, ForeignKey, Numeric, Integer, BigInteger,
    Boolean, func, Index, UniqueConstraint, Uuid, JSON,
)

from src.db.base import Base


class SquareOrder(Base):
    __tablename__ = "square_orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(String, nullable=False)
    location_id = Column(String, nullable=True)
    state = Column(String(20), nullable=True)  # OPEN, COMPLETED, CANCELED
    service_date = Column(Date, nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    raw_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'order_id', name='uq_square_orders_order'),
    )


class SquareOrderLineItem(Base):
    __tablename__ = "square_order_line_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(String, nullable=False)
    uid = Column(String, nullable=True)
    catalog_object_id = Column(String, nullable=True)
    name = Column(String, nullable=True)
    quantity = Column(String(20), nullable=True)
    base_price_money = Column(BigInteger, nullable=True)  # cents
    total_money = Column(BigInteger, nullable=True)  # cents
    category_id = Column(String, nullable=True)
    raw_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_square_line_items_order', 'restaurant_id', 'order_id'),
    )


class CloverOrder(Base):
    __tablename__ = "clover_orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(String, nullable=False)
    state = Column(String(20), nullable=True)  # open, locked
    service_date = Column(Date, nullable=True)
    closed_time = Column(DateTime(timezone=True), nullable=True)
    raw_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'order_id', name='uq_clover_orders_order'),
    )


class CloverOrderLineItem(Base):
    __tablename__ = "clover_order_line_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(String, nullable=False)
    line_item_id = Column(String, nullable=True)
    name = Column(String, nullable=True)
    price = Column(BigInteger, nullable=True)  # cents per unit
    unit_quantity = Column(Integer, nullable=True)  # thousandths
    is_revenue = Column(Boolean, nullable=False, default=True)
    category_id = Column(String, nullable=True)
    raw_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_clover_line_items_order', 'restaurant_id', 'order_id'),
    )


class ToastOrder(Base):
    __tablename__ = "toast_orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    toast_order_guid = Column(String, nullable=False)
    order_date = Column(Date, nullable=True)
    closed_date = Column(DateTime(timezone=True), nullable=True)
    is_voided = Column(Boolean, nullable=False, default=False)
    tax_amount = Column(Numeric(12, 2), nullable=True)
    raw_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'toast_order_guid', name='uq_toast_orders_guid'),
    )


class ToastOrderItem(Base):
    __tablename__ = "toast_order_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    toast_order_guid = Column(String, nullable=False)
    toast_item_guid = Column(String, nullable=True)
    item_name = Column(String, nullable=True)
    quantity = Column(Numeric(12, 3), nullable=True)
    price = Column(Numeric(12, 2), nullable=True)  # line total
    discount_amount = Column(Numeric(12, 2), nullable=True)  # line total
    is_voided = Column(Boolean, nullable=False, default=False)
    menu_category = Column(String, nullable=True)
    raw_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_toast_order_items_order', 'restaurant_id', 'toast_order_guid'),
    )


class ToastPayment(Base):
    __tablename__ = "toast_payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    toast_payment_guid = Column(String, nullable=False)
    toast_order_guid = Column(String, nullable=False)
    payment_type = Column(String(30), nullable=True)
    payment_status = Column(String(30), nullable=True)  # CAPTURED, DENIED, VOIDED, ...
    paid_date = Column(DateTime(timezone=True), nullable=True)
    tip_amount = Column(Numeric(12, 2), nullable=True)
    refund_amount = Column(BigInteger, nullable=True)  # cents
    raw_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'toast_payment_guid', name='uq_toast_payments_guid'),
        Index('idx_toast_payments_order', 'restaurant_id', 'toast_order_guid'),
    )


class Shift4Charge(Base):
    __tablename__ = "shift4_charges"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    charge_id = Column(String, nullable=False)
    amount = Column(BigInteger, nullable=True)  # cents, tip included
    tip_amount = Column(BigInteger, nullable=True)  # cents
    status = Column(String(20), nullable=True)  # successful, failed, pending
    captured = Column(Boolean, nullable=False, default=False)
    refunded = Column(Boolean, nullable=False, default=False)
    created_at_ts = Column(BigInteger, nullable=True)  # unix seconds
    service_date = Column(Date, nullable=True)
    description = Column(String, nullable=True)
    raw_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'charge_id', name='uq_shift4_charges_charge'),
    )


class Shift4Refund(Base):
    __tablename__ = "shift4_refunds"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    refund_id = Column(String, nullable=False)
    charge_id = Column(String, nullable=False)
    amount = Column(BigInteger, nullable=True)  # cents, positive
    status = Column(String(20), nullable=True)
    created_at_ts = Column(BigInteger, nullable=True)
    service_date = Column(Date, nullable=True)
    raw_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'refund_id', name='uq_shift4_refunds_refund'),
    )
