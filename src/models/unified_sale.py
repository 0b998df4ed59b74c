"""
Unified sales ledger: one row per normalized POS line, plus split allocations.
"""
import uuid
from sqlalchemy import (
    Column, String, DateTime, Date, Time, ForeignKey, Numeric, Boolean, Text,
    func, Index, CheckConstraint, Uuid, JSON, text,
)
from sqlalchemy.orm import relationship

from src.core.local_time import utcnow
from src.db.base import Base

POS_SYSTEMS = ("square", "clover", "toast", "shift4", "manual", "manual_upload")
VENDOR_POS_SYSTEMS = ("square", "clover", "toast", "shift4")
ITEM_TYPES = ("sale", "discount", "tax", "tip", "service_charge", "fee", "refund", "other")
ADJUSTMENT_TYPES = ("tax", "tip", "service_charge", "discount", "fee", "void")


class UnifiedSale(Base):
    """
    A normalized POS line item or adjustment.

    Identity is (restaurant_id, pos_system, external_order_id, external_item_id),
    unique among rows without a parent. A row with is_split = true carries its
    categories in UnifiedSaleSplit rows instead of category_id.
    """
    __tablename__ = "unified_sales"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    pos_system = Column(String(20), nullable=False)
    external_order_id = Column(String, nullable=False)
    external_item_id = Column(String, nullable=False)
    item_name = Column(String, nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=True)
    total_price = Column(Numeric(12, 2), nullable=False)
    sale_date = Column(Date, nullable=False)
    sale_time = Column(Time, nullable=True)
    pos_category = Column(String, nullable=True)
    item_type = Column(String(20), nullable=False, default="sale")
    adjustment_type = Column(String(20), nullable=True)

    # Categorization
    category_id = Column(Uuid, ForeignKey("chart_of_accounts.id", ondelete="SET NULL"), nullable=True)
    is_categorized = Column(Boolean, nullable=False, default=False)
    suggested_category_id = Column(Uuid, ForeignKey("chart_of_accounts.id", ondelete="SET NULL"), nullable=True)
    ai_confidence = Column(String(10), nullable=True)  # high, medium, low
    ai_reasoning = Column(Text, nullable=True)

    # Splits
    is_split = Column(Boolean, nullable=False, default=False)
    parent_sale_id = Column(Uuid, ForeignKey("unified_sales.id", ondelete="CASCADE"), nullable=True)

    raw_data = Column(JSON, nullable=True)
    synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    category = relationship("ChartOfAccount", foreign_keys=[category_id])
    splits = relationship(
        "UnifiedSaleSplit",
        back_populates="sale",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="UnifiedSaleSplit.created_at",
    )

    __table_args__ = (
        Index(
            'uq_unified_sales_identity',
            'restaurant_id', 'pos_system', 'external_order_id', 'external_item_id',
            unique=True,
            postgresql_where=text('parent_sale_id IS NULL'),
            sqlite_where=text('parent_sale_id IS NULL'),
        ),
        Index('idx_unified_sales_restaurant_date', 'restaurant_id', 'sale_date'),
        Index('idx_unified_sales_parent', 'parent_sale_id'),
        CheckConstraint(
            "NOT (parent_sale_id IS NOT NULL AND is_split)",
            name='ck_unified_sales_no_nested_split',
        ),
        CheckConstraint(
            "pos_system IN ('square', 'clover', 'toast', 'shift4', 'manual', 'manual_upload')",
            name='ck_unified_sales_pos_system',
        ),
        CheckConstraint(
            "adjustment_type IS NULL OR adjustment_type IN "
            "('tax', 'tip', 'service_charge', 'discount', 'fee', 'void')",
            name='ck_unified_sales_adjustment_type',
        ),
    )

    def __repr__(self) -> str:
        return f"<UnifiedSale {self.pos_system}:{self.external_order_id}/{self.external_item_id} {self.total_price}>"


class UnifiedSaleSplit(Base):
    """One category allocation of a split sale. Amounts sum to the sale's total_price."""
    __tablename__ = "unified_sales_splits"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    sale_id = Column(Uuid, ForeignKey("unified_sales.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Uuid, ForeignKey("chart_of_accounts.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    sale = relationship("UnifiedSale", back_populates="splits")
    category = relationship("ChartOfAccount")

    __table_args__ = (
        Index('idx_unified_sales_splits_sale', 'sale_id'),
        Index('idx_unified_sales_splits_category', 'category_id'),
    )
