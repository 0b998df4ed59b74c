"""
Chart of accounts. Owned by the accounting side; the ledger only reads it.
"""
import uuid
from sqlalchemy import Column, String, DateTime, func, ForeignKey, Uuid, Boolean, UniqueConstraint

from src.db.base import Base


class ChartOfAccount(Base):
    __tablename__ = "chart_of_accounts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    account_code = Column(String(20), nullable=False)
    account_name = Column(String, nullable=False)
    account_type = Column(String(30), nullable=False)  # asset, liability, equity, revenue, expense
    account_subtype = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'account_code', name='uq_chart_of_accounts_code'),
    )
