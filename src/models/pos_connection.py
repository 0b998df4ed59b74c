"""
Vendor connections. An active connection makes a restaurant eligible for
scheduled syncs of that vendor.
"""
import uuid
from sqlalchemy import Column, String, DateTime, func, ForeignKey, Uuid, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship

from src.db.base import Base


class PosConnection(Base):
    __tablename__ = "pos_connections"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    pos_system = Column(String(20), nullable=False)
    merchant_id = Column(String, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    restaurant = relationship("Restaurant", back_populates="pos_connections")

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'pos_system', 'merchant_id', name='uq_pos_connections_merchant'),
    )
