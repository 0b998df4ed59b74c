"""
Sync run log: one row per vendor sync of one restaurant.
"""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Index, Uuid, JSON
from sqlalchemy.orm import relationship

from src.core.local_time import utcnow
from src.db.base import Base


class SyncRun(Base):
    """
    Outcome of a single sync. Rows that could not be mapped are counted in
    rows_failed and sampled into errors, so a partial sync stays inspectable.
    """
    __tablename__ = "sync_runs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    pos_system = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="RUNNING")  # RUNNING, COMPLETED, PARTIAL, FAILED
    rows_processed = Column(Integer, nullable=False, default=0)
    rows_affected = Column(Integer, nullable=False, default=0)
    rows_skipped = Column(Integer, nullable=False, default=0)
    rows_failed = Column(Integer, nullable=False, default=0)
    errors = Column(JSON)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    restaurant = relationship("Restaurant")

    __table_args__ = (
        Index('idx_sync_runs_restaurant', 'restaurant_id', 'pos_system', 'started_at'),
    )
