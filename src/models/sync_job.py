"""
Job queue tables: pending jobs, the dead-letter sink and operator incidents.
"""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, BigInteger, Text, Index, Uuid, JSON

from src.core.local_time import utcnow
from src.db.base import Base


class SyncJob(Base):
    """
    A queued dispatch message.

    visible_at hides a message that was read but not yet deleted; read_ct
    counts deliveries and drives the retry budget.
    """
    __tablename__ = "sync_jobs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    queue_name = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=False)
    read_ct = Column(Integer, nullable=False, default=0)
    enqueued_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    visible_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_error = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_sync_jobs_queue_visible', 'queue_name', 'visible_at'),
    )


class DeadLetterJob(Base):
    __tablename__ = "dead_letter_jobs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    original_job_id = Column(BigInteger, nullable=False)
    queue_name = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=False)
    read_ct = Column(Integer, nullable=False)
    last_error = Column(Text, nullable=True)
    enqueued_at = Column(DateTime(timezone=True), nullable=True)
    dead_lettered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_dead_letter_jobs_queue', 'queue_name', 'dead_lettered_at'),
    )


class OpsIncident(Base):
    """Operator notification. Opened when a job exhausts its retry budget."""
    __tablename__ = "ops_incidents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=True)
    kind = Column(String(50), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Integer, nullable=False, default=3)  # 1 = highest
    status = Column(String(20), nullable=False, default="open")
    meta = Column(JSON)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_ops_incidents_status', 'status', 'created_at'),
    )
