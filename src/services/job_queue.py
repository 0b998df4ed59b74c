"""
Table-backed job queue with visibility timeouts and a dead-letter sink.

read() hands out a batch of visible messages and hides them for the
visibility timeout; a message that is not deleted before the timeout
elapses becomes visible again. read_ct counts deliveries.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.core.config import get_settings
from src.core.local_time import utcnow
from src.models.restaurant import Restaurant
from src.models.sync_job import DeadLetterJob, OpsIncident, SyncJob

logger = logging.getLogger(__name__)

DEAD_LETTER_INCIDENT_KIND = "job_dead_lettered"


class JobQueue:
    """A named queue stored in sync_jobs."""

    def __init__(self, db: Session, queue_name: str):
        self.db = db
        self.queue_name = queue_name
        self.settings = get_settings()

    def enqueue(self, payload: Dict[str, Any], delay_seconds: int = 0) -> SyncJob:
        now = utcnow()
        job = SyncJob(
            queue_name=self.queue_name,
            payload=payload,
            read_ct=0,
            enqueued_at=now,
            visible_at=now + timedelta(seconds=delay_seconds),
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        return job

    def read(self, batch_size: Optional[int] = None, visibility_timeout: Optional[int] = None) -> List[SyncJob]:
        """
        Claim up to batch_size visible messages.

        Claimed rows are locked with SKIP LOCKED where the database supports
        it, so concurrent readers never receive the same message.
        """
        batch_size = batch_size or self.settings.JOB_BATCH_SIZE
        if visibility_timeout is None:
            visibility_timeout = self.settings.JOB_VISIBILITY_TIMEOUT_SECONDS

        now = utcnow()
        stmt = (
            select(SyncJob)
            .where(SyncJob.queue_name == self.queue_name, SyncJob.visible_at <= now)
            .order_by(SyncJob.id)
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        jobs = list(self.db.execute(stmt).scalars().all())
        for job in jobs:
            job.read_ct += 1
            job.visible_at = now + timedelta(seconds=visibility_timeout)
        self.db.commit()
        return jobs

    def delete(self, job: SyncJob) -> None:
        self.db.delete(job)
        self.db.commit()

    def release(self, job: SyncJob, error: str) -> None:
        """Record a failed attempt; the message reappears after its visibility timeout."""
        job.last_error = error
        self.db.commit()

    def dead_letter(self, job: SyncJob, error: str) -> DeadLetterJob:
        """Move a message to the dead-letter table and open an operator incident."""
        label = f"{job.queue_name}#{job.id}"
        attempts = job.read_ct
        dead = DeadLetterJob(
            original_job_id=job.id,
            queue_name=job.queue_name,
            payload=job.payload,
            read_ct=job.read_ct,
            last_error=error,
            enqueued_at=job.enqueued_at,
        )
        self.db.add(dead)
        self.db.add(
            OpsIncident(
                restaurant_id=self._payload_restaurant_id(job.payload),
                kind=DEAD_LETTER_INCIDENT_KIND,
                title=f"Job {label} moved to dead letter after {attempts} attempts",
                description=error,
                priority=2,
                meta={"job_id": job.id, "queue_name": job.queue_name, "read_ct": job.read_ct},
            )
        )
        self.db.delete(job)
        self.db.commit()
        logger.error(f"Job {label} dead-lettered after {attempts} attempts: {error}")
        return dead

    def pending_count(self) -> int:
        stmt = select(func.count()).select_from(SyncJob).where(SyncJob.queue_name == self.queue_name)
        return self.db.execute(stmt).scalar_one()

    def _payload_restaurant_id(self, payload: Dict[str, Any]) -> Optional[UUID]:
        raw = (payload.get("body") or {}).get("restaurant_id") or payload.get("restaurant_id")
        if not raw:
            return None
        try:
            restaurant_id = UUID(str(raw))
        except ValueError:
            return None
        return restaurant_id if self.db.get(Restaurant, restaurant_id) is not None else None
