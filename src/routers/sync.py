"""
Sync router: per-restaurant vendor syncs, the scheduler-facing orchestrator
and the job queue endpoints.
"""
from typing import Iterator
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.core.deps import get_current_caller
from src.db.session import get_db
from src.schemas.sync import (
    DrainResponse,
    EnqueueRequest,
    EnqueueResponse,
    OrchestratorResponse,
    SyncResultResponse,
)
from src.services.access import Caller, require_service_caller
from src.services.dispatcher import HttpDispatcher, drain_queue
from src.services.job_queue import JobQueue
from src.services.pos_sync import get_sync_service
from src.services.sync_orchestrator import enqueue_vendor_fetch_jobs, sync_all_restaurants

router = APIRouter(tags=["sync"])


def get_dispatcher() -> Iterator[HttpDispatcher]:
    """Worker dispatcher for the lifetime of one request."""
    dispatcher = HttpDispatcher()
    try:
        yield dispatcher
    finally:
        dispatcher.close()


@router.post("/restaurants/{restaurant_id}/sync/{pos_system}", response_model=SyncResultResponse)
def sync_restaurant(
    restaurant_id: UUID,
    pos_system: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """
    Normalize a restaurant's staged orders from one vendor into the ledger.

    Safe to repeat: an unchanged resync affects no rows.
    """
    result = get_sync_service(db, pos_system).sync(restaurant_id, caller)
    return SyncResultResponse(**result.to_dict())


@router.post("/sync/{pos_system}/all", response_model=OrchestratorResponse)
def sync_all(
    pos_system: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Scheduler entry point: sync every restaurant with an active connection."""
    result = sync_all_restaurants(db, pos_system, caller)
    return OrchestratorResponse(**result.to_dict())


@router.post("/sync/{pos_system}/enqueue")
def enqueue_fetches(
    pos_system: str,
    action: str = Query("daily"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Queue one vendor fetch job per active connection."""
    queued = enqueue_vendor_fetch_jobs(db, pos_system, caller, action=action)
    return {"pos_system": pos_system, "queued": queued}


@router.post("/jobs/{queue_name}", response_model=EnqueueResponse)
def enqueue_job(
    queue_name: str,
    request: EnqueueRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    require_service_caller(caller)
    job = JobQueue(db, queue_name).enqueue(request.payload, delay_seconds=request.delay_seconds)
    return EnqueueResponse(job_id=job.id, queue_name=queue_name)


@router.post("/jobs/{queue_name}/drain", response_model=DrainResponse)
def drain(
    queue_name: str,
    batch_size: int | None = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
    dispatcher: HttpDispatcher = Depends(get_dispatcher),
):
    """Deliver one batch of queued jobs to the worker functions."""
    result = drain_queue(db, queue_name, dispatcher, caller, batch_size=batch_size)
    return DrainResponse(**result.to_dict())
