"""
Liveness and readiness checks.

/health answers without touching anything. /api/health checks the database
and reports the dispatch backlog, so a scheduler can tell a stuck queue
from a dead process.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.session import get_db
from src.models.sync_job import DeadLetterJob, OpsIncident, SyncJob

router = APIRouter(tags=["health"])


@router.get("/health")
async def liveness():
    return {"status": "ok"}


@router.get("/api/health")
def readiness(db: Session = Depends(get_db)):
    """200 with queue counters when the database answers, 503 otherwise."""
    try:
        pending = db.execute(select(func.count()).select_from(SyncJob)).scalar_one()
        dead_lettered = db.execute(select(func.count()).select_from(DeadLetterJob)).scalar_one()
        open_incidents = db.execute(
            select(func.count()).select_from(OpsIncident).where(OpsIncident.status == "open")
        ).scalar_one()
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": {"status": "error", "message": str(e)}},
        )

    return {
        "status": "ok",
        "database": {"status": "ok"},
        "queue": {
            "pending_jobs": pending,
            "dead_lettered_jobs": dead_lettered,
            "open_incidents": open_incidents,
        },
    }
