"""
Sync, orchestration, queue and tenant schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SyncResultResponse(BaseModel):
    restaurant_id: UUID
    pos_system: str
    sync_run_id: Optional[UUID] = None
    status: str
    rows_processed: int
    rows_affected: int
    rows_skipped: int
    rows_failed: int
    errors: list = []


class RestaurantSyncOutcomeResponse(BaseModel):
    restaurant_id: UUID
    ok: bool
    rows_affected: int
    rows_failed: int
    error: Optional[str] = None


class OrchestratorResponse(BaseModel):
    pos_system: str
    processed: int
    errored: int
    message: str
    results: List[RestaurantSyncOutcomeResponse]


class EnqueueRequest(BaseModel):
    payload: Dict[str, Any]
    delay_seconds: int = Field(0, ge=0)


class EnqueueResponse(BaseModel):
    job_id: int
    queue_name: str


class DrainResponse(BaseModel):
    queue_name: str
    read: int
    succeeded: int
    failed: int
    dead_lettered: int


class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=1)
    timezone: Optional[str] = None


class RestaurantResponse(BaseModel):
    id: UUID
    name: str
    timezone: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
