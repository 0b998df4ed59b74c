"""
Queue drain: deliver queued jobs to the worker functions over HTTP.

Dispatch never happens inside a ledger transaction. Transient failures
(timeouts, connection errors, 429 and 5xx) are retried through the queue's
visibility timeout; permanent failures and messages that exhaust
JOB_MAX_ATTEMPTS go to the dead-letter table.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from src.core.config import get_settings
from src.core.exceptions import DispatchError
from src.services.access import Caller, require_service_caller
from src.services.job_queue import JobQueue

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


class HttpDispatcher:
    """
    Posts a job to a worker function.

    A job payload names the worker ("function") and carries its JSON body:
        {"function": "square-sync-data", "body": {"restaurant_id": "...", "action": "daily"}}
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        settings = get_settings()
        token = auth_token if auth_token is not None else settings.WORKER_AUTH_TOKEN
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.Client(
            base_url=base_url or settings.WORKER_BASE_URL,
            timeout=httpx.Timeout(timeout or settings.DISPATCH_TIMEOUT_SECONDS),
            headers=headers,
            transport=transport,
        )

    def dispatch(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        function = payload.get("function")
        if not function:
            raise DispatchError("Job payload has no function to dispatch to", retryable=False)

        try:
            response = self.client.post(f"/{function}", json=payload.get("body") or {})
        except httpx.TimeoutException as e:
            raise DispatchError(f"{function} timed out: {e}")
        except httpx.TransportError as e:
            raise DispatchError(f"{function} unreachable: {e}")

        if response.status_code >= 400:
            raise DispatchError(
                f"{function} returned HTTP {response.status_code}",
                status_code=response.status_code,
                retryable=response.status_code in RETRYABLE_STATUS_CODES,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"text": response.text}

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "HttpDispatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class DrainResult:
    def __init__(self, queue_name: str):
        self.queue_name = queue_name
        self.read = 0
        self.succeeded = 0
        self.failed = 0
        self.dead_lettered = 0

    def to_dict(self) -> Dict:
        return {
            "queue_name": self.queue_name,
            "read": self.read,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "dead_lettered": self.dead_lettered,
        }


def drain_queue(
    db: Session,
    queue_name: str,
    dispatcher: HttpDispatcher,
    caller: Caller,
    batch_size: Optional[int] = None,
    visibility_timeout: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> DrainResult:
    """
    Read one batch from the queue and dispatch each message.

    Succeeded messages are deleted. A failed message is dead-lettered when
    the failure is permanent or its read count has reached max_attempts;
    otherwise it is left to reappear after the visibility timeout.
    """
    require_service_caller(caller)
    max_attempts = max_attempts or get_settings().JOB_MAX_ATTEMPTS
    queue = JobQueue(db, queue_name)
    result = DrainResult(queue_name)

    for job in queue.read(batch_size=batch_size, visibility_timeout=visibility_timeout):
        result.read += 1
        # Delivered before but never deleted (worker crashed mid-dispatch)
        if job.read_ct > max_attempts:
            queue.dead_letter(job, job.last_error or "retry budget exhausted")
            result.dead_lettered += 1
            continue

        try:
            dispatcher.dispatch(job.payload)
        except DispatchError as e:
            result.failed += 1
            if not e.retryable or job.read_ct >= max_attempts:
                queue.dead_letter(job, e.message)
                result.dead_lettered += 1
            else:
                logger.warning(f"Job {queue_name}#{job.id} attempt {job.read_ct} failed: {e.message}")
                queue.release(job, e.message)
            continue

        queue.delete(job)
        result.succeeded += 1

    if result.read:
        logger.info(
            f"Drained {queue_name}: {result.succeeded} succeeded, {result.failed} failed, "
            f"{result.dead_lettered} dead-lettered"
        )
    return result
