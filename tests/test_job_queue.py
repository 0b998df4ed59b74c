"""
Tests for the job queue and the HTTP dispatch drain.
"""
import pytest
from datetime import timedelta

import httpx
from sqlalchemy import select

from src.core.exceptions import AuthorizationError, DispatchError
from src.core.local_time import utcnow
from src.models.sync_job import DeadLetterJob, OpsIncident, SyncJob
from src.services.dispatcher import HttpDispatcher, drain_queue
from src.services.job_queue import DEAD_LETTER_INCIDENT_KIND, JobQueue


def make_dispatcher(handler) -> HttpDispatcher:
    return HttpDispatcher(
        base_url="http://workers.test",
        auth_token="worker-token",
        transport=httpx.MockTransport(handler),
    )


def square_job(restaurant_id) -> dict:
    return {"function": "square-sync-data", "body": {"restaurant_id": str(restaurant_id), "action": "daily"}}


class TestJobQueue:

    def test_read_hides_message_until_timeout(self, db):
        queue = JobQueue(db, "pos_fetch")
        queue.enqueue({"function": "noop"})

        first = queue.read(batch_size=5, visibility_timeout=60)
        second = queue.read(batch_size=5, visibility_timeout=60)

        assert len(first) == 1
        assert first[0].read_ct == 1
        assert second == []

    def test_message_reappears_after_timeout(self, db):
        queue = JobQueue(db, "pos_fetch")
        job = queue.enqueue({"function": "noop"})
        queue.read(visibility_timeout=60)
        job.visible_at = utcnow() - timedelta(seconds=1)
        db.commit()

        again = queue.read()

        assert [j.id for j in again] == [job.id]
        assert again[0].read_ct == 2

    def test_delayed_message_is_not_visible_yet(self, db):
        queue = JobQueue(db, "pos_fetch")
        queue.enqueue({"function": "noop"}, delay_seconds=300)

        assert queue.read() == []
        assert queue.pending_count() == 1

    def test_queues_are_isolated(self, db):
        JobQueue(db, "pos_fetch").enqueue({"function": "noop"})

        assert JobQueue(db, "categorize").read() == []

    def test_pending_count_is_per_queue(self, db):
        for _ in range(3):
            JobQueue(db, "pos_fetch").enqueue({"function": "noop"})
        JobQueue(db, "categorize").enqueue({"function": "noop"})

        assert JobQueue(db, "pos_fetch").pending_count() == 3
        assert JobQueue(db, "categorize").pending_count() == 1
        assert JobQueue(db, "empty").pending_count() == 0

    def test_batch_size(self, db):
        queue = JobQueue(db, "pos_fetch")
        for _ in range(3):
            queue.enqueue({"function": "noop"})

        assert len(queue.read(batch_size=2)) == 2

    def test_dead_letter_opens_incident(self, db, restaurant):
        queue = JobQueue(db, "pos_fetch")
        job = queue.enqueue(square_job(restaurant.id))
        job_id = job.id
        queue.read()

        queue.dead_letter(job, "worker returned HTTP 500")

        assert db.get(SyncJob, job_id) is None
        dead = db.execute(select(DeadLetterJob)).scalar_one()
        assert dead.original_job_id == job_id
        assert dead.read_ct == 1
        assert dead.payload["function"] == "square-sync-data"
        incident = db.execute(select(OpsIncident)).scalar_one()
        assert incident.kind == DEAD_LETTER_INCIDENT_KIND
        assert incident.restaurant_id == restaurant.id
        assert incident.status == "open"
        assert incident.description == "worker returned HTTP 500"


class TestHttpDispatcher:

    def test_posts_body_to_function(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = request.read()
            return httpx.Response(200, json={"ok": True})

        with make_dispatcher(handler) as dispatcher:
            response = dispatcher.dispatch({"function": "toast-sync-data", "body": {"restaurant_id": "r-1"}})

        assert response == {"ok": True}
        assert seen["url"] == "http://workers.test/toast-sync-data"
        assert seen["auth"] == "Bearer worker-token"
        assert b"r-1" in seen["body"]

    def test_timeout_is_retryable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(DispatchError) as exc:
            make_dispatcher(handler).dispatch({"function": "square-sync-data"})
        assert exc.value.retryable is True

    def test_server_error_is_retryable(self):
        with pytest.raises(DispatchError) as exc:
            make_dispatcher(lambda request: httpx.Response(503)).dispatch({"function": "square-sync-data"})
        assert exc.value.retryable is True
        assert exc.value.status_code == 503

    def test_client_error_is_permanent(self):
        with pytest.raises(DispatchError) as exc:
            make_dispatcher(lambda request: httpx.Response(400)).dispatch({"function": "square-sync-data"})
        assert exc.value.retryable is False

    def test_payload_without_function_is_permanent(self):
        with pytest.raises(DispatchError) as exc:
            make_dispatcher(lambda request: httpx.Response(200)).dispatch({"body": {}})
        assert exc.value.retryable is False


class TestDrainQueue:

    def test_success_deletes_message(self, db, restaurant, service_caller):
        JobQueue(db, "pos_fetch").enqueue(square_job(restaurant.id))

        result = drain_queue(db, "pos_fetch", make_dispatcher(lambda r: httpx.Response(200)), service_caller)

        assert (result.read, result.succeeded, result.failed) == (1, 1, 0)
        assert JobQueue(db, "pos_fetch").pending_count() == 0

    def test_transient_failure_is_retried_then_dead_lettered(self, db, restaurant, service_caller):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectTimeout("timed out", request=request)

        dispatcher = make_dispatcher(handler)
        JobQueue(db, "pos_fetch").enqueue(square_job(restaurant.id))

        first = drain_queue(db, "pos_fetch", dispatcher, service_caller, visibility_timeout=0, max_attempts=3)
        second = drain_queue(db, "pos_fetch", dispatcher, service_caller, visibility_timeout=0, max_attempts=3)

        assert (first.failed, first.dead_lettered) == (1, 0)
        assert (second.failed, second.dead_lettered) == (1, 0)
        job = db.execute(select(SyncJob)).scalar_one()
        assert job.read_ct == 2
        assert "timed out" in job.last_error

        third = drain_queue(db, "pos_fetch", dispatcher, service_caller, visibility_timeout=0, max_attempts=3)

        assert third.dead_lettered == 1
        assert len(calls) == 3
        assert db.execute(select(SyncJob)).scalars().all() == []
        assert db.execute(select(DeadLetterJob)).scalar_one().read_ct == 3
        incident = db.execute(select(OpsIncident)).scalar_one()
        assert incident.restaurant_id == restaurant.id
        assert incident.priority == 2

    def test_permanent_failure_is_dead_lettered_immediately(self, db, restaurant, service_caller):
        JobQueue(db, "pos_fetch").enqueue(square_job(restaurant.id))

        result = drain_queue(db, "pos_fetch", make_dispatcher(lambda r: httpx.Response(404)), service_caller)

        assert result.dead_lettered == 1
        assert "HTTP 404" in db.execute(select(DeadLetterJob)).scalar_one().last_error

    def test_overdelivered_message_is_dead_lettered_without_dispatch(self, db, restaurant, service_caller):
        calls = []
        job = JobQueue(db, "pos_fetch").enqueue(square_job(restaurant.id))
        job.read_ct = 3
        db.commit()

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        result = drain_queue(db, "pos_fetch", make_dispatcher(handler), service_caller, max_attempts=3)

        assert result.dead_lettered == 1
        assert calls == []

    def test_user_caller_is_rejected(self, db, owner_caller):
        with pytest.raises(AuthorizationError):
            drain_queue(db, "pos_fetch", make_dispatcher(lambda r: httpx.Response(200)), owner_caller)
