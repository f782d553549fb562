"""HTTP-level tests for the meetings, work item and health routes.

The app is built with create_app() and driven through httpx's ASGI
transport. The lifespan does not run, so services are placed on
``app.state`` by the fixtures.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from src.app.main import create_app
from src.app.meetings.tasks.azure_devops import WorkItem

SCHEDULE_BODY = {
    "title": "Daily Standup",
    "participants": ["alice", "bob"],
    "scheduled_time": "2026-10-19T10:00:00Z",
    "created_by": "carol",
}


@pytest.fixture
def app(service):
    app = create_app()
    app.state.meeting_service = service
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def _schedule(client, **overrides) -> dict:
    response = await client.post("/meetings/schedule", json={**SCHEDULE_BODY, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


class TestScheduleEndpoint:
    async def test_schedule_returns_meeting(self, client):
        meeting = await _schedule(client)
        assert meeting["status"] == "scheduled"
        assert meeting["participants"] == ["alice", "bob"]

    async def test_defaults_filled_from_settings(self, client):
        meeting = await _schedule(client, title=None, duration=None, timezone=None)
        assert meeting["title"] == "Daily Standup"
        assert meeting["duration"] == 30
        assert meeting["timezone"] == "UTC"

    async def test_past_time_is_422(self, client):
        response = await client.post(
            "/meetings/schedule", json={**SCHEDULE_BODY, "scheduled_time": "2026-10-19T08:00:00Z"}
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "past_schedule"

    async def test_weekly_is_422(self, client):
        response = await client.post(
            "/meetings/schedule", json={**SCHEDULE_BODY, "recurrence": "weekly"}
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "unsupported_recurrence"

    async def test_unknown_timezone_is_422(self, client):
        response = await client.post(
            "/meetings/schedule", json={**SCHEDULE_BODY, "timezone": "Mars/Olympus_Mons"}
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_timezone"

    async def test_empty_participants_rejected(self, client):
        response = await client.post(
            "/meetings/schedule", json={**SCHEDULE_BODY, "participants": []}
        )
        assert response.status_code == 422


class TestMeetingQueries:
    async def test_unknown_meeting_is_404(self, client):
        response = await client.get("/meetings/does-not-exist")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"

    async def test_list_by_user(self, client):
        meeting = await _schedule(client)
        assert [m["id"] for m in (await client.get("/meetings", params={"user_id": "bob"})).json()] == [
            meeting["id"]
        ]
        assert (await client.get("/meetings", params={"user_id": "dave"})).json() == []

    async def test_status_view(self, client):
        meeting = await _schedule(client)
        response = await client.get(f"/meetings/{meeting['id']}/status")
        assert response.json() == {"status": "scheduled", "started_at": None, "ended_at": None}

    async def test_summary_before_finalize_is_404(self, client):
        meeting = await _schedule(client)
        response = await client.get(f"/meetings/{meeting['id']}/summary")
        assert response.status_code == 404


class TestLifecycleEndpoints:
    async def test_start_twice_is_409(self, client):
        meeting = await _schedule(client)
        first = await client.post(f"/meetings/{meeting['id']}/start")
        assert first.status_code == 200
        assert first.json()["completed_participants"] == 0

        second = await client.post(f"/meetings/{meeting['id']}/start")
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "invalid_transition"

    async def test_join_not_invited_is_403(self, client):
        meeting = await _schedule(client)
        await client.post(f"/meetings/{meeting['id']}/start")

        response = await client.post(f"/meetings/{meeting['id']}/join", json={"participant": "mallory"})

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "not_invited"

    async def test_join_before_start_is_404(self, client):
        meeting = await _schedule(client)
        response = await client.post(f"/meetings/{meeting['id']}/join", json={"participant": "alice"})
        assert response.status_code == 404

    async def test_facilitated_meeting_runs_to_completion(self, client, task_tracker):
        meeting = await _schedule(client, virtual_facilitator=True)
        meeting_id = meeting["id"]
        await client.post(f"/meetings/{meeting_id}/start")

        for participant in ("alice", "bob"):
            joined = (
                await client.post(f"/meetings/{meeting_id}/join", json={"participant": participant})
            ).json()
            assert joined["first_question"].startswith(f"Hello {participant}!")
            for answer in ("Finished login", "Billing API", "none"):
                result = await client.post(
                    f"/meetings/{meeting_id}/standup-response",
                    json={"participant": participant, "response": answer},
                )
                assert result.status_code == 200
            assert result.json()["is_complete"] is True

        status_view = (await client.get(f"/meetings/{meeting_id}/status")).json()
        assert status_view["status"] == "completed"

        summary = await client.get(f"/meetings/{meeting_id}/summary")
        assert summary.status_code == 200
        assert summary.json()["summary"]["participants"] == ["alice", "bob"]
        assert summary.json()["summary"]["blockers"] == []
        task_tracker.sync_from_meeting.assert_awaited_once()

        sessions = (await client.get("/meetings/admin/active-sessions")).json()
        assert sessions == []

    async def test_end_meeting(self, client):
        meeting = await _schedule(client)
        await client.post(f"/meetings/{meeting['id']}/start")

        response = await client.post(f"/meetings/{meeting['id']}/end")

        assert response.status_code == 200
        assert response.json()["meeting_data"]["id"] == meeting["id"]
        again = await client.post(f"/meetings/{meeting['id']}/end")
        assert again.status_code == 409

    async def test_cancel_meeting(self, client):
        meeting = await _schedule(client)
        response = await client.delete(f"/meetings/{meeting['id']}")
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        start = await client.post(f"/meetings/{meeting['id']}/start")
        assert start.status_code == 409

    async def test_retire_leftover_session(self, client):
        meeting = await _schedule(client, virtual_facilitator=True)
        meeting_id = meeting["id"]
        await client.post(f"/meetings/{meeting_id}/start")
        await client.post(f"/meetings/{meeting_id}/join", json={"participant": "alice"})

        early = await client.delete(f"/meetings/admin/active-sessions/{meeting_id}")
        assert early.status_code == 409

        await client.delete(f"/meetings/{meeting_id}")
        assert len((await client.get("/meetings/admin/active-sessions")).json()) == 1

        retired = await client.delete(f"/meetings/admin/active-sessions/{meeting_id}")
        assert retired.status_code == 200
        assert retired.json()["meeting_id"] == meeting_id
        assert (await client.get("/meetings/admin/active-sessions")).json() == []


class TestServiceUnavailable:
    async def test_meetings_without_service_is_503(self):
        app = create_app()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get("/meetings/anything")
        assert response.status_code == 503

    async def test_devops_without_tracker_is_503(self, client):
        response = await client.get("/devops/work-items/alice")
        assert response.status_code == 503


class TestWorkItemEndpoints:
    async def test_work_items_for_assignee(self, app, client):
        tracker = MagicMock()
        tracker.get_work_items_by_assignee = AsyncMock(
            return_value=[WorkItem(id=4, title="Billing", state="Active", assigned_to="alice")]
        )
        app.state.devops_tracker = tracker

        response = await client.get("/devops/work-items/alice")

        assert response.status_code == 200
        assert response.json()[0]["id"] == 4
        tracker.get_work_items_by_assignee.assert_awaited_once_with("alice")

    async def test_blocker_task_created(self, app, client):
        tracker = MagicMock()
        tracker.create_task_from_blocker = AsyncMock(return_value={"id": 77})
        app.state.devops_tracker = tracker

        response = await client.post(
            "/devops/blocker-tasks",
            json={"participant": "alice", "text": "Staging is down", "assignee": "bob"},
        )

        assert response.status_code == 201
        assert response.json() == {"id": 77}
        blocker, assignee = tracker.create_task_from_blocker.await_args.args
        assert blocker.text == "Staging is down"
        assert assignee == "bob"

    async def test_upstream_failure_is_502(self, app, client):
        tracker = MagicMock()
        tracker.get_work_items_by_assignee = AsyncMock(side_effect=httpx.ConnectError("refused"))
        app.state.devops_tracker = tracker

        response = await client.get("/devops/work-items/alice")

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "collaborator_failure"


class TestHealthEndpoints:
    async def test_liveness(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_ready_without_scheduler_is_503(self, client):
        response = await client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["checks"]["scheduler"] == "stopped"

    async def test_ready_with_running_scheduler(self, app, client):
        app.state.scheduler = MagicMock(running=True)
        response = await client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_request_id_header(self, client):
        first = await client.get("/health")
        second = await client.get("/health")
        assert first.headers["X-Request-ID"]
        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]
