"""Tests for the work-item policy and the Azure DevOps task tracker.

The REST client runs against httpx.MockTransport; requests are recorded
so each test can assert on the calls made.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from src.app.meetings.schemas import Blocker, MeetingData, MeetingSummary, StandupAnswer
from src.app.meetings.tasks import policy
from src.app.meetings.tasks.azure_devops import (
    AzureDevOpsClient,
    AzureDevOpsTaskTracker,
    _is_transient,
)
from src.app.meetings.tasks.tracker import NullTaskTracker

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
BASE = "/acme/Standup/_apis/wit"


def _make_answers(*texts: str) -> list[StandupAnswer]:
    return [StandupAnswer(question=f"Q{i}", answer=t, timestamp=NOW) for i, t in enumerate(texts)]


def _make_update(yesterday="", today="", blockers="") -> policy.StandupUpdate:
    return policy.StandupUpdate("alice", yesterday, today, blockers)


def _make_meeting_data(responses) -> MeetingData:
    return MeetingData(
        id="m1",
        title="Daily Standup",
        participants=["alice", "bob"],
        responses=responses,
        date=NOW,
        duration=12,
    )


def _make_summary() -> MeetingSummary:
    return MeetingSummary(summary="All good.", participants=["alice", "bob"], meeting_date=NOW)


class _FakeDevOps:
    """Records requests and answers like the Work Item Tracking API."""

    def __init__(self, work_items: dict[str, list[dict]] | None = None, fail_wiql_for: str = ""):
        self.requests: list[httpx.Request] = []
        self.work_items = work_items or {}
        self.fail_wiql_for = fail_wiql_for

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == f"{BASE}/wiql":
            query = json.loads(request.content)["query"]
            if self.fail_wiql_for and self.fail_wiql_for in query:
                return httpx.Response(400, json={"message": "bad query"})
            for assignee, items in self.work_items.items():
                if f"'{assignee}'" in query:
                    return httpx.Response(200, json={"workItems": [{"id": i["id"]} for i in items]})
            return httpx.Response(200, json={"workItems": []})
        if path == f"{BASE}/workitems" and request.method == "GET":
            ids = {int(i) for i in request.url.params["ids"].split(",")}
            value = [i for items in self.work_items.values() for i in items if i["id"] in ids]
            return httpx.Response(200, json={"value": value})
        if path.startswith(f"{BASE}/workitems/") and request.method == "PATCH":
            return httpx.Response(200, json={"id": int(path.rsplit("/", 1)[1])})
        if path == f"{BASE}/workitems/$Task" and request.method == "POST":
            return httpx.Response(200, json={"id": 900, "fields": {}})
        return httpx.Response(404)

    def calls(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]


def _make_tracker(fake: _FakeDevOps) -> AzureDevOpsTaskTracker:
    client = AzureDevOpsClient(
        org_url="https://dev.azure.com/acme/",
        token="pat-123",
        project="Standup",
        transport=httpx.MockTransport(fake),
    )
    return AzureDevOpsTaskTracker(client)


def _work_item(item_id: int, state: str = "New", tags: str = "") -> dict:
    return {
        "id": item_id,
        "fields": {
            "System.Title": f"Item {item_id}",
            "System.State": state,
            "System.WorkItemType": "Task",
            "System.AssignedTo": {"uniqueName": "alice", "displayName": "Alice"},
            "System.Tags": tags,
        },
    }


class TestPolicy:
    def test_blocker_moves_to_blocked(self):
        update = _make_update(today="finish billing", blockers="Waiting on QA")
        assert policy.determine_new_state("Active", update) == "Blocked"

    def test_finish_moves_to_done(self):
        assert policy.determine_new_state("Active", _make_update(today="Finish billing")) == "Done"
        assert policy.determine_new_state("Active", _make_update(yesterday="Completed login")) == "Done"

    def test_started_activates_new_items_only(self):
        update = _make_update(yesterday="Started the billing API")
        assert policy.determine_new_state("New", update) == "Active"
        assert policy.determine_new_state("To Do", update) == "Active"
        assert policy.determine_new_state("Active", update) is None

    def test_unchanged_state_is_none(self):
        update = _make_update(blockers="Waiting on QA")
        assert policy.determine_new_state("Blocked", update) is None

    def test_negated_blockers_are_not_blockers(self):
        assert _make_update(blockers="No blockers").has_blockers is False
        assert _make_update(blockers="").has_blockers is False

    def test_from_answers_pads_missing(self):
        update = policy.StandupUpdate.from_answers("alice", _make_answers("a", "b"))
        assert (update.yesterday, update.today, update.blockers) == ("a", "b", "")

    def test_format_standup_update(self):
        note = policy.format_standup_update(_make_update("a", "b", ""), NOW)
        assert note.startswith("--- Daily Standup Update (2026-10-19) ---")
        assert "Blockers: None" in note

    def test_merge_tag(self):
        assert policy.merge_tag("", "Blocked") == "Blocked"
        assert policy.merge_tag("Frontend; UX", "Blocked") == "Frontend; UX; Blocked"
        assert policy.merge_tag("Frontend; Blocked", "Blocked") is None

    def test_blocker_title_truncated(self):
        blocker = Blocker(participant="alice", text="x" * 150, timestamp=NOW)
        title = policy.blocker_title(blocker)
        assert title == "BLOCKER: " + "x" * 100 + "..."


class TestIsTransient:
    def _status_error(self, code: int) -> httpx.HTTPStatusError:
        request = httpx.Request("GET", "https://dev.azure.com")
        return httpx.HTTPStatusError(
            "error", request=request, response=httpx.Response(code, request=request)
        )

    @pytest.mark.parametrize(("code", "expected"), [(429, True), (503, True), (400, False), (404, False)])
    def test_status_codes(self, code, expected):
        assert _is_transient(self._status_error(code)) is expected

    def test_connect_error(self):
        assert _is_transient(httpx.ConnectError("refused")) is True

    def test_other_errors(self):
        assert _is_transient(ValueError("nope")) is False


class TestAzureDevOpsTaskTracker:
    async def test_sync_updates_items_and_creates_summary(self):
        fake = _FakeDevOps(work_items={"alice": [_work_item(1, state="New")]})
        tracker = _make_tracker(fake)
        data = _make_meeting_data(
            [_make_answers("Started billing", "Finish billing API", "none"), []]
        )

        await tracker.sync_from_meeting(data, _make_summary())

        [patch] = fake.calls("PATCH")
        assert patch.url.path == f"{BASE}/workitems/1"
        assert patch.headers["Content-Type"] == "application/json-patch+json"
        ops = json.loads(patch.content)
        assert ops[0]["path"] == "/fields/System.History"
        assert "Daily Standup Update (2026-10-19)" in ops[0]["value"]
        assert {"op": "replace", "path": "/fields/System.State", "value": "Done"} in ops

        creates = [r for r in fake.calls("POST") if r.url.path.endswith("$Task")]
        assert len(creates) == 1
        summary_ops = json.loads(creates[0].content)
        assert summary_ops[0]["value"] == "Daily Standup Summary - 2026-10-19"

    async def test_blocked_item_gets_tag(self):
        fake = _FakeDevOps(work_items={"alice": [_work_item(7, state="Active", tags="Backend")]})
        data = _make_meeting_data([_make_answers("Billing", "Billing", "Waiting on QA"), []])

        await _make_tracker(fake).sync_from_meeting(data, _make_summary())

        ops = json.loads(fake.calls("PATCH")[0].content)
        assert {"op": "replace", "path": "/fields/System.State", "value": "Blocked"} in ops
        assert {"op": "replace", "path": "/fields/System.Tags", "value": "Backend; Blocked"} in ops

    async def test_requests_carry_auth_and_api_version(self):
        fake = _FakeDevOps(work_items={"alice": [_work_item(1)]})
        data = _make_meeting_data([_make_answers("a", "b", "none"), []])

        await _make_tracker(fake).sync_from_meeting(data, _make_summary())

        for request in fake.requests:
            assert request.url.params["api-version"] == "7.0"
            assert request.headers["Authorization"].startswith("Basic ")

    async def test_participant_failure_does_not_stop_summary(self):
        fake = _FakeDevOps(
            work_items={"bob": [_work_item(2, state="Active")]}, fail_wiql_for="'alice'"
        )
        data = _make_meeting_data(
            [_make_answers("a", "b", "none"), _make_answers("Docs", "Reviews", "none")]
        )

        await _make_tracker(fake).sync_from_meeting(data, _make_summary())

        assert [r.url.path for r in fake.calls("PATCH")] == [f"{BASE}/workitems/2"]
        assert any(r.url.path.endswith("$Task") for r in fake.calls("POST"))

    async def test_participants_with_fewer_than_two_answers_skipped(self):
        fake = _FakeDevOps()
        data = _make_meeting_data([_make_answers("only one"), []])

        await _make_tracker(fake).sync_from_meeting(data, _make_summary())

        wiql = [r for r in fake.requests if r.url.path.endswith("/wiql")]
        assert wiql == []

    async def test_get_work_items_by_assignee(self):
        fake = _FakeDevOps(work_items={"alice": [_work_item(3, state="Active")]})
        items = await _make_tracker(fake).get_work_items_by_assignee("alice")

        assert [i.id for i in items] == [3]
        assert items[0].assigned_to == "alice"
        assert items[0].url == "https://dev.azure.com/acme/Standup/_workitems/edit/3"

    async def test_create_task_from_blocker(self):
        fake = _FakeDevOps()
        blocker = Blocker(participant="alice", text="Staging is down", timestamp=NOW)

        created = await _make_tracker(fake).create_task_from_blocker(blocker, "alice")

        assert created["id"] == 900
        ops = json.loads(fake.calls("POST")[0].content)
        assert ops[0]["value"] == "BLOCKER: Staging is down"
        assert {"op": "add", "path": "/fields/Microsoft.VSTS.Common.Priority", "value": 1} in ops

    async def test_client_error_propagates(self):
        fake = _FakeDevOps(fail_wiql_for="'alice'")
        with pytest.raises(httpx.HTTPStatusError):
            await _make_tracker(fake).get_work_items_by_assignee("alice")


class TestNullTaskTracker:
    async def test_sync_is_a_noop(self):
        data = _make_meeting_data([[], []])
        assert await NullTaskTracker().sync_from_meeting(data, _make_summary()) is None
