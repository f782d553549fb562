"""Azure DevOps (Azure Boards) task tracker.

AzureDevOpsClient is a thin async wrapper over the Work Item Tracking REST
API (WIQL query, batch get, JSON-patch update and create) with tenacity
retries on transient failures. AzureDevOpsTaskTracker applies the
standup policy from ``policy.py`` on top of it.

Exports:
    AzureDevOpsClient: REST client.
    AzureDevOpsTaskTracker: TaskTracker implementation.
    WorkItem: Flattened work item view.
"""

from __future__ import annotations

import httpx
import structlog
from pydantic import BaseModel
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from src.app.meetings.schemas import Blocker, MeetingData, MeetingSummary
from src.app.meetings.tasks import policy
from src.app.meetings.tasks.tracker import TaskTracker

logger = structlog.get_logger(__name__)

ACTIVE_STATES = ("Active", "In Progress", "To Do", "New")
CLOSED_STATES = ("Closed", "Removed")
JSON_PATCH = "application/json-patch+json"


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))


_devops_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)


def _wiql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class WorkItem(BaseModel):
    """The fields of a work item the standup sync reads."""

    id: int
    title: str = ""
    state: str = ""
    type: str = ""
    assigned_to: str | None = None
    tags: str = ""
    url: str = ""

    @classmethod
    def from_api(cls, data: dict, web_url: str) -> WorkItem:
        fields = data.get("fields", {})
        assigned = fields.get("System.AssignedTo")
        if isinstance(assigned, dict):
            assigned = assigned.get("uniqueName") or assigned.get("displayName")
        return cls(
            id=data["id"],
            title=fields.get("System.Title", ""),
            state=fields.get("System.State", ""),
            type=fields.get("System.WorkItemType", ""),
            assigned_to=assigned,
            tags=fields.get("System.Tags", ""),
            url=f"{web_url}/_workitems/edit/{data['id']}",
        )


class AzureDevOpsClient:
    """Async client for the Azure DevOps Work Item Tracking API.

    Args:
        org_url: Organization URL, e.g. https://dev.azure.com/my-org.
        token: Personal access token.
        project: Project name.
        api_version: REST API version.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    TIMEOUT = 30.0

    def __init__(
        self,
        org_url: str,
        token: str,
        project: str,
        api_version: str = "7.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._project = project
        self._api_version = api_version
        self._base_url = f"{org_url.rstrip('/')}/{project}/_apis/wit"
        self._web_url = f"{org_url.rstrip('/')}/{project}"
        self._auth = httpx.BasicAuth("", token)
        self._transport = transport

    @property
    def project(self) -> str:
        return self._project

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=self._auth,
            timeout=self.TIMEOUT,
            params={"api-version": self._api_version},
            transport=self._transport,
        )

    @_devops_retry
    async def query_ids(self, wiql: str) -> list[int]:
        """Run a WIQL query and return the matching work item ids."""
        async with self._client() as client:
            response = await client.post(f"{self._base_url}/wiql", json={"query": wiql})
            response.raise_for_status()
            return [item["id"] for item in response.json().get("workItems", [])]

    @_devops_retry
    async def get_work_items(self, ids: list[int]) -> list[WorkItem]:
        if not ids:
            return []
        async with self._client() as client:
            response = await client.get(
                f"{self._base_url}/workitems",
                params={"ids": ",".join(str(i) for i in ids)},
            )
            response.raise_for_status()
            return [
                WorkItem.from_api(item, self._web_url)
                for item in response.json().get("value", [])
            ]

    @_devops_retry
    async def update_work_item(self, work_item_id: int, operations: list[dict]) -> dict:
        async with self._client() as client:
            response = await client.patch(
                f"{self._base_url}/workitems/{work_item_id}",
                json=operations,
                headers={"Content-Type": JSON_PATCH},
            )
            response.raise_for_status()
            logger.info(
                "devops.work_item_updated",
                work_item_id=work_item_id,
                operations=len(operations),
            )
            return response.json()

    @_devops_retry
    async def create_work_item(self, work_item_type: str, operations: list[dict]) -> dict:
        async with self._client() as client:
            response = await client.post(
                f"{self._base_url}/workitems/${work_item_type}",
                json=operations,
                headers={"Content-Type": JSON_PATCH},
            )
            response.raise_for_status()
            data = response.json()
            logger.info("devops.work_item_created", work_item_id=data.get("id"))
            return data


def _field(op: str, name: str, value: object) -> dict:
    return {"op": op, "path": f"/fields/{name}", "value": value}


class AzureDevOpsTaskTracker(TaskTracker):
    """Reflects standup answers onto Azure Boards work items.

    For each participant with at least two answers: find their active work
    items, append a dated standup note, apply the state policy and tag
    blocked items. Then create a ``Done`` summary Task for the meeting.
    A failure on one participant is logged and does not stop the others.
    """

    def __init__(self, client: AzureDevOpsClient) -> None:
        self._client = client

    async def sync_from_meeting(
        self, meeting_data: MeetingData, summary: MeetingSummary
    ) -> None:
        synced = 0
        for participant, answers in zip(meeting_data.participants, meeting_data.responses):
            if len(answers) < 2:
                continue
            update = policy.StandupUpdate.from_answers(participant, answers)
            try:
                await self._update_participant_items(update, meeting_data)
            except Exception:
                logger.warning(
                    "devops.participant_sync_failed",
                    meeting_id=meeting_data.id,
                    participant=participant,
                    exc_info=True,
                )
                continue
            synced += 1

        await self.create_summary_work_item(meeting_data, summary)
        logger.info("devops.meeting_synced", meeting_id=meeting_data.id, participants=synced)

    async def _update_participant_items(
        self, update: policy.StandupUpdate, meeting_data: MeetingData
    ) -> None:
        states = ", ".join(_wiql_literal(s) for s in ACTIVE_STATES)
        ids = await self._client.query_ids(
            "SELECT [System.Id] FROM WorkItems "
            f"WHERE [System.TeamProject] = {_wiql_literal(self._client.project)} "
            f"AND [System.AssignedTo] CONTAINS {_wiql_literal(update.participant)} "
            f"AND [System.State] IN ({states}) "
            "ORDER BY [System.ChangedDate] DESC"
        )
        if not ids:
            logger.info("devops.no_active_work_items", participant=update.participant)
            return

        note = policy.format_standup_update(update, meeting_data.date)
        for item in await self._client.get_work_items(ids):
            operations = [_field("add", "System.History", note)]
            new_state = policy.determine_new_state(item.state, update)
            if new_state:
                operations.append(_field("replace", "System.State", new_state))
            if update.has_blockers:
                tags = policy.merge_tag(item.tags, policy.BLOCKED_TAG)
                if tags is not None:
                    operations.append(_field("replace", "System.Tags", tags))
            await self._client.update_work_item(item.id, operations)

    async def create_summary_work_item(
        self, meeting_data: MeetingData, summary: MeetingSummary
    ) -> dict:
        project = self._client.project
        return await self._client.create_work_item(
            "Task",
            [
                _field("add", "System.Title", policy.summary_title(meeting_data.date)),
                _field(
                    "add",
                    "System.Description",
                    policy.summary_description(meeting_data, summary),
                ),
                _field("add", "System.Tags", policy.SUMMARY_TAGS),
                _field("add", "System.State", policy.DONE_STATE),
                _field("add", "System.AreaPath", project),
                _field("add", "System.IterationPath", project),
            ],
        )

    async def get_work_items_by_assignee(self, assignee: str) -> list[WorkItem]:
        """Open work items assigned to ``assignee``, most recently changed first."""
        closed = ", ".join(_wiql_literal(s) for s in CLOSED_STATES)
        ids = await self._client.query_ids(
            "SELECT [System.Id] FROM WorkItems "
            f"WHERE [System.TeamProject] = {_wiql_literal(self._client.project)} "
            f"AND [System.AssignedTo] CONTAINS {_wiql_literal(assignee)} "
            f"AND [System.State] NOT IN ({closed}) "
            "ORDER BY [System.ChangedDate] DESC"
        )
        return await self._client.get_work_items(ids)

    async def create_task_from_blocker(self, blocker: Blocker, assignee: str) -> dict:
        """High-priority Task for a reported blocker."""
        return await self._client.create_work_item(
            "Task",
            [
                _field("add", "System.Title", policy.blocker_title(blocker)),
                _field("add", "System.Description", policy.blocker_description(blocker)),
                _field("add", "System.Tags", policy.BLOCKER_TAGS),
                _field("add", "Microsoft.VSTS.Common.Priority", 1),
                _field("add", "System.AssignedTo", assignee),
            ],
        )


__all__ = ["AzureDevOpsClient", "AzureDevOpsTaskTracker", "WorkItem"]
