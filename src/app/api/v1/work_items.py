"""Azure DevOps work item endpoints.

Read a member's open work items and open a high-priority Task for a
reported blocker. Both need the Azure DevOps integration to be
configured; otherwise the dependency answers 503.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.app.api.deps import get_task_tracker
from src.app.meetings.schemas import Blocker
from src.app.meetings.tasks.azure_devops import WorkItem

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/devops", tags=["work-items"])


class BlockerTaskRequest(BaseModel):
    """Body for POST /devops/blocker-tasks."""

    participant: str = Field(min_length=1)
    text: str = Field(min_length=1)
    assignee: str = Field(min_length=1)
    timestamp: datetime | None = None


def _upstream_error(exc: httpx.HTTPError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"code": "collaborator_failure", "message": f"Azure DevOps request failed: {exc}"},
    )


@router.get("/work-items/{assignee}", response_model=list[WorkItem])
async def get_work_items(
    assignee: str,
    tracker: Any = Depends(get_task_tracker),
) -> list[WorkItem]:
    """Open work items assigned to ``assignee``."""
    try:
        return await tracker.get_work_items_by_assignee(assignee)
    except httpx.HTTPError as exc:
        logger.error("work_items_fetch_failed", assignee=assignee, exc_info=True)
        raise _upstream_error(exc) from exc


@router.post("/blocker-tasks", status_code=status.HTTP_201_CREATED)
async def create_blocker_task(
    body: BlockerTaskRequest,
    tracker: Any = Depends(get_task_tracker),
) -> dict:
    blocker = Blocker(
        participant=body.participant,
        text=body.text,
        timestamp=body.timestamp or datetime.now(timezone.utc),
    )
    try:
        created = await tracker.create_task_from_blocker(blocker, body.assignee)
    except httpx.HTTPError as exc:
        logger.error("blocker_task_create_failed", assignee=body.assignee, exc_info=True)
        raise _upstream_error(exc) from exc
    logger.info("blocker_task_created", work_item_id=created.get("id"), assignee=body.assignee)
    return created
