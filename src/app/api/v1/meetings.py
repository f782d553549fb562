"""REST endpoints for the standup meeting lifecycle.

Scheduling, listing, starting, joining, answering standup questions,
ending and cancelling meetings, plus read-only views of live sessions,
meeting status and finalized results.

MeetingService is created in the application lifespan and read from
``app.state``; domain errors are mapped to HTTP status codes in
src/app/api/deps.py.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.app.api.deps import get_meeting_service, http_error
from src.app.config import get_settings
from src.app.meetings.errors import MeetingError
from src.app.meetings.schemas import (
    ActiveSessionInfo,
    FinalizeResult,
    JoinResult,
    Meeting,
    MeetingCreate,
    MeetingInsights,
    MeetingStatusView,
    Recurrence,
    SubmitResult,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/meetings", tags=["meetings"])


# ── Request Schemas ──────────────────────────────────────────────────────────


class ScheduleMeetingRequest(BaseModel):
    """Body for POST /meetings/schedule; omitted fields use configured defaults."""

    title: str | None = None
    participants: list[str] = Field(min_length=1)
    scheduled_time: datetime
    duration: int | None = Field(default=None, ge=1)
    timezone: str | None = None
    recurrence: Recurrence = Recurrence.NONE
    virtual_facilitator: bool = False
    created_by: str = "system"

    def to_create(self) -> MeetingCreate:
        settings = get_settings()
        return MeetingCreate(
            title=self.title or settings.DEFAULT_MEETING_TITLE,
            participants=self.participants,
            scheduled_time=self.scheduled_time,
            duration=self.duration or settings.DEFAULT_MEETING_DURATION_MINUTES,
            timezone=self.timezone or settings.DEFAULT_TIMEZONE,
            recurrence=self.recurrence,
            virtual_facilitator=self.virtual_facilitator,
            created_by=self.created_by,
        )


class JoinMeetingRequest(BaseModel):
    participant: str = Field(min_length=1)


class StandupResponseRequest(BaseModel):
    participant: str = Field(min_length=1)
    response: str = Field(min_length=1)


# ── Scheduling and Queries ───────────────────────────────────────────────────


@router.post("/schedule", response_model=Meeting, status_code=status.HTTP_201_CREATED)
async def schedule_meeting(
    body: ScheduleMeetingRequest,
    service: Any = Depends(get_meeting_service),
) -> Meeting:
    """Schedule a one-time or daily standup."""
    try:
        create = body.to_create()
    except ValueError as exc:
        # Unknown timezone, either requested or configured as the default.
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "invalid_timezone", "message": str(exc)},
        ) from exc
    try:
        meeting = await service.schedule_meeting(create)
    except MeetingError as exc:
        raise http_error(exc) from exc
    logger.info(
        "api_meeting_scheduled",
        meeting_id=meeting.id,
        recurrence=meeting.recurrence.value,
        participant_count=len(meeting.participants),
    )
    return meeting


@router.get("", response_model=list[Meeting])
async def list_meetings(
    user_id: str = Query(..., min_length=1),
    service: Any = Depends(get_meeting_service),
) -> list[Meeting]:
    """Meetings the user created or participates in."""
    return await service.list_meetings(user_id)


@router.get("/admin/active-sessions", response_model=list[ActiveSessionInfo])
async def list_active_sessions(
    service: Any = Depends(get_meeting_service),
) -> list[ActiveSessionInfo]:
    return await service.list_active_sessions()


@router.delete("/admin/active-sessions/{meeting_id}", response_model=ActiveSessionInfo)
async def retire_session(
    meeting_id: str,
    service: Any = Depends(get_meeting_service),
) -> ActiveSessionInfo:
    """Drop the leftover live session of a cancelled meeting."""
    try:
        return await service.retire_session(meeting_id)
    except MeetingError as exc:
        raise http_error(exc) from exc


@router.get("/{meeting_id}", response_model=Meeting)
async def get_meeting(
    meeting_id: str,
    service: Any = Depends(get_meeting_service),
) -> Meeting:
    try:
        return await service.get_meeting(meeting_id)
    except MeetingError as exc:
        raise http_error(exc) from exc


@router.get("/{meeting_id}/status", response_model=MeetingStatusView)
async def get_meeting_status(
    meeting_id: str,
    service: Any = Depends(get_meeting_service),
) -> MeetingStatusView:
    try:
        return await service.get_meeting_status(meeting_id)
    except MeetingError as exc:
        raise http_error(exc) from exc


# ── Lifecycle ────────────────────────────────────────────────────────────────


@router.post("/{meeting_id}/start", response_model=ActiveSessionInfo)
async def start_meeting(
    meeting_id: str,
    service: Any = Depends(get_meeting_service),
) -> ActiveSessionInfo:
    """Start a scheduled meeting ahead of its trigger."""
    try:
        session = await service.start_meeting(meeting_id)
    except MeetingError as exc:
        raise http_error(exc) from exc
    return session.info()


@router.post("/{meeting_id}/join", response_model=JoinResult)
async def join_meeting(
    meeting_id: str,
    body: JoinMeetingRequest,
    service: Any = Depends(get_meeting_service),
) -> JoinResult:
    try:
        return await service.join_meeting(meeting_id, body.participant)
    except MeetingError as exc:
        raise http_error(exc) from exc


@router.post("/{meeting_id}/standup-response", response_model=SubmitResult)
async def submit_standup_response(
    meeting_id: str,
    body: StandupResponseRequest,
    service: Any = Depends(get_meeting_service),
) -> SubmitResult:
    """Answer the participant's current standup question."""
    try:
        return await service.submit_standup_response(
            meeting_id, body.participant, body.response
        )
    except MeetingError as exc:
        raise http_error(exc) from exc


@router.post("/{meeting_id}/end", response_model=FinalizeResult)
async def end_meeting(
    meeting_id: str,
    service: Any = Depends(get_meeting_service),
) -> FinalizeResult:
    """End a live meeting now, finalizing with whatever answers exist."""
    try:
        return await service.end_meeting(meeting_id)
    except MeetingError as exc:
        raise http_error(exc) from exc


@router.delete("/{meeting_id}", response_model=Meeting)
async def cancel_meeting(
    meeting_id: str,
    service: Any = Depends(get_meeting_service),
) -> Meeting:
    try:
        return await service.cancel_meeting(meeting_id)
    except MeetingError as exc:
        raise http_error(exc) from exc


# ── Finalized Results ────────────────────────────────────────────────────────


@router.get("/{meeting_id}/summary", response_model=FinalizeResult)
async def get_meeting_summary(
    meeting_id: str,
    service: Any = Depends(get_meeting_service),
) -> FinalizeResult:
    """Summary and blocker analysis retained from finalization."""
    try:
        return await service.get_finalize_result(meeting_id)
    except MeetingError as exc:
        raise http_error(exc) from exc


@router.get("/{meeting_id}/insights", response_model=MeetingInsights)
async def get_meeting_insights(
    meeting_id: str,
    service: Any = Depends(get_meeting_service),
) -> MeetingInsights:
    try:
        return await service.get_meeting_insights(meeting_id)
    except MeetingError as exc:
        raise http_error(exc) from exc
