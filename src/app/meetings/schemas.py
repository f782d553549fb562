"""Pydantic v2 schemas for the standup meeting domain.

Defines the data contracts for meetings, standup sub-sessions, the
meeting-data record handed to collaborators, summaries, blocker analyses,
notification payloads, and the results returned by MeetingService. All
other modules in this package import from here.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from src.app.meetings.clock import resolve_timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enums ────────────────────────────────────────────────────────────────────


class MeetingStatus(str, Enum):
    """Lifecycle status of a meeting.

    scheduled -> in-progress -> completed, with cancelled reachable from
    either non-terminal status.
    """

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Recurrence(str, Enum):
    """How often a meeting is triggered."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"


# ── Meeting ──────────────────────────────────────────────────────────────────


class MeetingCreate(BaseModel):
    """Request schema for scheduling a new meeting."""

    title: str = "Daily Standup"
    participants: list[str] = Field(min_length=1)
    scheduled_time: datetime
    timezone: str = "UTC"
    duration: int = Field(default=30, ge=1)
    recurrence: Recurrence = Recurrence.NONE
    virtual_facilitator: bool = False
    created_by: str = "system"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        resolve_timezone(value)
        return value


class Meeting(BaseModel):
    """Full meeting entity as owned by the MeetingRepository."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    participants: list[str] = Field(default_factory=list)
    scheduled_time: datetime
    timezone: str = "UTC"
    duration: int = Field(
        default=30,
        description="Nominal minutes; overwritten with the actual duration on finalize",
    )
    recurrence: Recurrence = Recurrence.NONE
    virtual_facilitator: bool = False
    status: MeetingStatus = MeetingStatus.SCHEDULED
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: datetime | None = None
    ended_at: datetime | None = None
    created_by: str = "system"


class MeetingInfo(BaseModel):
    """Meeting details shown to a participant on join."""

    title: str
    start_time: datetime
    participants: list[str]


class MeetingStatusView(BaseModel):
    """Compact status view of a single meeting."""

    status: MeetingStatus
    started_at: datetime | None = None
    ended_at: datetime | None = None


# ── Standup Sub-session ──────────────────────────────────────────────────────


class StandupAnswer(BaseModel):
    """One collected answer with the question it answered."""

    question: str
    answer: str
    timestamp: datetime


class StandupSubSession(BaseModel):
    """One participant's progress through the three standup questions."""

    session_id: str
    participant: str
    questions: list[str] = Field(min_length=3, max_length=3)
    answers: list[StandupAnswer] = Field(default_factory=list)
    current_question_index: int = Field(default=0, ge=0, le=3)
    is_complete: bool = False

    @property
    def current_question(self) -> str | None:
        if self.is_complete:
            return None
        return self.questions[self.current_question_index]


class ConversationStart(BaseModel):
    """Questions and id returned by the conversation generator for a participant."""

    session_id: str
    questions: list[str] = Field(min_length=3, max_length=3)


# ── Finalization Records ─────────────────────────────────────────────────────


class MeetingData(BaseModel):
    """Record assembled by the finalizer and handed to collaborators.

    ``responses`` is positional: ``responses[i]`` holds the answers of
    ``participants[i]`` and is empty if that participant never completed.
    """

    id: str
    title: str
    participants: list[str]
    responses: list[list[StandupAnswer]] = Field(default_factory=list)
    date: datetime
    duration: int


class Blocker(BaseModel):
    """A blocker reported in a participant's third answer."""

    participant: str
    text: str
    timestamp: datetime


class MeetingSummary(BaseModel):
    """Summary produced by the conversation generator."""

    summary: str
    participants: list[str] = Field(default_factory=list)
    blockers: list[Blocker] = Field(default_factory=list)
    meeting_date: datetime = Field(default_factory=_utcnow)
    duration: int | None = None


class BlockerAnalysis(BaseModel):
    """Categorization of blockers and escalation recommendation."""

    analysis: str
    requires_escalation: bool = False
    blockers: list[Blocker] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)


class MeetingInsights(BaseModel):
    """Team-level insights derived from a finished meeting."""

    meeting_id: str
    insights: str
    generated_at: datetime = Field(default_factory=_utcnow)


# ── Notification Payloads ────────────────────────────────────────────────────


class NotificationMeetingInfo(BaseModel):
    """Meeting details embedded in participant notifications."""

    title: str
    scheduled_time: datetime
    duration: int
    timezone: str


class MeetingNotification(BaseModel):
    """Generic participant notification (meeting started, cancelled, ...)."""

    subject: str
    message: str
    meeting_info: NotificationMeetingInfo


class EscalationAlert(BaseModel):
    """Alert sent to the escalation recipient for urgent blockers."""

    subject: str
    meeting_id: str
    meeting_title: str
    blockers: list[Blocker] = Field(default_factory=list)
    analysis: str
    timestamp: datetime = Field(default_factory=_utcnow)


# ── Service Results ──────────────────────────────────────────────────────────


class JoinResult(BaseModel):
    """Welcome context returned to a joining participant."""

    welcome_message: str
    meeting_info: MeetingInfo
    session_id: str | None = None
    first_question: str | None = None


class SubmitResult(BaseModel):
    """Outcome of one standup answer submission."""

    acknowledgment: str
    is_complete: bool
    next_question: str | None = None
    completion_message: str | None = None


class FinalizeResult(BaseModel):
    """Everything the finalizer produced for a meeting."""

    meeting_data: MeetingData
    summary: MeetingSummary
    blocker_analysis: BlockerAnalysis


class ActiveSessionInfo(BaseModel):
    """Snapshot of a live meeting session."""

    meeting_id: str
    participants: list[str]
    start_time: datetime
    completed_participants: int
