"""Meeting repository -- the single source of truth for meeting status.

MeetingRepository is the abstract interface the orchestration layer codes
against; InMemoryMeetingRepository is the process-lifetime adapter. A
durable adapter only has to implement the same five methods.

The status state machine lives here so every adapter enforces it the same
way:

    scheduled -> in-progress -> completed
    scheduled | in-progress -> cancelled

Returned Meeting objects are copies; mutating them does not touch the
stored record.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import structlog

from src.app.meetings.clock import Clock, SystemClock, localize
from src.app.meetings.errors import (
    InvalidTransitionError,
    MeetingNotFoundError,
    PastScheduleError,
)
from src.app.meetings.schemas import Meeting, MeetingCreate, MeetingStatus, Recurrence

logger = structlog.get_logger(__name__)


ALLOWED_TRANSITIONS: dict[MeetingStatus, frozenset[MeetingStatus]] = {
    MeetingStatus.SCHEDULED: frozenset(
        {MeetingStatus.IN_PROGRESS, MeetingStatus.CANCELLED}
    ),
    MeetingStatus.IN_PROGRESS: frozenset(
        {MeetingStatus.COMPLETED, MeetingStatus.CANCELLED}
    ),
    MeetingStatus.COMPLETED: frozenset(),
    MeetingStatus.CANCELLED: frozenset(),
}

# Fields a transition may stamp alongside the status change.
_TRANSITION_FIELDS = frozenset({"started_at", "ended_at", "duration"})


def can_transition(current: MeetingStatus, new: MeetingStatus) -> bool:
    """Return True if ``current -> new`` is a legal status change."""
    return new in ALLOWED_TRANSITIONS[current]


def build_meeting(data: MeetingCreate, clock: Clock) -> Meeting:
    """Validate a MeetingCreate and build the Meeting it describes.

    Naive scheduled times are read in the meeting's timezone. One-time
    meetings must start strictly after ``clock.now()``.

    Raises:
        PastScheduleError: If a one-time meeting is not in the future.
    """
    scheduled_time = localize(data.scheduled_time, data.timezone)
    now = clock.now()

    if data.recurrence == Recurrence.NONE and scheduled_time <= now:
        raise PastScheduleError(
            f"Cannot schedule meeting in the past: {scheduled_time.isoformat()}"
        )

    return Meeting(
        title=data.title,
        participants=list(data.participants),
        scheduled_time=scheduled_time,
        timezone=data.timezone,
        duration=data.duration,
        recurrence=data.recurrence,
        virtual_facilitator=data.virtual_facilitator,
        created_at=now,
        created_by=data.created_by,
    )


class MeetingRepository(ABC):
    """Abstract interface for meeting storage.

    Methods:
        create: Store a new scheduled meeting.
        get: Fetch a meeting by id.
        list_for_user: Meetings where a user participates or is the creator.
        list_all: Every stored meeting in insertion order.
        transition: Apply a status change, enforcing the state machine.
    """

    @abstractmethod
    async def create(self, data: MeetingCreate) -> Meeting:
        """Store a new meeting in ``scheduled`` status and return it."""
        ...

    @abstractmethod
    async def get(self, meeting_id: str) -> Meeting:
        """Return the meeting or raise MeetingNotFoundError."""
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[Meeting]:
        """Meetings listing ``user_id`` as participant or creator, in registry order."""
        ...

    @abstractmethod
    async def list_all(self) -> list[Meeting]:
        """All meetings in registry order."""
        ...

    @abstractmethod
    async def transition(
        self, meeting_id: str, new_status: MeetingStatus, **changes: Any
    ) -> Meeting:
        """Move a meeting to ``new_status`` and apply stamp ``changes``.

        Raises:
            MeetingNotFoundError: If the meeting does not exist.
            InvalidTransitionError: If the change is not allowed.
        """
        ...


class InMemoryMeetingRepository(MeetingRepository):
    """Process-lifetime meeting storage backed by an insertion-ordered dict.

    Args:
        clock: Time source used for creation stamps and the past-schedule check.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._meetings: dict[str, Meeting] = {}
        self._lock = asyncio.Lock()

    async def create(self, data: MeetingCreate) -> Meeting:
        meeting = build_meeting(data, self._clock)
        async with self._lock:
            self._meetings[meeting.id] = meeting
        logger.info(
            "meeting_created",
            meeting_id=meeting.id,
            title=meeting.title,
            recurrence=meeting.recurrence.value,
            participant_count=len(meeting.participants),
        )
        return meeting.model_copy(deep=True)

    async def get(self, meeting_id: str) -> Meeting:
        meeting = self._meetings.get(meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(f"Meeting not found: {meeting_id}")
        return meeting.model_copy(deep=True)

    async def list_for_user(self, user_id: str) -> list[Meeting]:
        return [
            m.model_copy(deep=True)
            for m in self._meetings.values()
            if user_id in m.participants or m.created_by == user_id
        ]

    async def list_all(self) -> list[Meeting]:
        return [m.model_copy(deep=True) for m in self._meetings.values()]

    async def transition(
        self, meeting_id: str, new_status: MeetingStatus, **changes: Any
    ) -> Meeting:
        unknown = set(changes) - _TRANSITION_FIELDS
        if unknown:
            raise TypeError(f"Unsupported transition fields: {sorted(unknown)}")

        async with self._lock:
            meeting = self._meetings.get(meeting_id)
            if meeting is None:
                raise MeetingNotFoundError(f"Meeting not found: {meeting_id}")
            if not can_transition(meeting.status, new_status):
                raise InvalidTransitionError(
                    f"Meeting {meeting_id}", meeting.status.value, new_status.value
                )
            updated = meeting.model_copy(update={"status": new_status, **changes})
            self._meetings[meeting_id] = updated

        logger.info(
            "meeting_status_changed",
            meeting_id=meeting_id,
            from_status=meeting.status.value,
            to_status=new_status.value,
        )
        return updated.model_copy(deep=True)


__all__ = [
    "ALLOWED_TRANSITIONS",
    "InMemoryMeetingRepository",
    "MeetingRepository",
    "build_meeting",
    "can_transition",
]
