"""Live meeting sessions and the completion detector.

A MeetingSession exists only while its meeting is in progress. It holds
the participant snapshot taken at start, the positional response table,
and one StandupSubSession per joined participant.

SessionStore owns every live session plus one asyncio.Lock per meeting
id, kept only while some task holds or waits on it. Callers serialize
read-then-write work on a meeting by holding
``store.lock(meeting_id)``; collaborator calls happen outside it. Each
participant additionally gets a private lock so a participant's own
submissions stay ordered while an acknowledgment is being generated,
without holding up anyone else in the meeting.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from src.app.core.monitoring import active_sessions
from src.app.meetings.errors import MeetingNotFoundError
from src.app.meetings.schemas import ActiveSessionInfo, StandupAnswer, StandupSubSession

logger = structlog.get_logger(__name__)


class KeyedLocks:
    """One asyncio.Lock per key, dropped when its last holder or waiter leaves."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __contains__(self, key: object) -> bool:
        return key in self._locks

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class MeetingSession:
    """State of one in-progress meeting."""

    meeting_id: str
    participants: tuple[str, ...]
    start_time: datetime
    responses: list[list[StandupAnswer]] = field(default_factory=list)
    sub_sessions: dict[str, StandupSubSession] = field(default_factory=dict)
    finalized: bool = False
    _participant_locks: KeyedLocks = field(default_factory=KeyedLocks, repr=False)

    def __post_init__(self) -> None:
        if not self.responses:
            self.responses = [[] for _ in self.participants]

    def participant_lock(self, participant: str):
        """Serializes one participant's own submissions."""
        return self._participant_locks.hold(participant)

    def sub_session(self, participant: str) -> StandupSubSession:
        state = self.sub_sessions.get(participant)
        if state is None:
            raise MeetingNotFoundError(
                f"No standup session for {participant} in meeting {self.meeting_id}"
            )
        return state

    def record(self, state: StandupSubSession) -> None:
        """Store a sub-session step; on completion fill the participant's slots.

        A participant listed more than once owns every matching slot.
        """
        self.sub_sessions[state.participant] = state
        if state.is_complete:
            for i, name in enumerate(self.participants):
                if name == state.participant:
                    self.responses[i] = list(state.answers)

    def completed_count(self) -> int:
        """Number of participant slots whose sub-session is complete."""
        return sum(
            1
            for name in self.participants
            if (state := self.sub_sessions.get(name)) is not None and state.is_complete
        )

    def has_unfinished_flows(self) -> bool:
        """True while a joined participant still has questions left."""
        return any(not state.is_complete for state in self.sub_sessions.values())

    def claim_finalization(self, *, require_all_complete: bool = True) -> bool:
        """Set ``finalized`` once and report whether this caller won.

        With ``require_all_complete`` the claim only succeeds when every
        participant has finished. Must be called under the meeting lock.
        """
        if self.finalized:
            return False
        if require_all_complete and self.completed_count() != len(self.participants):
            return False
        self.finalized = True
        return True

    def info(self) -> ActiveSessionInfo:
        return ActiveSessionInfo(
            meeting_id=self.meeting_id,
            participants=list(self.participants),
            start_time=self.start_time,
            completed_participants=self.completed_count(),
        )


class SessionStore:
    """Process-wide registry of live MeetingSessions with per-meeting locks."""

    def __init__(self) -> None:
        self._sessions: dict[str, MeetingSession] = {}
        self._locks = KeyedLocks()

    def lock(self, meeting_id: str):
        """Async context manager holding the exclusive lock for ``meeting_id``."""
        return self._locks.hold(meeting_id)

    def create(
        self, meeting_id: str, participants: list[str], start_time: datetime
    ) -> MeetingSession:
        if meeting_id in self._sessions:
            raise ValueError(f"Session already exists for meeting {meeting_id}")
        session = MeetingSession(
            meeting_id=meeting_id,
            participants=tuple(participants),
            start_time=start_time,
        )
        self._sessions[meeting_id] = session
        active_sessions.set(len(self._sessions))
        logger.info(
            "meeting_session_created",
            meeting_id=meeting_id,
            participant_count=len(participants),
        )
        return session

    def get(self, meeting_id: str) -> MeetingSession:
        session = self._sessions.get(meeting_id)
        if session is None:
            raise MeetingNotFoundError(f"No active session for meeting {meeting_id}")
        return session

    def find(self, meeting_id: str) -> MeetingSession | None:
        return self._sessions.get(meeting_id)

    def discard(self, meeting_id: str) -> None:
        if self._sessions.pop(meeting_id, None) is not None:
            active_sessions.set(len(self._sessions))
            logger.info("meeting_session_discarded", meeting_id=meeting_id)

    def active(self) -> list[MeetingSession]:
        return list(self._sessions.values())

    def __contains__(self, meeting_id: object) -> bool:
        return meeting_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


__all__ = ["KeyedLocks", "MeetingSession", "SessionStore"]
