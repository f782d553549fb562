"""Interfaces the meeting core consumes from its collaborators.

The orchestration code depends only on these protocols. Concrete
implementations live in ``conversation``, ``notifications`` and
``tasks``; tests substitute AsyncMock objects.
"""

from __future__ import annotations

from typing import Protocol

from src.app.meetings.schemas import (
    Blocker,
    BlockerAnalysis,
    ConversationStart,
    EscalationAlert,
    MeetingData,
    MeetingInsights,
    MeetingNotification,
    MeetingSummary,
)


class ConversationGenerator(Protocol):
    """Language generation for the standup flow and meeting wrap-up."""

    async def start_session(self, participant: str) -> ConversationStart: ...

    async def acknowledge(self, answer: str, question_index: int) -> str: ...

    async def summarize(self, meeting_data: MeetingData) -> MeetingSummary: ...

    async def analyze_blockers(self, blockers: list[Blocker]) -> BlockerAnalysis: ...

    async def generate_insights(self, meeting_data: MeetingData) -> MeetingInsights: ...


class Notifier(Protocol):
    """Participant and escalation notifications.

    Implementations log delivery failures instead of raising; the return
    value is informational and ignored by the core.
    """

    async def send_summary(
        self, participants: list[str], summary: MeetingSummary, title: str
    ) -> object: ...

    async def send_escalation_alert(
        self, recipients: list[str], alert: EscalationAlert
    ) -> object: ...

    async def send_notification(
        self, participants: list[str], notification: MeetingNotification
    ) -> object: ...


__all__ = ["ConversationGenerator", "Notifier"]
