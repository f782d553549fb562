"""Task tracker abstract base class -- the interface the finalizer syncs through.

Every tracker backend (Azure DevOps today) implements this ABC. Syncing is
best-effort: the finalizer logs and ignores any exception it raises.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

from src.app.meetings.schemas import MeetingData, MeetingSummary

logger = structlog.get_logger(__name__)


class TaskTracker(ABC):
    """Abstract interface for work-item synchronization.

    Methods:
        sync_from_meeting: Reflect a finished meeting's answers and summary.
    """

    @abstractmethod
    async def sync_from_meeting(
        self, meeting_data: MeetingData, summary: MeetingSummary
    ) -> None:
        """Push standup outcomes to the tracker."""
        ...


class NullTaskTracker(TaskTracker):
    """Tracker used when no backend is configured: logs and does nothing."""

    async def sync_from_meeting(
        self, meeting_data: MeetingData, summary: MeetingSummary
    ) -> None:
        logger.info(
            "task_sync_skipped",
            meeting_id=meeting_data.id,
            reason="no task tracker configured",
        )


__all__ = ["NullTaskTracker", "TaskTracker"]
