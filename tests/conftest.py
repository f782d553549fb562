"""Shared fixtures for the standup meeting tests.

Provides:
- FakeClock pinned to a fixed instant (advance() moves it forward)
- InMemoryMeetingRepository and a never-started APScheduler-backed scheduler
- Collaborator doubles: the conversation generator wraps the real
  placeholder-mode generator in AsyncMocks so calls can be counted,
  notifier and task tracker are plain AsyncMocks
- A MeetingService wired from all of the above
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.app.meetings.conversation.generator import StandupConversationGenerator
from src.app.meetings.repository import InMemoryMeetingRepository
from src.app.meetings.scheduler import APSchedulerMeetingScheduler
from src.app.meetings.service import MeetingService
from src.app.meetings.tasks.tracker import TaskTracker

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
LEAD_EMAIL = "lead@example.com"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = NOW) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.current += timedelta(minutes=minutes, seconds=seconds)


def _make_generator() -> MagicMock:
    real = StandupConversationGenerator(llm_service=None)
    generator = MagicMock()
    generator.start_session = AsyncMock(side_effect=real.start_session)
    generator.acknowledge = AsyncMock(return_value="Thanks, noted!")
    generator.summarize = AsyncMock(side_effect=real.summarize)
    generator.analyze_blockers = AsyncMock(side_effect=real.analyze_blockers)
    generator.generate_insights = AsyncMock(side_effect=real.generate_insights)
    return generator


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository(clock) -> InMemoryMeetingRepository:
    return InMemoryMeetingRepository(clock=clock)


@pytest.fixture
def scheduler(clock) -> APSchedulerMeetingScheduler:
    """Scheduler whose AsyncIOScheduler is never started; jobs stay pending."""
    return APSchedulerMeetingScheduler(
        clock=clock, scheduler=AsyncIOScheduler(timezone=timezone.utc)
    )


@pytest.fixture
def generator() -> MagicMock:
    return _make_generator()


@pytest.fixture
def notifier() -> MagicMock:
    notifier = MagicMock()
    notifier.send_summary = AsyncMock(return_value=None)
    notifier.send_escalation_alert = AsyncMock(return_value=None)
    notifier.send_notification = AsyncMock(return_value=None)
    return notifier


@pytest.fixture
def task_tracker() -> AsyncMock:
    return AsyncMock(spec=TaskTracker)


@pytest.fixture
def service(repository, scheduler, generator, notifier, task_tracker, clock) -> MeetingService:
    return MeetingService(
        repository=repository,
        scheduler=scheduler,
        generator=generator,
        notifier=notifier,
        task_tracker=task_tracker,
        escalation_recipients=[LEAD_EMAIL],
        clock=clock,
    )
