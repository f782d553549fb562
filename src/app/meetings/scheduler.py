"""Meeting triggers on top of APScheduler.

Two trigger strategies share one interface:

- one-time: a DateTrigger at the meeting's scheduled instant. The instant
  is re-validated against the injected clock; a past instant raises
  PastScheduleError instead of firing immediately.
- weekday-recurring (``daily``): a CronTrigger on Monday-Friday at the
  scheduled hour and minute, read in the meeting's timezone. Runs until
  cancelled.

``weekly`` recurrence has no defined cadence and raises
UnsupportedRecurrenceError.

Firing hands the meeting id to the callback on the scheduler's event
loop; the callback is responsible for re-checking the meeting status,
since a cancellation can land after the job was already submitted.

Exports:
    TriggerHandle: Association between a meeting and its scheduler job.
    MeetingScheduler: Abstract scheduling interface.
    APSchedulerMeetingScheduler: AsyncIOScheduler-backed implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timezone

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from src.app.meetings.clock import Clock, SystemClock, resolve_timezone
from src.app.meetings.errors import PastScheduleError, UnsupportedRecurrenceError
from src.app.meetings.schemas import Meeting, Recurrence

logger = structlog.get_logger(__name__)

TriggerCallback = Callable[[str], Awaitable[None]]

WEEKDAYS = "mon-fri"
MISFIRE_GRACE_SECONDS = 300


@dataclass(frozen=True)
class TriggerHandle:
    """A live scheduler job for one meeting."""

    meeting_id: str
    job_id: str
    recurring: bool


def build_trigger(meeting: Meeting, clock: Clock) -> DateTrigger | CronTrigger:
    """Pick the trigger strategy for a meeting's recurrence mode.

    Raises:
        PastScheduleError: One-time meeting at or before now.
        UnsupportedRecurrenceError: Weekly recurrence.
    """
    if meeting.recurrence == Recurrence.DAILY:
        tz = resolve_timezone(meeting.timezone)
        local = meeting.scheduled_time.astimezone(tz)
        return CronTrigger(
            day_of_week=WEEKDAYS,
            hour=local.hour,
            minute=local.minute,
            timezone=tz,
        )

    if meeting.recurrence == Recurrence.WEEKLY:
        raise UnsupportedRecurrenceError(
            "Weekly recurrence is not supported yet"
        )

    now = clock.now()
    if meeting.scheduled_time <= now:
        raise PastScheduleError(
            f"Cannot schedule meeting in the past: {meeting.scheduled_time.isoformat()}"
        )
    return DateTrigger(run_date=meeting.scheduled_time, timezone=timezone.utc)


class MeetingScheduler(ABC):
    """Schedules meeting start callbacks.

    Methods:
        schedule: Register a trigger for a meeting.
        cancel: Destroy a trigger so it never fires again.
        handle_for: Look up the live trigger for a meeting, if any.
    """

    @abstractmethod
    def schedule(self, meeting: Meeting, callback: TriggerCallback) -> TriggerHandle:
        ...

    @abstractmethod
    def cancel(self, handle: TriggerHandle) -> None:
        ...

    @abstractmethod
    def handle_for(self, meeting_id: str) -> TriggerHandle | None:
        ...


class APSchedulerMeetingScheduler(MeetingScheduler):
    """MeetingScheduler backed by an APScheduler AsyncIOScheduler.

    Args:
        clock: Time source for the past-instant check.
        scheduler: Optional pre-built AsyncIOScheduler (tests pass one
            started in paused mode).
    """

    def __init__(
        self,
        clock: Clock | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._handles: dict[str, TriggerHandle] = {}
        self._callbacks: dict[str, TriggerCallback] = {}

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def start(self, paused: bool = False) -> None:
        """Start the underlying scheduler (needs a running event loop)."""
        if not self._scheduler.running:
            self._scheduler.start(paused=paused)
            logger.info("meeting_scheduler_started", paused=paused)

    def shutdown(self) -> None:
        """Stop the scheduler without waiting for running jobs."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("meeting_scheduler_stopped")

    def schedule(self, meeting: Meeting, callback: TriggerCallback) -> TriggerHandle:
        trigger = build_trigger(meeting, self._clock)
        recurring = meeting.recurrence == Recurrence.DAILY
        job_id = f"meeting:{meeting.id}"

        self._scheduler.add_job(
            self._fire,
            trigger=trigger,
            args=[meeting.id],
            id=job_id,
            name=f"Start meeting {meeting.title}",
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
            replace_existing=True,
        )

        handle = TriggerHandle(meeting_id=meeting.id, job_id=job_id, recurring=recurring)
        self._handles[meeting.id] = handle
        self._callbacks[meeting.id] = callback

        if recurring:
            local = meeting.scheduled_time.astimezone(resolve_timezone(meeting.timezone))
            logger.info(
                "recurring_meeting_scheduled",
                meeting_id=meeting.id,
                schedule=f"{WEEKDAYS} {local:%H:%M}",
                timezone=meeting.timezone,
            )
        else:
            logger.info(
                "one_time_meeting_scheduled",
                meeting_id=meeting.id,
                run_at=meeting.scheduled_time.isoformat(),
                timezone=meeting.timezone,
            )
        return handle

    def cancel(self, handle: TriggerHandle) -> None:
        self._handles.pop(handle.meeting_id, None)
        self._callbacks.pop(handle.meeting_id, None)
        try:
            self._scheduler.remove_job(handle.job_id)
        except JobLookupError:
            logger.debug("meeting_trigger_already_gone", job_id=handle.job_id)
            return
        logger.info("meeting_trigger_cancelled", meeting_id=handle.meeting_id)

    def handle_for(self, meeting_id: str) -> TriggerHandle | None:
        return self._handles.get(meeting_id)

    async def _fire(self, meeting_id: str) -> None:
        """Job body: retire one-time handles, then run the meeting callback."""
        handle = self._handles.get(meeting_id)
        callback = self._callbacks.get(meeting_id)
        if handle is None or callback is None:
            logger.info("meeting_trigger_fired_after_cancel", meeting_id=meeting_id)
            return

        if not handle.recurring:
            self._handles.pop(meeting_id, None)
            self._callbacks.pop(meeting_id, None)

        logger.info(
            "meeting_trigger_fired",
            meeting_id=meeting_id,
            recurring=handle.recurring,
        )
        try:
            await callback(meeting_id)
        except Exception:
            logger.exception("meeting_trigger_callback_failed", meeting_id=meeting_id)


__all__ = [
    "APSchedulerMeetingScheduler",
    "MeetingScheduler",
    "TriggerHandle",
    "build_trigger",
]
