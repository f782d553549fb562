"""Meeting finalizer -- closes a meeting and runs the wrap-up pipeline.

Finalization is split in two phases so the caller can hold the meeting
lock only around state changes:

1. ``close`` (under the meeting lock): transition the meeting to
   ``completed``, stamp ``ended_at`` and the actual duration, release the
   scheduler trigger, and assemble the MeetingData record. Failures here
   propagate.
2. ``wrap_up`` (outside the lock): summarize, analyze blockers, notify
   participants, escalate urgent blockers, sync tasks, then discard the
   session. Each collaborator step is best-effort; a failure is logged
   with the meeting id and step name and replaced by a placeholder so the
   remaining steps still run.

The last FinalizeResult per meeting is retained for status and insight
queries after the session is gone.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog

from src.app.core.monitoring import (
    escalations_total,
    finalize_step_failures_total,
    meetings_finalized_total,
)
from src.app.meetings.clock import Clock, minutes_between
from src.app.meetings.collaborators import ConversationGenerator, Notifier
from src.app.meetings.errors import CollaboratorFailure
from src.app.meetings.repository import MeetingRepository
from src.app.meetings.scheduler import MeetingScheduler
from src.app.meetings.schemas import (
    Blocker,
    BlockerAnalysis,
    EscalationAlert,
    FinalizeResult,
    Meeting,
    MeetingData,
    MeetingStatus,
    MeetingSummary,
)
from src.app.meetings.sessions import MeetingSession, SessionStore
from src.app.meetings.standup import extract_blockers
from src.app.meetings.tasks.tracker import TaskTracker

logger = structlog.get_logger(__name__)

NO_BLOCKERS_ANALYSIS = "No blockers were identified in this standup meeting."
SUMMARY_UNAVAILABLE = "A summary could not be generated for this meeting."
ANALYSIS_UNAVAILABLE = "Blocker analysis is unavailable. Please review the blockers manually."


def escalation_subject(title: str) -> str:
    return f"Urgent Blockers Identified - {title}"


class MeetingFinalizer:
    """Runs the end-of-meeting pipeline.

    Args:
        repository: Meeting registry.
        sessions: Live session store; the session is discarded at the end.
        scheduler: Trigger owner; the meeting's trigger is released on close.
        generator: Summaries and blocker analysis.
        notifier: Summary and escalation delivery.
        task_tracker: Work-item sync backend.
        clock: Time source for ``ended_at``.
        escalation_recipients: Who receives urgent-blocker alerts.
    """

    def __init__(
        self,
        repository: MeetingRepository,
        sessions: SessionStore,
        scheduler: MeetingScheduler,
        generator: ConversationGenerator,
        notifier: Notifier,
        task_tracker: TaskTracker,
        clock: Clock,
        escalation_recipients: list[str],
    ) -> None:
        self._repository = repository
        self._sessions = sessions
        self._scheduler = scheduler
        self._generator = generator
        self._notifier = notifier
        self._task_tracker = task_tracker
        self._clock = clock
        self._escalation_recipients = list(escalation_recipients)
        self._results: dict[str, FinalizeResult] = {}

    def result_for(self, meeting_id: str) -> FinalizeResult | None:
        return self._results.get(meeting_id)

    # ── Phase 1: state change ────────────────────────────────────────────────

    async def close(self, session: MeetingSession) -> tuple[Meeting, MeetingData]:
        """Complete the meeting and build its data record. Caller holds the lock."""
        ended_at = self._clock.now()
        duration = minutes_between(session.start_time, ended_at)
        meeting = await self._repository.transition(
            session.meeting_id,
            MeetingStatus.COMPLETED,
            ended_at=ended_at,
            duration=duration,
        )

        handle = self._scheduler.handle_for(meeting.id)
        if handle is not None:
            self._scheduler.cancel(handle)

        meeting_data = MeetingData(
            id=meeting.id,
            title=meeting.title,
            participants=list(session.participants),
            responses=[list(answers) for answers in session.responses],
            date=session.start_time,
            duration=duration,
        )
        return meeting, meeting_data

    # ── Phase 2: collaborators ───────────────────────────────────────────────

    async def wrap_up(self, meeting: Meeting, meeting_data: MeetingData) -> FinalizeResult:
        """Run the best-effort steps and discard the session.

        Collaborator failures are logged, not raised.
        """
        try:
            summary = await self._summarize(meeting_data)
            analysis = await self._analyze(meeting.id, summary.blockers)

            await self._step(
                meeting.id,
                "send_summary",
                lambda: self._notifier.send_summary(
                    list(meeting.participants), summary, meeting.title
                ),
            )

            if analysis.requires_escalation:
                alert = EscalationAlert(
                    subject=escalation_subject(meeting.title),
                    meeting_id=meeting.id,
                    meeting_title=meeting.title,
                    blockers=summary.blockers,
                    analysis=analysis.analysis,
                    timestamp=self._clock.now(),
                )
                await self._step(
                    meeting.id,
                    "escalate",
                    lambda: self._notifier.send_escalation_alert(
                        self._escalation_recipients, alert
                    ),
                )
                escalations_total.inc()

            await self._step(
                meeting.id,
                "sync_tasks",
                lambda: self._task_tracker.sync_from_meeting(meeting_data, summary),
            )
        finally:
            self._sessions.discard(meeting.id)

        result = FinalizeResult(
            meeting_data=meeting_data, summary=summary, blocker_analysis=analysis
        )
        self._results[meeting.id] = result
        meetings_finalized_total.inc()
        logger.info(
            "meeting_finalized",
            meeting_id=meeting.id,
            duration=meeting_data.duration,
            blocker_count=len(summary.blockers),
            escalated=analysis.requires_escalation,
        )
        return result

    async def _summarize(self, meeting_data: MeetingData) -> MeetingSummary:
        try:
            return await self._generator.summarize(meeting_data)
        except Exception as exc:
            self._log_failure(meeting_data.id, "summarize", exc)
            return MeetingSummary(
                summary=SUMMARY_UNAVAILABLE,
                participants=list(meeting_data.participants),
                blockers=extract_blockers(meeting_data),
                meeting_date=meeting_data.date,
                duration=meeting_data.duration,
            )

    async def _analyze(self, meeting_id: str, blockers: list[Blocker]) -> BlockerAnalysis:
        if not blockers:
            return BlockerAnalysis(
                analysis=NO_BLOCKERS_ANALYSIS,
                requires_escalation=False,
                timestamp=self._clock.now(),
            )
        try:
            return await self._generator.analyze_blockers(blockers)
        except Exception as exc:
            self._log_failure(meeting_id, "analyze_blockers", exc)
            return BlockerAnalysis(
                analysis=ANALYSIS_UNAVAILABLE,
                requires_escalation=False,
                blockers=list(blockers),
                timestamp=self._clock.now(),
            )

    async def _step(
        self, meeting_id: str, step: str, call: Callable[[], Awaitable[object]]
    ) -> None:
        try:
            await call()
        except Exception as exc:
            self._log_failure(meeting_id, step, exc)

    @staticmethod
    def _log_failure(meeting_id: str, step: str, exc: Exception) -> None:
        failure = CollaboratorFailure(step, exc)
        finalize_step_failures_total.labels(step=step).inc()
        logger.error(
            "finalize_step_failed",
            meeting_id=meeting_id,
            step=step,
            error=failure.message,
            exc_info=exc,
        )


__all__ = [
    "ANALYSIS_UNAVAILABLE",
    "MeetingFinalizer",
    "NO_BLOCKERS_ANALYSIS",
    "SUMMARY_UNAVAILABLE",
    "escalation_subject",
]
