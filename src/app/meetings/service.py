"""MeetingService -- the operations the request layer calls.

Coordinates the repository, scheduler, session store, standup flow and
finalizer. Every read-then-write on a meeting runs under the per-meeting
lock from SessionStore; collaborator calls (question generation,
acknowledgments, notifications, the finalizer's wrap-up) run outside it.

Only MeetingError subclasses leave this class.
"""

from __future__ import annotations

import structlog

from src.app.meetings.clock import Clock, SystemClock
from src.app.meetings.collaborators import ConversationGenerator, Notifier
from src.app.meetings.errors import (
    CollaboratorFailure,
    InvalidTransitionError,
    MeetingError,
    MeetingNotFoundError,
    NotInvitedError,
    UnsupportedRecurrenceError,
)
from src.app.meetings.finalizer import MeetingFinalizer
from src.app.meetings.repository import MeetingRepository
from src.app.meetings.scheduler import MeetingScheduler
from src.app.meetings.schemas import (
    ActiveSessionInfo,
    FinalizeResult,
    JoinResult,
    Meeting,
    MeetingCreate,
    MeetingInfo,
    MeetingInsights,
    MeetingNotification,
    MeetingStatus,
    MeetingStatusView,
    NotificationMeetingInfo,
    Recurrence,
    SubmitResult,
)
from src.app.meetings.sessions import MeetingSession, SessionStore
from src.app.meetings.standup import start_sub_session, submit_response
from src.app.meetings.tasks.tracker import TaskTracker

logger = structlog.get_logger(__name__)

COMPLETION_MESSAGE = (
    "Thank you for your standup update! You can now leave the meeting "
    "or wait for others to finish."
)


def _ensure_accepting(
    session: MeetingSession, meeting: Meeting, action: str, *, allow_cancelled: bool = True
) -> None:
    """Reject participant work once the meeting is finalizing or finished.

    A cancelled meeting still accepts work from flows already under way
    unless ``allow_cancelled`` is False.
    """
    closed = session.finalized or meeting.status == MeetingStatus.COMPLETED
    if not closed and (allow_cancelled or meeting.status != MeetingStatus.CANCELLED):
        return
    current = MeetingStatus.COMPLETED.value if closed else meeting.status.value
    raise InvalidTransitionError(f"Meeting {meeting.id}", current, action)


class MeetingService:
    """Standup meeting lifecycle: schedule, start, join, answer, end, cancel.

    Args:
        repository: Meeting registry.
        scheduler: Trigger backend; fires ``start_meeting`` at meeting time.
        generator: Conversation generator for questions, acknowledgments,
            summaries and blocker analysis.
        notifier: Participant and escalation notifications.
        task_tracker: Work-item sync backend.
        escalation_recipients: Recipients of urgent-blocker alerts.
        clock: Time source.
        sessions: Live session store (a fresh one by default).
    """

    def __init__(
        self,
        repository: MeetingRepository,
        scheduler: MeetingScheduler,
        generator: ConversationGenerator,
        notifier: Notifier,
        task_tracker: TaskTracker,
        escalation_recipients: list[str],
        clock: Clock | None = None,
        sessions: SessionStore | None = None,
    ) -> None:
        self._repository = repository
        self._scheduler = scheduler
        self._generator = generator
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._sessions = sessions or SessionStore()
        self._finalizer = MeetingFinalizer(
            repository=repository,
            sessions=self._sessions,
            scheduler=scheduler,
            generator=generator,
            notifier=notifier,
            task_tracker=task_tracker,
            clock=self._clock,
            escalation_recipients=escalation_recipients,
        )

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def generator(self) -> ConversationGenerator:
        return self._generator

    # ── Scheduling ───────────────────────────────────────────────────────────

    async def schedule_meeting(self, data: MeetingCreate) -> Meeting:
        """Store a meeting and register its trigger.

        Raises:
            UnsupportedRecurrenceError: Weekly recurrence.
            PastScheduleError: One-time meeting not in the future.
        """
        if data.recurrence == Recurrence.WEEKLY:
            raise UnsupportedRecurrenceError("Weekly recurrence is not supported yet")

        meeting = await self._repository.create(data)
        try:
            self._scheduler.schedule(meeting, self._on_trigger)
        except MeetingError:
            # The instant passed between create and schedule; never leave a
            # scheduled meeting without a trigger behind.
            await self._repository.transition(meeting.id, MeetingStatus.CANCELLED)
            raise
        return meeting

    async def _on_trigger(self, meeting_id: str) -> None:
        """Scheduler callback; re-checks status because a cancel may have won."""
        try:
            meeting = await self._repository.get(meeting_id)
        except MeetingNotFoundError:
            logger.warning("meeting_trigger_unknown_meeting", meeting_id=meeting_id)
            return
        if meeting.status != MeetingStatus.SCHEDULED:
            logger.info(
                "meeting_trigger_ignored",
                meeting_id=meeting_id,
                status=meeting.status.value,
            )
            return
        try:
            await self.start_meeting(meeting_id)
        except InvalidTransitionError:
            logger.info("meeting_trigger_lost_race", meeting_id=meeting_id)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start_meeting(self, meeting_id: str) -> MeetingSession:
        """Move a scheduled meeting to in-progress and open its session.

        Raises:
            MeetingNotFoundError: Unknown meeting.
            InvalidTransitionError: Meeting is not scheduled.
        """
        async with self._sessions.lock(meeting_id):
            meeting = await self._repository.get(meeting_id)
            if meeting.status != MeetingStatus.SCHEDULED:
                raise InvalidTransitionError(
                    f"Meeting {meeting_id}",
                    meeting.status.value,
                    MeetingStatus.IN_PROGRESS.value,
                )
            started_at = self._clock.now()
            meeting = await self._repository.transition(
                meeting_id, MeetingStatus.IN_PROGRESS, started_at=started_at
            )
            session = self._sessions.create(meeting_id, meeting.participants, started_at)

        logger.info("meeting_started", meeting_id=meeting_id, title=meeting.title)
        await self._notify(
            meeting,
            "Meeting Started",
            f'Your daily standup meeting "{meeting.title}" has started. Please join the meeting.',
        )
        return session

    async def join_meeting(self, meeting_id: str, participant: str) -> JoinResult:
        """Join a live meeting; facilitated meetings also get a standup flow.

        Rejoining returns the participant's current question instead of
        starting over.

        Raises:
            MeetingNotFoundError: No live session for the meeting.
            NotInvitedError: Participant is not on the meeting.
            InvalidTransitionError: Meeting is being finalized, or is
                cancelled and the participant has no flow to resume.
        """
        session = self._sessions.get(meeting_id)
        meeting = await self._repository.get(meeting_id)
        if participant not in session.participants:
            raise NotInvitedError(
                f"Participant {participant} is not invited to meeting {meeting_id}"
            )
        _ensure_accepting(session, meeting, "join")

        info = MeetingInfo(
            title=meeting.title,
            start_time=session.start_time,
            participants=list(session.participants),
        )
        if not meeting.virtual_facilitator:
            return JoinResult(
                welcome_message=f"Welcome to the daily standup, {participant}!",
                meeting_info=info,
            )

        async with session.participant_lock(participant):
            state = session.sub_sessions.get(participant)
            if state is None:
                _ensure_accepting(session, meeting, "join", allow_cancelled=False)
                state = await start_sub_session(participant, self._generator)
                async with self._sessions.lock(meeting_id):
                    meeting = await self._live_meeting(session)
                    _ensure_accepting(session, meeting, "join", allow_cancelled=False)
                    session.record(state)
                logger.info(
                    "participant_joined",
                    meeting_id=meeting_id,
                    participant=participant,
                    session_id=state.session_id,
                )

        return JoinResult(
            welcome_message=(
                f"Welcome to the daily standup, {participant}! "
                "I'm your virtual Scrum Master today."
            ),
            meeting_info=info,
            session_id=state.session_id,
            first_question=state.current_question,
        )

    async def submit_standup_response(
        self, meeting_id: str, participant: str, answer: str
    ) -> SubmitResult:
        """Answer the participant's current question.

        When this answer completes the last outstanding sub-session the
        meeting is finalized before returning.

        Raises:
            MeetingNotFoundError: No live session or no sub-session.
            InvalidTransitionError: Sub-session already complete, or the
                meeting is being finalized.
        """
        session = self._sessions.get(meeting_id)
        session.sub_session(participant)
        closed = None

        async with session.participant_lock(participant):
            state = session.sub_session(participant)
            _ensure_accepting(session, await self._repository.get(meeting_id), "answer")
            step = await submit_response(
                state,
                answer,
                state.current_question_index,
                self._generator,
                self._clock,
            )
            async with self._sessions.lock(meeting_id):
                meeting = await self._live_meeting(session)
                _ensure_accepting(session, meeting, "answer")
                session.record(step.state)
                if step.state.is_complete:
                    logger.info(
                        "participant_completed_standup",
                        meeting_id=meeting_id,
                        participant=participant,
                        completed=session.completed_count(),
                        total=len(session.participants),
                    )
                if meeting.status == MeetingStatus.CANCELLED:
                    self._retire_if_idle(session)
                elif step.state.is_complete:
                    closed = await self._claim_and_close(session)

        if closed is not None:
            await self._finalizer.wrap_up(*closed)

        return SubmitResult(
            acknowledgment=step.acknowledgment,
            is_complete=step.state.is_complete,
            next_question=step.next_question,
            completion_message=COMPLETION_MESSAGE if step.state.is_complete else None,
        )

    async def _live_meeting(self, session: MeetingSession) -> Meeting:
        """The session's meeting, if the session is still live. Caller holds the lock."""
        if self._sessions.find(session.meeting_id) is not session:
            raise MeetingNotFoundError(
                f"No active session for meeting {session.meeting_id}"
            )
        return await self._repository.get(session.meeting_id)

    async def _claim_and_close(self, session: MeetingSession):
        """Completion detector. Caller holds the meeting lock.

        Returns the (meeting, meeting_data) pair to wrap up when this call
        won the finalization claim, otherwise None.
        """
        if not session.claim_finalization():
            return None
        logger.info("all_participants_completed", meeting_id=session.meeting_id)
        return await self._finalizer.close(session)

    def _retire_if_idle(self, session: MeetingSession) -> bool:
        """Drop a cancelled meeting's session once no flow is under way.

        Caller holds the meeting lock.
        """
        if session.has_unfinished_flows():
            return False
        logger.info("cancelled_meeting_session_retired", meeting_id=session.meeting_id)
        self._sessions.discard(session.meeting_id)
        return True

    async def end_meeting(self, meeting_id: str) -> FinalizeResult:
        """Finalize a live meeting on request.

        Raises:
            MeetingNotFoundError: Unknown meeting or no live session.
            InvalidTransitionError: Meeting is not in progress or is
                already being finalized.
        """
        async with self._sessions.lock(meeting_id):
            meeting = await self._repository.get(meeting_id)
            if meeting.status != MeetingStatus.IN_PROGRESS:
                raise InvalidTransitionError(
                    f"Meeting {meeting_id}",
                    meeting.status.value,
                    MeetingStatus.COMPLETED.value,
                )
            session = self._sessions.get(meeting_id)
            if session.finalized:
                raise InvalidTransitionError(
                    f"Meeting {meeting_id}", "finalizing", MeetingStatus.COMPLETED.value
                )
            session.claim_finalization(require_all_complete=False)
            meeting, meeting_data = await self._finalizer.close(session)

        logger.info("meeting_ended", meeting_id=meeting_id, manual=True)
        return await self._finalizer.wrap_up(meeting, meeting_data)

    async def cancel_meeting(self, meeting_id: str) -> Meeting:
        """Cancel a scheduled or in-progress meeting and drop its trigger.

        A live session stays only while some participant is mid-flow; it
        is retired when those flows finish or through ``retire_session``.

        Raises:
            MeetingNotFoundError: Unknown meeting.
            InvalidTransitionError: Meeting already completed or cancelled.
        """
        async with self._sessions.lock(meeting_id):
            meeting = await self._repository.transition(
                meeting_id, MeetingStatus.CANCELLED
            )
            handle = self._scheduler.handle_for(meeting_id)
            if handle is not None:
                self._scheduler.cancel(handle)
            session = self._sessions.find(meeting_id)
            if session is not None:
                self._retire_if_idle(session)

        logger.info("meeting_cancelled", meeting_id=meeting_id)
        await self._notify(
            meeting,
            "Meeting Cancelled",
            f'The meeting "{meeting.title}" has been cancelled.',
        )
        return meeting

    async def retire_session(self, meeting_id: str) -> ActiveSessionInfo:
        """Drop the live session of a cancelled meeting, unfinished flows included.

        Raises:
            MeetingNotFoundError: Unknown meeting or no live session.
            InvalidTransitionError: Meeting is not cancelled.
        """
        async with self._sessions.lock(meeting_id):
            meeting = await self._repository.get(meeting_id)
            if meeting.status != MeetingStatus.CANCELLED:
                raise InvalidTransitionError(
                    f"Session of meeting {meeting_id}", meeting.status.value, "retired"
                )
            session = self._sessions.get(meeting_id)
            info = session.info()
            self._sessions.discard(meeting_id)

        logger.info("cancelled_meeting_session_retired", meeting_id=meeting_id, manual=True)
        return info

    # ── Queries ──────────────────────────────────────────────────────────────

    async def get_meeting(self, meeting_id: str) -> Meeting:
        return await self._repository.get(meeting_id)

    async def list_meetings(self, user_id: str) -> list[Meeting]:
        return await self._repository.list_for_user(user_id)

    async def list_active_sessions(self) -> list[ActiveSessionInfo]:
        return [session.info() for session in self._sessions.active()]

    async def get_meeting_status(self, meeting_id: str) -> MeetingStatusView:
        meeting = await self._repository.get(meeting_id)
        return MeetingStatusView(
            status=meeting.status,
            started_at=meeting.started_at,
            ended_at=meeting.ended_at,
        )

    async def get_finalize_result(self, meeting_id: str) -> FinalizeResult:
        """The retained wrap-up output of a finalized meeting.

        Raises:
            MeetingNotFoundError: Meeting unknown or not finalized in this process.
        """
        await self._repository.get(meeting_id)
        result = self._finalizer.result_for(meeting_id)
        if result is None:
            raise MeetingNotFoundError(f"No finalized data for meeting {meeting_id}")
        return result

    async def get_meeting_insights(self, meeting_id: str) -> MeetingInsights:
        """Team insights generated from a finalized meeting's data.

        Raises:
            MeetingNotFoundError: Meeting unknown or not finalized in this process.
            CollaboratorFailure: The generator failed.
        """
        result = await self.get_finalize_result(meeting_id)
        try:
            return await self._generator.generate_insights(result.meeting_data)
        except Exception as exc:
            raise CollaboratorFailure("generate_insights", exc) from exc

    # ── Internal ─────────────────────────────────────────────────────────────

    async def _notify(self, meeting: Meeting, subject: str, message: str) -> None:
        notification = MeetingNotification(
            subject=f"{subject} - {meeting.title}",
            message=message,
            meeting_info=NotificationMeetingInfo(
                title=meeting.title,
                scheduled_time=meeting.scheduled_time,
                duration=meeting.duration,
                timezone=meeting.timezone,
            ),
        )
        try:
            await self._notifier.send_notification(list(meeting.participants), notification)
        except Exception:
            logger.error(
                "meeting_notification_failed",
                meeting_id=meeting.id,
                subject=subject,
                exc_info=True,
            )


__all__ = ["COMPLETION_MESSAGE", "MeetingService"]
