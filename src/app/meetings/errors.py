"""Error taxonomy for the standup meeting core.

Every error that crosses the MeetingService boundary is a MeetingError
subclass with a stable ``code``. The request layer maps codes to HTTP
statuses; nothing else should need to inspect exception types.

Exports:
    MeetingError: Base class.
    MeetingNotFoundError: Unknown meeting, session, or sub-session.
    InvalidTransitionError: Meeting status state-machine violation.
    PastScheduleError: One-time schedule not strictly in the future.
    NotInvitedError: Joiner is not a listed participant.
    UnsupportedRecurrenceError: Recurrence mode with no defined cadence.
    CollaboratorFailure: Wraps a downstream LLM/notification/task-sync error.
"""

from __future__ import annotations


class MeetingError(Exception):
    """Base class for all meeting core errors."""

    code: str = "meeting_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MeetingNotFoundError(MeetingError):
    """Raised for an unknown meeting, live session, or standup sub-session."""

    code = "not_found"


class InvalidTransitionError(MeetingError):
    """Raised when a state machine is asked for a move it does not allow.

    Used for meeting status changes and for answering a standup
    sub-session out of order or after it completed.
    """

    code = "invalid_transition"

    def __init__(self, subject: str, current: str, requested: str) -> None:
        super().__init__(f"{subject} cannot move from '{current}' to '{requested}'")
        self.subject = subject
        self.current = current
        self.requested = requested


class PastScheduleError(MeetingError):
    """Raised when a one-time meeting is scheduled at or before now."""

    code = "past_schedule"


class NotInvitedError(MeetingError):
    """Raised when a participant joins a meeting they are not listed on."""

    code = "not_invited"


class UnsupportedRecurrenceError(MeetingError):
    """Raised for recurrence modes that are declared but have no cadence."""

    code = "unsupported_recurrence"


class CollaboratorFailure(MeetingError):
    """A collaborator call (LLM, notifier, task tracker) failed.

    The original exception is chained as ``__cause__``.
    """

    code = "collaborator_failure"

    def __init__(self, operation: str, error: BaseException) -> None:
        super().__init__(f"{operation} failed: {error}")
        self.operation = operation


__all__ = [
    "CollaboratorFailure",
    "InvalidTransitionError",
    "MeetingError",
    "MeetingNotFoundError",
    "NotInvitedError",
    "PastScheduleError",
    "UnsupportedRecurrenceError",
]
