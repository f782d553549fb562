"""FastAPI dependencies and error mapping for the standup API.

Services are created in the application lifespan and stored on
``app.state``; these helpers fetch them and answer 503 when a service
could not be initialized.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from src.app.meetings.errors import MeetingError

ERROR_STATUS: dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "past_schedule": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_invited": status.HTTP_403_FORBIDDEN,
    "unsupported_recurrence": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "collaborator_failure": status.HTTP_502_BAD_GATEWAY,
}


def http_error(exc: MeetingError) -> HTTPException:
    """HTTPException carrying the error's code and message."""
    return HTTPException(
        status_code=ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"code": exc.code, "message": exc.message},
    )


def get_meeting_service(request: Request) -> Any:
    """MeetingService from app.state, 503 if not available."""
    service = getattr(request.app.state, "meeting_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Meeting service not initialized",
        )
    return service


def get_task_tracker(request: Request) -> Any:
    """Azure DevOps tracker from app.state, 503 if not configured."""
    tracker = getattr(request.app.state, "devops_tracker", None)
    if tracker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Azure DevOps integration not configured",
        )
    return tracker
