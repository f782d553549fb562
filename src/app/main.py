"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS,
lifespan wiring of the meeting core and its collaborators, and the v1
API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.app.config import Settings, get_settings
from src.app.core.monitoring import MetricsMiddleware, get_metrics_response
from src.app.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.app.api.v1.router import router as v1_router
from src.app.meetings.conversation.generator import StandupConversationGenerator
from src.app.meetings.notifications.notifier import EmailNotifier
from src.app.meetings.repository import InMemoryMeetingRepository
from src.app.meetings.scheduler import APSchedulerMeetingScheduler
from src.app.meetings.service import MeetingService
from src.app.meetings.tasks.azure_devops import AzureDevOpsClient, AzureDevOpsTaskTracker
from src.app.meetings.tasks.tracker import NullTaskTracker, TaskTracker
from src.app.services.llm import get_llm_service

log = structlog.get_logger(__name__)


def _build_gmail_service(settings: Settings):
    """Gmail sender from the service account, or None to log emails only."""
    sa_path = settings.get_service_account_path()
    if not sa_path:
        log.info("gmail_not_configured", reason="no service account")
        return None

    from src.app.services.gsuite import GmailService, GSuiteAuthManager

    auth_manager = GSuiteAuthManager(
        service_account_file=sa_path,
        delegated_user_email=settings.GOOGLE_DELEGATED_USER_EMAIL,
    )
    return GmailService(
        auth_manager=auth_manager,
        default_user_email=settings.sender_email,
    )


def _build_devops_tracker(settings: Settings) -> AzureDevOpsTaskTracker | None:
    if not settings.azure_devops_configured:
        log.info("azure_devops_not_configured")
        return None
    client = AzureDevOpsClient(
        org_url=settings.AZURE_DEVOPS_ORG_URL,
        token=settings.AZURE_DEVOPS_TOKEN,
        project=settings.AZURE_DEVOPS_PROJECT,
        api_version=settings.AZURE_DEVOPS_API_VERSION,
    )
    return AzureDevOpsTaskTracker(client)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire the meeting core on startup, stop the scheduler on shutdown."""
    settings = get_settings()
    configure_structlog()

    # Each optional collaborator degrades instead of failing startup.
    generator = StandupConversationGenerator(llm_service=get_llm_service())

    gmail_service = None
    try:
        gmail_service = _build_gmail_service(settings)
    except Exception:
        log.warning("gmail_service_init_failed", exc_info=True)
    notifier = EmailNotifier(gmail_service=gmail_service, from_email=settings.sender_email)

    devops_tracker = _build_devops_tracker(settings)
    task_tracker: TaskTracker = devops_tracker or NullTaskTracker()

    scheduler = APSchedulerMeetingScheduler()
    scheduler.start()

    app.state.meeting_service = MeetingService(
        repository=InMemoryMeetingRepository(),
        scheduler=scheduler,
        generator=generator,
        notifier=notifier,
        task_tracker=task_tracker,
        escalation_recipients=[settings.TEAM_LEAD_EMAIL],
    )
    app.state.devops_tracker = devops_tracker
    app.state.scheduler = scheduler
    log.info(
        "standup_service_started",
        environment=settings.ENVIRONMENT.value,
        llm_available=generator.llm_available,
        email_delivery="gmail" if gmail_service is not None else "log_only",
        task_tracker=type(task_tracker).__name__,
    )

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    scheduler.shutdown()
    log.info("standup_service_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Standup Master API",
        version="0.1.0",
        description="Daily standup scheduling with a virtual Scrum Master",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
