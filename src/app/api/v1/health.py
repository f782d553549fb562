"""Health check endpoints.

``/health`` is a liveness probe. ``/health/ready`` reports whether the
meeting scheduler is running and which optional integrations are
configured; only a stopped scheduler makes it answer 503.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.app.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No dependencies are inspected."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


def _check_dependencies(request: Request) -> dict:
    settings = get_settings()
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "scheduler": "running" if scheduler is not None and scheduler.running else "stopped",
        "litellm": "ok" if settings.ANTHROPIC_API_KEY or settings.OPENAI_API_KEY else "no_keys",
        "email": (
            "gmail"
            if settings.GOOGLE_SERVICE_ACCOUNT_FILE or settings.GOOGLE_SERVICE_ACCOUNT_JSON_B64
            else "log_only"
        ),
        "azure_devops": "ok" if settings.azure_devops_configured else "not_configured",
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 when the scheduler is running, 503 otherwise."""
    checks = _check_dependencies(request)
    ready = checks["scheduler"] == "running"
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
