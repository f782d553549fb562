"""Prometheus metrics for HTTP traffic, LLM calls and the meeting lifecycle.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- track_llm_call(): Context manager for LLM call metrics
- meeting counters updated by the finalizer and scheduler callback
- get_metrics_response(): body for the /metrics route
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── LLM Metrics ──────────────────────────────────────────────────────────────

llm_requests_total = Counter(
    "llm_requests_total",
    "Total LLM API requests",
    ["model", "status"],
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "LLM API request duration in seconds",
    ["model"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

llm_tokens_used_total = Counter(
    "llm_tokens_used_total",
    "Total LLM tokens consumed",
    ["model", "token_type"],
)

# ── Meeting Metrics ──────────────────────────────────────────────────────────

meetings_finalized_total = Counter(
    "standup_meetings_finalized_total",
    "Meetings that completed the finalization pipeline",
)

finalize_step_failures_total = Counter(
    "standup_finalize_step_failures_total",
    "Best-effort finalization steps that failed",
    ["step"],
)

escalations_total = Counter(
    "standup_escalations_total",
    "Urgent-blocker escalations dispatched",
)

active_sessions = Gauge(
    "standup_active_sessions",
    "Meetings currently in progress",
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request count and duration per method and path.

    Skips the /metrics endpoint itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # Route template keeps meeting ids out of label values.
        endpoint = getattr(request.scope.get("route"), "path", request.url.path)
        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── LLM Metrics Helper ───────────────────────────────────────────────────────


@asynccontextmanager
async def track_llm_call(model: str) -> AsyncGenerator[dict[str, Any], None]:
    """Time an LLM call and record its outcome and token usage.

    Usage:
        async with track_llm_call("reasoning") as tracker:
            result = await router.acompletion(...)
            tracker["prompt_tokens"] = result.usage.prompt_tokens
    """
    tracker: dict[str, Any] = {"prompt_tokens": 0, "completion_tokens": 0}
    start_time = time.perf_counter()
    status = "success"

    try:
        yield tracker
    except Exception:
        status = "error"
        raise
    finally:
        llm_requests_total.labels(model=model, status=status).inc()
        llm_request_duration_seconds.labels(model=model).observe(
            time.perf_counter() - start_time
        )
        for token_type in ("prompt", "completion"):
            count = tracker.get(f"{token_type}_tokens")
            if count:
                llm_tokens_used_total.labels(model=model, token_type=token_type).inc(count)


def get_metrics_response() -> Response:
    """Prometheus exposition of the default registry."""
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "MetricsMiddleware",
    "active_sessions",
    "escalations_total",
    "finalize_step_failures_total",
    "get_metrics_response",
    "meetings_finalized_total",
    "track_llm_call",
]
