"""LLM provider abstraction via LiteLLM Router.

Two model groups are exposed:
- "reasoning": Claude Sonnet 4, falling back to GPT-4o (summaries, analysis)
- "fast": Claude Haiku, falling back to GPT-4o-mini (per-answer acknowledgments)

Participant answers are free text that ends up inside prompts, so user
messages are screened for prompt injection before every call.
"""

from __future__ import annotations

import re

import structlog
from litellm import Router

from src.app.config import Settings, get_settings
from src.app.core.monitoring import track_llm_call

logger = structlog.get_logger(__name__)

# ── Prompt Injection Screening ───────────────────────────────────────────────

_INJECTION_PATTERNS: list[tuple[str, re.Pattern]] = [
    (
        "instruction_override",
        re.compile(
            r"(ignore|disregard|forget|override)\s+(all\s+)?(your\s+|previous\s+)?instructions",
            re.IGNORECASE,
        ),
    ),
    (
        "system_prompt_exfiltration",
        re.compile(
            r"(reveal|show|print|repeat)\s+(your\s+)?(system\s+prompt|instructions)|"
            r"what\s+are\s+your\s+instructions",
            re.IGNORECASE,
        ),
    ),
    (
        "role_hijacking",
        re.compile(
            r"you\s+are\s+now\s+|pretend\s+(to\s+be|you\s+are)|assume\s+the\s+role\s+of",
            re.IGNORECASE,
        ),
    ),
    ("control_characters", re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]{3,}")),
]


def detect_prompt_injection(text: str) -> str | None:
    """Name of the first injection pattern found in ``text``, or None."""
    for pattern_name, pattern in _INJECTION_PATTERNS:
        if pattern.search(text):
            return pattern_name
    return None


def sanitize_messages(messages: list[dict]) -> list[dict]:
    """Strip injection patterns from non-system messages.

    System messages are trusted and passed through unchanged.
    """
    sanitized = []
    for msg in messages:
        content = msg.get("content") or ""
        if msg.get("role") == "system" or not content:
            sanitized.append(msg)
            continue

        pattern_name = detect_prompt_injection(content)
        if pattern_name is None:
            sanitized.append(msg)
            continue

        cleaned = content
        for _, pattern in _INJECTION_PATTERNS:
            cleaned = pattern.sub("[removed]", cleaned)
        logger.warning(
            "prompt_injection_sanitized",
            role=msg.get("role"),
            pattern=pattern_name,
            original_length=len(content),
            cleaned_length=len(cleaned),
        )
        sanitized.append({**msg, "content": cleaned})
    return sanitized


# ── LLM Service ──────────────────────────────────────────────────────────────


class LLMService:
    """LiteLLM Router over whichever provider keys are configured.

    With no keys at all ``available`` is False and ``completion`` raises
    RuntimeError; callers degrade to placeholder text.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()

        model_list = []
        if settings.ANTHROPIC_API_KEY:
            model_list += [
                {
                    "model_name": "reasoning",
                    "litellm_params": {
                        "model": "anthropic/claude-sonnet-4-20250514",
                        "api_key": settings.ANTHROPIC_API_KEY,
                    },
                },
                {
                    "model_name": "fast",
                    "litellm_params": {
                        "model": "anthropic/claude-3-5-haiku-20241022",
                        "api_key": settings.ANTHROPIC_API_KEY,
                    },
                },
            ]
        if settings.OPENAI_API_KEY:
            model_list += [
                {
                    "model_name": "reasoning",
                    "litellm_params": {
                        "model": "openai/gpt-4o",
                        "api_key": settings.OPENAI_API_KEY,
                    },
                },
                {
                    "model_name": "fast",
                    "litellm_params": {
                        "model": "openai/gpt-4o-mini",
                        "api_key": settings.OPENAI_API_KEY,
                    },
                },
            ]

        if not model_list:
            logger.warning("llm_unavailable", reason="no LLM API keys configured")
            self.router = None
            return

        self.router = Router(
            model_list=model_list,
            num_retries=settings.LLM_MAX_RETRIES,
            timeout=settings.LLM_TIMEOUT,
            allowed_fails=3,
            cooldown_time=30,
        )

    @property
    def available(self) -> bool:
        return self.router is not None

    async def completion(
        self,
        messages: list[dict],
        model: str = "reasoning",
        max_tokens: int = 500,
        temperature: float = 0.7,
        metadata: dict | None = None,
    ) -> dict:
        """Execute a completion call through the LiteLLM Router.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model group name ("reasoning" or "fast").
            max_tokens: Maximum tokens in the response.
            temperature: Sampling temperature (0-2).
            metadata: Extra metadata forwarded to LiteLLM callbacks.

        Returns:
            Dict with content, model and usage.

        Raises:
            RuntimeError: If no LLM API keys are configured.
        """
        if not self.router:
            raise RuntimeError("No LLM API keys configured")

        async with track_llm_call(model) as tracker:
            response = await self.router.acompletion(
                model=model,
                messages=sanitize_messages(messages),
                max_tokens=max_tokens,
                temperature=temperature,
                metadata=metadata or {},
            )

            usage = {}
            if getattr(response, "usage", None):
                usage = {
                    "prompt_tokens": response.usage.prompt_tokens,
                    "completion_tokens": response.usage.completion_tokens,
                    "total_tokens": response.usage.total_tokens,
                }
                tracker.update(usage)

        return {
            "content": response.choices[0].message.content or "",
            "model": response.model,
            "usage": usage,
        }


# ── Singleton ────────────────────────────────────────────────────────────────

_llm_service: LLMService | None = None


def get_llm_service() -> LLMService:
    """Get or create the LLM service singleton."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service


__all__ = ["LLMService", "detect_prompt_injection", "get_llm_service", "sanitize_messages"]
