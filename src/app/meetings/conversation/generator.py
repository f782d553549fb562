"""StandupConversationGenerator -- LLM-backed conversation for standups.

Implements the ConversationGenerator protocol on top of LLMService. Every
generation degrades to placeholder text when no LLM is configured or the
call fails, so the meeting flow never stalls on the model.

Escalation is decided by keyword, not by the model's say-so: any of
ESCALATION_KEYWORDS in the analysis text or the blocker text marks the
analysis as requiring escalation.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone

import structlog

from src.app.meetings.conversation import prompts
from src.app.meetings.schemas import (
    Blocker,
    BlockerAnalysis,
    ConversationStart,
    MeetingData,
    MeetingInsights,
    MeetingSummary,
)
from src.app.meetings.standup import extract_blockers

logger = structlog.get_logger(__name__)

ESCALATION_KEYWORDS = (
    "urgent",
    "critical",
    "blocked completely",
    "cannot proceed",
    "escalate",
)

PLACEHOLDER_PREFIX = "[DEMO MODE]"


def placeholder_text(prompt: str) -> str:
    return f"{PLACEHOLDER_PREFIX} Mock AI response for: {prompt[:50]}..."


def requires_escalation(*texts: str) -> bool:
    lowered = [t.lower() for t in texts]
    return any(keyword in text for keyword in ESCALATION_KEYWORDS for text in lowered)


class StandupConversationGenerator:
    """Conversation generator backed by LLMService.

    Args:
        llm_service: LLMService instance, or None for placeholder-only mode.
    """

    def __init__(self, llm_service: object | None = None) -> None:
        self._llm_service = llm_service

    @property
    def llm_available(self) -> bool:
        return self._llm_service is not None and getattr(
            self._llm_service, "available", True
        )

    async def _generate(self, prompt: str, system: str, model: str = "reasoning") -> str:
        if not self.llm_available:
            return placeholder_text(prompt)
        try:
            result = await self._llm_service.completion(
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                model=model,
            )
        except Exception:
            logger.warning("conversation_generation_failed", model=model, exc_info=True)
            return placeholder_text(prompt)
        content = (result.get("content") or "").strip()
        return content or "I apologize, but I could not generate a response."

    async def start_session(self, participant: str) -> ConversationStart:
        slug = re.sub(r"\s+", "_", participant.strip())
        return ConversationStart(
            session_id=f"standup_{uuid.uuid4().hex[:12]}_{slug}",
            questions=prompts.standup_questions(participant),
        )

    async def acknowledge(self, answer: str, question_index: int) -> str:
        return await self._generate(
            prompts.acknowledgment_prompt(answer, question_index),
            prompts.SCRUM_MASTER_SYSTEM,
            model="fast",
        )

    async def summarize(self, meeting_data: MeetingData) -> MeetingSummary:
        text = await self._generate(
            prompts.summary_prompt(meeting_data), prompts.SUMMARIZER_SYSTEM
        )
        blockers = extract_blockers(meeting_data)
        logger.info(
            "meeting_summarized",
            meeting_id=meeting_data.id,
            blocker_count=len(blockers),
        )
        return MeetingSummary(
            summary=text,
            participants=list(meeting_data.participants),
            blockers=blockers,
            meeting_date=meeting_data.date,
            duration=meeting_data.duration,
        )

    async def analyze_blockers(self, blockers: list[Blocker]) -> BlockerAnalysis:
        if not blockers:
            return BlockerAnalysis(
                analysis="No blockers were identified in this standup meeting.",
                requires_escalation=False,
            )
        analysis = await self._generate(
            prompts.blocker_analysis_prompt(blockers), prompts.BLOCKER_ANALYZER_SYSTEM
        )
        escalate = requires_escalation(analysis, prompts.blockers_text(blockers))
        if escalate:
            logger.info("blockers_require_escalation", blocker_count=len(blockers))
        return BlockerAnalysis(
            analysis=analysis,
            requires_escalation=escalate,
            blockers=list(blockers),
            timestamp=datetime.now(timezone.utc),
        )

    async def generate_insights(self, meeting_data: MeetingData) -> MeetingInsights:
        insights = await self._generate(
            prompts.insights_prompt(meeting_data), prompts.INSIGHTS_SYSTEM
        )
        return MeetingInsights(meeting_id=meeting_data.id, insights=insights)


__all__ = [
    "ESCALATION_KEYWORDS",
    "PLACEHOLDER_PREFIX",
    "StandupConversationGenerator",
    "placeholder_text",
    "requires_escalation",
]
