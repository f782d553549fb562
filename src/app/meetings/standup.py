"""Per-participant standup flow.

A sub-session walks one participant through the three standup questions
strictly in order: record the answer, acknowledge it, advance. Functions
here never mutate their input; each step returns a new StandupSubSession
so the caller decides when the new state becomes visible.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from src.app.meetings.clock import Clock
from src.app.meetings.collaborators import ConversationGenerator
from src.app.meetings.errors import CollaboratorFailure, InvalidTransitionError
from src.app.meetings.schemas import (
    Blocker,
    MeetingData,
    StandupAnswer,
    StandupSubSession,
)

logger = structlog.get_logger(__name__)

QUESTION_COUNT = 3
BLOCKER_QUESTION_INDEX = 2

NO_BLOCKERS_ACK = "Excellent! No blockers is great to hear. Thanks for the update!"
FALLBACK_ACK = "Thanks for sharing! Let's keep going."

NEGATION_TOKENS = frozenset({"no", "none", "nope", "nothing", "n/a"})

_TOKEN_RE = re.compile(r"[a-z/]+")


@dataclass(frozen=True)
class StandupStep:
    """Result of answering one question."""

    state: StandupSubSession
    acknowledgment: str
    next_question: str | None


def is_blocker_free(answer: str) -> bool:
    """True if the answer contains a standalone negation token.

    Matching is on whole tokens, so "I have no blockers" counts while
    "nobody can review my PR" does not.
    """
    tokens = _TOKEN_RE.findall(answer.lower())
    return any(token in NEGATION_TOKENS for token in tokens)


def extract_blockers(meeting_data: MeetingData) -> list[Blocker]:
    """Blockers from each participant's third answer, skipping "no blockers" replies."""
    blockers: list[Blocker] = []
    for participant, answers in zip(meeting_data.participants, meeting_data.responses):
        if len(answers) <= BLOCKER_QUESTION_INDEX:
            continue
        third = answers[BLOCKER_QUESTION_INDEX]
        if third.answer.strip() and not is_blocker_free(third.answer):
            blockers.append(
                Blocker(participant=participant, text=third.answer, timestamp=third.timestamp)
            )
    return blockers


async def start_sub_session(
    participant: str, generator: ConversationGenerator
) -> StandupSubSession:
    """Open a fresh sub-session using the generator's questions."""
    try:
        start = await generator.start_session(participant)
    except Exception as exc:
        raise CollaboratorFailure("start_session", exc) from exc
    return StandupSubSession(
        session_id=start.session_id,
        participant=participant,
        questions=list(start.questions),
    )


async def _acknowledge(
    generator: ConversationGenerator, answer: str, question_index: int
) -> str:
    if question_index == BLOCKER_QUESTION_INDEX and is_blocker_free(answer):
        return NO_BLOCKERS_ACK
    try:
        return await generator.acknowledge(answer, question_index)
    except Exception as exc:
        failure = CollaboratorFailure("acknowledge", exc)
        logger.warning(
            "standup_acknowledgment_failed",
            question_index=question_index,
            error=failure.message,
        )
        return FALLBACK_ACK


async def submit_response(
    state: StandupSubSession,
    answer: str,
    expected_index: int,
    generator: ConversationGenerator,
    clock: Clock,
) -> StandupStep:
    """Record ``answer`` for the current question and advance.

    Args:
        state: Current sub-session; left untouched.
        answer: Participant's answer text.
        expected_index: Question index the caller believes is current.
            A mismatch means a concurrent or stale submission.
        generator: Source of the acknowledgment text.
        clock: Stamps the recorded answer.

    Raises:
        InvalidTransitionError: If the sub-session is complete or
            ``expected_index`` is not the current question.
    """
    subject = f"Standup session {state.session_id}"
    if state.is_complete:
        raise InvalidTransitionError(subject, "complete", "answer")
    index = state.current_question_index
    if expected_index != index:
        raise InvalidTransitionError(
            subject, f"question {index + 1}", f"question {expected_index + 1}"
        )

    recorded = StandupAnswer(
        question=state.questions[index], answer=answer, timestamp=clock.now()
    )
    acknowledgment = await _acknowledge(generator, answer, index)

    next_index = index + 1
    complete = next_index >= QUESTION_COUNT
    new_state = state.model_copy(
        update={
            "answers": [*state.answers, recorded],
            "current_question_index": next_index,
            "is_complete": complete,
        }
    )
    return StandupStep(
        state=new_state,
        acknowledgment=acknowledgment,
        next_question=None if complete else new_state.questions[next_index],
    )


__all__ = [
    "BLOCKER_QUESTION_INDEX",
    "FALLBACK_ACK",
    "NEGATION_TOKENS",
    "NO_BLOCKERS_ACK",
    "QUESTION_COUNT",
    "StandupStep",
    "extract_blockers",
    "is_blocker_free",
    "start_sub_session",
    "submit_response",
]
