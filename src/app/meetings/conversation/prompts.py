"""Prompt text for the standup conversation generator."""

from __future__ import annotations

from src.app.meetings.schemas import Blocker, MeetingData

SCRUM_MASTER_SYSTEM = (
    "You are an experienced Scrum Master facilitating a daily standup meeting. "
    "Be professional and encouraging, and keep the meeting focused and time-boxed. "
    "Reply in two sentences at most."
)

SUMMARIZER_SYSTEM = """You summarize daily standup meetings for email distribution.
Write a clear, concise summary covering:
1. Meeting participants
2. What each person accomplished yesterday
3. What each person plans to do today
4. Any blockers or impediments mentioned
5. Key decisions or action items"""

BLOCKER_ANALYZER_SYSTEM = """You analyze project blockers raised in daily standups.
For the blockers given:
1. Categorize them by type (technical, process, dependency, ...)
2. Assess their urgency and impact
3. Suggest solutions or escalation paths
4. Say explicitly if immediate team lead attention is required, using the word "urgent" or "escalate" when it is"""

INSIGHTS_SYSTEM = (
    "You are an agile coach reviewing standup data to help a team improve."
)


def standup_questions(participant: str) -> list[str]:
    return [
        f"Hello {participant}! Let's start with our daily standup. What did you accomplish yesterday?",
        "Great! Now, what are you planning to work on today?",
        "Perfect! Do you have any blockers or impediments that are preventing you from moving forward?",
    ]


_ACK_INSTRUCTIONS = (
    'The team member said they accomplished: "{answer}". '
    "Give a brief, encouraging acknowledgment.",
    'The team member plans to work on: "{answer}". Acknowledge their plans briefly.',
    'The team member mentioned these blockers: "{answer}". '
    "Respond supportively and say the team will help address them.",
)


def acknowledgment_prompt(answer: str, question_index: int) -> str:
    return _ACK_INSTRUCTIONS[question_index].format(answer=answer)


def summary_prompt(meeting_data: MeetingData) -> str:
    lines = [
        "Summarize this daily standup meeting.",
        "",
        f"Participants: {', '.join(meeting_data.participants)}",
        f"Meeting date: {meeting_data.date:%Y-%m-%d}",
        f"Duration: {meeting_data.duration} minutes",
        "",
        "Responses:",
    ]
    for participant, answers in zip(meeting_data.participants, meeting_data.responses):
        if not answers:
            continue
        lines.append(f"\n{participant}:")
        lines.extend(f"- {a.question} {a.answer}" for a in answers)
    return "\n".join(lines)


def blockers_text(blockers: list[Blocker]) -> str:
    return "\n".join(f"{b.participant}: {b.text}" for b in blockers)


def blocker_analysis_prompt(blockers: list[Blocker]) -> str:
    return (
        "Analyze these project blockers from a daily standup:\n\n"
        f"{blockers_text(blockers)}\n\n"
        "Provide categorization, urgency assessment, and recommendations."
    )


def insights_prompt(meeting_data: MeetingData) -> str:
    return (
        "Based on this standup meeting data, provide insights about team "
        "productivity, potential issues, and recommendations.\n\n"
        f"Meeting data:\n{meeting_data.model_dump_json(indent=2)}\n\n"
        "Focus on:\n"
        "1. Team velocity and productivity indicators\n"
        "2. Communication patterns\n"
        "3. Recurring issues or themes\n"
        "4. Recommendations for improvement"
    )
