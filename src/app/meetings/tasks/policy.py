"""Work-item update policy applied after a standup.

Pure functions: they decide what to write to a tracker, never how. The
state rules are a simple keyword heuristic and are meant to be replaced
per team workflow:

- a reported blocker moves the item to ``Blocked``
- "complete"/"finish" in today's plan, or "completed" in yesterday's
  work, moves it to ``Done``
- a ``New``/``To Do`` item whose owner "started" it moves to ``Active``
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape

from src.app.meetings.schemas import Blocker, MeetingData, MeetingSummary, StandupAnswer
from src.app.meetings.standup import is_blocker_free

BLOCKED_STATE = "Blocked"
DONE_STATE = "Done"
ACTIVE_STATE = "Active"
BLOCKED_TAG = "Blocked"
SUMMARY_TAGS = "Standup; Meeting Summary; AI Generated"
BLOCKER_TAGS = "Blocker; High Priority; Standup"
BLOCKER_TITLE_LIMIT = 100


@dataclass(frozen=True)
class StandupUpdate:
    """One participant's three answers, by meaning."""

    participant: str
    yesterday: str
    today: str
    blockers: str

    @classmethod
    def from_answers(cls, participant: str, answers: list[StandupAnswer]) -> StandupUpdate:
        texts = [a.answer for a in answers] + ["", "", ""]
        return cls(participant, texts[0], texts[1], texts[2])

    @property
    def has_blockers(self) -> bool:
        return bool(self.blockers.strip()) and not is_blocker_free(self.blockers)


def determine_new_state(current_state: str, update: StandupUpdate) -> str | None:
    """Target state for a work item, or None to leave it alone."""
    if update.has_blockers:
        new_state = BLOCKED_STATE
    elif (
        "complete" in update.today.lower()
        or "finish" in update.today.lower()
        or "completed" in update.yesterday.lower()
    ):
        new_state = DONE_STATE
    elif current_state in ("New", "To Do") and "started" in update.yesterday.lower():
        new_state = ACTIVE_STATE
    else:
        return None
    return None if new_state == current_state else new_state


def format_standup_update(update: StandupUpdate, date: datetime) -> str:
    """Dated history note for a work item."""
    return (
        f"--- Daily Standup Update ({date:%Y-%m-%d}) ---\n"
        f"Standup update for {update.participant}\n"
        f"Yesterday: {update.yesterday}\n"
        f"Today: {update.today}\n"
        f"Blockers: {update.blockers or 'None'}"
    )


def merge_tag(current_tags: str, tag: str) -> str | None:
    """Tags string with ``tag`` added, or None if it is already present."""
    tags = [t.strip() for t in current_tags.split(";") if t.strip()]
    if tag in tags:
        return None
    return "; ".join([*tags, tag])


def summary_title(date: datetime) -> str:
    return f"Daily Standup Summary - {date:%Y-%m-%d}"


def summary_description(meeting_data: MeetingData, summary: MeetingSummary) -> str:
    """HTML description for the meeting's summary work item."""
    parts = [
        "<h2>Daily Standup Meeting Summary</h2>",
        f"<p><strong>Date:</strong> {meeting_data.date:%Y-%m-%d}</p>",
        f"<p><strong>Duration:</strong> {meeting_data.duration} minutes</p>",
        f"<p><strong>Participants:</strong> {escape(', '.join(meeting_data.participants))}</p>",
        "<h3>Meeting Summary</h3>",
        f"<div>{escape(summary.summary).replace(chr(10), '<br/>')}</div>",
    ]
    if summary.blockers:
        items = "".join(
            f"<li><strong>{escape(b.participant)}:</strong> {escape(b.text)}</li>"
            for b in summary.blockers
        )
        parts.append(f"<h3>Blockers Identified</h3><ul>{items}</ul>")

    parts.append("<h3>Team Updates</h3>")
    for participant, answers in zip(meeting_data.participants, meeting_data.responses):
        if not answers:
            continue
        update = StandupUpdate.from_answers(participant, answers)
        parts.append(
            f"<h4>{escape(participant)}</h4><ul>"
            f"<li><strong>Yesterday:</strong> {escape(update.yesterday or 'No response')}</li>"
            f"<li><strong>Today:</strong> {escape(update.today or 'No response')}</li>"
            f"<li><strong>Blockers:</strong> {escape(update.blockers or 'No response')}</li>"
            "</ul>"
        )
    parts.append("<hr/><p><em>Generated automatically by the standup facilitator.</em></p>")
    return "\n".join(parts)


def blocker_title(blocker: Blocker) -> str:
    text = blocker.text
    if len(text) > BLOCKER_TITLE_LIMIT:
        text = text[:BLOCKER_TITLE_LIMIT] + "..."
    return f"BLOCKER: {text}"


def blocker_description(blocker: Blocker) -> str:
    return (
        "<h3>Blocker identified during Daily Standup</h3>"
        f"<p><strong>Reported by:</strong> {escape(blocker.participant)}</p>"
        f"<p><strong>Date:</strong> {blocker.timestamp:%Y-%m-%d}</p>"
        f"<p><strong>Description:</strong></p><div>{escape(blocker.text)}</div>"
    )
