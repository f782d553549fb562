"""HTML bodies and subjects for standup emails.

All participant-provided text is HTML-escaped before it is embedded.
"""

from __future__ import annotations

import re
from datetime import datetime
from html import escape, unescape

from src.app.meetings.schemas import Blocker, EscalationAlert, MeetingNotification, MeetingSummary

_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")

_BODY_STYLE = (
    "font-family: Arial, sans-serif; line-height: 1.6; color: #333; "
    "max-width: 760px; margin: 0 auto; padding: 20px;"
)


def summary_subject(title: str) -> str:
    return f"Daily Standup Summary - {title}"


def _paragraphs(text: str) -> str:
    return escape(text).replace("\n", "<br>")


def _fmt(moment: datetime) -> str:
    return moment.strftime("%B %d, %Y at %I:%M %p %Z").strip()


def _blocker_items(blockers: list[Blocker], with_time: bool = False) -> str:
    items = []
    for b in blockers:
        reported = f"<br><small>Reported at: {_fmt(b.timestamp)}</small>" if with_time else ""
        items.append(
            '<li style="margin: 6px 0;">'
            f"<strong>{escape(b.participant)}</strong>: {escape(b.text)}{reported}</li>"
        )
    return "".join(items)


def build_summary_email(summary: MeetingSummary, title: str) -> str:
    """Summary email: overview, narrative summary, and blockers if any."""
    blockers_html = ""
    if summary.blockers:
        blockers_html = (
            '<div style="background: #fff3cd; border-left: 4px solid #ffc107; padding: 12px;">'
            "<h3>Blockers & Impediments</h3>"
            f"<ul>{_blocker_items(summary.blockers)}</ul></div>"
        )
    duration = f"{summary.duration} minutes" if summary.duration is not None else "Not recorded"

    return f"""<html>
<body style="{_BODY_STYLE}">
<h2>Daily Standup Summary: {escape(title)}</h2>
<p><strong>Date:</strong> {_fmt(summary.meeting_date)}</p>
<p><strong>Participants:</strong> {escape(', '.join(summary.participants))}</p>
<p><strong>Duration:</strong> {duration}</p>
<hr>
<h3>Meeting Summary</h3>
<p>{_paragraphs(summary.summary)}</p>
{blockers_html}
<hr>
<p><em>This summary was generated automatically by your virtual Scrum Master.</em></p>
</body>
</html>"""


def build_escalation_email(alert: EscalationAlert) -> str:
    """Urgent blocker alert for the team lead."""
    return f"""<html>
<body style="{_BODY_STYLE}">
<h2 style="color: #dc3545;">Urgent Blocker Alert: {escape(alert.meeting_title)}</h2>
<p>Critical blockers require immediate attention.</p>
<p><strong>Meeting:</strong> {escape(alert.meeting_title)} ({escape(alert.meeting_id)})</p>
<p><strong>Time:</strong> {_fmt(alert.timestamp)}</p>
<hr>
<h3>Identified Blockers</h3>
<ul>{_blocker_items(alert.blockers, with_time=True)}</ul>
<div style="background: #d1ecf1; border-left: 4px solid #17a2b8; padding: 12px;">
<h3>Analysis & Recommendations</h3>
<p>{_paragraphs(alert.analysis)}</p>
</div>
<hr>
<p><strong>Action required:</strong> please review these blockers and help your team members.</p>
</body>
</html>"""


def build_notification_email(notification: MeetingNotification) -> str:
    """Generic meeting notification (started, cancelled)."""
    info = notification.meeting_info
    return f"""<html>
<body style="{_BODY_STYLE}">
<h2>Meeting Notification</h2>
<p>{_paragraphs(notification.message)}</p>
<div style="border-left: 4px solid #0078d4; padding: 12px;">
<h3>Meeting Details</h3>
<p><strong>Title:</strong> {escape(info.title)}</p>
<p><strong>Time:</strong> {_fmt(info.scheduled_time)}</p>
<p><strong>Duration:</strong> {info.duration} minutes</p>
<p><strong>Timezone:</strong> {escape(info.timezone)}</p>
</div>
</body>
</html>"""


def html_to_text(body_html: str) -> str:
    """Plain-text alternative for an HTML body."""
    text = body_html.replace("<br>", "\n")
    text = _TAG_RE.sub("", text)
    return unescape(_BLANK_LINES_RE.sub("\n\n", text).strip())
