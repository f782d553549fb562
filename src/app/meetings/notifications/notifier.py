"""EmailNotifier -- standup emails over Gmail.

Sends one message per recipient so a bad address only loses that one
delivery. Failures are logged per recipient and never raised. Without a
GmailService (Google credentials not configured) every delivery is
logged instead of sent.

Exports:
    EmailNotifier: Notifier implementation used by MeetingService.
    DeliveryReport: Per-call record of sent and failed recipients.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from src.app.meetings.notifications.emails import (
    build_escalation_email,
    build_notification_email,
    build_summary_email,
    html_to_text,
    summary_subject,
)
from src.app.meetings.schemas import EscalationAlert, MeetingNotification, MeetingSummary
from src.app.services.gsuite.models import EmailMessage

logger = structlog.get_logger(__name__)


@dataclass
class DeliveryReport:
    kind: str
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    logged_only: list[str] = field(default_factory=list)


class EmailNotifier:
    """Delivers summary, escalation and meeting notification emails.

    Args:
        gmail_service: Optional GmailService; None means log-only delivery.
        from_email: Sender address placed in the From header.
    """

    def __init__(self, gmail_service: object | None = None, from_email: str = "") -> None:
        self._gmail_service = gmail_service
        self._from_email = from_email or None

    async def send_summary(
        self, participants: list[str], summary: MeetingSummary, title: str
    ) -> DeliveryReport:
        return await self._deliver(
            "summary",
            participants,
            summary_subject(title),
            build_summary_email(summary, title),
        )

    async def send_escalation_alert(
        self, recipients: list[str], alert: EscalationAlert
    ) -> DeliveryReport:
        report = await self._deliver(
            "escalation",
            recipients,
            alert.subject,
            build_escalation_email(alert),
        )
        logger.info(
            "escalation_alert_dispatched",
            meeting_id=alert.meeting_id,
            blocker_count=len(alert.blockers),
            sent=len(report.sent),
        )
        return report

    async def send_notification(
        self, participants: list[str], notification: MeetingNotification
    ) -> DeliveryReport:
        return await self._deliver(
            "notification",
            participants,
            notification.subject,
            build_notification_email(notification),
        )

    async def _deliver(
        self, kind: str, recipients: list[str], subject: str, body_html: str
    ) -> DeliveryReport:
        report = DeliveryReport(kind=kind)
        # Duplicate recipients get a single copy.
        unique = list(dict.fromkeys(recipients))

        if not (self._gmail_service and hasattr(self._gmail_service, "send_email")):
            for recipient in unique:
                logger.info("email_logged", kind=kind, to=recipient, subject=subject)
                report.logged_only.append(recipient)
            return report

        body_text = html_to_text(body_html)
        for recipient in unique:
            email = EmailMessage(
                to=recipient,
                subject=subject,
                body_html=body_html,
                body_text=body_text,
                from_email=self._from_email,
            )
            try:
                await self._gmail_service.send_email(email)
            except Exception:
                logger.warning(
                    "email_delivery_failed",
                    kind=kind,
                    to=recipient,
                    subject=subject,
                    exc_info=True,
                )
                report.failed.append(recipient)
                continue
            report.sent.append(recipient)

        logger.info(
            "emails_sent",
            kind=kind,
            sent=len(report.sent),
            failed=len(report.failed),
        )
        return report


__all__ = ["DeliveryReport", "EmailNotifier"]
