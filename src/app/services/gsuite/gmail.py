"""Async Gmail send.

Google API client calls are blocking, so each send runs in
asyncio.to_thread().
"""

from __future__ import annotations

import asyncio
import base64
from email.message import EmailMessage as MimeMessage

import structlog

from src.app.services.gsuite.auth import GSuiteAuthManager
from src.app.services.gsuite.models import EmailMessage, SentEmailResult

logger = structlog.get_logger(__name__)


def build_raw_message(email: EmailMessage) -> str:
    """Base64url-encoded MIME message in the form the Gmail API expects."""
    msg = MimeMessage()
    msg["To"] = email.to
    msg["Subject"] = email.subject
    if email.from_email:
        msg["From"] = email.from_email
    if email.cc:
        msg["Cc"] = ", ".join(email.cc)

    if email.body_text:
        msg.set_content(email.body_text)
        msg.add_alternative(email.body_html, subtype="html")
    else:
        msg.set_content(email.body_html, subtype="html")

    return base64.urlsafe_b64encode(msg.as_bytes()).decode()


class GmailService:
    """Sends email through the Gmail API as a delegated mailbox."""

    def __init__(self, auth_manager: GSuiteAuthManager, default_user_email: str) -> None:
        self._auth = auth_manager
        self._default_user_email = default_user_email

    async def send_email(
        self, email: EmailMessage, user_email: str | None = None
    ) -> SentEmailResult:
        """Send ``email`` as ``user_email`` (default: the configured mailbox)."""
        sender = user_email or self._default_user_email
        service = self._auth.get_gmail_service(sender)
        body = {"raw": build_raw_message(email)}

        def _send() -> dict:
            return service.users().messages().send(userId="me", body=body).execute()

        logger.info("sending_email", to=email.to, subject=email.subject)
        result = await asyncio.to_thread(_send)

        return SentEmailResult(
            message_id=result.get("id", ""),
            thread_id=result.get("threadId", ""),
            label_ids=result.get("labelIds", []),
        )
