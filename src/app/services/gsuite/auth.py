"""Gmail credentials from a service account with domain-wide delegation.

Built API clients are cached per impersonated mailbox so each send does
not rebuild credentials and discovery documents.
"""

from __future__ import annotations

from typing import Any

import structlog
from google.oauth2 import service_account
from googleapiclient.discovery import build

logger = structlog.get_logger(__name__)

GMAIL_SEND_SCOPES = ["https://www.googleapis.com/auth/gmail.send"]


class GSuiteAuthManager:
    """Builds and caches delegated Gmail API clients.

    Args:
        service_account_file: Path to the service account JSON key.
        delegated_user_email: Mailbox impersonated when no other is given.
    """

    def __init__(self, service_account_file: str, delegated_user_email: str) -> None:
        self._service_account_file = service_account_file
        self._delegated_user_email = delegated_user_email
        self._clients: dict[str, Any] = {}

    def _credentials_for(self, user_email: str) -> service_account.Credentials:
        credentials = service_account.Credentials.from_service_account_file(
            self._service_account_file,
            scopes=GMAIL_SEND_SCOPES,
        )
        return credentials.with_subject(user_email) if user_email else credentials

    def get_gmail_service(self, user_email: str | None = None) -> Any:
        """Gmail v1 client acting as ``user_email`` (default: the delegated user)."""
        email = user_email or self._delegated_user_email
        client = self._clients.get(email)
        if client is None:
            logger.info("building_gmail_service", user_email=email)
            client = build(
                "gmail",
                "v1",
                credentials=self._credentials_for(email),
                cache_discovery=False,
            )
            self._clients[email] = client
        return client
