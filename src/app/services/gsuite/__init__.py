"""Google Workspace mail delivery.

Async-wrapped Gmail send using a service account with domain-wide
delegation. Used by the standup EmailNotifier.
"""

from src.app.services.gsuite.auth import GSuiteAuthManager
from src.app.services.gsuite.gmail import GmailService
from src.app.services.gsuite.models import EmailMessage, SentEmailResult

__all__ = [
    "EmailMessage",
    "GmailService",
    "GSuiteAuthManager",
    "SentEmailResult",
]
