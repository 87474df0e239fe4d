from __future__ import annotations

from email.message import EmailMessage
from typing import Protocol

from gmail_sender.models import Credentials


class MailTransport(Protocol):
    def deliver(self, *, message: EmailMessage, credentials: Credentials) -> None:
        """Submit an already constructed message; raise DeliveryFailed on failure."""
