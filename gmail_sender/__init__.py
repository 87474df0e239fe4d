"""Fluent email builder with Gmail SMTP (STARTTLS) delivery."""

from gmail_sender.builder import MessageBuilder
from gmail_sender.config import GMAIL_SMTP, AppConfig, SmtpSettings, load_config
from gmail_sender.errors import (
    DeliveryFailed,
    DraftAlreadySent,
    GmailSenderError,
    IncompleteDraft,
    InvalidAddress,
    ResourceUnavailable,
)
from gmail_sender.models import Address, Credentials, MessageDraft

__all__ = [
    "GMAIL_SMTP",
    "Address",
    "AppConfig",
    "Credentials",
    "DeliveryFailed",
    "DraftAlreadySent",
    "GmailSenderError",
    "IncompleteDraft",
    "InvalidAddress",
    "MessageBuilder",
    "MessageDraft",
    "ResourceUnavailable",
    "SmtpSettings",
    "load_config",
]
