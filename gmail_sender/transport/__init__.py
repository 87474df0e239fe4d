"""Mail transports: real SMTP submission and an offline .eml writer."""

from gmail_sender.transport.base import MailTransport
from gmail_sender.transport.eml_backend import EmlBackend
from gmail_sender.transport.smtp_backend import SmtpBackend

__all__ = ["EmlBackend", "MailTransport", "SmtpBackend"]
