from __future__ import annotations

import smtplib
from email.message import EmailMessage

from gmail_sender.config import GMAIL_SMTP, SmtpSettings
from gmail_sender.errors import DeliveryFailed
from gmail_sender.models import Credentials
from gmail_sender.storage.runs import StructuredLogger


class SmtpBackend:
    """SMTP submission with mandatory STARTTLS; one attempt, no fallback."""

    def __init__(
        self,
        *,
        settings: SmtpSettings = GMAIL_SMTP,
        timeout_seconds: int = 30,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.settings = settings
        self.timeout_seconds = timeout_seconds
        self.logger = logger

    def deliver(self, *, message: EmailMessage, credentials: Credentials) -> None:
        host = self.settings.host
        port = self.settings.port
        stage = "connect"
        try:
            with smtplib.SMTP(host, port, timeout=self.timeout_seconds) as server:
                server.ehlo()
                stage = "starttls"
                if server.has_extn("starttls"):
                    server.starttls(context=self.settings.ssl_context())
                    server.ehlo()
                elif self.settings.starttls_required:
                    raise DeliveryFailed(
                        "server does not advertise STARTTLS",
                        stage=stage,
                        url=self.settings.url,
                    )
                stage = "login"
                server.login(credentials.username, credentials.secret.get_secret_value())
                stage = "send"
                server.send_message(message)
        except DeliveryFailed as exc:
            self._log_failure(exc, stage=exc.stage)
            raise
        except (smtplib.SMTPException, OSError) as exc:
            self._log_failure(exc, stage=stage)
            raise DeliveryFailed(
                f"SMTP {stage} failed: {exc}",
                stage=stage,
                url=self.settings.url,
                cause=exc,
            ) from exc

        if self.logger is not None:
            self.logger.info(
                "email_sent_starttls",
                stage="email",
                status="ok",
                url=self.settings.url,
                message_id=str(message.get("Message-ID", "")),
                to=str(message.get("To", "")),
            )

    def _log_failure(self, exc: BaseException, *, stage: str) -> None:
        if self.logger is None:
            return
        self.logger.error(
            "email_send_failed",
            stage="email",
            error_type=exc.__class__.__name__,
            error_message=str(exc),
            url=self.settings.url,
            smtp_stage=stage,
        )
