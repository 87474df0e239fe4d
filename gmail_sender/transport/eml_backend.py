from __future__ import annotations

from email.message import EmailMessage
from pathlib import Path

from gmail_sender.errors import DeliveryFailed
from gmail_sender.models import Credentials
from gmail_sender.render.mime import write_eml_file
from gmail_sender.storage.runs import StructuredLogger


class EmlBackend:
    """No-network backend that writes the message to an .eml file."""

    def __init__(self, *, out_path: Path, logger: StructuredLogger | None = None) -> None:
        self.out_path = out_path
        self.logger = logger

    def deliver(self, *, message: EmailMessage, credentials: Credentials | None = None) -> None:
        # Credentials are accepted for interface parity and never used.
        try:
            write_eml_file(message=message, out_path=self.out_path)
        except OSError as exc:
            raise DeliveryFailed(
                f"could not write {self.out_path}: {exc}",
                stage="write",
                url=str(self.out_path),
                cause=exc,
            ) from exc
        if self.logger is not None:
            self.logger.info(
                "email_eml_written",
                stage="email",
                status="ok",
                path=str(self.out_path),
            )
