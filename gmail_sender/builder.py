from __future__ import annotations

"""Fluent builder for composing and sending one email through Gmail SMTP.

Usage:

    (
        MessageBuilder()
        .set_sender("me@gmail.com", "Me")
        .set_recipients("you@example.com", "them@example.com")
        .set_subject("Report")
        .add_plain_text("See attached.")
        .add_attachment("report.pdf")
        .send("me@gmail.com", app_password)
    )

Every setter validates before mutating, so a failed call leaves the draft
untouched. Files are read eagerly when added. A builder is single-use: once
``send`` succeeds, further sends raise DraftAlreadySent. A failed send leaves
the draft intact so it can be retried with corrected credentials.
"""

import os
from email.message import EmailMessage
from email.utils import make_msgid
from pathlib import Path

from pydantic import SecretStr

from gmail_sender.config import GMAIL_SMTP, SmtpSettings
from gmail_sender.errors import DeliveryFailed, DraftAlreadySent, ResourceUnavailable
from gmail_sender.models import (
    Address,
    Attachment,
    Credentials,
    Html,
    InlineImage,
    MessageDraft,
    PlainText,
    guess_mime_type,
)
from gmail_sender.render.mime import build_message
from gmail_sender.storage.runs import StructuredLogger
from gmail_sender.transport.base import MailTransport
from gmail_sender.transport.smtp_backend import SmtpBackend

PathLike = str | os.PathLike[str]


class MessageBuilder:
    def __init__(
        self,
        *,
        transport: MailTransport | None = None,
        settings: SmtpSettings = GMAIL_SMTP,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.logger = logger
        self._transport: MailTransport = transport or SmtpBackend(settings=settings, logger=logger)
        self._draft = MessageDraft()

    @property
    def draft(self) -> MessageDraft:
        """A deep copy of the current draft (mutating it has no effect)."""
        return self._draft.model_copy(deep=True)

    @property
    def transport(self) -> MailTransport:
        return self._transport

    def set_sender(self, address: str, display_name: str | None = None) -> MessageBuilder:
        sender = Address.parse(address, display_name)
        self._draft.sender = sender
        self._debug("draft_sender_set", sender=sender.email)
        return self

    def set_recipients(self, *addresses: str) -> MessageBuilder:
        """Replace the recipient list; entries are trimmed and lower-cased."""
        recipients = [Address.parse(raw.strip().lower()) for raw in addresses]
        self._draft.recipients = recipients
        self._debug("draft_recipients_set", count=len(recipients))
        return self

    def set_subject(self, text: str) -> MessageBuilder:
        self._draft.subject = text
        return self

    def add_plain_text(self, text: str) -> MessageBuilder:
        self._append(PlainText(text=text))
        return self

    def add_html(self, markup: str) -> MessageBuilder:
        self._append(Html(markup=markup))
        return self

    def add_inline_image(self, path: PathLike) -> MessageBuilder:
        """Embed an image: an ``<img src="cid:...">`` Html part followed by the image part."""
        data = _read_bytes(path)
        filename = Path(path).name
        content_id = self._new_content_id()
        self._append(Html(markup=f'<img src="cid:{content_id}">'))
        self._append(
            InlineImage(
                content_id=content_id,
                filename=filename,
                data=data,
                mime_type=guess_mime_type(filename),
            )
        )
        return self

    def add_attachment(self, path: PathLike) -> MessageBuilder:
        data = _read_bytes(path)
        filename = Path(path).name
        self._append(Attachment(filename=filename, data=data, mime_type=guess_mime_type(filename)))
        return self

    def build(self) -> EmailMessage:
        """Render the draft without sending. Raises IncompleteDraft."""
        message = build_message(self._draft)
        if self.logger is not None:
            self.logger.info(
                "email_message_built",
                stage="email",
                status="ok",
                parts=len(self._draft.parts),
                recipients=len(self._draft.recipients),
            )
        return message

    def send(self, username: str, secret: str | SecretStr) -> EmailMessage:
        """Deliver the draft in exactly one transport attempt.

        Raises IncompleteDraft when sender, recipients or body are missing,
        DraftAlreadySent on reuse after success, and DeliveryFailed (with the
        transport error as ``cause``) when delivery fails.
        """
        if self._draft.sent:
            raise DraftAlreadySent("draft was already sent; builders are single-use")
        message = self.build()

        credentials = Credentials(
            username=username,
            secret=secret if isinstance(secret, SecretStr) else SecretStr(secret),
        )
        try:
            self._transport.deliver(message=message, credentials=credentials)
        except DeliveryFailed:
            raise
        except Exception as exc:  # noqa: BLE001
            raise DeliveryFailed(
                f"transport failed: {exc}",
                stage="send",
                cause=exc,
            ) from exc

        self._draft.sent = True
        return message

    def _append(self, part: PlainText | Html | InlineImage | Attachment) -> None:
        self._draft.parts.append(part)
        self._debug("draft_part_added", kind=part.kind, index=len(self._draft.parts) - 1)

    def _new_content_id(self) -> str:
        taken = self._draft.content_ids()
        while True:
            content_id = make_msgid(idstring="img", domain="inline")[1:-1]
            if content_id not in taken:
                return content_id

    def _debug(self, event: str, **kwargs: object) -> None:
        if self.logger is not None:
            self.logger.debug(event, stage="draft", **kwargs)


def _read_bytes(path: PathLike) -> bytes:
    try:
        with Path(path).open("rb") as f:
            return f.read()
    except OSError as exc:
        raise ResourceUnavailable(f"cannot read {path}: {exc}", path=str(path)) from exc
