from __future__ import annotations

"""Data models for message drafts.

Hierarchy:
- Address: validated email address + optional display name
- BodyPart: tagged union of PlainText / Html / InlineImage / Attachment
- MessageDraft: sender, recipients, subject and the ordered body parts
- Credentials: login pair handed to the transport at send time only

All models use Pydantic for validation and serialization.
"""

import mimetypes
from datetime import datetime, timezone
from email.headerregistry import Address as HeaderAddress
from typing import Annotated, Any, Literal, Union

import email_validator
from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator

from gmail_sender.errors import InvalidAddress

DEFAULT_MIME_TYPE = "application/octet-stream"

# Relay-internal hosts. email-validator rejects these names even with
# globally_deliverable=False; removing them from its list is the documented opt-out.
RELAY_DOMAIN_NAMES = ("local", "localhost", "invalid")
for _name in RELAY_DOMAIN_NAMES:
    if _name in email_validator.SPECIAL_USE_DOMAIN_NAMES:
        email_validator.SPECIAL_USE_DOMAIN_NAMES.remove(_name)


class Address(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    name: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _check_syntax(cls, data: Any) -> Any:
        # Syntax only: dotless hosts, .test and the RELAY_DOMAIN_NAMES are
        # valid addresses for relays.
        if not isinstance(data, dict) or not isinstance(data.get("email"), str):
            return data
        try:
            parts = validate_email(
                data["email"],
                check_deliverability=False,
                globally_deliverable=False,
                test_environment=True,
                allow_display_name=True,
            )
        except EmailNotValidError as exc:
            raise ValueError(str(exc)) from exc
        return {**data, "email": parts.normalized, "name": data.get("name") or parts.display_name or None}

    @classmethod
    def parse(cls, raw: str, name: str | None = None) -> "Address":
        """Validate ``raw`` and return an Address, or raise InvalidAddress."""
        try:
            return cls(email=raw, name=name or None)
        except ValidationError as exc:
            raise InvalidAddress(f"invalid email address: {raw!r}", address=raw) from exc

    def formatted(self) -> str:
        if not self.name:
            return str(self.email)
        username, _, domain = str(self.email).rpartition("@")
        return str(HeaderAddress(display_name=self.name, username=username, domain=domain))


class PlainText(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class Html(BaseModel):
    kind: Literal["html"] = "html"
    markup: str


class InlineImage(BaseModel):
    kind: Literal["inline_image"] = "inline_image"
    content_id: str
    filename: str
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE


class Attachment(BaseModel):
    kind: Literal["attachment"] = "attachment"
    filename: str
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE


BodyPart = Annotated[
    Union[PlainText, Html, InlineImage, Attachment],
    Field(discriminator="kind"),
]


class MessageDraft(BaseModel):
    """The in-progress message.

    Created empty, mutated only through MessageBuilder, and consumed by a
    single successful send (after which ``sent`` is True).
    """

    sender: Address | None = None
    recipients: list[Address] = Field(default_factory=list)
    subject: str | None = None
    parts: list[BodyPart] = Field(default_factory=list)
    sent: bool = False

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if self.sender is None:
            missing.append("sender")
        if not self.recipients:
            missing.append("recipients")
        if not self.parts:
            missing.append("body")
        return missing

    def content_ids(self) -> set[str]:
        return {part.content_id for part in self.parts if isinstance(part, InlineImage)}


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    secret: SecretStr


def guess_mime_type(filename: str) -> str:
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or DEFAULT_MIME_TYPE


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
