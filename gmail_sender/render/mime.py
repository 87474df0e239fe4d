from __future__ import annotations

from email.message import EmailMessage, MIMEPart
from email.policy import SMTP
from email.utils import formatdate, make_msgid
from pathlib import Path

from gmail_sender.errors import IncompleteDraft
from gmail_sender.models import Attachment, BodyPart, Html, InlineImage, MessageDraft, PlainText


def build_message(draft: MessageDraft) -> EmailMessage:
    """Render a draft into a multipart/mixed message, one subpart per body part.

    Subparts appear in the order the parts were added to the draft.
    """
    sender = draft.sender
    missing = draft.missing_fields()
    if missing or sender is None:
        raise IncompleteDraft(f"draft is missing: {', '.join(missing)}", missing=missing)

    msg = EmailMessage()
    msg["From"] = sender.formatted()
    msg["To"] = ", ".join(addr.formatted() for addr in draft.recipients)
    if draft.subject is not None:
        msg["Subject"] = draft.subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=sender.email.rpartition("@")[2])
    msg["MIME-Version"] = "1.0"
    msg.make_mixed()
    for part in draft.parts:
        msg.attach(_render_part(part))
    return msg


def _render_part(part: BodyPart) -> MIMEPart:
    sub = MIMEPart()
    if isinstance(part, PlainText):
        sub.set_content(part.text)
    elif isinstance(part, Html):
        sub.set_content(part.markup, subtype="html")
    elif isinstance(part, InlineImage):
        maintype, subtype = _split_mime(part.mime_type)
        sub.set_content(
            part.data,
            maintype=maintype,
            subtype=subtype,
            disposition="inline",
            filename=part.filename,
            cid=f"<{part.content_id}>",
        )
    elif isinstance(part, Attachment):
        maintype, subtype = _split_mime(part.mime_type)
        sub.set_content(
            part.data,
            maintype=maintype,
            subtype=subtype,
            disposition="attachment",
            filename=part.filename,
        )
    else:  # pragma: no cover - union is closed
        raise TypeError(f"unsupported body part: {type(part).__name__}")
    return sub


def _split_mime(mime_type: str) -> tuple[str, str]:
    maintype, _, subtype = mime_type.partition("/")
    if not maintype or not subtype:
        return "application", "octet-stream"
    return maintype, subtype


def write_eml_file(*, message: EmailMessage, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("wb") as f:
        f.write(message.as_bytes(policy=SMTP))
