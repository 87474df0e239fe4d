from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage
from pathlib import Path

import pytest

from gmail_sender.builder import MessageBuilder
from gmail_sender.config import GMAIL_SMTP
from gmail_sender.errors import (
    DeliveryFailed,
    DraftAlreadySent,
    IncompleteDraft,
    InvalidAddress,
    ResourceUnavailable,
)
from gmail_sender.models import Credentials, Html, InlineImage
from gmail_sender.storage.runs import StructuredLogger, read_events
from gmail_sender.transport.smtp_backend import SmtpBackend


class FakeTransport:
    def __init__(self) -> None:
        self.deliveries: list[tuple[EmailMessage, Credentials]] = []

    def deliver(self, *, message: EmailMessage, credentials: Credentials) -> None:
        self.deliveries.append((message, credentials))


class FailingTransport(FakeTransport):
    """Raises ``error`` on the first ``failures`` calls, then records deliveries."""

    def __init__(self, error: Exception, failures: int = 1) -> None:
        super().__init__()
        self.error = error
        self.failures = failures
        self.calls = 0

    def deliver(self, *, message: EmailMessage, credentials: Credentials) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        super().deliver(message=message, credentials=credentials)


def _ready_builder(transport: FakeTransport | None = None) -> MessageBuilder:
    builder = MessageBuilder(transport=transport or FakeTransport())
    return builder.set_sender("sender@example.com").set_recipients("user@example.com")


def _write(path: Path, data: bytes) -> Path:
    path.write_bytes(data)
    return path


def test_send_assembles_single_text_message_and_calls_transport_once() -> None:
    transport = FakeTransport()

    returned = (
        MessageBuilder(transport=transport)
        .set_sender("a@x.com")
        .set_recipients("B@Y.com")
        .set_subject("Hi")
        .add_plain_text("hello")
        .send("a@x.com", "app-password")
    )

    assert len(transport.deliveries) == 1
    message, credentials = transport.deliveries[0]
    assert message is returned
    assert message["From"] == "a@x.com"
    assert message["To"] == "b@y.com"
    assert message["Subject"] == "Hi"
    parts = list(message.iter_parts())
    assert len(parts) == 1
    assert parts[0].get_content_type() == "text/plain"
    assert parts[0].get_content().strip() == "hello"
    assert credentials.username == "a@x.com"
    assert credentials.secret.get_secret_value() == "app-password"


def test_recipients_are_placed_in_to_header_not_cc() -> None:
    message = _ready_builder().set_recipients("one@example.com", "two@example.com").add_plain_text("x").build()

    assert message["To"] == "one@example.com, two@example.com"
    assert message["Cc"] is None


def test_default_transport_is_gmail_starttls_on_587() -> None:
    builder = MessageBuilder()

    assert isinstance(builder.transport, SmtpBackend)
    settings = builder.transport.settings
    assert settings is GMAIL_SMTP
    assert settings.host == "smtp.gmail.com"
    assert settings.port == 587
    assert settings.starttls_required is True
    assert settings.minimum_tls_version == ssl.TLSVersion.TLSv1_2


def test_set_recipients_trims_lowercases_and_replaces() -> None:
    builder = MessageBuilder(transport=FakeTransport())
    builder.set_recipients("first@example.com")
    builder.set_recipients("  Mixed.Case@Example.COM ", "\tother@example.com\n")

    assert [r.email for r in builder.draft.recipients] == ["mixed.case@example.com", "other@example.com"]


def test_invalid_recipient_leaves_previous_list_untouched() -> None:
    builder = MessageBuilder(transport=FakeTransport()).set_recipients("keep@example.com")

    with pytest.raises(InvalidAddress) as excinfo:
        builder.set_recipients("good@example.com", "bad-email", "also-bad")

    assert excinfo.value.address == "bad-email"
    assert [r.email for r in builder.draft.recipients] == ["keep@example.com"]


def test_invalid_sender_leaves_previous_sender_untouched() -> None:
    builder = MessageBuilder(transport=FakeTransport()).set_sender("keep@example.com")

    with pytest.raises(InvalidAddress):
        builder.set_sender("not an address")

    assert builder.draft.sender is not None
    assert builder.draft.sender.email == "keep@example.com"


def test_set_sender_with_display_name_overwrites_previous_sender() -> None:
    builder = _ready_builder().set_sender("alice@example.com", "Alice Example").add_plain_text("x")

    message = builder.build()

    assert message["From"] == "Alice Example <alice@example.com>"


def test_subject_is_optional_and_stored_verbatim() -> None:
    assert _ready_builder().add_plain_text("x").build()["Subject"] is None

    message = _ready_builder().set_subject("Re: [ticket #42] status?").add_plain_text("x").build()
    assert message["Subject"] == "Re: [ticket #42] status?"


def test_send_without_sender_raises_incomplete_draft() -> None:
    transport = FakeTransport()
    builder = MessageBuilder(transport=transport).set_recipients("user@example.com").add_plain_text("x")

    with pytest.raises(IncompleteDraft) as excinfo:
        builder.send("user", "secret")

    assert excinfo.value.missing == ["sender"]
    assert transport.deliveries == []


def test_send_with_empty_recipients_raises_incomplete_draft() -> None:
    transport = FakeTransport()
    builder = MessageBuilder(transport=transport).set_sender("sender@example.com").add_plain_text("x")
    builder.set_recipients()

    with pytest.raises(IncompleteDraft) as excinfo:
        builder.send("user", "secret")

    assert excinfo.value.missing == ["recipients"]
    assert transport.deliveries == []


def test_parts_keep_insertion_order(tmp_path: Path) -> None:
    notes = _write(tmp_path / "notes.txt", b"attached notes")

    message = _ready_builder().add_plain_text("first").add_html("<p>second</p>").add_attachment(notes).build()

    parts = list(message.iter_parts())
    assert message.get_content_type() == "multipart/mixed"
    assert [p.get_content_type() for p in parts] == ["text/plain", "text/html", "text/plain"]
    assert parts[0].get_content().strip() == "first"
    assert parts[1].get_content().strip() == "<p>second</p>"
    assert parts[2].is_attachment()
    assert parts[2].get_filename() == "notes.txt"
    assert parts[2].get_content() == "attached notes"


def test_attachment_filename_is_base_name_and_mime_is_guessed(tmp_path: Path) -> None:
    nested = tmp_path / "reports"
    nested.mkdir()
    pdf = _write(nested / "q3.pdf", b"%PDF-1.4")
    blob = _write(tmp_path / "blob", b"\x00\x01")

    message = _ready_builder().add_attachment(str(pdf)).add_attachment(blob).build()

    first, second = list(message.iter_parts())
    assert first.get_filename() == "q3.pdf"
    assert first.get_content_type() == "application/pdf"
    assert first.get_content() == b"%PDF-1.4"
    assert second.get_content_type() == "application/octet-stream"


def test_inline_images_get_distinct_resolvable_content_ids(tmp_path: Path) -> None:
    first = _write(tmp_path / "a.png", b"png-a")
    second = _write(tmp_path / "b.jpg", b"jpg-b")

    builder = _ready_builder().add_inline_image(first).add_inline_image(second)

    parts = builder.draft.parts
    assert [type(p) for p in parts] == [Html, InlineImage, Html, InlineImage]
    ids = [p.content_id for p in parts if isinstance(p, InlineImage)]
    assert len(set(ids)) == 2
    assert parts[0].markup == f'<img src="cid:{ids[0]}">'
    assert parts[2].markup == f'<img src="cid:{ids[1]}">'

    rendered = list(builder.build().iter_parts())
    images = {p["Content-ID"]: p for p in rendered if p.get_content_maintype() == "image"}
    assert set(images) == {f"<{ids[0]}>", f"<{ids[1]}>"}
    assert images[f"<{ids[0]}>"].get_content() == b"png-a"
    assert images[f"<{ids[0]}>"].get_content_disposition() == "inline"
    assert images[f"<{ids[1]}>"].get_content_type() == "image/jpeg"


def test_many_inline_images_never_reuse_a_content_id(tmp_path: Path) -> None:
    image = _write(tmp_path / "dot.gif", b"GIF89a")
    builder = _ready_builder()
    for _ in range(25):
        builder.add_inline_image(image)

    ids = [p.content_id for p in builder.draft.parts if isinstance(p, InlineImage)]
    assert len(ids) == 25
    assert len(set(ids)) == 25


def test_missing_attachment_raises_and_appends_nothing(tmp_path: Path) -> None:
    builder = _ready_builder().add_plain_text("body")

    with pytest.raises(ResourceUnavailable) as excinfo:
        builder.add_attachment(tmp_path / "missing.txt")

    assert excinfo.value.path.endswith("missing.txt")
    assert len(builder.draft.parts) == 1


def test_missing_inline_image_adds_no_dangling_html(tmp_path: Path) -> None:
    builder = _ready_builder()

    with pytest.raises(ResourceUnavailable):
        builder.add_inline_image(tmp_path / "missing.png")

    assert builder.draft.parts == []


def test_directory_is_not_a_readable_attachment(tmp_path: Path) -> None:
    with pytest.raises(ResourceUnavailable):
        _ready_builder().add_attachment(tmp_path)


def test_auth_failure_raises_delivery_failed_and_keeps_draft_for_retry() -> None:
    auth_error = smtplib.SMTPAuthenticationError(535, b"5.7.8 Username and Password not accepted")
    transport = FailingTransport(auth_error)
    builder = _ready_builder(transport).set_subject("Retry me").add_plain_text("body")

    with pytest.raises(DeliveryFailed) as excinfo:
        builder.send("user", "wrong-password")

    assert excinfo.value.cause is auth_error
    assert excinfo.value.__cause__ is auth_error
    draft = builder.draft
    assert draft.sent is False
    assert draft.subject == "Retry me"
    assert len(draft.parts) == 1

    builder.send("user", "right-password")

    assert transport.calls == 2
    assert len(transport.deliveries) == 1
    assert transport.deliveries[0][1].secret.get_secret_value() == "right-password"


def test_delivery_failed_from_transport_is_not_rewrapped() -> None:
    original = DeliveryFailed("server said no", stage="send", url="smtp://smtp.gmail.com:587")
    builder = _ready_builder(FailingTransport(original)).add_plain_text("x")

    with pytest.raises(DeliveryFailed) as excinfo:
        builder.send("user", "secret")

    assert excinfo.value is original


def test_second_send_after_success_is_rejected() -> None:
    transport = FakeTransport()
    builder = _ready_builder(transport).add_plain_text("once")
    builder.send("user", "secret")

    with pytest.raises(DraftAlreadySent):
        builder.send("user", "secret")

    assert len(transport.deliveries) == 1
    assert builder.draft.sent is True


def test_draft_property_returns_a_copy() -> None:
    builder = _ready_builder().add_plain_text("x")

    snapshot = builder.draft
    snapshot.parts.clear()
    snapshot.recipients.clear()

    assert len(builder.draft.parts) == 1
    assert len(builder.draft.recipients) == 1


def test_builder_logs_events_without_leaking_secret(tmp_path: Path) -> None:
    log_path = tmp_path / "logs" / "run.log"
    logger = StructuredLogger(path=log_path, run_id="test-run", log_level="DEBUG")
    builder = MessageBuilder(transport=FakeTransport(), logger=logger)

    builder.set_sender("sender@example.com").set_recipients("user@example.com").add_plain_text("x")
    builder.send("user", "super-secret-value")

    events = [e["event"] for e in read_events(log_path)]
    assert events == ["draft_sender_set", "draft_recipients_set", "draft_part_added", "email_message_built"]
    assert "super-secret-value" not in log_path.read_text(encoding="utf-8")


def test_send_without_body_parts_raises_incomplete_draft() -> None:
    transport = FakeTransport()
    builder = _ready_builder(transport).set_subject("Empty")

    with pytest.raises(IncompleteDraft) as excinfo:
        builder.send("user", "secret")

    assert excinfo.value.missing == ["body"]
    assert transport.deliveries == []


def test_rejected_second_send_does_not_render_again(tmp_path: Path) -> None:
    log_path = tmp_path / "run.log"
    logger = StructuredLogger(path=log_path, run_id="test-run")
    builder = _ready_builder().add_plain_text("once")
    builder.logger = logger
    builder.send("user", "secret")

    with pytest.raises(DraftAlreadySent):
        builder.send("user", "secret")

    built = [e for e in read_events(log_path) if e["event"] == "email_message_built"]
    assert len(built) == 1


def test_recipient_display_name_form_is_preserved() -> None:
    message = _ready_builder().set_recipients("  Bob <B@Y.com> ", "carol@example.com").add_plain_text("x").build()

    recipients = _ready_builder().set_recipients("Bob <B@Y.com>").draft.recipients
    assert [(r.email, r.name) for r in recipients] == [("b@y.com", "bob")]
    assert message["To"] == "bob <b@y.com>, carol@example.com"


@pytest.mark.parametrize("address", ["user@localhost", "ops@corp.local", "a@mail.test", "x@host.invalid"])
def test_internal_and_special_use_domains_are_accepted(address: str) -> None:
    builder = MessageBuilder(transport=FakeTransport()).set_sender(address).set_recipients(address)

    assert builder.draft.sender is not None
    assert builder.draft.sender.email == address
    assert [r.email for r in builder.draft.recipients] == [address]
