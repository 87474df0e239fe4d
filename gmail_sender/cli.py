from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from uuid import uuid4

from gmail_sender.builder import MessageBuilder
from gmail_sender.config import GMAIL_SMTP, load_config
from gmail_sender.errors import GmailSenderError
from gmail_sender.storage.runs import StructuredLogger
from gmail_sender.transport.eml_backend import EmlBackend
from gmail_sender.transport.smtp_backend import SmtpBackend


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gmail_sender", description="Compose and send an email via Gmail SMTP")
    subparsers = parser.add_subparsers(dest="command")

    send_parser = subparsers.add_parser("send", help="build and send one message")
    send_parser.add_argument("--from", dest="sender", required=True, help="sender address")
    send_parser.add_argument("--from-name", default=None, help="sender display name")
    send_parser.add_argument("--to", action="append", required=True, help="recipient address (repeatable)")
    send_parser.add_argument("--subject", default=None)
    send_parser.add_argument("--text", action="append", default=[], help="plain-text part (repeatable)")
    send_parser.add_argument("--html", action="append", default=[], help="HTML part (repeatable)")
    send_parser.add_argument("--image", action="append", default=[], help="inline image path (repeatable)")
    send_parser.add_argument("--attach", action="append", default=[], help="attachment path (repeatable)")
    send_parser.add_argument(
        "--eml-out",
        default=None,
        help="write the message to this .eml path instead of sending it",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint.

    Credentials come from SMTP_USERNAME / SMTP_PASSWORD (environment or .env)
    and are only required when actually sending over SMTP.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "send":
        parser.print_help()
        return 1

    cfg = load_config()
    logger = StructuredLogger(path=cfg.log_path, run_id=uuid4().hex[:12], log_level=cfg.log_level)

    if args.eml_out:
        transport = EmlBackend(out_path=Path(args.eml_out), logger=logger)
        username, secret = args.sender, ""
    else:
        if not cfg.smtp_username or cfg.smtp_password is None:
            print("[gmail_sender] SMTP_USERNAME and SMTP_PASSWORD must be set", file=sys.stderr)
            return 2
        transport = SmtpBackend(settings=GMAIL_SMTP, timeout_seconds=cfg.timeout_seconds, logger=logger)
        username = cfg.smtp_username
        secret = cfg.smtp_password.get_secret_value()

    try:
        builder = MessageBuilder(transport=transport, logger=logger)
        builder.set_sender(args.sender, args.from_name).set_recipients(*args.to)
        if args.subject is not None:
            builder.set_subject(args.subject)
        for text in args.text:
            builder.add_plain_text(text)
        for markup in args.html:
            builder.add_html(markup)
        for image in args.image:
            builder.add_inline_image(image)
        for path in args.attach:
            builder.add_attachment(path)
        message = builder.send(username, secret)
    except GmailSenderError as exc:
        print(f"[gmail_sender] {exc.__class__.__name__}: {exc}", file=sys.stderr)
        return 2

    summary = {
        "status": "written" if args.eml_out else "sent",
        "message_id": str(message.get("Message-ID", "")),
        "from": str(message["From"]),
        "to": str(message["To"]),
        "parts": len(builder.draft.parts),
        "eml_path": args.eml_out,
    }
    print(json.dumps(summary, indent=2, ensure_ascii=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
