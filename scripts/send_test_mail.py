from __future__ import annotations

"""Send a real test message to yourself through Gmail.

Reads SMTP_USERNAME / SMTP_PASSWORD (an app password) from .env or the
environment and mails SMTP_USERNAME. Optional argv[1:] are files to attach.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

# Ensure imports work when this file is executed directly (sys.path[0] becomes
# the scripts/ directory, not the repo root).
WORKSPACE_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(WORKSPACE_ROOT))

from gmail_sender import MessageBuilder, load_config
from gmail_sender.storage.runs import StructuredLogger


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")


def main(argv: list[str]) -> int:
    cfg = load_config(env_file=str(WORKSPACE_ROOT / ".env"))
    if not cfg.credentials_ready or cfg.smtp_password is None:
        raise ValueError("SMTP_USERNAME and SMTP_PASSWORD must be set in .env or the environment")

    logger = StructuredLogger(path=cfg.log_path, run_id=uuid4().hex[:12], log_level="DEBUG")
    builder = MessageBuilder(logger=logger)
    builder.set_sender(str(cfg.smtp_username), "gmail_sender smoke test").set_recipients(str(cfg.smtp_username))
    builder.set_subject(f"gmail_sender smoke test {_utc_stamp()}")
    builder.add_plain_text("If you can read this, STARTTLS submission works.")
    builder.add_html("<p><b>HTML</b> part rendered.</p>")
    for path in argv:
        builder.add_attachment(path)

    message = builder.send(str(cfg.smtp_username), cfg.smtp_password)
    print(f"sent {message['Message-ID']} -> {message['To']}")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main(sys.argv[1:]))
    except KeyboardInterrupt:
        raise SystemExit(130)
    except Exception as exc:  # noqa: BLE001
        print(f"send_test_mail failed: {exc}", file=sys.stderr)
        raise SystemExit(1)
