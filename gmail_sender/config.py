from __future__ import annotations

"""Configuration for the sender.

Two layers:
- SmtpSettings: the fixed submission contract (Gmail endpoint, port 587,
  STARTTLS required, TLS 1.2 minimum). Frozen; built once as GMAIL_SMTP and
  passed explicitly to the SMTP backend.
- AppConfig: runtime knobs loaded from environment variables + .env
  (timeout, logging, and optional credentials used by the CLI only).
"""

import os
import ssl
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, SecretStr, field_validator


class SmtpSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = "smtp.gmail.com"
    port: int = 587
    starttls_required: bool = True
    minimum_tls_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_2

    @field_validator("port")
    @classmethod
    def _valid_port(cls, value: int) -> int:
        if value < 1 or value > 65535:
            raise ValueError("port must be in 1..65535")
        return value

    @property
    def url(self) -> str:
        return f"smtp://{self.host}:{self.port}"

    def ssl_context(self) -> ssl.SSLContext:
        """TLS context used for the STARTTLS upgrade."""
        context = ssl.create_default_context()
        context.minimum_version = self.minimum_tls_version
        return context


GMAIL_SMTP = SmtpSettings()


class AppConfig(BaseModel):
    timeout_seconds: int = 30
    log_level: str = "INFO"
    log_path: Path = Path(".logs/gmail_sender.log")

    # Only consumed by the CLI; the builder takes credentials per send().
    smtp_username: str | None = None
    smtp_password: SecretStr | None = None

    @field_validator("timeout_seconds")
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be positive")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def credentials_ready(self) -> bool:
        return bool(self.smtp_username) and self.smtp_password is not None


def load_config(env_file: str | None = ".env") -> AppConfig:
    if env_file:
        # Shell environment variables win over .env values
        load_dotenv(env_file, override=False)
    password = _getenv_opt("SMTP_PASSWORD")
    return AppConfig(
        timeout_seconds=int(_getenv_str("SMTP_TIMEOUT_SECONDS", "30")),
        log_level=_getenv_str("LOG_LEVEL", "INFO"),
        log_path=Path(_getenv_str("LOG_PATH", ".logs/gmail_sender.log")),
        smtp_username=_getenv_opt("SMTP_USERNAME"),
        smtp_password=SecretStr(password) if password is not None else None,
    )


def _getenv_opt(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _getenv_str(name: str, default: str) -> str:
    value = _getenv_opt(name)
    return value if value is not None else default
