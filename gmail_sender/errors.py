from __future__ import annotations


class GmailSenderError(Exception):
    """Base error type for library-specific exceptions."""


class InvalidAddress(GmailSenderError, ValueError):
    """An email address failed to parse."""

    def __init__(self, message: str, *, address: str):
        super().__init__(message)
        self.address = address


class ResourceUnavailable(GmailSenderError):
    """An image or attachment file could not be read."""

    def __init__(self, message: str, *, path: str):
        super().__init__(message)
        self.path = path


class IncompleteDraft(GmailSenderError):
    """The draft is missing fields required for sending."""

    def __init__(self, message: str, *, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = list(missing or [])


class DraftAlreadySent(IncompleteDraft):
    """The draft was already delivered; builders are single-use."""


class DeliveryFailed(GmailSenderError):
    """The mail transport reported a failure."""

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        url: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.url = url
        self.cause = cause
