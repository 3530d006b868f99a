"""Exception hierarchy shared across the relay."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors raised by warelay."""


class ConfigError(RelayError):
    """Raised when required configuration is missing or malformed.

    Startup-fatal: the runner exits before the messaging client is built.
    """


class MessageTooLongError(RelayError):
    """Raised when a text body exceeds the configured maximum length."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Message exceeds the limit of {limit} characters.")
        self.length = length
        self.limit = limit


class MediaResolutionError(RelayError):
    """Raised when a media payload cannot be fetched or decoded."""


class MessagingClientError(RelayError):
    """Raised by messaging client adapters when a call fails."""


class AuthError(RelayError):
    """Raised when a bearer token is missing or does not match."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
