"""Session gate - readiness of the linked WhatsApp session.

State machine:

    NOT_READY --ready--> READY --disconnected--> NOT_READY
        any   --auth_failure--> TERMINAL (sticky)

Lifecycle callbacks may run on a different thread than request handlers,
so every read and transition goes through a lock.
"""

from __future__ import annotations

import threading
from enum import Enum

from warelay.observability.logging import get_logger
from warelay.observability.redaction import safe_log_context
from warelay.whatsapp.models import ClientInfo

logger = get_logger(__name__)


class SessionState(str, Enum):
    NOT_READY = "not_ready"
    READY = "ready"
    TERMINAL = "terminal"


class SessionGate:
    """Owns the process-wide session state. Inject one instance per app."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = SessionState.NOT_READY
        self._client_info: ClientInfo | None = None
        self._terminal_reason: str | None = None
        self._terminated = threading.Event()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def terminal_reason(self) -> str | None:
        with self._lock:
            return self._terminal_reason

    def is_ready(self) -> bool:
        with self._lock:
            return self._state is SessionState.READY

    def client_info(self) -> ClientInfo | None:
        """Linked account identity while READY, None otherwise."""
        with self._lock:
            if self._state is SessionState.READY:
                return self._client_info
            return None

    def on_qr(self, code: str | None = None) -> None:
        logger.info(
            "QR code received, scan it with WhatsApp to link a device",
            extra={"extra_fields": safe_log_context(qr_len=len(code or ""))},
        )

    def on_loading(self, percent: int | None = None, message: str | None = None) -> None:
        logger.info(
            "loading WhatsApp session",
            extra={"extra_fields": safe_log_context(percent=percent, detail=message)},
        )

    def on_authenticated(self) -> None:
        logger.info("authenticated with WhatsApp")

    def on_ready(self, info: ClientInfo | None) -> None:
        with self._lock:
            if self._state is SessionState.TERMINAL:
                logger.warning("ready event ignored, session is terminal")
                return
            self._state = SessionState.READY
            self._client_info = info

        logger.info(
            "WhatsApp client ready",
            extra={
                "extra_fields": safe_log_context(
                    platform=info.platform if info else None,
                    has_pushname=bool(info and info.pushname),
                )
            },
        )

    def on_disconnected(self, reason: str | None = None) -> None:
        with self._lock:
            if self._state is SessionState.TERMINAL:
                return
            was_ready = self._state is SessionState.READY
            self._state = SessionState.NOT_READY
            self._client_info = None

        logger.warning(
            "WhatsApp client disconnected",
            extra={"extra_fields": safe_log_context(reason=reason, was_ready=was_ready)},
        )

    def on_auth_failure(self, reason: str | None = None) -> None:
        with self._lock:
            self._state = SessionState.TERMINAL
            self._client_info = None
            self._terminal_reason = reason or "authentication failure"
        self._terminated.set()

        logger.error(
            "WhatsApp authentication failed, session is terminal",
            extra={"extra_fields": safe_log_context(reason=reason)},
        )

    def wait_terminal(self, timeout: float | None = None) -> bool:
        """Block until the gate becomes terminal. Returns False on timeout."""
        return self._terminated.wait(timeout)
