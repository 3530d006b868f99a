"""Shared test helpers for warelay tests.

Regular classes and functions (not fixtures) importable by conftest.py and
individual test modules.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

from warelay.config import EvolutionConfig, Settings
from warelay.errors import MessagingClientError
from warelay.whatsapp.models import ClientInfo, MessageHandle, SendOptions

API_TOKEN = "test-api-token"
WEBHOOK_SECRET = "test-webhook-secret"

CLIENT_INFO = ClientInfo(pushname="Relay Bot", phone_number="51900000000", platform="android")


def make_settings(**overrides) -> Settings:
    """Settings for tests: no pacing delay, Evolution configured with a webhook secret."""
    base = Settings(
        api_token=API_TOKEN,
        send_delay_ms=0,
        session_poll_interval=0,
        evolution=EvolutionConfig(
            base_url="http://evolution.test",
            instance="relay",
            api_key="evo-key",
            webhook_secret=WEBHOOK_SECRET,
        ),
    )
    return replace(base, **overrides)


def auth_headers(token: str = API_TOKEN) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class FakeMessagingClient:
    """In-memory MessagingClient recording every send.

    Chat ids listed in ``fail_for`` raise MessagingClientError.
    """

    def __init__(
        self,
        *,
        fail_for: set[str] | None = None,
        state: str = "open",
        info: ClientInfo | None = CLIENT_INFO,
    ) -> None:
        self.fail_for = fail_for or set()
        self.state = state
        self.info = info
        self.sends: list[tuple[str, object, SendOptions | None]] = []
        self.info_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.send_delay = 0.0

    async def send(self, chat_id, content, options=None) -> MessageHandle:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.send_delay:
                await asyncio.sleep(self.send_delay)
            self.sends.append((chat_id, content, options))
            if chat_id in self.fail_for:
                raise MessagingClientError(f"send failed for recipient #{len(self.sends)}")
            return MessageHandle(id=f"msg-{len(self.sends)}")
        finally:
            self.in_flight -= 1

    async def connection_state(self) -> str:
        return self.state

    async def fetch_client_info(self) -> ClientInfo | None:
        self.info_calls += 1
        return self.info


class LogRecorder:
    """Simple recorder to capture log calls deterministically."""

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, level: str, *args, **kwargs):
        self.calls.append((level, args, kwargs))

    def info(self, *args, **kwargs):
        self._record("info", *args, **kwargs)

    def warning(self, *args, **kwargs):
        self._record("warning", *args, **kwargs)

    def error(self, *args, **kwargs):
        self._record("error", *args, **kwargs)

    def exception(self, *args, **kwargs):
        self._record("exception", *args, **kwargs)

    def debug(self, *args, **kwargs):
        self._record("debug", *args, **kwargs)

    def get_all_logged_content(self) -> str:
        """Concatenate all args and kwargs from all calls into one string."""
        parts = []
        for _, args, kwargs in self.calls:
            parts.append(str(args))
            parts.append(str(kwargs))
        return " ".join(parts)

    def has_extra_field(self, key: str) -> bool:
        for _, _, kwargs in self.calls:
            extra = kwargs.get("extra", {})
            if key in extra.get("extra_fields", {}):
                return True
        return False
