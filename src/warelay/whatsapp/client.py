"""Messaging client port.

The relay only depends on this protocol; EvolutionClient is the production
implementation and tests inject fakes.
"""

from __future__ import annotations

from typing import Protocol, Union

from warelay.domain.media import ResolvedMedia

from .models import ClientInfo, MessageHandle, SendOptions

MessageContent = Union[str, ResolvedMedia]

# Connection states reported by connection_state()
STATE_OPEN = "open"
STATE_CONNECTING = "connecting"
STATE_CLOSE = "close"


class MessagingClient(Protocol):
    async def send(
        self,
        chat_id: str,
        content: MessageContent,
        options: SendOptions | None = None,
    ) -> MessageHandle:
        """Send text or media to one chat. Raises on failure."""
        ...

    async def connection_state(self) -> str:
        """Return "open", "connecting" or "close"."""
        ...

    async def fetch_client_info(self) -> ClientInfo | None:
        """Return the linked account identity, if the session is open."""
        ...
