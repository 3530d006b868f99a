"""WhatsApp client models."""

from dataclasses import dataclass, field
from typing import Any, Literal

LifecycleKind = Literal["qr", "loading", "authenticated", "ready", "disconnected", "auth_failure"]


@dataclass(frozen=True)
class ClientInfo:
    """Identity of the linked WhatsApp account."""

    pushname: str | None
    phone_number: str | None
    platform: str | None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "pushname": self.pushname,
            "phoneNumber": self.phone_number,
            "platform": self.platform,
        }


@dataclass(frozen=True)
class MessageHandle:
    """Acknowledgement of a send attempt (not of delivery)."""

    id: str


@dataclass(frozen=True)
class SendOptions:
    caption: str = ""


@dataclass(frozen=True)
class LifecycleEvent:
    """Normalized session lifecycle signal from the messaging client.

    Only the fields relevant to ``kind`` are set: ``qr_code`` for "qr",
    ``percent`` for "loading", ``reason`` for "disconnected"/"auth_failure",
    ``info`` for "ready" (optional; the client may be asked for it).
    """

    kind: LifecycleKind
    reason: str | None = None
    qr_code: str | None = None
    percent: int | None = None
    info: ClientInfo | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
