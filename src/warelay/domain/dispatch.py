"""Batch dispatch - one payload to many recipients, failures isolated per recipient.

Recipients are processed in input order. The default policy sends
sequentially with a short pause between sends so the linked account does not
trip WhatsApp's abuse detection. A concurrency above 1 switches to a bounded
concurrent mode that still reports results in input order.

Security: NEVER log chat ids or message content. Only hashes and lengths.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from warelay.errors import MessageTooLongError
from warelay.observability.logging import get_logger
from warelay.observability.redaction import hash_identifier, safe_log_context

from .recipients import to_chat_id

if TYPE_CHECKING:
    from warelay.whatsapp.client import MessageContent, MessagingClient
    from warelay.whatsapp.models import SendOptions

logger = get_logger(__name__)

DEFAULT_SEND_DELAY = 0.1


@dataclass(frozen=True)
class DispatchPolicy:
    """Pacing and concurrency for a batch.

    Attributes:
        delay_seconds: Pause between sequential sends (after the first).
        concurrency: Maximum sends in flight. 1 means sequential.
    """

    delay_seconds: float = DEFAULT_SEND_DELAY
    concurrency: int = 1

    def __post_init__(self) -> None:
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")


@dataclass(frozen=True)
class Sent:
    to: str
    message_id: str

    def to_dict(self) -> dict[str, str]:
        return {"to": self.to, "messageId": self.message_id, "status": "sent"}


@dataclass(frozen=True)
class Failed:
    to: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"to": self.to, "status": "failed", "error": self.error}


DispatchResult = Union[Sent, Failed]


@dataclass(frozen=True)
class DispatchSummary:
    """Outcome of one batch. total_sent + total_failed == total_requested."""

    sent: list[Sent] = field(default_factory=list)
    failed: list[Failed] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: Sequence[DispatchResult]) -> DispatchSummary:
        return cls(
            sent=[r for r in results if isinstance(r, Sent)],
            failed=[r for r in results if isinstance(r, Failed)],
        )

    @property
    def total_requested(self) -> int:
        return len(self.sent) + len(self.failed)

    @property
    def total_sent(self) -> int:
        return len(self.sent)

    @property
    def total_failed(self) -> int:
        return len(self.failed)

    def to_dict(self) -> dict:
        return {
            "summary": {
                "total_requested": self.total_requested,
                "total_sent": self.total_sent,
                "total_failed": self.total_failed,
            },
            "results": {
                "sent": [s.to_dict() for s in self.sent],
                "failed": [f.to_dict() for f in self.failed],
            },
        }


def ensure_text_within_limit(body: str, max_length: int) -> None:
    """Reject a text body longer than max_length before any send.

    Raises:
        MessageTooLongError: If len(body) > max_length.
    """
    if len(body) > max_length:
        raise MessageTooLongError(length=len(body), limit=max_length)


def _describe_error(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


async def _send_one(
    client: MessagingClient,
    recipient: str,
    content: MessageContent,
    options: SendOptions | None,
) -> DispatchResult:
    chat_id = to_chat_id(recipient)
    log_ctx = safe_log_context(to_hash=hash_identifier(chat_id))
    try:
        handle = await client.send(chat_id, content, options)
    except Exception as e:
        logger.warning(
            "send to recipient failed",
            extra={"extra_fields": {**log_ctx, "error_type": type(e).__name__}},
        )
        return Failed(to=chat_id, error=_describe_error(e))

    logger.debug("send to recipient succeeded", extra={"extra_fields": log_ctx})
    return Sent(to=chat_id, message_id=handle.id)


async def _dispatch_sequential(
    client: MessagingClient,
    recipients: Sequence[str],
    content: MessageContent,
    options: SendOptions | None,
    delay_seconds: float,
) -> list[DispatchResult]:
    results: list[DispatchResult] = []
    for index, recipient in enumerate(recipients):
        if index > 0 and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        results.append(await _send_one(client, recipient, content, options))
    return results


async def _dispatch_concurrent(
    client: MessagingClient,
    recipients: Sequence[str],
    content: MessageContent,
    options: SendOptions | None,
    concurrency: int,
) -> list[DispatchResult]:
    semaphore = asyncio.Semaphore(concurrency)

    async def bounded(recipient: str) -> DispatchResult:
        async with semaphore:
            return await _send_one(client, recipient, content, options)

    # gather keeps input order regardless of completion order
    return list(await asyncio.gather(*(bounded(r) for r in recipients)))


async def dispatch(
    client: MessagingClient,
    recipients: Sequence[str],
    content: MessageContent,
    *,
    options: SendOptions | None = None,
    policy: DispatchPolicy | None = None,
) -> DispatchSummary:
    """Send the same content to every recipient and summarize the outcome.

    Each recipient gets exactly one attempt. A failing recipient is recorded
    in the summary's failed list and the batch moves on.

    Args:
        client: Messaging client used for every send.
        recipients: Validated recipient identifiers (see parse_recipients).
        content: Text body or resolved media, shared across the batch.
        options: Per-send options such as a media caption.
        policy: Pacing/concurrency; defaults to sequential with 100ms pauses.

    Returns:
        DispatchSummary with sent/failed lists in input order.
    """
    policy = policy or DispatchPolicy()
    kind = "text" if isinstance(content, str) else "media"

    logger.info(
        "batch dispatch started",
        extra={
            "extra_fields": safe_log_context(
                kind=kind,
                recipients=len(recipients),
                concurrency=policy.concurrency,
            )
        },
    )

    if policy.concurrency > 1:
        results = await _dispatch_concurrent(
            client, recipients, content, options, policy.concurrency
        )
    else:
        results = await _dispatch_sequential(
            client, recipients, content, options, policy.delay_seconds
        )

    summary = DispatchSummary.from_results(results)
    logger.info(
        "batch dispatch completed",
        extra={
            "extra_fields": safe_log_context(
                kind=kind,
                sent=summary.total_sent,
                failed=summary.total_failed,
            )
        },
    )
    return summary
