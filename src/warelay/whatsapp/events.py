"""Session lifecycle events - Evolution webhook normalization and gate updates."""

from __future__ import annotations

import asyncio
from typing import Any

from warelay.errors import MessagingClientError
from warelay.observability.logging import get_logger
from warelay.observability.redaction import safe_log_context
from warelay.session.gate import SessionGate, SessionState

from .client import STATE_CONNECTING, STATE_OPEN, MessagingClient
from .models import ClientInfo, LifecycleEvent

logger = get_logger(__name__)

# Evolution reports a revoked/unauthorized session as a close with this reason
_UNAUTHORIZED_STATUS = 401


class InvalidEventError(Exception):
    """Raised when a webhook payload has invalid shape."""


def _event_name(payload: dict[str, Any]) -> str:
    # Evolution v1 may send "CONNECTION_UPDATE", v2 sends "connection.update"
    name = payload.get("event")
    if not name or not isinstance(name, str):
        raise InvalidEventError("missing or invalid event")
    return name.strip().lower().replace("_", ".")


def _connection_events(data: dict[str, Any], raw: dict[str, Any]) -> list[LifecycleEvent]:
    state = data.get("state")
    if state == STATE_OPEN:
        return [
            LifecycleEvent(kind="authenticated", raw=raw),
            LifecycleEvent(kind="ready", raw=raw),
        ]
    if state == STATE_CONNECTING:
        return [LifecycleEvent(kind="loading", raw=raw)]

    reason = data.get("statusReason")
    if reason == _UNAUTHORIZED_STATUS:
        return [LifecycleEvent(kind="auth_failure", reason="session unauthorized", raw=raw)]
    return [
        LifecycleEvent(
            kind="disconnected",
            reason=str(reason) if reason is not None else state,
            raw=raw,
        )
    ]


def normalize_event(payload: dict[str, Any], *, instance: str | None = None) -> list[LifecycleEvent]:
    """Map an Evolution webhook payload to lifecycle events.

    Args:
        payload: Raw webhook body.
        instance: Configured instance name; events for other instances are ignored.

    Returns:
        Zero or more events, in the order they should be applied. Events the
        relay does not track (messages, contacts, ...) yield an empty list.

    Raises:
        InvalidEventError: If the payload is not an Evolution event.
    """
    if not isinstance(payload, dict):
        raise InvalidEventError("payload must be an object")

    name = _event_name(payload)
    data = payload.get("data") or {}
    if not isinstance(data, dict):
        raise InvalidEventError("invalid data")

    source = payload.get("instance") or data.get("instance")
    if instance and isinstance(source, str) and source != instance:
        return []

    if name == "qrcode.updated":
        qrcode = data.get("qrcode") or {}
        code = qrcode.get("code") if isinstance(qrcode, dict) else None
        return [LifecycleEvent(kind="qr", qr_code=code, raw=payload)]

    if name == "connection.update":
        return _connection_events(data, payload)

    if name == "logout.instance":
        return [LifecycleEvent(kind="auth_failure", reason="logged out", raw=payload)]

    return []


async def _resolve_info(event: LifecycleEvent, client: MessagingClient | None) -> ClientInfo | None:
    if event.info is not None or client is None:
        return event.info
    try:
        return await client.fetch_client_info()
    except MessagingClientError:
        logger.warning("could not fetch client info on ready")
        return None


async def apply_event(
    gate: SessionGate,
    event: LifecycleEvent,
    client: MessagingClient | None = None,
) -> None:
    """Feed one lifecycle event into the session gate.

    For "ready" events without client info, the client is asked for it first.
    """
    if event.kind == "qr":
        gate.on_qr(event.qr_code)
    elif event.kind == "loading":
        gate.on_loading(event.percent)
    elif event.kind == "authenticated":
        gate.on_authenticated()
    elif event.kind == "ready":
        gate.on_ready(await _resolve_info(event, client))
    elif event.kind == "disconnected":
        gate.on_disconnected(event.reason)
    elif event.kind == "auth_failure":
        gate.on_auth_failure(event.reason)


async def bootstrap_session(gate: SessionGate, client: MessagingClient) -> None:
    """Probe the client once at startup so an already-open session is ready at once.

    Probe failures leave the gate NOT_READY; webhook events take over from there.
    """
    try:
        state = await client.connection_state()
    except MessagingClientError as e:
        logger.warning(
            "initial connection state probe failed",
            extra={"extra_fields": safe_log_context(error=str(e))},
        )
        return

    logger.info(
        "initial connection state",
        extra={"extra_fields": safe_log_context(state=state)},
    )
    if state == STATE_OPEN:
        await apply_event(gate, LifecycleEvent(kind="ready"), client)
    elif state == STATE_CONNECTING:
        gate.on_loading()


async def poll_session_once(gate: SessionGate, client: MessagingClient) -> None:
    """Reconcile the gate with the client's current connection state."""
    state = await client.connection_state()
    if state == STATE_OPEN:
        if not gate.is_ready():
            await apply_event(gate, LifecycleEvent(kind="ready"), client)
    elif gate.is_ready():
        gate.on_disconnected(f"connection state {state}")


async def watch_session(gate: SessionGate, client: MessagingClient, interval: float) -> None:
    """Poll the connection state every ``interval`` seconds until cancelled.

    Complements webhook events, which can be lost while the relay restarts.
    Stops once the gate is terminal.
    """
    while gate.state is not SessionState.TERMINAL:
        await asyncio.sleep(interval)
        try:
            await poll_session_once(gate, client)
        except MessagingClientError as e:
            logger.warning(
                "connection state poll failed",
                extra={"extra_fields": safe_log_context(error=str(e))},
            )
        except Exception:
            logger.exception("connection state poll crashed")
