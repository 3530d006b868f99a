"""Evolution API webhook - session lifecycle events feed the session gate."""

import hmac
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from warelay.api.deps import get_client, get_gate, get_settings
from warelay.api.responses import error_response
from warelay.config import Settings
from warelay.observability.logging import get_logger
from warelay.observability.redaction import safe_log_context
from warelay.session.gate import SessionGate
from warelay.whatsapp.client import MessagingClient
from warelay.whatsapp.events import InvalidEventError, apply_event, normalize_event

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

logger = get_logger(__name__)


@router.post("/evolution")
async def evolution_webhook(
    request: Request,
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
    gate: SessionGate = Depends(get_gate),
    client: MessagingClient = Depends(get_client),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Receive Evolution API lifecycle webhooks.

    Fail-closed: without EVOLUTION_WEBHOOK_SECRET every call is rejected and
    the session is tracked by connection state polling only.

    Returns:
        200 {"success": true, "events": [...]} once applied (unknown events give []).
        400 if the payload is invalid.
        401 if the secret is not configured or does not match.
    """
    evolution = settings.evolution
    expected_secret = evolution.webhook_secret if evolution else ""
    if not expected_secret:
        logger.error("EVOLUTION_WEBHOOK_SECRET not configured - rejecting webhook")
        return error_response(401, "Unauthorized.")
    if not x_webhook_secret or not hmac.compare_digest(
        x_webhook_secret.encode(), expected_secret.encode()
    ):
        logger.warning("evolution webhook secret mismatch")
        return error_response(401, "Unauthorized.")

    try:
        payload: Any = await request.json()
    except ValueError:
        return error_response(400, "Invalid JSON body.")

    try:
        events = normalize_event(payload, instance=evolution.instance)
    except InvalidEventError as e:
        logger.warning(
            "invalid evolution event",
            extra={"extra_fields": safe_log_context(reason=str(e))},
        )
        return error_response(400, "Invalid event payload.")

    for event in events:
        await apply_event(gate, event, client)

    kinds = [event.kind for event in events]
    logger.info(
        "evolution webhook processed",
        extra={"extra_fields": safe_log_context(events=",".join(kinds) or "none")},
    )
    return JSONResponse(content={"success": True, "events": kinds})
