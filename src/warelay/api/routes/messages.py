"""Protected send routes - text and media to a comma-separated list of numbers.

Security: NEVER log numbers, message text or media content. Only counts and lengths.
"""

from __future__ import annotations

from typing import TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from warelay.api.auth import require_api_token
from warelay.api.deps import get_client, get_dispatch_policy, get_gate, get_settings
from warelay.api.responses import error_response, not_ready_response
from warelay.config import Settings
from warelay.domain.dispatch import DispatchPolicy, dispatch, ensure_text_within_limit
from warelay.domain.media import (
    MediaFromInlineData,
    MediaFromUrl,
    MediaPayload,
    resolve_media_async,
)
from warelay.domain.recipients import parse_recipients
from warelay.errors import MediaResolutionError, MessageTooLongError
from warelay.observability.logging import get_logger
from warelay.observability.redaction import safe_log_context
from warelay.session.gate import SessionGate
from warelay.whatsapp.client import MessagingClient
from warelay.whatsapp.models import SendOptions

router = APIRouter(tags=["messages"], dependencies=[Depends(require_api_token)])

logger = get_logger(__name__)

_INVALID_NUMBERS_ERROR = (
    'The "numbers" field must be a string of valid {digits}-digit numbers separated by commas.'
)

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class SendMessageRequest(BaseModel):
    """Body of POST /send-message. Presence is checked in the handler (400, not 422)."""

    numbers: str | None = None
    message: str | None = None


class SendMediaRequest(BaseModel):
    """Body of POST /send-media: a URL or inline base64 plus mimetype."""

    model_config = ConfigDict(populate_by_name=True)

    numbers: str | None = None
    caption: str | None = None
    media_url: str | None = Field(default=None, alias="mediaUrl")
    media_base64: str | None = Field(default=None, alias="mediaBase64")
    mimetype: str | None = None

    def media_payload(self) -> MediaPayload | None:
        if self.media_url:
            return MediaFromUrl(url=self.media_url)
        if self.media_base64 and (self.mimetype or self.media_base64.startswith("data:")):
            return MediaFromInlineData(mimetype=self.mimetype or "", data=self.media_base64)
        return None


_BodyT = TypeVar("_BodyT", bound=BaseModel)


async def _read_body(request: Request, model: type[_BodyT]) -> _BodyT:
    """Parse a JSON or form body into ``model``.

    Runs inside the handler, after the router's auth dependency, so
    unauthenticated callers get 401 whatever they send.

    Raises:
        RequestValidationError: Malformed JSON or fields of the wrong type.
    """
    content_type = request.headers.get("Content-Type", "").split(";")[0].strip().lower()
    if content_type in _FORM_CONTENT_TYPES:
        form = await request.form()
        data = {key: value for key, value in form.items() if isinstance(value, str)}
    else:
        try:
            data = await request.json()
        except ValueError:
            raise RequestValidationError(
                [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error"}]
            )

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


def _parse_numbers(raw: str, settings: Settings) -> list[str]:
    return parse_recipients(
        raw,
        country_code=settings.country_code,
        digits=settings.recipient_digits,
    )


def _invalid_numbers_response(route: str, settings: Settings) -> JSONResponse:
    logger.warning(
        "request without valid numbers",
        extra={"extra_fields": safe_log_context(route=route)},
    )
    return error_response(400, _INVALID_NUMBERS_ERROR.format(digits=settings.recipient_digits))


@router.post("/send-message")
async def send_message(
    request: Request,
    gate: SessionGate = Depends(get_gate),
    client: MessagingClient = Depends(get_client),
    settings: Settings = Depends(get_settings),
    policy: DispatchPolicy = Depends(get_dispatch_policy),
):
    """Send one text message to every valid number.

    Returns:
        200 with summary and per-recipient results (partial failure included).
        400 on missing fields or no valid numbers, 413 when the message is
        too long, 503 when the WhatsApp session is not ready.
    """
    req = await _read_body(request, SendMessageRequest)

    if not gate.is_ready():
        return not_ready_response()

    if not req.numbers or not req.message:
        return error_response(400, 'The "numbers" and "message" fields are required.')

    try:
        ensure_text_within_limit(req.message, settings.max_message_length)
    except MessageTooLongError as e:
        logger.warning(
            "send-message rejected, message too long",
            extra={"extra_fields": safe_log_context(length=e.length, limit=e.limit)},
        )
        return error_response(413, str(e), length=e.length, limit=e.limit)

    recipients = _parse_numbers(req.numbers, settings)
    if not recipients:
        return _invalid_numbers_response("send-message", settings)

    summary = await dispatch(client, recipients, req.message, policy=policy)
    return {"success": True, **summary.to_dict()}


@router.post("/send-media")
async def send_media(
    request: Request,
    gate: SessionGate = Depends(get_gate),
    client: MessagingClient = Depends(get_client),
    settings: Settings = Depends(get_settings),
    policy: DispatchPolicy = Depends(get_dispatch_policy),
):
    """Send one media file (with optional caption) to every valid number.

    The media is fetched or decoded once, before any send.

    Returns:
        200 with summary and per-recipient results. 400 on missing fields or
        no valid numbers, 500 when the media cannot be resolved, 503 when
        the WhatsApp session is not ready.
    """
    req = await _read_body(request, SendMediaRequest)

    if not gate.is_ready():
        return not_ready_response()

    if not req.numbers or (not req.media_url and not req.media_base64):
        return error_response(
            400, 'The "numbers" and ("mediaUrl" or "mediaBase64") fields are required.'
        )

    recipients = _parse_numbers(req.numbers, settings)
    if not recipients:
        return _invalid_numbers_response("send-media", settings)

    payload = req.media_payload()
    if payload is None:
        return error_response(400, 'Provide "mediaUrl" or both "mediaBase64" and "mimetype".')

    try:
        media = await resolve_media_async(payload, timeout=settings.media_fetch_timeout)
    except MediaResolutionError as e:
        logger.error(
            "media resolution failed",
            extra={
                "extra_fields": safe_log_context(
                    source="url" if isinstance(payload, MediaFromUrl) else "inline",
                    error_type=type(e.__cause__ or e).__name__,
                )
            },
        )
        return error_response(
            500,
            "Could not process the media file from the provided source.",
            details=str(e),
        )

    options = SendOptions(caption=req.caption or "")
    summary = await dispatch(client, recipients, media, options=options, policy=policy)
    return {"success": True, **summary.to_dict()}
