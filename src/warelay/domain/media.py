"""Media payloads and their one-time resolution before a batch send.

A payload arrives either as a remote URL or as inline base64 data plus a
mimetype. resolve_media() turns it into a ResolvedMedia (base64 + mimetype)
that can be handed to the messaging client for every recipient in the batch.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import mimetypes
import posixpath
from dataclasses import dataclass
from typing import Union
from urllib.parse import urlparse

import requests

from warelay.errors import MediaResolutionError
from warelay.observability.logging import get_logger
from warelay.observability.redaction import safe_log_context

logger = get_logger(__name__)

# WhatsApp rejects larger attachments anyway
MAX_MEDIA_BYTES = 16 * 1024 * 1024

DEFAULT_FETCH_TIMEOUT = 15.0
_CHUNK_SIZE = 64 * 1024
_FALLBACK_MIMETYPE = "application/octet-stream"


@dataclass(frozen=True)
class MediaFromUrl:
    url: str


@dataclass(frozen=True)
class MediaFromInlineData:
    mimetype: str
    data: str


MediaPayload = Union[MediaFromUrl, MediaFromInlineData]


@dataclass(frozen=True)
class ResolvedMedia:
    """Binary content ready to attach to a message.

    Attributes:
        mimetype: MIME type, e.g. "image/png".
        data: Base64-encoded content without a data URI prefix.
        filename: Name presented to the recipient, when known.
    """

    mimetype: str
    data: str
    filename: str | None = None

    @property
    def kind(self) -> str:
        """Coarse media category: image, video, audio or document."""
        major = self.mimetype.split("/", 1)[0].lower()
        if major in ("image", "video", "audio"):
            return major
        return "document"


def _split_data_uri(data: str) -> tuple[str | None, str]:
    """Split "data:image/png;base64,AAAA" into ("image/png", "AAAA")."""
    if not data.startswith("data:") or "," not in data:
        return None, data
    header, _, body = data.partition(",")
    mimetype = header[5:].split(";", 1)[0] or None
    return mimetype, body


def _decode_inline(payload: MediaFromInlineData) -> ResolvedMedia:
    uri_mimetype, body = _split_data_uri(payload.data.strip())
    mimetype = payload.mimetype or uri_mimetype
    if not mimetype:
        raise MediaResolutionError("mimetype is required for inline media")

    compact = "".join(body.split())
    try:
        raw = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MediaResolutionError(f"invalid base64 data: {e}") from e

    if not raw:
        raise MediaResolutionError("inline media is empty")
    if len(raw) > MAX_MEDIA_BYTES:
        raise MediaResolutionError(f"media exceeds {MAX_MEDIA_BYTES} bytes")

    return ResolvedMedia(mimetype=mimetype, data=compact)


def _filename_from_url(url: str) -> str | None:
    name = posixpath.basename(urlparse(url).path)
    return name or None


def _fetch_url(payload: MediaFromUrl, timeout: float) -> ResolvedMedia:
    parsed = urlparse(payload.url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise MediaResolutionError("mediaUrl must be an absolute http(s) URL")

    try:
        with requests.get(payload.url, timeout=timeout, stream=True) as resp:
            resp.raise_for_status()
            chunks: list[bytes] = []
            size = 0
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                size += len(chunk)
                if size > MAX_MEDIA_BYTES:
                    raise MediaResolutionError(f"media exceeds {MAX_MEDIA_BYTES} bytes")
                chunks.append(chunk)
            content_type = resp.headers.get("Content-Type", "")
    except requests.RequestException as e:
        raise MediaResolutionError(f"could not download media: {e}") from e

    raw = b"".join(chunks)
    if not raw:
        raise MediaResolutionError("downloaded media is empty")

    filename = _filename_from_url(payload.url)
    # Trust the server's content type; fall back to the URL extension
    mimetype = content_type.split(";", 1)[0].strip()
    if not mimetype and filename:
        mimetype = mimetypes.guess_type(filename)[0] or ""

    return ResolvedMedia(
        mimetype=mimetype or _FALLBACK_MIMETYPE,
        data=base64.b64encode(raw).decode("ascii"),
        filename=filename,
    )


def resolve_media(payload: MediaPayload, *, timeout: float = DEFAULT_FETCH_TIMEOUT) -> ResolvedMedia:
    """Resolve a media payload into base64 content plus mimetype.

    Blocking: remote URLs are downloaded with requests.

    Raises:
        MediaResolutionError: On network/HTTP errors, invalid base64 data,
            missing mimetype, empty or oversized content.
    """
    if isinstance(payload, MediaFromUrl):
        source = "url"
        resolved = _fetch_url(payload, timeout)
    else:
        source = "inline"
        resolved = _decode_inline(payload)

    logger.info(
        "media resolved",
        extra={
            "extra_fields": safe_log_context(
                source=source,
                mimetype=resolved.mimetype,
                size_b64=len(resolved.data),
            )
        },
    )
    return resolved


async def resolve_media_async(
    payload: MediaPayload, *, timeout: float = DEFAULT_FETCH_TIMEOUT
) -> ResolvedMedia:
    """resolve_media() on a worker thread."""
    return await asyncio.to_thread(resolve_media, payload, timeout=timeout)
