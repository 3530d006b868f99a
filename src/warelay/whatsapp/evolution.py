"""Evolution API messaging client.

Evolution runs the WhatsApp Web session (QR pairing, session caching) and
exposes it over HTTP. This adapter implements the MessagingClient protocol on
top of it with plain urllib; each blocking call runs on a worker thread.

Security: NEVER log chat ids, numbers or text. Only log hashes and lengths.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from warelay.config import EvolutionConfig
from warelay.domain.media import ResolvedMedia
from warelay.domain.recipients import chat_id_to_number
from warelay.errors import MessagingClientError
from warelay.observability.logging import get_logger
from warelay.observability.redaction import hash_identifier, safe_log_context

from .client import STATE_CLOSE, MessageContent
from .models import ClientInfo, MessageHandle, SendOptions

logger = get_logger(__name__)

# Timeout for HTTP requests (seconds)
HTTP_TIMEOUT = 10


def _do_request(
    url: str,
    *,
    method: str,
    headers: dict[str, str],
    data: bytes | None = None,
) -> Any:
    """Execute an HTTP request and decode the JSON body. Raises on error."""
    req = urllib.request.Request(url, data=data, headers=headers, method=method)
    with urllib.request.urlopen(req, timeout=HTTP_TIMEOUT) as resp:
        body = resp.read().decode()
    return json.loads(body) if body else {}


def _describe_http_error(e: Exception) -> str:
    if isinstance(e, urllib.error.HTTPError):
        return f"Evolution API returned HTTP {e.code}"
    if isinstance(e, urllib.error.URLError):
        return f"Evolution API unreachable: {type(e.reason).__name__}"
    if isinstance(e, TimeoutError):
        return "Evolution API timed out"
    return f"Evolution API returned an invalid response: {type(e).__name__}"


def _owner_to_phone(owner: str | None) -> str | None:
    if not owner:
        return None
    return chat_id_to_number(owner)


def _parse_instance_info(payload: Any, instance: str) -> ClientInfo | None:
    """Extract ClientInfo from a fetchInstances response.

    Evolution v2 returns a flat list of instances; v1 wraps each in
    {"instance": {...}}. Both are accepted.
    """
    items = payload if isinstance(payload, list) else [payload]
    for item in items:
        if not isinstance(item, dict):
            continue
        data = item.get("instance", item)
        name = data.get("name") or data.get("instanceName")
        if name and name != instance:
            continue
        return ClientInfo(
            pushname=data.get("profileName"),
            phone_number=_owner_to_phone(data.get("ownerJid") or data.get("owner")),
            platform=data.get("integration") or data.get("platform"),
        )
    return None


class EvolutionClient:
    """MessagingClient backed by one Evolution API instance."""

    def __init__(self, config: EvolutionConfig) -> None:
        self._config = config

    @property
    def instance(self) -> str:
        return self._config.instance

    def _url(self, path: str) -> str:
        return f"{self._config.base_url}{path}"

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "apikey": self._config.api_key,
        }

    def _call(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        try:
            return _do_request(self._url(path), method=method, headers=self._headers(), data=data)
        except (urllib.error.URLError, TimeoutError, ValueError) as e:
            # URLError covers HTTPError; ValueError covers undecodable JSON
            raise MessagingClientError(_describe_http_error(e)) from e

    def _build_send(
        self,
        number: str,
        content: MessageContent,
        options: SendOptions | None,
    ) -> tuple[str, dict[str, Any]]:
        instance = urllib.parse.quote(self._config.instance, safe="")
        if isinstance(content, ResolvedMedia):
            payload: dict[str, Any] = {
                "number": number,
                "mediatype": content.kind,
                "mimetype": content.mimetype,
                "caption": options.caption if options else "",
                "media": content.data,
            }
            if content.filename:
                payload["fileName"] = content.filename
            return f"/message/sendMedia/{instance}", payload
        return f"/message/sendText/{instance}", {"number": number, "text": content}

    def send_blocking(
        self,
        chat_id: str,
        content: MessageContent,
        options: SendOptions | None = None,
    ) -> MessageHandle:
        """Send one message and return the provider message id.

        Raises:
            MessagingClientError: On HTTP/network errors or a response without a key id.
        """
        number = chat_id_to_number(chat_id)
        path, payload = self._build_send(number, content, options)

        log_ctx = safe_log_context(
            to_hash=hash_identifier(chat_id),
            kind="media" if isinstance(content, ResolvedMedia) else "text",
            content_len=len(content.data if isinstance(content, ResolvedMedia) else content),
        )
        logger.info("sending outbound message", extra={"extra_fields": log_ctx})

        try:
            response = self._call("POST", path, payload)
        except MessagingClientError:
            logger.error("outbound send failed", extra={"extra_fields": log_ctx})
            raise

        key = response.get("key") if isinstance(response, dict) else None
        message_id = key.get("id") if isinstance(key, dict) else None
        if not message_id:
            raise MessagingClientError("Evolution API response has no message id")

        logger.info("outbound message sent", extra={"extra_fields": log_ctx})
        return MessageHandle(id=str(message_id))

    def connection_state_blocking(self) -> str:
        instance = urllib.parse.quote(self._config.instance, safe="")
        response = self._call("GET", f"/instance/connectionState/{instance}")
        data = response.get("instance", response) if isinstance(response, dict) else None
        if not isinstance(data, dict):
            return STATE_CLOSE
        return str(data.get("state") or STATE_CLOSE)

    def fetch_client_info_blocking(self) -> ClientInfo | None:
        query = urllib.parse.urlencode({"instanceName": self._config.instance})
        response = self._call("GET", f"/instance/fetchInstances?{query}")
        return _parse_instance_info(response, self._config.instance)

    async def send(
        self,
        chat_id: str,
        content: MessageContent,
        options: SendOptions | None = None,
    ) -> MessageHandle:
        return await asyncio.to_thread(self.send_blocking, chat_id, content, options)

    async def connection_state(self) -> str:
        return await asyncio.to_thread(self.connection_state_blocking)

    async def fetch_client_info(self) -> ClientInfo | None:
        return await asyncio.to_thread(self.fetch_client_info_blocking)
