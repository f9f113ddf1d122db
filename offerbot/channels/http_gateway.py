"""HttpGatewayChannel: talks to a WhatsApp gateway over plain HTTP.

The gateway (a separate process holding the WhatsApp Web session) posts
inbound messages to our ``/webhook/inbound`` endpoint and accepts outbound
messages at ``POST {gateway_url}/messages``:

    {"to": "2376...@c.us", "type": "text", "text": "..."}
    {"to": "2376...@c.us", "type": "media", "url": "https://...", "caption": "..."}
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from offerbot.channels.base import MessagingChannel
from offerbot.errors import ChannelError

log = logging.getLogger("offerbot.channels.http")


class HttpGatewayChannel(MessagingChannel):
    """Messaging channel backed by an HTTP gateway."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        send_delay: float = 0.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._send_delay = send_delay
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        if self._client is not None:
            return
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )
        log.info("Gateway channel connected to %s", self._base_url)

    async def _post(self, payload: dict[str, Any]) -> None:
        if self._client is None:
            raise ChannelError("Channel not connected")
        if self._send_delay > 0:
            await asyncio.sleep(self._send_delay)
        try:
            resp = await self._client.post("/messages", json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ChannelError(
                f"Gateway rejected {payload['type']} message: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ChannelError(f"Gateway unreachable: {exc}") from exc

    async def send_text(self, recipient: str, text: str) -> None:
        await self._post({"to": recipient, "type": "text", "text": text})

    async def send_media(self, recipient: str, media_url: str, caption: str = "") -> None:
        await self._post({"to": recipient, "type": "media", "url": media_url, "caption": caption})

    async def shutdown(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.info("Gateway channel closed")
