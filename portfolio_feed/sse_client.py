"""Server-Sent Events client for the bot manager live stream.

The stream authenticates with a ``token`` query parameter (EventSource
cannot send headers upstream either). Named events ``portfolio``,
``bot_update`` and ``positions`` carry JSON payloads; an unnamed message
that looks like a portfolio update is treated as one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import httpx

from .config import ConnectionConfig
from .stream_client import EventCallback, FailureCallback, StatusCallback, StreamClient

logger = logging.getLogger(__name__)


@dataclass
class SSEEvent:
    event: str = "message"
    data: str = ""
    id: str | None = None
    retry: int | None = None


class SSEDecoder:
    """Incremental line decoder for the text/event-stream format."""

    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []
        self._last_id: str | None = None
        self._retry: int | None = None

    def feed(self, line: str) -> SSEEvent | None:
        """Feed one line (without its terminator). Returns an event on a blank line."""
        line = line.rstrip("\r\n")

        if not line:
            if not self._data:
                self._event = ""
                return None
            event = SSEEvent(
                event=self._event or "message",
                data="\n".join(self._data),
                id=self._last_id,
                retry=self._retry,
            )
            self._event = ""
            self._data = []
            return event

        if line.startswith(":"):
            return None  # comment / keep-alive

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            if "\0" not in value:
                self._last_id = value
        elif name == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None


class SSEStreamClient(StreamClient):
    """SSE client with auto-reconnect."""

    transient_errors = (httpx.HTTPError, ConnectionError, OSError)

    def __init__(
        self,
        url: str,
        token: str,
        on_event: EventCallback,
        on_connect: StatusCallback,
        on_disconnect: StatusCallback,
        connection_config: ConnectionConfig,
        on_connection_failed: FailureCallback | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            url,
            on_event,
            on_connect,
            on_disconnect,
            connection_config,
            on_connection_failed,
        )
        self._token = token
        self._client = client

    async def _consume(self) -> None:
        if self._client is not None:
            await self._read_stream(self._client)
            return
        # No read timeout: the server may stay silent between updates
        timeout = httpx.Timeout(10.0, read=None)
        async with httpx.AsyncClient(timeout=timeout) as client:
            await self._read_stream(client)

    async def _read_stream(self, client: httpx.AsyncClient) -> None:
        async with client.stream(
            "GET",
            self.url,
            params={"token": self._token},
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
        ) as response:
            if response.status_code != 200:
                raise ConnectionError(
                    f"stream returned {response.status_code} {response.reason_phrase}"
                )
            content_type = response.headers.get("content-type", "")
            if "text/event-stream" not in content_type:
                raise ConnectionError(f"unexpected content type: {content_type!r}")

            await self._mark_connected()

            decoder = SSEDecoder()
            async for line in response.aiter_lines():
                if self._stopped:
                    break
                event = decoder.feed(line)
                if event is not None:
                    await self._handle_sse_event(event)

    async def _handle_sse_event(self, event: SSEEvent) -> None:
        try:
            data = json.loads(event.data)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in %s event: %s", event.event, e)
            return

        if event.event == "message":
            # Unnamed messages only matter when they carry portfolio data
            if isinstance(data, dict) and "portfolioValue" in data:
                await self._dispatch("portfolio", data)
            else:
                logger.debug("Ignoring unnamed SSE message")
            return

        await self._dispatch(event.event, data)
