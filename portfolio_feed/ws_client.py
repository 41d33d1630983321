"""WebSocket client for the bot manager live stream.

Alternative transport to SSE. Each message is a JSON object with the
event name under ``type`` (or ``event_type``) and the payload under
``data``; event names match the SSE stream.
"""

from __future__ import annotations

import json
import logging

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .config import ConnectionConfig
from .stream_client import EventCallback, FailureCallback, StatusCallback, StreamClient

logger = logging.getLogger(__name__)


class WebSocketStreamClient(StreamClient):
    """WebSocket client with auto-reconnect."""

    transient_errors = (ConnectionClosed, WebSocketException, ConnectionError, OSError)

    def __init__(
        self,
        url: str,
        token: str,
        on_event: EventCallback,
        on_connect: StatusCallback,
        on_disconnect: StatusCallback,
        connection_config: ConnectionConfig,
        on_connection_failed: FailureCallback | None = None,
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

    async def _consume(self) -> None:
        async with websockets.connect(
            self.url,
            additional_headers={"Authorization": f"Bearer {self._token}"},
            ping_interval=self._config.ping_interval_seconds,
            ping_timeout=20,
        ) as ws:
            await self._mark_connected()

            async for raw_message in ws:
                if self._stopped:
                    break
                await self._handle_message(raw_message)

    async def _handle_message(self, raw_message: str | bytes) -> None:
        try:
            msg = json.loads(raw_message)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON from %s: %s", self.url, e)
            return

        if not isinstance(msg, dict):
            return
        event_type = msg.get("type") or msg.get("event_type")
        data = msg.get("data")
        if event_type and data is not None:
            await self._dispatch(event_type, data)
