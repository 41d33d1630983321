"""Reconnecting base for live stream clients.

Subclasses open one connection in ``_consume()`` and dispatch events
until it closes. This class handles the loop around it: a minimum gap
between attempts, exponential backoff, and a slower fallback retry once
the configured number of attempts has been used up.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from .config import ConnectionConfig

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, Any], Awaitable[None]]
StatusCallback = Callable[[], Awaitable[None]]
FailureCallback = Callable[[str], Awaitable[None]]


class StreamClient:
    """Abstract base class: connect, consume, reconnect on failure.

    Not usable on its own; subclasses must implement ``_consume()``
    (see SSEStreamClient and WebSocketStreamClient).
    """

    # Errors that mean "connection lost, try again" rather than a bug
    transient_errors: tuple[type[BaseException], ...] = (ConnectionError, OSError)

    def __init__(
        self,
        url: str,
        on_event: EventCallback,
        on_connect: StatusCallback,
        on_disconnect: StatusCallback,
        connection_config: ConnectionConfig,
        on_connection_failed: FailureCallback | None = None,
    ) -> None:
        self.url = url
        self._on_event = on_event
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect
        self._on_connection_failed = on_connection_failed
        self._config = connection_config
        self._attempts = 0
        self._failed_reported = False
        self._connected = False
        self._stopped = False
        self._last_attempt_at: float | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    async def run(self) -> None:
        """Main loop: connect, receive events, reconnect on failure."""
        while not self._stopped:
            await self._wait_for_cooldown()
            self._last_attempt_at = asyncio.get_running_loop().time()
            try:
                logger.info("Connecting to %s...", self.url)
                await self._consume()
                if not self._stopped:
                    logger.warning("Stream %s closed by server", self.url)
            except asyncio.CancelledError:
                raise
            except self.transient_errors as e:
                logger.warning("Stream disconnected from %s: %s", self.url, e)
            except Exception as e:
                logger.error("Unexpected error in stream client %s: %s", self.url, e)

            if self._connected:
                self._connected = False
                await self._on_disconnect()

            if self._stopped:
                break

            delay = await self._next_delay()
            logger.info("Reconnecting to %s in %.0fs...", self.url, delay)
            await asyncio.sleep(delay)

    async def stop(self) -> None:
        """Signal the client to stop."""
        self._stopped = True

    async def _consume(self) -> None:
        """Open one connection and dispatch events until it ends."""
        raise NotImplementedError

    # --- Helpers for subclasses ---

    async def _mark_connected(self) -> None:
        """Call once the connection is established."""
        self._attempts = 0
        self._failed_reported = False
        self._connected = True
        await self._on_connect()
        logger.info("Connected to %s", self.url)

    async def _dispatch(self, event_type: str, data: Any) -> None:
        await self._on_event(event_type, data)

    # --- Backoff ---

    async def _next_delay(self) -> float:
        """Backoff delay for the next attempt.

        Doubles from ``reconnect_delay_seconds`` up to the cap; after
        ``max_reconnect_attempts`` the failure is reported once and the
        client keeps retrying at ``fallback_retry_seconds``.
        """
        if self._attempts < self._config.max_reconnect_attempts:
            self._attempts += 1
            return min(
                self._config.reconnect_delay_seconds * 2 ** (self._attempts - 1),
                self._config.max_reconnect_delay_seconds,
            )

        if not self._failed_reported:
            self._failed_reported = True
            message = (
                f"Max reconnection attempts reached - retrying every "
                f"{self._config.fallback_retry_seconds:.0f}s"
            )
            logger.error("Stream %s: %s", self.url, message)
            if self._on_connection_failed is not None:
                await self._on_connection_failed(message)
        return self._config.fallback_retry_seconds

    async def _wait_for_cooldown(self) -> None:
        if self._last_attempt_at is None:
            return
        elapsed = asyncio.get_running_loop().time() - self._last_attempt_at
        remaining = self._config.connection_cooldown_seconds - elapsed
        if remaining > 0:
            logger.debug("Connection cooldown active, waiting %.1fs", remaining)
            await asyncio.sleep(remaining)
