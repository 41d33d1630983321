"""Monitor orchestrator — wires the live stream, history loader and aggregator.

Creates the stream client for the configured transport, turns incoming
events into samples for the BucketAggregator, bootstraps every horizon
from bulk history on each (re)connect, and publishes updates on an
EventBus for whatever presents them.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from .aggregator import BucketAggregator
from .api_client import FreqTradeApiClient
from .chart import ChartSeries
from .config import DaemonConfig
from .dashboard_state import DashboardState
from .errors import ApiError, BootstrapFailure, MalformedSample
from .events import EventBus
from .formatter import format_connection_failed, format_periodic_update
from .horizons import Horizon
from .models import PortfolioSample, parse_bot_list, parse_portfolio_data, parse_positions
from .sse_client import SSEStreamClient
from .stream_client import StreamClient
from .ws_client import WebSocketStreamClient

logger = logging.getLogger(__name__)

PORTFOLIO_EVENTS = ("portfolio", "portfolio_update")
BOT_EVENTS = ("bot_update", "bot_metrics")
POSITION_EVENTS = ("positions", "positions_update")


class PortfolioMonitor:
    """Orchestrates the stream client and owns all portfolio state."""

    def __init__(
        self,
        config: DaemonConfig,
        api: FreqTradeApiClient | None = None,
        aggregator: BucketAggregator | None = None,
        stream: StreamClient | None = None,
    ) -> None:
        self._config = config
        self.api = api or FreqTradeApiClient(config.api)
        self.aggregator = aggregator or BucketAggregator()
        self.state = DashboardState()
        self.events = EventBus()
        self._stream = stream or self._create_stream()

    def _create_stream(self) -> StreamClient:
        client_cls: type[SSEStreamClient] | type[WebSocketStreamClient]
        if self._config.stream.transport == "websocket":
            client_cls = WebSocketStreamClient
        else:
            client_cls = SSEStreamClient
        return client_cls(
            url=self._config.stream_url(),
            token=self._config.api.token,
            on_event=self._handle_event,
            on_connect=self._handle_connect,
            on_disconnect=self._handle_disconnect,
            connection_config=self._config.connection,
            on_connection_failed=self._handle_connection_failed,
        )

    # --- Public interface ---

    def on(self, event: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Subscribe to a monitor event. Returns an unsubscribe function."""
        return self.events.on(event, callback)

    def get_chart(self, horizon: Horizon | str) -> ChartSeries:
        return self.aggregator.snapshot(horizon)

    def get_all_charts(self) -> dict[Horizon, ChartSeries]:
        return self.aggregator.snapshots()

    async def run(self) -> None:
        """Run the stream client and the periodic reporter until stopped."""
        tasks: list[asyncio.Task] = [asyncio.create_task(self._stream.run())]

        interval = self._config.reporting.periodic_interval_minutes
        if interval > 0:
            tasks.append(asyncio.create_task(self._periodic_report_loop()))

        await asyncio.gather(*tasks, return_exceptions=True)

    async def stop(self) -> None:
        """Stop the stream client and release the HTTP client."""
        await self._stream.stop()
        await self.api.close()

    # --- Bootstrap ---

    async def load_initial_data(self) -> None:
        """Bootstrap every horizon, then load the bot list."""
        await self.bootstrap_all()

        try:
            bots = await self.api.fetch_bots()
        except ApiError as e:
            logger.warning("Could not fetch initial bot list: %s", e)
            return
        if bots:
            self.state.bots = bots
            self.events.emit("bot_update", bots)

    async def bootstrap_all(self, now: datetime | None = None) -> None:
        """Re-seed all horizons, preferring the single bulk request."""
        horizons = self.aggregator.horizons
        self.state.chart_loading.update(horizons)

        try:
            bulk = await self.api.fetch_all_chart_data()
        except BootstrapFailure as e:
            logger.warning(
                "Bulk chart fetch failed, falling back to per-horizon requests: %s", e
            )
            bulk = {}

        for horizon in horizons:
            if horizon in bulk:
                self._apply_bootstrap(horizon, bulk[horizon], now)
            else:
                await self.bootstrap_horizon(horizon, now)

    async def bootstrap_horizon(
        self, horizon: Horizon | str, now: datetime | None = None
    ) -> ChartSeries:
        """Re-seed one horizon from its own history endpoint."""
        horizon = Horizon.parse(horizon)
        self.state.chart_loading.add(horizon)
        try:
            history = await self.api.fetch_chart_data(horizon)
        except BootstrapFailure as e:
            self.aggregator.fail_bootstrap(horizon, str(e))
            self.state.chart_errors[horizon] = str(e)
            self.state.chart_loading.discard(horizon)
            series = self.aggregator.snapshot(horizon)
            self.events.emit("chart_update", series)
            return series
        return self._apply_bootstrap(horizon, history, now)

    async def switch_horizon(self, horizon: Horizon | str) -> ChartSeries:
        """Discard and rebuild one horizon; the others are untouched."""
        horizon = Horizon.parse(horizon)
        self.aggregator.reset(horizon)
        return await self.bootstrap_horizon(horizon)

    async def refresh(self) -> None:
        await self.bootstrap_all()

    def _apply_bootstrap(
        self,
        horizon: Horizon,
        history: list[PortfolioSample],
        now: datetime | None,
    ) -> ChartSeries:
        series = self.aggregator.bootstrap(history, horizon, now=now)
        self.state.chart_loading.discard(horizon)
        self.state.chart_errors.pop(horizon, None)
        self.events.emit("chart_update", series)
        return series

    # --- Event Handlers ---

    async def _handle_event(self, event_type: str, data: Any) -> None:
        """Route an incoming stream event."""
        try:
            if event_type in PORTFOLIO_EVENTS:
                self._handle_portfolio(data)
            elif event_type in BOT_EVENTS:
                bots = parse_bot_list(data)
                self.state.bots = bots
                self.events.emit("bot_update", bots)
            elif event_type in POSITION_EVENTS:
                positions = parse_positions(data)
                self.state.positions = positions
                self.events.emit("positions_update", positions)
            else:
                logger.debug("Ignoring %s event", event_type)
        except MalformedSample as e:
            self.state.malformed_since_report += 1
            logger.warning("Dropped malformed %s event: %s", event_type, e)
            self.events.emit("error", e)
        except Exception as e:
            logger.error("Failed to process %s event: %s", event_type, e)
            self.events.emit("error", e)

    def _handle_portfolio(self, data: Any) -> None:
        portfolio = parse_portfolio_data(data)
        updated = self.aggregator.ingest(portfolio.sample)

        self.state.portfolio = portfolio
        self.state.last_update = portfolio.timestamp
        self.state.samples_since_report += 1

        self.events.emit("portfolio_update", portfolio)
        if portfolio.bots:
            self.state.bots = list(portfolio.bots)
            self.events.emit("bot_update", self.state.bots)
        for horizon in updated:
            self.events.emit("chart_update", self.aggregator.snapshot(horizon))
        self.events.emit("last_update", portfolio.timestamp)

    async def _handle_connect(self) -> None:
        """Mark connected and replay the bootstrap for every horizon.

        Awaited by the stream client before it reads further events, so
        samples that arrive meanwhile wait in the transport buffer.
        """
        self.state.connected = True
        self.state.last_connected_at = datetime.now(timezone.utc)
        self.state.connection_error = None
        logger.info("Portfolio stream connected")
        self.events.emit("connected", True)

        try:
            await self.load_initial_data()
        except Exception as e:
            logger.error("Failed to load initial data: %s", e)
            self.events.emit("error", e)

    async def _handle_disconnect(self) -> None:
        self.state.connected = False
        self.state.connection_error = "Disconnected from FreqTrade service"
        logger.info("Portfolio stream disconnected")

        # Series are rebuilt from history on the next connect
        self.aggregator.reset_all()
        self.events.emit("connected", False)
        for series in self.aggregator.snapshots().values():
            self.events.emit("chart_update", series)

    async def _handle_connection_failed(self, message: str) -> None:
        self.state.connection_error = message
        logger.error(format_connection_failed(message))
        self.events.emit("connection_failed", message)

    # --- Periodic Reporting ---

    async def _periodic_report_loop(self) -> None:
        """Periodically log a portfolio and chart summary."""
        interval = self._config.reporting.periodic_interval_minutes * 60
        while True:
            await asyncio.sleep(interval)
            self.report()

    def report(self) -> str:
        """Log the periodic summary and start a new delta interval."""
        text = format_periodic_update(self.state, self.aggregator.snapshots())
        for line in text.splitlines():
            logger.info(line)
        _snapshot_state(self.state)
        return text


def _snapshot_state(state: DashboardState) -> None:
    """Save current values for computing deltas in the next interval."""
    if state.portfolio is not None:
        state.prev_portfolio_value = state.portfolio.portfolio_value
        state.prev_total_pnl = state.portfolio.total_pnl
    state.samples_since_report = 0
    state.malformed_since_report = 0
