"""REST client for the bot manager API.

Provides the bulk history used to bootstrap chart horizons, plus the bot
and position lookups shown in status summaries. All requests carry the
bearer token except the health check.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import ApiConfig
from .errors import ApiError, BootstrapFailure, MalformedSample
from .horizons import Horizon
from .models import (
    BotData,
    HealthStatus,
    PortfolioSample,
    PositionData,
    parse_bot_list,
    parse_health,
    parse_portfolio_sample,
    parse_positions,
)

logger = logging.getLogger(__name__)


class FreqTradeApiClient:
    """Async HTTP client for chart history, bots and positions."""

    def __init__(
        self, config: ApiConfig, client: httpx.AsyncClient | None = None
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "FreqTradeApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # --- Health ---

    async def check_health(self) -> HealthStatus:
        data = await self._get_json("/api/health", auth=False)
        return parse_health(data if isinstance(data, dict) else {})

    # --- Chart history (bootstrap source) ---

    async def fetch_chart_data(self, horizon: Horizon | str) -> list[PortfolioSample]:
        """Fetch bulk history for one horizon.

        Raises BootstrapFailure on any transport, status or shape error.
        """
        horizon = Horizon.parse(horizon)
        try:
            payload = await self._get_json(f"/api/charts/portfolio/{horizon.value}")
        except ApiError as e:
            raise BootstrapFailure(horizon.value, str(e)) from e
        return parse_chart_points(payload, horizon.value)

    async def fetch_all_chart_data(self) -> dict[Horizon, list[PortfolioSample]]:
        """Fetch bulk history for every horizon in one request.

        Horizons missing from the reply are absent from the result.
        """
        try:
            payload = await self._get_json("/api/charts/portfolio")
        except ApiError as e:
            raise BootstrapFailure("all", str(e)) from e

        intervals = payload.get("intervals") if isinstance(payload, dict) else None
        if not isinstance(intervals, dict):
            raise BootstrapFailure("all", "reply has no intervals object")

        result: dict[Horizon, list[PortfolioSample]] = {}
        for name, response in intervals.items():
            try:
                horizon = Horizon.parse(name)
            except ValueError:
                logger.debug("Ignoring unknown chart interval %r", name)
                continue
            result[horizon] = parse_chart_points(response, horizon.value)
        return result

    async def fetch_portfolio_history(self) -> list[PortfolioSample]:
        """Fetch the raw (unbucketed) portfolio history."""
        try:
            payload = await self._get_json("/api/portfolio/history")
        except ApiError as e:
            raise BootstrapFailure("history", str(e)) from e
        return parse_chart_points(payload, "history")

    # --- Bots & positions ---

    async def fetch_bots(self) -> list[BotData]:
        return parse_bot_list(await self._get_json("/api/bots"))

    async def fetch_bot_status(self, instance_id: str) -> dict[str, Any]:
        return await self._get_json(f"/api/bots/{instance_id}/status")

    async def fetch_bot_balance(self, instance_id: str) -> dict[str, Any]:
        return await self._get_json(f"/api/bots/{instance_id}/balance")

    async def fetch_bot_profit(self, instance_id: str) -> dict[str, Any]:
        return await self._get_json(f"/api/bots/{instance_id}/profit")

    async def fetch_positions(self) -> list[PositionData]:
        return parse_positions(await self._get_json("/api/positions"))

    # --- Internal Helpers ---

    async def _get_json(self, path: str, *, auth: bool = True) -> Any:
        headers = {"Content-Type": "application/json"}
        if auth:
            if not self._config.token:
                raise ApiError("No authentication token available")
            headers["Authorization"] = f"Bearer {self._config.token}"

        try:
            response = await self._client.get(path, headers=headers)
        except httpx.HTTPError as e:
            raise ApiError(f"GET {path} failed: {e}") from e

        if response.is_error:
            raise ApiError(
                f"GET {path} failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"GET {path} returned invalid JSON: {e}") from e


def parse_chart_points(payload: Any, source: str) -> list[PortfolioSample]:
    """Extract samples from a chart or history reply.

    Accepts a ChartResponse (``{"success", "data": [...]}``), a history
    envelope (``{"history": {"snapshots": [...]}}`` or
    ``{"history": [...]}``) or a bare list. Malformed points are skipped.
    """
    if isinstance(payload, dict):
        if payload.get("success") is False:
            raise BootstrapFailure(source, str(payload.get("error") or "upstream reported failure"))
        history = payload.get("history")
        if isinstance(history, dict):
            points = history.get("snapshots")
        elif history is not None:
            points = history
        else:
            points = payload.get("data")
    else:
        points = payload

    if not isinstance(points, list):
        raise BootstrapFailure(source, "reply has no data list")

    samples: list[PortfolioSample] = []
    skipped = 0
    for point in points:
        try:
            samples.append(parse_portfolio_sample(point))
        except MalformedSample as e:
            skipped += 1
            logger.debug("Skipping malformed %s point: %s", source, e)
    if skipped:
        logger.warning("Skipped %d malformed point(s) in %s history", skipped, source)
    return samples
