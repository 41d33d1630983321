"""Tests for the REST client, using httpx.MockTransport as the upstream."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest

from portfolio_feed.api_client import FreqTradeApiClient, parse_chart_points
from portfolio_feed.config import ApiConfig
from portfolio_feed.errors import ApiError, BootstrapFailure
from portfolio_feed.horizons import Horizon

POINT = {
    "timestamp": "2024-01-01T00:05:00Z",
    "portfolioValue": 1010.0,
    "totalPnL": 10.0,
    "activeBots": 1,
    "botCount": 2,
}


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> FreqTradeApiClient:
    http = httpx.AsyncClient(
        base_url="https://api.test", transport=httpx.MockTransport(handler)
    )
    return FreqTradeApiClient(ApiConfig(base_url="https://api.test", token="tok"), client=http)


class TestRequests:
    @pytest.mark.asyncio
    async def test_chart_request_carries_bearer_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "data": [POINT]})

        api = _client(handler)
        samples = await api.fetch_chart_data("24h")

        assert seen[0].url.path == "/api/charts/portfolio/24h"
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert len(samples) == 1
        assert samples[0].timestamp == datetime(2024, 1, 1, 0, 5, tzinfo=timezone.utc)
        assert samples[0].portfolio_value == 1010.0

    @pytest.mark.asyncio
    async def test_health_check_skips_auth(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"ok": True, "status": "healthy", "service": "bot-manager"}
            )

        health = await _client(handler).check_health()
        assert health.ok is True
        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_http_error_status_raises_api_error(self) -> None:
        api = _client(lambda request: httpx.Response(503))
        with pytest.raises(ApiError) as exc_info:
            await api.fetch_bots()
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_invalid_json_raises_api_error(self) -> None:
        api = _client(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(ApiError, match="invalid JSON"):
            await api.fetch_positions()

    @pytest.mark.asyncio
    async def test_transport_error_raises_api_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ApiError, match="refused"):
            await _client(handler).fetch_bots()

    @pytest.mark.asyncio
    async def test_chart_failure_becomes_bootstrap_failure(self) -> None:
        api = _client(lambda request: httpx.Response(500))
        with pytest.raises(BootstrapFailure) as exc_info:
            await api.fetch_chart_data(Horizon.WEEK)
        assert exc_info.value.horizon == "7d"

    @pytest.mark.asyncio
    async def test_bots_and_positions(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/bots":
                return httpx.Response(
                    200, json={"bots": [{"instanceId": "bot-1", "status": "running"}]}
                )
            return httpx.Response(
                200,
                json={"positions": [{"botId": "bot-1", "pair": "ETH/USDT", "amount": 1}]},
            )

        api = _client(handler)
        bots = await api.fetch_bots()
        positions = await api.fetch_positions()
        assert bots[0].instance_id == "bot-1"
        assert positions[0].pair == "ETH/USDT"


    @pytest.mark.asyncio
    async def test_bot_detail_endpoints(self) -> None:
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={"state": "running"})

        api = _client(handler)
        assert await api.fetch_bot_status("bot-1") == {"state": "running"}
        await api.fetch_bot_balance("bot-1")
        await api.fetch_bot_profit("bot-1")
        assert paths == [
            "/api/bots/bot-1/status",
            "/api/bots/bot-1/balance",
            "/api/bots/bot-1/profit",
        ]

    @pytest.mark.asyncio
    async def test_portfolio_history(self) -> None:
        payload = {"success": True, "history": {"snapshots": [POINT, POINT]}}
        api = _client(lambda request: httpx.Response(200, json=payload))
        assert len(await api.fetch_portfolio_history()) == 2

    @pytest.mark.asyncio
    async def test_missing_token_rejected_before_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("request should not be sent")

        api = _client(handler)
        api._config = ApiConfig.model_construct(base_url="https://api.test", token="")
        with pytest.raises(ApiError, match="No authentication token"):
            await api.fetch_bots()

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self) -> None:
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with FreqTradeApiClient(
            ApiConfig(base_url="https://api.test", token="tok"), client=http
        ):
            pass
        assert http.is_closed is False
        await http.aclose()


class TestFetchAllChartData:
    @pytest.mark.asyncio
    async def test_splits_intervals_and_ignores_unknown(self) -> None:
        payload = {
            "success": True,
            "intervals": {
                "1h": {"success": True, "data": [POINT]},
                "24h": {"success": True, "data": []},
                "1y": {"success": True, "data": [POINT]},
            },
        }
        api = _client(lambda request: httpx.Response(200, json=payload))
        result = await api.fetch_all_chart_data()

        assert set(result) == {Horizon.HOUR, Horizon.DAY}
        assert len(result[Horizon.HOUR]) == 1
        assert result[Horizon.DAY] == []

    @pytest.mark.asyncio
    async def test_missing_intervals_raises(self) -> None:
        api = _client(lambda request: httpx.Response(200, json={"success": True}))
        with pytest.raises(BootstrapFailure, match="intervals"):
            await api.fetch_all_chart_data()


class TestParseChartPoints:
    def test_history_snapshots_envelope(self) -> None:
        samples = parse_chart_points({"history": {"snapshots": [POINT]}}, "history")
        assert len(samples) == 1

    def test_history_list_and_bare_list(self) -> None:
        assert len(parse_chart_points({"history": [POINT, POINT]}, "history")) == 2
        assert len(parse_chart_points([POINT], "1h")) == 1

    def test_malformed_points_skipped(self) -> None:
        samples = parse_chart_points(
            {"data": [POINT, {"timestamp": "garbage"}, {"portfolioValue": 1}]}, "1h"
        )
        assert len(samples) == 1

    def test_upstream_failure_flag(self) -> None:
        with pytest.raises(BootstrapFailure, match="database offline"):
            parse_chart_points({"success": False, "error": "database offline"}, "1h")

    def test_missing_data_list(self) -> None:
        with pytest.raises(BootstrapFailure, match="no data list"):
            parse_chart_points({"success": True}, "1h")
