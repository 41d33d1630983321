"""Shared test fixtures for portfolio-feed-daemon tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from portfolio_feed.aggregator import BucketAggregator
from portfolio_feed.config import ApiConfig, ConnectionConfig, DaemonConfig, ReportingConfig
from portfolio_feed.models import PortfolioSample

# Aligned to every horizon's bucket width (12h divides a day)
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_sample(
    seconds: float,
    value: float | None = None,
    *,
    base: datetime = T0,
    pnl: float = 0.0,
    active_bots: int = 1,
    bot_count: int = 2,
) -> PortfolioSample:
    """Sample at ``base + seconds``; value defaults to 1000 + seconds."""
    return PortfolioSample(
        timestamp=base + timedelta(seconds=seconds),
        portfolio_value=1000.0 + seconds if value is None else value,
        total_pnl=pnl,
        active_bots=active_bots,
        bot_count=bot_count,
    )


def make_config(**connection: float) -> DaemonConfig:
    return DaemonConfig(
        api=ApiConfig(base_url="https://api.test", token="tok"),
        connection=ConnectionConfig(**connection),
        reporting=ReportingConfig(periodic_interval_minutes=0),
    )


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def sample_factory() -> Callable[..., PortfolioSample]:
    return make_sample


@pytest.fixture
def aggregator() -> BucketAggregator:
    return BucketAggregator()


@pytest.fixture
def daemon_config() -> DaemonConfig:
    return make_config()


@pytest.fixture
def portfolio_event() -> dict:
    return {
        "timestamp": "2024-01-01T00:00:30Z",
        "portfolioValue": 10250.5,
        "totalPnL": 250.5,
        "pnlPercentage": 2.5,
        "activeBots": 2,
        "botCount": 3,
        "totalBalance": 10300.0,
        "startingBalance": 10000.0,
        "bots": [
            {
                "instanceId": "bot-1",
                "status": "running",
                "balance": 5100.0,
                "pnl": 100.0,
                "strategy": "EmaCross",
                "lastUpdate": "2024-01-01T00:00:29Z",
            },
            {
                "instanceId": "bot-2",
                "status": "stopped",
                "balance": 5150.5,
                "pnl": 150.5,
                "strategy": "Rsi",
                "lastUpdate": "2024-01-01T00:00:20Z",
            },
        ],
    }
