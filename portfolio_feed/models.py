"""Data models for events received from the bot manager API.

Payloads arrive as camelCase JSON objects (over SSE, WebSocket or REST).
The ``parse_*`` helpers turn them into immutable dataclasses; the
portfolio parsers raise ``MalformedSample`` instead of guessing when a
required field is missing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .errors import MalformedSample


@dataclass(frozen=True)
class PortfolioSample:
    """One observation of portfolio state."""

    timestamp: datetime  # timezone-aware, UTC
    portfolio_value: float
    total_pnl: float = 0.0
    active_bots: int = 0
    bot_count: int = 0


@dataclass(frozen=True)
class BotData:
    """Status of a single bot instance as reported in portfolio events."""

    instance_id: str
    status: str
    balance: float = 0.0
    pnl: float = 0.0
    strategy: str = ""
    last_update: str = ""


@dataclass(frozen=True)
class PositionData:
    """An open trading position."""

    bot_id: str
    pair: str
    side: str  # "buy" or "sell"
    amount: float
    entry_price: float
    current_price: float
    pnl: float = 0.0
    pnl_percent: float = 0.0
    mode: str = ""
    last_update: str = ""


@dataclass(frozen=True)
class PortfolioData:
    """Full portfolio update event.

    ``sample`` holds the chartable part; the remaining fields are only
    used for the status summary.
    """

    sample: PortfolioSample
    pnl_percentage: float = 0.0
    total_balance: float = 0.0
    starting_balance: float = 0.0
    bots: tuple[BotData, ...] = field(default_factory=tuple)

    @property
    def timestamp(self) -> datetime:
        return self.sample.timestamp

    @property
    def portfolio_value(self) -> float:
        return self.sample.portfolio_value

    @property
    def total_pnl(self) -> float:
        return self.sample.total_pnl

    @property
    def active_bots(self) -> int:
        return self.sample.active_bots

    @property
    def bot_count(self) -> int:
        return self.sample.bot_count


@dataclass(frozen=True)
class HealthStatus:
    """Reply of the API health endpoint."""

    ok: bool
    status: str
    service: str = ""
    uptime: float = 0.0
    timestamp: str = ""


# ---------------------------------------------------------------------------
#  Field helpers
# ---------------------------------------------------------------------------


def parse_timestamp(value: Any) -> datetime:
    """Parse epoch milliseconds, an ISO-8601 string, or a datetime.

    Naive values are taken to be UTC. The result is always UTC-aware.
    """
    if isinstance(value, bool) or value is None:
        raise MalformedSample(f"invalid timestamp: {value!r}")

    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise MalformedSample(f"invalid timestamp: {value!r}")
        try:
            ts = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedSample(f"invalid timestamp {value!r}: {e}") from e
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError as e:
            raise MalformedSample(f"invalid timestamp {value!r}") from e
    else:
        raise MalformedSample(f"invalid timestamp type: {type(value).__name__}")

    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _number(data: dict, key: str, default: float | None = None) -> float:
    value = data.get(key)
    if value is None:
        if default is None:
            raise MalformedSample(f"missing field: {key}")
        return default
    if isinstance(value, bool):
        raise MalformedSample(f"field {key} must be numeric, got bool")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise MalformedSample(f"field {key} must be numeric: {value!r}") from e
    if not math.isfinite(number):
        raise MalformedSample(f"field {key} must be finite: {value!r}")
    return number


def _count(data: dict, key: str) -> int:
    number = _number(data, key, default=0.0)
    if number < 0 or number != int(number):
        raise MalformedSample(f"field {key} must be a non-negative integer: {number!r}")
    return int(number)


# ---------------------------------------------------------------------------
#  Parsers
# ---------------------------------------------------------------------------


def parse_portfolio_sample(data: Any) -> PortfolioSample:
    """Parse a portfolio event (or chart data point) into a PortfolioSample."""
    if not isinstance(data, dict):
        raise MalformedSample(f"expected an object, got {type(data).__name__}")
    if data.get("timestamp") is None:
        raise MalformedSample("missing field: timestamp")

    return PortfolioSample(
        timestamp=parse_timestamp(data["timestamp"]),
        portfolio_value=_number(data, "portfolioValue"),
        total_pnl=_number(data, "totalPnL", default=0.0),
        active_bots=_count(data, "activeBots"),
        bot_count=_count(data, "botCount"),
    )


def parse_bot_data(data: dict) -> BotData:
    """Parse one entry of a bot list."""
    return BotData(
        instance_id=str(data.get("instanceId", "unknown")),
        status=str(data.get("status", "unknown")),
        balance=_number(data, "balance", default=0.0),
        pnl=_number(data, "pnl", default=0.0),
        strategy=str(data.get("strategy") or ""),
        last_update=str(data.get("lastUpdate") or ""),
    )


def parse_bot_list(data: Any) -> list[BotData]:
    """Parse a bot list, accepting either a bare list or ``{"bots": [...]}``."""
    if isinstance(data, dict):
        data = data.get("bots", [])
    if not isinstance(data, list):
        return []
    return [parse_bot_data(item) for item in data if isinstance(item, dict)]


def parse_position(data: dict) -> PositionData:
    """Parse one open position."""
    if not data.get("pair"):
        raise MalformedSample("position is missing field: pair")
    return PositionData(
        bot_id=str(data.get("botId", "")),
        pair=str(data["pair"]),
        side=str(data.get("side", "buy")),
        amount=_number(data, "amount", default=0.0),
        entry_price=_number(data, "entryPrice", default=0.0),
        current_price=_number(data, "currentPrice", default=0.0),
        pnl=_number(data, "pnl", default=0.0),
        pnl_percent=_number(data, "pnlPercent", default=0.0),
        mode=str(data.get("mode") or ""),
        last_update=str(data.get("lastUpdate") or ""),
    )


def parse_positions(data: Any) -> list[PositionData]:
    """Parse a positions payload, either a list or ``{"positions": [...]}``."""
    if isinstance(data, dict):
        data = data.get("positions", [])
    if not isinstance(data, list):
        return []
    return [parse_position(item) for item in data if isinstance(item, dict)]


def parse_portfolio_data(data: Any) -> PortfolioData:
    """Parse a full portfolio update event."""
    sample = parse_portfolio_sample(data)
    starting_key = "startingBalance" if "startingBalance" in data else "starting_balance"
    return PortfolioData(
        sample=sample,
        pnl_percentage=_number(data, "pnlPercentage", default=0.0),
        total_balance=_number(data, "totalBalance", default=sample.portfolio_value),
        starting_balance=_number(data, starting_key, default=0.0),
        bots=tuple(parse_bot_list(data.get("bots") or [])),
    )


def parse_health(data: dict) -> HealthStatus:
    """Parse the health endpoint reply."""
    return HealthStatus(
        ok=bool(data.get("ok", False)),
        status=str(data.get("status", "unknown")),
        service=str(data.get("service", "")),
        uptime=float(data.get("uptime") or 0.0),
        timestamp=str(data.get("timestamp", "")),
    )
