"""Latest non-chart state of the monitored portfolio.

Tracks connection status, the most recent portfolio update, bot list
and open positions, plus chart loading/error flags per horizon. Chart
series themselves live in the BucketAggregator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .horizons import Horizon
from .models import BotData, PortfolioData, PositionData


@dataclass
class DashboardState:
    """Mutable state container for the monitored account."""

    # Connection status
    connected: bool = False
    last_connected_at: datetime | None = None
    connection_error: str | None = None

    # Cached data from stream events
    portfolio: PortfolioData | None = None
    bots: list[BotData] = field(default_factory=list)
    positions: list[PositionData] = field(default_factory=list)
    last_update: datetime | None = None

    # Chart bootstrap status
    chart_loading: set[Horizon] = field(default_factory=set)
    chart_errors: dict[Horizon, str] = field(default_factory=dict)

    # Snapshots at last report, for computing deltas
    prev_portfolio_value: float | None = None
    prev_total_pnl: float | None = None
    samples_since_report: int = 0
    malformed_since_report: int = 0
