"""Plain-text summaries for the daemon log.

Two summary styles:
  - format_portfolio_status():  Full snapshot of portfolio, bots and charts
  - format_periodic_update():   Lightweight interval update (deltas only)
"""

from __future__ import annotations

from typing import Mapping

from .chart import ChartSeries
from .dashboard_state import DashboardState
from .horizons import Horizon


# ---------------------------------------------------------------------------
#  Full status
# ---------------------------------------------------------------------------


def format_portfolio_status(
    state: DashboardState, charts: Mapping[Horizon, ChartSeries]
) -> str:
    """Full status: connection, portfolio, bots and every chart horizon."""
    if not state.connected:
        header = "portfolio — disconnected"
        if state.connection_error:
            header += f" ({state.connection_error})"
    elif state.portfolio is None:
        header = "portfolio — waiting for data"
    else:
        p = state.portfolio
        header = (
            f"portfolio  ${_fp(p.portfolio_value)}  "
            f"pnl {_signed(p.total_pnl)} ({p.pnl_percentage:+.2f}%)  "
            f"bots {p.active_bots}/{p.bot_count}"
        )

    lines = [header]
    for bot in state.bots:
        lines.append(
            f"  {bot.instance_id:<16} {bot.status:<10} "
            f"${_fp(bot.balance)}  pnl {_signed(bot.pnl)}"
        )
    for series in charts.values():
        lines.append(format_chart_summary(series))
    return "\n".join(lines)


def format_chart_summary(series: ChartSeries) -> str:
    """One line per horizon: point count, span and live value."""
    name = series.horizon.value
    if not series.success:
        return f"  chart {name:<4} error: {series.error}"
    if not series.data:
        return f"  chart {name:<4} no data yet"

    live = series.live_point
    live_str = f"live ${_fp(live.portfolio_value)}" if live else "no live point"
    start, end = series.metadata.time_range  # type: ignore[misc]
    return (
        f"  chart {name:<4} {series.metadata.total_points:>3} pts  "
        f"{start:%m-%d %H:%M} – {end:%m-%d %H:%M}  {live_str}"
    )


# ---------------------------------------------------------------------------
#  Periodic update (lightweight — just what changed between intervals)
# ---------------------------------------------------------------------------


def format_periodic_update(
    state: DashboardState, charts: Mapping[Horizon, ChartSeries]
) -> str:
    """Deltas since the last report, followed by the chart lines."""
    if not state.connected:
        return format_portfolio_status(state, charts)

    if state.portfolio is None:
        return "portfolio — no updates this interval"

    p = state.portfolio
    value_delta = (
        p.portfolio_value - state.prev_portfolio_value
        if state.prev_portfolio_value is not None
        else 0.0
    )
    pnl_delta = (
        p.total_pnl - state.prev_total_pnl if state.prev_total_pnl is not None else 0.0
    )

    lines = [
        f"portfolio  ${_fp(p.portfolio_value)}  "
        f"value {_signed(value_delta)}  pnl {_signed(pnl_delta)}  "
        f"updates {state.samples_since_report}"
    ]
    if state.malformed_since_report:
        lines[0] += f"  dropped {state.malformed_since_report}"
    for series in charts.values():
        lines.append(format_chart_summary(series))
    return "\n".join(lines)


# ---------------------------------------------------------------------------
#  Connection messages
# ---------------------------------------------------------------------------


def format_connection_failed(message: str) -> str:
    return f"portfolio stream unavailable — {message}"


# ---------------------------------------------------------------------------
#  Helpers
# ---------------------------------------------------------------------------


def _fp(price: float) -> str:
    """Format a currency amount with thousands separator and smart decimals."""
    sign = "-" if price < 0 else ""
    price = abs(price)
    if price >= 1000.0:
        return f"{sign}{price:,.2f}"
    elif price >= 1.0 or price == 0.0:
        return f"{sign}{price:.2f}"
    elif price >= 0.01:
        return f"{sign}{price:.4f}"
    else:
        return f"{sign}{price:.6f}"


def _signed(value: float) -> str:
    sign = "+" if value >= 0 else "-"
    return f"{sign}{_fp(abs(value))}"
