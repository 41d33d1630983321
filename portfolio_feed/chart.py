"""Read-only chart snapshots handed to consumers of the aggregator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from .horizons import Horizon
from .series_state import BucketPoint


@dataclass(frozen=True)
class ChartMetadata:
    total_points: int
    time_range: tuple[datetime, datetime] | None
    bucket_width: timedelta


@dataclass(frozen=True)
class ChartSeries:
    """Snapshot of one horizon's series.

    ``success`` is False only when the last bootstrap for the horizon
    failed; an empty series is still a success.
    """

    success: bool
    horizon: Horizon
    data: tuple[BucketPoint, ...]
    metadata: ChartMetadata
    error: str | None = None

    @property
    def live_point(self) -> BucketPoint | None:
        if self.data and self.data[-1].is_live:
            return self.data[-1]
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase shape the dashboard API uses."""
        time_range = self.metadata.time_range
        result: dict[str, Any] = {
            "success": self.success,
            "interval": self.horizon.value,
            "data": [point_to_dict(p) for p in self.data],
            "metadata": {
                "totalPoints": self.metadata.total_points,
                "timeRange": {
                    "start": _iso(time_range[0]) if time_range else None,
                    "end": _iso(time_range[1]) if time_range else None,
                },
                "bucketWidth": int(self.metadata.bucket_width.total_seconds()),
                "aggregationWindow": self.horizon.value,
            },
        }
        if self.error is not None:
            result["error"] = self.error
        return result


def build_chart_series(
    horizon: Horizon,
    points: tuple[BucketPoint, ...],
    bucket_width: timedelta,
    error: str | None = None,
) -> ChartSeries:
    time_range = None
    if points:
        stamps = [p.timestamp for p in points]
        time_range = (min(stamps), max(stamps))
    return ChartSeries(
        success=error is None,
        horizon=horizon,
        data=points,
        metadata=ChartMetadata(
            total_points=len(points),
            time_range=time_range,
            bucket_width=bucket_width,
        ),
        error=error,
    )


def point_to_dict(point: BucketPoint) -> dict[str, Any]:
    return {
        "timestamp": _iso(point.timestamp),
        "portfolioValue": point.portfolio_value,
        "totalPnL": point.total_pnl,
        "activeBots": point.active_bots,
        "botCount": point.bot_count,
        "isLive": point.is_live,
    }


def _iso(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")
