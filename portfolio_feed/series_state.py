"""Per-horizon aggregation state.

Each horizon owns one SeriesState: bucketed history plus at most one
live point. The phase is tracked explicitly rather than inferred from
the list contents, so the first sample and a bootstrap that arrives
before any sample are unambiguous:

    EMPTY ──bootstrap──> HISTORY_ONLY
      │                      │
    ingest                ingest
      v                      v
    LIVE_ONLY ──freeze──> LIVE_WITH_HISTORY
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from .models import PortfolioSample


class SeriesPhase(str, Enum):
    EMPTY = "empty"
    HISTORY_ONLY = "history_only"
    LIVE_ONLY = "live_only"
    LIVE_WITH_HISTORY = "live_with_history"

    @property
    def has_live(self) -> bool:
        return self in (SeriesPhase.LIVE_ONLY, SeriesPhase.LIVE_WITH_HISTORY)


@dataclass(frozen=True)
class BucketPoint:
    """One chart point. Historical points are stamped at a bucket start."""

    timestamp: datetime
    portfolio_value: float
    total_pnl: float
    active_bots: int
    bot_count: int
    is_live: bool = False

    @classmethod
    def from_sample(
        cls, sample: PortfolioSample, *, is_live: bool = False
    ) -> "BucketPoint":
        return cls(
            timestamp=sample.timestamp,
            portfolio_value=sample.portfolio_value,
            total_pnl=sample.total_pnl,
            active_bots=sample.active_bots,
            bot_count=sample.bot_count,
            is_live=is_live,
        )

    def frozen_at(self, timestamp: datetime) -> "BucketPoint":
        """Copy of this point moved into history at a bucket boundary."""
        return replace(self, timestamp=timestamp, is_live=False)


@dataclass
class SeriesState:
    """Mutable state container for a single horizon."""

    phase: SeriesPhase = SeriesPhase.EMPTY
    historical_buckets: list[BucketPoint] = field(default_factory=list)
    live_point: BucketPoint | None = None

    # `now` of the most recent bootstrap
    bootstrapped_at: datetime | None = None

    # Last bootstrap failure, cleared by the next successful bootstrap
    error: str | None = None

    def points(self) -> tuple[BucketPoint, ...]:
        """Full series in render order: history then the live point."""
        if self.live_point is None:
            return tuple(self.historical_buckets)
        return (*self.historical_buckets, self.live_point)

    def copy(self) -> "SeriesState":
        # BucketPoint is frozen, so a shallow list copy is enough
        return SeriesState(
            phase=self.phase,
            historical_buckets=list(self.historical_buckets),
            live_point=self.live_point,
            bootstrapped_at=self.bootstrapped_at,
            error=self.error,
        )
