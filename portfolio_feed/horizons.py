"""Fixed chart horizons and their bucketing parameters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum


class Horizon(str, Enum):
    """Chart time range, valued by its wire name."""

    HOUR = "1h"
    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"

    @classmethod
    def parse(cls, value: "str | Horizon") -> "Horizon":
        """Accept either a Horizon or its wire name ("1h", "24h", ...)."""
        if isinstance(value, Horizon):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(h.value for h in cls)
            raise ValueError(
                f"unknown horizon {value!r} (expected one of: {valid})"
            ) from None


@dataclass(frozen=True)
class HorizonConfig:
    """Static per-horizon parameters.

    ``max_historical_points`` excludes the live point, so a full series
    renders ``max_historical_points + 1`` points.
    """

    bucket_width: timedelta
    window_width: timedelta
    max_historical_points: int

    @property
    def total_slots(self) -> int:
        return self.max_historical_points + 1


HORIZONS: dict[Horizon, HorizonConfig] = {
    Horizon.HOUR: HorizonConfig(
        bucket_width=timedelta(minutes=5),
        window_width=timedelta(hours=1),
        max_historical_points=11,
    ),
    Horizon.DAY: HorizonConfig(
        bucket_width=timedelta(minutes=30),
        window_width=timedelta(hours=24),
        max_historical_points=47,
    ),
    Horizon.WEEK: HorizonConfig(
        bucket_width=timedelta(minutes=60),
        window_width=timedelta(days=7),
        max_historical_points=167,
    ),
    Horizon.MONTH: HorizonConfig(
        bucket_width=timedelta(minutes=720),
        window_width=timedelta(days=30),
        max_historical_points=59,
    ),
}
