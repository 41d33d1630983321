"""Bucket aggregator — turns the live sample stream into chart series.

For every horizon the aggregator keeps bucket-aligned history plus one
live point that always shows the newest sample. When a sample lands in a
later bucket than the history covers, the previous live value is frozen
into the last closed bucket, so each historical bucket holds the value
that was current throughout that interval.

All methods are synchronous and run on the event loop thread; a call
never leaves a horizon half-updated.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping

from .chart import ChartSeries, build_chart_series
from .errors import MalformedSample, StaleSample
from .horizons import HORIZONS, Horizon, HorizonConfig
from .models import PortfolioSample
from .series_state import BucketPoint, SeriesPhase, SeriesState

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def align_to_bucket(timestamp: datetime, width: timedelta) -> datetime:
    """Floor a timestamp to a multiple of ``width`` since the Unix epoch."""
    width_us = width // _MICROSECOND
    offset_us = (timestamp - _EPOCH) // _MICROSECOND
    return _EPOCH + timedelta(microseconds=(offset_us // width_us) * width_us)


class BucketAggregator:
    """Owns one SeriesState per horizon."""

    def __init__(
        self, horizons: Mapping[Horizon, HorizonConfig] = HORIZONS
    ) -> None:
        self._horizons: dict[Horizon, HorizonConfig] = dict(horizons)
        self._states: dict[Horizon, SeriesState] = {
            h: SeriesState() for h in self._horizons
        }

    @property
    def horizons(self) -> tuple[Horizon, ...]:
        return tuple(self._horizons)

    def config(self, horizon: Horizon | str) -> HorizonConfig:
        return self._horizons[Horizon.parse(horizon)]

    # --- Live samples ---

    def ingest(self, sample: PortfolioSample) -> list[Horizon]:
        """Apply one live sample to every horizon.

        Raises MalformedSample before touching any state. Returns the
        horizons that accepted the sample; stale horizons skip it.
        """
        _validate_sample(sample)

        accepted: list[Horizon] = []
        for horizon, config in self._horizons.items():
            try:
                self._ingest_one(horizon, config, sample)
            except StaleSample as e:
                logger.debug("Dropped stale sample for %s: %s", horizon.value, e)
                continue
            except Exception:
                logger.exception(
                    "Failed to ingest sample into %s horizon", horizon.value
                )
                continue
            accepted.append(horizon)
        return accepted

    def _ingest_one(
        self, horizon: Horizon, config: HorizonConfig, sample: PortfolioSample
    ) -> None:
        state = self._states[horizon]
        ts = sample.timestamp
        _check_fresh(state, ts)

        current_bucket = align_to_bucket(ts, config.bucket_width)
        last_closed_bucket = current_bucket - config.bucket_width

        # Work on a copy; state is only assigned once everything succeeded
        buckets = list(state.historical_buckets)

        if state.live_point is not None and state.phase.has_live:
            if not buckets or buckets[-1].timestamp < last_closed_bucket:
                buckets.append(state.live_point.frozen_at(last_closed_bucket))

        buckets.sort(key=lambda b: b.timestamp)

        window_start = ts - config.window_width
        buckets = [b for b in buckets if b.timestamp >= window_start]

        overflow = len(buckets) - config.max_historical_points
        if overflow > 0:
            buckets = buckets[overflow:]

        state.historical_buckets = buckets
        state.live_point = BucketPoint.from_sample(sample, is_live=True)
        state.phase = (
            SeriesPhase.LIVE_WITH_HISTORY if buckets else SeriesPhase.LIVE_ONLY
        )

    # --- Bulk history ---

    def bootstrap(
        self,
        raw_history: Iterable[PortfolioSample],
        horizon: Horizon | str,
        now: datetime | None = None,
    ) -> ChartSeries:
        """Rebuild one horizon from bulk history.

        The bucket containing ``now`` is left for the live point, so the
        live point stays unset until the next sample arrives. Calling
        this twice with the same input and ``now`` gives the same
        buckets.
        """
        horizon = Horizon.parse(horizon)
        config = self._horizons[horizon]
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        window_start = now - config.window_width
        live_bucket = align_to_bucket(now, config.bucket_width)

        latest: dict[datetime, PortfolioSample] = {}
        skipped = 0
        for sample in raw_history:
            try:
                _validate_sample(sample)
            except MalformedSample as e:
                skipped += 1
                logger.debug("Skipping malformed %s history point: %s", horizon.value, e)
                continue
            ts = sample.timestamp
            if ts < window_start or ts > now:
                continue
            bucket = align_to_bucket(ts, config.bucket_width)
            if bucket >= live_bucket:
                continue
            previous = latest.get(bucket)
            if previous is None or ts >= previous.timestamp:
                latest[bucket] = sample
        if skipped:
            logger.warning(
                "Skipped %d malformed point(s) while bootstrapping %s",
                skipped,
                horizon.value,
            )

        # A bucket that starts before the window is outside it even when
        # its sample is not
        buckets = [
            BucketPoint.from_sample(latest[bucket]).frozen_at(bucket)
            for bucket in sorted(latest)
            if bucket >= window_start
        ]
        overflow = len(buckets) - config.max_historical_points
        if overflow > 0:
            buckets = buckets[overflow:]

        self._states[horizon] = SeriesState(
            phase=SeriesPhase.HISTORY_ONLY if buckets else SeriesPhase.EMPTY,
            historical_buckets=buckets,
            bootstrapped_at=now,
        )
        logger.info(
            "Bootstrapped %s horizon with %d bucket(s)", horizon.value, len(buckets)
        )
        return self.snapshot(horizon)

    def fail_bootstrap(self, horizon: Horizon | str, reason: str) -> None:
        """Record a bootstrap failure; existing data is kept as is."""
        horizon = Horizon.parse(horizon)
        self._states[horizon].error = reason
        logger.warning("Bootstrap failed for %s horizon: %s", horizon.value, reason)

    # --- Resets ---

    def reset(self, horizon: Horizon | str) -> None:
        """Discard one horizon's state (horizon switch)."""
        self._states[Horizon.parse(horizon)] = SeriesState()

    def reset_all(self) -> None:
        for horizon in self._horizons:
            self._states[horizon] = SeriesState()

    # --- Read access ---

    def state(self, horizon: Horizon | str) -> SeriesState:
        """Copy of a horizon's state; mutating it does not affect the aggregator."""
        return self._states[Horizon.parse(horizon)].copy()

    def snapshot(self, horizon: Horizon | str) -> ChartSeries:
        horizon = Horizon.parse(horizon)
        state = self._states[horizon]
        return build_chart_series(
            horizon,
            state.points(),
            self._horizons[horizon].bucket_width,
            error=state.error,
        )

    def snapshots(self) -> dict[Horizon, ChartSeries]:
        return {h: self.snapshot(h) for h in self._horizons}


def _check_fresh(state: SeriesState, ts: datetime) -> None:
    if state.live_point is not None and ts < state.live_point.timestamp:
        raise StaleSample(
            f"{ts.isoformat()} precedes live point {state.live_point.timestamp.isoformat()}"
        )
    if state.historical_buckets and ts < state.historical_buckets[-1].timestamp:
        raise StaleSample(f"{ts.isoformat()} precedes the last historical bucket")
    if state.bootstrapped_at is not None and ts < state.bootstrapped_at:
        raise StaleSample(
            f"{ts.isoformat()} precedes bootstrap at {state.bootstrapped_at.isoformat()}"
        )


def _validate_sample(sample: object) -> None:
    if not isinstance(sample, PortfolioSample):
        raise MalformedSample(f"expected PortfolioSample, got {type(sample).__name__}")
    if not isinstance(sample.timestamp, datetime) or sample.timestamp.tzinfo is None:
        raise MalformedSample("timestamp must be a timezone-aware datetime")
    for name in ("portfolio_value", "total_pnl"):
        value = getattr(sample, name)
        if (
            isinstance(value, bool)
            or not isinstance(value, (int, float))
            or not math.isfinite(value)
        ):
            raise MalformedSample(f"{name} must be a finite number: {value!r}")
    for name in ("active_bots", "bot_count"):
        value = getattr(sample, name)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise MalformedSample(f"{name} must be a non-negative integer: {value!r}")
