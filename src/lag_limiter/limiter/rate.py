"""
Rate controller: weighted decaying average of primary operation time.

``update()`` returns an adjustment (-1 = decrease, 0 = none, +1 = increase)
based on how long batches on the primary are taking compared to a target.
The first ``sample_size`` observations are plain-averaged (warm-up); after
that each new observation only carries ``1 - weight`` of the average, so
temporary variations don't cause volatility.
"""

from __future__ import annotations

import math
from typing import Optional

from loguru import logger

from ..errors import InvalidObservation, MissingArgument
from ..metrics.registry import metrics_registry

DECREASE = -1
HOLD = 0
INCREASE = 1


class RateController:
    """Tri-state pacing signal from (work, elapsed) observations.

    Not safe for concurrent ``update()`` calls (single writer).

    Args:
        target_time: Desired seconds per batch
        sample_size: Observations collected before smoothing starts
        weight: Weight of the previous average, in [0, 1]. Values outside
            that range are a caller error and are not checked.

    Example:
        rc = RateController(target_time=0.5)
        for batch in batches:
            t0 = time.monotonic()
            n = copy_rows(batch)
            adjust = rc.update(n, time.monotonic() - t0)
    """

    def __init__(
        self,
        target_time: Optional[float],
        sample_size: int = 5,
        weight: float = 0.75,
    ):
        if target_time is None:
            raise MissingArgument("target_time")
        if target_time <= 0:
            raise ValueError("target_time must be > 0")
        if sample_size < 1:
            raise ValueError("sample_size must be >= 1")

        self.target_time = float(target_time)
        self.sample_size = sample_size
        self.weight = weight

        # warm-up accumulators
        self.n_vals = 0
        self.total_n = 0.0
        self.total_s = 0.0

        self._avg_n: Optional[float] = None
        self._avg_s: Optional[float] = None
        self._avg_rate: Optional[int] = None

    @property
    def is_warm(self) -> bool:
        return self._avg_rate is not None

    @property
    def avg_n(self) -> Optional[float]:
        return self._avg_n

    @property
    def avg_s(self) -> Optional[float]:
        return self._avg_s

    @property
    def avg_rate(self) -> Optional[int]:
        """Smoothed units per second (floored), None during warm-up."""
        return self._avg_rate

    def update(self, n: float, s: float) -> int:
        """Record ``n`` units of work done in ``s`` seconds.

        Returns:
            -1 if batches are too slow (decrease), +1 if too fast (increase),
            0 on target or while warming up.

        Raises:
            InvalidObservation: ``s`` is zero or negative
        """
        if s <= 0:
            raise InvalidObservation(f"elapsed time must be > 0, got {s}")

        logger.debug(f"Primary op: {n} n / {s} s")

        if not self.is_warm:
            self.n_vals += 1
            self.total_n += n
            self.total_s += s
            if self.n_vals == self.sample_size:
                self._avg_n = self.total_n / self.n_vals
                self._avg_s = self.total_s / self.n_vals
                self._avg_rate = math.floor(self._avg_n / self._avg_s)
                logger.debug(
                    f"Initial avg n: {self._avg_n} s: {self._avg_s} "
                    f"rate: {self._avg_rate} n/s"
                )
                self.n_vals = 0
                self.total_n = 0.0
                self.total_s = 0.0
            self._record(HOLD)
            return HOLD

        w = self.weight
        self._avg_n = self._avg_n * w + n * (1 - w)
        self._avg_s = self._avg_s * w + s * (1 - w)
        self._avg_rate = math.floor(self._avg_n / self._avg_s)
        logger.debug(
            f"Weighted avg n: {self._avg_n} s: {self._avg_s} rate: {self._avg_rate} n/s"
        )

        if self._avg_s < self.target_time:
            adjust = INCREASE
        elif self._avg_s > self.target_time:
            adjust = DECREASE
        else:
            adjust = HOLD
        self._record(adjust)
        return adjust

    def _record(self, adjust: int) -> None:
        metrics_registry.rate_updates_total.labels(signal=str(adjust)).inc()
        if self.is_warm:
            metrics_registry.avg_rate.set(self._avg_rate)
            metrics_registry.avg_batch_seconds.set(self._avg_s)
