"""
Replication-safe batch loop.

``ReplicaLagLimiter`` bundles a RateController and a ReplicaBarrier bound to
one job's spec, replicas and lag source. ``ThrottledRunner`` is the caller
side: run a batch, time it, feed the controller, resize the next batch, and
periodically wait for replicas.

Usage:
    limiter = ReplicaLagLimiter(
        spec=["max=1", "timeout=600"],
        replicas=[Replica("r1", dsn)],
        lag_source=PgReplicaLag(),
        target_time=0.5,
    )
    runner = ThrottledRunner(limiter, copy_rows, initial_size=1000)
    summary = runner.run(total=row_count)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, TypeVar, Union

from loguru import logger

from ..config import Settings, get_settings
from ..errors import MissingArgument
from ..spec import WaitSpec, validate_spec
from .barrier import ReplicaBarrier
from .rate import HOLD, RateController
from .types import LagSource, ProgressSink

R = TypeVar("R")

_MIN_ELAPSED = 1e-6


class ReplicaLagLimiter(Generic[R]):
    """Rate controller + replica barrier for one long-running job.

    Args:
        spec: Validated WaitSpec, or raw ``key=value`` tokens
        replicas: Replica handles, in polling order
        lag_source: Callable returning a replica's lag (or None)
        target_time: Desired seconds per batch on the primary
        sample_size: Warm-up observations (default 5)
        weight: Weight of the previous average (default 0.75)
        barrier: Optional pre-built barrier (e.g. with a fake clock)
    """

    def __init__(
        self,
        spec: Union[WaitSpec, Sequence[str], None],
        replicas: Optional[Sequence[R]],
        lag_source: Optional[LagSource[R]],
        target_time: Optional[float],
        sample_size: int = 5,
        weight: float = 0.75,
        *,
        barrier: Optional[ReplicaBarrier[R]] = None,
    ):
        if not spec:
            raise MissingArgument("spec")
        if replicas is None:
            raise MissingArgument("replicas")
        if lag_source is None:
            raise MissingArgument("lag_source")
        if target_time is None:
            raise MissingArgument("target_time")

        self.spec = spec if isinstance(spec, WaitSpec) else validate_spec(spec)
        self.replicas = list(replicas)
        self.lag_source = lag_source
        self.controller = RateController(target_time, sample_size=sample_size, weight=weight)
        self.barrier = barrier or ReplicaBarrier()

    @classmethod
    def from_settings(
        cls,
        spec: Union[WaitSpec, Sequence[str]],
        replicas: Sequence[R],
        lag_source: LagSource[R],
        settings: Optional[Settings] = None,
    ) -> "ReplicaLagLimiter[R]":
        """Build a limiter with TARGET_TIME, SAMPLE_SIZE, WEIGHT and CHECK_INTERVAL from settings."""
        settings = settings or get_settings()
        if spec and not isinstance(spec, WaitSpec):
            spec = validate_spec(spec, check=settings.CHECK_INTERVAL)
        return cls(
            spec,
            replicas,
            lag_source,
            target_time=settings.TARGET_TIME,
            sample_size=settings.SAMPLE_SIZE,
            weight=settings.WEIGHT,
        )

    def update(self, n: float, s: float) -> int:
        return self.controller.update(n, s)

    def wait(self, progress: Optional[ProgressSink] = None) -> bool:
        return self.barrier.wait(self.spec, self.replicas, self.lag_source, progress)


@dataclass(frozen=True)
class RunSummary:
    batches: int
    units: int
    final_size: int
    waits: int


class ThrottledRunner:
    """Runs ``batch(offset, size) -> units_done`` until done, pacing itself.

    After warm-up, whenever the controller signals a change the next batch
    size becomes ``avg_rate * target_time`` clamped to [min_size, max_size].
    A batch returning 0 units ends the run.
    """

    def __init__(
        self,
        limiter: ReplicaLagLimiter,
        batch: Callable[[int, int], int],
        initial_size: int,
        *,
        min_size: int = 1,
        max_size: Optional[int] = None,
        wait_every: int = 1,
        progress: Optional[ProgressSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if initial_size < 1:
            raise ValueError("initial_size must be >= 1")
        if min_size < 1:
            raise ValueError("min_size must be >= 1")
        if max_size is not None and max_size < min_size:
            raise ValueError("max_size must be >= min_size")
        if wait_every < 1:
            raise ValueError("wait_every must be >= 1")

        self._limiter = limiter
        self._batch = batch
        self._size = initial_size
        self._min = min_size
        self._max = max_size
        self._wait_every = wait_every
        self._progress = progress
        self._clock = clock

    @property
    def size(self) -> int:
        return self._size

    def run(self, total: Optional[int] = None) -> RunSummary:
        offset = 0
        batches = 0
        waits = 0

        while total is None or offset < total:
            size = self._size if total is None else min(self._size, total - offset)
            t0 = self._clock()
            done = self._batch(offset, size)
            elapsed = self._clock() - t0
            if done <= 0:
                break

            offset += done
            batches += 1
            adjust = self._limiter.update(done, max(elapsed, _MIN_ELAPSED))
            if adjust != HOLD:
                self._resize()

            if batches % self._wait_every == 0:
                self._limiter.wait(self._progress)
                waits += 1

        logger.info(f"Throttled run done: {offset} units in {batches} batches ({waits} waits)")
        return RunSummary(batches=batches, units=offset, final_size=self._size, waits=waits)

    def _resize(self) -> None:
        controller = self._limiter.controller
        new_size = max(self._min, int(controller.avg_rate * controller.target_time))
        if self._max is not None:
            new_size = min(self._max, new_size)
        if new_size != self._size:
            logger.debug(f"Batch size {self._size} -> {new_size} (rate {controller.avg_rate} n/s)")
            self._size = new_size
