"""
Replica barrier: block until every replica's lag is at or below a maximum.

Replicas are checked one at a time in the order given. A lagging replica is
re-checked every ``spec.check`` seconds; the next replica is only looked at
once the current one has caught up. The timeout covers the whole call and is
not reset per replica, so a slow early replica leaves later ones less time.
"""

from __future__ import annotations

import time
from typing import Callable, Generic, Optional, Sequence, TypeVar

from loguru import logger

from ..errors import MissingArgument, ReplicaTimeout
from ..metrics.registry import metrics_registry
from ..spec import WaitSpec
from .types import LagSource, ProgressSink

R = TypeVar("R")


class ReplicaBarrier(Generic[R]):
    """Sequential, blocking catch-up barrier.

    Clock and sleep are injectable so the polling loop can be driven
    deterministically:

        barrier = ReplicaBarrier(clock=fake.now, sleep=fake.sleep)
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        wall_clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self._sleep = sleep
        self._wall_clock = wall_clock

    def wait(
        self,
        spec: WaitSpec,
        replicas: Sequence[R],
        lag_source: LagSource[R],
        progress: Optional[ProgressSink] = None,
    ) -> bool:
        """Wait for all replicas to report lag <= ``spec.max``.

        Returns:
            True when all replicas caught up, or when the timeout fired and
            ``spec.continue_`` is "yes".

        Raises:
            ReplicaTimeout: timeout fired and ``spec.continue_`` is "no"
        """
        if spec is None:
            raise MissingArgument("spec")
        if replicas is None:
            raise MissingArgument("replicas")
        if lag_source is None:
            raise MissingArgument("lag_source")

        if progress is not None and hasattr(progress, "reset"):
            progress.reset()

        n_replicas = len(replicas)
        idx = 0
        t_start = self._clock()
        elapsed = 0.0

        while idx < n_replicas and elapsed < spec.timeout:
            replica = replicas[idx]
            logger.debug(f"Checking replica lag on {replica}")
            lag = lag_source(replica)
            if lag is None or lag > spec.max:
                outcome = "unknown" if lag is None else "lagging"
                metrics_registry.replica_polls_total.labels(outcome=outcome).inc()
                logger.debug(f"Replica lag {lag} > {spec.max}; sleeping {spec.check}")
                if progress is not None:
                    self._report(progress, spec, self._clock() - t_start, idx)
                self._sleep(spec.check)
            else:
                metrics_registry.replica_polls_total.labels(outcome="caught_up").inc()
                logger.debug(f"Replica {replica} ready, lag {lag} <= {spec.max}")
                idx += 1
            elapsed = self._clock() - t_start

        metrics_registry.barrier_wait_seconds.observe(elapsed)

        if idx < n_replicas:
            if not spec.continue_on_timeout:
                metrics_registry.barrier_waits_total.labels(outcome="timeout_fail").inc()
                raise ReplicaTimeout(idx, replicas[idx], elapsed)
            metrics_registry.barrier_waits_total.labels(outcome="timeout_continue").inc()
            logger.warning(
                f"Timeout waiting for replica {replicas[idx]} to catch up "
                f"after {elapsed:.1f}s; continuing"
            )
            return True

        metrics_registry.barrier_waits_total.labels(outcome="ok").inc()
        logger.info(f"All {n_replicas} replicas caught up in {elapsed:.1f}s")
        return True

    def _report(self, progress: ProgressSink, spec: WaitSpec, elapsed: float, idx: int) -> None:
        remaining = max(spec.timeout - elapsed, 0.0)
        fraction = min(elapsed / spec.timeout, 1.0)
        eta = self._wall_clock() + remaining
        progress(fraction, elapsed, remaining, eta, idx)
