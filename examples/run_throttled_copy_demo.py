"""
Demo: replication-safe bulk copy with simulated replicas.

A fake "copy" gets slower as batches grow, and a simulated replica falls
behind whenever the primary writes faster than it can apply. The runner
shrinks/grows batches from the controller's signal and pauses on the barrier
until the replica catches up.
"""

import time
from dataclasses import dataclass

from loguru import logger

from lag_limiter import (
    AgentLogger,
    ConsoleProgress,
    ExitStatus,
    Replica,
    ReplicaLagLimiter,
    ThrottledRunner,
)


@dataclass
class SimReplica:
    """Replica that applies `apply_rate` rows/s and lags behind the primary."""

    apply_rate: float
    backlog: float = 0.0
    last: float = 0.0

    def write(self, rows: int) -> None:
        self._drain()
        self.backlog += rows

    def lag(self) -> int:
        self._drain()
        return int(self.backlog / self.apply_rate)

    def _drain(self) -> None:
        now = time.monotonic()
        if self.last:
            self.backlog = max(0.0, self.backlog - (now - self.last) * self.apply_rate)
        self.last = now


def main():
    status = ExitStatus()
    sims = {"standby-1": SimReplica(apply_rate=4000), "standby-2": SimReplica(apply_rate=6000)}
    replicas = [Replica(name) for name in sims]

    def copy_rows(offset: int, size: int) -> int:
        time.sleep(0.0001 * size)
        for sim in sims.values():
            sim.write(size)
        return size

    with AgentLogger(status) as log:
        limiter = ReplicaLagLimiter(
            spec=["max=1", "timeout=30"],
            replicas=replicas,
            lag_source=lambda r: sims[r.name].lag(),
            target_time=0.1,
        )
        runner = ThrottledRunner(
            limiter,
            copy_rows,
            initial_size=200,
            max_size=5000,
            wait_every=5,
            progress=ConsoleProgress(replicas),
        )
        log.info("Copying 50,000 rows")
        summary = runner.run(total=50_000)
        log.info(
            f"Done: {summary.units} rows in {summary.batches} batches, "
            f"final batch size {summary.final_size}, {summary.waits} replica waits"
        )

    logger.info(f"Exit status: {status.exit_code}")


if __name__ == "__main__":
    main()
