from __future__ import annotations

import sys
from typing import Callable, Optional, Sequence


def _stderr(line: str) -> None:
    print(line, file=sys.stderr, flush=True)


class ConsoleProgress:
    """Progress sink that tells the user which replica is being waited on.

    The first report for a replica says "Waiting for replica ... to catch
    up..."; later reports for the same replica say "Still waiting (N
    seconds)...". The barrier calls ``reset()`` at the start of every wait,
    so one sink can be reused across waits.
    """

    def __init__(self, replicas: Sequence, echo: Optional[Callable[[str], None]] = None):
        self._replicas = replicas
        self._echo = echo or _stderr
        self._reported: set[int] = set()

    def reset(self) -> None:
        self._reported.clear()

    def __call__(
        self,
        fraction: float,
        elapsed: float,
        remaining: float,
        eta: float,
        replica_index: int,
    ) -> None:
        if replica_index not in self._reported:
            self._reported.add(replica_index)
            name = self._replicas[replica_index] if replica_index < len(self._replicas) else ""
            self._echo(f"Waiting for replica {name} to catch up...")
        else:
            self._echo(f"Still waiting ({int(elapsed)} seconds)...")
