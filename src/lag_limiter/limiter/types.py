from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, TypeVar

R = TypeVar("R", contravariant=True)


@dataclass(frozen=True)
class Replica:
    """A replica to wait on: display name plus optional connection DSN."""

    name: str
    dsn: Optional[str] = None

    def __str__(self) -> str:
        return self.name


class LagSource(Protocol[R]):
    """Returns a replica's current lag in seconds, or None if unknown.

    None is treated as "not caught up" by the barrier.
    """

    def __call__(self, replica: R) -> Optional[int]: ...


class ProgressSink(Protocol):
    """Receives status while the barrier waits on a lagging replica.

    Used only for user-facing text; never for control decisions.
    A sink may also define ``reset()``; the barrier calls it when a wait
    starts.
    """

    def __call__(
        self,
        fraction: float,
        elapsed: float,
        remaining: float,
        eta: float,
        replica_index: int,
    ) -> Any: ...
