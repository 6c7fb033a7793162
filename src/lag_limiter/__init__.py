"""
Replica Lag Limiter

Keeps bulk writes on a primary replication-safe: pace batches from a smoothed
estimate of how long they take, and pause until replicas have caught up.

Usage:
    from lag_limiter import ReplicaLagLimiter, Replica, PgReplicaLag

    limiter = ReplicaLagLimiter(
        spec=["max=1", "timeout=600"],
        replicas=[Replica("standby-1", "postgresql://...")],
        lag_source=PgReplicaLag(),
        target_time=0.5,
    )
    adjust = limiter.update(rows_copied, seconds_taken)  # -1, 0 or +1
    limiter.wait()  # blocks until replicas are within max lag
"""

from .errors import (
    LagLimiterError,
    SpecError,
    EmptySpec,
    MalformedToken,
    UnknownKey,
    NonIntegerValue,
    InvalidContinueValue,
    MissingMax,
    MissingArgument,
    InvalidObservation,
    ReplicaTimeout,
    LagQueryError,
)
from .spec import WaitSpec, validate_spec
from .limiter import (
    Replica,
    RateController,
    ReplicaBarrier,
    ConsoleProgress,
    ReplicaLagLimiter,
    ThrottledRunner,
    RunSummary,
)
from .lag_source import PgReplicaLag
from .agent import AgentLogger, ExitStatus, LogLevel

__version__ = "1.0.0"
__all__ = [
    # spec
    "WaitSpec",
    "validate_spec",
    # core
    "Replica",
    "RateController",
    "ReplicaBarrier",
    "ConsoleProgress",
    "ReplicaLagLimiter",
    "ThrottledRunner",
    "RunSummary",
    "PgReplicaLag",
    # logging
    "AgentLogger",
    "ExitStatus",
    "LogLevel",
    # errors
    "LagLimiterError",
    "SpecError",
    "EmptySpec",
    "MalformedToken",
    "UnknownKey",
    "NonIntegerValue",
    "InvalidContinueValue",
    "MissingMax",
    "MissingArgument",
    "InvalidObservation",
    "ReplicaTimeout",
    "LagQueryError",
]
