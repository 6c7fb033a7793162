"""Replication-safe pacing: rate controller, replica barrier, batch runner."""

from .types import Replica, LagSource, ProgressSink
from .rate import RateController, DECREASE, HOLD, INCREASE
from .barrier import ReplicaBarrier
from .progress import ConsoleProgress
from .runner import ReplicaLagLimiter, ThrottledRunner, RunSummary

__all__ = [
    # types
    "Replica",
    "LagSource",
    "ProgressSink",
    # core
    "RateController",
    "DECREASE",
    "HOLD",
    "INCREASE",
    "ReplicaBarrier",
    # runtime
    "ConsoleProgress",
    "ReplicaLagLimiter",
    "ThrottledRunner",
    "RunSummary",
]
