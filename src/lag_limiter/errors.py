"""
Custom exceptions for the replica lag limiter.

Spec validation errors are distinct, named conditions so callers (and the CLI)
can report exactly which part of a ``--replica-lag`` spec is wrong.
"""

from __future__ import annotations

from typing import Any, Optional


class LagLimiterError(Exception):
    """Base error for the lag limiter."""

    pass


# --------------------------- spec validation


class SpecError(LagLimiterError, ValueError):
    """A wait spec could not be validated."""

    def __init__(self, message: str, token: Optional[str] = None):
        super().__init__(message)
        self.token = token


class EmptySpec(SpecError):
    """No spec tokens were given."""

    pass


class MalformedToken(SpecError):
    """Token is not of the form key=value."""

    pass


class UnknownKey(SpecError):
    """Key is not one of max, timeout, continue."""

    pass


class NonIntegerValue(SpecError):
    """max/timeout value is not a positive integer."""

    pass


class InvalidContinueValue(SpecError):
    """continue value is not yes or no."""

    pass


class MissingMax(SpecError):
    """No max token was given."""

    pass


# --------------------------- construction / runtime


class MissingArgument(LagLimiterError, TypeError):
    """A required constructor argument was not supplied."""

    def __init__(self, argument: str):
        super().__init__(f"{argument} is required")
        self.argument = argument


class InvalidObservation(LagLimiterError, ValueError):
    """A batch observation cannot be used (elapsed time must be > 0)."""

    pass


class ReplicaTimeout(LagLimiterError):
    """Timed out waiting for a replica to catch up."""

    def __init__(self, replica_index: int, replica: Any, elapsed: float):
        super().__init__(f"Timeout waiting for replica {replica} to catch up")
        self.replica_index = replica_index
        self.replica = replica
        self.elapsed = elapsed


class LagQueryError(LagLimiterError):
    """Querying a replica's lag failed."""

    pass


def map_db_error(e: Exception) -> LagLimiterError:
    import psycopg

    if isinstance(e, psycopg.OperationalError):
        return LagQueryError(f"replica unreachable: {e}")
    if isinstance(e, psycopg.errors.InsufficientPrivilege):
        return LagQueryError(f"not allowed to read replication status: {e}")
    return LagQueryError(str(e))
