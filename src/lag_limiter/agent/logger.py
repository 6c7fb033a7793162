"""
Leveled agent logger with optional forwarding to a remote status endpoint.

Lines are written as ``<UTC timestamp> <LEVEL> <message>``: WARNING and above
to stderr, the rest to stdout. warn/error/fatal also mark the shared
ExitStatus dirty, even when the level is below the configured minimum.

When a ``status_link`` is configured, every emitted event is queued as
``(severity, message)`` and POSTed by a background thread, so logging never
blocks on the network. ``close()`` drains the queue and joins the thread. It
is also registered with atexit, so a logger that is never closed is still
drained at interpreter exit.
"""

from __future__ import annotations

import atexit
import queue
import sys
import threading
import uuid
from enum import IntEnum
from typing import Optional, TextIO

import httpx
from loguru import logger

from ..errors import MissingArgument
from .status import ExitStatus


class LogLevel(IntEnum):
    """Agent log severities."""

    DEBUG = 1
    INFO = 2
    WARNING = 3
    ERROR = 4
    FATAL = 5


# loguru has no FATAL level; CRITICAL carries the same weight
_LOGURU_LEVELS = {
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
    LogLevel.ERROR: "ERROR",
    LogLevel.FATAL: "CRITICAL",
}

_FORMAT = "{time:YYYY-MM-DD[T]HH:mm:ss!UTC} {extra[label]} {message}"

_STOP = object()


def level_number(name: str) -> int:
    """Map a level name (DEBUG, INFO, WARNING, ERROR, FATAL) to its severity."""
    if not name:
        raise ValueError("No log level name given")
    try:
        return int(LogLevel[name.upper()])
    except KeyError:
        raise ValueError(f"Invalid log level name: {name}") from None


class AgentLogger:
    """Leveled logger writing through dedicated loguru sinks.

    Args:
        exit_status: Shared flag set by warn/error/fatal
        level: Minimum severity to emit (default INFO)
        status_link: URL to POST events to; enables the forwarding thread
        client: httpx.Client to POST with (default: a new client)
        stdout, stderr: Streams for the two sinks (default: sys.stdout/sys.stderr)
        queue_size: Max events pending delivery; extra events are dropped
    """

    def __init__(
        self,
        exit_status: Optional[ExitStatus],
        level: LogLevel | int = LogLevel.INFO,
        *,
        status_link: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        queue_size: int = 1000,
    ):
        if exit_status is None:
            raise MissingArgument("exit_status")

        self.exit_status = exit_status
        self.level = LogLevel(level)
        self.status_link = status_link
        self.dropped = 0
        self._closed = False

        self._id = uuid.uuid4().hex
        self._log = logger.bind(agent_logger=self._id)
        self._handler_ids = [
            logger.add(
                stdout or sys.stdout,
                format=_FORMAT,
                level="DEBUG",
                colorize=False,
                filter=lambda r: self._owns(r) and r["extra"]["severity"] < LogLevel.WARNING,
            ),
            logger.add(
                stderr or sys.stderr,
                format=_FORMAT,
                level="DEBUG",
                colorize=False,
                filter=lambda r: self._owns(r) and r["extra"]["severity"] >= LogLevel.WARNING,
            ),
        ]

        self._queue: Optional[queue.Queue] = None
        self._thread: Optional[threading.Thread] = None
        self._client: Optional[httpx.Client] = None
        self._own_client = False
        if status_link:
            self._queue = queue.Queue(maxsize=queue_size)
            self._client = client or httpx.Client(timeout=5.0)
            self._own_client = client is None
            self._thread = threading.Thread(
                target=self._worker, name="agent-logger-forwarder", daemon=True
            )
            self._thread.start()
            atexit.register(self.close)
            logger.debug(f"Agent logger forwarding events to {status_link}")

    # --------------------------- public API

    def debug(self, message: str) -> None:
        self._emit(LogLevel.DEBUG, message)

    def info(self, message: str) -> None:
        self._emit(LogLevel.INFO, message)

    def warn(self, message: str) -> None:
        self.exit_status.mark_dirty()
        self._emit(LogLevel.WARNING, message)

    def error(self, message: str) -> None:
        self.exit_status.mark_dirty()
        self._emit(LogLevel.ERROR, message)

    def fatal(self, message: str) -> None:
        self.exit_status.mark_dirty()
        self._emit(LogLevel.FATAL, message)

    def close(self) -> None:
        """Deliver queued events, stop the worker, remove the sinks.

        Safe to call multiple times. A closed logger emits nothing.
        """
        if self._closed:
            return
        self._closed = True

        if self._thread is not None:
            atexit.unregister(self.close)
            # a dead worker would never make room for the stop marker
            while self._thread.is_alive():
                try:
                    self._queue.put(_STOP, timeout=0.1)
                    break
                except queue.Full:
                    continue
            self._thread.join()
            self._thread = None
        if self._client is not None and self._own_client:
            self._client.close()
        self._client = None

        for handler_id in self._handler_ids:
            logger.remove(handler_id)
        self._handler_ids = []

        if self.dropped:
            logger.warning(f"Agent logger dropped {self.dropped} events (queue full)")

    def __enter__(self) -> "AgentLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------------------- internals

    def _owns(self, record) -> bool:
        return record["extra"].get("agent_logger") == self._id

    def _emit(self, severity: LogLevel, message: str) -> None:
        if severity < self.level or self._closed:
            return
        message = message.rstrip("\n")
        self._log.bind(severity=int(severity), label=severity.name).log(
            _LOGURU_LEVELS[severity], message
        )
        if self._queue is not None:
            try:
                self._queue.put_nowait((int(severity), message))
            except queue.Full:
                self.dropped += 1

    def _worker(self) -> None:
        while True:
            event = self._queue.get()
            if event is _STOP:
                break
            self._post(event)

    def _post(self, event: tuple[int, str]) -> None:
        severity, message = event
        try:
            resp = self._client.post(
                self.status_link, json={"level": severity, "message": message}
            )
            if resp.status_code >= 400:
                logger.debug(f"Status link returned {resp.status_code}: {resp.text[:200]}")
        except Exception as exc:
            # Best-effort delivery - never let one event stop the worker
            logger.debug(f"Status link delivery failed: {type(exc).__name__}: {exc}")
