from __future__ import annotations

import threading


class ExitStatus:
    """Shared "had warnings/errors" flag, read by the host at the end of a run.

    Example:
        status = ExitStatus()
        log = AgentLogger(exit_status=status)
        ...
        sys.exit(status.exit_code)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._dirty = False

    def mark_dirty(self) -> None:
        with self._lock:
            self._dirty = True

    @property
    def dirty(self) -> bool:
        with self._lock:
            return self._dirty

    @property
    def exit_code(self) -> int:
        return 1 if self.dirty else 0
