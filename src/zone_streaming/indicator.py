"""Reference-counted loading indicator shared by all in-flight loads."""

from __future__ import annotations

from typing import Callable, Optional
import logging
import threading


logger = logging.getLogger(__name__)


VisibilitySink = Callable[[bool], None]


class LoadingIndicator:
    """Thread-safe request counter with a derived ``visible`` flag.

    Every load increments before it starts and decrements when it ends,
    successful or not. The counter never drops below zero, so a stray
    decrement cannot hide the indicator while another load is running.
    The optional sink receives the boolean only when it actually changes,
    under the lock, so notifications arrive in the order the flag flipped.
    The lock is re-entrant; a sink may read ``visible`` or ``count``.
    """

    def __init__(self, sink: Optional[VisibilitySink] = None, *, log_changes: bool = False) -> None:
        self._lock = threading.RLock()
        self._count = 0
        self._visible = False
        self._sink = sink
        self._log_changes = bool(log_changes)

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def visible(self) -> bool:
        with self._lock:
            return self._visible

    def acquire(self) -> bool:
        with self._lock:
            self._count += 1
            if self._update_locked():
                self._emit(self._visible)
            return self._visible

    def release(self) -> bool:
        with self._lock:
            if self._count <= 0:
                logger.debug("loading indicator release without matching acquire")
            self._count = max(0, self._count - 1)
            if self._update_locked():
                self._emit(self._visible)
            return self._visible

    def _update_locked(self) -> bool:
        visible = self._count > 0
        if visible == self._visible:
            return False
        self._visible = visible
        return True

    def _emit(self, visible: bool) -> None:
        if self._log_changes:
            logger.info("loading indicator %s", "shown" if visible else "hidden")
        if self._sink is None:
            return
        try:
            self._sink(visible)
        except Exception:
            logger.exception("loading indicator sink failed (visible=%s)", visible)


__all__ = ["LoadingIndicator", "VisibilitySink"]
