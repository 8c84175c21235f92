"""Per-zone streaming state machine.

``ZoneState`` keeps what a zone *is* (status plus the observed ``is_loaded``
and ``is_active`` flags) next to what it *should be* (the target flags the
streamer rewrites on every evaluation). The status field doubles as the
gate that keeps a single load or unload in flight per zone:

    UNLOADED -> LOADING -> LOADED -> UNLOADING -> UNLOADED

Request methods only flip the status when they decide a transfer must
start; completion methods refuse to run from any other status so a
transition can never skip a state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
import threading

from zone_streaming.zones import ZoneConfig


class ZoneStateError(RuntimeError):
    """Raised when a completion arrives in a status that cannot accept it."""


class ZoneStatus(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    UNLOADING = "unloading"

    @property
    def in_flight(self) -> bool:
        return self in (ZoneStatus.LOADING, ZoneStatus.UNLOADING)


class ZoneTransition(str, Enum):
    LOAD = "load"
    UNLOAD = "unload"


@dataclass
class ZoneState:
    configuration: ZoneConfig
    index: int = 0
    status: ZoneStatus = ZoneStatus.UNLOADED
    is_loaded: bool = False
    is_active: bool = False
    target_is_loaded: bool = False
    target_is_active: bool = False
    content_handle: Optional[Any] = None
    last_error: Optional[str] = None
    load_failures: int = 0
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.configuration.name

    # ---- requests (orchestrator side) ---------------------------------------

    def request_load(self) -> Optional[ZoneTransition]:
        """Mark the zone as wanted; return LOAD when a load must be launched."""

        with self._lock:
            self.target_is_active = True
            self.target_is_loaded = True
            if self.status is not ZoneStatus.UNLOADED:
                return None
            self.status = ZoneStatus.LOADING
            return ZoneTransition.LOAD

    def request_unload(self) -> Optional[ZoneTransition]:
        """Mark the zone as unwanted; return UNLOAD when an unload must be launched.

        An already unloaded zone is left untouched, targets included.
        """

        with self._lock:
            if self.status is ZoneStatus.UNLOADED:
                return None
            self.target_is_active = False
            self.target_is_loaded = False
            if self.status is not ZoneStatus.LOADED:
                return None
            self.status = ZoneStatus.UNLOADING
            return ZoneTransition.UNLOAD

    def cancel_launch(self, transition: ZoneTransition) -> None:
        """Undo the status flip of a request whose task could not be started.

        Target flags keep the requested values so a later evaluation retries.
        """

        with self._lock:
            if transition is ZoneTransition.LOAD:
                self._expect(ZoneStatus.LOADING, action="cancel a load launch")
                self.status = ZoneStatus.UNLOADED
            else:
                self._expect(ZoneStatus.UNLOADING, action="cancel an unload launch")
                self.status = ZoneStatus.LOADED

    # ---- completions (task side) --------------------------------------------

    def begin_loading(self) -> None:
        with self._lock:
            self._expect(ZoneStatus.UNLOADED, ZoneStatus.LOADING, action="begin loading")
            self.status = ZoneStatus.LOADING

    def mark_loaded(self, handle: Any) -> None:
        with self._lock:
            self._expect(ZoneStatus.LOADING, action="store a loaded handle")
            self.content_handle = handle
            self.is_loaded = True
            self.last_error = None

    def mark_active(self) -> None:
        with self._lock:
            self._expect(ZoneStatus.LOADING, action="activate")
            if not self.is_loaded:
                raise ZoneStateError(f"{self.name}: cannot activate before the content is loaded")
            self.is_active = True
            self.status = ZoneStatus.LOADED

    def mark_load_failed(self, error: str) -> None:
        """Revert a failed load to UNLOADED so a later evaluation can retry it."""

        with self._lock:
            self._expect(ZoneStatus.LOADING, action="fail a load")
            self.last_error = error
            self.load_failures += 1
            self.content_handle = None
            self.is_loaded = False
            self.is_active = False
            self.status = ZoneStatus.UNLOADED

    def begin_unloading(self) -> None:
        with self._lock:
            self._expect(ZoneStatus.LOADED, ZoneStatus.UNLOADING, action="begin unloading")
            self.status = ZoneStatus.UNLOADING

    def mark_unloaded(self, error: Optional[str] = None) -> None:
        with self._lock:
            self._expect(ZoneStatus.UNLOADING, action="finish unloading")
            self.is_loaded = False
            self.is_active = False
            self.content_handle = None
            if error is not None:
                self.last_error = error
            self.status = ZoneStatus.UNLOADED

    def follow_up(self) -> Optional[ZoneTransition]:
        """Transition needed to catch up with a target that moved mid-flight."""

        with self._lock:
            if self.status is ZoneStatus.LOADED and not self.target_is_loaded:
                return ZoneTransition.UNLOAD
            if self.status is ZoneStatus.UNLOADED and self.target_is_loaded:
                return ZoneTransition.LOAD
            return None

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                "index": int(self.index),
                "name": self.name,
                "address": self.configuration.address,
                "status": self.status.value,
                "is_loaded": bool(self.is_loaded),
                "is_active": bool(self.is_active),
                "target_is_loaded": bool(self.target_is_loaded),
                "target_is_active": bool(self.target_is_active),
                "load_failures": int(self.load_failures),
                "last_error": self.last_error,
            }

    def _expect(self, *allowed: ZoneStatus, action: str) -> None:
        if self.status not in allowed:
            expected = "/".join(s.value for s in allowed)
            raise ZoneStateError(
                f"{self.name}: cannot {action} while {self.status.value} (expected {expected})"
            )


__all__ = [
    "ZoneState",
    "ZoneStateError",
    "ZoneStatus",
    "ZoneTransition",
]
