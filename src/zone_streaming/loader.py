"""Content loader contract and an in-process simulated backend.

The streamer only talks to a loader through three coroutines that resolve
to an :class:`OperationResult`. Anything that is not ``ok`` is a failure;
exceptions raised by a loader are converted to failures by the streamer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Collection, Dict, Optional, Protocol, runtime_checkable
import asyncio
import itertools
import logging


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentHandle:
    """Opaque reference to one loaded content unit."""

    address: str
    token: int


@dataclass(frozen=True)
class OperationResult:
    ok: bool
    handle: Optional[ContentHandle] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, handle: Optional[ContentHandle] = None) -> "OperationResult":
        return cls(ok=True, handle=handle)

    @classmethod
    def failure(cls, error: str) -> "OperationResult":
        return cls(ok=False, error=str(error) or "unknown error")


@runtime_checkable
class ContentLoader(Protocol):
    async def begin_load(self, address: str) -> OperationResult:
        ...

    async def activate(self, handle: ContentHandle) -> OperationResult:
        ...

    async def begin_unload(self, handle: ContentHandle) -> OperationResult:
        ...

    def is_loaded(self, handle: ContentHandle) -> bool:
        ...


@dataclass
class SimulatedContentLoader:
    """Asyncio loader that pretends to fetch content by address.

    ``load_delay_s``/``unload_delay_s`` emulate transfer latency, and
    addresses listed in ``failing_addresses`` (or ``failing_activations``)
    resolve to failures.
    """

    load_delay_s: float = 0.0
    activate_delay_s: float = 0.0
    unload_delay_s: float = 0.0
    failing_addresses: Collection[str] = ()
    failing_activations: Collection[str] = ()
    failing_unloads: Collection[str] = ()
    resident: Dict[int, ContentHandle] = field(default_factory=dict)
    _tokens: "itertools.count[int]" = field(default_factory=lambda: itertools.count(1), repr=False)

    async def begin_load(self, address: str) -> OperationResult:
        await asyncio.sleep(max(0.0, float(self.load_delay_s)))
        if address in self.failing_addresses:
            return OperationResult.failure(f"content '{address}' is not available")
        handle = ContentHandle(address=address, token=next(self._tokens))
        self.resident[handle.token] = handle
        logger.debug("simulated load: %s -> token %d", address, handle.token)
        return OperationResult.success(handle)

    async def activate(self, handle: ContentHandle) -> OperationResult:
        await asyncio.sleep(max(0.0, float(self.activate_delay_s)))
        if handle.address in self.failing_activations:
            return OperationResult.failure(f"content '{handle.address}' failed to activate")
        return OperationResult.success(handle)

    async def begin_unload(self, handle: ContentHandle) -> OperationResult:
        await asyncio.sleep(max(0.0, float(self.unload_delay_s)))
        if handle.address in self.failing_unloads:
            return OperationResult.failure(f"content '{handle.address}' refused to unload")
        self.resident.pop(handle.token, None)
        logger.debug("simulated unload: %s (token %d)", handle.address, handle.token)
        return OperationResult.success()

    def is_loaded(self, handle: ContentHandle) -> bool:
        return handle.token in self.resident

    @property
    def resident_addresses(self) -> list[str]:
        return sorted(h.address for h in self.resident.values())


__all__ = [
    "ContentHandle",
    "ContentLoader",
    "OperationResult",
    "SimulatedContentLoader",
]
