"""Distance-driven zone streaming.

``ZoneStreamer.evaluate`` is called whenever the reference point settles.
It rewrites every zone's target flags from the load/unload radii and starts
at most one asyncio task per zone to move the zone toward its target. The
tasks re-check the target when they finish, so a zone whose target flipped
while a transfer was running catches up without another evaluation.

All state is owned by one event loop. Call :meth:`ZoneStreamer.evaluate`
on that loop, or :meth:`ZoneStreamer.evaluate_threadsafe` from elsewhere.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union
import asyncio
import logging
import time

import numpy as np

from zone_streaming.config import StreamerConfig
from zone_streaming.indicator import LoadingIndicator
from zone_streaming.loader import ContentLoader, OperationResult
from zone_streaming.logging_policy import LoggingToggles
from zone_streaming.metrics import Metrics
from zone_streaming.state import ZoneState, ZoneStatus, ZoneTransition
from zone_streaming.zones import ZoneAction, ZoneConfig, classify_distance, edge_distance


logger = logging.getLogger(__name__)


ZoneList = Sequence[Optional[ZoneConfig]]
ZoneSource = Union[ZoneList, Callable[[], ZoneList]]


class ZoneStreamer:
    """Loads and unloads zones around a moving reference point."""

    def __init__(
        self,
        zones: ZoneSource,
        loader: ContentLoader,
        *,
        indicator: Optional[LoadingIndicator] = None,
        config: Optional[StreamerConfig] = None,
        metrics: Optional[Metrics] = None,
        logging_toggles: Optional[LoggingToggles] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._zones = zones
        self._loader = loader
        self._cfg = config or StreamerConfig()
        toggles = logging_toggles or LoggingToggles()
        self._log_steps = bool(toggles.log_zone_steps)
        self.indicator = indicator or LoadingIndicator(log_changes=toggles.log_indicator)
        self.metrics = metrics or Metrics(window=self._cfg.metrics_window)
        self._loop = loop
        # Index in this list == index in the zone list.
        self.states: List[Optional[ZoneState]] = []
        self._tasks: Dict[int, asyncio.Task[None]] = {}
        self._reported_invalid: set[int] = set()

    # ---- evaluation ----------------------------------------------------------

    def evaluate(self, position: Sequence[float], reference_radius: float = 0.0) -> int:
        """Reconcile every zone against ``position``.

        ``reference_radius`` is the footprint of the reference point; distances
        are measured from its edge. Returns the number of tasks launched.
        """

        self.metrics.inc("zone_streaming_evaluations")
        pos = np.asarray(position, dtype=np.float64).reshape(-1)
        if pos.shape != (3,):
            logger.warning("evaluate: expected a 3D position, got shape %s", pos.shape)
            return 0

        zones = self._zone_list()
        launched = 0
        for index, config in enumerate(zones):
            if not isinstance(config, ZoneConfig) or not config.is_valid():
                self._report_invalid(index, config)
                continue
            self._reported_invalid.discard(index)
            state = self._state_for(index, config)
            distance = edge_distance(pos, config, reference_radius)
            action = classify_distance(distance, config)
            if action is ZoneAction.LOAD:
                launched += int(self.request_load(state))
            elif action is ZoneAction.UNLOAD:
                launched += int(self.request_unload(state))
        return launched

    def evaluate_threadsafe(self, position: Sequence[float], reference_radius: float = 0.0) -> None:
        """Queue an evaluation on the streamer's loop from any thread."""

        if self._loop is None:
            raise RuntimeError("evaluate_threadsafe requires a streamer bound to an event loop")
        self._loop.call_soon_threadsafe(
            self.evaluate,
            tuple(float(v) for v in position),
            float(reference_radius),
        )

    def request_load(self, state: Optional[ZoneState]) -> bool:
        if state is None:
            return False
        transition = state.request_load()
        if transition is None:
            self._report_step("%s skipping load, status is %s", state.name, state.status.value)
            return False
        loop = self._resolve_loop()
        if loop is None:
            state.cancel_launch(transition)
            return False
        self._report_step("%s starting load task", state.name)
        self._launch(loop, state, self._load_zone(state), "load")
        return True

    def request_unload(self, state: Optional[ZoneState]) -> bool:
        if state is None:
            return False
        transition = state.request_unload()
        if transition is None:
            if state.status is not ZoneStatus.UNLOADED:
                self._report_step("%s skipping unload, status is %s", state.name, state.status.value)
            return False
        loop = self._resolve_loop()
        if loop is None:
            state.cancel_launch(transition)
            return False
        self._report_step("%s starting unload task", state.name)
        self._launch(loop, state, self._unload_zone(state), "unload")
        return True

    # ---- tasks ---------------------------------------------------------------

    async def _load_zone(self, state: Optional[ZoneState]) -> None:
        if state is None or state.configuration is None:
            return
        config = state.configuration

        self.indicator.acquire()
        self.metrics.set("zone_streaming_indicator_requests", self.indicator.count)
        try:
            state.begin_loading()
            self._report_step("%s loading %s ...", state.name, config.address)
            self.metrics.inc("zone_streaming_loads_started")
            t0 = time.perf_counter()

            result = await self._call_loader("begin_load", self._loader.begin_load, config.address)
            if self._cfg.simulate_slow_connection and self._cfg.simulate_delay_s > 0.0:
                await asyncio.sleep(self._cfg.simulate_delay_s)

            if not result.ok:
                self._fail_load(state, result.error or "load failed")
                return
            if result.handle is None:
                self._fail_load(state, "loader returned no content handle")
                return

            state.mark_loaded(result.handle)
            activation = await self._call_loader("activate", self._loader.activate, result.handle)
            if not activation.ok:
                await self._release_handle(state, result.handle)
                self._fail_load(state, f"activation failed: {activation.error}")
                return

            state.mark_active()
            self.metrics.inc("zone_streaming_loads_succeeded")
            self.metrics.observe_ms("zone_streaming_load_ms", (time.perf_counter() - t0) * 1000.0)
        finally:
            self.indicator.release()
            self.metrics.set("zone_streaming_indicator_requests", self.indicator.count)
            self._update_zone_gauges()

        self._report_step("%s is loaded", state.name)
        if state.follow_up() is ZoneTransition.UNLOAD:
            self._report_step("%s is loaded, but not needed", state.name)
            self.metrics.inc("zone_streaming_catchups")
            self.request_unload(state)

    async def _unload_zone(self, state: Optional[ZoneState]) -> None:
        if state is None or state.configuration is None:
            return

        state.begin_unloading()
        self._report_step("%s unloading ...", state.name)
        self.metrics.inc("zone_streaming_unloads_started")
        t0 = time.perf_counter()

        error: Optional[str] = None
        handle = state.content_handle
        if handle is not None and self._handle_is_loaded(handle):
            result = await self._call_loader("begin_unload", self._loader.begin_unload, handle)
            if not result.ok:
                error = f"unload failed: {result.error}"
                logger.warning("%s: %s; marking unloaded anyway", state.name, error)
                self.metrics.inc("zone_streaming_unloads_failed")
        self.metrics.observe_ms("zone_streaming_unload_ms", (time.perf_counter() - t0) * 1000.0)

        state.mark_unloaded(error)
        self._update_zone_gauges()
        self._report_step("%s is unloaded", state.name)

        if state.follow_up() is ZoneTransition.LOAD:
            self._report_step("%s is unloaded, but needed again", state.name)
            self.metrics.inc("zone_streaming_catchups")
            self.request_load(state)

    def _fail_load(self, state: ZoneState, error: str) -> None:
        logger.error("Something is wrong with loading zone %s: %s", state.name, error)
        state.mark_load_failed(error)
        self.metrics.inc("zone_streaming_loads_failed")

    async def _release_handle(self, state: ZoneState, handle: Any) -> None:
        result = await self._call_loader("begin_unload", self._loader.begin_unload, handle)
        if not result.ok:
            logger.warning("%s: could not release content after failed activation: %s", state.name, result.error)

    async def _call_loader(
        self,
        op: str,
        fn: Callable[[Any], Awaitable[OperationResult]],
        arg: Any,
    ) -> OperationResult:
        try:
            result = await fn(arg)
        except Exception as exc:
            logger.exception("content loader %s raised for %r", op, arg)
            return OperationResult.failure(f"{op} raised {type(exc).__name__}: {exc}")
        if not isinstance(result, OperationResult):
            return OperationResult.failure(f"{op} returned {type(result).__name__}, expected OperationResult")
        return result

    def _handle_is_loaded(self, handle: Any) -> bool:
        is_loaded = getattr(self._loader, "is_loaded", None)
        if is_loaded is None:
            return True
        try:
            return bool(is_loaded(handle))
        except Exception:
            logger.debug("loader is_loaded check failed; assuming loaded", exc_info=True)
            return True

    # ---- scheduling ----------------------------------------------------------

    def _resolve_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        """Loop that may run a new task from the calling thread, if any."""

        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            pass
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.error("no event loop to run zone tasks on; call evaluate from a running loop")
            return None
        if loop.is_running():
            # owned by another thread; create_task from here would race it
            logger.error("streamer loop runs on another thread; use evaluate_threadsafe")
            return None
        return loop

    def _launch(
        self,
        loop: asyncio.AbstractEventLoop,
        state: ZoneState,
        coro: Awaitable[None],
        kind: str,
    ) -> None:
        label = f"zone-{kind}:{state.name}"
        task = loop.create_task(coro, name=label)  # type: ignore[arg-type]
        self._tasks[state.index] = task
        task.add_done_callback(partial(self._on_task_done, state.index, label))

    def _on_task_done(self, index: int, label: str, task: "asyncio.Task[None]") -> None:
        if self._tasks.get(index) is task:
            del self._tasks[index]
        if task.cancelled():
            logger.debug("Scheduled task '%s' cancelled", label)
            return
        try:
            task.result()
        except Exception:
            logger.exception("Scheduled task '%s' failed", label)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait until no zone has a task in flight, chained catch-ups included."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    # ---- state bookkeeping ---------------------------------------------------

    def _zone_list(self) -> List[Optional[ZoneConfig]]:
        zones = self._zones() if callable(self._zones) else self._zones
        return list(zones or ())

    def _state_for(self, index: int, config: ZoneConfig) -> ZoneState:
        while len(self.states) <= index:
            self.states.append(None)
        state = self.states[index]
        if state is None:
            state = ZoneState(configuration=config, index=index)
            self.states[index] = state
        return state

    def state(self, key: Union[int, str]) -> Optional[ZoneState]:
        if isinstance(key, int):
            return self.states[key] if 0 <= key < len(self.states) else None
        for state in self.states:
            if state is not None and state.name == key:
                return state
        return None

    def _report_invalid(self, index: int, config: object) -> None:
        self.metrics.inc("zone_streaming_invalid_configs")
        if index in self._reported_invalid:
            return
        self._reported_invalid.add(index)
        if config is None:
            logger.warning("zone #%d has no configuration; skipping", index)
        elif not isinstance(config, ZoneConfig):
            logger.warning("zone #%d is a %s, not a ZoneConfig; skipping", index, type(config).__name__)
        else:
            logger.warning("zone #%d (%s) has an invalid configuration; skipping", index, config.name)

    def _update_zone_gauges(self) -> None:
        loaded = sum(1 for s in self.states if s is not None and s.status is ZoneStatus.LOADED)
        self.metrics.set("zone_streaming_zones_loaded", loaded)

    def _report_step(self, msg: str, *args: object) -> None:
        logger.log(logging.INFO if self._log_steps else logging.DEBUG, msg, *args)

    def snapshot(self) -> Dict[str, object]:
        return {
            "indicator": {
                "visible": self.indicator.visible,
                "requests": self.indicator.count,
            },
            "in_flight": self.in_flight,
            "zones": [s.snapshot() for s in self.states if s is not None],
        }


__all__ = ["ZoneSource", "ZoneStreamer"]
