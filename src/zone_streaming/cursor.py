"""Bounded grid cursor that feeds reference positions to the streamer."""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple
import logging
import time

import numpy as np

from zone_streaming.config import CursorConfig


logger = logging.getLogger(__name__)


PositionListener = Callable[[Tuple[float, float, float], float], None]

KEY_MOVES = {
    "w": (0, 1),
    "s": (0, -1),
    "d": (1, 0),
    "a": (-1, 0),
}


class GridCursor:
    """Integer cursor on a ``grid_size`` grid of ``cell_size`` cells.

    Moves are clamped to the grid and debounced: a move arriving within
    ``input_cooldown_s`` of the last accepted one is dropped.
    """

    def __init__(
        self,
        config: Optional[CursorConfig] = None,
        *,
        time_fn: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = config or CursorConfig()
        self._time_fn = time_fn
        self._listeners: List[PositionListener] = []
        self._last_move_ts: Optional[float] = None
        self._coordinate = self._clamp(self._cfg.start)

    @property
    def coordinate(self) -> Tuple[int, int]:
        return self._coordinate

    @property
    def position(self) -> Tuple[float, float, float]:
        cw, ch = self._cfg.cell_size
        col, row = self._coordinate
        return (float(col) * cw, 0.0, float(row) * ch)

    @property
    def radius(self) -> float:
        # square cell approximated by a circle through the cell width
        return float(self._cfg.cell_size[0]) / 2.0

    def subscribe(self, listener: PositionListener) -> None:
        self._listeners.append(listener)

    def publish(self) -> None:
        pos = self.position
        radius = self.radius
        for listener in list(self._listeners):
            listener(pos, radius)

    def move(self, dx: int, dy: int) -> bool:
        now = float(self._time_fn())
        if self._last_move_ts is not None and now - self._last_move_ts <= self._cfg.input_cooldown_s:
            return False
        target = self._clamp((self._coordinate[0] + int(dx), self._coordinate[1] + int(dy)))
        if target == self._coordinate:
            return False
        self._coordinate = target
        self._last_move_ts = now
        logger.debug("cursor moved to %s", target)
        self.publish()
        return True

    def press(self, key: str) -> bool:
        delta = KEY_MOVES.get(key.lower())
        if delta is None:
            return False
        return self.move(*delta)

    def _clamp(self, coord: Tuple[int, int]) -> Tuple[int, int]:
        upper = np.asarray(self._cfg.grid_size, dtype=np.int64) - 1
        clamped = np.clip(np.asarray(coord, dtype=np.int64), 0, np.maximum(upper, 0))
        return (int(clamped[0]), int(clamped[1]))


__all__ = ["GridCursor", "KEY_MOVES", "PositionListener"]
