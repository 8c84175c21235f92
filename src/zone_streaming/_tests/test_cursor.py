from __future__ import annotations

import pytest

from zone_streaming.config import CursorConfig
from zone_streaming.cursor import GridCursor


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _cursor(**kwargs) -> tuple[GridCursor, FakeClock, list]:
    clock = FakeClock()
    cfg = CursorConfig(**kwargs)
    cursor = GridCursor(cfg, time_fn=clock)
    events: list = []
    cursor.subscribe(lambda pos, radius: events.append((pos, radius)))
    return cursor, clock, events


def test_position_and_radius_follow_cell_size() -> None:
    cursor, _clock, events = _cursor(cell_size=(2.0, 3.0), start=(1, 2))
    assert cursor.position == (2.0, 0.0, 6.0)
    assert cursor.radius == pytest.approx(1.0)
    cursor.publish()
    assert events == [((2.0, 0.0, 6.0), 1.0)]


def test_moves_are_clamped_to_grid() -> None:
    cursor, clock, events = _cursor(grid_size=(3, 2))
    assert cursor.move(-1, 0) is False
    assert cursor.press("d") is True
    clock.now += 1.0
    assert cursor.move(5, 5) is True
    assert cursor.coordinate == (2, 1)
    clock.now += 1.0
    assert cursor.press("w") is False
    assert len(events) == 2


def test_input_cooldown_drops_fast_moves() -> None:
    cursor, clock, events = _cursor(input_cooldown_s=0.25)
    assert cursor.press("d") is True
    clock.now += 0.125
    assert cursor.press("d") is False
    clock.now += 0.125
    # exactly at the cooldown edge is still ignored
    assert cursor.press("d") is False
    clock.now += 0.125
    assert cursor.press("d") is True
    assert cursor.coordinate == (2, 0)
    assert len(events) == 2


def test_unknown_key_is_ignored() -> None:
    cursor, _clock, events = _cursor()
    assert cursor.press("q") is False
    assert events == []


def test_start_outside_grid_is_clamped() -> None:
    cursor, _clock, _events = _cursor(grid_size=(4, 4), start=(9, -3))
    assert cursor.coordinate == (3, 0)
