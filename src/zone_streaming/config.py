"""Centralized zone streaming configuration.

Typed configuration objects plus loaders that read the environment once.
Loaders are side-effect free and never raise on malformed input: bad
values fall back to defaults and broken JSON is logged and ignored. The
launcher calls :func:`load_streamer_ctx` and passes the result down.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple
import json
import logging
import os

from zone_streaming.logging_policy import DebugPolicy, load_debug_policy
from zone_streaming.zones import ZoneConfig, parse_zone_list


logger = logging.getLogger(__name__)


# ---- Helpers -----------------------------------------------------------------

def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    v = env.get(name)
    if v is None:
        return bool(default)
    v = v.strip().lower()
    return v not in ("0", "", "false", "no", "off")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    v = env.get(name)
    if v is None:
        return int(default)
    try:
        return int(v)
    except Exception:
        return int(default)


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    v = env.get(name)
    if v is None:
        return float(default)
    try:
        return float(v)
    except Exception:
        return float(default)


def _env_str(env: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    v = env.get(name)
    if v is None:
        return default
    v = v.strip()
    return v if v != "" else default


def _cfg_float(value: object, default: float) -> float:
    if value is None or isinstance(value, bool):
        return float(default)
    if isinstance(value, (int, float, str)):
        try:
            return float(value)
        except Exception:
            return float(default)
    return float(default)


def _cfg_pair(value: object, default: Tuple[float, float]) -> Tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return default
    try:
        return (float(value[0]), float(value[1]))
    except Exception:
        return default


def _cfg_int_pair(value: object, default: Tuple[int, int]) -> Tuple[int, int]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return default
    try:
        return (int(value[0]), int(value[1]))
    except Exception:
        return default


def _load_json_config(env: Mapping[str, str], name: str) -> dict[str, object]:
    raw = env.get(name)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except Exception:
        logger.warning("Failed to parse %s; ignoring", name, exc_info=True)
        return {}
    if isinstance(data, dict):
        return data
    logger.warning("%s must be a JSON object; ignoring", name)
    return {}


# ---- Types -------------------------------------------------------------------

@dataclass(frozen=True)
class StreamerConfig:
    """Runtime knobs for :class:`~zone_streaming.streamer.ZoneStreamer`."""

    # Test/simulation hook: extra wait after every begin-load.
    simulate_slow_connection: bool = False
    simulate_delay_s: float = 1.0
    metrics_window: int = 512


@dataclass(frozen=True)
class CursorConfig:
    cell_size: Tuple[float, float] = (1.0, 1.0)
    grid_size: Tuple[int, int] = (10, 10)
    input_cooldown_s: float = 0.1
    start: Tuple[int, int] = (0, 0)


@dataclass(frozen=True)
class StreamerCtx:
    """Resolved runtime context, built once at start-up."""

    cfg: StreamerConfig = StreamerConfig()
    cursor: CursorConfig = CursorConfig()
    debug_policy: DebugPolicy = field(default_factory=lambda: load_debug_policy({}))
    zones: Tuple[Optional[ZoneConfig], ...] = ()


# ---- Loaders -----------------------------------------------------------------

def load_streamer_config(env: Optional[Mapping[str, str]] = None) -> StreamerConfig:
    """Load streamer configuration from environment (no side effects).

    Environment keys consulted:
    - ZONE_STREAMING_SIMULATE_SLOW, ZONE_STREAMING_SIMULATE_DELAY_S
    - ZONE_STREAMING_METRICS_WINDOW
    """

    if env is None:
        env = os.environ
    return StreamerConfig(
        simulate_slow_connection=_env_bool(env, "ZONE_STREAMING_SIMULATE_SLOW", False),
        simulate_delay_s=max(0.0, _env_float(env, "ZONE_STREAMING_SIMULATE_DELAY_S", 1.0)),
        metrics_window=max(16, _env_int(env, "ZONE_STREAMING_METRICS_WINDOW", 512)),
    )


def load_cursor_config(env: Optional[Mapping[str, str]] = None) -> CursorConfig:
    if env is None:
        env = os.environ
    raw = _load_json_config(env, "ZONE_STREAMING_CURSOR_CONFIG")
    defaults = CursorConfig()
    cell_size = _cfg_pair(raw.get("cell_size"), defaults.cell_size)
    grid_size = _cfg_int_pair(raw.get("grid_size"), defaults.grid_size)
    grid_size = (max(1, grid_size[0]), max(1, grid_size[1]))
    start = _cfg_int_pair(raw.get("start"), defaults.start)
    return CursorConfig(
        cell_size=cell_size,
        grid_size=grid_size,
        input_cooldown_s=max(0.0, _cfg_float(raw.get("input_cooldown_s"), defaults.input_cooldown_s)),
        start=start,
    )


def read_zone_file(path: str | Path) -> List[Optional[ZoneConfig]]:
    """Read a JSON zone list from ``path``; unreadable files yield no zones."""

    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning("Failed to read zone file %s; no zones loaded", p, exc_info=True)
        return []
    return _zones_from_payload(data, source=str(p))


def _zones_from_payload(data: object, *, source: str) -> List[Optional[ZoneConfig]]:
    if isinstance(data, dict):
        data = data.get("zones")
    if not isinstance(data, list):
        logger.warning("%s must hold a JSON list of zones; ignoring", source)
        return []
    return parse_zone_list(data)


def load_zone_configs(env: Optional[Mapping[str, str]] = None) -> List[Optional[ZoneConfig]]:
    """Resolve the zone list from ZONE_STREAMING_ZONES_JSON or ZONE_STREAMING_ZONES."""

    if env is None:
        env = os.environ
    inline = _env_str(env, "ZONE_STREAMING_ZONES_JSON")
    if inline is not None:
        try:
            data = json.loads(inline)
        except Exception:
            logger.warning("Failed to parse ZONE_STREAMING_ZONES_JSON; ignoring", exc_info=True)
        else:
            return _zones_from_payload(data, source="ZONE_STREAMING_ZONES_JSON")
    path = _env_str(env, "ZONE_STREAMING_ZONES")
    if path is None:
        return []
    return read_zone_file(path)


def load_streamer_ctx(env: Optional[Mapping[str, str]] = None) -> StreamerCtx:
    """Build a :class:`StreamerCtx` by reading the environment once."""

    if env is None:
        env = os.environ
    zones: Sequence[Optional[ZoneConfig]] = load_zone_configs(env)
    return StreamerCtx(
        cfg=load_streamer_config(env),
        cursor=load_cursor_config(env),
        debug_policy=load_debug_policy(env),
        zones=tuple(zones),
    )


__all__ = [
    "CursorConfig",
    "StreamerConfig",
    "StreamerCtx",
    "load_cursor_config",
    "load_streamer_config",
    "load_streamer_ctx",
    "load_zone_configs",
    "read_zone_file",
]
