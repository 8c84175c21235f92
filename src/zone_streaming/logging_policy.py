"""Centralised debug/logging policy for zone streaming.

All logging-related env var parsing happens here so the streamer, the
indicator and the launcher depend on a structured policy rather than on
scattered ``os.getenv`` calls.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in {"1", "true", "yes", "on"}:
        return True
    if val in {"0", "false", "no", "off"}:
        return False
    try:
        return bool(int(raw))
    except Exception:
        return default


@dataclass(frozen=True)
class LoggingToggles:
    """Streamer logging flags."""

    log_zone_steps: bool = False
    log_indicator: bool = False


@dataclass(frozen=True)
class DebugPolicy:
    """Composite debug/logging policy."""

    enabled: bool = False
    logging: LoggingToggles = LoggingToggles()


def load_debug_policy(env: Optional[Mapping[str, str]] = None) -> DebugPolicy:
    """Read debug/logging flags from the provided environment mapping."""

    if env is None:
        env = os.environ

    debug_enabled = _env_bool(env, "ZONE_STREAMING_DEBUG", False)
    toggles = LoggingToggles(
        # the master switch turns step traces on unless explicitly disabled
        log_zone_steps=_env_bool(env, "ZONE_STREAMING_LOG_STEPS", debug_enabled),
        log_indicator=_env_bool(env, "ZONE_STREAMING_LOG_INDICATOR", False),
    )
    return DebugPolicy(enabled=debug_enabled, logging=toggles)


__all__ = [
    "DebugPolicy",
    "LoggingToggles",
    "load_debug_policy",
]
