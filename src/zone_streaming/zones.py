"""Zone descriptions and distance helpers.

Pure functions shared by the streamer, the config loader and the demo.
A zone is a sphere around ``center`` with two radii: inside ``load_radius``
the zone should be resident, beyond ``unload_radius`` it should not, and the
band between them holds whatever state the zone already has.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple
import logging
import math
import numbers

import numpy as np


logger = logging.getLogger(__name__)


Point3 = Tuple[float, float, float]

DEFAULT_LOAD_RADIUS = 2.0
DEFAULT_UNLOAD_RADIUS = 3.0


# ---- Types -------------------------------------------------------------------


@dataclass(frozen=True)
class ZoneConfig:
    """Static description of one streamed zone."""

    name: str
    center: Point3
    address: str
    load_radius: float = DEFAULT_LOAD_RADIUS
    unload_radius: float = DEFAULT_UNLOAD_RADIUS
    # Footprint of the zone itself; informational only.
    zone_radius: float = 0.0

    def is_valid(self) -> bool:
        try:
            if len(self.center) != 3:
                return False
            coords = [float(c) for c in self.center]
        except (TypeError, ValueError):
            return False
        radii = (self.load_radius, self.unload_radius)
        if not all(isinstance(r, numbers.Real) and not isinstance(r, bool) for r in radii):
            return False
        if not all(math.isfinite(v) for v in (*coords, *radii)):
            return False
        return isinstance(self.address, str) and bool(self.address)

    @property
    def has_hysteresis(self) -> bool:
        return self.unload_radius > self.load_radius

    def with_center(self, center: Sequence[float]) -> "ZoneConfig":
        return ZoneConfig(
            name=self.name,
            center=_as_point3(center),
            address=self.address,
            load_radius=self.load_radius,
            unload_radius=self.unload_radius,
            zone_radius=self.zone_radius,
        )


class ZoneAction(str, Enum):
    LOAD = "load"
    UNLOAD = "unload"
    HOLD = "hold"


# ---- Geometry ----------------------------------------------------------------


def _as_point3(value: Sequence[float]) -> Point3:
    try:
        vals = [float(v) for v in value]
    except (TypeError, ValueError) as exc:
        raise ValueError("coordinates must be numeric") from exc
    if len(vals) == 2:
        # ground-plane shorthand: (x, z)
        return (vals[0], 0.0, vals[1])
    if len(vals) != 3:
        raise ValueError(f"expected 2 or 3 coordinates, got {len(vals)}")
    return (vals[0], vals[1], vals[2])


def edge_distance(position: Sequence[float], config: ZoneConfig, reference_radius: float = 0.0) -> float:
    """Distance from the edge of the reference footprint to the zone center."""

    delta = np.asarray(position, dtype=np.float64) - np.asarray(config.center, dtype=np.float64)
    return float(np.linalg.norm(delta)) - float(reference_radius)


def classify_distance(distance: float, config: ZoneConfig) -> ZoneAction:
    if distance <= config.load_radius:
        return ZoneAction.LOAD
    if distance >= config.unload_radius:
        return ZoneAction.UNLOAD
    return ZoneAction.HOLD


# ---- Parsing -----------------------------------------------------------------


def zone_from_mapping(entry: Mapping[str, object], *, index: int = 0) -> ZoneConfig:
    """Build a :class:`ZoneConfig` from a JSON-style mapping.

    Raises ``ValueError`` for entries that cannot describe a zone.
    """

    if not isinstance(entry, Mapping):
        raise ValueError(f"zone #{index} must be an object")
    center_raw = entry.get("center")
    if not isinstance(center_raw, (list, tuple)):
        raise ValueError(f"zone #{index} has no center")
    address = str(entry.get("address") or "").strip()
    if not address:
        raise ValueError(f"zone #{index} has no address")
    name = str(entry.get("name") or f"zone-{index}")
    try:
        load_radius = float(entry.get("load_radius", DEFAULT_LOAD_RADIUS))  # type: ignore[arg-type]
        unload_radius = float(entry.get("unload_radius", DEFAULT_UNLOAD_RADIUS))  # type: ignore[arg-type]
        zone_radius = float(entry.get("zone_radius", 0.0))  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"zone #{index} has a non-numeric radius") from exc
    config = ZoneConfig(
        name=name,
        center=_as_point3(center_raw),  # type: ignore[arg-type]
        address=address,
        load_radius=load_radius,
        unload_radius=unload_radius,
        zone_radius=zone_radius,
    )
    if not config.is_valid():
        raise ValueError(f"zone #{index} ({name}) is not valid")
    if not config.has_hysteresis:
        logger.debug(
            "zone %s: unload_radius %.3f <= load_radius %.3f; no hysteresis band",
            name,
            unload_radius,
            load_radius,
        )
    return config


def parse_zone_list(entries: Iterable[object]) -> List[Optional[ZoneConfig]]:
    """Parse a zone list, keeping positional indices for broken entries."""

    zones: List[Optional[ZoneConfig]] = []
    for idx, entry in enumerate(entries):
        try:
            zones.append(zone_from_mapping(entry, index=idx))  # type: ignore[arg-type]
        except ValueError as exc:
            logger.warning("ignoring zone entry %d: %s", idx, exc)
            zones.append(None)
    return zones


__all__ = [
    "DEFAULT_LOAD_RADIUS",
    "DEFAULT_UNLOAD_RADIUS",
    "Point3",
    "ZoneAction",
    "ZoneConfig",
    "classify_distance",
    "edge_distance",
    "parse_zone_list",
    "zone_from_mapping",
]
