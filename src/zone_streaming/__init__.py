"""
zone-streaming: distance-driven loading and unloading of content zones.

A :class:`ZoneStreamer` keeps a working set of zones around a moving
reference point, driving each zone's state machine through asynchronous
load/unload operations of a pluggable content loader.
"""

from zone_streaming.indicator import LoadingIndicator
from zone_streaming.loader import ContentHandle, ContentLoader, OperationResult, SimulatedContentLoader
from zone_streaming.state import ZoneState, ZoneStateError, ZoneStatus
from zone_streaming.streamer import ZoneStreamer
from zone_streaming.zones import ZoneConfig

__version__ = "0.1.0"

__all__ = [
    "ContentHandle",
    "ContentLoader",
    "LoadingIndicator",
    "OperationResult",
    "SimulatedContentLoader",
    "ZoneConfig",
    "ZoneState",
    "ZoneStateError",
    "ZoneStatus",
    "ZoneStreamer",
    "__version__",
]
