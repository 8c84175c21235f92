"""
Command line demo for zone streaming.

Drives a grid cursor over a zone layout with the simulated content loader
and prints the final zone states and metrics as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional, Sequence

from zone_streaming.config import StreamerCtx, load_streamer_ctx, read_zone_file
from zone_streaming.cursor import KEY_MOVES, GridCursor
from zone_streaming.loader import SimulatedContentLoader
from zone_streaming.streamer import ZoneStreamer
from zone_streaming.zones import ZoneConfig

logger = logging.getLogger(__name__)


DEFAULT_ZONES: tuple[ZoneConfig, ...] = (
    ZoneConfig(name="origin", center=(0.0, 0.0, 0.0), address="zones/origin"),
    ZoneConfig(name="east", center=(5.0, 0.0, 0.0), address="zones/east"),
    ZoneConfig(name="far-corner", center=(9.0, 0.0, 9.0), address="zones/far-corner", load_radius=3.0, unload_radius=4.5),
)


async def run_demo(
    ctx: StreamerCtx,
    zones: Sequence[Optional[ZoneConfig]],
    moves: str,
    *,
    load_delay_s: float = 0.05,
    settle_s: float = 0.2,
    failing: Sequence[str] = (),
) -> dict:
    loader = SimulatedContentLoader(
        load_delay_s=load_delay_s,
        unload_delay_s=load_delay_s / 2.0,
        failing_addresses=tuple(failing),
    )
    streamer = ZoneStreamer(
        list(zones),
        loader,
        config=ctx.cfg,
        logging_toggles=ctx.debug_policy.logging,
    )
    cursor = GridCursor(ctx.cursor)
    cursor.subscribe(streamer.evaluate)
    cursor.publish()

    # stay past the input cooldown so every key counts
    pause = max(float(settle_s), float(ctx.cursor.input_cooldown_s) + 0.01)
    for key in moves:
        if key.lower() not in KEY_MOVES:
            logger.warning("ignoring unknown move key %r", key)
            continue
        await asyncio.sleep(pause)
        cursor.press(key)
    await streamer.wait_idle()

    return {
        "cursor": list(cursor.coordinate),
        "resident": loader.resident_addresses,
        "streamer": streamer.snapshot(),
        "metrics": streamer.metrics.snapshot(),
    }


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="zone streaming demo")
    parser.add_argument("--zones", help="JSON zone list (defaults to env or a built-in layout)")
    parser.add_argument("--moves", default="dddddwwwwaaaaa", help="cursor keys to replay (w/a/s/d)")
    parser.add_argument("--delay", type=float, default=0.05, help="simulated load latency in seconds")
    parser.add_argument("--settle", type=float, default=0.2, help="pause between cursor moves in seconds")
    parser.add_argument("--fail", action="append", default=[], metavar="ADDRESS", help="address whose load fails")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    ctx = load_streamer_ctx()
    debug = bool(args.debug or ctx.debug_policy.enabled)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
    )

    zones: List[Optional[ZoneConfig]]
    if args.zones:
        zones = read_zone_file(args.zones)
    elif ctx.zones:
        zones = list(ctx.zones)
    else:
        zones = list(DEFAULT_ZONES)
    if not any(z is not None for z in zones):
        logger.error("no usable zones configured")
        return 2

    report = asyncio.run(
        run_demo(
            ctx,
            zones,
            args.moves,
            load_delay_s=max(0.0, args.delay),
            settle_s=max(0.0, args.settle),
            failing=args.fail,
        )
    )
    json.dump(report, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
