#!/usr/bin/env python3
"""
Kinect Avatar Retargeting - headless driver

Feeds recorded Kinect body frames through the retargeting engine at a fixed
tick rate against an in-memory Mixamo rig and logs the resulting pose.
"""

import argparse
import json
import re
import sys
from pathlib import Path
from typing import Iterator, List

sys.path.insert(0, str(Path(__file__).parent))

from avatar_retarget.core import Config, TickClock, setup_logging, get_logger, quat_to_xyzw
from avatar_retarget.motion import (
    RetargetEngine,
    decode_kinect_body_frame,
    extract_floor_clip_plane,
)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Retarget recorded Kinect body frames onto a Mixamo rig"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--frames", "-f",
        type=str,
        required=True,
        help="JSON file (one frame or a list of frames) or directory of frame files"
    )
    parser.add_argument(
        "--fps",
        type=float,
        help="Tick rate (overrides config)"
    )
    parser.add_argument(
        "--calibrate-floor",
        action="store_true",
        help="Use the first frame's floorClipPlane as floor tilt calibration"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    return parser.parse_args()


def _frame_number(path: Path) -> int:
    match = re.search(r"\d+", path.name)
    return int(match.group()) if match else -1


def load_payloads(source: Path) -> Iterator:
    """Yield parsed frame payloads, directory files in numeric filename order."""
    if source.is_dir():
        files: List[Path] = sorted(source.glob("*.json"), key=_frame_number)
        for path in files:
            with open(path, "r") as f:
                yield json.load(f)
        return

    with open(source, "r") as f:
        data = json.load(f)
    # A list of joint dicts is one frame; a list of anything else is many
    if isinstance(data, list) and not (data and isinstance(data[0], dict) and "orientationW" in data[0]):
        yield from data
    else:
        yield data


def main() -> int:
    """Main application entry point."""
    args = parse_args()

    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = Path(__file__).parent / config_path

    try:
        config = Config(str(config_path))
    except FileNotFoundError:
        print(f"Error: Config file not found: {config_path}")
        return 1

    log_level = "DEBUG" if args.debug else config.get("app.log_level", "INFO")
    setup_logging(
        level=log_level,
        log_file=config.get("app.log_file"),
        component_levels=config.get("app.log_levels"),
    )
    logger = get_logger("main")

    logger.info("=" * 50)
    logger.info(f"Kinect Avatar Retargeting v{config.get('app.version', '0.1.0')}")
    logger.info("=" * 50)

    source = Path(args.frames)
    if not source.exists():
        logger.error(f"Frame source not found: {source}")
        return 1

    payloads = list(load_payloads(source))
    if not payloads:
        logger.error(f"No frames in {source}")
        return 1

    if args.calibrate_floor:
        plane = extract_floor_clip_plane(payloads[0])
        if plane is None:
            logger.warning("First frame has no floorClipPlane, calibration skipped")
        else:
            config.set("retarget.floor_clip_plane", list(plane))
            logger.info(f"Floor plane calibration: {plane}")

    try:
        engine = RetargetEngine.from_config(config)
    except (KeyError, ValueError) as e:
        logger.error(f"Invalid retarget configuration: {e}")
        return 1

    clock = TickClock(target_fps=args.fps or config.get("app.tick_fps", 30.0))
    clock.start()

    for sequence, payload in enumerate(payloads):
        frame = decode_kinect_body_frame(payload, sequence=sequence)
        if frame is not None:
            engine.submit(frame)
        report = engine.tick()
        clock.tick()
        logger.debug(
            f"Tick {clock.tick_count}: updated={len(report.updated)} "
            f"skipped={len(report.skipped)} damped={report.damped}"
        )
        clock.wait_for_next_tick()

    logger.info(f"Done: {engine.stats}")
    for bone_id in engine.rig.bone_ids():
        x, y, z, w = quat_to_xyzw(engine.rig.get_local_orientation(bone_id))
        logger.info(f"{bone_id:<28} local=({x:+.3f}, {y:+.3f}, {z:+.3f}, {w:+.3f})")

    return 0


if __name__ == "__main__":
    sys.exit(main())
