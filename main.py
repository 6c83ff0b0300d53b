#!/usr/bin/env python3
"""
Pose Puppet - Main Entry Point

Replays a recording of detector output through the puppet retargeter
and writes the retargeted skeletons as JSON.

Recording format::

    {
      "image_size": [1920, 1080],
      "canvas_size": [1280, 720],          (optional)
      "frames": [
        {"landmarks": [[0.51, 0.22, 0.98], null, ...], "paused": false},
        {"landmarks": null},
        ...
      ]
    }

Landmarks are normalized image coordinates, as a pose detector reports them.
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from posepuppet.core import Config, RetargetError, setup_logging, get_logger
from posepuppet.export.template_io import landmark_to_record
from posepuppet.motion import PuppetRetargeter
from posepuppet.pose import fit_canvas_size, landmarks_from_detector


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Retarget recorded pose landmarks onto a puppet template"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Recorded detector output (JSON)"
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default="output/puppet.json",
        help="Where to write the retargeted frames"
    )
    parser.add_argument(
        "--template", "-t",
        type=str,
        help="Template JSON to import before replay"
    )
    parser.add_argument(
        "--export-template",
        type=str,
        help="Write the final template to this JSON file"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main application entry point."""
    args = parse_args(argv)

    try:
        config = Config(args.config)
    except FileNotFoundError:
        print(f"Error: Config file not found: {args.config}")
        return 1

    log_level = "DEBUG" if args.debug else config.get("app.log_level", "INFO")
    setup_logging(level=log_level)
    logger = get_logger("main")

    logger.info("=" * 50)
    logger.info(f"Pose Puppet v{config.get('app.version', '0.1.0')}")
    logger.info("=" * 50)

    try:
        return run_replay(config, args)
    except (RetargetError, ValueError) as e:
        logger.error(f"Replay failed: {e}")
        return 1


def load_recording(path: Path) -> dict:
    """Read and sanity-check a recording file."""
    with open(path) as f:
        recording = json.load(f)

    if not isinstance(recording, dict) or not isinstance(recording.get("frames"), list):
        raise ValueError(f"Recording has no frame list: {path}")
    if "image_size" not in recording:
        raise ValueError(f"Recording has no image_size: {path}")
    return recording


def run_replay(config: Config, args: argparse.Namespace) -> int:
    """Run every recorded frame through the retargeter."""
    logger = get_logger("main")

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input not found: {input_path}")
        return 1

    recording = load_recording(input_path)
    image_size = tuple(recording["image_size"])
    canvas_size = tuple(recording.get("canvas_size") or fit_canvas_size(*image_size))
    logger.info(f"Replaying {len(recording['frames'])} frames, canvas {canvas_size[0]}x{canvas_size[1]}")

    retargeter = PuppetRetargeter(config)
    retargeter.set_canvas_size(*canvas_size)

    if args.template:
        retargeter.load_template(args.template)

    frames = []
    for frame in recording["frames"]:
        samples = frame.get("landmarks")
        landmarks = landmarks_from_detector(samples, image_size, canvas_size)
        output = retargeter.process_frame(
            landmarks,
            source_paused=bool(frame.get("paused", False)),
            landmark_count=len(samples) if samples else None,
        )
        frames.append(
            [landmark_to_record(lm) for lm in output] if output is not None else None
        )

    status = retargeter.snapshot()
    logger.info(
        f"Processed {status.frames_processed} frames "
        f"(state={status.state.name}, mirrored={status.mirrored}, {status.fps:.0f} fps)"
    )

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump({
            "canvas_size": list(canvas_size),
            "mirrored": status.mirrored,
            "frames": frames,
        }, f)
    logger.info(f"Wrote {output_path}")

    if args.export_template:
        if not status.template_ready:
            logger.warning("No template was captured, nothing to export")
        else:
            retargeter.save_template(args.export_template)

    return 0


if __name__ == "__main__":
    sys.exit(main())
