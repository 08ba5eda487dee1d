"""
CLI entry point for bgmodel3d.

Run with:
    python -m bgmodel3d resources/linescan.npz
    python -m bgmodel3d resources/linescan.npz --config config.yaml -o renders
    bgmodel3d --demo --rate 0 -n 2 -o renders
"""

import argparse
import json
import logging
import os
import sys

import yaml

from .background import MODEL_PRESETS, get_default_config, get_model_preset
from .heightmap import load_sequence
from .pipeline import SegmentationPipeline
from .render import ResultRenderer
from .synthetic import make_linescan_sequence


def _load_config(path: str) -> dict:
    """Load a YAML or JSON config file and merge with defaults."""
    defaults = get_default_config()
    with open(path) as f:
        if path.endswith((".yaml", ".yml")):
            overrides = yaml.safe_load(f) or {}
        else:
            overrides = json.load(f)
    unknown = set(overrides) - set(defaults)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
    defaults.update(overrides)
    return defaults


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bgmodel3d",
        description="bgmodel3d: background/foreground segmentation of height images.",
    )
    parser.add_argument(
        "resource",
        nargs="?",
        default=None,
        help="Image sequence (.npz, .json or directory of 16-bit images).",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to YAML/JSON config file (default: built-in defaults).",
    )
    parser.add_argument(
        "-m", "--model",
        choices=sorted(MODEL_PRESETS),
        default=None,
        help="Background model variant, with its matching thresholds.",
    )
    parser.add_argument(
        "--area-scan",
        action="store_true",
        help="Model every pixel instead of every column.",
    )
    parser.add_argument(
        "-n", "--iterations",
        type=int,
        default=None,
        help="Passes over the sequence (default: 10).",
    )
    parser.add_argument(
        "--rate",
        type=float,
        default=None,
        help="Images per second, 0 for no pacing (default: 1.0).",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Directory for rendered 2D/3D views.",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Show the 2D view in a window.",
    )
    parser.add_argument(
        "--no-3d",
        action="store_true",
        help="Skip 3D rendering.",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Use a generated line-scan sequence instead of a resource.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging.",
    )
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    # Validate input
    if not args.demo and not args.resource:
        print("Error: a resource path is required unless --demo is given", file=sys.stderr)
        sys.exit(1)

    if args.resource and not os.path.exists(args.resource):
        print(f"Error: resource not found: {args.resource}", file=sys.stderr)
        sys.exit(1)

    if args.config and not os.path.isfile(args.config):
        print(f"Error: config not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    # Load config
    try:
        config = _load_config(args.config) if args.config else get_default_config()
    except (ValueError, yaml.YAMLError) as e:
        print(f"Error: bad config {args.config}: {e}", file=sys.stderr)
        sys.exit(1)
    if args.model:
        config = get_model_preset(args.model, config)
    if args.area_scan:
        config["line_scan"] = False
    if args.iterations is not None:
        config["iterations"] = args.iterations
    if args.rate is not None:
        config["rate_hz"] = args.rate

    try:
        images = make_linescan_sequence() if args.demo else load_sequence(args.resource)
    except ValueError as e:
        print(f"Error: bad resource {args.resource}: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Processing: {'demo sequence' if args.demo else args.resource}")
    if args.config:
        print(f"Config:     {args.config}")
    print(f"Model:      {config['model_type']} "
          f"({'line scan' if config['line_scan'] else 'area scan'})")
    if args.output:
        print(f"Output:     {args.output}")
    print()

    renderer = None
    if args.output or args.show:
        renderer = ResultRenderer(
            config,
            output_dir=args.output,
            show=args.show,
            render_3d=not args.no_3d,
        )

    pipeline = SegmentationPipeline(config)
    try:
        result = pipeline.replay(
            images,
            on_result=renderer.draw_results if renderer else None,
        )
    finally:
        if renderer:
            renderer.close()

    # Summary
    print(f"Images:     {len(images)} x {result.iterations} iterations")
    print(f"Frames:     {result.frames_processed}")
    print(f"Objects:    {result.total_objects} total, "
          f"{result.object_counts[-1]} in last frame")
    print()
    print("Done.")


if __name__ == "__main__":
    main()
