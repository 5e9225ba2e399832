"""
Command line entry point: convert an image file to a DXF outline.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import get_settings
from .converter import convert_image
from .logging_config import setup_logging
from .models import DimensionAxis

logger = logging.getLogger(__name__)


def setup_argparse() -> argparse.ArgumentParser:
    """Set up command line argument parsing."""
    parser = argparse.ArgumentParser(
        prog="snap2dxf",
        description="Trace the outline of a black and white image into a DXF file",
    )
    parser.add_argument("input", type=str, help="Path to input image")
    parser.add_argument("-o", "--output", type=str, help="Path to output DXF (default: input name with .dxf)")
    parser.add_argument("--threshold", type=int, help="Grey level 0-255 below which pixels are traced")
    parser.add_argument("--simplify", type=float, help="Simplification level 0.0-1.0")
    size = parser.add_mutually_exclusive_group()
    size.add_argument("--width", type=float, help="Output width in inches")
    size.add_argument("--height", type=float, help="Output height in inches")
    parser.add_argument("--log-level", type=str, help="Logging level (default: from settings)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = setup_argparse()
    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level, settings.log_file)

    if args.height is not None:
        axis = DimensionAxis.HEIGHT
    elif args.width is not None:
        axis = DimensionAxis.WIDTH
    else:
        axis = settings.default_dimension_axis

    input_path = Path(args.input)
    output_path = Path(args.output) if args.output else input_path.with_suffix(".dxf")

    try:
        conversion = settings.conversion_settings(
            threshold=args.threshold,
            simplify=args.simplify,
            width=args.width,
            height=args.height,
            dimension_axis=axis.value,
        )
        stats = convert_image(str(input_path), str(output_path), conversion, settings.max_image_dimension)
    except (ValueError, OSError) as e:
        logger.error("Conversion failed: %s", e)
        return 1

    logger.info("Saved output file: %s", output_path)
    logger.info("Statistics: %s", json.dumps(stats))
    return 0


if __name__ == "__main__":
    sys.exit(main())
