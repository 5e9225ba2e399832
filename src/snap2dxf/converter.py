"""
Raster to DXF converter.

This module runs the full pipeline: binary grid -> boundary trace ->
refinement -> scaling -> DXF. Each step works on its own copy of the outline.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from .emitter import emit, polygon_segments
from .models import BinaryGrid, ConversionSettings
from .preprocess import MAX_IMAGE_DIMENSION, load_grid
from .refiner import refine
from .scaler import scale, scale_factor
from .tracer import trace

logger = logging.getLogger(__name__)


def convert_grid(
    grid: BinaryGrid,
    settings: ConversionSettings,
    image_width: Optional[int] = None,
    image_height: Optional[int] = None,
) -> Tuple[bytes, dict]:
    """
    Convert a binary grid to a DXF outline.

    Args:
        grid: 2-D array-like, True/1 = foreground
        settings: Conversion settings
        image_width: Pixel width the scale is derived from (default: grid width)
        image_height: Pixel height the scale is derived from (default: grid height)

    Returns:
        Tuple of (DXF bytes, statistics dict)
    """
    pixels = np.asarray(grid, dtype=bool)
    if pixels.ndim != 2:
        raise ValueError(f"Grid must be 2-dimensional, got shape {pixels.shape}")

    height, width = pixels.shape
    image_width = image_width or width
    image_height = image_height or height

    boundary = trace(pixels)
    refined = refine(boundary, settings)
    scaled = scale(refined, settings, image_width, image_height)
    dxf_bytes = emit(scaled)

    if not boundary:
        logger.info("No foreground found in %dx%d image; wrote an empty drawing", image_width, image_height)
    elif len(refined) < 3:
        logger.warning("Outline collapsed to %d points after refinement", len(refined))

    line_count = len(polygon_segments(scaled))
    stats = {
        "image_width": image_width,
        "image_height": image_height,
        "traced_points": len(boundary),
        "refined_points": len(refined),
        "line_count": line_count,
        "scale_factor": scale_factor(settings, image_width, image_height),
        "dimension_axis": settings.dimension_axis.value,
        "target_dimension": settings.target_dimension,
    }

    logger.info(
        "Converted %dx%d image: %d traced points -> %d refined points -> %d lines",
        image_width,
        image_height,
        len(boundary),
        len(refined),
        line_count,
    )
    return dxf_bytes, stats


def convert_image_bytes(
    image_bytes: bytes,
    settings: ConversionSettings,
    max_dimension: int = MAX_IMAGE_DIMENSION,
) -> Tuple[bytes, dict]:
    """
    Convert an encoded image to a DXF outline.

    Args:
        image_bytes: Image file content as bytes
        settings: Conversion settings (threshold drives the binarization)
        max_dimension: Longest image side after resizing

    Returns:
        Tuple of (DXF bytes, statistics dict)
    """
    grid, width, height = load_grid(image_bytes, settings.threshold, max_dimension)
    dxf_bytes, stats = convert_grid(grid, settings, width, height)
    stats["threshold"] = settings.threshold
    stats["simplify"] = settings.simplify
    return dxf_bytes, stats


def convert_image(
    input_file: str,
    output_file: str,
    settings: Optional[ConversionSettings] = None,
    max_dimension: int = MAX_IMAGE_DIMENSION,
) -> dict:
    """
    Convert an image file to a DXF file.

    Args:
        input_file: Path to input image
        output_file: Path to output DXF file
        settings: Conversion settings (default: ConversionSettings())
        max_dimension: Longest image side after resizing

    Returns:
        Statistics dictionary
    """
    with open(input_file, "rb") as f:
        input_bytes = f.read()

    output_bytes, stats = convert_image_bytes(input_bytes, settings or ConversionSettings(), max_dimension)

    with open(output_file, "wb") as f:
        f.write(output_bytes)

    return stats
