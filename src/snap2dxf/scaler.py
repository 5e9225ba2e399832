"""
Maps pixel-space outlines into physical units (inches).
"""

import logging

from .models import ConversionSettings, DimensionAxis, Polygon

logger = logging.getLogger(__name__)

# Minimum Y, in inches, after shifting the outline above the X axis
Y_MARGIN = 0.01


def scale_factor(settings: ConversionSettings, image_width: int, image_height: int) -> float:
    """
    Inches per pixel.

    Always derived from the full image dimension on the controlled axis, never
    from the outline's own extent, so a given image always yields the same size.
    """
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {image_width}x{image_height}")

    if settings.dimension_axis == DimensionAxis.WIDTH:
        reference = image_width
    else:
        reference = image_height
    return settings.target_dimension / reference


def scale(polygon: Polygon, settings: ConversionSettings, image_width: int, image_height: int) -> Polygon:
    """
    Scale an outline to physical units and move it to non-negative Y.

    Args:
        polygon: Outline in pixel coordinates (Y already inverted)
        settings: Supplies target_dimension and dimension_axis
        image_width: Width in pixels of the image the outline came from
        image_height: Height in pixels of the image the outline came from

    Returns:
        New polygon in inches
    """
    factor = scale_factor(settings, image_width, image_height)
    if not polygon:
        return []

    scaled = [(x * factor, y * factor) for x, y in polygon]

    min_y = min(y for _, y in scaled)
    if min_y < 0:
        shift = abs(min_y) + Y_MARGIN
        scaled = [(x, y + shift) for x, y in scaled]

    logger.debug(
        "Scaled %d points by %.6f in/px (target %s %.4f in over %dx%d px)",
        len(scaled),
        factor,
        settings.dimension_axis.value,
        settings.target_dimension,
        image_width,
        image_height,
    )
    return scaled
