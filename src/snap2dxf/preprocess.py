"""
Image preprocessing - decodes an uploaded image into a binary grid.
"""

import logging
from io import BytesIO
from typing import Tuple

import numpy as np
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from .models import BinaryGrid

logger = logging.getLogger(__name__)

# Longest side, in pixels, after resizing
MAX_IMAGE_DIMENSION = 2000

# Unsharp mask applied before thresholding
SHARPEN_RADIUS = 2.0
SHARPEN_PERCENT = 150
SHARPEN_THRESHOLD = 3


def decode_image(image_bytes: bytes) -> Image.Image:
    """Decode image bytes, raising ValueError for anything Pillow cannot read."""
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Could not decode image: {e}") from e
    return image


def flatten_alpha(image: Image.Image) -> Image.Image:
    """Composite images with transparency onto a white background."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        return Image.alpha_composite(background, rgba).convert("RGB")
    return image


def to_greyscale(image: Image.Image, max_dimension: int = MAX_IMAGE_DIMENSION) -> Image.Image:
    """Resize to fit max_dimension (never enlarging), then grey, normalize and sharpen."""
    image = flatten_alpha(image)
    image.thumbnail((max_dimension, max_dimension))
    grey = image.convert("L")
    grey = ImageOps.autocontrast(grey)
    return grey.filter(
        ImageFilter.UnsharpMask(
            radius=SHARPEN_RADIUS,
            percent=SHARPEN_PERCENT,
            threshold=SHARPEN_THRESHOLD,
        )
    )


def threshold_grid(grey: Image.Image, threshold: int) -> BinaryGrid:
    """Dark pixels (grey value below threshold) are foreground."""
    return np.asarray(grey, dtype=np.uint8) < threshold


def load_grid(
    image_bytes: bytes,
    threshold: int,
    max_dimension: int = MAX_IMAGE_DIMENSION,
) -> Tuple[BinaryGrid, int, int]:
    """
    Turn image bytes into a binary grid.

    Args:
        image_bytes: Encoded image (PNG, JPEG, ...)
        threshold: Grey level 0-255; darker pixels become foreground
        max_dimension: Longest side after resizing

    Returns:
        Tuple of (grid, width, height), where width and height are the pixel
        dimensions after resizing
    """
    image = decode_image(image_bytes)
    original_size = image.size
    grey = to_greyscale(image, max_dimension)
    grid = threshold_grid(grey, threshold)
    height, width = grid.shape

    logger.debug(
        "Preprocessed %dx%d image to %dx%d grid, %d foreground pixels at threshold %d",
        original_size[0],
        original_size[1],
        width,
        height,
        int(grid.sum()),
        threshold,
    )
    return grid, width, height
