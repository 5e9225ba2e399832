"""
Snap2DXF - Turn a black and white image into a DXF outline.

This package traces the outer boundary of the shape in a binary image,
cleans and simplifies it, scales it to a physical size in inches and writes
it as LINE entities in a DXF file.
"""

from .converter import convert_grid, convert_image, convert_image_bytes
from .emitter import emit
from .models import ConversionSettings, DimensionAxis
from .reader import read_lines, read_outlines
from .refiner import refine
from .scaler import scale
from .tracer import trace

__version__ = "0.1.0"
__all__ = [
    "ConversionSettings",
    "DimensionAxis",
    "trace",
    "refine",
    "scale",
    "emit",
    "read_lines",
    "read_outlines",
    "convert_grid",
    "convert_image",
    "convert_image_bytes",
]
