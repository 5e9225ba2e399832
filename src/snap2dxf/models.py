"""
Shared value types for the raster-to-DXF pipeline.

Every stage consumes and produces plain lists of (x, y) tuples, so no stage
holds on to data owned by another.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

import numpy as np

# Type aliases
Point = Tuple[float, float]
Polygon = List[Point]
Segment = Tuple[Point, Point]

# 2-D boolean array, shape (height, width), True = foreground
BinaryGrid = np.ndarray


class DimensionAxis(str, Enum):
    """Which image axis the target dimension constrains."""

    WIDTH = "width"
    HEIGHT = "height"


@dataclass(frozen=True)
class ConversionSettings:
    """
    Options for a single conversion.

    Args:
        threshold: Grey level (0-255) below which a pixel counts as foreground
        simplify: Simplification aggressiveness, 0.0 (keep detail) to 1.0
        target_dimension: Physical size, in inches, of the controlled axis
        dimension_axis: Axis that target_dimension applies to
    """

    threshold: int = 128
    simplify: float = 0.1
    target_dimension: float = 2.25
    dimension_axis: DimensionAxis = DimensionAxis.WIDTH

    def __post_init__(self):
        if not 0 <= self.threshold <= 255:
            raise ValueError(f"threshold must be between 0 and 255, got {self.threshold}")
        if not 0.0 <= self.simplify <= 1.0:
            raise ValueError(f"simplify must be between 0.0 and 1.0, got {self.simplify}")
        if not self.target_dimension > 0:
            raise ValueError(f"target dimension must be positive, got {self.target_dimension}")
        try:
            axis = DimensionAxis(self.dimension_axis)
        except ValueError:
            raise ValueError(
                f"dimension axis must be 'width' or 'height', got {self.dimension_axis!r}"
            ) from None
        # Frozen dataclass: normalize string input to the enum
        object.__setattr__(self, "dimension_axis", axis)
