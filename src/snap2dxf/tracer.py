"""
Boundary tracer - follows the outer edge of the first foreground region.

Walks the 8-connected neighbourhood of the current pixel (Moore-neighbour
tracing), always turning left after a step, and records the edge pixels as
a closed polygon. Only the first region met by a row-major scan is traced.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from .models import BinaryGrid, Polygon

logger = logging.getLogger(__name__)

Pixel = Tuple[int, int]

# Compass order: E, NE, N, NW, W, SW, S, SE (grid rows grow downward)
DIRECTIONS: List[Pixel] = [
    (1, 0),
    (1, -1),
    (0, -1),
    (-1, -1),
    (-1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
]

# Index offset that turns a direction 90 degrees to the left
LEFT_TURN = 6

# Iteration cap, as a multiple of the pixel count
ITERATION_CAP_FACTOR = 2


def find_start(pixels: np.ndarray) -> Optional[Pixel]:
    """Return the first foreground pixel in row-major order, or None."""
    rows, cols = np.nonzero(pixels)
    if len(rows) == 0:
        return None
    return int(cols[0]), int(rows[0])


def is_boundary_pixel(rows: List[List[bool]], x: int, y: int, width: int, height: int) -> bool:
    """A pixel is on the boundary if any 8-neighbour is background or off the image."""
    for ny in range(y - 1, y + 2):
        for nx in range(x - 1, x + 2):
            if not (0 <= nx < width and 0 <= ny < height):
                return True
            if not rows[ny][nx]:
                return True
    return False


def trace(grid: BinaryGrid, max_iterations: Optional[int] = None) -> Polygon:
    """
    Trace the outer boundary of the first foreground region.

    Args:
        grid: 2-D array-like of 0/1 (or bool) values, indexed [row][column]
        max_iterations: Step cap; defaults to 2 * width * height

    Returns:
        Ordered boundary points as (x, -row) tuples. Empty if the grid holds no
        foreground pixel. The closing point is not repeated.
    """
    pixels = np.asarray(grid, dtype=bool)
    if pixels.ndim != 2 or pixels.size == 0:
        return []

    height, width = pixels.shape
    start = find_start(pixels)
    if start is None:
        logger.debug("No foreground pixel in %dx%d grid", width, height)
        return []

    if max_iterations is None:
        max_iterations = ITERATION_CAP_FACTOR * width * height

    rows = pixels.tolist()
    logger.debug("Starting boundary trace from %s", start)

    # Y is negated once, here: grid rows grow downward, output Y grows upward
    polygon: Polygon = [(float(start[0]), float(-start[1]))]
    visited = {start}
    current = start
    direction = 0
    iterations = 0

    while iterations < max_iterations:
        found: Optional[Pixel] = None
        found_direction = 0

        for turn in range(len(DIRECTIONS)):
            index = (direction + turn) % len(DIRECTIONS)
            dx, dy = DIRECTIONS[index]
            candidate = (current[0] + dx, current[1] + dy)
            cx, cy = candidate

            if not (0 <= cx < width and 0 <= cy < height) or not rows[cy][cx]:
                continue
            closes_loop = candidate == start and len(polygon) > 3
            if candidate in visited and not closes_loop:
                continue
            if not is_boundary_pixel(rows, cx, cy, width, height):
                continue

            found = candidate
            found_direction = index
            break

        if found is None:
            break

        if found == start:
            logger.debug("Closed boundary loop with %d points", len(polygon))
            break

        polygon.append((float(found[0]), float(-found[1])))
        visited.add(found)
        current = found
        direction = (found_direction + LEFT_TURN) % len(DIRECTIONS)
        iterations += 1
    else:
        logger.warning(
            "Boundary trace hit the iteration cap (%d); keeping %d points",
            max_iterations,
            len(polygon),
        )

    logger.debug("Boundary trace finished with %d points after %d steps", len(polygon), iterations)
    return polygon
