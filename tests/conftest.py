"""
Pytest configuration and fixtures for snap2dxf tests
"""
from io import BytesIO

import numpy as np
import pytest
from PIL import Image, ImageDraw


def make_grid(width, height, rects=()):
    """Binary grid of the given size with filled (x0, y0, x1, y1) rectangles, inclusive."""
    grid = np.zeros((height, width), dtype=bool)
    for x0, y0, x1, y1 in rects:
        grid[y0:y1 + 1, x0:x1 + 1] = True
    return grid


def make_disk(size, radius):
    """Square grid holding a filled disk centred in it."""
    ys, xs = np.mgrid[0:size, 0:size]
    centre = (size - 1) / 2.0
    return (xs - centre) ** 2 + (ys - centre) ** 2 <= radius ** 2


def png_bytes(image):
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def empty_grid():
    """40x30 grid with no foreground"""
    return make_grid(40, 30)


@pytest.fixture
def rectangle_grid():
    """40x30 grid with a 20x16 solid rectangle away from the edges"""
    return make_grid(40, 30, [(8, 6, 27, 21)])


@pytest.fixture
def full_grid():
    """30x20 grid that is foreground everywhere"""
    return np.ones((20, 30), dtype=bool)


@pytest.fixture
def plus_grid():
    """40x40 grid with a plus sign made of two 12-pixel-thick bars"""
    return make_grid(40, 40, [(14, 4, 25, 35), (4, 14, 35, 25)])


@pytest.fixture
def disk_grid():
    """100x100 grid with a disk of radius 35"""
    return make_disk(100, 35)


@pytest.fixture
def rectangle_png():
    """60x40 white PNG with a black rectangle from (10, 8) to (49, 31)"""
    image = Image.new("RGB", (60, 40), "white")
    ImageDraw.Draw(image).rectangle([10, 8, 49, 31], fill="black")
    return png_bytes(image)
