"""
DXF writer for a single closed outline.

The outline is written as individual LINE entities, which every CAD and
cutting program reads. The rest of the document (header, tables, blocks) is
the standard scaffolding ezdxf creates for a new R2000 drawing.
"""

import logging
import math
import threading
from contextlib import contextmanager
from io import StringIO
from typing import Iterator, List

import ezdxf
from ezdxf import units

from .models import Polygon, Segment

logger = logging.getLogger(__name__)

DXF_VERSION = "R2000"
DXF_UNITS = units.IN
DEFAULT_LAYER = "0"

# Segments shorter than this (inches) are not written
MIN_SEGMENT_LENGTH = 1e-4


def polygon_segments(polygon: Polygon, closed: bool = True) -> List[Segment]:
    """
    Split an outline into the line segments that get written.

    One segment per consecutive point pair, plus a closing segment back to the
    first point when closed and the end points are not already coincident.
    Zero-length segments are dropped.
    """
    candidates = list(zip(polygon, polygon[1:]))
    if closed and len(polygon) >= 3:
        candidates.append((polygon[-1], polygon[0]))

    segments = [
        (start, end)
        for start, end in candidates
        if math.hypot(end[0] - start[0], end[1] - start[1]) >= MIN_SEGMENT_LENGTH
    ]
    if len(segments) < len(candidates):
        logger.debug("Skipping %d zero-length segments", len(candidates) - len(segments))
    return segments


# ezdxf options are process-wide, so documents are built one at a time
_write_lock = threading.Lock()


@contextmanager
def fixed_meta_data() -> Iterator[None]:
    """Have ezdxf stamp fixed dates, GUIDs and version marker instead of the current ones."""
    with _write_lock:
        previous = ezdxf.options.write_fixed_meta_data_for_testing
        ezdxf.options.write_fixed_meta_data_for_testing = True
        try:
            yield
        finally:
            ezdxf.options.write_fixed_meta_data_for_testing = previous


def new_document(layer: str = DEFAULT_LAYER):
    """Create an empty R2000 drawing in inches with the given layer available."""
    doc = ezdxf.new(dxfversion=DXF_VERSION, units=DXF_UNITS)
    if layer not in doc.layers:
        doc.layers.add(layer)
    return doc


def emit(polygon: Polygon, closed: bool = True, layer: str = DEFAULT_LAYER) -> bytes:
    """
    Serialize an outline to DXF.

    Args:
        polygon: Outline points in inches
        closed: Whether to add the segment from the last point back to the first
        layer: Layer name for every LINE entity

    Returns:
        DXF file content as bytes. The same arguments always give the same
        bytes. An empty polygon gives a valid document with no entities.
    """
    segments = polygon_segments(polygon, closed)

    with fixed_meta_data():
        doc = new_document(layer)
        msp = doc.modelspace()
        for start, end in segments:
            msp.add_line(
                (start[0], start[1], 0.0),
                (end[0], end[1], 0.0),
                dxfattribs={"layer": layer},
            )

        logger.debug("Writing %d LINE entities from %d points", len(segments), len(polygon))

        # ezdxf writes strings, so we use StringIO and encode
        output_stream = StringIO()
        doc.write(output_stream)

    return output_stream.getvalue().encode("utf-8")
