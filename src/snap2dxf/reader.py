"""
DXF outline reader - chains LINE entities back into outlines.

Used to check that an emitted file describes one closed outline: the LINE
end points are matched up (after rounding) and each run of connected lines is
returned as one path.
"""

from collections import defaultdict
from io import StringIO
from typing import Dict, List, Tuple

import ezdxf

from .models import Point, Polygon, Segment

# Decimal places end points are rounded to before matching
COORDINATE_DECIMALS = 6

# node -> [(segment index, node at the other end)]
Links = Dict[Point, List[Tuple[int, Point]]]


def read_lines(dxf_bytes: bytes) -> List[Segment]:
    """
    Extract the LINE entities of a DXF file.

    Args:
        dxf_bytes: DXF file content as bytes

    Returns:
        List of (start, end) points, in file order
    """
    # ezdxf expects text stream, so decode bytes first
    input_stream = StringIO(dxf_bytes.decode("utf-8", errors="ignore"))
    doc = ezdxf.read(input_stream)
    msp = doc.modelspace()

    return [
        ((line.dxf.start.x, line.dxf.start.y), (line.dxf.end.x, line.dxf.end.y))
        for line in msp.query("LINE")
    ]


def _node(point: Point) -> Point:
    return (round(point[0], COORDINATE_DECIMALS), round(point[1], COORDINATE_DECIMALS))


def link_segments(segments: List[Segment]) -> Links:
    """Index segments by their rounded end points, skipping zero-length ones."""
    links: Links = defaultdict(list)
    for index, (start, end) in enumerate(segments):
        a, b = _node(start), _node(end)
        if a == b:
            continue
        links[a].append((index, b))
        links[b].append((index, a))
    return links


def chain_segments(segments: List[Segment]) -> List[Polygon]:
    """
    Chain segments into continuous paths.

    A path runs through nodes joining exactly two segments and stops at any
    other node. Open chains are walked from their ends first, so a closed
    loop comes back whole with first point == last point.
    """
    links = link_segments(segments)
    unused = {index for node_links in links.values() for index, _ in node_links}

    def next_link(node):
        return next(((index, other) for index, other in links[node] if index in unused), None)

    origins = sorted(node for node, node_links in links.items() if len(node_links) != 2)
    origins += list(links)

    paths: List[Polygon] = []
    for origin in origins:
        while next_link(origin) is not None:
            path = [origin]
            node = origin
            link = next_link(node)
            while link is not None:
                index, node = link
                unused.discard(index)
                path.append(node)
                if len(links[node]) != 2:
                    break
                link = next_link(node)
            paths.append(path)

    return paths


def read_outlines(dxf_bytes: bytes) -> List[Polygon]:
    """Read a DXF file and return its LINE entities chained into paths."""
    return chain_segments(read_lines(dxf_bytes))


def is_closed(path: Polygon) -> bool:
    return len(path) >= 4 and path[0] == path[-1]
