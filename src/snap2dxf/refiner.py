"""
Path refiner - turns a raw pixel boundary into a compact, clean outline.

The refinement is a fixed sequence of stages, each taking a polygon and
returning a new one:

1. duplicate removal
2. smoothing (moving average 3, moving average 5, weighted 5-point pass)
3. Douglas-Peucker simplification
4. adaptive reduction to a bounded point count
5. merging of near-collinear runs
6. orthogonal snapping
7. a final, tighter duplicate removal

Smoothing and simplification must see the points in this order: simplification
is sensitive to pixel noise, and snapping has to come after anything that
moves or drops points.
"""

import logging
import math
import statistics
from functools import partial
from typing import Callable, List, Optional, Sequence, Set, Tuple

from .models import ConversionSettings, Point, Polygon

logger = logging.getLogger(__name__)

Stage = Callable[[Polygon], Polygon]

# Tolerances (grid units unless noted)
DUPLICATE_TOLERANCE = 0.01
FINAL_DUPLICATE_TOLERANCE = 0.005

MOVING_AVERAGE_WINDOWS = (3, 5)
GAUSSIAN_WEIGHTS = (0.1, 0.2, 0.4, 0.2, 0.1)

# A vertex is kept sharp through smoothing when it turns at least this much
# (radians) between two straight runs at least CORNER_MIN_RUN long
CORNER_MIN_TURN = math.radians(60)
CORNER_MIN_RUN = 2.0
RUN_ANGLE_TOLERANCE = 0.03
# Longest diagonal step the tracer leaves across a cut corner
CHAMFER_MAX_LENGTH = 1.5
# Outlines whose median segment is longer than this (grid units) carry no
# pixel jaggedness and are not smoothed again
SMOOTH_MAX_SEGMENT_LENGTH = 2.0

SIMPLIFY_SCALE = 0.3
MIN_SIMPLIFY_TOLERANCE = 0.05

MAX_POINTS = 200
MIN_POINTS = 50
MIN_POINT_FRACTION = 0.1

MERGE_ANGLE_TOLERANCE = 0.03  # radians
SNAP_ANGLE_TOLERANCE = 0.04  # radians

HORIZONTAL = "horizontal"
VERTICAL = "vertical"


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def heading(a: Point, b: Point) -> float:
    return math.atan2(b[1] - a[1], b[0] - a[0])


def angle_between(h1: float, h2: float) -> float:
    """Smallest absolute difference between two headings, in [0, pi]."""
    diff = abs(h2 - h1) % (2 * math.pi)
    return min(diff, 2 * math.pi - diff)


def turning_angle(a: Point, b: Point, c: Point) -> float:
    """Change of direction at b when walking a -> b -> c."""
    return angle_between(heading(a, b), heading(b, c))


def median_segment_length(polygon: Polygon) -> float:
    """Median length of the segments of a closed polygon."""
    return statistics.median(distance(a, b) for a, b in zip(polygon, polygon[1:] + polygon[:1]))


# ---------------------------------------------------------------------------
# Duplicate removal
# ---------------------------------------------------------------------------

def remove_duplicates(polygon: Polygon, tolerance: float = DUPLICATE_TOLERANCE) -> Polygon:
    """
    Drop consecutive points closer than tolerance.

    A closing point that lands within tolerance of the first point is dropped
    too, since the polygon is closed implicitly.
    """
    if len(polygon) < 2:
        return list(polygon)

    cleaned = [polygon[0]]
    for point in polygon[1:]:
        if distance(point, cleaned[-1]) > tolerance:
            cleaned.append(point)

    if len(cleaned) > 2 and distance(cleaned[-1], cleaned[0]) <= tolerance:
        cleaned.pop()

    return cleaned


# ---------------------------------------------------------------------------
# Smoothing
# ---------------------------------------------------------------------------

def _run_length(polygon: Polygon, first_segment: int, step: int) -> float:
    """
    Length of the straight run that starts with segment first_segment and
    extends in the given step direction (+1 forward, -1 backward).

    Segment i joins polygon[i] and polygon[i + 1] (cyclic).
    """
    n = len(polygon)
    index = first_segment % n
    reference = heading(polygon[index], polygon[(index + 1) % n])
    total = distance(polygon[index], polygon[(index + 1) % n])

    for _ in range(n - 2):
        index = (index + step) % n
        start, end = polygon[index], polygon[(index + 1) % n]
        if angle_between(reference, heading(start, end)) >= RUN_ANGLE_TOLERANCE:
            break
        total += distance(start, end)

    return total


def find_corners(polygon: Polygon) -> Set[int]:
    """
    Indices of vertices that join two long straight runs at a sharp angle.

    Pixel staircases turn at every step but their runs are short, so only
    genuine corners of rectilinear or polygonal shapes qualify.
    """
    n = len(polygon)
    if n < 3:
        return set()

    corners = set()
    for i in range(n):
        previous, point, following = polygon[i - 1], polygon[i], polygon[(i + 1) % n]
        if turning_angle(previous, point, following) < CORNER_MIN_TURN:
            continue
        if _run_length(polygon, i - 1, -1) < CORNER_MIN_RUN - 1e-9:
            continue
        if _run_length(polygon, i, 1) < CORNER_MIN_RUN - 1e-9:
            continue
        corners.add(i)
    return corners


def line_intersection(a: Point, b: Point, c: Point, d: Point) -> Optional[Point]:
    """Intersection of the infinite lines a-b and c-d, or None if parallel."""
    rx, ry = b[0] - a[0], b[1] - a[1]
    sx, sy = d[0] - c[0], d[1] - c[1]
    denominator = rx * sy - ry * sx
    if abs(denominator) < 1e-12:
        return None
    t = ((c[0] - a[0]) * sy - (c[1] - a[1]) * sx) / denominator
    return (a[0] + t * rx, a[1] + t * ry)


def _is_axis_step(start: Point, end: Point) -> bool:
    return axis_of(start, end, RUN_ANGLE_TOLERANCE) is not None


def _turns_right(a: Point, b: Point, c: Point, d: Point) -> bool:
    """True when direction c-d lies clockwise of direction a-b."""
    cross = (b[0] - a[0]) * (d[1] - c[1]) - (b[1] - a[1]) * (d[0] - c[0])
    return cross < 0


def square_chamfers(polygon: Polygon) -> Polygon:
    """
    Restore corners the tracer cut with diagonal steps.

    The tracer walks outer boundaries clockwise and cuts each convex right
    angle of a rectilinear shape in one of two ways:

    - a single diagonal step b-c between an axis-aligned segment a-b and a
      perpendicular one c-d; b is moved to the intersection of the two lines
      and c is dropped
    - two diagonal steps q-k-r on a side only one pixel long, between
      antiparallel axis-aligned segments p-q and r-s; k is replaced by the
      two corners where the side through k meets p-q and r-s

    Staircases on curves are left alone since their neighbouring segments are
    not axis-aligned or do not turn.
    """
    n = len(polygon)
    if n < 5:
        return list(polygon)

    replaced = {}
    removed = set()
    for i in range(n):
        j = (i + 1) % n
        if i in removed or i in replaced or j in replaced or j in removed:
            continue
        a, b, c, d = polygon[i - 1], polygon[i], polygon[j], polygon[(i + 2) % n]
        if distance(b, c) > CHAMFER_MAX_LENGTH or _is_axis_step(b, c):
            continue
        if not (_is_axis_step(a, b) and _is_axis_step(c, d)):
            continue
        if turning_angle(a, b, c) >= CORNER_MIN_TURN or turning_angle(b, c, d) >= CORNER_MIN_TURN:
            continue
        if angle_between(heading(a, b), heading(c, d)) < CORNER_MIN_TURN or not _turns_right(a, b, c, d):
            continue
        corner = line_intersection(a, b, c, d)
        if corner is None:
            continue
        replaced[i] = corner
        removed.add(j)

    split = {}
    for k in range(n):
        if k in replaced or k in removed:
            continue
        p, q, apex, r, s = (polygon[(k + offset) % n] for offset in (-2, -1, 0, 1, 2))
        if distance(q, apex) > CHAMFER_MAX_LENGTH or distance(apex, r) > CHAMFER_MAX_LENGTH:
            continue
        if _is_axis_step(q, apex) or _is_axis_step(apex, r):
            continue
        if not (_is_axis_step(p, q) and _is_axis_step(r, s)):
            continue
        if angle_between(heading(p, q), heading(r, s)) < math.pi - RUN_ANGLE_TOLERANCE:
            continue
        if not _turns_right(q, apex, apex, r):
            continue
        # The cut side passes through the apex, perpendicular to both runs
        across = (apex[0] - (q[1] - p[1]), apex[1] + (q[0] - p[0]))
        first = line_intersection(p, q, apex, across)
        second = line_intersection(r, s, apex, across)
        if first is None or second is None:
            continue
        split[k] = (first, second)

    if replaced or split:
        logger.debug("Squared %d chamfered corners and %d cut sides", len(replaced), len(split))

    squared = []
    for i, point in enumerate(polygon):
        if i in removed:
            continue
        if i in split:
            squared.extend(split[i])
        else:
            squared.append(replaced.get(i, point))
    return squared


def _neighbour(i: int, offset: int, n: int, cyclic: bool) -> int:
    if cyclic:
        return (i + offset) % n
    return min(max(i + offset, 0), n - 1)


def moving_average(points: Sequence[Point], window: int, cyclic: bool = True) -> Polygon:
    """
    Replace each point by the mean of the window centred on it.

    Open sequences clamp the window at the ends and keep both end points.
    """
    n = len(points)
    if n < window:
        return list(points)

    half = window // 2
    smoothed = []
    for i in range(n):
        if not cyclic and (i == 0 or i == n - 1):
            smoothed.append(points[i])
            continue
        sum_x = sum_y = 0.0
        for offset in range(-half, half + 1):
            x, y = points[_neighbour(i, offset, n, cyclic)]
            sum_x += x
            sum_y += y
        smoothed.append((sum_x / window, sum_y / window))
    return smoothed


def gaussian_smooth(points: Sequence[Point], cyclic: bool = True) -> Polygon:
    """Weighted 5-point average using GAUSSIAN_WEIGHTS."""
    n = len(points)
    if n < len(GAUSSIAN_WEIGHTS):
        return list(points)

    half = len(GAUSSIAN_WEIGHTS) // 2
    total_weight = sum(GAUSSIAN_WEIGHTS)
    smoothed = []
    for i in range(n):
        if not cyclic and (i == 0 or i == n - 1):
            smoothed.append(points[i])
            continue
        sum_x = sum_y = 0.0
        for offset, weight in zip(range(-half, half + 1), GAUSSIAN_WEIGHTS):
            x, y = points[_neighbour(i, offset, n, cyclic)]
            sum_x += x * weight
            sum_y += y * weight
        smoothed.append((sum_x / total_weight, sum_y / total_weight))
    return smoothed


def _smooth_passes(points: Sequence[Point], cyclic: bool) -> Polygon:
    smoothed = list(points)
    for window in MOVING_AVERAGE_WINDOWS:
        smoothed = moving_average(smoothed, window, cyclic=cyclic)
    return gaussian_smooth(smoothed, cyclic=cyclic)


def smooth(polygon: Polygon) -> Polygon:
    """
    Remove pixel-level jaggedness.

    Without corners the whole polygon is smoothed cyclically. When corners are
    present they stay fixed and each stretch between two corners is smoothed
    as an open sequence, so straight edges stay straight up to the corner.

    Outlines that are no longer at pixel scale (an already refined outline,
    for example) are returned unchanged.
    """
    if len(polygon) < 3:
        return list(polygon)
    if median_segment_length(polygon) > SMOOTH_MAX_SEGMENT_LENGTH:
        return list(polygon)

    polygon = square_chamfers(polygon)
    n = len(polygon)
    corners = sorted(find_corners(polygon))
    if not corners:
        return _smooth_passes(polygon, cyclic=True)

    smoothed = list(polygon)
    for position, corner in enumerate(corners):
        next_corner = corners[(position + 1) % len(corners)]
        span_length = (next_corner - corner) % n or n
        indices = [(corner + k) % n for k in range(span_length + 1)]
        span = _smooth_passes([polygon[i] for i in indices], cyclic=False)
        for index, point in zip(indices[1:-1], span[1:-1]):
            smoothed[index] = point

    logger.debug("Smoothing kept %d corners sharp", len(corners))
    return smoothed


# ---------------------------------------------------------------------------
# Simplification
# ---------------------------------------------------------------------------

def segment_distance_sq(point: Point, start: Point, end: Point) -> float:
    """Squared distance from point to the segment start-end."""
    ax = point[0] - start[0]
    ay = point[1] - start[1]
    cx = end[0] - start[0]
    cy = end[1] - start[1]

    length_sq = cx * cx + cy * cy
    if length_sq == 0:
        return ax * ax + ay * ay

    t = (ax * cx + ay * cy) / length_sq
    if t < 0:
        nearest = start
    elif t > 1:
        nearest = end
    else:
        nearest = (start[0] + t * cx, start[1] + t * cy)

    dx = point[0] - nearest[0]
    dy = point[1] - nearest[1]
    return dx * dx + dy * dy


def douglas_peucker(points: Sequence[Point], tolerance: float) -> Polygon:
    """
    Douglas-Peucker simplification of an open point sequence.

    tolerance is compared against squared distances. The recursion runs on an
    explicit stack so long boundaries cannot exhaust the interpreter stack.
    """
    n = len(points)
    if n <= 2:
        return list(points)

    keep = [False] * n
    keep[0] = keep[-1] = True
    stack = [(0, n - 1)]

    while stack:
        first, last = stack.pop()
        max_distance = 0.0
        max_index = first
        for i in range(first + 1, last):
            d = segment_distance_sq(points[i], points[first], points[last])
            if d > max_distance:
                max_distance = d
                max_index = i
        if max_distance > tolerance:
            keep[max_index] = True
            stack.append((first, max_index))
            stack.append((max_index, last))

    return [point for point, kept in zip(points, keep) if kept]


def simplification_tolerance(simplify: float) -> float:
    return max(simplify * SIMPLIFY_SCALE, MIN_SIMPLIFY_TOLERANCE)


def simplify(polygon: Polygon, level: float) -> Polygon:
    """Simplify with a tolerance derived from the 0.0-1.0 simplify level."""
    return douglas_peucker(polygon, simplification_tolerance(level))


# ---------------------------------------------------------------------------
# Adaptive reduction
# ---------------------------------------------------------------------------

def reduction_target(count: int) -> int:
    """
    Point budget for a polygon of count points.

    Capped at MAX_POINTS, but never below MIN_POINTS or MIN_POINT_FRACTION of
    the input; the floor wins when the two disagree.
    """
    if count <= MAX_POINTS:
        return count
    floor = max(MIN_POINTS, int(math.ceil(count * MIN_POINT_FRACTION)))
    return min(count, max(MAX_POINTS, floor))


def adaptive_reduce(polygon: Polygon) -> Polygon:
    """Uniformly resample down to the reduction target, keeping first and last point."""
    n = len(polygon)
    target = reduction_target(n)
    if target >= n or target < 2:
        return list(polygon)

    indices = [i * (n - 1) // (target - 1) for i in range(target)]
    return [polygon[i] for i in indices]


# ---------------------------------------------------------------------------
# Segment merging
# ---------------------------------------------------------------------------

def merge_collinear_segments(polygon: Polygon, tolerance: float = MERGE_ANGLE_TOLERANCE) -> Polygon:
    """
    Collapse runs of nearly collinear segments into single segments.

    Walks forward from the first point; a point is dropped while the direction
    from the current run start through it continues within tolerance. The seam
    between the last and first point is checked the same way.
    """
    n = len(polygon)
    if n < 3:
        return list(polygon)

    merged = [polygon[0]]
    for i in range(1, n - 1):
        if turning_angle(merged[-1], polygon[i], polygon[i + 1]) >= tolerance:
            merged.append(polygon[i])
    merged.append(polygon[-1])

    while len(merged) > 3 and turning_angle(merged[-2], merged[-1], merged[0]) < tolerance:
        merged.pop()
    if len(merged) > 3 and turning_angle(merged[-1], merged[0], merged[1]) < tolerance:
        merged.pop(0)

    return merged


# ---------------------------------------------------------------------------
# Orthogonal snapping
# ---------------------------------------------------------------------------

def axis_of(start: Point, end: Point, tolerance: float = SNAP_ANGLE_TOLERANCE) -> Optional[str]:
    """Return HORIZONTAL or VERTICAL when start-end lies within tolerance of an axis."""
    angle = heading(start, end) % (2 * math.pi)
    for axis_angle in (0.0, math.pi, 2 * math.pi):
        if abs(angle - axis_angle) < tolerance:
            return HORIZONTAL
    for axis_angle in (math.pi / 2, 3 * math.pi / 2):
        if abs(angle - axis_angle) < tolerance:
            return VERTICAL
    return None


def snap_orthogonal(polygon: Polygon, tolerance: float = SNAP_ANGLE_TOLERANCE) -> Polygon:
    """
    Make near-horizontal and near-vertical segments exact.

    Each segment's end point takes the Y (horizontal) or X (vertical) of its
    already snapped start point. The closing segment moves the last point, as
    long as that does not undo the segment leading into it.
    """
    n = len(polygon)
    if n < 2:
        return list(polygon)

    snapped = [polygon[0]]
    previous_axis = None
    snapped_count = 0
    for point in polygon[1:]:
        start = snapped[-1]
        axis = axis_of(start, point, tolerance)
        if axis == HORIZONTAL:
            point = (point[0], start[1])
        elif axis == VERTICAL:
            point = (start[0], point[1])
        if axis is not None:
            snapped_count += 1
        snapped.append(point)
        previous_axis = axis

    if n >= 3:
        first, last = snapped[0], snapped[-1]
        axis = axis_of(last, first, tolerance)
        if axis == HORIZONTAL and previous_axis != HORIZONTAL:
            snapped[-1] = (last[0], first[1])
            snapped_count += 1
        elif axis == VERTICAL and previous_axis != VERTICAL:
            snapped[-1] = (first[0], last[1])
            snapped_count += 1

    logger.debug("Orthogonal snapping straightened %d of %d segments", snapped_count, n)
    return snapped


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def refinement_stages(settings: ConversionSettings) -> List[Tuple[str, Stage]]:
    """The refinement stages, in the order they must run."""
    return [
        ("remove_duplicates", partial(remove_duplicates, tolerance=DUPLICATE_TOLERANCE)),
        ("smooth", smooth),
        ("simplify", partial(simplify, level=settings.simplify)),
        ("adaptive_reduce", adaptive_reduce),
        ("merge_collinear_segments", merge_collinear_segments),
        ("snap_orthogonal", snap_orthogonal),
        ("final_remove_duplicates", partial(remove_duplicates, tolerance=FINAL_DUPLICATE_TOLERANCE)),
    ]


def refine(polygon: Polygon, settings: ConversionSettings) -> Polygon:
    """
    Run every refinement stage over a traced boundary.

    Args:
        polygon: Raw boundary points (closed implicitly)
        settings: Conversion settings; only simplify is used here

    Returns:
        New refined polygon. Fewer than 3 points are passed through untouched
        by the stages that need more.
    """
    result = list(polygon)
    for name, stage in refinement_stages(settings):
        before = len(result)
        result = stage(result)
        logger.debug("%s: %d -> %d points", name, before, len(result))
    return result
