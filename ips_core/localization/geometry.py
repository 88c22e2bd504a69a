"""
Planar geometry helpers for the location frame.

- Point-in-polygon test for the location boundary
- Anchor spread score used to reject collinear/coincident anchor sets
"""

from typing import Sequence, Tuple
import numpy as np

Point = Tuple[float, float]

# Tolerance for treating a point as lying on a boundary edge (m)
EDGE_TOLERANCE_M = 1e-9


def point_on_segment(point: Point, seg_start: Point, seg_end: Point,
                     tol: float = EDGE_TOLERANCE_M) -> bool:
    """Check if point lies on the closed segment [seg_start, seg_end]."""
    x, y = point
    x1, y1 = seg_start
    x2, y2 = seg_end

    cross = (x2 - x1) * (y - y1) - (y2 - y1) * (x - x1)
    if abs(cross) > tol * max(1.0, abs(x2 - x1) + abs(y2 - y1)):
        return False

    return (min(x1, x2) - tol <= x <= max(x1, x2) + tol and
            min(y1, y2) - tol <= y <= max(y1, y2) + tol)


def point_in_polygon(point: Point, polygon: Sequence[Point]) -> bool:
    """
    Ray-casting point-in-polygon test.

    Args:
        point: (x, y) to test
        polygon: Vertices in order (closing edge is implicit)

    Returns:
        True if point is inside or on the boundary.
        An empty polygon means "no boundary" and always returns True.
    """
    n = len(polygon)
    if n == 0:
        return True
    if n < 3:
        return False

    x, y = point
    inside = False

    for i in range(n):
        p1 = polygon[i]
        p2 = polygon[(i + 1) % n]

        if point_on_segment(point, p1, p2):
            return True

        p1x, p1y = p1
        p2x, p2y = p2
        # Edge straddles the horizontal ray through the point
        if (p1y > y) != (p2y > y):
            x_inters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
            if x < x_inters:
                inside = not inside

    return inside


def anchor_spread_score(positions: Sequence[Point]) -> float:
    """
    Compute geometry health score (0-1) for a set of anchor positions.

    Ratio of the smaller to the larger singular value of the centred
    coordinates: 0 when all anchors are coincident or collinear, 1 when
    they spread equally in both directions.

    Args:
        positions: Anchor (x, y) positions

    Returns:
        Score between 0 (degenerate) and 1 (good)
    """
    if len(positions) < 3:
        return 0.0

    pts = np.asarray(positions, dtype=float)
    centred = pts - pts.mean(axis=0)

    singular_values = np.linalg.svd(centred, compute_uv=False)
    s_max = float(singular_values[0])
    if s_max <= EDGE_TOLERANCE_M:
        return 0.0

    s_min = float(singular_values[-1]) if len(singular_values) > 1 else 0.0
    return float(np.clip(s_min / s_max, 0.0, 1.0))
