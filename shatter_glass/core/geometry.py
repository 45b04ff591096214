"""
Planar geometry primitives used to build Voronoi cells.

Half-plane intersection is delegated to shapely (one clip at a time) or to
scipy's qhull wrapper (all constraints at once). Results leave this module
as plain ``(x, y)`` float tuples so they can be hashed when cells are
repaired.
"""

import math
from typing import List, NamedTuple, Sequence, Tuple

import numpy as np
from scipy.spatial import HalfspaceIntersection
from shapely.geometry import MultiPoint, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient

Point = Tuple[float, float]
Edge = Tuple[Point, Point]


class HalfPlane(NamedTuple):
    """Constraint ``normal · p <= offset`` with a unit ``normal``."""
    normal: Point
    offset: float

    def signed_distance(self, point: Sequence[float]) -> float:
        """Distance of ``point`` past the boundary (negative inside)."""
        return self.normal[0] * point[0] + self.normal[1] * point[1] - self.offset

    def contains(self, point: Sequence[float], tolerance: float = 0.0) -> bool:
        return self.signed_distance(point) <= tolerance

    def as_polygon(self, extent: BaseGeometry) -> Polygon:
        """The half-plane cut down to a quad large enough to cover ``extent``."""
        minx, miny, maxx, maxy = extent.bounds
        cx, cy = (minx + maxx) / 2, (miny + maxy) / 2
        nx, ny = self.normal
        d = self.signed_distance((cx, cy))
        # foot of the extent's centre on the boundary line
        px, py = cx - d * nx, cy - d * ny
        tx, ty = -ny, nx
        span = math.hypot(maxx - minx, maxy - miny) + abs(d) + 1.0
        return Polygon([
            (px + tx * span, py + ty * span),
            (px - tx * span, py - ty * span),
            (px - (tx + 2 * nx) * span, py - (ty + 2 * ny) * span),
            (px + (tx - 2 * nx) * span, py + (ty - 2 * ny) * span),
        ])


def bisector(site: Sequence[float], other: Sequence[float]) -> HalfPlane:
    """
    Half-plane of points at least as close to ``site`` as to ``other``.

    Args:
        site: Site owning the cell
        other: Competing site

    Returns:
        Perpendicular bisector constraint oriented toward ``site``

    Raises:
        ValueError: If the two sites coincide
    """
    dx = other[0] - site[0]
    dy = other[1] - site[1]
    length = math.hypot(dx, dy)
    if length == 0:
        raise ValueError(f"bisector undefined for coincident sites {tuple(site)}")

    nx, ny = dx / length, dy / length
    mx = (site[0] + other[0]) / 2
    my = (site[1] + other[1]) / 2
    return HalfPlane((nx, ny), nx * mx + ny * my)


def rectangle_polygon(bound_min: Sequence[float], bound_max: Sequence[float]) -> List[Point]:
    """Counter-clockwise corners of an axis-aligned rectangle."""
    x0, y0 = float(bound_min[0]), float(bound_min[1])
    x1, y1 = float(bound_max[0]), float(bound_max[1])
    if x1 < x0 or y1 < y0:
        raise ValueError(f"invalid bounds: min={tuple(bound_min)} max={tuple(bound_max)}")
    return [(x0, y0), (x1, y0), (x1, y1), (x0, y1)]


def rectangle_constraints(bound_min: Sequence[float], bound_max: Sequence[float]) -> List[HalfPlane]:
    """The four half-planes whose intersection is the bounding rectangle."""
    return [
        HalfPlane((-1.0, 0.0), -float(bound_min[0])),
        HalfPlane((1.0, 0.0), float(bound_max[0])),
        HalfPlane((0.0, -1.0), -float(bound_min[1])),
        HalfPlane((0.0, 1.0), float(bound_max[1])),
    ]


def polygon_vertices(geometry: BaseGeometry) -> List[Point]:
    """
    Counter-clockwise vertex loop of a shapely polygon.

    Anything that is not a polygon with positive area (an empty result, or
    a region that collapsed to a line or point) gives an empty list.
    """
    if geometry.is_empty or geometry.geom_type != "Polygon" or geometry.area <= 0:
        return []
    ring = orient(geometry, sign=1.0).exterior.coords[:-1]
    return [(float(x), float(y)) for x, y in ring]


def clip_polygon(polygon: Sequence[Point], constraint: HalfPlane) -> List[Point]:
    """
    Clip a convex polygon against a single half-plane.

    Returns:
        Counter-clockwise vertices of the clipped polygon, or an empty list
        if nothing with positive area is left
    """
    if len(polygon) < 3:
        return []
    region = Polygon(polygon)
    return polygon_vertices(region.intersection(constraint.as_polygon(region)))


def intersect_half_planes(constraints: Sequence[HalfPlane],
                          bound_min: Sequence[float],
                          bound_max: Sequence[float]) -> List[Edge]:
    """
    Boundary of the intersection of ``constraints`` with the bounding rectangle.

    Returns:
        Ordered boundary edges, or an empty list if the region is empty
    """
    region = Polygon(rectangle_polygon(bound_min, bound_max))
    for constraint in constraints:
        region = region.intersection(constraint.as_polygon(region))
        if region.is_empty or region.geom_type != "Polygon":
            return []
    return polygon_edges(polygon_vertices(region))


def halfspace_polygon(constraints: Sequence[HalfPlane], interior: Sequence[float],
                      bound_min: Sequence[float], bound_max: Sequence[float]) -> List[Point]:
    """
    Intersect all constraints with the rectangle in one qhull call.

    Args:
        constraints: Half-planes to intersect
        interior: A point strictly inside every constraint and the rectangle
        bound_min: Lower-left corner of the bounding rectangle
        bound_max: Upper-right corner of the bounding rectangle

    Returns:
        Counter-clockwise vertices of the region

    Raises:
        ValueError: If ``interior`` is not strictly inside the region
        QhullError: If qhull cannot build the intersection
    """
    planes = list(constraints) + rectangle_constraints(bound_min, bound_max)
    if any(plane.signed_distance(interior) >= 0 for plane in planes):
        raise ValueError(f"interior point {tuple(interior)} is not strictly inside the region")
    # qhull wants A x + b <= 0
    halfspaces = np.array([[c.normal[0], c.normal[1], -c.offset] for c in planes], dtype=float)
    hs = HalfspaceIntersection(halfspaces, np.asarray(interior, dtype=float))
    return polygon_vertices(MultiPoint(hs.intersections).convex_hull)


def polygon_edges(polygon: Sequence[Point]) -> List[Edge]:
    """Closed loop of edges through the polygon's vertices."""
    n = len(polygon)
    if n < 2:
        return []
    return [(polygon[i], polygon[(i + 1) % n]) for i in range(n)]


def edges_to_polygon(edges: Sequence[Edge]) -> List[Point]:
    """Vertex loop of an ordered edge list (start point of every edge)."""
    return [edge[0] for edge in edges]


def polygon_area(polygon: Sequence[Point]) -> float:
    """Unsigned area of a vertex loop (0 for fewer than three vertices)."""
    if len(polygon) < 3:
        return 0.0
    return Polygon(polygon).area
