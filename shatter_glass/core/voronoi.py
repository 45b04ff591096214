"""Voronoi cell construction by half-plane intersection."""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import structlog
from scipy.spatial import QhullError

from .geometry import (
    Edge,
    HalfPlane,
    Point,
    bisector,
    clip_polygon,
    edges_to_polygon,
    halfspace_polygon,
    intersect_half_planes,
    polygon_area,
    polygon_edges,
    rectangle_polygon,
)
from ..utils.random import get_rng

logger = structlog.get_logger()

STRATEGIES = ("incremental", "exhaustive")


@dataclass
class VoronoiCell:
    """One convex cell: its site and the ordered edges bounding it.

    Cells are computed independently, so neighbouring cells may disagree on
    shared vertices by rounding error until the diagram is repaired.
    """
    site: Point
    edges: List[Edge] = field(default_factory=list)

    @property
    def polygon(self) -> List[Point]:
        """Vertex loop of the cell boundary."""
        return edges_to_polygon(self.edges)

    @property
    def area(self) -> float:
        return polygon_area(self.polygon)

    @property
    def is_empty(self) -> bool:
        return not self.edges


@dataclass
class VoronoiDiagram:
    """Cells tiling the rectangle ``[bound_min, bound_max]``, one per site."""
    bound_min: Point
    bound_max: Point
    cells: List[VoronoiCell]

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self):
        return iter(self.cells)

    @property
    def sites(self) -> List[Point]:
        return [cell.site for cell in self.cells]

    def coords(self) -> List[Point]:
        """Distinct edge endpoints, in order of first appearance."""
        seen = set()
        coords = []
        for cell in self.cells:
            for edge in cell.edges:
                for p in edge:
                    if p not in seen:
                        seen.add(p)
                        coords.append(p)
        return coords

    def total_area(self) -> float:
        return sum(cell.area for cell in self.cells)


class CellWorkingSet:
    """
    Mutable state of one cell during incremental construction.

    Holds the polygon accepted so far and the competing sites not yet used,
    nearest first. A competitor farther than twice the polygon's radius
    (measured from the site) has a bisector lying entirely outside the
    polygon, and so do all sites after it.
    """

    def __init__(self, site: Point, polygon: List[Point],
                 candidates: Sequence[int], distances: Sequence[float]):
        self.site = site
        self.polygon = polygon
        self._candidates = list(candidates)
        self._distances = list(distances)
        self._next = 0

    @property
    def exhausted(self) -> bool:
        return not self.polygon or self._next >= len(self._candidates)

    def reach(self) -> float:
        """Largest distance at which a competing site can still cut the cell."""
        sx, sy = self.site
        radius = max(math.hypot(x - sx, y - sy) for x, y in self.polygon)
        return 2.0 * radius

    def pop_nearest(self) -> int:
        index = self._candidates[self._next]
        self._next += 1
        return index

    def clip(self, constraint: HalfPlane) -> None:
        self.polygon = clip_polygon(self.polygon, constraint)

    def prune(self) -> None:
        """Drop every remaining candidate beyond the current reach."""
        if not self.polygon:
            return
        reach = self.reach()
        while self._next < len(self._candidates) and self._distances[-1] > reach:
            self._candidates.pop()
            self._distances.pop()


def random_sites(count: int, bound_min: Sequence[float], bound_max: Sequence[float],
                 rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Scatter ``count`` uniformly random sites inside the rectangle.

    Args:
        count: Number of sites
        bound_min: Lower-left corner
        bound_max: Upper-right corner
        rng: Generator to draw from (package generator by default)

    Returns:
        ``(count, 2)`` array of site coordinates
    """
    if count < 0:
        raise ValueError(f"site count must be non-negative, got {count}")
    rng = rng if rng is not None else get_rng()
    low = np.asarray(bound_min, dtype=float)
    high = np.asarray(bound_max, dtype=float)
    return rng.uniform(low, high, size=(count, 2))


def _as_points(sites) -> List[Point]:
    array = np.asarray(sites, dtype=float).reshape(-1, 2)
    return [(float(x), float(y)) for x, y in array]


def _first_occurrences(points: List[Point]) -> Dict[Point, int]:
    first = {}
    for i, p in enumerate(points):
        first.setdefault(p, i)
    return first


def incremental_cell(index: int, points: List[Point], coords: np.ndarray,
                     bound_min: Sequence[float], bound_max: Sequence[float]) -> VoronoiCell:
    """
    Build one cell by clipping against bisectors nearest-first.

    Sites at equal distance are taken in input order (stable sort), so the
    result is reproducible.
    """
    site = points[index]
    distances = np.hypot(coords[:, 0] - site[0], coords[:, 1] - site[1])
    order = np.argsort(distances, kind="stable")
    # coincident sites (including this one) produce no bisector
    order = order[distances[order] > 0]

    working = CellWorkingSet(site, rectangle_polygon(bound_min, bound_max),
                             order.tolist(), distances[order].tolist())
    working.prune()
    while not working.exhausted:
        other = working.pop_nearest()
        working.clip(bisector(site, points[other]))
        working.prune()

    return VoronoiCell(site=site, edges=polygon_edges(working.polygon))


def exhaustive_cell(index: int, points: List[Point],
                    bound_min: Sequence[float], bound_max: Sequence[float]) -> VoronoiCell:
    """
    Build one cell from the bisectors against every other site.

    All constraints go to qhull at once with the site as the interior point.
    A site on the rectangle boundary is not strictly interior, so that cell
    is clipped one constraint at a time instead.
    """
    site = points[index]
    constraints = [bisector(site, other) for other in points if other != site]
    try:
        polygon = halfspace_polygon(constraints, site, bound_min, bound_max)
    except (QhullError, ValueError):
        logger.debug("Site not interior, clipping cell", site=site)
        return VoronoiCell(site=site, edges=intersect_half_planes(constraints, bound_min, bound_max))
    return VoronoiCell(site=site, edges=polygon_edges(polygon))


def compute_cells(bound_min: Sequence[float], bound_max: Sequence[float], sites,
                  strategy: str = "incremental") -> VoronoiDiagram:
    """
    Compute one bounded Voronoi cell per site.

    The resulting cells may be slightly misaligned: adjacent cells compute
    their shared vertices independently, so coordinates can differ by
    rounding error. See :func:`shatter_glass.core.repair.repair`.

    Args:
        bound_min: Lower-left corner of the bounding rectangle
        bound_max: Upper-right corner of the bounding rectangle
        sites: ``(n, 2)`` array-like of sites strictly inside the rectangle
        strategy: ``"incremental"`` (nearest-first with pruning) or
            ``"exhaustive"`` (all bisectors)

    Returns:
        VoronoiDiagram with cells in site order. A site equal to an earlier
        site gets an empty cell.
    """
    if strategy not in STRATEGIES:
        raise ValueError(f"unknown Voronoi strategy {strategy!r}, expected one of {STRATEGIES}")

    points = _as_points(sites)
    bound_min = (float(bound_min[0]), float(bound_min[1]))
    bound_max = (float(bound_max[0]), float(bound_max[1]))
    rectangle_polygon(bound_min, bound_max)  # validates the bounds

    logger.info("Computing Voronoi cells", sites=len(points), strategy=strategy,
                bound_min=bound_min, bound_max=bound_max)

    coords = np.asarray(points, dtype=float).reshape(-1, 2)
    first = _first_occurrences(points)
    cells = []
    duplicates = 0
    for i, site in enumerate(points):
        if first[site] != i:
            duplicates += 1
            cells.append(VoronoiCell(site=site))
            continue

        if strategy == "incremental":
            cells.append(incremental_cell(i, points, coords, bound_min, bound_max))
        else:
            cells.append(exhaustive_cell(i, points, bound_min, bound_max))

    if duplicates:
        logger.warning("Duplicate sites produced empty cells", duplicates=duplicates)

    empty = sum(1 for cell in cells if cell.is_empty)
    logger.info("Voronoi cells computed", cells=len(cells), empty_cells=empty)
    return VoronoiDiagram(bound_min=bound_min, bound_max=bound_max, cells=cells)
