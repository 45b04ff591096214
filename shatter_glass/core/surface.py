"""
Surface lifting: turn a repaired Voronoi diagram into a 3D facet mesh.

Each cell is triangulated and embedded at height zero, then heights are
perturbed by one of three noise models:

- ``sensitivity``: per shared vertex, uniform noise divided by how strongly
  the vertex's height tilts its incident triangles, so sliver triangles do
  not explode into extreme normals.
- ``uniform``: each cell is raised or lowered as a whole.
- ``normal_jitter``: each cell gets a randomly tilted normal and becomes the
  plane through its site with that normal.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np
import structlog
import trimesh
from scipy.spatial import Delaunay, QhullError

from .geometry import Point, polygon_area
from .voronoi import VoronoiDiagram
from ..utils.random import get_rng

logger = structlog.get_logger()

SENSITIVITY_DELTA = 1e-5
MIN_SENSITIVITY = 1e-3
DEGENERATE_AREA = 1e-12


class NoiseModel(str, Enum):
    """Height noise applied when lifting cells."""
    SENSITIVITY = "sensitivity"
    UNIFORM = "uniform"
    NORMAL_JITTER = "normal_jitter"


@dataclass
class FacetMesh:
    """Triangle mesh grouped by originating Voronoi cell.

    ``faces`` index into ``vertices``; ``face_cells[i]`` is the cell that
    produced triangle ``i``.
    """
    vertices: np.ndarray    # (n, 3) float
    faces: np.ndarray       # (m, 3) int
    face_cells: np.ndarray  # (m,) int

    @property
    def triangles(self) -> np.ndarray:
        """``(m, 3, 3)`` corner coordinates of every triangle."""
        return self.vertices[self.faces]

    @property
    def is_empty(self) -> bool:
        return len(self.faces) == 0

    def vertex_cells(self) -> np.ndarray:
        """Cell of every vertex (the last one written when vertices are shared)."""
        cells = np.full(len(self.vertices), -1, dtype=np.int64)
        cells[self.faces] = self.face_cells[:, None]
        return cells

    def to_trimesh(self) -> trimesh.Trimesh:
        return trimesh.Trimesh(vertices=self.vertices, faces=self.faces, process=False)


def triangulate(polygon: Sequence[Point]) -> np.ndarray:
    """
    Triangulate a convex polygon.

    Returns:
        ``(k, 3)`` indices into ``polygon``; empty if the polygon is degenerate
    """
    if len(polygon) < 3:
        return np.empty((0, 3), dtype=np.int64)
    try:
        return Delaunay(np.asarray(polygon, dtype=float)).simplices
    except QhullError:
        logger.debug("Skipping degenerate polygon", vertices=len(polygon))
        return np.empty((0, 3), dtype=np.int64)


def build_flat_mesh(diagram: VoronoiDiagram, share_vertices: bool = True) -> FacetMesh:
    """
    Triangulate every cell and place the triangles at height zero.

    Args:
        diagram: Repaired diagram
        share_vertices: Merge value-equal coordinates across cells; when
            False every cell owns its own copies so it can move independently

    Returns:
        Flat FacetMesh
    """
    vertex_index = {}
    vertices = []
    faces = []
    face_cells = []

    for cell_idx, cell in enumerate(diagram.cells):
        polygon = cell.polygon
        for simplex in triangulate(polygon):
            corners = [polygon[i] for i in simplex]
            if polygon_area(corners) <= DEGENERATE_AREA:
                continue

            face = []
            for corner in corners:
                key = corner if share_vertices else (cell_idx, corner)
                idx = vertex_index.get(key)
                if idx is None:
                    idx = len(vertices)
                    vertex_index[key] = idx
                    vertices.append((corner[0], corner[1], 0.0))
                face.append(idx)
            faces.append(face)
            face_cells.append(cell_idx)

    return FacetMesh(
        vertices=np.asarray(vertices, dtype=float).reshape(-1, 3),
        faces=np.asarray(faces, dtype=np.int64).reshape(-1, 3),
        face_cells=np.asarray(face_cells, dtype=np.int64),
    )


def projected_normal_norm(triangle: np.ndarray) -> float:
    """Length of the XY part of the triangle's unit normal."""
    normal = np.cross(triangle[1] - triangle[0], triangle[2] - triangle[0])
    length = np.linalg.norm(normal)
    if length == 0:
        return 0.0
    return float(np.hypot(normal[0], normal[1]) / length)


def triangle_sensitivity(triangle: np.ndarray, corner: int,
                         delta: float = SENSITIVITY_DELTA) -> float:
    """
    Finite-difference derivative of the projected normal w.r.t. one height.

    Works on a copy; ``triangle`` is never modified.

    Args:
        triangle: ``(3, 3)`` corner coordinates
        corner: Which corner's height to raise
        delta: Height step

    Returns:
        Change in ``|normal.xy|`` per unit height
    """
    nudged = np.array(triangle, dtype=float)
    before = projected_normal_norm(nudged)
    nudged[corner, 2] += delta
    after = projected_normal_norm(nudged)
    return (after - before) / delta


def vertex_sensitivities(mesh: FacetMesh) -> np.ndarray:
    """Per vertex, the largest sensitivity over its incident triangles (0 if none)."""
    sensitivities = np.zeros(len(mesh.vertices))
    for face, triangle in zip(mesh.faces, mesh.triangles):
        for corner, vertex in enumerate(face):
            sensitivities[vertex] = max(sensitivities[vertex],
                                        triangle_sensitivity(triangle, corner))
    return sensitivities


def jitter_normals(count: int, noise_scale: float,
                   rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Unit normals tilted away from +Z by normally distributed XY noise.

    Returns:
        ``(count, 3)`` array of unit vectors with positive Z
    """
    rng = rng if rng is not None else get_rng()
    noise = rng.standard_normal((count, 2)) * noise_scale
    normals = np.column_stack([noise, np.ones(count)])
    return normals / np.linalg.norm(normals, axis=1, keepdims=True)


def apply_sensitivity_noise(mesh: FacetMesh, noise_scale: float,
                            rng: np.random.Generator) -> None:
    # all sensitivities are measured on the undisplaced mesh
    sensitivities = np.maximum(vertex_sensitivities(mesh), MIN_SENSITIVITY)
    noise = rng.uniform(-1.0, 1.0, size=len(mesh.vertices))
    mesh.vertices[:, 2] += noise * noise_scale / sensitivities


def apply_uniform_noise(mesh: FacetMesh, cell_count: int, noise_scale: float,
                        rng: np.random.Generator) -> None:
    offsets = rng.uniform(-1.0, 1.0, size=cell_count) * noise_scale
    if mesh.is_empty:
        return
    mesh.vertices[:, 2] += offsets[mesh.vertex_cells()]


def apply_normal_jitter(mesh: FacetMesh, diagram: VoronoiDiagram, noise_scale: float,
                        rng: np.random.Generator) -> None:
    normals = jitter_normals(len(diagram.cells), noise_scale, rng)
    if mesh.is_empty:
        return

    cells = mesh.vertex_cells()
    sites = np.asarray(diagram.sites, dtype=float).reshape(-1, 2)[cells]
    n = normals[cells]
    dx = mesh.vertices[:, 0] - sites[:, 0]
    dy = mesh.vertices[:, 1] - sites[:, 1]
    # plane through the site: n · (p - site) = 0
    mesh.vertices[:, 2] = -(n[:, 0] * dx + n[:, 1] * dy) / n[:, 2]


def lift_to_mesh(diagram: VoronoiDiagram, noise_scale: float,
                 noise_model: NoiseModel = NoiseModel.SENSITIVITY,
                 rng: Optional[np.random.Generator] = None) -> FacetMesh:
    """
    Triangulate the diagram and displace vertex heights.

    Only heights change during displacement; connectivity is fixed once the
    flat mesh is built.

    Args:
        diagram: Repaired Voronoi diagram
        noise_scale: Noise amplitude (0 gives a flat mesh)
        noise_model: Which noise to apply
        rng: Generator to draw from (package generator by default)

    Returns:
        Displaced FacetMesh
    """
    noise_model = NoiseModel(noise_model)
    if noise_scale < 0:
        raise ValueError(f"noise scale must be non-negative, got {noise_scale}")
    rng = rng if rng is not None else get_rng()

    share_vertices = noise_model is NoiseModel.SENSITIVITY
    mesh = build_flat_mesh(diagram, share_vertices=share_vertices)
    logger.info("Lifting Voronoi cells", cells=len(diagram.cells),
                triangles=len(mesh.faces), vertices=len(mesh.vertices),
                noise_model=noise_model.value, noise_scale=noise_scale)

    if noise_model is NoiseModel.SENSITIVITY:
        apply_sensitivity_noise(mesh, noise_scale, rng)
    elif noise_model is NoiseModel.UNIFORM:
        apply_uniform_noise(mesh, len(diagram.cells), noise_scale, rng)
    else:
        apply_normal_jitter(mesh, diagram, noise_scale, rng)

    if not mesh.is_empty:
        logger.info("Mesh lifted", z_min=float(mesh.vertices[:, 2].min()),
                    z_max=float(mesh.vertices[:, 2].max()))
    return mesh
