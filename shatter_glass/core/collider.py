"""Ray queries against a finished facet mesh."""

from typing import Tuple

import numpy as np
import structlog
from trimesh.ray.ray_triangle import RayMeshIntersector

from .surface import FacetMesh

logger = structlog.get_logger()


class FacetCollider:
    """
    Read-only first-hit ray queries over a :class:`FacetMesh`.

    Uses trimesh's pure NumPy triangle intersector so hits on shared edges
    and vertices are found with the same tolerance on every platform. An
    empty mesh yields a collider that never hits.
    """

    def __init__(self, mesh: FacetMesh):
        self.mesh = mesh
        self._trimesh = None
        self._intersector = None
        if not mesh.is_empty:
            self._trimesh = mesh.to_trimesh()
            self._intersector = RayMeshIntersector(self._trimesh)
        logger.info("Collider built", triangles=self.triangle_count)

    @property
    def triangle_count(self) -> int:
        return len(self.mesh.faces)

    @property
    def ceiling(self) -> float:
        """A height strictly above every triangle."""
        if self.mesh.is_empty:
            return 1.0
        return float(self.mesh.vertices[:, 2].max()) + 1.0

    def first_hits(self, origins, directions) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Nearest intersection of each ray with the mesh.

        Args:
            origins: ``(n, 3)`` ray origins
            directions: ``(n, 3)`` ray directions

        Returns:
            Tuple of (points, normals, hit): ``(n, 3)`` hit points and face
            normals (NaN where missed) and an ``(n,)`` boolean hit mask
        """
        origins = np.asarray(origins, dtype=float).reshape(-1, 3)
        directions = np.asarray(directions, dtype=float).reshape(-1, 3)
        count = len(origins)

        points = np.full((count, 3), np.nan)
        normals = np.full((count, 3), np.nan)
        hit = np.zeros(count, dtype=bool)
        if self._intersector is None or count == 0:
            return points, normals, hit

        locations, index_ray, index_tri = self._intersector.intersects_location(
            origins, directions, multiple_hits=False
        )
        if len(index_ray):
            points[index_ray] = locations
            normals[index_ray] = self._trimesh.face_normals[index_tri]
            hit[index_ray] = True
        return points, normals, hit

    def first_hit(self, origin, direction) -> Tuple[np.ndarray, np.ndarray, bool]:
        """Single-ray form of :meth:`first_hits`."""
        points, normals, hit = self.first_hits([origin], [direction])
        return points[0], normals[0], bool(hit[0])
