"""Tests for ray queries against facet meshes."""

import numpy as np
import pytest
from shatter_glass.core.collider import FacetCollider
from shatter_glass.core.surface import FacetMesh


def make_mesh(heights=(0.0, 0.0, 0.0, 0.0)):
    """A 10 x 10 square of two triangles with the given corner heights."""
    vertices = np.array([
        [0.0, 0.0, heights[0]],
        [10.0, 0.0, heights[1]],
        [10.0, 10.0, heights[2]],
        [0.0, 10.0, heights[3]],
    ])
    faces = np.array([[0, 1, 2], [0, 2, 3]])
    return FacetMesh(vertices=vertices, faces=faces, face_cells=np.array([0, 0]))


class TestFacetCollider:
    """Test first-hit queries."""

    def test_hit_flat_square(self):
        """Test a downward ray hitting a flat square."""
        collider = FacetCollider(make_mesh())
        point, normal, hit = collider.first_hit([3.0, 4.0, 5.0], [0.0, 0.0, -1.0])

        assert hit
        np.testing.assert_allclose(point, [3.0, 4.0, 0.0], atol=1e-9)
        np.testing.assert_allclose(np.abs(normal), [0.0, 0.0, 1.0], atol=1e-9)

    def test_miss_outside(self):
        """Test that a ray beside the mesh misses."""
        collider = FacetCollider(make_mesh())
        point, normal, hit = collider.first_hit([20.0, 4.0, 5.0], [0.0, 0.0, -1.0])

        assert not hit
        assert np.all(np.isnan(point))
        assert np.all(np.isnan(normal))

    def test_tilted_normal(self):
        """Test the normal of a surface rising along x."""
        collider = FacetCollider(make_mesh((0.0, 10.0, 10.0, 0.0)))
        point, normal, hit = collider.first_hit([5.0, 5.0, 20.0], [0.0, 0.0, -1.0])

        assert hit
        assert point[2] == pytest.approx(5.0)
        np.testing.assert_allclose(np.abs(normal), [np.sqrt(0.5), 0.0, np.sqrt(0.5)], atol=1e-9)

    def test_batch_mixed(self):
        """Test a batch with hits and misses."""
        collider = FacetCollider(make_mesh())
        origins = [[1.0, 1.0, 5.0], [-5.0, 1.0, 5.0], [9.0, 2.0, 5.0]]
        directions = np.tile([0.0, 0.0, -1.0], (3, 1))
        points, normals, hit = collider.first_hits(origins, directions)

        np.testing.assert_array_equal(hit, [True, False, True])
        np.testing.assert_allclose(points[[0, 2], :2], [[1.0, 1.0], [9.0, 2.0]])

    def test_ceiling_above_mesh(self):
        """Test that the ceiling clears the highest vertex."""
        collider = FacetCollider(make_mesh((0.0, 3.0, -2.0, 1.0)))
        assert collider.ceiling > 3.0

    def test_empty_mesh_never_hits(self):
        """Test that an empty mesh has no hits."""
        mesh = FacetMesh(vertices=np.empty((0, 3)), faces=np.empty((0, 3), dtype=np.int64),
                         face_cells=np.empty(0, dtype=np.int64))
        collider = FacetCollider(mesh)
        _, _, hit = collider.first_hits([[1.0, 1.0, 1.0]], [[0.0, 0.0, -1.0]])

        assert collider.triangle_count == 0
        assert not hit.any()
