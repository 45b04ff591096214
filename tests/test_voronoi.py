"""Tests for Voronoi cell construction."""

import numpy as np
import pytest
from shapely.geometry import Point, Polygon
from shatter_glass.core.repair import repair
from shatter_glass.core.voronoi import (
    CellWorkingSet, VoronoiCell, compute_cells, random_sites
)


def overlap_area(a, b):
    """Area shared by two cell polygons."""
    return Polygon(a).intersection(Polygon(b)).area


def point_in_cell(polygon, point, tol=1e-9):
    return Polygon(polygon).distance(Point(point)) <= tol


@pytest.fixture
def random_diagram():
    """Twenty random sites in a 100 x 80 rectangle."""
    rng = np.random.default_rng(1234)
    sites = random_sites(20, (0, 0), (100, 80), rng)
    return compute_cells((0, 0), (100, 80), sites)


class TestRandomSites:
    """Test site scattering."""

    def test_sites_within_bounds(self):
        """Test that all sites fall inside the rectangle."""
        sites = random_sites(200, (10, 20), (50, 30), np.random.default_rng(0))

        assert sites.shape == (200, 2)
        assert np.all(sites[:, 0] >= 10) and np.all(sites[:, 0] < 50)
        assert np.all(sites[:, 1] >= 20) and np.all(sites[:, 1] < 30)

    def test_reproducibility(self):
        """Test that the same seed gives the same sites."""
        a = random_sites(10, (0, 0), (1, 1), np.random.default_rng(7))
        b = random_sites(10, (0, 0), (1, 1), np.random.default_rng(7))
        np.testing.assert_array_equal(a, b)

    def test_zero_sites(self):
        """Test that zero sites is allowed."""
        assert random_sites(0, (0, 0), (1, 1), np.random.default_rng(0)).shape == (0, 2)

    def test_negative_count(self):
        """Test that a negative count is rejected."""
        with pytest.raises(ValueError):
            random_sites(-1, (0, 0), (1, 1))


class TestVoronoiCells:
    """Test cell construction."""

    def test_two_sites_split_rectangle(self):
        """Test that two sites split the square along x = 5."""
        diagram = compute_cells((0, 0), (10, 10), [(0, 0), (10, 0)])

        left, right = diagram.cells
        np.testing.assert_allclose(sorted(left.polygon),
                                   [[0, 0], [0, 10], [5, 0], [5, 10]], atol=1e-12)
        np.testing.assert_allclose(sorted(right.polygon),
                                   [[5, 0], [5, 10], [10, 0], [10, 10]], atol=1e-12)
        assert left.area == pytest.approx(50.0)
        assert right.area == pytest.approx(50.0)

    def test_single_site_covers_rectangle(self):
        """Test that one site owns the whole rectangle."""
        diagram = compute_cells((0, 0), (10, 10), [(5, 5)])

        assert len(diagram) == 1
        assert diagram.cells[0].area == pytest.approx(100.0)
        assert len(diagram.cells[0].edges) == 4

    def test_no_sites(self):
        """Test that no sites give an empty diagram."""
        diagram = compute_cells((0, 0), (10, 10), np.empty((0, 2)))

        assert len(diagram) == 0
        assert diagram.coords() == []

    def test_duplicate_site_gets_empty_cell(self):
        """Test that the second copy of a site gets an empty cell."""
        diagram = compute_cells((0, 0), (10, 10), [(2, 2), (8, 8), (2, 2)])

        assert not diagram.cells[0].is_empty
        assert diagram.cells[2].is_empty
        assert diagram.cells[2].site == (2.0, 2.0)
        assert diagram.total_area() == pytest.approx(100.0)

    def test_vertices_inside_bounds(self, random_diagram):
        """Test that every cell vertex lies within the rectangle."""
        for cell in random_diagram:
            for x, y in cell.polygon:
                assert -1e-9 <= x <= 100 + 1e-9
                assert -1e-9 <= y <= 80 + 1e-9

    def test_cells_tile_rectangle(self, random_diagram):
        """Test that cell areas add up to the rectangle area."""
        assert random_diagram.total_area() == pytest.approx(100 * 80, rel=1e-9)

    def test_cells_do_not_overlap(self, random_diagram):
        """Test that pairwise overlaps have no area."""
        cells = random_diagram.cells
        for i in range(len(cells)):
            for j in range(i + 1, len(cells)):
                assert overlap_area(cells[i].polygon, cells[j].polygon) < 1e-6

    def test_cells_are_convex(self, random_diagram):
        """Test that every cell turns left at each vertex."""
        for cell in random_diagram:
            polygon = cell.polygon
            n = len(polygon)
            for i in range(n):
                a, b, c = polygon[i], polygon[(i + 1) % n], polygon[(i + 2) % n]
                cross = (b[0] - a[0]) * (c[1] - b[1]) - (b[1] - a[1]) * (c[0] - b[0])
                assert cross >= -1e-9

    def test_points_belong_to_nearest_site(self, random_diagram):
        """Test that a point's nearest site owns a cell containing it."""
        rng = np.random.default_rng(99)
        sites = np.asarray(random_diagram.sites)
        for point in rng.uniform((0, 0), (100, 80), size=(200, 2)):
            nearest = int(np.argmin(np.hypot(*(sites - point).T)))
            assert point_in_cell(random_diagram.cells[nearest].polygon, point)

    def test_strategies_agree(self):
        """Test that incremental and exhaustive construction match."""
        sites = random_sites(40, (0, 0), (200, 100), np.random.default_rng(5))
        incremental = compute_cells((0, 0), (200, 100), sites, strategy="incremental")
        exhaustive = compute_cells((0, 0), (200, 100), sites, strategy="exhaustive")

        for a, b in zip(incremental, exhaustive):
            assert a.area == pytest.approx(b.area, rel=1e-7, abs=1e-9)

    def test_exhaustive_site_on_boundary(self):
        """Test that a site on the rectangle edge still gets its cell."""
        diagram = compute_cells((0, 0), (10, 10), [(0, 5), (8, 5)], strategy="exhaustive")

        assert diagram.cells[0].area == pytest.approx(40.0)
        assert diagram.total_area() == pytest.approx(100.0)

    def test_unknown_strategy(self):
        """Test that unknown strategies are rejected."""
        with pytest.raises(ValueError):
            compute_cells((0, 0), (1, 1), [(0.5, 0.5)], strategy="fortune")

    def test_coords_are_distinct_and_ordered(self):
        """Test that coords lists each endpoint once in first-seen order."""
        diagram = compute_cells((0, 0), (10, 10), [(0, 0), (10, 0)])
        repair(diagram)
        coords = diagram.coords()

        assert len(coords) == len(set(coords)) == 6
        assert coords[0] == diagram.cells[0].edges[0][0]


class TestCellWorkingSet:
    """Test the incremental working set."""

    def test_far_candidates_pruned(self):
        """Test that sites beyond twice the cell radius are dropped."""
        polygon = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]
        working = CellWorkingSet((0.5, 0.5), polygon, [3, 1, 2], [1.0, 1.4, 5.0])
        working.prune()

        assert working.pop_nearest() == 3
        assert working.pop_nearest() == 1
        assert working.exhausted

    def test_empty_polygon_is_exhausted(self):
        """Test that an emptied cell stops construction."""
        working = CellWorkingSet((0.5, 0.5), [], [1], [1.0])
        assert working.exhausted


def test_cell_without_edges():
    """Test the degenerate empty cell."""
    cell = VoronoiCell(site=(1.0, 1.0))

    assert cell.is_empty
    assert cell.polygon == []
    assert cell.area == 0.0
