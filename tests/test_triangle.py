"""
Unit tests for stl_milling.geometry.triangle and stl_milling.geometry.spatial_index.

Tests:
- Barycentric coordinates and point-in-triangle
- Depth interpolation
- Strict 2D overlap (edge contact is not overlap)
- rtree-backed triangle indexes
"""

import numpy as np
import pytest

from stl_milling.geometry.spatial_index import (
    IncrementalTriangleIndex,
    build_rtree_index,
    query_rtree,
    triangle_bounds,
)
from stl_milling.geometry.triangle import (
    barycentric,
    compute_scaled_tolerance,
    interpolate_z,
    point_in_triangle,
    signed_area,
    triangles_overlap,
)

UNIT = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])


# ============================================================================
# Triangle primitives
# ============================================================================

class TestBarycentric:
    """Tests for barycentric coordinates."""

    def test_interior_point(self):
        weights = barycentric(np.array([0.25, 0.25]), UNIT)
        assert weights == pytest.approx((0.5, 0.25, 0.25))

    def test_vertices(self):
        for i, vertex in enumerate(UNIT):
            weights = barycentric(vertex, UNIT)
            assert weights[i] == pytest.approx(1.0)

    def test_degenerate_returns_none(self):
        line = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
        assert barycentric(np.array([0.5, 0.0]), line) is None


class TestPointInTriangle:
    """Tests for point_in_triangle function."""

    def test_inside(self):
        assert point_in_triangle(np.array([0.2, 0.2]), UNIT)

    def test_on_edge(self):
        assert point_in_triangle(np.array([0.5, 0.0]), UNIT)

    def test_outside(self):
        assert not point_in_triangle(np.array([0.8, 0.8]), UNIT)

    def test_tolerance(self):
        pt = np.array([0.5, -1e-6])
        assert not point_in_triangle(pt, UNIT)
        assert point_in_triangle(pt, UNIT, tolerance=1e-3)


class TestInterpolateZ:
    """Tests for interpolate_z function."""

    def test_linear_depth(self):
        z = interpolate_z(np.array([0.25, 0.25]), UNIT, np.array([0.0, 1.0, 2.0]))
        assert z == pytest.approx(0.75)

    def test_degenerate_is_infinite(self):
        line = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
        assert interpolate_z(np.array([0.5, 0.0]), line, np.zeros(3)) == np.inf


class TestTrianglesOverlap:
    """Tests for strict 2D triangle overlap."""

    def test_signed_area_orientation(self):
        assert signed_area(UNIT) == pytest.approx(0.5)
        assert signed_area(UNIT[[0, 2, 1]]) == pytest.approx(-0.5)

    def test_identical(self):
        assert triangles_overlap(UNIT, UNIT.copy())

    def test_shifted(self):
        assert triangles_overlap(UNIT, UNIT + 0.2)

    def test_shared_edge_is_not_overlap(self):
        neighbor = np.array([[1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
        assert not triangles_overlap(UNIT, neighbor)

    def test_shared_vertex_is_not_overlap(self):
        assert not triangles_overlap(UNIT, -UNIT)

    def test_disjoint(self):
        assert not triangles_overlap(UNIT, UNIT + 5.0)

    def test_degenerate_never_overlaps(self):
        line = np.array([[0.0, 0.0], [1.0, 1.0], [0.5, 0.5]])
        assert not triangles_overlap(UNIT, line)

    def test_eps_ignores_shallow_contact(self):
        shifted = UNIT + np.array([0.999, 0.0])
        assert triangles_overlap(UNIT, shifted)
        assert not triangles_overlap(UNIT, shifted, eps=1e-2)


class TestScaledTolerance:
    """Tests for compute_scaled_tolerance function."""

    def test_scaled_by_largest_extent(self):
        points = np.array([[0.0, 0.0, 5.0], [4.0, 2.0, -5.0]])
        assert compute_scaled_tolerance(points, 1e-3) == pytest.approx(4e-3)

    def test_empty(self):
        assert compute_scaled_tolerance(np.zeros((0, 3)), 1e-3) == 0.0


# ============================================================================
# Spatial indexes
# ============================================================================

class TestRtreeIndex:
    """Tests for the static rtree index over projected faces."""

    def test_bounds(self):
        assert triangle_bounds(UNIT + 1.0) == (1.0, 1.0, 2.0, 2.0)

    def test_point_query(self):
        projected = np.array([
            [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0],
            [5.0, 5.0, 0.0], [6.0, 5.0, 0.0], [5.0, 6.0, 0.0],
        ])
        faces = np.array([[0, 1, 2], [3, 4, 5]])
        idx = build_rtree_index(projected, faces)

        assert query_rtree(idx, (0.2, 0.2, 0.2, 0.2)) == [0]
        assert query_rtree(idx, (5.5, 5.5, 5.5, 5.5)) == [1]
        assert query_rtree(idx, (-1.0, -1.0, 10.0, 10.0)) == [0, 1]
        assert query_rtree(idx, (3.0, 3.0, 3.0, 3.0)) == []


class TestIncrementalTriangleIndex:
    """Tests for IncrementalTriangleIndex class."""

    def test_empty_index(self):
        idx = IncrementalTriangleIndex()
        assert len(idx) == 0
        assert not idx.overlaps(UNIT)

    def test_insert_and_overlap(self):
        idx = IncrementalTriangleIndex()
        assert idx.insert(UNIT) == 0
        assert idx.insert(UNIT + 10.0) == 1

        assert len(idx) == 2
        assert idx.overlaps(UNIT + 0.1)
        assert idx.overlaps(UNIT + 10.1)
        assert not idx.overlaps(UNIT + 5.0)

    def test_bbox_hit_without_overlap(self):
        """A neighbor across the hypotenuse shares the bbox but not the interior."""
        idx = IncrementalTriangleIndex()
        idx.insert(UNIT)
        assert not idx.overlaps(np.array([[1.0, 0.0], [1.0, 1.0], [0.0, 1.0]]))
