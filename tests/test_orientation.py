"""
Unit tests for stl_milling.orientation.optimal module.

Tests:
- Candidate rotation generation
- Projected-area cost
- Canonical axis alignment
- In-place orientation of a mesh pair
"""

import numpy as np
import pytest

from stl_milling import config
from stl_milling.orientation.optimal import (
    candidate_rotations,
    canonical_rotation,
    find_optimal_rotation,
    projected_area_cost,
    rotate_to_optimal_orientation,
)
from stl_milling.orientation.rotation import Rotation3D
from tests.conftest import make_box


class TestCandidateRotations:
    """Tests for candidate_rotations function."""

    def test_count_and_identity_first(self, monkeypatch):
        monkeypatch.setattr(config, "ORIENTATION_SPIN_STEPS", 4)

        candidates = candidate_rotations(10)

        assert len(candidates) == 1 + 10 * 4
        assert candidates[0].is_identity()

    def test_all_proper_rotations(self):
        for rot in candidate_rotations(8, deterministic=False, seed=1):
            assert np.allclose(rot.matrix @ rot.matrix.T, np.eye(3), atol=1e-9)
            assert np.isclose(np.linalg.det(rot.matrix), 1.0)

    def test_random_mode_reproducible(self):
        first = candidate_rotations(5, deterministic=False, seed=42)
        second = candidate_rotations(5, deterministic=False, seed=42)

        for a, b in zip(first, second):
            assert np.array_equal(a.matrix, b.matrix)


class TestProjectedAreaCost:
    """Tests for projected_area_cost function."""

    def test_axis_aligned_box(self, box_mesh):
        """Every face of a 2x2x2 box projects fully onto one plane: 12 * 2."""
        cost = projected_area_cost(box_mesh.face_normals(), box_mesh.face_areas(), Rotation3D.identity())
        assert cost == pytest.approx(24.0)

    def test_tilted_box_costs_more(self, box_mesh):
        normals = box_mesh.face_normals()
        areas = box_mesh.face_areas()
        tilted = Rotation3D.around_z(np.pi / 6)

        assert projected_area_cost(normals, areas, tilted) > projected_area_cost(
            normals, areas, Rotation3D.identity())

    def test_optimal_rotation_of_tilted_box(self):
        """The best candidate undoes a tilt about z up to a quarter turn."""
        box = make_box((-1, -2, -3), (1, 2, 3))
        box.rotate(Rotation3D.around_z(np.pi / 12).matrix)

        best = find_optimal_rotation(box, n_orientations=10)
        cost = projected_area_cost(box.face_normals(), box.face_areas(), best)

        assert cost == pytest.approx(2 * (2 * 4 + 2 * 6 + 4 * 6))


class TestCanonicalRotation:
    """Tests for canonical_rotation function."""

    def test_x_longest_is_identity(self):
        assert canonical_rotation(make_box((-3, -1, -1), (3, 1, 1))).is_identity()

    def test_y_longest(self):
        box = make_box((-1, -3, -1), (1, 3, 1))
        box.rotate(canonical_rotation(box).matrix)

        np.testing.assert_allclose(box.bounding_box().dimensions, [6, 2, 2], atol=1e-9)

    def test_z_longest(self):
        box = make_box((-1, -1, -3), (1, 1, 3))
        box.rotate(canonical_rotation(box).matrix)

        np.testing.assert_allclose(box.bounding_box().dimensions, [6, 2, 2], atol=1e-9)


class TestRotateToOptimalOrientation:
    """Tests for rotate_to_optimal_orientation function."""

    def test_longest_axis_on_x_and_centered(self):
        mesh = make_box((4, 4, 2), (6, 6, 8))
        smoothed = mesh.copy()

        rotate_to_optimal_orientation(mesh, smoothed, n_orientations=10)

        bbox = mesh.bounding_box()
        np.testing.assert_allclose(bbox.dimensions, [6, 2, 2], atol=1e-9)
        np.testing.assert_allclose(bbox.center, [0, 0, 0], atol=1e-9)
        np.testing.assert_allclose(smoothed.vertices, mesh.vertices, atol=1e-9)

    def test_returned_rotation_matches_normals(self, sphere_mesh):
        original_normals = sphere_mesh.face_normals()
        smoothed = sphere_mesh.copy()

        rotation = rotate_to_optimal_orientation(sphere_mesh, smoothed, n_orientations=5)

        assert np.isclose(np.linalg.det(rotation), 1.0)
        np.testing.assert_allclose(sphere_mesh.face_normals(), original_normals @ rotation.T, atol=1e-6)

    def test_topology_unchanged(self, pocket_mesh):
        faces = pocket_mesh.faces.copy()
        rotate_to_optimal_orientation(pocket_mesh, pocket_mesh.copy(), n_orientations=3)
        assert np.array_equal(pocket_mesh.faces, faces)
