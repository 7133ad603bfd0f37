"""
Unit tests for stl_milling.orientation.rotation module.

Tests:
- Axis rotations (x is the rotary axis)
- Axis-angle and two-vector constructors
- Composition and rotation angle
- Candidate direction sampling
- Orthonormalization
"""

import numpy as np
import pytest

from stl_milling.orientation.rotation import (
    Rotation3D,
    fibonacci_sphere,
    orthonormalize,
    random_sphere,
)

X, Y, Z = np.eye(3)


def assert_proper_rotation(matrix):
    np.testing.assert_allclose(matrix @ matrix.T, np.eye(3), atol=1e-10)
    assert np.linalg.det(matrix) == pytest.approx(1.0)


class TestAxisRotations:
    """Quarter turns about the machine axes."""

    @pytest.mark.parametrize("rotation, source, target", [
        (Rotation3D.around_x(np.pi / 2), Y, Z),
        (Rotation3D.around_x(np.pi / 2), Z, -Y),
        (Rotation3D.around_y(np.pi / 2), X, -Z),
        (Rotation3D.around_y(np.pi / 2), Z, X),
        (Rotation3D.around_z(np.pi / 2), X, Y),
        (Rotation3D.around_z(np.pi / 2), Y, -X),
    ])
    def test_quarter_turns(self, rotation, source, target):
        np.testing.assert_allclose(rotation.apply(source), target, atol=1e-12)

    def test_x_rotation_keeps_rotary_axis(self):
        rotation = Rotation3D.around_x(0.7)
        np.testing.assert_allclose(rotation.apply(X), X)

    def test_minus_x_to_tool_direction(self):
        # the -x/+x visibility pass looks at the mesh turned this way
        rotation = Rotation3D.around_y(np.pi / 2)
        np.testing.assert_allclose(rotation.apply(-X), Z, atol=1e-12)

    @pytest.mark.parametrize("angle", [0.0, 0.3, np.pi / 2, np.pi, 5.0])
    def test_proper(self, angle):
        for rotation in (Rotation3D.around_x(angle), Rotation3D.around_y(angle), Rotation3D.around_z(angle)):
            assert_proper_rotation(rotation.matrix)

    def test_matches_axis_angle(self):
        for axis, factory in ((X, Rotation3D.around_x), (Y, Rotation3D.around_y), (Z, Rotation3D.around_z)):
            np.testing.assert_allclose(
                factory(0.4).matrix, Rotation3D.from_axis_angle(axis, 0.4).matrix, atol=1e-12,
            )


class TestConstructors:
    """Tests for from_axis_angle and from_two_vectors."""

    def test_axis_normalized(self):
        np.testing.assert_allclose(
            Rotation3D.from_axis_angle([0, 0, 5], np.pi / 2).apply(X), Y, atol=1e-12,
        )

    def test_zero_axis(self):
        with pytest.raises(ValueError):
            Rotation3D.from_axis_angle([0, 0, 0], 1.0)

    def test_invalid_shape(self):
        with pytest.raises(ValueError):
            Rotation3D(np.eye(2))

    def test_two_vectors(self):
        source = np.array([1.0, 2.0, -0.5])
        rotation = Rotation3D.from_two_vectors(source, Z)

        np.testing.assert_allclose(rotation.apply(source / np.linalg.norm(source)), Z, atol=1e-12)
        assert_proper_rotation(rotation.matrix)

    def test_two_vectors_keeps_common_perpendicular(self):
        rotation = Rotation3D.from_two_vectors(X, Y)
        np.testing.assert_allclose(rotation.apply(Z), Z, atol=1e-12)

    def test_parallel_is_identity(self):
        assert Rotation3D.from_two_vectors([2, 0, 0], [1, 0, 0]).is_identity()

    @pytest.mark.parametrize("source", [X, Y, Z, np.array([1.0, 1.0, 1.0])])
    def test_antiparallel(self, source):
        rotation = Rotation3D.from_two_vectors(source, -source)
        unit = source / np.linalg.norm(source)

        np.testing.assert_allclose(rotation.apply(unit), -unit, atol=1e-12)
        assert rotation.angle == pytest.approx(np.pi)


class TestComposition:
    """Tests for the @ operator, apply and angle."""

    def test_order(self):
        # x first, then z: y -> z -> z
        composed = Rotation3D.around_z(np.pi / 2) @ Rotation3D.around_x(np.pi / 2)
        np.testing.assert_allclose(composed.apply(Y), Z, atol=1e-12)
        np.testing.assert_allclose(composed.apply(X), Y, atol=1e-12)

    def test_apply_array(self):
        points = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]])
        result = Rotation3D.around_z(np.pi / 2).apply(points)

        assert result.shape == (3, 3)
        np.testing.assert_allclose(result, [[0, 1, 0], [-1, 0, 0], [-1, 1, 0]], atol=1e-12)

    def test_angle(self):
        assert Rotation3D.identity().angle == 0.0
        assert Rotation3D.around_x(0.25).angle == pytest.approx(0.25)
        assert (Rotation3D.around_y(0.5) @ Rotation3D.around_y(0.5)).angle == pytest.approx(1.0)

    def test_identity(self):
        assert Rotation3D.identity().is_identity()
        assert not Rotation3D.around_z(1e-3).is_identity()


class TestSphereSampling:
    """Tests for candidate direction sampling."""

    def test_fibonacci_poles(self):
        points = fibonacci_sphere(10)
        np.testing.assert_allclose(points[0], Z)
        np.testing.assert_allclose(points[-1], -Z, atol=1e-12)

    def test_fibonacci_unit_and_spread(self):
        points = fibonacci_sphere(200)

        np.testing.assert_allclose(np.linalg.norm(points, axis=1), 1.0)
        # nearly uniform: the mean direction is close to the center
        assert np.linalg.norm(points.mean(axis=0)) < 0.05

    def test_fibonacci_small_counts(self):
        assert fibonacci_sphere(0).shape == (0, 3)
        np.testing.assert_allclose(fibonacci_sphere(1), [Z])

    def test_random_sphere_seeded(self):
        first = random_sphere(30, seed=3)

        assert np.array_equal(first, random_sphere(30, seed=3))
        assert not np.array_equal(first, random_sphere(30, seed=4))
        np.testing.assert_allclose(np.linalg.norm(first, axis=1), 1.0)


class TestOrthonormalize:
    """Tests for orthonormalize function."""

    def test_rotation_unchanged(self):
        matrix = Rotation3D.from_axis_angle([1, 2, 3], 0.8).matrix
        np.testing.assert_allclose(orthonormalize(matrix), matrix, atol=1e-12)

    def test_drift_removed(self):
        rotation = Rotation3D.around_x(np.pi / 7)
        noisy = rotation.matrix + np.random.default_rng(0).normal(scale=1e-6, size=(3, 3))

        fixed = orthonormalize(noisy)

        assert_proper_rotation(fixed)
        np.testing.assert_allclose(fixed, rotation.matrix, atol=1e-5)

    def test_reflection_flipped_to_rotation(self):
        assert np.linalg.det(orthonormalize(np.diag([1.0, 1.0, -1.0]))) == pytest.approx(1.0)
