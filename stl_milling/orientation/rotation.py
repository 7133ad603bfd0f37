"""
Rotations used by the planner.

Provides:
- Rotation3D: an SO(3) matrix with composition and application to points
- Rotations about the machine axes (x is the rotary axis, z the reference
  tool direction) and the minimal rotation between two directions
- Candidate direction sampling on the unit sphere (Fibonacci lattice or random)

Conventions: rotations act on column vectors (p' = R p); angles are
counter-clockwise when looking down the axis towards the origin.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

# Below this a direction is treated as zero or two directions as parallel
_PARALLEL_EPS = 1e-12


def _skew(v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Cross-product matrix: _skew(a) @ b == np.cross(a, b)."""
    x, y, z = v
    return np.array([
        [0.0, -z, y],
        [z, 0.0, -x],
        [-y, x, 0.0],
    ])


def _unit(v) -> NDArray[np.float64]:
    v = np.asarray(v, dtype=np.float64)
    norm = np.linalg.norm(v)
    if norm < _PARALLEL_EPS:
        raise ValueError("Zero-length direction")
    return v / norm


@dataclass
class Rotation3D:
    """3D rotation stored as a 3x3 matrix.

    Attributes:
        matrix: orthogonal matrix with det = +1
    """
    matrix: NDArray[np.float64]

    def __post_init__(self):
        self.matrix = np.asarray(self.matrix, dtype=np.float64)
        if self.matrix.shape != (3, 3):
            raise ValueError(f"Rotation matrix must be 3x3, got {self.matrix.shape}")

    @classmethod
    def identity(cls) -> 'Rotation3D':
        return cls(np.eye(3))

    @classmethod
    def from_axis_angle(cls, axis, angle_rad: float) -> 'Rotation3D':
        """Rotation by `angle_rad` about `axis` (R = I + sin·K + (1 - cos)·K²)."""
        k = _skew(_unit(axis))
        return cls(np.eye(3) + np.sin(angle_rad) * k + (1.0 - np.cos(angle_rad)) * (k @ k))

    @classmethod
    def from_two_vectors(cls, vec_from, vec_to) -> 'Rotation3D':
        """Minimal rotation taking the direction of `vec_from` onto `vec_to`.

        For opposite directions the result is a half turn about an axis
        perpendicular to `vec_from`.
        """
        a = _unit(vec_from)
        b = _unit(vec_to)
        cos_angle = float(np.dot(a, b))

        if cos_angle > 1.0 - _PARALLEL_EPS:
            return cls.identity()
        if cos_angle < -1.0 + _PARALLEL_EPS:
            helper = np.eye(3)[int(np.argmin(np.abs(a)))]
            return cls.from_axis_angle(np.cross(a, helper), np.pi)

        k = _skew(np.cross(a, b))
        return cls(np.eye(3) + k + (k @ k) / (1.0 + cos_angle))

    @staticmethod
    def _about_axis(index: int, angle_rad: float) -> 'Rotation3D':
        c, s = np.cos(angle_rad), np.sin(angle_rad)
        i, j = [(1, 2), (2, 0), (0, 1)][index]
        matrix = np.eye(3)
        matrix[i, i] = matrix[j, j] = c
        matrix[i, j] = -s
        matrix[j, i] = s
        return Rotation3D(matrix)

    @classmethod
    def around_x(cls, angle_rad: float) -> 'Rotation3D':
        """Rotation about x, the rotary axis of the machine."""
        return cls._about_axis(0, angle_rad)

    @classmethod
    def around_y(cls, angle_rad: float) -> 'Rotation3D':
        return cls._about_axis(1, angle_rad)

    @classmethod
    def around_z(cls, angle_rad: float) -> 'Rotation3D':
        return cls._about_axis(2, angle_rad)

    def apply(self, points) -> NDArray[np.float64]:
        """Rotate one vector (3,) or an (N, 3) array of points or normals."""
        points = np.asarray(points, dtype=np.float64)
        return points @ self.matrix.T

    def __matmul__(self, other: 'Rotation3D') -> 'Rotation3D':
        """self @ other applies `other` first, then `self`."""
        return Rotation3D(self.matrix @ other.matrix)

    @property
    def angle(self) -> float:
        """Rotation angle in radians, in [0, pi]."""
        return float(np.arccos(np.clip((np.trace(self.matrix) - 1.0) / 2.0, -1.0, 1.0)))

    def is_identity(self, tol: float = 1e-9) -> bool:
        return bool(np.allclose(self.matrix, np.eye(3), atol=tol))


def fibonacci_sphere(n_points: int) -> NDArray[np.float64]:
    """Deterministic, nearly uniform unit vectors from +z down to -z.

    Returns:
        (n_points, 3) array; a single point is +z
    """
    if n_points <= 0:
        return np.zeros((0, 3))
    if n_points == 1:
        return np.array([[0.0, 0.0, 1.0]])

    k = np.arange(n_points, dtype=np.float64)
    z = 1.0 - 2.0 * k / (n_points - 1)
    ring = np.sqrt(np.clip(1.0 - z * z, 0.0, None))
    theta = k * np.pi * (3.0 - np.sqrt(5.0))
    return np.column_stack([ring * np.cos(theta), ring * np.sin(theta), z])


def random_sphere(n_points: int, seed: Optional[int] = None) -> NDArray[np.float64]:
    """Uniformly random unit vectors (normalized Gaussian samples)."""
    samples = np.random.default_rng(seed).normal(size=(n_points, 3))
    norms = np.linalg.norm(samples, axis=1, keepdims=True)
    return samples / np.where(norms == 0.0, 1.0, norms)


def orthonormalize(matrix: NDArray[np.float64]) -> NDArray[np.float64]:
    """Nearest rotation matrix (polar decomposition through SVD)."""
    u, _, vt = np.linalg.svd(np.asarray(matrix, dtype=np.float64))
    if np.linalg.det(u @ vt) < 0:
        u[:, -1] *= -1
    return u @ vt
