"""Ориентация модели: повороты и выбор оптимального положения относительно оси x."""

from stl_milling.orientation.rotation import (
    Rotation3D,
    fibonacci_sphere,
    random_sphere,
    orthonormalize,
)
from stl_milling.orientation.optimal import (
    candidate_rotations,
    projected_area_cost,
    find_optimal_rotation,
    canonical_rotation,
    rotate_to_optimal_orientation,
)

__all__ = [
    "Rotation3D",
    "fibonacci_sphere",
    "random_sphere",
    "orthonormalize",
    "candidate_rotations",
    "projected_area_cost",
    "find_optimal_rotation",
    "canonical_rotation",
    "rotate_to_optimal_orientation",
]
