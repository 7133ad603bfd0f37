"""Геометрические примитивы: сетка, треугольники, пространственный индекс."""

from stl_milling.geometry.mesh import (
    BoundingBox,
    MeshMismatchError,
    TriangleMesh,
    check_paired_meshes,
    compute_face_normals,
)

__all__ = [
    "BoundingBox",
    "MeshMismatchError",
    "TriangleMesh",
    "check_paired_meshes",
    "compute_face_normals",
]
