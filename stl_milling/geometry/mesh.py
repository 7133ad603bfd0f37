"""
Triangle mesh container used throughout the planner.

Provides:
- BoundingBox: axis-aligned extents and center
- TriangleMesh: vertices + faces with derived normals, centroids, areas
  and in-place rigid transformations

The planner carries two meshes with identical topology (the detailed
original and the smoothed working mesh); transformations therefore mutate
the mesh in place and never reorder vertices or faces.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from stl_milling import config


class MeshMismatchError(ValueError):
    """Paired meshes do not share vertex/face counts or connectivity."""


@dataclass
class BoundingBox:
    """Axis-aligned box spanned by `min_point` and `max_point`, both (3,)."""
    min_point: NDArray[np.float64]
    max_point: NDArray[np.float64]

    @classmethod
    def from_points(cls, points: NDArray[np.float64]) -> 'BoundingBox':
        points = np.asarray(points, dtype=np.float64)
        return cls(points.min(axis=0), points.max(axis=0))

    @property
    def dimensions(self) -> NDArray[np.float64]:
        """Extents along x, y, z; x is the rotary axis of the machine."""
        return self.max_point - self.min_point

    @property
    def center(self) -> NDArray[np.float64]:
        return 0.5 * (self.min_point + self.max_point)

    @property
    def diagonal(self) -> float:
        return float(np.linalg.norm(self.dimensions))


class TriangleMesh:
    """Indexed triangle mesh.

    Attributes:
        vertices: (N, 3) float64 vertex positions
        faces: (M, 3) int32 vertex indices, counter-clockwise seen from outside
    """

    def __init__(self, vertices: NDArray[np.float64], faces: NDArray[np.int32]) -> None:
        self.vertices: NDArray[np.float64] = np.array(vertices, dtype=np.float64).reshape(-1, 3)
        self.faces: NDArray[np.int32] = np.array(faces, dtype=np.int32).reshape(-1, 3)

    def __repr__(self) -> str:
        return f"TriangleMesh(n_vertices={self.n_vertices}, n_faces={self.n_faces})"

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    @property
    def n_faces(self) -> int:
        return len(self.faces)

    def copy(self) -> 'TriangleMesh':
        """Deep copy (geometry and topology)."""
        return TriangleMesh(self.vertices.copy(), self.faces.copy())

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    def face_vertices(self) -> NDArray[np.float64]:
        """Corner positions of every face, shape (M, 3, 3)."""
        return self.vertices[self.faces]

    def face_normals(self) -> NDArray[np.float64]:
        """Unit face normals (zero vector for degenerate faces)."""
        return compute_face_normals(self.vertices, self.faces)

    def face_centroids(self) -> NDArray[np.float64]:
        """Barycenters of the faces, shape (M, 3)."""
        return self.vertices[self.faces].mean(axis=1)

    def face_areas(self) -> NDArray[np.float64]:
        """Face areas, shape (M,)."""
        tri = self.vertices[self.faces]
        cross = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
        return 0.5 * np.linalg.norm(cross, axis=1)

    def vertex_normals(self) -> NDArray[np.float64]:
        """Area-weighted vertex normals."""
        tri = self.vertices[self.faces]
        cross = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
        normals = np.zeros_like(self.vertices)
        for corner in range(3):
            np.add.at(normals, self.faces[:, corner], cross)
        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        lengths = np.where(lengths > config.DEGENERATE_AREA, lengths, 1.0)
        return normals / lengths

    def bounding_box(self) -> BoundingBox:
        return BoundingBox.from_points(self.vertices)

    # ------------------------------------------------------------------
    # In-place transformations
    # ------------------------------------------------------------------

    def rotate(self, matrix: NDArray[np.float64], center: Optional[NDArray[np.float64]] = None) -> None:
        """Rotate all vertices by a 3x3 matrix (about `center`, origin by default)."""
        matrix = np.asarray(matrix, dtype=np.float64)
        if center is None:
            self.vertices = self.vertices @ matrix.T
        else:
            center = np.asarray(center, dtype=np.float64)
            self.vertices = (self.vertices - center) @ matrix.T + center

    def translate(self, offset: NDArray[np.float64]) -> None:
        """Translate all vertices."""
        self.vertices = self.vertices + np.asarray(offset, dtype=np.float64)

    def set_vertex(self, index: int, position: NDArray[np.float64]) -> None:
        self.vertices[index] = position

    def submesh(self, face_indices) -> 'TriangleMesh':
        """Mesh made of the given faces, with unused vertices dropped."""
        selected = self.faces[np.asarray(face_indices, dtype=np.int64)]
        used, inverse = np.unique(selected.ravel(), return_inverse=True)
        return TriangleMesh(self.vertices[used], inverse.reshape(-1, 3))


def compute_face_normals(vertices: NDArray[np.float64], faces: NDArray[np.int32]) -> NDArray[np.float64]:
    """Unit normals of faces given as index triples.

    Degenerate faces (area below config.DEGENERATE_AREA) get a zero normal,
    so they never pass a heightfield test with a positive limit.
    """
    tri = vertices[faces]
    cross = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    lengths = np.linalg.norm(cross, axis=1)
    normals = np.zeros_like(cross)
    valid = lengths > config.DEGENERATE_AREA
    normals[valid] = cross[valid] / lengths[valid, None]
    return normals


def check_paired_meshes(mesh: TriangleMesh, other: TriangleMesh) -> None:
    """Require the 1:1 vertex/face correspondence of a mesh pair.

    Raises:
        MeshMismatchError: if vertex counts, face counts or face indices differ
    """
    if mesh.n_vertices != other.n_vertices or mesh.n_faces != other.n_faces:
        raise MeshMismatchError(
            f"Paired meshes differ in size: {mesh.n_vertices}/{mesh.n_faces} "
            f"vs {other.n_vertices}/{other.n_faces} (vertices/faces)"
        )
    if not np.array_equal(mesh.faces, other.faces):
        raise MeshMismatchError("Paired meshes have different face connectivity")
