"""
Pytest configuration and fixtures for the four-axis milling planner.

Provides:
- Meshes built in code (icosphere, box, box with a hidden cavity, height grids)
- STL file fixtures written through numpy-stl
- Common assertion helpers
"""

from pathlib import Path
from typing import Tuple

import numpy as np
import pytest
from stl import mesh as stl_mesh

from stl_milling.fabrication.data import FabricationData
from stl_milling.geometry.mesh import TriangleMesh

# Outer box and cavity of the hidden-pocket model
POCKET_OUTER = ((-6.0, -4.0, -4.0), (6.0, 4.0, 4.0))
POCKET_INNER = ((-2.5, -1.5, -1.5), (2.5, 1.5, 1.5))


# ============================================================================
# Mesh Builders
# ============================================================================

def orient_outward(vertices: np.ndarray, faces: np.ndarray, center) -> np.ndarray:
    """Flip faces of a convex shell so that normals point away from `center`."""
    faces = np.array(faces, dtype=np.int32)
    tri = vertices[faces]
    normals = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    outward = np.einsum("ij,ij->i", normals, tri.mean(axis=1) - np.asarray(center)) > 0
    faces[~outward] = faces[~outward][:, [0, 2, 1]]
    return faces


def make_box(min_corner=(-1.0, -1.0, -1.0), max_corner=(1.0, 1.0, 1.0), inward: bool = False) -> TriangleMesh:
    """Axis-aligned box, 8 vertices and 12 faces."""
    lo = np.asarray(min_corner, dtype=np.float64)
    hi = np.asarray(max_corner, dtype=np.float64)
    vertices = np.array([
        [lo[0], lo[1], lo[2]], [hi[0], lo[1], lo[2]], [hi[0], hi[1], lo[2]], [lo[0], hi[1], lo[2]],  # bottom
        [lo[0], lo[1], hi[2]], [hi[0], lo[1], hi[2]], [hi[0], hi[1], hi[2]], [lo[0], hi[1], hi[2]],  # top
    ])
    faces = [
        [0, 1, 2], [0, 2, 3],  # bottom
        [4, 5, 6], [4, 6, 7],  # top
        [0, 1, 5], [0, 5, 4],  # front (-y)
        [2, 3, 7], [2, 7, 6],  # back (+y)
        [0, 3, 7], [0, 7, 4],  # left (-x)
        [1, 2, 6], [1, 6, 5],  # right (+x)
    ]
    faces = orient_outward(vertices, faces, (lo + hi) / 2)
    if inward:
        faces = faces[:, [0, 2, 1]]
    return TriangleMesh(vertices, faces)


def make_box_with_cavity() -> TriangleMesh:
    """Closed box with a closed internal cavity (faces 12..23, normals into the cavity)."""
    outer = make_box(*POCKET_OUTER)
    inner = make_box(*POCKET_INNER, inward=True)
    vertices = np.vstack([outer.vertices, inner.vertices])
    faces = np.vstack([outer.faces, inner.faces + outer.n_vertices])
    return TriangleMesh(vertices, faces)


def make_icosphere(subdivisions: int = 1, radius: float = 1.0) -> TriangleMesh:
    """Icosphere with outward normals (20 * 4**subdivisions faces)."""
    t = (1.0 + np.sqrt(5.0)) / 2.0
    vertices = [
        [-1, t, 0], [1, t, 0], [-1, -t, 0], [1, -t, 0],
        [0, -1, t], [0, 1, t], [0, -1, -t], [0, 1, -t],
        [t, 0, -1], [t, 0, 1], [-t, 0, -1], [-t, 0, 1],
    ]
    faces = [
        [0, 11, 5], [0, 5, 1], [0, 1, 7], [0, 7, 10], [0, 10, 11],
        [1, 5, 9], [5, 11, 4], [11, 10, 2], [10, 7, 6], [7, 1, 8],
        [3, 9, 4], [3, 4, 2], [3, 2, 6], [3, 6, 8], [3, 8, 9],
        [4, 9, 5], [2, 4, 11], [6, 2, 10], [8, 6, 7], [9, 8, 1],
    ]
    vertices = [list(np.asarray(v, dtype=np.float64) / np.linalg.norm(v)) for v in vertices]

    for _ in range(subdivisions):
        midpoints = {}

        def midpoint(a, b):
            key = (min(a, b), max(a, b))
            if key not in midpoints:
                m = (np.asarray(vertices[a]) + np.asarray(vertices[b])) / 2.0
                vertices.append(list(m / np.linalg.norm(m)))
                midpoints[key] = len(vertices) - 1
            return midpoints[key]

        refined = []
        for a, b, c in faces:
            ab, bc, ca = midpoint(a, b), midpoint(b, c), midpoint(c, a)
            refined.extend([[a, ab, ca], [b, bc, ab], [c, ca, bc], [ab, bc, ca]])
        faces = refined

    vertices = np.asarray(vertices) * radius
    return TriangleMesh(vertices, orient_outward(vertices, faces, (0.0, 0.0, 0.0)))


def make_grid(size: int = 5, heights=None) -> TriangleMesh:
    """Open square grid in the xy plane, normals +z, vertex (i, j) at index i * size + j."""
    xs, ys = np.meshgrid(np.arange(size, dtype=np.float64), np.arange(size, dtype=np.float64), indexing="ij")
    z = np.zeros_like(xs) if heights is None else np.asarray(heights, dtype=np.float64)
    vertices = np.column_stack([xs.ravel(), ys.ravel(), z.ravel()])
    faces = []
    for i in range(size - 1):
        for j in range(size - 1):
            a = i * size + j
            b = (i + 1) * size + j
            c = (i + 1) * size + j + 1
            d = i * size + j + 1
            faces.append([a, b, c])
            faces.append([a, c, d])
    return TriangleMesh(vertices, faces)


def make_bump_pair(size: int = 5, bump: float = 0.2) -> Tuple[TriangleMesh, TriangleMesh]:
    """(original, smoothed): a grid with one raised center vertex and its flat version."""
    heights = np.zeros((size, size))
    heights[size // 2, size // 2] = bump
    return make_grid(size, heights), make_grid(size)


def single_direction_data(mesh: TriangleMesh) -> FabricationData:
    """Fabrication data for a heightfield seen from +z: directions +z, -z, -x, +x, all faces on +z."""
    data = FabricationData()
    data.directions = np.array([
        [0.0, 0.0, 1.0], [0.0, 0.0, -1.0], [-1.0, 0.0, 0.0], [1.0, 0.0, 0.0],
    ])
    data.angles = np.array([0.0, np.pi])
    data.visibility = np.zeros((4, mesh.n_faces), dtype=bool)
    data.visibility[0] = True
    data.target_directions = [0]
    data.association = np.zeros(mesh.n_faces, dtype=np.int64)
    data.n_directions = 2
    return data


def write_stl(path: Path, triangle_mesh: TriangleMesh) -> Path:
    """Binary STL through numpy-stl, one facet per face in face order."""
    facets = stl_mesh.Mesh(np.zeros(triangle_mesh.n_faces, dtype=stl_mesh.Mesh.dtype))
    if triangle_mesh.n_faces:
        facets.vectors[:] = triangle_mesh.face_vertices()
    facets.save(str(path))
    return path


def write_ascii_stl(path: Path, triangle_mesh: TriangleMesh, name: str = "part") -> Path:
    """Hand-formatted ASCII STL with the given solid name."""
    lines = [f"solid {name}"]
    for corners, normal in zip(triangle_mesh.face_vertices(), triangle_mesh.face_normals()):
        lines.append("  facet normal %g %g %g" % tuple(normal))
        lines.append("    outer loop")
        lines.extend("      vertex %r %r %r" % tuple(map(float, corner)) for corner in corners)
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append(f"endsolid {name}")
    path.write_text("\n".join(lines) + "\n")
    return path


# ============================================================================
# Mesh Fixtures
# ============================================================================

@pytest.fixture
def box_mesh() -> TriangleMesh:
    return make_box()


@pytest.fixture
def pocket_mesh() -> TriangleMesh:
    return make_box_with_cavity()


@pytest.fixture
def sphere_mesh() -> TriangleMesh:
    return make_icosphere(subdivisions=1)


@pytest.fixture
def bump_pair() -> Tuple[TriangleMesh, TriangleMesh]:
    return make_bump_pair()


# ============================================================================
# STL Files
# ============================================================================

@pytest.fixture
def tmp_stl_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def cube_stl_path(tmp_stl_dir: Path) -> Path:
    """Binary STL of the 2x2x2 box: 12 facets, 8 distinct corners."""
    return write_stl(tmp_stl_dir / "cube.stl", make_box())


@pytest.fixture
def sphere_stl_pair(tmp_stl_dir: Path) -> Tuple[Path, Path]:
    """Icosphere and a copy shrunk by 2 %, same facet order."""
    sphere = make_icosphere(subdivisions=1)
    return (
        write_stl(tmp_stl_dir / "sphere.stl", sphere),
        write_stl(tmp_stl_dir / "sphere_smooth.stl", TriangleMesh(sphere.vertices * 0.98, sphere.faces)),
    )


@pytest.fixture
def empty_stl_path(tmp_stl_dir: Path) -> Path:
    """Binary STL with a header and zero facets."""
    return write_stl(tmp_stl_dir / "empty.stl", TriangleMesh(np.zeros((0, 3)), np.zeros((0, 3))))


@pytest.fixture
def ascii_stl_path(tmp_stl_dir: Path) -> Path:
    """ASCII STL of the 2x2x2 box, solid name "cube"."""
    return write_ascii_stl(tmp_stl_dir / "ascii_cube.stl", make_box(), name="cube")


# ============================================================================
# Assertion Helpers
# ============================================================================

def assert_mesh_arrays(triangle_mesh: TriangleMesh) -> None:
    """Vertices are finite float64 (N, 3); faces are int32 (M, 3) indices into them."""
    vertices, faces = triangle_mesh.vertices, triangle_mesh.faces
    assert vertices.dtype == np.float64 and vertices.shape[1:] == (3,)
    assert np.isfinite(vertices).all()
    assert faces.dtype == np.int32 and faces.shape[1:] == (3,)
    if faces.size:
        assert faces.min() >= 0
        assert faces.max() < len(vertices)


def assert_visibility_predicate(mesh: TriangleMesh, directions: np.ndarray, visibility: np.ndarray,
                                limit_angle: float) -> None:
    """Every visible (direction, face) pair satisfies the heightfield angle test."""
    normals = mesh.face_normals()
    dots = directions @ normals.T
    assert np.all(dots[visibility] >= np.cos(limit_angle) - 1e-9)
