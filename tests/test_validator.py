"""
Unit tests for stl_milling.io.validator module.

Tests:
- Clean closed meshes
- Open, non-manifold and degenerate geometry
- Inward normals
- Original/smoothed pair checks
- Report text and filtering
"""

import numpy as np
import pytest

from stl_milling.geometry.mesh import TriangleMesh
from stl_milling.io.stl_loader import load_stl
from stl_milling.io.validator import (
    ValidationReport,
    ValidationSeverity,
    signed_volume,
    validate_mesh,
    validate_mesh_pair,
)
from tests.conftest import make_box, make_box_with_cavity, make_grid, make_icosphere


def codes(report: ValidationReport):
    return {issue.code for issue in report.issues}


# Three triangles hinged on edge 0-1, the first one flat
FAN_VERTICES = np.array([
    [0.0, 0.0, 0.0],
    [1.0, 0.0, 0.0],
    [2.0, 0.0, 0.0],
    [0.5, 1.0, 0.0],
    [0.5, 0.0, 1.0],
])
FAN_FACES = np.array([[0, 1, 2], [0, 1, 3], [0, 1, 4]], dtype=np.int32)


# ============================================================================
# Single mesh
# ============================================================================

class TestCleanMeshes:
    """Closed outward-oriented meshes produce no issues."""

    def test_cube_from_stl(self, cube_stl_path):
        report = validate_mesh(load_stl(str(cube_stl_path)))

        assert report.is_valid
        assert report.is_closed and report.is_manifold
        assert (report.n_vertices, report.n_faces) == (8, 12)
        assert report.n_degenerate_faces == 0
        assert report.signed_volume == pytest.approx(8.0)
        assert not report.issues

    def test_sphere(self, sphere_mesh):
        report = validate_mesh(sphere_mesh)
        assert report.is_valid
        assert not report.issues

    def test_cavity_keeps_positive_volume(self):
        # 12x8x8 block minus the 5x3x3 cavity
        report = validate_mesh(make_box_with_cavity())

        assert report.signed_volume == pytest.approx(723.0)
        assert "INWARD_NORMALS" not in codes(report)

    def test_unused_vertex_is_a_note(self):
        box = make_box()
        mesh = TriangleMesh(np.vstack([box.vertices, [[5.0, 5.0, 5.0]]]), box.faces)

        report = validate_mesh(mesh)

        assert report.is_valid
        assert report.n_isolated_vertices == 1
        assert not report.warnings
        issue = report.issues[0]
        assert issue.severity is ValidationSeverity.INFO
        assert issue.details == [8]


class TestDefects:
    """Geometry the planner accepts with warnings, or rejects."""

    def test_empty_mesh(self):
        report = validate_mesh(TriangleMesh(np.zeros((0, 3)), np.zeros((0, 3))))

        assert not report.is_valid
        assert codes(report) == {"EMPTY_MESH"}

    def test_single_triangle_is_open(self):
        report = validate_mesh(TriangleMesh(FAN_VERTICES[[0, 1, 3]], [[0, 1, 2]]))

        assert not report.is_closed
        assert report.n_boundary_edges == 3
        assert report.signed_volume is None
        assert all(w.severity is ValidationSeverity.WARNING for w in report.warnings)

    def test_grid_boundary(self):
        assert validate_mesh(make_grid(3)).n_boundary_edges == 8

    def test_fan_is_non_manifold_with_flat_face(self):
        report = validate_mesh(TriangleMesh(FAN_VERTICES, FAN_FACES))

        assert not report.is_manifold
        assert report.n_non_manifold_edges == 1
        assert report.n_degenerate_faces == 1
        flat = next(i for i in report.issues if i.code == "DEGENERATE_FACES")
        assert flat.details == [0]
        assert "NON_MANIFOLD_EDGES" in {w.code for w in report.warnings}
        assert report.is_valid

    def test_area_threshold(self, box_mesh):
        # every box triangle has area 2
        assert validate_mesh(box_mesh, degenerate_area_threshold=3.0).n_degenerate_faces == 12
        assert validate_mesh(box_mesh, degenerate_area_threshold=1.0).n_degenerate_faces == 0

    def test_inward_normals(self):
        report = validate_mesh(make_box(inward=True))

        assert report.signed_volume == pytest.approx(-8.0)
        assert "INWARD_NORMALS" in {w.code for w in report.warnings}
        assert report.is_valid


class TestSignedVolume:
    """Tests for signed_volume function."""

    def test_box(self):
        assert signed_volume(make_box((0, 0, 0), (1, 2, 3))) == pytest.approx(6.0)

    def test_translation_invariant(self):
        assert signed_volume(make_box((10, 10, 10), (11, 12, 13))) == pytest.approx(6.0)

    def test_empty(self):
        assert signed_volume(TriangleMesh(np.zeros((0, 3)), np.zeros((0, 3)))) == 0.0


# ============================================================================
# Pair
# ============================================================================

class TestValidateMeshPair:
    """Tests for validate_mesh_pair function."""

    def test_scaled_pair(self, sphere_mesh):
        smoothed = TriangleMesh(sphere_mesh.vertices * 0.5, sphere_mesh.faces)

        report = validate_mesh_pair(sphere_mesh, smoothed)

        assert report.is_valid
        assert report.max_displacement == pytest.approx(0.5)

    def test_different_sizes(self):
        report = validate_mesh_pair(make_box(), make_icosphere(0))

        assert not report.is_valid
        assert [e.code for e in report.errors] == ["PAIR_SIZE_MISMATCH"]
        assert report.max_displacement is None

    def test_different_connectivity(self, box_mesh):
        flipped = TriangleMesh(box_mesh.vertices, box_mesh.faces[:, [0, 2, 1]])

        report = validate_mesh_pair(box_mesh, flipped)

        mismatch = next(e for e in report.errors if e.code == "PAIR_TOPOLOGY_MISMATCH")
        assert mismatch.count == 12
        assert mismatch.details == list(range(10))


# ============================================================================
# Report
# ============================================================================

class TestValidationReport:
    """Tests for ValidationReport class."""

    def test_summary(self, cube_stl_path):
        summary = validate_mesh(load_stl(str(cube_stl_path))).summary()

        assert summary.startswith("Mesh Validation Report")
        assert "Vertices: 8" in summary
        assert "Faces: 12" in summary
        assert summary.endswith("Result: VALID")

    def test_summary_lists_issues(self):
        report = validate_mesh_pair(make_box(), make_icosphere(0))
        assert "ERROR PAIR_SIZE_MISMATCH" in report.summary()
        assert report.summary().endswith("Result: INVALID")

    def test_summary_displacement(self, box_mesh):
        report = validate_mesh_pair(box_mesh, box_mesh.copy())
        assert "Max pair displacement: 0" in report.summary()

    def test_add(self):
        report = ValidationReport(n_vertices=0, n_faces=0)
        assert report.is_valid

        issue = report.add("X", ValidationSeverity.ERROR, "broken", indices=range(15))

        assert issue.count == 15
        assert len(issue.details) == 10
        assert str(issue) == "ERROR X: broken (x15)"
        assert report.errors == [issue]
        assert not report.is_valid
