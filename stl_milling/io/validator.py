"""
Input checks for the milling planner.

validate_mesh() inspects one mesh: open or non-manifold edges, zero-area
faces, unused vertices and, for closed meshes, normals pointing inwards.
validate_mesh_pair() additionally requires the original and smoothed meshes
to share vertex count, face count and connectivity.

Only an empty mesh or a broken pair is an error. Everything else is a
warning or a note: the planner still runs, with results that may be poor.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from stl_milling import config
from stl_milling.geometry.mesh import TriangleMesh
from stl_milling.topology.adjacency import MeshAdjacency

logger = logging.getLogger(__name__)

# Indices kept in ValidationIssue.details
_MAX_DETAILS = 10


class ValidationSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def log_level(self) -> int:
        return {"info": logging.DEBUG, "warning": logging.WARNING, "error": logging.ERROR}[self.value]


@dataclass
class ValidationIssue:
    """One finding; `details` holds the first offending face or vertex indices."""
    code: str
    severity: ValidationSeverity
    message: str
    count: int = 1
    details: List[int] = field(default_factory=list)

    def __str__(self) -> str:
        text = f"{self.severity.name} {self.code}: {self.message}"
        return f"{text} (x{self.count})" if self.count > 1 else text


@dataclass
class ValidationReport:
    n_vertices: int
    n_faces: int
    n_boundary_edges: int = 0
    n_non_manifold_edges: int = 0
    n_degenerate_faces: int = 0
    n_isolated_vertices: int = 0
    signed_volume: Optional[float] = None
    max_displacement: Optional[float] = None
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_manifold(self) -> bool:
        return self.n_non_manifold_edges == 0

    @property
    def is_closed(self) -> bool:
        return self.n_boundary_edges == 0

    def _with(self, severity: ValidationSeverity) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity is severity]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return self._with(ValidationSeverity.WARNING)

    @property
    def errors(self) -> List[ValidationIssue]:
        return self._with(ValidationSeverity.ERROR)

    @property
    def is_valid(self) -> bool:
        """True unless an error was found; warnings do not count."""
        return not self.errors

    def add(self, code: str, severity: ValidationSeverity, message: str,
            indices=None, count: Optional[int] = None) -> ValidationIssue:
        """Record an issue; the count defaults to the number of `indices`."""
        indices = [] if indices is None else [int(i) for i in indices]
        if count is None:
            count = max(len(indices), 1)
        issue = ValidationIssue(
            code=code, severity=severity, message=message,
            count=count, details=indices[:_MAX_DETAILS],
        )
        self.issues.append(issue)
        logger.log(severity.log_level, "%s", issue)
        return issue

    def summary(self) -> str:
        """Multi-line text for the console log."""
        def yes_no(flag: bool) -> str:
            return "yes" if flag else "no"

        rows = [
            ("Vertices", self.n_vertices),
            ("Faces", self.n_faces),
            ("Closed", yes_no(self.is_closed)),
            ("Manifold", yes_no(self.is_manifold)),
            ("Degenerate faces", self.n_degenerate_faces),
            ("Unused vertices", self.n_isolated_vertices),
        ]
        if self.signed_volume is not None:
            rows.append(("Signed volume", f"{self.signed_volume:.6g}"))
        if self.max_displacement is not None:
            rows.append(("Max pair displacement", f"{self.max_displacement:.6g}"))

        lines = ["Mesh Validation Report"]
        lines += [f"  {name}: {value}" for name, value in rows]
        lines += [f"  ! {issue}" for issue in self.issues]
        lines.append(f"Result: {'VALID' if self.is_valid else 'INVALID'}")
        return "\n".join(lines)


def signed_volume(mesh: TriangleMesh) -> float:
    """Enclosed volume; negative when the normals point inwards."""
    if mesh.n_faces == 0:
        return 0.0
    v0, v1, v2 = (mesh.face_vertices()[:, k] for k in range(3))
    return float(np.einsum('ij,ij->i', v0, np.cross(v1, v2)).sum() / 6.0)


def _check_edges(mesh: TriangleMesh, report: ValidationReport) -> None:
    adjacency = MeshAdjacency.from_mesh(mesh)
    boundary = adjacency.boundary_edges()
    non_manifold = adjacency.non_manifold_edges()
    isolated = adjacency.isolated_vertices()

    report.n_boundary_edges = len(boundary)
    report.n_non_manifold_edges = len(non_manifold)
    report.n_isolated_vertices = len(isolated)

    if boundary:
        report.add("BOUNDARY_EDGES", ValidationSeverity.WARNING,
                   f"{len(boundary)} edges belong to one face only, the mesh is open", count=len(boundary))
    if non_manifold:
        report.add("NON_MANIFOLD_EDGES", ValidationSeverity.WARNING,
                   f"{len(non_manifold)} edges are shared by more than two faces", count=len(non_manifold))
    if isolated:
        report.add("ISOLATED_VERTICES", ValidationSeverity.INFO,
                   "vertices not referenced by any face", indices=isolated)


def _check_areas(mesh: TriangleMesh, report: ValidationReport, threshold: float) -> None:
    degenerate = np.flatnonzero(mesh.face_areas() < threshold)
    report.n_degenerate_faces = len(degenerate)
    if len(degenerate):
        report.add("DEGENERATE_FACES", ValidationSeverity.WARNING,
                   f"faces with area below {threshold:g}", indices=degenerate)


def _check_orientation(mesh: TriangleMesh, report: ValidationReport) -> None:
    # the volume sign only means something for a closed manifold surface
    if not (report.is_closed and report.is_manifold):
        return
    report.signed_volume = signed_volume(mesh)
    if report.signed_volume < 0:
        report.add("INWARD_NORMALS", ValidationSeverity.WARNING,
                   "normals point inwards, visibility will be inverted")


def validate_mesh(mesh: TriangleMesh, degenerate_area_threshold: Optional[float] = None) -> ValidationReport:
    """Check one mesh.

    Args:
        mesh: mesh to inspect
        degenerate_area_threshold: faces with a smaller area are reported
            (config.DEGENERATE_AREA by default)
    """
    report = ValidationReport(n_vertices=mesh.n_vertices, n_faces=mesh.n_faces)
    if mesh.n_faces == 0:
        report.add("EMPTY_MESH", ValidationSeverity.ERROR, "mesh has no faces")
        return report

    threshold = config.DEGENERATE_AREA if degenerate_area_threshold is None else degenerate_area_threshold
    _check_edges(mesh, report)
    _check_orientation(mesh, report)
    _check_areas(mesh, report, threshold)

    logger.debug(
        "Mesh checked: %s", "valid" if report.is_valid else "invalid",
        extra={"n_faces": mesh.n_faces, "n_issues": len(report.issues)},
    )
    return report


def validate_mesh_pair(original: TriangleMesh, smoothed: TriangleMesh) -> ValidationReport:
    """Check the smoothed mesh and its correspondence with the original.

    The planner maps faces and vertices one to one between the two meshes,
    so differing sizes or connectivity are errors.
    """
    report = validate_mesh(smoothed)

    sizes = (original.n_vertices, original.n_faces), (smoothed.n_vertices, smoothed.n_faces)
    if sizes[0] != sizes[1]:
        report.add("PAIR_SIZE_MISMATCH", ValidationSeverity.ERROR,
                   "vertex/face counts differ: original %d/%d, smoothed %d/%d" % (*sizes[0], *sizes[1]))
        return report

    differing = np.flatnonzero((original.faces != smoothed.faces).any(axis=1))
    if len(differing):
        report.add("PAIR_TOPOLOGY_MISMATCH", ValidationSeverity.ERROR,
                   "faces reference different vertices", indices=differing)
        return report

    offsets = np.linalg.norm(original.vertices - smoothed.vertices, axis=1)
    report.max_displacement = float(offsets.max(initial=0.0))
    logger.debug("Largest vertex offset between the pair: %.6g", report.max_displacement)
    return report
