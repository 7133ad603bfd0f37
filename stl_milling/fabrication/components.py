"""
Разбиение поверхности на компоненты обработки.

Грани группируются по назначенному направлению, каждая группа делится на
связные по рёбрам компоненты. Для результата -x, результата +x и
четырёхосевого (вращательного) результата строятся подсетки; заготовка
описывается цилиндром вокруг оси x.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
from scipy import sparse
from scipy.sparse.csgraph import connected_components

from stl_milling.fabrication.data import FabricationData
from stl_milling.geometry.mesh import TriangleMesh
from stl_milling.io.stl_loader import save_stl
from stl_milling.topology.adjacency import MeshAdjacency

logger = logging.getLogger(__name__)


@dataclass
class StockEnvelope:
    """Цилиндрическая заготовка вокруг оси x."""
    x_min: float
    x_max: float
    radius: float

    @property
    def length(self) -> float:
        return self.x_max - self.x_min

    def to_dict(self) -> Dict[str, float]:
        return {
            "x_min": self.x_min,
            "x_max": self.x_max,
            "radius": self.radius,
            "length": self.length,
        }


@dataclass
class MillingComponent:
    """Связная область граней с общим направлением обработки."""
    direction: int
    faces: np.ndarray
    mesh: TriangleMesh

    @property
    def n_faces(self) -> int:
        return len(self.faces)


@dataclass
class CutResult:
    """Результат разбиения.

    Attributes:
        components: связные компоненты, упорядоченные по (направление, первая грань).
        min_result: грани, обрабатываемые с -x.
        max_result: грани, обрабатываемые с +x.
        four_axis_result: грани вращательных направлений.
        stock: цилиндрическая заготовка.
    """
    components: List[MillingComponent] = field(default_factory=list)
    min_result: Optional[TriangleMesh] = None
    max_result: Optional[TriangleMesh] = None
    four_axis_result: Optional[TriangleMesh] = None
    stock: Optional[StockEnvelope] = None

    def components_for(self, direction: int) -> List[MillingComponent]:
        return [c for c in self.components if c.direction == direction]


def stock_envelope(mesh: TriangleMesh) -> StockEnvelope:
    """Минимальный цилиндр вокруг оси x, содержащий сетку."""
    if mesh.n_vertices == 0:
        return StockEnvelope(0.0, 0.0, 0.0)
    vertices = mesh.vertices
    radius = float(np.sqrt(vertices[:, 1] ** 2 + vertices[:, 2] ** 2).max())
    return StockEnvelope(float(vertices[:, 0].min()), float(vertices[:, 0].max()), radius)


def label_components(n_faces: int, face_edges: np.ndarray, association: np.ndarray) -> np.ndarray:
    """Номер связной компоненты каждой грани внутри групп одного направления."""
    if n_faces == 0:
        return np.zeros(0, dtype=np.int64)
    if len(face_edges):
        same = association[face_edges[:, 0]] == association[face_edges[:, 1]]
        rows, cols = face_edges[same, 0], face_edges[same, 1]
    else:
        rows = cols = np.zeros(0, dtype=np.int64)
    graph = sparse.coo_matrix(
        (np.ones(len(rows)), (rows, cols)), shape=(n_faces, n_faces),
    ).tocsr()
    _, labels = connected_components(graph, directed=False)
    return labels


def cut_components(mesh: TriangleMesh, data: FabricationData) -> CutResult:
    """Разбить сетку по назначению направлений.

    Используется назначение восстановленной сетки, если оно есть.
    """
    association = data.restored_mesh_association
    if len(association) != mesh.n_faces:
        association = data.association
    if len(association) != mesh.n_faces:
        raise ValueError(
            f"Назначение задано для {len(association)} граней, в сетке {mesh.n_faces}"
        )
    association = np.asarray(association, dtype=np.int64)

    face_edges = MeshAdjacency.from_mesh(mesh).face_edges()
    labels = label_components(mesh.n_faces, face_edges, association)

    groups: Dict[int, List[int]] = {}
    for f, label in enumerate(labels):
        groups.setdefault(int(label), []).append(f)

    components = []
    for faces in groups.values():
        face_ids = np.asarray(faces, dtype=np.int64)
        components.append(MillingComponent(
            direction=int(association[face_ids[0]]),
            faces=face_ids,
            mesh=mesh.submesh(face_ids),
        ))
    components.sort(key=lambda c: (c.direction, int(c.faces[0])))

    min_faces = np.flatnonzero(association == data.min_index)
    max_faces = np.flatnonzero(association == data.max_index)
    rotary_faces = np.flatnonzero((association != data.min_index) & (association != data.max_index))

    result = CutResult(
        components=components,
        min_result=mesh.submesh(min_faces),
        max_result=mesh.submesh(max_faces),
        four_axis_result=mesh.submesh(rotary_faces),
        stock=stock_envelope(mesh),
    )
    data.cut = result

    logger.info(
        "Компоненты: %d (-x: %d граней, +x: %d граней, вращательные: %d граней)",
        len(components), len(min_faces), len(max_faces), len(rotary_faces),
    )
    return result


def save_components(
    cut: CutResult,
    directory: Union[str, Path],
    prefix: str = "component",
) -> List[Path]:
    """Сохранить результаты и компоненты в STL; пустые сетки пропускаются.

    Returns:
        Пути записанных файлов.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    named = [
        (f"{prefix}_min_x.stl", cut.min_result),
        (f"{prefix}_max_x.stl", cut.max_result),
        (f"{prefix}_four_axis.stl", cut.four_axis_result),
    ]
    for index, component in enumerate(cut.components):
        named.append((f"{prefix}_{index:03d}_dir{component.direction}.stl", component.mesh))

    written = []
    for filename, part in named:
        if part is None or part.n_faces == 0:
            continue
        path = directory / filename
        save_stl(part, path)
        written.append(path)

    logger.info("Сохранено файлов: %d в %s", len(written), directory)
    return written
