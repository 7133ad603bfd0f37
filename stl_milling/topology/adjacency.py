"""
Топология треугольной сетки.

MeshAdjacency строит индексные таблицы смежности:
- ребро → множество граней
- грань → до трёх соседних граней через общие рёбра ((M, 3), -1 на границе)
- вершина → соседние вершины (1-окрестность)
- вершина → инцидентные грани

Окрестности вершин берутся из разреженных матриц инцидентности scipy.
"""

import logging
from collections import defaultdict
from itertools import combinations
from typing import Dict, List, Set, Tuple

import numpy as np
from scipy import sparse

logger = logging.getLogger(__name__)

# Ребро: пара индексов вершин, меньший первым
Edge = Tuple[int, int]


def _edge_key(v1: int, v2: int) -> Edge:
    return (v1, v2) if v1 < v2 else (v2, v1)


def _csr_rows(matrix: sparse.csr_matrix) -> List[List[int]]:
    matrix.sort_indices()
    return [matrix.indices[start:stop].tolist() for start, stop in zip(matrix.indptr[:-1], matrix.indptr[1:])]


class MeshAdjacency:
    """Таблицы смежности сетки.

    Attributes:
        n_vertices: число вершин.
        faces: грани сетки (M, 3).
        edge_faces: словарь {edge -> set(face_indices)}.
        face_faces: (M, 3) int, сосед через ребро (face[i], face[i+1]) или -1.
        vertex_vertices: отсортированные списки соседних вершин.
        vertex_faces: отсортированные списки инцидентных граней.
    """

    def __init__(self, n_vertices: int, faces: np.ndarray) -> None:
        self.n_vertices = int(n_vertices)
        self.faces: np.ndarray = np.asarray(faces, dtype=np.int32).reshape(-1, 3)
        self.edge_faces: Dict[Edge, Set[int]] = defaultdict(set)
        self.face_faces: np.ndarray = np.full((len(self.faces), 3), -1, dtype=np.int64)

        # строка 3*f + i: ребро i грани f, (face[i], face[i+1])
        half_edges = self.faces[:, [0, 1, 1, 2, 2, 0]].reshape(-1, 2).astype(np.int64)
        owners = np.repeat(np.arange(len(self.faces)), 3)

        self._link_faces(half_edges, owners)
        self.vertex_vertices: List[List[int]] = self._vertex_neighbors(half_edges)
        self.vertex_faces: List[List[int]] = self._incident_faces(owners)

        logger.debug(
            "Смежность построена",
            extra={"n_vertices": self.n_vertices, "n_faces": len(self.faces), "n_edges": len(self.edge_faces)},
        )

    @classmethod
    def from_mesh(cls, mesh) -> 'MeshAdjacency':
        return cls(mesh.n_vertices, mesh.faces)

    def _link_faces(self, half_edges: np.ndarray, owners: np.ndarray) -> None:
        for (a, b), face_idx in zip(np.sort(half_edges, axis=1).tolist(), owners.tolist()):
            self.edge_faces[(a, b)].add(face_idx)

        for row, (a, b) in enumerate(half_edges.tolist()):
            others = self.edge_faces[_edge_key(a, b)] - {row // 3}
            if others:
                # на неманифолдном ребре берётся сосед с наименьшим номером
                self.face_faces.flat[row] = min(others)

    def _vertex_neighbors(self, half_edges: np.ndarray) -> List[List[int]]:
        n = self.n_vertices
        links = sparse.coo_matrix(
            (np.ones(len(half_edges)), (half_edges[:, 0], half_edges[:, 1])), shape=(n, n),
        )
        return _csr_rows((links + links.T).tocsr())

    def _incident_faces(self, owners: np.ndarray) -> List[List[int]]:
        incidence = sparse.coo_matrix(
            (np.ones(len(owners)), (self.faces.reshape(-1), owners)), shape=(self.n_vertices, len(self.faces)),
        )
        return _csr_rows(incidence.tocsr())

    # ------------------------------------------------------------------
    # Производные представления
    # ------------------------------------------------------------------

    def face_edges(self) -> np.ndarray:
        """Неориентированные пары соседних граней (E, 2), без повторов, i < j."""
        pairs = {
            pair
            for face_set in self.edge_faces.values()
            for pair in combinations(sorted(face_set), 2)
        }
        if not pairs:
            return np.zeros((0, 2), dtype=np.int64)
        return np.array(sorted(pairs), dtype=np.int64)

    def boundary_edges(self) -> List[Edge]:
        """Рёбра, принадлежащие ровно одной грани."""
        return sorted(edge for edge, face_set in self.edge_faces.items() if len(face_set) == 1)

    def non_manifold_edges(self) -> List[Edge]:
        """Рёбра, принадлежащие более чем двум граням."""
        return sorted(edge for edge, face_set in self.edge_faces.items() if len(face_set) > 2)

    def isolated_vertices(self) -> List[int]:
        """Вершины, не входящие ни в одну грань."""
        return [v for v, incident in enumerate(self.vertex_faces) if not incident]
