"""
Пространственный индекс для треугольников в 2D (rtree-обёртка).

Изолирует зависимость от библиотеки `rtree`:
- статический индекс по проекциям всех граней (лучевой анализ)
- растущий индекс принятых треугольников с запросом перекрытия (проекционный анализ)

Индексы создаются на одно направление и сразу отбрасываются.
"""

import threading
from typing import List, Tuple

import numpy as np
from rtree import index

from stl_milling.geometry.triangle import triangles_overlap


_rtree_lock = threading.Lock()


def _new_2d_index() -> index.Index:
    props = index.Property()
    props.dimension = 2
    return index.Index(properties=props)


def triangle_bounds(triangle_2d: np.ndarray) -> Tuple[float, float, float, float]:
    """Ограничивающий прямоугольник треугольника (min_x, min_y, max_x, max_y)."""
    min_xy = triangle_2d.min(axis=0)
    max_xy = triangle_2d.max(axis=0)
    return float(min_xy[0]), float(min_xy[1]), float(max_xy[0]), float(max_xy[1])


def build_rtree_index(projected_vertices: np.ndarray, faces: np.ndarray) -> index.Index:
    """Построить 2D R-tree индекс по ограничивающим прямоугольникам треугольников.

    Args:
        projected_vertices: проецированные вершины (N, 3), используются только XY (колонки 0-1).
        faces: индексы вершин граней (M, 3).

    Returns:
        Построенный rtree Index (2D), идентификатор элемента = номер грани.
    """
    rtree_idx = _new_2d_index()
    for face_id, face in enumerate(faces):
        rtree_idx.insert(face_id, triangle_bounds(projected_vertices[face, :2]))
    return rtree_idx


def query_rtree(spatial_idx: index.Index, bounds) -> List[int]:
    """Потокобезопасный запрос к rtree по прямоугольной области.

    Args:
        spatial_idx: индекс, построенный через build_rtree_index.
        bounds: (min_x, min_y, max_x, max_y); точка задаётся вырожденным прямоугольником.

    Returns:
        Отсортированный список идентификаторов граней, bbox которых пересекается с bounds.
    """
    with _rtree_lock:
        return sorted(spatial_idx.intersection(bounds))


class IncrementalTriangleIndex:
    """Растущее множество 2D-треугольников с проверкой строгого перекрытия.

    Кандидаты отбираются по bbox через rtree, затем проверяются точно
    (triangles_overlap).
    """

    def __init__(self, eps: float = 0.0):
        self.eps = eps
        self._index = _new_2d_index()
        self._triangles: List[np.ndarray] = []

    def __len__(self) -> int:
        return len(self._triangles)

    def insert(self, triangle_2d: np.ndarray) -> int:
        """Добавить треугольник; возвращает его идентификатор."""
        tri = np.asarray(triangle_2d, dtype=np.float64).reshape(3, 2)
        item_id = len(self._triangles)
        self._triangles.append(tri)
        self._index.insert(item_id, triangle_bounds(tri))
        return item_id

    def overlaps(self, triangle_2d: np.ndarray) -> bool:
        """Перекрывает ли треугольник хотя бы один из уже добавленных."""
        tri = np.asarray(triangle_2d, dtype=np.float64).reshape(3, 2)
        for item_id in query_rtree(self._index, triangle_bounds(tri)):
            if triangles_overlap(tri, self._triangles[item_id], self.eps):
                return True
        return False
