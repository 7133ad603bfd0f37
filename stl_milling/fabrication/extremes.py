"""
Выбор крайних граней вдоль оси x.

Грани сортируются по центру (лексикографически: x, затем y, затем z).
От начала списка набираются грани, пока их нормаль не смотрит в сторону +x
(n · (-x) >= -eps), от конца — пока нормаль не смотрит в сторону -x.
Такие грани обрабатываются только осевыми направлениями ±x.
"""

import logging
from typing import List, Tuple

import numpy as np

from stl_milling import config
from stl_milling.geometry.mesh import TriangleMesh

logger = logging.getLogger(__name__)


def sort_faces_by_centroid(mesh: TriangleMesh) -> np.ndarray:
    """Номера граней в лексикографическом порядке центров (x, y, z)."""
    centroids = mesh.face_centroids()
    # np.lexsort сортирует по последнему ключу в первую очередь
    return np.lexsort((centroids[:, 2], centroids[:, 1], centroids[:, 0]))


def select_extremes_on_x_axis(mesh: TriangleMesh) -> Tuple[List[int], List[int]]:
    """Найти крайние грани у -x и у +x.

    Args:
        mesh: рабочая (сглаженная) сетка после ориентации.

    Returns:
        (min_extremes, max_extremes) — номера граней в порядке обхода.
    """
    n_faces = mesh.n_faces
    if n_faces == 0:
        return [], []

    order = sort_faces_by_centroid(mesh)
    normals_x = mesh.face_normals()[:, 0]
    eps = config.EXTREME_NORMAL_EPS

    min_extremes: List[int] = []
    i = 0
    while i < n_faces and -normals_x[order[i]] >= -eps:
        min_extremes.append(int(order[i]))
        i += 1

    max_extremes: List[int] = []
    i = n_faces - 1
    while i >= 0 and normals_x[order[i]] >= -eps:
        max_extremes.append(int(order[i]))
        i -= 1

    logger.info(
        "Крайние грани: %d у -x, %d у +x", len(min_extremes), len(max_extremes),
    )
    return min_extremes, max_extremes
