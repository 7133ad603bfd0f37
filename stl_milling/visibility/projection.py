"""
Видимость методом проекций.

Грани упорядочены по минимальной z вершин. Проход сверху идёт от большей
к меньшей, проход снизу в обратном порядке. Грань, удовлетворяющая условию
карты высот, видна, если её проекция на плоскость XY строго не перекрывает
ни одну из уже принятых проекций; принятая проекция добавляется в растущий
2D-индекс.
"""

import logging
from typing import Tuple

import numpy as np

from stl_milling import config
from stl_milling.geometry.spatial_index import IncrementalTriangleIndex
from stl_milling.geometry.triangle import compute_scaled_tolerance
from stl_milling.visibility.base import CheckMode, VisibilityStrategy, heightfield_masks

logger = logging.getLogger(__name__)


class ProjectionStrategy(VisibilityStrategy):
    """Проекционная проверка видимости с инкрементальным индексом."""

    mode = CheckMode.PROJECTION
    full_circle = False

    def compute_on_z(
        self,
        vertices: np.ndarray,
        faces: np.ndarray,
        heightfield_limit: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        n_faces = len(faces)
        if n_faces == 0:
            return np.zeros(0, dtype=bool), np.zeros(0, dtype=bool)

        up_ok, down_ok = heightfield_masks(vertices, faces, heightfield_limit)
        triangles = vertices[faces]
        tris_2d = triangles[:, :, :2]
        eps = compute_scaled_tolerance(vertices, config.EPS_OVERLAP)

        # Один порядок на оба прохода: по возрастанию минимальной z вершин
        by_min_z = np.argsort(triangles[:, :, 2].min(axis=1), kind='stable')
        visible_up = self._sweep(tris_2d, by_min_z[::-1], up_ok, eps)
        visible_down = self._sweep(tris_2d, by_min_z, down_ok, eps)

        logger.debug(
            "Проекции: видно сверху %d, снизу %d из %d граней",
            int(visible_up.sum()), int(visible_down.sum()), n_faces,
        )
        return visible_up, visible_down

    @staticmethod
    def _sweep(
        tris_2d: np.ndarray,
        order: np.ndarray,
        candidates: np.ndarray,
        eps: float,
    ) -> np.ndarray:
        """Проход по граням в порядке `order`, от ближней к дальней.

        В индекс попадают только видимые грани: заслонённая грань сама
        ничего не заслоняет.

        Args:
            tris_2d: проекции граней (M, 3, 2).
            order: индексы всех граней, от ближней к дальней.
            candidates: грани, удовлетворяющие условию карты высот.
            eps: абсолютный допуск перекрытия.
        """
        visible = np.zeros(len(tris_2d), dtype=bool)
        occluders = IncrementalTriangleIndex(eps)
        for face_id in order[candidates[order]]:
            tri = tris_2d[face_id]
            if not occluders.overlaps(tri):
                visible[face_id] = True
                occluders.insert(tri)
        return visible
