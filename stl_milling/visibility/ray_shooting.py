"""
Видимость методом лучей.

Через центр каждой грани проводится вертикальная прямая. Пересекаемые
грани ищутся в 2D R-tree по проекциям на плоскость XY, затем проверяются
точно (барицентрические координаты). Грань видна сверху, если среди
пересекаемых граней, удовлетворяющих условию карты высот для +z, она
ближайшая (максимальная глубина в точке центра); снизу — симметрично.
"""

import logging
from typing import List, Tuple

import numpy as np

from stl_milling import config
from stl_milling.geometry.spatial_index import build_rtree_index, query_rtree
from stl_milling.geometry.triangle import compute_scaled_tolerance, interpolate_z, point_in_triangle
from stl_milling.visibility.base import CheckMode, VisibilityStrategy, heightfield_masks

logger = logging.getLogger(__name__)

# Допуск барицентрических координат при попадании луча в треугольник
_INSIDE_TOLERANCE = 1e-9


class RayShootingStrategy(VisibilityStrategy):
    """Лучевая проверка видимости по центрам граней."""

    mode = CheckMode.RAYSHOOTING
    full_circle = False

    def compute_on_z(
        self,
        vertices: np.ndarray,
        faces: np.ndarray,
        heightfield_limit: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        n_faces = len(faces)
        visible_up = np.zeros(n_faces, dtype=bool)
        visible_down = np.zeros(n_faces, dtype=bool)
        if n_faces == 0:
            return visible_up, visible_down

        up_ok, down_ok = heightfield_masks(vertices, faces, heightfield_limit)
        candidates = up_ok | down_ok
        if not candidates.any():
            return visible_up, visible_down

        triangles = vertices[faces]
        tris_2d = triangles[:, :, :2]
        tris_z = triangles[:, :, 2]
        centroids = triangles.mean(axis=1)
        eps_depth = compute_scaled_tolerance(vertices, config.EPS_DEPTH)

        # В индекс попадают только грани, способные заслонить
        candidate_ids = np.flatnonzero(candidates)
        spatial_idx = build_rtree_index(vertices, faces[candidate_ids])

        for face_id in candidate_ids:
            pt = centroids[face_id, :2]
            hits = self._hits(spatial_idx, candidate_ids, pt, tris_2d)
            if not hits:
                continue
            depths = [interpolate_z(pt, tris_2d[h], tris_z[h]) for h in hits]
            own_depth = interpolate_z(pt, tris_2d[face_id], tris_z[face_id])
            if not np.isfinite(own_depth):
                own_depth = float(centroids[face_id, 2])

            if up_ok[face_id]:
                visible_up[face_id] = not any(
                    up_ok[h] and d > own_depth + eps_depth
                    for h, d in zip(hits, depths) if h != face_id
                )
            if down_ok[face_id]:
                visible_down[face_id] = not any(
                    down_ok[h] and d < own_depth - eps_depth
                    for h, d in zip(hits, depths) if h != face_id
                )

        logger.debug(
            "Лучи: видно сверху %d, снизу %d из %d граней",
            int(visible_up.sum()), int(visible_down.sum()), n_faces,
        )
        return visible_up, visible_down

    @staticmethod
    def _hits(
        spatial_idx,
        candidate_ids: np.ndarray,
        pt: np.ndarray,
        tris_2d: np.ndarray,
    ) -> List[int]:
        """Грани-кандидаты, проекция которых содержит точку."""
        bounds = (float(pt[0]), float(pt[1]), float(pt[0]), float(pt[1]))
        hits = []
        for local_id in query_rtree(spatial_idx, bounds):
            face_id = int(candidate_ids[local_id])
            if point_in_triangle(pt, tris_2d[face_id], _INSIDE_TOLERANCE):
                hits.append(face_id)
        return hits
