"""
Видимость методом растеризации (программный z-буфер на numpy).

Сетка растеризуется в буфер config.RENDER_RESOLUTION пикселей по длинной
стороне габарита. Грань видна, если ей принадлежит хотя бы один пиксель
буфера и она удовлетворяет условию карты высот. Заслоняют все грани
сетки. Грани меньше пикселя могут не попасть ни в один центр пикселя
и будут пропущены.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from stl_milling import config
from stl_milling.visibility.base import CheckMode, VisibilityStrategy, heightfield_masks

logger = logging.getLogger(__name__)


class RenderStrategy(VisibilityStrategy):
    """Z-буфер по полной окружности направлений."""

    mode = CheckMode.RENDER
    full_circle = True

    def __init__(self, resolution: Optional[int] = None):
        self.resolution = int(resolution or config.RENDER_RESOLUTION)

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

        owners_up = self.render_face_ids(triangles[:, :, :2], triangles[:, :, 2])
        owners_down = self.render_face_ids(triangles[:, :, :2], -triangles[:, :, 2])

        visible_up = np.zeros(n_faces, dtype=bool)
        visible_down = np.zeros(n_faces, dtype=bool)
        visible_up[owners_up] = True
        visible_down[owners_down] = True
        return visible_up & up_ok, visible_down & down_ok

    def render_face_ids(self, tris_2d: np.ndarray, depth: np.ndarray) -> np.ndarray:
        """Номера граней, владеющих хотя бы одним пикселем (вид сверху).

        Args:
            tris_2d: проекции граней (M, 3, 2).
            depth: глубины вершин (M, 3); большая глубина ближе к наблюдателю.

        Returns:
            Отсортированный массив номеров граней.
        """
        points = tris_2d.reshape(-1, 2)
        origin = points.min(axis=0)
        extent = points.max(axis=0) - origin
        longest = float(extent.max())
        if longest <= 0.0:
            return np.zeros(0, dtype=np.int64)

        pixel = longest / self.resolution
        width = max(1, int(np.ceil(extent[0] / pixel)))
        height = max(1, int(np.ceil(extent[1] / pixel)))

        z_buffer = np.full((height, width), -np.inf)
        id_buffer = np.full((height, width), -1, dtype=np.int64)

        # Координаты в пикселях; центр пикселя (i, j) находится в (j + 0.5, i + 0.5)
        px_tris = (tris_2d - origin) / pixel

        for face_id in range(len(px_tris)):
            self._rasterize(face_id, px_tris[face_id], depth[face_id], z_buffer, id_buffer)

        owners = id_buffer[id_buffer >= 0]
        return np.unique(owners)

    @staticmethod
    def _rasterize(
        face_id: int,
        tri: np.ndarray,
        tri_depth: np.ndarray,
        z_buffer: np.ndarray,
        id_buffer: np.ndarray,
    ) -> None:
        height, width = z_buffer.shape
        a, b, c = tri
        area = (b[0] - a[0]) * (c[1] - a[1]) - (c[0] - a[0]) * (b[1] - a[1])
        if abs(area) < 1e-12:
            return

        col_min = max(int(np.floor(tri[:, 0].min() - 0.5)), 0)
        col_max = min(int(np.ceil(tri[:, 0].max() - 0.5)), width - 1)
        row_min = max(int(np.floor(tri[:, 1].min() - 0.5)), 0)
        row_max = min(int(np.ceil(tri[:, 1].max() - 0.5)), height - 1)
        if col_min > col_max or row_min > row_max:
            return

        cols = np.arange(col_min, col_max + 1) + 0.5
        rows = np.arange(row_min, row_max + 1) + 0.5
        px, py = np.meshgrid(cols, rows)

        # Барицентрические координаты центров пикселей
        w_b = ((px - a[0]) * (c[1] - a[1]) - (c[0] - a[0]) * (py - a[1])) / area
        w_c = ((b[0] - a[0]) * (py - a[1]) - (px - a[0]) * (b[1] - a[1])) / area
        w_a = 1.0 - w_b - w_c
        inside = (w_a >= -1e-9) & (w_b >= -1e-9) & (w_c >= -1e-9)
        if not inside.any():
            return

        z = w_a * tri_depth[0] + w_b * tri_depth[1] + w_c * tri_depth[2]
        window_z = z_buffer[row_min:row_max + 1, col_min:col_max + 1]
        window_id = id_buffer[row_min:row_max + 1, col_min:col_max + 1]
        closer = inside & (z > window_z)
        window_z[closer] = z[closer]
        window_id[closer] = face_id
