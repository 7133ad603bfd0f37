"""
Анализ видимости граней из набора направлений вокруг оси x.

Режимы RAYSHOOTING и PROJECTION перебирают полуокружность: копия сетки
поворачивается на шаг π/h вокруг x, и каждый проход даёт пару
противоположных направлений (i и h + i). Режим RENDER перебирает полную
окружность с шагом 2π/n. Последние две строки матрицы видимости всегда
соответствуют -x (K-2) и +x (K-1).
"""

import logging
from typing import Dict, Optional, Sequence, Type

import numpy as np

from stl_milling.geometry.mesh import TriangleMesh
from stl_milling.logging_config import log_timing
from stl_milling.orientation.rotation import Rotation3D
from stl_milling.visibility.base import (
    CheckMode,
    VisibilityResult,
    VisibilityStrategy,
    detect_non_visible_faces,
)
from stl_milling.visibility.projection import ProjectionStrategy
from stl_milling.visibility.ray_shooting import RayShootingStrategy
from stl_milling.visibility.render import RenderStrategy

logger = logging.getLogger(__name__)

_STRATEGIES: Dict[CheckMode, Type[VisibilityStrategy]] = {
    CheckMode.RAYSHOOTING: RayShootingStrategy,
    CheckMode.PROJECTION: ProjectionStrategy,
    CheckMode.RENDER: RenderStrategy,
}

_Z_AXIS = np.array([0.0, 0.0, 1.0])


def get_strategy(check_mode) -> VisibilityStrategy:
    """Создать стратегию для режима проверки."""
    return _STRATEGIES[CheckMode.parse(check_mode)]()


def direction_count(n_directions: int, check_mode) -> int:
    """Полное число направлений K (включая -x и +x)."""
    strategy_cls = _STRATEGIES[CheckMode.parse(check_mode)]
    if strategy_cls.full_circle:
        return n_directions + 2
    return 2 * (n_directions // 2) + 2


def get_visibility(
    mesh: TriangleMesh,
    n_directions: int,
    heightfield_angle: float,
    include_x_directions: bool = True,
    min_extremes: Sequence[int] = (),
    max_extremes: Sequence[int] = (),
    check_mode=CheckMode.PROJECTION,
    strategy: Optional[VisibilityStrategy] = None,
) -> VisibilityResult:
    """Вычислить матрицу видимости граней.

    Args:
        mesh: рабочая сетка (не изменяется).
        n_directions: число вращательных направлений (для полуокружности
            используется 2 * (n_directions // 2)).
        heightfield_angle: предельный угол карты высот, радианы.
        include_x_directions: вычислять -x/+x полноценно (True) или
            отметить в них только крайние грани (False).
        min_extremes, max_extremes: крайние грани для -x и +x.
        check_mode: способ проверки (CheckMode или его строковое имя).
        strategy: готовая стратегия (имеет приоритет над check_mode).

    Returns:
        VisibilityResult с направлениями, углами, матрицей и невидимыми гранями.

    Raises:
        ValueError: если направлений слишком мало для выбранного режима.
    """
    if strategy is None:
        strategy = get_strategy(check_mode)

    heightfield_limit = float(np.cos(heightfield_angle))
    vertices = mesh.vertices
    faces = mesh.faces
    n_faces = mesh.n_faces

    if strategy.full_circle:
        if n_directions < 1:
            raise ValueError(f"Нужно хотя бы одно направление, получено {n_directions}")
        n_rotational = n_directions
        step = 2 * np.pi / n_rotational
    else:
        half = n_directions // 2
        if half < 1:
            raise ValueError(f"Нужно хотя бы два направления, получено {n_directions}")
        n_rotational = 2 * half
        step = np.pi / half

    n_total = n_rotational + 2
    min_index, max_index = n_total - 2, n_total - 1
    directions = np.zeros((n_total, 3))
    visibility = np.zeros((n_total, n_faces), dtype=bool)
    angles = np.arange(n_rotational) * step

    with log_timing(logger, "Visibility check", mode=strategy.mode.value,
                    n_directions=n_total, n_faces=n_faces) as info:
        if strategy.full_circle:
            for i in range(n_rotational):
                rotated = Rotation3D.around_x(-i * step).apply(vertices)
                visibility[i], _ = strategy.compute_on_z(rotated, faces, heightfield_limit)
                directions[i] = Rotation3D.around_x(i * step).apply(_Z_AXIS)
        else:
            mesh_step = Rotation3D.around_x(-step)
            dir_step = Rotation3D.around_x(step)
            rotating = vertices.copy()
            direction = _Z_AXIS.copy()
            for i in range(half):
                up, down = strategy.compute_on_z(rotating, faces, heightfield_limit)
                visibility[i] = up
                visibility[half + i] = down
                directions[i] = direction
                directions[half + i] = -direction

                rotating = mesh_step.apply(rotating)
                direction = dir_step.apply(direction)

        directions[min_index] = (-1.0, 0.0, 0.0)
        directions[max_index] = (1.0, 0.0, 0.0)

        if include_x_directions:
            # +90° вокруг y: -x → +z, +x → -z
            rotated = Rotation3D.around_y(np.pi / 2).apply(vertices)
            visibility[min_index], visibility[max_index] = strategy.compute_on_z(
                rotated, faces, heightfield_limit,
            )
        else:
            visibility[min_index, np.asarray(min_extremes, dtype=np.int64)] = True
            visibility[max_index, np.asarray(max_extremes, dtype=np.int64)] = True

        non_visible = detect_non_visible_faces(visibility)
        info["n_non_visible"] = len(non_visible)

    if non_visible:
        logger.warning("Невидимых граней: %d из %d", len(non_visible), n_faces)
    else:
        logger.info("Все %d граней видны хотя бы из одного направления", n_faces)

    return VisibilityResult(
        directions=directions,
        angles=angles,
        visibility=visibility,
        non_visible_faces=non_visible,
    )
