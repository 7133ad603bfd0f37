"""
Выбор оптимальной ориентации модели для четырёхосевой фрезеровки.

Перебираются кандидатные повороты (направления на сфере × повороты вокруг z),
для каждого считается суммарная площадь проекций граней сглаженной модели
на три координатные плоскости. Поворот с минимальной стоимостью применяется
к обеим моделям, после чего самая длинная ось габарита переводится на x
(ось вращения станка), а модели центрируются.
"""

import logging
from typing import List, Optional

import numpy as np

from stl_milling import config
from stl_milling.geometry.mesh import TriangleMesh
from stl_milling.orientation.rotation import (
    Rotation3D,
    fibonacci_sphere,
    orthonormalize,
    random_sphere,
)

logger = logging.getLogger(__name__)


def candidate_rotations(
    n_orientations: int,
    deterministic: bool = True,
    seed: Optional[int] = None,
) -> List[Rotation3D]:
    """Кандидатные повороты.

    Каждое направление u на сфере задаёт поворот u → +z, который дополняется
    config.ORIENTATION_SPIN_STEPS поворотами вокруг z на четверть оборота.
    Первый кандидат — тождественный поворот.

    Args:
        n_orientations: число направлений на сфере.
        deterministic: решётка Фибоначчи (True) или случайные направления.
        seed: зерно генератора для случайного режима.
    """
    if deterministic:
        directions = fibonacci_sphere(n_orientations)
    else:
        directions = random_sphere(n_orientations, seed)

    spin_steps = max(1, int(config.ORIENTATION_SPIN_STEPS))
    spin_angle = (np.pi / 2) / spin_steps
    z_axis = np.array([0.0, 0.0, 1.0])

    candidates = [Rotation3D.identity()]
    for direction in directions:
        base = Rotation3D.from_two_vectors(direction, z_axis)
        for k in range(spin_steps):
            candidates.append(Rotation3D.around_z(k * spin_angle) @ base)
    return candidates


def projected_area_cost(
    normals: np.ndarray,
    areas: np.ndarray,
    rotation: Rotation3D,
) -> float:
    """Суммарная площадь проекций граней на координатные плоскости после поворота.

    cost = Σ area_f · (|n'_x| + |n'_y| + |n'_z|),  n' = R n
    """
    rotated = rotation.apply(normals)
    return float(np.sum(areas * np.abs(rotated).sum(axis=1)))


def find_optimal_rotation(
    smoothed_mesh: TriangleMesh,
    n_orientations: int,
    deterministic: bool = True,
    seed: Optional[int] = None,
) -> Rotation3D:
    """Найти поворот с минимальной стоимостью projected_area_cost.

    При равной стоимости выбирается кандидат, встретившийся первым.
    """
    normals = smoothed_mesh.face_normals()
    areas = smoothed_mesh.face_areas()

    candidates = candidate_rotations(n_orientations, deterministic, seed)
    costs = np.array([projected_area_cost(normals, areas, rot) for rot in candidates])
    best = int(np.argmin(costs))

    logger.debug(
        "Ориентация: %d кандидатов, стоимость %.4g (исходная %.4g), поворот на %.1f°",
        len(candidates), costs[best], costs[0], np.degrees(candidates[best].angle),
    )
    return candidates[best]


def canonical_rotation(mesh: TriangleMesh) -> Rotation3D:
    """Поворот на 90°, переводящий самую длинную ось габарита на x.

    Если длиннее всех y — поворот вокруг z, если z — вокруг y.
    Иначе (x уже самая длинная или равенство) — тождественный поворот.
    """
    lx, ly, lz = mesh.bounding_box().dimensions
    if ly > lx and ly > lz:
        return Rotation3D.around_z(np.pi / 2)
    if lz > lx and lz > ly:
        return Rotation3D.around_y(np.pi / 2)
    return Rotation3D.identity()


def rotate_to_optimal_orientation(
    mesh: TriangleMesh,
    smoothed_mesh: TriangleMesh,
    n_orientations: int,
    deterministic: bool = True,
    seed: Optional[int] = None,
) -> np.ndarray:
    """Повернуть обе модели в оптимальную ориентацию для фрезеровки вокруг x.

    Алгоритм:
      1. Оптимальный поворот по сглаженной модели (find_optimal_rotation).
      2. Канонизация: самая длинная ось габарита исходной модели → x.
      3. Центрирование каждой модели по центру её габарита.

    Обе модели изменяются на месте одинаковым поворотом.

    Args:
        mesh: исходная (детальная) модель.
        smoothed_mesh: сглаженная рабочая модель.
        n_orientations: число направлений-кандидатов.
        deterministic: детерминированная (True) или случайная выборка.
        seed: зерно генератора для случайного режима.

    Returns:
        Итоговая матрица поворота (3, 3).
    """
    optimal = find_optimal_rotation(smoothed_mesh, n_orientations, deterministic, seed)
    mesh.rotate(optimal.matrix)
    smoothed_mesh.rotate(optimal.matrix)

    canonical = canonical_rotation(mesh)
    if not canonical.is_identity():
        mesh.rotate(canonical.matrix)
        smoothed_mesh.rotate(canonical.matrix)

    mesh.translate(-mesh.bounding_box().center)
    smoothed_mesh.translate(-smoothed_mesh.bounding_box().center)

    total = orthonormalize((canonical @ optimal).matrix)
    dims = mesh.bounding_box().dimensions
    logger.info("Габарит после ориентации: %.3f x %.3f x %.3f", *dims)
    return total
