"""
Плоские треугольники в проекции на плоскость, перпендикулярную направлению.

Функции принимают вершины формы (3, 2). Используются проверками видимости:
барицентрические веса и глубина точки, перекрытие проекций граней,
порог точности, согласованный с размером модели.
"""

from typing import Optional, Tuple

import numpy as np

# Относительный порог площади, ниже которого треугольник считается вырожденным
_DEGENERATE_RATIO = 1e-12


def _cross2(u: np.ndarray, v: np.ndarray) -> float:
    return float(u[0] * v[1] - u[1] * v[0])


def signed_area(triangle_2d: np.ndarray) -> float:
    """Ориентированная площадь: положительна при обходе против часовой стрелки."""
    a, b, c = triangle_2d
    return 0.5 * _cross2(b - a, c - a)


def barycentric(pt: np.ndarray, triangle_2d: np.ndarray) -> Optional[Tuple[float, float, float]]:
    """Веса (w_a, w_b, w_c) точки относительно вершин a, b, c.

    Каждый вес равен доле площади подтреугольника, противолежащего вершине.
    Для вырожденного треугольника возвращается None.
    """
    a, b, c = triangle_2d
    doubled = _cross2(b - a, c - a)
    scale = float(np.linalg.norm(b - a) * np.linalg.norm(c - a))
    if scale == 0.0 or abs(doubled) <= _DEGENERATE_RATIO * scale:
        return None

    w_a = _cross2(b - pt, c - pt) / doubled
    w_b = _cross2(c - pt, a - pt) / doubled
    return w_a, w_b, 1.0 - w_a - w_b


def point_in_triangle(pt: np.ndarray, triangle_2d: np.ndarray, tolerance: float = 0.0) -> bool:
    """Точка внутри треугольника или на его границе.

    `tolerance` допускает отрицательные веса до -tolerance. Вырожденный
    треугольник не содержит ни одной точки.
    """
    weights = barycentric(pt, triangle_2d)
    return weights is not None and min(weights) >= -tolerance


def interpolate_z(pt_2d: np.ndarray, triangle_2d: np.ndarray, triangle_z: np.ndarray) -> float:
    """Глубина плоскости грани над точкой `pt_2d`; np.inf для вырожденной грани."""
    weights = barycentric(pt_2d, triangle_2d)
    if weights is None:
        return np.inf
    return float(np.dot(weights, triangle_z))


def _separating_axes(triangle_2d: np.ndarray) -> np.ndarray:
    # нормали к рёбрам: ребро (dx, dy) -> (-dy, dx)
    edges = np.roll(triangle_2d, -1, axis=0) - triangle_2d
    return edges[:, ::-1] * np.array([-1.0, 1.0])


def triangles_overlap(t1: np.ndarray, t2: np.ndarray, eps: float = 0.0) -> bool:
    """Пересекаются ли внутренности двух треугольников.

    Общее ребро или вершина перекрытием не считаются, иначе соседние грани
    сетки заслоняли бы друг друга. Проверка по теореме о разделяющей оси:
    проекции, разделённые на любой оси с допуском `eps`, не перекрываются.
    Треугольник с площадью не больше eps² не перекрывает ничего.
    """
    if min(abs(signed_area(t1)), abs(signed_area(t2))) <= eps * eps:
        return False

    for axis in np.vstack([_separating_axes(t1), _separating_axes(t2)]):
        length = float(np.hypot(*axis))
        if length == 0.0:
            continue
        s1 = t1 @ (axis / length)
        s2 = t2 @ (axis / length)
        if s1.max() <= s2.min() + eps or s2.max() <= s1.min() + eps:
            return False
    return True


def compute_scaled_tolerance(projected_vertices: np.ndarray, relative_eps: float) -> float:
    """Абсолютный допуск: `relative_eps` × наибольший размер XY-габарита проекции.

    `projected_vertices` имеет форму (N, 3): плоские координаты и глубина.
    """
    if len(projected_vertices) == 0:
        return 0.0
    extent = np.ptp(projected_vertices[:, :2], axis=0).max()
    return relative_eps * float(extent)
