"""
Общие типы анализа видимости.

Грань видна из направления d, если:
  1. n · d >= cos(предельного угла)  (условие карты высот);
  2. её не заслоняет другая грань, удовлетворяющая тому же условию.

Стратегии работают на сетке, уже повёрнутой так, что направление
запроса совпадает с +z, и возвращают видимость сверху (+z) и снизу (-z).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

import numpy as np

from stl_milling.geometry.mesh import compute_face_normals

logger = logging.getLogger(__name__)


class CheckMode(Enum):
    """Способ проверки видимости."""
    RAYSHOOTING = "rayshooting"
    PROJECTION = "projection"
    RENDER = "render"

    @classmethod
    def parse(cls, value) -> 'CheckMode':
        """CheckMode из строки ('projection', 'RAYSHOOTING', ...) или самого CheckMode."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = ", ".join(m.value for m in cls)
            raise ValueError(f"Неизвестный режим проверки видимости {value!r} (допустимы: {names})") from None


@dataclass
class VisibilityResult:
    """Результат анализа видимости.

    Attributes:
        directions: (K, 3) направления; строки K-2 и K-1 — это -x и +x.
        angles: углы поворота вокруг x для вращательных направлений (от +z).
        visibility: (K, M) bool, visibility[direction, face].
        non_visible_faces: отсортированные номера граней без единой видимости.
    """
    directions: np.ndarray
    angles: np.ndarray
    visibility: np.ndarray
    non_visible_faces: List[int] = field(default_factory=list)

    @property
    def n_directions(self) -> int:
        return len(self.directions)

    @property
    def min_index(self) -> int:
        """Номер направления -x."""
        return len(self.directions) - 2

    @property
    def max_index(self) -> int:
        """Номер направления +x."""
        return len(self.directions) - 1


class VisibilityStrategy(ABC):
    """Стратегия проверки видимости вдоль оси z.

    Attributes:
        mode: соответствующий CheckMode.
        full_circle: True — направления выбираются по полной окружности
            (по одному проходу на направление), False — по полуокружности
            (проход сверху и снизу даёт пару противоположных направлений).
    """

    mode: CheckMode
    full_circle: bool = False

    @abstractmethod
    def compute_on_z(
        self,
        vertices: np.ndarray,
        faces: np.ndarray,
        heightfield_limit: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Видимость граней из +z и из -z.

        Args:
            vertices: повёрнутые вершины (N, 3).
            faces: грани (M, 3).
            heightfield_limit: косинус предельного угла.

        Returns:
            (visible_up, visible_down) — bool-массивы формы (M,).
        """


def heightfield_masks(
    vertices: np.ndarray,
    faces: np.ndarray,
    heightfield_limit: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Грани, удовлетворяющие условию карты высот для +z и для -z."""
    normals = compute_face_normals(vertices, faces)
    return normals[:, 2] >= heightfield_limit, -normals[:, 2] >= heightfield_limit


def detect_non_visible_faces(visibility: np.ndarray) -> List[int]:
    """Грани, не видимые ни из одного направления (столбцы без True).

    Матрица не изменяется: такие грани не покрываются принудительно.
    """
    visibility = np.asarray(visibility, dtype=bool)
    if visibility.size == 0:
        return list(range(visibility.shape[1])) if visibility.ndim == 2 else []
    return np.flatnonzero(~visibility.any(axis=0)).tolist()
