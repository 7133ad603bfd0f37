"""
Состояние планирования четырёхосевой фрезеровки.

FabricationData накапливает результаты всех этапов пайплайна:
направления и видимость, выбранные направления, назначение граней,
восстановленную сетку и разбиение на компоненты.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from stl_milling.geometry.mesh import TriangleMesh


def _empty_directions() -> np.ndarray:
    return np.zeros((0, 3))


def _empty_visibility() -> np.ndarray:
    return np.zeros((0, 0), dtype=bool)


def _empty_association() -> np.ndarray:
    return np.zeros(0, dtype=np.int64)


@dataclass
class FabricationData:
    """Результаты этапов планирования.

    Attributes:
        directions: (K, 3) направления фрезеровки; K-2 = -x, K-1 = +x.
        angles: углы вращательных направлений вокруг x.
        visibility: (K, M) матрица видимости.
        non_visible_faces: грани, не видимые ни из одного направления.
        target_directions: выбранные (сохранённые) направления, глобальные номера.
        association: (M,) глобальный номер направления для каждой грани.
        min_extremes, max_extremes: крайние грани у -x и +x.
        fix_extreme_association: крайние грани закрепляются за ±x.
        n_directions: запрошенное число вращательных направлений.
        restored_mesh: сетка после восстановления деталей.
        restored_mesh_association: назначение для восстановленной сетки.
        restored_mesh_visibility: видимость восстановленной сетки.
        restored_mesh_non_visible_faces: грани восстановленной сетки, которые
            не видны из назначенного направления.
        cut: результат разбиения на компоненты (fabrication.components.CutResult).
    """
    directions: np.ndarray = field(default_factory=_empty_directions)
    angles: np.ndarray = field(default_factory=lambda: np.zeros(0))
    visibility: np.ndarray = field(default_factory=_empty_visibility)
    non_visible_faces: List[int] = field(default_factory=list)
    target_directions: List[int] = field(default_factory=list)
    association: np.ndarray = field(default_factory=_empty_association)
    min_extremes: List[int] = field(default_factory=list)
    max_extremes: List[int] = field(default_factory=list)
    fix_extreme_association: bool = False
    n_directions: int = 0

    restored_mesh: Optional[TriangleMesh] = None
    restored_mesh_association: np.ndarray = field(default_factory=_empty_association)
    restored_mesh_visibility: np.ndarray = field(default_factory=_empty_visibility)
    restored_mesh_non_visible_faces: List[int] = field(default_factory=list)

    cut: Optional[Any] = None

    @property
    def min_index(self) -> int:
        """Номер направления -x."""
        return len(self.directions) - 2

    @property
    def max_index(self) -> int:
        """Номер направления +x."""
        return len(self.directions) - 1

    def association_labels(self) -> np.ndarray:
        """Назначение в виде номеров в списке target_directions."""
        position = {direction: label for label, direction in enumerate(self.target_directions)}
        return np.array([position[int(d)] for d in self.association], dtype=np.int64)

    def clear(self, *names: str) -> None:
        """Сбросить перечисленные поля к значениям по умолчанию (без имён: все)."""
        fresh = FabricationData()
        if not names:
            self.__dict__.update(fresh.__dict__)
            return
        for name in names:
            setattr(self, name, getattr(fresh, name))

    def summary(self) -> Dict[str, Any]:
        """Краткая сводка для отчёта и логов."""
        return {
            "n_directions": int(len(self.directions)),
            "n_faces": int(self.visibility.shape[1]) if self.visibility.ndim == 2 else 0,
            "n_non_visible": len(self.non_visible_faces),
            "target_directions": list(self.target_directions),
            "n_min_extremes": len(self.min_extremes),
            "n_max_extremes": len(self.max_extremes),
            "fix_extreme_association": self.fix_extreme_association,
            "n_restored_non_visible": len(self.restored_mesh_non_visible_faces),
        }
