"""
Задача о покрытии множествами.

Выбрать минимальное число строк матрицы покрытия (наборов), чтобы каждый
столбец (элемент) был покрыт хотя бы одной выбранной строкой:

    minimize   Σ x_j
    subject to Σ_j coverage[j, f] · x_j >= 1   для всех f
               x_j ∈ {0, 1},  x_j = 1 для принудительных j

Решатели взаимозаменяемы через интерфейс SetCoverSolver.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

import numpy as np
from scipy import sparse
from scipy.optimize import Bounds, LinearConstraint, milp

logger = logging.getLogger(__name__)


class SetCoverError(RuntimeError):
    """Задача о покрытии не решена (недопустима, ошибка или лимит решателя)."""


class SetCoverSolver(ABC):
    """Интерфейс решателя задачи о покрытии."""

    @abstractmethod
    def solve(self, coverage: np.ndarray, forced: Iterable[int] = ()) -> List[int]:
        """Решить задачу.

        Args:
            coverage: (K, F) bool, coverage[j, f] — набор j покрывает элемент f.
            forced: наборы, которые обязаны войти в решение.

        Returns:
            Отсортированный список выбранных наборов.

        Raises:
            SetCoverError: задача не решена.
        """


def _prepare(coverage: np.ndarray, forced: Iterable[int]):
    coverage = np.asarray(coverage, dtype=bool)
    if coverage.ndim != 2:
        raise SetCoverError(f"Матрица покрытия должна быть двумерной, получено {coverage.shape}")
    n_sets = coverage.shape[0]
    forced_list = sorted({int(j) for j in forced})
    for j in forced_list:
        if not 0 <= j < n_sets:
            raise SetCoverError(f"Принудительный набор {j} вне диапазона [0, {n_sets})")

    uncovered = np.flatnonzero(~coverage.any(axis=0))
    if len(uncovered):
        raise SetCoverError(f"{len(uncovered)} элементов не покрываются ни одним набором")
    return coverage, forced_list


def is_cover(coverage: np.ndarray, selected: Iterable[int]) -> bool:
    """Покрывают ли выбранные наборы все элементы."""
    coverage = np.asarray(coverage, dtype=bool)
    rows = list(selected)
    if coverage.shape[1] == 0:
        return True
    if not rows:
        return False
    return bool(coverage[rows].any(axis=0).all())


class MilpSetCoverSolver(SetCoverSolver):
    """Точное решение целочисленным линейным программированием (scipy.optimize.milp).

    Attributes:
        time_limit: лимит времени решателя в секундах (None — без лимита).
    """

    def __init__(self, time_limit: Optional[float] = None):
        self.time_limit = time_limit

    def solve(self, coverage: np.ndarray, forced: Iterable[int] = ()) -> List[int]:
        coverage, forced_list = _prepare(coverage, forced)
        n_sets, n_elements = coverage.shape
        if n_elements == 0:
            return forced_list

        objective = np.ones(n_sets)
        constraint = LinearConstraint(
            sparse.csr_matrix(coverage.T.astype(np.float64)),
            lb=np.ones(n_elements),
            ub=np.full(n_elements, np.inf),
        )
        lower = np.zeros(n_sets)
        lower[forced_list] = 1.0
        bounds = Bounds(lower, np.ones(n_sets))

        options = {}
        if self.time_limit is not None:
            options["time_limit"] = float(self.time_limit)

        try:
            result = milp(
                objective,
                constraints=constraint,
                integrality=np.ones(n_sets),
                bounds=bounds,
                options=options,
            )
        except (ValueError, TypeError) as exc:
            raise SetCoverError(f"Ошибка решателя milp: {exc}") from exc

        if result.status != 0 or result.x is None:
            raise SetCoverError(f"milp не нашёл оптимум (status={result.status}): {result.message}")

        selected = np.flatnonzero(result.x > 0.5).tolist()
        logger.debug("milp: выбрано %d из %d наборов", len(selected), n_sets)
        return selected


class GreedySetCoverSolver(SetCoverSolver):
    """Жадная эвристика: на каждом шаге набор, покрывающий больше всего непокрытых элементов.

    Не гарантирует минимум; при равенстве выбирается набор с меньшим номером.
    """

    def solve(self, coverage: np.ndarray, forced: Iterable[int] = ()) -> List[int]:
        coverage, forced_list = _prepare(coverage, forced)
        selected = set(forced_list)
        uncovered = np.ones(coverage.shape[1], dtype=bool)
        for j in forced_list:
            uncovered &= ~coverage[j]

        while uncovered.any():
            gains = (coverage & uncovered).sum(axis=1)
            best = int(np.argmax(gains))
            selected.add(best)
            uncovered &= ~coverage[best]

        return sorted(selected)


SET_COVER_SOLVERS = {
    "milp": MilpSetCoverSolver,
    "greedy": GreedySetCoverSolver,
}


def make_set_cover_solver(name: str = "milp", time_limit: Optional[float] = None) -> SetCoverSolver:
    """Создать решатель по имени ('milp' или 'greedy'); лимит времени только для milp."""
    try:
        solver_cls = SET_COVER_SOLVERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Неизвестный решатель покрытия {name!r} (допустимы: {', '.join(SET_COVER_SOLVERS)})"
        ) from None
    if solver_cls is MilpSetCoverSolver:
        return MilpSetCoverSolver(time_limit=time_limit)
    return solver_cls()
