"""
Многометочная минимизация энергии на графе.

    E(l) = Σ_p D[p, l_p] + λ · |{(p, q) ∈ edges : l_p ≠ l_q}|

Энергия с потенциалом Поттса минимизируется перестановками α-β
(alpha-beta swap): для каждой пары меток узлы с метками α или β
перераспределяются между ними оптимально, через минимальный s-t разрез
(networkx). Ход принимается, только если энергия строго уменьшилась;
работа завершается после цикла по всем парам без улучшений.
"""

import logging
from abc import ABC, abstractmethod
from itertools import combinations
from typing import Optional

import networkx as nx
import numpy as np
from networkx.algorithms.flow import boykov_kolmogorov

from stl_milling import config

logger = logging.getLogger(__name__)

_SOURCE = "source"
_SINK = "sink"


class SolverError(RuntimeError):
    """Сбой решателя многометочной задачи."""


class MultiLabelSolver(ABC):
    """Интерфейс решателя многометочной задачи."""

    @abstractmethod
    def solve(
        self,
        data_cost: np.ndarray,
        edges: np.ndarray,
        smooth_cost: float,
        initial_labels: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Найти разметку с малой энергией.

        Args:
            data_cost: (S, L) стоимость метки l для узла p.
            edges: (E, 2) пары соседних узлов.
            smooth_cost: штраф λ за разные метки соседей (потенциал Поттса).
            initial_labels: начальная разметка (S,); по умолчанию argmin data_cost.

        Returns:
            (S,) int — метка каждого узла.

        Raises:
            SolverError: некорректные входные данные или сбой решателя.
        """


def labeling_energy(
    data_cost: np.ndarray,
    edges: np.ndarray,
    smooth_cost: float,
    labels: np.ndarray,
) -> float:
    """Энергия разметки: сумма стоимостей меток + λ · число разрезанных рёбер."""
    data_term = float(data_cost[np.arange(len(labels)), labels].sum())
    if len(edges) == 0:
        return data_term
    cut = int(np.count_nonzero(labels[edges[:, 0]] != labels[edges[:, 1]]))
    return data_term + float(smooth_cost) * cut


def _check_inputs(data_cost, edges, smooth_cost, initial_labels):
    data_cost = np.asarray(data_cost, dtype=np.float64)
    if data_cost.ndim != 2 or data_cost.shape[1] == 0:
        raise SolverError(f"data_cost должен иметь форму (S, L) с L >= 1, получено {data_cost.shape}")
    if not np.all(np.isfinite(data_cost)):
        raise SolverError("data_cost содержит нечисловые значения")
    if smooth_cost < 0:
        raise SolverError(f"Штраф сглаживания должен быть неотрицательным, получено {smooth_cost}")

    edges = np.asarray(edges, dtype=np.int64).reshape(-1, 2)
    n_sites = data_cost.shape[0]
    if len(edges) and (edges.min() < 0 or edges.max() >= n_sites):
        raise SolverError("Рёбра ссылаются на несуществующие узлы")

    if initial_labels is None:
        labels = np.argmin(data_cost, axis=1).astype(np.int64)
    else:
        labels = np.asarray(initial_labels, dtype=np.int64).copy()
        if labels.shape != (n_sites,):
            raise SolverError(f"Начальная разметка должна иметь форму ({n_sites},)")
        if len(labels) and (labels.min() < 0 or labels.max() >= data_cost.shape[1]):
            raise SolverError("Начальная разметка содержит несуществующие метки")
    return data_cost, edges, labels


class AlphaBetaSwapSolver(MultiLabelSolver):
    """Перестановки α-β с точным решением каждого хода минимальным разрезом.

    Детерминирован: пары меток перебираются в фиксированном порядке.

    Attributes:
        max_cycles: предельное число циклов по всем парам (None — до сходимости).
        capacity_scale: множитель перевода стоимостей в целые пропускные способности.
    """

    def __init__(self, max_cycles: Optional[int] = None, capacity_scale: Optional[int] = None):
        self.max_cycles = max_cycles
        self.capacity_scale = int(capacity_scale or config.CAPACITY_SCALE)

    def solve(
        self,
        data_cost: np.ndarray,
        edges: np.ndarray,
        smooth_cost: float,
        initial_labels: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        data_cost, edges, labels = _check_inputs(data_cost, edges, smooth_cost, initial_labels)
        n_labels = data_cost.shape[1]
        if n_labels == 1 or len(labels) == 0:
            return labels

        neighbors = self._neighbor_lists(len(labels), edges)
        energy = labeling_energy(data_cost, edges, smooth_cost, labels)
        logger.debug("Начальная энергия: %.6g", energy)

        cycle = 0
        while True:
            improved = False
            for alpha, beta in combinations(range(n_labels), 2):
                try:
                    candidate = self._swap_move(data_cost, neighbors, smooth_cost, labels, alpha, beta)
                except nx.NetworkXException as exc:
                    raise SolverError(f"Ошибка минимального разреза ({alpha}, {beta}): {exc}") from exc
                if candidate is None:
                    continue
                candidate_energy = labeling_energy(data_cost, edges, smooth_cost, candidate)
                if candidate_energy < energy - 1e-9 * max(1.0, abs(energy)):
                    labels, energy = candidate, candidate_energy
                    improved = True

            cycle += 1
            logger.debug("Цикл %d: энергия %.6g", cycle, energy)
            if not improved:
                break
            if self.max_cycles is not None and cycle >= self.max_cycles:
                logger.info("Достигнут предел циклов (%d)", self.max_cycles)
                break

        return labels

    @staticmethod
    def _neighbor_lists(n_sites: int, edges: np.ndarray):
        neighbors = [[] for _ in range(n_sites)]
        for p, q in edges:
            if p == q:
                continue
            neighbors[p].append(int(q))
            neighbors[q].append(int(p))
        return neighbors

    def _swap_move(
        self,
        data_cost: np.ndarray,
        neighbors,
        smooth_cost: float,
        labels: np.ndarray,
        alpha: int,
        beta: int,
    ) -> Optional[np.ndarray]:
        """Оптимальная перестановка меток α и β.

        Узел на стороне истока получает α, на стороне стока — β.
        Ребро source→p разрезается, если p получает β (стоимость β),
        ребро p→sink — если p получает α (стоимость α).

        Returns:
            Новая разметка или None, если узлов с метками α/β нет.
        """
        sites = np.flatnonzero((labels == alpha) | (labels == beta))
        if len(sites) == 0:
            return None

        scale = self.capacity_scale
        in_move = np.zeros(len(labels), dtype=bool)
        in_move[sites] = True

        graph = nx.DiGraph()
        graph.add_node(_SOURCE)
        graph.add_node(_SINK)

        pairwise = int(round(smooth_cost * scale))
        for p in sites:
            p = int(p)
            cost_alpha = data_cost[p, alpha]
            cost_beta = data_cost[p, beta]
            # Соседи вне хода фиксированы: их вклад переносится в t-рёбра
            for q in neighbors[p]:
                if not in_move[q]:
                    if labels[q] != alpha:
                        cost_alpha += smooth_cost
                    if labels[q] != beta:
                        cost_beta += smooth_cost

            base = min(cost_alpha, cost_beta)
            graph.add_edge(_SOURCE, p, capacity=int(round((cost_beta - base) * scale)))
            graph.add_edge(p, _SINK, capacity=int(round((cost_alpha - base) * scale)))

            for q in neighbors[p]:
                if in_move[q] and q > p and pairwise > 0:
                    graph.add_edge(p, q, capacity=pairwise)
                    graph.add_edge(q, p, capacity=pairwise)

        _, (source_side, _) = nx.minimum_cut(
            graph, _SOURCE, _SINK, capacity="capacity", flow_func=boykov_kolmogorov,
        )

        candidate = labels.copy()
        for p in sites:
            candidate[p] = alpha if int(p) in source_side else beta
        return candidate
