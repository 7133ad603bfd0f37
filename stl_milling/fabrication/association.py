"""
Назначение граням направлений фрезеровки.

Грани — узлы графа, соседство по общему ребру — рёбра графа. Стоимость
метки: 0, если грань видна из направления, иначе NOT_VISIBLE_COST.
Штраф compactness за каждое ребро между гранями с разными метками
делает области компактными.
"""

import logging
from typing import Dict, Optional

import numpy as np

from stl_milling import config
from stl_milling.fabrication.data import FabricationData
from stl_milling.geometry.mesh import TriangleMesh
from stl_milling.optimization.multilabel import (
    AlphaBetaSwapSolver,
    MultiLabelSolver,
    SolverError,
)
from stl_milling.topology.adjacency import MeshAdjacency

logger = logging.getLogger(__name__)


def build_data_cost(data: FabricationData) -> np.ndarray:
    """(M, L) стоимость назначения грани каждому выбранному направлению."""
    survived = np.asarray(data.target_directions, dtype=np.int64)
    visible = data.visibility[survived].T
    return np.where(visible, 0.0, config.NOT_VISIBLE_COST)


def pinned_labels(data: FabricationData) -> Dict[int, int]:
    """Закреплённые грани: номер грани -> метка (-x раньше, +x поверх)."""
    if not data.fix_extreme_association:
        return {}
    position = {direction: label for label, direction in enumerate(data.target_directions)}
    pins: Dict[int, int] = {}
    if data.min_index in position:
        for f in data.min_extremes:
            pins[int(f)] = position[data.min_index]
    if data.max_index in position:
        for f in data.max_extremes:
            pins[int(f)] = position[data.max_index]
    return pins


def get_optimized_association(
    mesh: TriangleMesh,
    data: FabricationData,
    compactness: float,
    solver: Optional[MultiLabelSolver] = None,
) -> np.ndarray:
    """Назначить каждой грани одно из выбранных направлений.

    Args:
        mesh: рабочая сетка (та же, на которой считалась видимость).
        data: результаты видимости и выбора направлений.
        compactness: штраф за соседей с разными направлениями.
        solver: решатель (по умолчанию AlphaBetaSwapSolver).

    Returns:
        (M,) глобальные номера направлений; также сохраняется в data.association.

    Raises:
        ValueError: направления не выбраны или сетка не совпадает с видимостью.
        SolverError: сбой решателя.
    """
    if not data.target_directions:
        raise ValueError("Направления не выбраны")
    if data.visibility.shape[1] != mesh.n_faces:
        raise ValueError(
            f"Видимость вычислена для {data.visibility.shape[1]} граней, "
            f"в сетке {mesh.n_faces}"
        )

    edges = MeshAdjacency.from_mesh(mesh).face_edges()
    data_cost = build_data_cost(data)

    pins = pinned_labels(data)
    for f, label in pins.items():
        data_cost[f, :] = config.PINNED_COST
        data_cost[f, label] = 0.0

    if solver is None:
        solver = AlphaBetaSwapSolver()

    try:
        labels = solver.solve(data_cost, edges, compactness)
    except SolverError:
        raise
    except Exception as exc:
        raise SolverError(f"Сбой решателя назначения: {exc}") from exc

    labels = np.asarray(labels, dtype=np.int64).copy()
    for f, label in pins.items():
        labels[f] = label

    association = np.asarray(data.target_directions, dtype=np.int64)[labels]
    data.association = association

    unreachable = int(np.count_nonzero(~data.visibility[association, np.arange(mesh.n_faces)]))
    if unreachable:
        logger.warning("Граней, назначенных невидимому направлению: %d", unreachable)
    logger.info(
        "Назначение: %d граней, %d рёбер, compactness=%g, закреплено %d",
        mesh.n_faces, len(edges), compactness, len(pins),
    )
    return association
