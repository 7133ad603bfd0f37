"""
Выбор минимального набора направлений фрезеровки.

Каждая видимая хотя бы откуда-то грань должна быть видна хотя бы из одного
выбранного направления. Невидимые грани в задачу не входят.
"""

import logging
from typing import List, Optional

import numpy as np

from stl_milling.fabrication.data import FabricationData
from stl_milling.optimization.set_cover import (
    MilpSetCoverSolver,
    SetCoverError,
    SetCoverSolver,
)

logger = logging.getLogger(__name__)


def forced_directions(data: FabricationData) -> List[int]:
    """Направления, обязательные при закреплении крайних граней."""
    if not data.fix_extreme_association:
        return []
    forced = []
    if data.min_extremes:
        forced.append(data.min_index)
    if data.max_extremes:
        forced.append(data.max_index)
    return forced


def get_target_directions(
    data: FabricationData,
    set_coverage: bool = True,
    solver: Optional[SetCoverSolver] = None,
) -> List[int]:
    """Выбрать направления и записать их в data.target_directions.

    Args:
        data: результаты проверки видимости.
        set_coverage: False — оставить все направления.
        solver: решатель покрытия (по умолчанию MilpSetCoverSolver).

    Returns:
        Отсортированный список глобальных номеров направлений.
    """
    n_directions = len(data.directions)
    if n_directions == 0:
        raise ValueError("Видимость не вычислена: нет направлений")

    all_directions = list(range(n_directions))
    if not set_coverage:
        data.target_directions = all_directions
        logger.info("Покрытие отключено: сохранены все %d направлений", n_directions)
        return data.target_directions

    visible = np.ones(data.visibility.shape[1], dtype=bool)
    visible[np.asarray(data.non_visible_faces, dtype=np.int64)] = False
    coverage = data.visibility[:, visible]

    if solver is None:
        solver = MilpSetCoverSolver()

    try:
        survived = solver.solve(coverage, forced=forced_directions(data))
    except SetCoverError as exc:
        logger.warning("Задача покрытия не решена (%s); используются все направления", exc)
        survived = all_directions

    if not survived and data.visibility.shape[1] > 0:
        # все грани невидимы: назначать их всё равно куда-то нужно
        logger.warning("Нет граней для покрытия; используются все направления")
        survived = all_directions

    data.target_directions = sorted(int(j) for j in survived)
    logger.info(
        "Выбрано направлений: %d из %d: %s",
        len(data.target_directions), n_directions, data.target_directions,
    )
    return data.target_directions
