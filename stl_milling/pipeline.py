"""
Пайплайн планирования четырёхосевой фрезеровки.

Этапы выполняются строго по порядку:

    LOADED → ORIENTED → EXTREMES_SELECTED → VISIBILITY_CHECKED →
    DIRECTIONS_SELECTED → ASSIGNED → RESTORED → CUT

Этап можно запустить повторно, но только если предыдущий завершён;
повторный запуск стирает из FabricationData результаты этого этапа и всех
последующих. Вспомогательные константы (stl_milling.config) берутся из
PlannerConfig при создании пайплайна.
"""

import logging
from enum import IntEnum
from typing import Optional

import numpy as np

from stl_milling.fabrication.association import get_optimized_association
from stl_milling.fabrication.components import CutResult, cut_components
from stl_milling.fabrication.data import FabricationData
from stl_milling.fabrication.directions import get_target_directions
from stl_milling.fabrication.extremes import select_extremes_on_x_axis
from stl_milling.fabrication.frequencies import (
    check_visibility_after_frequencies_are_restored,
    restore_frequencies,
)
from stl_milling.fabrication.visibility_check import check_visibility
from stl_milling.geometry.mesh import TriangleMesh, check_paired_meshes
from stl_milling.logging_config import LogContext, log_timing
from stl_milling.optimization.multilabel import AlphaBetaSwapSolver, MultiLabelSolver
from stl_milling.optimization.set_cover import SetCoverSolver, make_set_cover_solver
from stl_milling.orientation.optimal import rotate_to_optimal_orientation
from stl_milling.project_config import PlannerConfig, apply_config_to_globals
from stl_milling.visibility.base import CheckMode

logger = logging.getLogger(__name__)


class PipelineStage(IntEnum):
    LOADED = 0
    ORIENTED = 1
    EXTREMES_SELECTED = 2
    VISIBILITY_CHECKED = 3
    DIRECTIONS_SELECTED = 4
    ASSIGNED = 5
    RESTORED = 6
    CUT = 7


class PipelineStateError(RuntimeError):
    """Этап запущен раньше, чем завершён предыдущий."""


# Поля FabricationData, заполняемые каждым этапом
_STAGE_RESULTS = {
    PipelineStage.EXTREMES_SELECTED: ("min_extremes", "max_extremes"),
    PipelineStage.VISIBILITY_CHECKED: ("directions", "angles", "visibility", "non_visible_faces", "n_directions"),
    PipelineStage.DIRECTIONS_SELECTED: ("target_directions",),
    PipelineStage.ASSIGNED: ("association",),
    PipelineStage.RESTORED: (
        "restored_mesh", "restored_mesh_association",
        "restored_mesh_visibility", "restored_mesh_non_visible_faces",
    ),
    PipelineStage.CUT: ("cut",),
}


class FourAxisPipeline:
    """Пошаговое выполнение планирования над парой сеток.

    Обе сетки изменяются на месте (поворот и центрирование). Результаты
    этапов накапливаются в self.data.

    Example:
        pipeline = FourAxisPipeline(original, smoothed, PlannerConfig())
        data = pipeline.run_all()
    """

    def __init__(
        self,
        mesh: TriangleMesh,
        smoothed_mesh: TriangleMesh,
        config: Optional[PlannerConfig] = None,
        set_cover_solver: Optional[SetCoverSolver] = None,
        multilabel_solver: Optional[MultiLabelSolver] = None,
        limit_angle: Optional[float] = None,
    ):
        check_paired_meshes(mesh, smoothed_mesh)
        self.mesh = mesh
        self.smoothed_mesh = smoothed_mesh
        self.config = config or PlannerConfig()
        apply_config_to_globals(self.config)
        self.set_cover_solver = set_cover_solver or make_set_cover_solver(
            self.config.directions.solver, self.config.directions.time_limit,
        )
        self.multilabel_solver = multilabel_solver or AlphaBetaSwapSolver(
            max_cycles=self.config.assignment.max_cycles,
        )
        self.data = FabricationData()
        self.data.fix_extreme_association = bool(self.config.assignment.fix_extreme_association)
        self.check_mode = CheckMode.parse(self.config.visibility.check_mode)
        self.rotation: np.ndarray = np.eye(3)
        self.newly_non_machinable: Optional[int] = None
        self.stage = PipelineStage.LOADED
        if limit_angle is None:
            limit_angle = np.radians(self.config.visibility.limit_angle_deg)
        # предельный угол карты высот, радианы
        self.limit_angle = float(limit_angle)

    def _require(self, stage: PipelineStage) -> None:
        if self.stage < stage:
            raise PipelineStateError(
                f"Этап требует завершения {stage.name}, текущее состояние {self.stage.name}"
            )

    def _rewind(self, stage: PipelineStage) -> None:
        """Отменить этап `stage` и все последующие."""
        discarded = [s for s in PipelineStage if stage <= s <= self.stage]
        for done in discarded:
            if done in _STAGE_RESULTS:
                self.data.clear(*_STAGE_RESULTS[done])
        if PipelineStage.RESTORED in discarded:
            self.newly_non_machinable = None
        self.stage = PipelineStage(stage - 1)
        logger.debug("Отменены этапы: %s", ", ".join(s.name for s in discarded))

    def _run(self, stage: PipelineStage, operation: str, func):
        self._require(PipelineStage(stage - 1))
        if self.stage >= stage:
            self._rewind(stage)
        with LogContext(stage=stage.name.lower()):
            with log_timing(logger, operation, level=logging.INFO):
                result = func()
        self.stage = stage
        return result

    # ------------------------------------------------------------------
    # Этапы
    # ------------------------------------------------------------------

    def orient(self) -> np.ndarray:
        """Повернуть обе сетки в оптимальную ориентацию."""
        cfg = self.config.orientation

        def step():
            self.rotation = rotate_to_optimal_orientation(
                self.mesh, self.smoothed_mesh,
                cfg.n_orientations, cfg.deterministic, cfg.seed,
            )
            return self.rotation

        return self._run(PipelineStage.ORIENTED, "Optimal orientation", step)

    def select_extremes(self):
        def step():
            self.data.min_extremes, self.data.max_extremes = select_extremes_on_x_axis(self.smoothed_mesh)
            return self.data.min_extremes, self.data.max_extremes

        return self._run(PipelineStage.EXTREMES_SELECTED, "Extreme faces", step)

    def check_visibility(self):
        cfg = self.config.visibility
        return self._run(
            PipelineStage.VISIBILITY_CHECKED, "Visibility",
            lambda: check_visibility(
                self.smoothed_mesh, self.data, cfg.n_directions, self.limit_angle, self.check_mode,
            ),
        )

    def select_directions(self):
        return self._run(
            PipelineStage.DIRECTIONS_SELECTED, "Target directions",
            lambda: get_target_directions(
                self.data, self.config.directions.set_coverage, self.set_cover_solver,
            ),
        )

    def assign(self) -> np.ndarray:
        return self._run(
            PipelineStage.ASSIGNED, "Face association",
            lambda: get_optimized_association(
                self.smoothed_mesh, self.data,
                self.config.assignment.compactness, self.multilabel_solver,
            ),
        )

    def restore(self) -> TriangleMesh:
        return self._run(
            PipelineStage.RESTORED, "Frequency restoration",
            lambda: restore_frequencies(
                self.config.restoration.iterations, self.limit_angle,
                self.mesh, self.smoothed_mesh, self.data,
            ),
        )

    def cut(self) -> CutResult:
        return self._run(
            PipelineStage.CUT, "Components",
            lambda: cut_components(self.data.restored_mesh, self.data),
        )

    def recheck_visibility(self) -> int:
        """Повторная проверка видимости после восстановления (стадию не меняет)."""
        self._require(PipelineStage.RESTORED)
        with LogContext(stage="recheck"):
            with log_timing(logger, "Visibility recheck", level=logging.INFO):
                self.newly_non_machinable = check_visibility_after_frequencies_are_restored(
                    self.data, self.limit_angle, self.check_mode,
                )
        return self.newly_non_machinable

    def run_all(self) -> FabricationData:
        """Выполнить все этапы от ориентации до разбиения."""
        self.orient()
        self.select_extremes()
        self.check_visibility()
        self.select_directions()
        self.assign()
        self.restore()
        self.cut()
        return self.data


def compute_entire_algorithm(
    mesh: TriangleMesh,
    smoothed_mesh: TriangleMesh,
    n_orientations: int,
    deterministic: bool,
    n_directions: int,
    fix_extreme_association: bool,
    set_coverage: bool,
    compactness: float,
    limit_angle: float,
    frequencies_iterations: int,
    check_mode=CheckMode.PROJECTION,
    set_cover_solver: Optional[SetCoverSolver] = None,
    multilabel_solver: Optional[MultiLabelSolver] = None,
    seed: Optional[int] = None,
) -> FabricationData:
    """Выполнить весь алгоритм с явными параметрами.

    Остальные настройки, включая константы stl_milling.config, берутся
    из PlannerConfig по умолчанию.

    Args:
        mesh: исходная (детальная) сетка; изменяется на месте.
        smoothed_mesh: сглаженная сетка с той же топологией; изменяется на месте.
        n_orientations: число кандидатных ориентаций.
        deterministic: детерминированный перебор ориентаций.
        n_directions: число вращательных направлений.
        fix_extreme_association: закрепить крайние грани за ±x.
        set_coverage: минимизировать набор направлений.
        compactness: штраф за соседние грани с разными направлениями.
        limit_angle: предельный угол карты высот, радианы.
        frequencies_iterations: число проходов восстановления.
        check_mode: способ проверки видимости.
        set_cover_solver, multilabel_solver: решатели (по умолчанию milp и α-β swap).
        seed: зерно для случайного перебора ориентаций.

    Returns:
        FabricationData со всеми результатами.
    """
    config = PlannerConfig()
    config.orientation.n_orientations = n_orientations
    config.orientation.deterministic = deterministic
    config.orientation.seed = seed
    config.visibility.n_directions = n_directions
    config.visibility.limit_angle_deg = float(np.degrees(limit_angle))
    config.visibility.check_mode = CheckMode.parse(check_mode).value
    config.directions.set_coverage = set_coverage
    config.assignment.compactness = compactness
    config.assignment.fix_extreme_association = fix_extreme_association
    config.restoration.iterations = frequencies_iterations

    pipeline = FourAxisPipeline(
        mesh, smoothed_mesh, config,
        set_cover_solver=set_cover_solver,
        multilabel_solver=multilabel_solver,
        limit_angle=limit_angle,
    )
    return pipeline.run_all()
