"""Оптимизационные решатели: покрытие множествами и многометочная разметка."""

from stl_milling.optimization.set_cover import (
    SetCoverError,
    SetCoverSolver,
    MilpSetCoverSolver,
    GreedySetCoverSolver,
    is_cover,
    make_set_cover_solver,
)
from stl_milling.optimization.multilabel import (
    SolverError,
    MultiLabelSolver,
    AlphaBetaSwapSolver,
    labeling_energy,
)

__all__ = [
    "SetCoverError",
    "SetCoverSolver",
    "MilpSetCoverSolver",
    "GreedySetCoverSolver",
    "is_cover",
    "make_set_cover_solver",
    "SolverError",
    "MultiLabelSolver",
    "AlphaBetaSwapSolver",
    "labeling_energy",
]
