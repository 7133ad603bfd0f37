"""Анализ видимости граней: лучи, проекции, растеризация."""

from stl_milling.visibility.base import (
    CheckMode,
    VisibilityResult,
    VisibilityStrategy,
    detect_non_visible_faces,
    heightfield_masks,
)
from stl_milling.visibility.ray_shooting import RayShootingStrategy
from stl_milling.visibility.projection import ProjectionStrategy
from stl_milling.visibility.render import RenderStrategy
from stl_milling.visibility.analyzer import direction_count, get_strategy, get_visibility

__all__ = [
    "CheckMode",
    "VisibilityResult",
    "VisibilityStrategy",
    "detect_non_visible_faces",
    "heightfield_masks",
    "RayShootingStrategy",
    "ProjectionStrategy",
    "RenderStrategy",
    "direction_count",
    "get_strategy",
    "get_visibility",
]
