"""
Проверка видимости граней с записью результата в FabricationData.
"""

import logging

from stl_milling.fabrication.data import FabricationData
from stl_milling.geometry.mesh import TriangleMesh
from stl_milling.visibility.analyzer import get_visibility
from stl_milling.visibility.base import CheckMode, VisibilityResult

logger = logging.getLogger(__name__)


def check_visibility(
    mesh: TriangleMesh,
    data: FabricationData,
    n_directions: int,
    heightfield_angle: float,
    check_mode=CheckMode.PROJECTION,
) -> VisibilityResult:
    """Вычислить видимость и сохранить её в data.

    При закреплении крайних граней направления ±x не вычисляются: в них
    отмечаются только крайние грани (min_extremes и max_extremes).
    """
    result = get_visibility(
        mesh,
        n_directions,
        heightfield_angle,
        include_x_directions=not data.fix_extreme_association,
        min_extremes=data.min_extremes,
        max_extremes=data.max_extremes,
        check_mode=check_mode,
    )
    data.directions = result.directions
    data.angles = result.angles
    data.visibility = result.visibility
    data.non_visible_faces = list(result.non_visible_faces)
    data.n_directions = n_directions
    return result
