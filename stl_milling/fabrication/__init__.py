"""Этапы планирования обработки: крайние грани, направления, назначение, восстановление, компоненты."""

from stl_milling.fabrication.data import FabricationData
from stl_milling.fabrication.extremes import select_extremes_on_x_axis, sort_faces_by_centroid
from stl_milling.fabrication.visibility_check import check_visibility
from stl_milling.fabrication.directions import forced_directions, get_target_directions
from stl_milling.fabrication.association import (
    build_data_cost,
    get_optimized_association,
    pinned_labels,
)
from stl_milling.fabrication.frequencies import (
    check_visibility_after_frequencies_are_restored,
    compute_differential_coordinates,
    is_heightfield_valid,
    restore_frequencies,
)
from stl_milling.fabrication.components import (
    CutResult,
    MillingComponent,
    StockEnvelope,
    cut_components,
    label_components,
    save_components,
    stock_envelope,
)

__all__ = [
    "FabricationData",
    "select_extremes_on_x_axis",
    "sort_faces_by_centroid",
    "check_visibility",
    "forced_directions",
    "get_target_directions",
    "build_data_cost",
    "get_optimized_association",
    "pinned_labels",
    "check_visibility_after_frequencies_are_restored",
    "compute_differential_coordinates",
    "is_heightfield_valid",
    "restore_frequencies",
    "CutResult",
    "MillingComponent",
    "StockEnvelope",
    "cut_components",
    "label_components",
    "save_components",
    "stock_envelope",
]
