"""Ввод-вывод: загрузка/сохранение STL и проверка моделей."""

from stl_milling.io.stl_loader import (
    STLFormat,
    STLLoadError,
    detect_stl_format,
    load_stl,
    load_stl_pair,
    save_stl,
)
from stl_milling.io.validator import (
    ValidationIssue,
    ValidationReport,
    ValidationSeverity,
    signed_volume,
    validate_mesh,
    validate_mesh_pair,
)

__all__ = [
    "STLFormat",
    "STLLoadError",
    "detect_stl_format",
    "load_stl",
    "load_stl_pair",
    "save_stl",
    "ValidationIssue",
    "ValidationReport",
    "ValidationSeverity",
    "signed_volume",
    "validate_mesh",
    "validate_mesh_pair",
]
