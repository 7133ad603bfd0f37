"""
Загрузка и сохранение STL-файлов.

Поддерживает:
- Бинарный и ASCII формат STL (автодетекция)
- Загрузку пары моделей (исходная + сглаженная) с общей топологией
- Сохранение TriangleMesh в бинарный STL

Вершины объединяются по координатам, округлённым до 6 знаков,
в порядке первого появления.
"""

import logging
import os
from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np
from stl import mesh

from stl_milling.geometry.mesh import MeshMismatchError, TriangleMesh

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class STLFormat(Enum):
    """STL file format type."""
    BINARY = "binary"
    ASCII = "ascii"
    UNKNOWN = "unknown"


class STLLoadError(Exception):
    """Ошибка при загрузке или разборе STL-файла."""


def detect_stl_format(filepath: PathLike) -> Tuple[STLFormat, Optional[str]]:
    """Определить формат STL-файла (бинарный или ASCII).

    ASCII-файл начинается с ключевого слова 'solid' и содержит 'facet'
    или 'endsolid' в первом килобайте; всё остальное считается бинарным.

    Returns:
        (format, solid_name или None)

    Raises:
        STLLoadError: если файл не удаётся прочитать.
    """
    try:
        with open(filepath, 'rb') as f:
            head = f.read(1024)
    except FileNotFoundError:
        raise STLLoadError(f"Файл не найден: {str(filepath)!r}")
    except OSError as exc:
        raise STLLoadError(f"Не удалось прочитать файл {str(filepath)!r}: {exc}") from exc

    if not head:
        return STLFormat.UNKNOWN, None

    text = head.decode('ascii', errors='replace')
    stripped = text.lstrip()
    if stripped.lower().startswith('solid'):
        lowered = stripped.lower()
        if 'facet' in lowered or 'endsolid' in lowered or len(head) < 84:
            first_line = stripped.splitlines()[0] if stripped else ''
            return STLFormat.ASCII, first_line[5:].strip() or None

    if len(head) < 84:
        return STLFormat.UNKNOWN, None
    return STLFormat.BINARY, None


def _read_triangles(filepath: PathLike) -> np.ndarray:
    """Прочитать углы треугольников (M, 3, 3) через numpy-stl."""
    stl_format, solid_name = detect_stl_format(filepath)
    if stl_format is STLFormat.UNKNOWN:
        raise STLLoadError(f"Файл {str(filepath)!r} не похож на STL.")
    file_size = os.path.getsize(filepath)

    logger.info("Загрузка STL: %s (формат: %s, размер: %.1f KB)",
                filepath, stl_format.value, file_size / 1024)
    if solid_name:
        logger.debug("Solid name: %s", solid_name)

    try:
        stl_mesh = mesh.Mesh.from_file(str(filepath))
    except FileNotFoundError:
        raise STLLoadError(f"Файл не найден: {str(filepath)!r}")
    except Exception as exc:
        raise STLLoadError(f"Не удалось прочитать STL-файл {str(filepath)!r}: {exc}") from exc

    if len(stl_mesh.vectors) == 0:
        raise STLLoadError(f"STL-файл {str(filepath)!r} не содержит треугольников.")

    return np.asarray(stl_mesh.vectors, dtype=np.float64)


def weld_corners(corners: np.ndarray, decimals: int = 6) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Объединить совпадающие углы треугольников.

    Args:
        corners: углы треугольников (M, 3, 3).
        decimals: число знаков округления координат.

    Returns:
        vertices: уникальные вершины (N, 3) в порядке первого появления.
        faces: индексы вершин (M, 3), int32.
        first_corner: номер первого угла (в развёрнутом массиве M*3) для каждой вершины.
    """
    flat = corners.reshape(-1, 3)
    keys = np.round(flat, decimals)
    # +0.0 убирает отрицательный ноль, иначе -0.0 и 0.0 дают разные ключи
    keys = keys + 0.0
    _, first_index, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)

    # Перенумерация в порядке первого появления
    order = np.argsort(first_index, kind='stable')
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))

    first_corner = first_index[order]
    vertices = keys[first_corner]
    faces = rank[inverse].reshape(-1, 3).astype(np.int32)
    return vertices, faces, first_corner


def load_stl(filepath: PathLike) -> TriangleMesh:
    """Загрузить STL-файл в TriangleMesh с объединёнными вершинами.

    Raises:
        STLLoadError: если файл не найден, повреждён или содержит 0 треугольников.
    """
    corners = _read_triangles(filepath)
    vertices, faces, _ = weld_corners(corners)

    logger.info(
        "Загружено: %d уникальных вершин, %d граней.",
        len(vertices),
        len(faces),
    )
    return TriangleMesh(vertices, faces)


def load_stl_pair(original_path: PathLike, smoothed_path: PathLike) -> Tuple[TriangleMesh, TriangleMesh]:
    """Загрузить исходную и сглаженную модели с общей топологией.

    Топология (объединение вершин) строится по исходной модели и
    переносится на сглаженную, поэтому обе модели совпадают по числу
    и нумерации вершин и граней.

    Raises:
        STLLoadError: ошибка чтения любого из файлов.
        MeshMismatchError: разное число треугольников.
    """
    original_corners = _read_triangles(original_path)
    smoothed_corners = _read_triangles(smoothed_path)

    if original_corners.shape != smoothed_corners.shape:
        raise MeshMismatchError(
            f"Модели содержат разное число треугольников: "
            f"{len(original_corners)} и {len(smoothed_corners)}"
        )

    vertices, faces, first_corner = weld_corners(original_corners)
    smoothed_flat = smoothed_corners.reshape(-1, 3)
    smoothed_vertices = smoothed_flat[first_corner]

    # Углы, объединённые в исходной модели, должны совпадать и в сглаженной
    spread = np.abs(smoothed_flat - smoothed_vertices[faces.reshape(-1)]).max()
    if spread > 1e-4:
        logger.warning(
            "Сглаженная модель расходится с топологией исходной (до %.3g)", spread,
        )

    logger.info(
        "Загружена пара моделей: %d вершин, %d граней.", len(vertices), len(faces),
    )
    return TriangleMesh(vertices, faces), TriangleMesh(smoothed_vertices, faces)


def save_stl(triangle_mesh: TriangleMesh, filepath: PathLike) -> None:
    """Сохранить сетку в бинарный STL (нормали пересчитываются numpy-stl)."""
    stl_mesh = mesh.Mesh(np.zeros(triangle_mesh.n_faces, dtype=mesh.Mesh.dtype))
    if triangle_mesh.n_faces:
        stl_mesh.vectors[:] = triangle_mesh.face_vertices()
    stl_mesh.save(str(filepath))
    logger.debug("Сохранено: %s (%d граней)", filepath, triangle_mesh.n_faces)
