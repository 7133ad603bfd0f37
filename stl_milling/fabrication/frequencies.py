"""
Восстановление мелких деталей (высоких частот) на сглаженной сетке.

Дифференциальные координаты исходной сетки δ_v = v - mean(соседей v)
переносятся на сглаженную: вершина стремится в δ_v + mean(текущих соседей).
Перемещение допустимо, только если все инцидентные грани остаются
картой высот относительно назначенных им направлений. Недопустимая цель
сдвигается к текущей точке делением пополам, не более
BINARY_SEARCH_ITERATIONS раз.

Внутри прохода все вершины читают позиции до прохода, а принятые
перемещения применяются вместе в конце прохода.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import numpy as np

from stl_milling import config
from stl_milling.fabrication.data import FabricationData
from stl_milling.geometry.mesh import TriangleMesh, check_paired_meshes, compute_face_normals
from stl_milling.topology.adjacency import MeshAdjacency
from stl_milling.visibility.analyzer import get_visibility
from stl_milling.visibility.base import CheckMode

logger = logging.getLogger(__name__)


def compute_differential_coordinates(
    vertices: np.ndarray,
    vertex_vertices: Sequence[Sequence[int]],
) -> np.ndarray:
    """(N, 3) дифференциальные координаты; у изолированных вершин — ноль."""
    differential = np.zeros_like(vertices, dtype=np.float64)
    for v, neighbors in enumerate(vertex_vertices):
        if len(neighbors):
            differential[v] = vertices[v] - vertices[list(neighbors)].mean(axis=0)
    return differential


def is_heightfield_valid(
    vertices: np.ndarray,
    faces: np.ndarray,
    vertex: int,
    position: np.ndarray,
    incident_faces: Sequence[int],
    face_directions: np.ndarray,
    heightfield_limit: float,
) -> bool:
    """Остаются ли инцидентные грани картой высот, если переместить вершину.

    Args:
        vertices: позиции вершин до прохода.
        faces: (M, 3) грани.
        vertex: перемещаемая вершина.
        position: новая позиция вершины.
        incident_faces: грани, содержащие вершину.
        face_directions: (M, 3) назначенное направление каждой грани.
        heightfield_limit: cos предельного угла.
    """
    if len(incident_faces) == 0:
        return True
    incident = np.asarray(incident_faces, dtype=np.int64)
    local_faces = faces[incident]
    corners = vertices[local_faces]
    corners[local_faces == vertex] = position

    normals = compute_face_normals(
        corners.reshape(-1, 3), np.arange(3 * len(incident)).reshape(-1, 3),
    )
    dots = np.einsum("ij,ij->i", normals, face_directions[incident])
    return bool(np.all(dots >= heightfield_limit))


def _restoration_target(
    vertex: int,
    vertices: np.ndarray,
    faces: np.ndarray,
    differential: np.ndarray,
    adjacency: MeshAdjacency,
    face_directions: np.ndarray,
    heightfield_limit: float,
    max_halvings: int,
) -> Optional[np.ndarray]:
    """Новая позиция вершины или None, если допустимая не найдена."""
    neighbors = adjacency.vertex_vertices[vertex]
    if not neighbors:
        return None

    current = vertices[vertex]
    target = differential[vertex] + vertices[neighbors].mean(axis=0)
    incident = adjacency.vertex_faces[vertex]

    count = 0
    while count < max_halvings and not is_heightfield_valid(
        vertices, faces, vertex, target, incident, face_directions, heightfield_limit,
    ):
        target = 0.5 * (target + current)
        count += 1

    if count < max_halvings:
        return target
    return None


def _restoration_sweep(
    vertices: np.ndarray,
    faces: np.ndarray,
    differential: np.ndarray,
    adjacency: MeshAdjacency,
    face_directions: np.ndarray,
    heightfield_limit: float,
    executor: ThreadPoolExecutor,
):
    max_halvings = config.BINARY_SEARCH_ITERATIONS

    def process(vertex: int) -> Optional[np.ndarray]:
        return _restoration_target(
            vertex, vertices, faces, differential, adjacency,
            face_directions, heightfield_limit, max_halvings,
        )

    targets: List[Optional[np.ndarray]] = list(executor.map(process, range(len(vertices))))

    updated = vertices.copy()
    moved = 0
    for vertex, target in enumerate(targets):
        if target is not None:
            updated[vertex] = target
            moved += 1
    return updated, moved, len(targets) - moved


def restore_frequencies(
    iterations: int,
    heightfield_angle: float,
    original_mesh: TriangleMesh,
    smoothed_mesh: TriangleMesh,
    data: FabricationData,
) -> TriangleMesh:
    """Перенести детали исходной сетки на сглаженную.

    Args:
        iterations: число проходов по всем вершинам.
        heightfield_angle: предельный угол карты высот, радианы.
        original_mesh: исходная (детальная) сетка в той же ориентации.
        smoothed_mesh: сглаженная рабочая сетка.
        data: результаты назначения направлений.

    Returns:
        Восстановленная сетка (также data.restored_mesh).

    Raises:
        MeshMismatchError: сетки не совпадают по топологии.
        ValueError: назначение не покрывает все грани.
    """
    check_paired_meshes(original_mesh, smoothed_mesh)
    if len(data.association) != smoothed_mesh.n_faces:
        raise ValueError(
            f"Назначение задано для {len(data.association)} граней, "
            f"в сетке {smoothed_mesh.n_faces}"
        )

    adjacency = MeshAdjacency.from_mesh(original_mesh)
    differential = compute_differential_coordinates(original_mesh.vertices, adjacency.vertex_vertices)
    face_directions = data.directions[data.association]
    heightfield_limit = float(np.cos(heightfield_angle))

    restored = smoothed_mesh.copy()
    faces = restored.faces
    vertices = restored.vertices

    with ThreadPoolExecutor(max_workers=config.RESTORATION_WORKERS) as executor:
        for iteration in range(iterations):
            vertices, moved, rejected = _restoration_sweep(
                vertices, faces, differential, adjacency,
                face_directions, heightfield_limit, executor,
            )
            logger.debug(
                "Проход %d/%d: перемещено %d, отклонено %d",
                iteration + 1, iterations, moved, rejected,
            )

    restored.vertices = vertices
    data.restored_mesh = restored
    data.restored_mesh_association = data.association.copy()
    data.restored_mesh_visibility = data.visibility.copy()
    data.restored_mesh_non_visible_faces = list(data.non_visible_faces)

    logger.info("Восстановление деталей: %d проходов, %d вершин", iterations, restored.n_vertices)
    return restored


def check_visibility_after_frequencies_are_restored(
    data: FabricationData,
    heightfield_angle: float,
    check_mode=CheckMode.PROJECTION,
) -> int:
    """Повторная проверка видимости на восстановленной сетке.

    Обновляет restored_mesh_visibility и restored_mesh_non_visible_faces
    (грани, которые назначенное направление больше не видит).

    Returns:
        Число граней, которые до восстановления обрабатывались назначенным
        направлением, а после — нет.

    Raises:
        ValueError: восстановление не выполнено или набор направлений
            не совпадает с исходным.
    """
    if data.restored_mesh is None:
        raise ValueError("Восстановленная сетка отсутствует")

    result = get_visibility(
        data.restored_mesh,
        len(data.directions) - 2,
        heightfield_angle,
        include_x_directions=True,
        min_extremes=data.min_extremes,
        max_extremes=data.max_extremes,
        check_mode=check_mode,
    )
    if result.directions.shape != data.directions.shape or not np.allclose(
        result.directions, data.directions, atol=1e-9,
    ):
        raise ValueError("Набор направлений повторной проверки не совпадает с исходным")

    data.restored_mesh_visibility = result.visibility
    association = data.restored_mesh_association
    face_ids = np.arange(len(association))

    not_visible = ~result.visibility[association, face_ids]
    data.restored_mesh_non_visible_faces = np.flatnonzero(not_visible).tolist()

    machinable_before = data.visibility[association, face_ids]
    newly = int(np.count_nonzero(not_visible & machinable_before))
    if newly:
        logger.warning("После восстановления стали необрабатываемыми: %d граней", newly)
    else:
        logger.info("После восстановления все обрабатываемые грани остались видимыми")
    return newly
