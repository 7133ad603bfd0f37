"""
Точка входа: планирование четырёхосевой фрезеровки по паре STL-моделей.

Использование:
    python main.py <original.stl> <smoothed.stl> [--directions N] [--orientations N]
                   [--random] [--no-set-cover] [--fix-extremes] [--compactness C]
                   [--limit-angle DEG] [--iterations N] [--check-mode MODE]
                   [--output-dir DIR] [--config FILE] [--verbose] [--log-json FILE]

Пример:
    python main.py "detail.stl" "detail_smooth.stl" --directions 16
    python main.py "detail.stl" "detail_smooth.stl" --fix-extremes --check-mode rayshooting
    python main.py "detail.stl" "detail_smooth.stl" --config project.fouraxis.json
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

# Обеспечить поддержку Unicode на Windows-консоли
if sys.stdout.encoding and sys.stdout.encoding.lower() not in ('utf-8', 'utf8'):
    sys.stdout.reconfigure(encoding='utf-8', errors='replace')
if sys.stderr.encoding and sys.stderr.encoding.lower() not in ('utf-8', 'utf8'):
    sys.stderr.reconfigure(encoding='utf-8', errors='replace')

from stl_milling.fabrication.components import save_components
from stl_milling.fabrication.data import FabricationData
from stl_milling.geometry.mesh import MeshMismatchError
from stl_milling.io.stl_loader import STLLoadError, load_stl_pair, save_stl
from stl_milling.io.validator import validate_mesh, validate_mesh_pair
from stl_milling.logging_config import LogContext, setup_logging
from stl_milling.optimization.multilabel import SolverError
from stl_milling.pipeline import FourAxisPipeline
from stl_milling.project_config import CHECK_MODES, PlannerConfig, load_config

logger = logging.getLogger("stl_milling.cli")


# ---------------------------------------------------------------------------
# Пайплайн
# ---------------------------------------------------------------------------

def _banner(title: str, *args) -> None:
    logger.info("=" * 60)
    logger.info(title, *args)
    logger.info("=" * 60)


def run_pipeline(
    original_path: str,
    smoothed_path: str,
    config: PlannerConfig,
    output_dir: Optional[str] = None,
) -> FabricationData:
    """Полный пайплайн: пара STL → направления, назначение, восстановленная модель, компоненты.

    Шаги:
      1. Загрузка и проверка пары моделей.
      2. Оптимальная ориентация.
      3. Крайние грани вдоль x.
      4. Проверка видимости.
      5. Выбор направлений (покрытие множествами).
      6. Назначение направлений граням.
      7. Восстановление деталей и повторная проверка видимости.
      8. Разбиение на компоненты и сохранение STL.
    """
    # --- Шаг 1: Загрузка ---
    _banner("Шаг 1: Загрузка пары STL")
    mesh, smoothed_mesh = load_stl_pair(original_path, smoothed_path)

    pair_report = validate_mesh_pair(mesh, smoothed_mesh)
    if not pair_report.is_valid:
        raise MeshMismatchError(pair_report.summary())
    smoothed_report = validate_mesh(smoothed_mesh)
    logger.info(smoothed_report.summary())

    pipeline = FourAxisPipeline(mesh, smoothed_mesh, config)

    # --- Шаг 2: Ориентация ---
    _banner("Шаг 2: Оптимальная ориентация (%d направлений)", config.orientation.n_orientations)
    pipeline.orient()

    # --- Шаг 3: Крайние грани ---
    _banner("Шаг 3: Крайние грани вдоль оси x")
    pipeline.select_extremes()

    # --- Шаг 4: Видимость ---
    _banner("Шаг 4: Проверка видимости (%s)", pipeline.check_mode.value)
    pipeline.check_visibility()

    # --- Шаг 5: Направления ---
    _banner("Шаг 5: Выбор направлений")
    pipeline.select_directions()

    # --- Шаг 6: Назначение ---
    _banner("Шаг 6: Назначение направлений граням")
    pipeline.assign()

    # --- Шаг 7: Восстановление ---
    _banner("Шаг 7: Восстановление деталей (%d проходов)", config.restoration.iterations)
    pipeline.restore()
    pipeline.recheck_visibility()

    # --- Шаг 8: Компоненты ---
    _banner("Шаг 8: Разбиение на компоненты")
    cut = pipeline.cut()

    data = pipeline.data
    _report(data, pipeline.newly_non_machinable)

    out_dir = Path(output_dir or config.output.output_dir or ".")
    prefix = config.output.prefix
    if config.output.save_restored_mesh:
        out_dir.mkdir(parents=True, exist_ok=True)
        save_stl(data.restored_mesh, out_dir / f"{prefix}_restored.stl")
    if config.output.save_components:
        written = save_components(cut, out_dir, prefix)
        logger.info("Компоненты сохранены: %d файлов в %s", len(written), out_dir)

    return data


def _report(data: FabricationData, newly_non_machinable: Optional[int]) -> None:
    summary = data.summary()
    logger.info(
        "Направлений: %d, выбрано: %s", summary["n_directions"], summary["target_directions"],
    )
    if summary["n_non_visible"]:
        logger.warning("Граней, не видимых ни из одного направления: %d", summary["n_non_visible"])
    if newly_non_machinable:
        logger.warning(
            "Граней, ставших необрабатываемыми после восстановления: %d", newly_non_machinable,
        )
    if data.cut is not None:
        stock = data.cut.stock
        logger.info(
            "Заготовка: x ∈ [%.3f, %.3f], радиус %.3f, компонентов %d",
            stock.x_min, stock.x_max, stock.radius, len(data.cut.components),
        )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Планирование четырёхосевой фрезеровки по исходной и сглаженной STL-моделям.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("original", help="Исходная (детальная) STL-модель.")
    parser.add_argument("smoothed", help="Сглаженная STL-модель с той же топологией.")
    parser.add_argument(
        "--directions", type=int, default=None,
        help="Число вращательных направлений вокруг x (по умолчанию из конфигурации: 8).",
    )
    parser.add_argument(
        "--orientations", type=int, default=None,
        help="Число кандидатных ориентаций (по умолчанию: 60).",
    )
    parser.add_argument(
        "--random", action="store_true",
        help="Случайный перебор ориентаций вместо решётки Фибоначчи.",
    )
    parser.add_argument(
        "--no-set-cover", action="store_true", dest="no_set_cover",
        help="Не минимизировать набор направлений.",
    )
    parser.add_argument(
        "--fix-extremes", action="store_true", dest="fix_extremes",
        help="Закрепить крайние грани за направлениями -x/+x.",
    )
    parser.add_argument(
        "--compactness", type=float, default=None,
        help="Штраф за соседние грани с разными направлениями (по умолчанию: 20).",
    )
    parser.add_argument(
        "--limit-angle", type=float, default=None, dest="limit_angle",
        help="Предельный угол карты высот, градусы (по умолчанию: 80).",
    )
    parser.add_argument(
        "--iterations", type=int, default=None,
        help="Число проходов восстановления деталей (по умолчанию: 5).",
    )
    parser.add_argument(
        "--check-mode", default=None, dest="check_mode",
        choices=CHECK_MODES,
        help="Способ проверки видимости (по умолчанию: projection).",
    )
    parser.add_argument(
        "--output-dir", "-o", default=None, dest="output_dir",
        help="Каталог для STL-результатов.",
    )
    parser.add_argument(
        "--config", "-c", default=None,
        help="Путь к конфигурационному файлу .fouraxis.json.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Подробный (DEBUG) лог.")
    parser.add_argument(
        "--log-json", default=None, dest="log_json",
        help="Дополнительно писать лог в JSON-lines файл.",
    )
    return parser.parse_args(argv)


def apply_args_to_config(args: argparse.Namespace, config: PlannerConfig) -> PlannerConfig:
    """Перенести заданные в командной строке параметры в конфигурацию."""
    if args.directions is not None:
        config.visibility.n_directions = args.directions
    if args.orientations is not None:
        config.orientation.n_orientations = args.orientations
    if args.random:
        config.orientation.deterministic = False
    if args.no_set_cover:
        config.directions.set_coverage = False
    if args.fix_extremes:
        config.assignment.fix_extreme_association = True
    if args.compactness is not None:
        config.assignment.compactness = args.compactness
    if args.limit_angle is not None:
        config.visibility.limit_angle_deg = args.limit_angle
    if args.iterations is not None:
        config.restoration.iterations = args.iterations
    if args.check_mode is not None:
        config.visibility.check_mode = args.check_mode
    return config


def main(argv=None) -> None:
    args = _parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_file=args.log_json,
    )

    config = load_config(stl_path=args.original, explicit_config=args.config)
    config = apply_args_to_config(args, config)
    problems = config.validate()
    if problems:
        for problem in problems:
            logger.critical("Недопустимый параметр: %s", problem)
        sys.exit(1)

    try:
        with LogContext(mesh=Path(args.original).name):
            run_pipeline(args.original, args.smoothed, config, output_dir=args.output_dir)
    except (STLLoadError, MeshMismatchError) as exc:
        logger.critical("Ошибка загрузки моделей: %s", exc)
        sys.exit(1)
    except SolverError as exc:
        logger.critical("Ошибка решателя: %s", exc)
        sys.exit(1)
    except ValueError as exc:
        logger.critical("Ошибка параметров: %s", exc)
        sys.exit(1)
    except Exception as exc:
        logger.critical("Неожиданная ошибка: %s", exc, exc_info=True)
        sys.exit(2)


if __name__ == "__main__":
    main()
