"""
Глобальные параметры планировщика четырёхосевой фрезеровки.

Значения по умолчанию можно переопределить из JSON-конфигурации
проекта через project_config.apply_config_to_globals().
"""

import numpy as np

# ---------------------------------------------------------------------------
# Численные допуски
# ---------------------------------------------------------------------------

# Машинный эпсилон для проверки нормалей крайних граней (как в исходном алгоритме)
EXTREME_NORMAL_EPS = float(np.finfo(np.float64).eps)

# Относительный допуск перекрытия проекций треугольников (доля масштаба модели)
EPS_OVERLAP = 1e-9

# Относительный допуск глубины при лучевом анализе
EPS_DEPTH = 1e-9

# Порог площади, ниже которого грань считается вырожденной
DEGENERATE_AREA = 1e-12

# ---------------------------------------------------------------------------
# Ориентация
# ---------------------------------------------------------------------------

# Число поворотов вокруг z для каждого кандидатного направления (на 90°)
ORIENTATION_SPIN_STEPS = 6

# ---------------------------------------------------------------------------
# Видимость
# ---------------------------------------------------------------------------

# Разрешение растеризации (пикселей по длинной стороне) для режима RENDER
RENDER_RESOLUTION = 256

# ---------------------------------------------------------------------------
# Назначение направлений
# ---------------------------------------------------------------------------

# Штраф за назначение грани направлению, из которого она не видна
NOT_VISIBLE_COST = 100000.0

# Штраф за назначение закреплённой крайней грани чужому направлению
PINNED_COST = 1.0e9

# Множитель перевода стоимостей в целые пропускные способности разрезов
CAPACITY_SCALE = 1000

# ---------------------------------------------------------------------------
# Восстановление частот
# ---------------------------------------------------------------------------

# Максимальное число делений шага пополам при проверке вершины
BINARY_SEARCH_ITERATIONS = 10

# Число потоков для обхода вершин; None: значение ThreadPoolExecutor по умолчанию
RESTORATION_WORKERS = None
