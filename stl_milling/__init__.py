"""
stl_milling — планировщик четырёхосевой фрезеровки по паре STL-моделей.

Основной пайплайн запускается через main.py или FourAxisPipeline.
"""

from stl_milling.logging_config import (
    setup_logging,
    log_timing,
    LogContext,
)

__all__ = [
    "setup_logging",
    "log_timing",
    "LogContext",
]
