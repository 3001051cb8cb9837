"""
Monitoring infrastructure for the portfolio engine.
Provides structured logging setup and context-aware loggers.
"""

from .logger import (
    setup_logging,
    ContextLogger,
    OptimizationLogger,
    PerformanceLogger,
    get_logger,
    get_optimization_logger,
    get_performance_logger
)

__all__ = [
    'setup_logging',
    'ContextLogger',
    'OptimizationLogger',
    'PerformanceLogger',
    'get_logger',
    'get_optimization_logger',
    'get_performance_logger'
]
