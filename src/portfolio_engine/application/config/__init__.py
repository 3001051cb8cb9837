"""
Configuration package for the portfolio engine.
"""

from .settings import (
    ConfigManager,
    ValidationConfig,
    ReturnsConfig,
    RiskConfig,
    AssetModelConfig,
    OptimizerConfig,
    DiversificationConfig,
    StressConfig,
    get_config_manager,
    reset_config_manager,
    get_config
)

__all__ = [
    "ConfigManager",
    "ValidationConfig",
    "ReturnsConfig",
    "RiskConfig",
    "AssetModelConfig",
    "OptimizerConfig",
    "DiversificationConfig",
    "StressConfig",
    "get_config_manager",
    "reset_config_manager",
    "get_config"
]
