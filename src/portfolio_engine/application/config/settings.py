"""
Configuration management for the portfolio engine.
Handles loading, validation, and environment variable overrides.
"""

import os
import logging
import json
import threading
from typing import Dict, Any, Optional, List
from pathlib import Path
import yaml
import jsonschema
from dataclasses import dataclass, field
from copy import deepcopy
import re

from ...infrastructure.error_handling import ConfigurationError, handle_errors

CONFIG_DIR = Path(__file__).parent
DEFAULT_CONFIG_PATH = CONFIG_DIR / "settings.yaml"
DEFAULT_SCHEMA_PATH = CONFIG_DIR / "settings.schema.json"

RISK_LEVEL_KEYS = ("LOW", "MEDIUM", "HIGH", "VERY_HIGH")


@dataclass(frozen=True)
class ValidationConfig:
    """Limits enforced by the validation gateway."""
    min_investment_amount: float = 1000.0
    max_investment_amount: float = 10_000_000.0
    allowed_currencies: List[str] = field(default_factory=lambda: ["CNY", "USD", "EUR"])
    default_currency: str = "CNY"
    max_portfolio_name_length: int = 100
    max_risk_score: float = 10.0
    max_time_horizon_days: int = 2520
    max_return_investments: int = 100
    max_date_range_years: float = 10.0
    max_page_limit: int = 100
    max_sanitized_length: int = 1000
    totals_tolerance: float = 0.01
    allowed_timeframes: List[str] = field(default_factory=lambda: ["1M", "3M", "6M", "1Y", "2Y", "5Y"])

    def __post_init__(self):
        if self.min_investment_amount > self.max_investment_amount:
            raise ConfigurationError(
                "Minimum investment amount cannot exceed maximum",
                config_key="validation.min_investment_amount",
                config_value=self.min_investment_amount
            )
        if self.default_currency not in self.allowed_currencies:
            raise ConfigurationError(
                "Default currency must be one of the allowed currencies",
                config_key="validation.default_currency",
                config_value=self.default_currency
            )


@dataclass(frozen=True)
class ReturnsConfig:
    """Return calculator settings."""
    days_per_year: float = 365.0
    irr_days_per_year: float = 365.25
    min_holding_days: float = 1.0
    irr_initial_guess: float = 0.1
    irr_max_iterations: int = 100
    irr_tolerance: float = 1e-7
    irr_bisection_max_iterations: int = 200
    irr_max_seconds: float = 2.0
    default_periods_per_year: int = 12


@dataclass(frozen=True)
class RiskConfig:
    """Risk assessor settings."""
    default_confidence_level: float = 0.95
    default_time_horizon: int = 252
    default_risk_free_rate: float = 0.03
    trading_days_per_year: int = 252
    score_weights: Dict[str, float] = field(default_factory=lambda: {
        "volatility": 0.4, "drawdown": 0.3, "concentration": 0.3
    })
    volatility_cap: float = 0.40
    drawdown_cap: float = 0.50
    band_low_max: float = 3.0
    band_medium_max: float = 6.0
    band_high_max: float = 8.0
    concentration_high_hhi: float = 0.25
    concentration_medium_hhi: float = 0.15
    high_volatility_threshold: float = 0.20

    def __post_init__(self):
        """Validate score weights and band ordering."""
        if not abs(sum(self.score_weights.values()) - 1.0) < 0.001:
            raise ConfigurationError("Risk score weights must sum to 1.0", config_key="risk.score_weights")

        if not self.band_low_max <= self.band_medium_max <= self.band_high_max:
            raise ConfigurationError("Risk bands must be increasing", config_key="risk.band_*_max")


@dataclass(frozen=True)
class AssetModelConfig:
    """Per-risk-level assumptions used to build the asset model."""
    expected_returns: Dict[str, float] = field(default_factory=lambda: {
        "LOW": 0.04, "MEDIUM": 0.07, "HIGH": 0.11, "VERY_HIGH": 0.15
    })
    volatilities: Dict[str, float] = field(default_factory=lambda: {
        "LOW": 0.05, "MEDIUM": 0.12, "HIGH": 0.22, "VERY_HIGH": 0.35
    })
    same_sector_correlation: float = 0.6
    cross_sector_correlation: float = 0.2
    realized_return_weight: float = 0.5
    realized_return_floor: float = -0.5
    realized_return_cap: float = 1.0

    def __post_init__(self):
        for table_name in ("expected_returns", "volatilities"):
            missing = set(RISK_LEVEL_KEYS) - set(getattr(self, table_name))
            if missing:
                raise ConfigurationError(
                    f"Asset model {table_name} is missing risk levels: {sorted(missing)}",
                    config_key=f"asset_model.{table_name}"
                )
        if self.cross_sector_correlation > self.same_sector_correlation:
            raise ConfigurationError(
                "Cross-sector correlation cannot exceed same-sector correlation",
                config_key="asset_model.cross_sector_correlation",
                config_value=self.cross_sector_correlation
            )


@dataclass(frozen=True)
class OptimizerConfig:
    """Strategy optimizer settings."""
    default_max_position_size: float = 0.30
    default_min_position_size: float = 0.01
    default_max_sector_concentration: float = 0.40
    default_liquidity_requirement: float = 0.0
    transaction_cost_rate: float = 0.001
    materiality_threshold: float = 0.005
    target_penalty: float = 10.0
    max_iterations: int = 2000
    max_seconds: float = 5.0
    initial_step: float = 0.05
    min_step: float = 0.0001
    improvement_tolerance: float = 1e-9
    feasibility_tolerance: float = 1e-9
    recommendation_validity_days: int = 30

    def __post_init__(self):
        if self.default_min_position_size > self.default_max_position_size:
            raise ConfigurationError(
                "Default minimum position size cannot exceed the maximum",
                config_key="optimizer.default_min_position_size",
                config_value=self.default_min_position_size
            )
        if self.min_step > self.initial_step:
            raise ConfigurationError(
                "Optimizer minimum step cannot exceed the initial step",
                config_key="optimizer.min_step",
                config_value=self.min_step
            )


@dataclass(frozen=True)
class DiversificationConfig:
    """Diversification enforcer limits."""
    max_single_position_share: float = 0.20
    max_high_risk_share: float = 0.30


@dataclass(frozen=True)
class StressConfig:
    """Default shock percentages per scenario type."""
    market_crash_shock: float = 30.0
    interest_rate_shock: float = 15.0
    liquidity_crisis_shock: float = 20.0
    liquidity_crisis_high_risk_shock: float = 40.0
    sector_specific_shock: float = 25.0


# Environment variable -> (config path, converter)
ENV_OVERRIDES = {
    'PORTFOLIO_ENGINE_ENVIRONMENT': (('application', 'environment'), str),
    'PORTFOLIO_ENGINE_LOG_LEVEL': (('application', 'log_level'), str.upper),
    'PORTFOLIO_ENGINE_LOG_DIR': (('application', 'log_dir'), str),
    'PORTFOLIO_ENGINE_RISK_FREE_RATE': (('risk', 'default_risk_free_rate'), float),
    'OPTIMIZER_MAX_ITERATIONS': (('optimizer', 'max_iterations'), int),
    'OPTIMIZER_MAX_SECONDS': (('optimizer', 'max_seconds'), float),
    'IRR_MAX_ITERATIONS': (('returns', 'irr_max_iterations'), int),
}

ENV_TEMPLATE = re.compile(r'\$\{([^}]+)\}')

SECTION_TYPES = {
    'validation': ValidationConfig,
    'returns': ReturnsConfig,
    'risk': RiskConfig,
    'asset_model': AssetModelConfig,
    'optimizer': OptimizerConfig,
    'diversification': DiversificationConfig,
    'stress': StressConfig,
}


def _expand_templates(node: Any) -> Any:
    """Replace ${VAR_NAME} in every string value; unset variables expand to ''."""
    if isinstance(node, dict):
        return {key: _expand_templates(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_expand_templates(item) for item in node]
    if isinstance(node, str):
        return ENV_TEMPLATE.sub(lambda match: os.getenv(match.group(1), ''), node)
    return node


class ConfigManager:
    """
    Loads settings.yaml, applies environment overrides and validates the
    result against settings.schema.json.

    Each section is also exposed as a frozen dataclass whose own invariants
    are checked when the file is loaded, so a bad value fails at start-up
    rather than in the middle of a calculation.
    """

    def __init__(self, config_path: Optional[str] = None, schema_path: Optional[str] = None):
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self.schema_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

        self._schema = self._read_schema()
        self._load()
        self.logger.info(f"Configuration loaded from {self.config_path}")

    def _read_schema(self) -> Dict[str, Any]:
        try:
            with open(self.schema_path, 'r') as f:
                return json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Schema file not found: {self.schema_path}")
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load schema {self.schema_path}: {e}")

    @handle_errors(operation_name="load_config")
    def _load(self):
        try:
            with open(self.config_path, 'r') as f:
                raw = yaml.safe_load(f) or {}
            modified = self.config_path.stat().st_mtime
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}")

        config = _expand_templates(self._with_env_overrides(raw))
        self._check_schema(config)

        self._sections = {name: self._build_section(name, cls, config) for name, cls in SECTION_TYPES.items()}
        self._config = config
        self._last_modified = modified

    @staticmethod
    def _with_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
        config = deepcopy(raw)
        for env_var, (path, convert) in ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                converted = convert(value)
            except ValueError:
                raise ConfigurationError(
                    f"Environment variable {env_var} has an invalid value",
                    config_key=".".join(path),
                    config_value=value
                )
            section = config
            for key in path[:-1]:
                section = section.setdefault(key, {})
            section[path[-1]] = converted
        return config

    def _check_schema(self, config: Dict[str, Any]):
        try:
            jsonschema.validate(config, self._schema)
        except jsonschema.ValidationError as e:
            path = ".".join(str(p) for p in e.absolute_path)
            raise ConfigurationError(f"Configuration validation failed: {e.message}", config_key=path or None)
        except jsonschema.SchemaError as e:
            raise ConfigurationError(f"Invalid schema: {e.message}")

    @staticmethod
    def _build_section(name: str, section_cls, config: Dict[str, Any]):
        try:
            return section_cls(**config.get(name, {}))
        except TypeError as e:
            raise ConfigurationError(f"Invalid '{name}' section: {e}", config_key=name)

    def get_validation_config(self) -> ValidationConfig:
        return self._sections['validation']

    def get_returns_config(self) -> ReturnsConfig:
        return self._sections['returns']

    def get_risk_config(self) -> RiskConfig:
        return self._sections['risk']

    def get_asset_model_config(self) -> AssetModelConfig:
        return self._sections['asset_model']

    def get_optimizer_config(self) -> OptimizerConfig:
        return self._sections['optimizer']

    def get_diversification_config(self) -> DiversificationConfig:
        return self._sections['diversification']

    def get_stress_config(self) -> StressConfig:
        return self._sections['stress']

    def get_value(self, key_path: str, default: Any = None) -> Any:
        """Look up a dotted path such as ``risk.default_confidence_level``."""
        node = self._config
        for key in key_path.split('.'):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def get_log_level(self) -> str:
        return self.get_value('application.log_level', 'INFO')

    def reload_config(self) -> bool:
        """Reload when the file changed on disk; returns whether it did."""
        if self.config_path.stat().st_mtime <= self._last_modified:
            return False
        self._load()
        self.logger.info(f"Configuration reloaded from {self.config_path}")
        return True

    def to_dict(self) -> Dict[str, Any]:
        return deepcopy(self._config)

    def __repr__(self) -> str:
        return f"ConfigManager(config_path={self.config_path}, environment={self.get_value('application.environment')})"


_config_manager: Optional[ConfigManager] = None
_config_lock = threading.Lock()


def get_config_manager() -> ConfigManager:
    """Process-wide manager, created from the packaged settings on first use."""
    global _config_manager
    with _config_lock:
        if _config_manager is None:
            _config_manager = ConfigManager()
        return _config_manager


def reset_config_manager(manager: Optional[ConfigManager] = None):
    """Swap the process-wide manager; None forces a reload on next use."""
    global _config_manager
    with _config_lock:
        _config_manager = manager


def get_config() -> Dict[str, Any]:
    return get_config_manager().to_dict()


def get_validation_config() -> ValidationConfig:
    return get_config_manager().get_validation_config()


def get_returns_config() -> ReturnsConfig:
    return get_config_manager().get_returns_config()


def get_risk_config() -> RiskConfig:
    return get_config_manager().get_risk_config()


def get_asset_model_config() -> AssetModelConfig:
    return get_config_manager().get_asset_model_config()


def get_optimizer_config() -> OptimizerConfig:
    return get_config_manager().get_optimizer_config()


def get_diversification_config() -> DiversificationConfig:
    return get_config_manager().get_diversification_config()


def get_stress_config() -> StressConfig:
    return get_config_manager().get_stress_config()
