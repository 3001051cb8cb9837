"""
Configuration tests: packaged defaults, environment overrides, schema
validation and section invariants.
"""

import pytest
import yaml

from portfolio_engine.application.config.settings import (
    DEFAULT_CONFIG_PATH,
    AssetModelConfig,
    ConfigManager,
    OptimizerConfig,
    RiskConfig,
    ValidationConfig,
    get_config_manager,
    reset_config_manager
)
from portfolio_engine.infrastructure.error_handling import ConfigurationError


@pytest.fixture
def default_settings():
    with open(DEFAULT_CONFIG_PATH) as f:
        return yaml.safe_load(f)


@pytest.fixture
def write_settings(tmp_path):
    def _write(data):
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump(data))
        return str(path)
    return _write


class TestPackagedSettings:

    def test_sections_load(self):
        manager = ConfigManager()

        assert manager.get_validation_config().min_investment_amount == 1000
        assert manager.get_returns_config().irr_days_per_year == 365.25
        assert manager.get_risk_config().score_weights == {"volatility": 0.4, "drawdown": 0.3, "concentration": 0.3}
        assert manager.get_asset_model_config().expected_returns["VERY_HIGH"] == 0.15
        assert manager.get_optimizer_config().default_max_position_size == 0.30
        assert manager.get_diversification_config().max_high_risk_share == 0.30
        assert manager.get_stress_config().liquidity_crisis_high_risk_shock == 40

    def test_get_value(self):
        manager = ConfigManager()

        assert manager.get_value("risk.default_confidence_level") == 0.95
        assert manager.get_value("risk.missing.key", "fallback") == "fallback"
        assert manager.get_log_level() == "INFO"

    def test_to_dict_is_a_copy(self):
        manager = ConfigManager()
        snapshot = manager.to_dict()
        snapshot["risk"]["default_risk_free_rate"] = 0.5

        assert manager.get_value("risk.default_risk_free_rate") == 0.03

    def test_reload_without_changes(self):
        assert ConfigManager().reload_config() is False

    def test_global_manager_is_shared(self):
        assert get_config_manager() is get_config_manager()

        custom = ConfigManager()
        reset_config_manager(custom)
        assert get_config_manager() is custom


class TestEnvironmentOverrides:

    def test_log_level_override(self, monkeypatch):
        monkeypatch.setenv("PORTFOLIO_ENGINE_LOG_LEVEL", "DEBUG")
        assert ConfigManager().get_log_level() == "DEBUG"

    def test_numeric_overrides_are_typed(self, monkeypatch):
        monkeypatch.setenv("OPTIMIZER_MAX_ITERATIONS", "50")
        monkeypatch.setenv("OPTIMIZER_MAX_SECONDS", "1.5")
        monkeypatch.setenv("PORTFOLIO_ENGINE_RISK_FREE_RATE", "0.05")
        monkeypatch.setenv("IRR_MAX_ITERATIONS", "25")
        manager = ConfigManager()

        assert manager.get_optimizer_config().max_iterations == 50
        assert manager.get_optimizer_config().max_seconds == 1.5
        assert manager.get_risk_config().default_risk_free_rate == 0.05
        assert manager.get_returns_config().irr_max_iterations == 25

    def test_unparseable_override_is_rejected(self, monkeypatch):
        monkeypatch.setenv("OPTIMIZER_MAX_ITERATIONS", "lots")
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager()
        assert exc_info.value.context["config_key"] == "optimizer.max_iterations"

    def test_template_substitution(self, monkeypatch, default_settings, write_settings):
        default_settings["application"]["environment"] = "${DEPLOY_ENV}"
        monkeypatch.setenv("DEPLOY_ENV", "staging")

        manager = ConfigManager(config_path=write_settings(default_settings))
        assert manager.get_value("application.environment") == "staging"


class TestSchemaValidation:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(config_path=str(tmp_path / "absent.yaml"))

    def test_missing_schema(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(schema_path=str(tmp_path / "absent.json"))

    def test_bad_enum_value(self, default_settings, write_settings):
        default_settings["application"]["log_level"] = "LOUD"

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(config_path=write_settings(default_settings))
        assert exc_info.value.context["config_key"] == "application.log_level"

    def test_missing_section(self, default_settings, write_settings):
        del default_settings["stress"]
        with pytest.raises(ConfigurationError):
            ConfigManager(config_path=write_settings(default_settings))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("risk: [unclosed")
        with pytest.raises(ConfigurationError):
            ConfigManager(config_path=str(path))


class TestSectionInvariants:

    @pytest.mark.parametrize("factory", [
        lambda: ValidationConfig(min_investment_amount=5000, max_investment_amount=1000),
        lambda: ValidationConfig(default_currency="GBP"),
        lambda: RiskConfig(score_weights={"volatility": 0.5, "drawdown": 0.3, "concentration": 0.3}),
        lambda: RiskConfig(band_low_max=7, band_medium_max=6),
        lambda: AssetModelConfig(expected_returns={"LOW": 0.04}),
        lambda: AssetModelConfig(same_sector_correlation=0.1, cross_sector_correlation=0.3),
        lambda: OptimizerConfig(default_min_position_size=0.5, default_max_position_size=0.3),
        lambda: OptimizerConfig(initial_step=0.001, min_step=0.01),
    ])
    def test_invalid_combinations(self, factory):
        with pytest.raises(ConfigurationError):
            factory()

    def test_defaults_are_consistent(self):
        ValidationConfig()
        RiskConfig()
        AssetModelConfig()
        OptimizerConfig()
