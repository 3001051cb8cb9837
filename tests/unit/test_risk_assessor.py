"""
Risk assessor tests: concentration, banding, volatility sources, drawdown,
VaR and risk factors.
"""

import math
from datetime import datetime

import numpy as np
import pytest

from portfolio_engine.application.config.settings import DiversificationConfig, ReturnsConfig, RiskConfig
from portfolio_engine.data.models.portfolios import RiskLevel
from portfolio_engine.data.models.requests import RiskAssessmentOptions
from portfolio_engine.data.models.results import VolatilitySource
from portfolio_engine.domain.services.return_calculator import ReturnCalculator
from portfolio_engine.domain.services.risk_assessor import (
    RiskAssessor,
    classify_risk_score,
    herfindahl_index,
    normalized_herfindahl
)
from portfolio_engine.domain.value_objects.asset_model import build_asset_model


def crash_then_recovery():
    """Halves on the second day, then rises every day for ten days."""
    history = [("2024-01-01", 100000.0), ("2024-01-02", 50000.0)]
    history += [(f"2024-01-{day:02d}", 50000.0 + 2000.0 * (day - 2)) for day in range(3, 13)]
    return history


@pytest.fixture
def assessor():
    return RiskAssessor(RiskConfig(), DiversificationConfig(), ReturnCalculator(ReturnsConfig()))


class TestConcentration:

    def test_herfindahl(self):
        assert herfindahl_index([0.5, 0.5]) == pytest.approx(0.5)
        assert herfindahl_index([]) == 0.0

    @pytest.mark.parametrize("weights,expected", [
        ([0.25, 0.25, 0.25, 0.25], 0.0),
        ([1.0], 1.0),
        ([], 0.0),
        ([0.5, 0.5, 0.0], 0.25),
    ])
    def test_normalized_herfindahl(self, weights, expected):
        assert normalized_herfindahl(weights) == pytest.approx(expected)


class TestClassification:

    @pytest.mark.parametrize("score,level", [
        (0.0, RiskLevel.LOW),
        (3.0, RiskLevel.LOW),
        (3.01, RiskLevel.MEDIUM),
        (6.0, RiskLevel.MEDIUM),
        (8.0, RiskLevel.HIGH),
        (8.01, RiskLevel.VERY_HIGH),
        (10.0, RiskLevel.VERY_HIGH),
    ])
    def test_bands(self, score, level):
        assert classify_risk_score(score, RiskConfig()) == level


class TestRiskScore:

    def test_all_components(self, assessor):
        assert assessor.risk_score(0.2, 0.25, 0.5) == pytest.approx(5.0)

    def test_missing_drawdown_renormalizes(self, assessor):
        assert assessor.risk_score(0.2, None, 0.0) == pytest.approx(2.86)

    def test_components_are_capped(self, assessor):
        assert assessor.risk_score(2.0, 0.9, 1.0) == pytest.approx(10.0)

    def test_nothing_known(self, assessor):
        assert assessor.risk_score(None, None, None) == 0.0


class TestDrawdownAndVar:

    def test_max_drawdown_from_history(self, assessor, portfolio):
        assert assessor.max_drawdown(portfolio) == pytest.approx(1700 / 101500)

    def test_max_drawdown_needs_two_points(self, assessor, make_portfolio, make_investment):
        holdings = [make_investment("a", 1000)]
        assert assessor.max_drawdown(make_portfolio(holdings, [("2024-01-01", 1000.0)])) is None

    @pytest.mark.parametrize("time_horizon,expected", [
        (None, 0.5),
        (5, 0.0),
        (10, 0.0),
        (11, 0.5),
    ])
    def test_max_drawdown_window(self, assessor, make_portfolio, make_investment, time_horizon, expected):
        snapshot = make_portfolio([make_investment("a", 70000)], crash_then_recovery())
        assert assessor.max_drawdown(snapshot, time_horizon) == pytest.approx(expected)

    def test_parametric_var(self):
        var, cvar = RiskAssessor.parametric_var(100000, 0.0, 0.01, 0.95, 1)

        assert var == pytest.approx(1644.85, abs=0.01)
        assert cvar == pytest.approx(2062.71, abs=0.01)
        assert cvar > var

    def test_var_grows_with_horizon(self):
        short, _ = RiskAssessor.parametric_var(100000, 0.0, 0.01, 0.95, 1)
        long, _ = RiskAssessor.parametric_var(100000, 0.0, 0.01, 0.95, 25)
        assert long == pytest.approx(short * 5)

    def test_var_undetermined_for_non_finite_inputs(self):
        assert RiskAssessor.parametric_var(100000, float("nan"), 0.01, 0.95, 1) == (None, None)


class TestAssess:

    def test_history_driven_assessment(self, assessor, portfolio, as_of):
        metrics = assessor.assess(portfolio, as_of=as_of)

        assert metrics.portfolio_id == "pf-001"
        assert metrics.volatility_source == VolatilitySource.HISTORY
        assert metrics.max_drawdown == pytest.approx(1700 / 101500)
        assert metrics.confidence_level == 0.95
        assert metrics.time_horizon == 252
        assert metrics.risk_level == classify_risk_score(metrics.risk_score, RiskConfig())
        assert metrics.risk_score == round(metrics.risk_score, 2)
        assert metrics.sharpe_ratio is not None
        assert metrics.issues == []

    def test_risk_factors_for_fixture(self, assessor, portfolio, as_of):
        metrics = assessor.assess(portfolio, as_of=as_of)
        factors = {f.factor_type: f for f in metrics.risk_factors}

        assert factors["CONCENTRATION"].severity == RiskLevel.HIGH
        assert factors["HIGH_RISK_EXPOSURE"].impact == pytest.approx(36000 / 110000)
        assert len(metrics.recommendations) == len(metrics.risk_factors)

    def test_model_volatility_without_history(self, assessor, make_portfolio, make_investment, as_of):
        holdings = [
            make_investment("a", 1000, risk_level=RiskLevel.LOW, sector="Energy"),
            make_investment("b", 1000, risk_level=RiskLevel.HIGH, sector="Finance"),
        ]
        snapshot = make_portfolio(holdings)
        metrics = assessor.assess(snapshot, as_of=as_of)

        model = build_asset_model(snapshot.holdings, as_of)
        assert metrics.volatility_source == VolatilitySource.MODEL
        assert metrics.annualized_volatility == pytest.approx(model.portfolio_volatility([0.5, 0.5]))
        assert [i.code for i in metrics.issues] == ["INSUFFICIENT_HISTORY", "DRAWDOWN_UNDETERMINED"]
        assert metrics.max_drawdown is None

    def test_flat_history_makes_sharpe_undefined(self, assessor, make_portfolio, make_investment, as_of):
        history = [("2024-01-01", 1000.0), ("2024-02-01", 1000.0), ("2024-03-01", 1000.0)]
        metrics = assessor.assess(make_portfolio([make_investment("a", 1000)], history), as_of=as_of)

        assert metrics.annualized_volatility == 0.0
        assert metrics.sharpe_ratio is None
        assert "SHARPE_UNDEFINED" in [i.code for i in metrics.issues]

    def test_crash_before_horizon_is_ignored(self, assessor, make_portfolio, make_investment, as_of):
        snapshot = make_portfolio([make_investment("a", 70000)], crash_then_recovery())

        short = assessor.assess(snapshot, options=RiskAssessmentOptions(time_horizon=5), as_of=as_of)
        full = assessor.assess(snapshot, as_of=as_of)

        assert short.max_drawdown == pytest.approx(0.0)
        assert full.max_drawdown == pytest.approx(0.5)

    def test_options_override_defaults(self, assessor, portfolio, as_of):
        options = RiskAssessmentOptions(confidence_level=0.99, time_horizon=10, risk_free_rate=0.01, benchmark_return=0.05)
        base = assessor.assess(portfolio, as_of=as_of)
        metrics = assessor.assess(portfolio, options=options, as_of=as_of)

        assert metrics.confidence_level == 0.99
        assert metrics.time_horizon == 10
        assert metrics.benchmark_return == 0.05
        assert metrics.outperformance == pytest.approx(metrics.annualized_return - 0.05)
        assert base.benchmark_return == 0.03

    def test_empty_portfolio(self, assessor, make_portfolio, as_of):
        metrics = assessor.assess(make_portfolio([]), as_of=as_of)

        assert metrics.concentration_index == 0.0
        assert metrics.risk_level == RiskLevel.LOW
        assert metrics.risk_factors == []

    def test_current_weights_sum_to_one(self, portfolio):
        weights = RiskAssessor.current_weights(portfolio)
        assert weights.sum() == pytest.approx(1.0)
        assert np.all(weights >= 0)

    def test_serialized_keys_are_camel_case(self, assessor, portfolio, as_of):
        payload = assessor.assess(portfolio, as_of=as_of).to_dict()

        assert {"riskScore", "riskLevel", "valueAtRisk", "maxDrawdown", "volatilitySource"} <= set(payload)
        assert payload["riskLevel"] in {level.value for level in RiskLevel}
        assert math.isfinite(payload["valueAtRisk"])
