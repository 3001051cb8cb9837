"""
Strategy optimizer tests: hard constraints, infeasibility, budgets, locked
holdings and cancellation.
"""

from collections import defaultdict

import numpy as np
import pytest

from portfolio_engine.application.config.settings import OptimizerConfig
from portfolio_engine.data.models.portfolios import InvestmentStatus, RiskLevel
from portfolio_engine.data.models.requests import OptimizationRequest
from portfolio_engine.data.models.results import OptimizationStatus, TradeAction
from portfolio_engine.domain.services.strategy_optimizer import ResolvedConstraints, StrategyOptimizer
from portfolio_engine.domain.value_objects.cancellation import CancellationToken
from portfolio_engine.infrastructure.error_handling import (
    BusinessLogicError,
    InfeasibleAllocationError,
    OperationCancelledError,
    ValidationError
)

TOL = 1e-6


def build_request(payload, **overrides):
    data = dict(payload)
    constraints = dict(data.get("constraints", {}))
    constraints.update(overrides.pop("constraints", {}))
    data["constraints"] = constraints
    data.update(overrides)
    return OptimizationRequest.model_validate(data)


def weights_of(result):
    return {rec.investment_id: rec.recommended_weight for rec in result.recommendations}


def sector_totals(result):
    totals = defaultdict(float)
    for rec in result.recommendations:
        totals[rec.sector] += rec.recommended_weight
    return totals


class TestHardConstraints:

    def setup_method(self):
        self.optimizer = StrategyOptimizer()

    @pytest.mark.parametrize("objective,extra", [
        ("MAXIMIZE_RETURN", {}),
        ("MINIMIZE_RISK", {}),
        ("MAXIMIZE_SHARPE", {}),
        ("TARGET_RETURN", {"targetReturn": 0.08}),
        ("TARGET_RISK", {"targetRisk": 0.10}),
    ])
    def test_every_objective_respects_limits(self, portfolio, optimization_payload, as_of, objective, extra):
        request = build_request(optimization_payload, objective=objective, **extra)
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)
        weights = np.array(list(weights_of(result).values()))

        assert result.status == OptimizationStatus.SOLVED
        assert np.all(weights <= 0.30 + TOL)
        assert np.all(weights >= 0.05 - TOL)
        assert weights.sum() == pytest.approx(1.0, abs=TOL)
        assert all(total <= 0.40 + TOL for total in sector_totals(result).values())

    def test_oversized_position_is_sold(self, portfolio, optimization_payload, as_of):
        result = self.optimizer.optimize(portfolio, build_request(optimization_payload), as_of=as_of)
        tech = next(rec for rec in result.recommendations if rec.investment_id == "inv-tech")

        assert tech.action == TradeAction.SELL
        assert tech.transaction_amount < 0
        assert tech in result.trades

    def test_turnover_and_cost(self, portfolio, optimization_payload, as_of):
        result = self.optimizer.optimize(portfolio, build_request(optimization_payload), as_of=as_of)

        assert all(rec.transaction_amount == 0.0 for rec in result.recommendations if rec.action == TradeAction.HOLD)
        assert result.turnover == pytest.approx(sum(abs(rec.transaction_amount) for rec in result.recommendations))
        assert result.rebalancing_cost == pytest.approx(result.turnover * 0.001)

    def test_liquidity_requirement_holds_back_cash(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, constraints={"liquidityRequirement": 0.1})
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)

        assert sum(weights_of(result).values()) <= 0.9 + TOL
        assert result.cash_weight == pytest.approx(0.1, abs=TOL)

    def test_excluded_holding_is_sold_out(self, portfolio, optimization_payload, as_of):
        request = build_request(
            optimization_payload,
            constraints={"maxPositionSize": 0.4, "excludedInvestments": ["inv-energy"]}
        )
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)
        energy = next(rec for rec in result.recommendations if rec.investment_id == "inv-energy")

        assert energy.recommended_weight == 0.0
        assert energy.action == TradeAction.SELL
        assert energy.transaction_amount == pytest.approx(-21000)

    def test_disallowed_sector_is_sold_out(self, portfolio, optimization_payload, as_of):
        request = build_request(
            optimization_payload,
            constraints={"maxPositionSize": 0.4, "allowedSectors": ["Technology", "Healthcare", "Finance"]}
        )
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)
        assert weights_of(result)["inv-energy"] == 0.0

    def test_suspended_holding_is_locked(self, make_portfolio, make_investment, optimization_payload, as_of):
        snapshot = make_portfolio([
            make_investment("a", 20000, sector="Energy"),
            make_investment("b", 20000, sector="Finance", risk_level=RiskLevel.LOW),
            make_investment("c", 20000, sector="Healthcare"),
            make_investment("d", 20000, sector="Technology", risk_level=RiskLevel.HIGH),
            make_investment("frozen", 20000, sector="Utilities", status=InvestmentStatus.SUSPENDED),
        ])
        result = self.optimizer.optimize(snapshot, build_request(optimization_payload), as_of=as_of)
        frozen = next(rec for rec in result.recommendations if rec.investment_id == "frozen")

        assert frozen.recommended_weight == pytest.approx(0.2)
        assert frozen.action == TradeAction.HOLD
        assert frozen.transaction_amount == 0.0

    def test_locked_holding_above_position_cap_is_infeasible(
        self, make_portfolio, make_investment, optimization_payload, as_of
    ):
        sectors = ["Energy", "Finance", "Healthcare", "Technology", "Utilities"]
        snapshot = make_portfolio(
            [make_investment("frozen", 50000, sector="Real Estate", status=InvestmentStatus.SUSPENDED)]
            + [make_investment(f"inv-{i}", 10000, sector=sector) for i, sector in enumerate(sectors)]
        )
        request = build_request(optimization_payload, objective="MINIMIZE_RISK")

        with pytest.raises(InfeasibleAllocationError) as exc_info:
            self.optimizer.optimize(snapshot, request, as_of=as_of)
        assert any("frozen is locked" in reason for reason in exc_info.value.reasons)

    @pytest.mark.parametrize("objective,extra", [
        ("MAXIMIZE_RETURN", {}),
        ("MINIMIZE_RISK", {}),
        ("MAXIMIZE_SHARPE", {}),
        ("TARGET_RETURN", {"targetReturn": 0.08}),
        ("TARGET_RISK", {"targetRisk": 0.10}),
    ])
    def test_limits_hold_with_locked_and_excluded_holdings(
        self, make_portfolio, make_investment, optimization_payload, as_of, objective, extra
    ):
        snapshot = make_portfolio([
            make_investment("a", 20000, sector="Energy"),
            make_investment("b", 20000, sector="Finance", risk_level=RiskLevel.LOW),
            make_investment("c", 20000, sector="Healthcare"),
            make_investment("d", 20000, sector="Technology", risk_level=RiskLevel.HIGH),
            make_investment("frozen", 20000, sector="Utilities", status=InvestmentStatus.SUSPENDED),
            make_investment("dropped", 20000, sector="Real Estate"),
        ])
        request = build_request(
            optimization_payload, objective=objective,
            constraints={"excludedInvestments": ["dropped"]}, **extra
        )
        result = self.optimizer.optimize(snapshot, request, as_of=as_of)
        weights = weights_of(result)

        assert max(weights.values()) <= 0.30 + TOL
        assert all(total <= 0.40 + TOL for total in sector_totals(result).values())
        assert weights["dropped"] == 0.0
        assert weights["frozen"] == pytest.approx(1 / 6)

    def test_defaults_come_from_configuration(self):
        resolved = ResolvedConstraints.resolve(None, OptimizerConfig())

        assert resolved.max_position_size == 0.30
        assert resolved.min_position_size == 0.01
        assert resolved.invested_share == 1.0
        assert resolved.allowed_sectors is None


class TestInfeasibility:

    def setup_method(self):
        self.optimizer = StrategyOptimizer()

    def test_minimum_positions_exceed_capital(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, constraints={"minPositionSize": 0.3})

        with pytest.raises(InfeasibleAllocationError) as exc_info:
            self.optimizer.optimize(portfolio, request, as_of=as_of)

        error = exc_info.value
        assert error.error_code == "INFEASIBLE"
        assert any("minimum positions" in reason for reason in error.reasons)

    def test_sector_caps_too_tight(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, constraints={"maxSectorConcentration": 0.2})

        with pytest.raises(InfeasibleAllocationError) as exc_info:
            self.optimizer.optimize(portfolio, request, as_of=as_of)
        assert any("sector caps" in reason for reason in exc_info.value.reasons)

    def test_min_above_max(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, constraints={"minPositionSize": 0.5, "maxPositionSize": 0.3})

        with pytest.raises(InfeasibleAllocationError) as exc_info:
            self.optimizer.optimize(portfolio, request, as_of=as_of)
        assert "minPositionSize exceeds maxPositionSize" in exc_info.value.reasons

    def test_unreachable_risk_budget(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, constraints={"riskBudget": 0.01})

        with pytest.raises(InfeasibleAllocationError) as exc_info:
            self.optimizer.optimize(portfolio, request, as_of=as_of)
        assert "risk budget" in exc_info.value.reasons[0]

    def test_reachable_risk_budget_is_respected(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, objective="MAXIMIZE_RETURN", constraints={"riskBudget": 0.12})
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)
        assert result.expected_risk <= 0.12 + TOL

    def test_no_holdings(self, make_portfolio, optimization_payload, as_of):
        with pytest.raises(BusinessLogicError) as exc_info:
            self.optimizer.optimize(make_portfolio([]), build_request(optimization_payload), as_of=as_of)
        assert exc_info.value.error_code == "NO_HOLDINGS"

    def test_missing_target(self, portfolio, optimization_payload, as_of):
        with pytest.raises(ValidationError) as exc_info:
            self.optimizer.optimize(portfolio, build_request(optimization_payload, objective="TARGET_RETURN"), as_of=as_of)
        assert exc_info.value.error_code == "MISSING_TARGET_RETURN"


class TestSearchBehaviour:

    def setup_method(self):
        self.optimizer = StrategyOptimizer()

    def _projected(self, portfolio, request, as_of):
        constraints = ResolvedConstraints.resolve(request.constraints, self.optimizer.config)
        problem = self.optimizer._build_problem(portfolio, request, constraints, as_of)
        return problem, self.optimizer._project(problem, constraints)

    def test_minimize_risk_never_increases_risk(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, objective="MINIMIZE_RISK")
        problem, start = self._projected(portfolio, request, as_of)
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)

        assert result.expected_risk <= self.optimizer._volatility(problem, start) + TOL

    def test_maximize_return_never_decreases_return(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, objective="MAXIMIZE_RETURN")
        problem, start = self._projected(portfolio, request, as_of)
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)

        assert result.expected_return >= self.optimizer._expected_return(problem, start) - TOL

    def test_projection_is_minimal_turnover(self, portfolio, optimization_payload, as_of):
        problem, start = self._projected(portfolio, build_request(optimization_payload), as_of)

        # Only the 2.73% excess in technology has to move
        turnover = np.abs(start - problem.current).sum()
        assert turnover == pytest.approx(2 * (36000 / 110000 - 0.30), abs=1e-6)

    def test_tight_budget_stops_at_projection(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, rebalancingBudget=100)
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)

        assert result.budget_limited
        assert result.rebalancing_budget == 100
        assert result.turnover > result.rebalancing_budget
        assert "REBALANCING_BUDGET_EXCEEDED" in [issue.code for issue in result.issues]
        assert weights_of(result)["inv-tech"] == pytest.approx(0.30, abs=TOL)

    def test_generous_budget_is_not_limiting(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, rebalancingBudget=1_000_000)
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)
        assert not result.budget_limited

    def test_budget_caps_turnover(self, portfolio, optimization_payload, as_of):
        request = build_request(optimization_payload, objective="MAXIMIZE_RETURN", rebalancingBudget=10000)
        result = self.optimizer.optimize(portfolio, request, as_of=as_of)
        assert result.turnover <= 10000 + 1e-3

    def test_iteration_limit_is_reported(self, portfolio, optimization_payload, as_of):
        optimizer = StrategyOptimizer(config=OptimizerConfig(max_iterations=1))
        result = optimizer.optimize(portfolio, build_request(optimization_payload), as_of=as_of)

        assert result.iteration_limited
        assert "ITERATION_LIMIT_REACHED" in [issue.code for issue in result.issues]

    def test_cancelled_token(self, portfolio, optimization_payload, as_of):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            self.optimizer.optimize(portfolio, build_request(optimization_payload), as_of=as_of, token=token)

    def test_cancellation_mid_search(self, portfolio, optimization_payload, as_of, mocker):
        token = CancellationToken()
        mocker.patch.object(token, "raise_if_cancelled", side_effect=[None, None, OperationCancelledError("stop")])

        with pytest.raises(OperationCancelledError):
            self.optimizer.optimize(portfolio, build_request(optimization_payload), as_of=as_of, token=token)

    def test_serialized_result(self, portfolio, optimization_payload, as_of):
        payload = self.optimizer.optimize(portfolio, build_request(optimization_payload), as_of=as_of).to_dict()

        assert payload["status"] == "SOLVED"
        assert payload["objective"] == "MAXIMIZE_SHARPE"
        assert {"investmentId", "recommendedWeight", "transactionAmount"} <= set(payload["recommendations"][0])
        assert "returnImprovement" in payload["improvement"]
