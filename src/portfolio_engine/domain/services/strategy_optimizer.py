"""
Constrained portfolio rebalancing optimizer.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

import numpy as np
from scipy.optimize import linprog

from .diversification_enforcer import DiversificationEnforcer
from .return_calculator import ReturnCalculator
from .risk_assessor import RiskAssessor, classify_risk_score, herfindahl_index, normalized_herfindahl
from ..value_objects.asset_model import AssetModel, build_asset_model
from ..value_objects.cancellation import CancellationToken
from ...application.config.settings import OptimizerConfig, get_optimizer_config
from ...data.models.portfolios import Portfolio, PortfolioInvestment
from ...data.models.requests import OptimizationObjective, OptimizationRequest, StrategyConstraints
from ...data.models.results import (
    AllocationRecommendation,
    CalculationIssue,
    ImprovementMetrics,
    OptimizationResult,
    OptimizationStatus,
    TradeAction
)
from ...infrastructure.error_handling import (
    BusinessLogicError,
    CalculationError,
    ErrorCode,
    InfeasibleAllocationError,
    ValidationError,
    handle_errors
)


class OptimizerState(Enum):
    """Lifecycle of a single solve."""
    INPUT_VALIDATED = "input_validated"
    SOLVING = "solving"
    SOLVED = "solved"
    INFEASIBLE = "infeasible"


@dataclass(frozen=True)
class ResolvedConstraints:
    """Strategy constraints with configuration defaults filled in."""
    max_position_size: float
    min_position_size: float
    max_sector_concentration: float
    liquidity_requirement: float
    risk_budget: Optional[float] = None
    allowed_sectors: Optional[frozenset] = None
    excluded_investments: frozenset = field(default_factory=frozenset)

    @property
    def invested_share(self) -> float:
        return 1.0 - self.liquidity_requirement

    @classmethod
    def resolve(cls, constraints: Optional[StrategyConstraints], config: OptimizerConfig) -> "ResolvedConstraints":
        constraints = constraints or StrategyConstraints()

        def pick(value, default):
            return default if value is None else value

        return cls(
            max_position_size=pick(constraints.max_position_size, config.default_max_position_size),
            min_position_size=pick(constraints.min_position_size, config.default_min_position_size),
            max_sector_concentration=pick(
                constraints.max_sector_concentration, config.default_max_sector_concentration
            ),
            liquidity_requirement=pick(constraints.liquidity_requirement, config.default_liquidity_requirement),
            risk_budget=constraints.risk_budget,
            allowed_sectors=frozenset(constraints.allowed_sectors) if constraints.allowed_sectors is not None else None,
            excluded_investments=frozenset(constraints.excluded_investments)
        )


@dataclass
class _Problem:
    """Numeric form of one optimization request."""
    holdings: List[PortfolioInvestment]
    model: AssetModel
    portfolio_value: float
    current: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    sector_index: np.ndarray
    sector_names: List[str]
    sector_cap: float
    invested_share: float
    cash_rate: float
    risk_budget: Optional[float]
    turnover_budget: Optional[float]

    @property
    def size(self) -> int:
        return len(self.holdings)

    @property
    def sector_membership(self) -> np.ndarray:
        return np.array(
            [self.sector_index == k for k in range(len(self.sector_names))],
            dtype=float
        )

    def sector_sums(self, weights: np.ndarray) -> np.ndarray:
        return np.bincount(self.sector_index, weights=weights, minlength=len(self.sector_names))


@dataclass
class _SearchOutcome:
    weights: np.ndarray
    iterations: int
    iteration_limited: bool


class StrategyOptimizer:
    """
    Rebalances a portfolio toward an objective under hard constraints.

    Phase 1 projects the current weights onto the linear constraints with a
    minimum-turnover linear program. Phase 2 improves the objective with a
    pairwise weight-transfer local search that never leaves the feasible
    region or the rebalancing budget.
    """

    def __init__(
        self,
        config: Optional[OptimizerConfig] = None,
        return_calculator: Optional[ReturnCalculator] = None,
        risk_assessor: Optional[RiskAssessor] = None,
        enforcer: Optional[DiversificationEnforcer] = None
    ):
        self.config = config or get_optimizer_config()
        self.return_calculator = return_calculator or ReturnCalculator()
        self.risk_assessor = risk_assessor or RiskAssessor(return_calculator=self.return_calculator)
        self.enforcer = enforcer or DiversificationEnforcer()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @handle_errors(operation_name="optimize_portfolio")
    def optimize(
        self,
        portfolio: Portfolio,
        request: OptimizationRequest,
        as_of: Optional[datetime] = None,
        token: Optional[CancellationToken] = None
    ) -> OptimizationResult:
        """
        Optimize a portfolio allocation.

        Args:
            portfolio: Read-only portfolio snapshot
            request: Validated optimization request
            as_of: Evaluation time for the asset model
            token: Cooperative cancellation token

        Returns:
            OptimizationResult with per-holding recommendations

        Raises:
            InfeasibleAllocationError: constraint intersection is empty
            OperationCancelledError: the caller cancelled the solve
        """
        as_of = as_of or datetime.utcnow()
        token = token or CancellationToken.none()
        self._check_targets(request)

        constraints = ResolvedConstraints.resolve(request.constraints, self.config)
        problem = self._build_problem(portfolio, request, constraints, as_of)
        state = self._transition(None, OptimizerState.INPUT_VALIDATED)

        issues: List[CalculationIssue] = []
        iterations = 0
        iteration_limited = False

        state = self._transition(state, OptimizerState.SOLVING)
        try:
            projected = self._project(problem, constraints)

            over_risk_budget = (
                problem.risk_budget is not None
                and self._volatility(problem, projected) > problem.risk_budget + self.config.feasibility_tolerance
            )
            if over_risk_budget:
                repair = self._search(
                    problem, projected, OptimizationObjective.MINIMIZE_RISK, token,
                    enforce_turnover=False, enforce_risk=False,
                    stop_when=lambda w: self._volatility(problem, w) <= problem.risk_budget
                )
                iterations += repair.iterations
                iteration_limited = repair.iteration_limited
                projected = repair.weights
                achieved = self._volatility(problem, projected)
                if achieved > problem.risk_budget + self.config.feasibility_tolerance:
                    raise InfeasibleAllocationError(
                        "Risk budget cannot be met within the position and sector limits",
                        reasons=[
                            f"risk budget {problem.risk_budget:.4f} is below the lowest reachable "
                            f"volatility {achieved:.4f}"
                        ]
                    )
        except InfeasibleAllocationError:
            self._transition(state, OptimizerState.INFEASIBLE)
            raise

        budget_limited = False
        projected_turnover = self._turnover_value(problem, projected)
        if problem.turnover_budget is not None and projected_turnover > problem.turnover_budget + self.config.feasibility_tolerance:
            budget_limited = True
            weights = projected
            issues.append(CalculationIssue(
                code=ErrorCode.REBALANCING_BUDGET_EXCEEDED.value,
                message=(
                    f"Reaching the constraints needs {projected_turnover:,.2f} of trades, "
                    f"above the rebalancing budget of {problem.turnover_budget:,.2f}"
                ),
                metric="rebalancingBudget"
            ))
        else:
            outcome = self._search(problem, projected, request.objective, token, target=self._target(request))
            weights = outcome.weights
            iterations += outcome.iterations
            iteration_limited = iteration_limited or outcome.iteration_limited

        if iteration_limited:
            issues.append(CalculationIssue(
                code=ErrorCode.ITERATION_LIMIT_REACHED.value,
                message="Search stopped at its iteration or time budget; result is the best point found",
                metric="optimization"
            ))

        result = self._build_result(
            portfolio, request, problem, weights, issues, budget_limited, iteration_limited, iterations, as_of
        )
        self._transition(state, OptimizerState.SOLVED)
        self.logger.info(
            f"Optimized portfolio {portfolio.id} for {request.objective.value}: "
            f"{len(result.trades)} trades, {iterations} iterations"
        )
        return result

    def _transition(self, previous: Optional[OptimizerState], state: OptimizerState) -> OptimizerState:
        self.logger.debug(f"Optimizer state {previous.value if previous else 'none'} -> {state.value}")
        return state

    @staticmethod
    def _check_targets(request: OptimizationRequest):
        if request.objective == OptimizationObjective.TARGET_RETURN and request.target_return is None:
            raise ValidationError(
                "targetReturn is required for TARGET_RETURN",
                field_name="targetReturn",
                error_code=ErrorCode.MISSING_TARGET_RETURN
            )
        if request.objective == OptimizationObjective.TARGET_RISK and request.target_risk is None:
            raise ValidationError(
                "targetRisk is required for TARGET_RISK",
                field_name="targetRisk",
                error_code=ErrorCode.MISSING_TARGET_RISK
            )

    @staticmethod
    def _target(request: OptimizationRequest) -> Optional[float]:
        if request.objective == OptimizationObjective.TARGET_RETURN:
            return request.target_return
        if request.objective == OptimizationObjective.TARGET_RISK:
            return request.target_risk
        return None

    def _build_problem(
        self,
        portfolio: Portfolio,
        request: OptimizationRequest,
        constraints: ResolvedConstraints,
        as_of: datetime
    ) -> _Problem:
        holdings = portfolio.holdings
        portfolio_value = sum(h.current_value for h in holdings)
        if not holdings or portfolio_value <= 0:
            raise BusinessLogicError(
                "Portfolio has no valued holdings to optimize",
                rule_name="holdings_required",
                error_code=ErrorCode.NO_HOLDINGS
            )

        current = np.array([h.current_value for h in holdings], dtype=float) / portfolio_value
        lower = np.empty(len(holdings))
        upper = np.empty(len(holdings))
        for i, holding in enumerate(holdings):
            if not holding.status.is_tradable:
                lower[i] = upper[i] = current[i]
            elif holding.id in constraints.excluded_investments or (
                constraints.allowed_sectors is not None and holding.sector not in constraints.allowed_sectors
            ):
                lower[i] = upper[i] = 0.0
            else:
                lower[i] = constraints.min_position_size
                upper[i] = constraints.max_position_size

        sector_names = sorted({h.sector for h in holdings})
        sector_index = np.array([sector_names.index(h.sector) for h in holdings], dtype=int)

        return _Problem(
            holdings=holdings,
            model=build_asset_model(holdings, as_of),
            portfolio_value=portfolio_value,
            current=current,
            lower=lower,
            upper=upper,
            sector_index=sector_index,
            sector_names=sector_names,
            sector_cap=constraints.max_sector_concentration,
            invested_share=constraints.invested_share,
            cash_rate=self.risk_assessor.config.default_risk_free_rate,
            risk_budget=constraints.risk_budget,
            turnover_budget=request.rebalancing_budget
        )

    def _infeasibility_reasons(self, problem: _Problem, constraints: ResolvedConstraints) -> List[str]:
        tol = self.config.feasibility_tolerance
        reasons = []
        if constraints.min_position_size > constraints.max_position_size:
            reasons.append("minPositionSize exceeds maxPositionSize")
        for i, holding in enumerate(problem.holdings):
            if not holding.status.is_tradable and problem.current[i] > constraints.max_position_size + tol:
                reasons.append(
                    f"{holding.status.value} holding {holding.id} is locked at {problem.current[i]:.2%}, "
                    f"above maxPositionSize {constraints.max_position_size:.2%}"
                )
        if problem.lower.sum() > problem.invested_share + tol:
            reasons.append(
                f"minimum positions need {problem.lower.sum():.2%} but only "
                f"{problem.invested_share:.2%} may be invested"
            )
        if problem.upper.sum() < problem.invested_share - tol:
            reasons.append(
                f"maximum positions allow {problem.upper.sum():.2%} but "
                f"{problem.invested_share:.2%} must be invested"
            )
        sector_floor = problem.sector_sums(problem.lower)
        for name, floor in zip(problem.sector_names, sector_floor):
            if floor > problem.sector_cap + tol:
                reasons.append(f"sector {name} needs {floor:.2%}, above the sector cap {problem.sector_cap:.2%}")
        sector_room = np.minimum(problem.sector_sums(problem.upper), problem.sector_cap).sum()
        if sector_room < problem.invested_share - tol:
            reasons.append(
                f"sector caps allow {sector_room:.2%} but {problem.invested_share:.2%} must be invested"
            )
        return reasons

    def _project(self, problem: _Problem, constraints: ResolvedConstraints) -> np.ndarray:
        """Minimum L1-turnover point of the linear feasible region."""
        reasons = self._infeasibility_reasons(problem, constraints)
        if reasons:
            raise InfeasibleAllocationError("Constraint intersection is empty", reasons=reasons)

        n = problem.size
        eye = np.eye(n)
        cost = np.concatenate([np.zeros(n), np.ones(2 * n)])

        # w - p + q = w0 splits the deviation into positive and negative parts
        a_eq = np.vstack([
            np.hstack([eye, -eye, eye]),
            np.concatenate([np.ones(n), np.zeros(2 * n)])[None, :]
        ])
        b_eq = np.concatenate([problem.current, [problem.invested_share]])

        membership = problem.sector_membership
        a_ub = np.hstack([membership, np.zeros((membership.shape[0], 2 * n))])
        b_ub = np.full(membership.shape[0], problem.sector_cap)

        bounds = [(lo, hi) for lo, hi in zip(problem.lower, problem.upper)] + [(0, None)] * (2 * n)

        solution = linprog(cost, A_ub=a_ub, b_ub=b_ub, A_eq=a_eq, b_eq=b_eq, bounds=bounds, method="highs")
        if solution.status == 2:
            raise InfeasibleAllocationError(
                "Constraint intersection is empty",
                reasons=["no allocation satisfies position, sector and liquidity limits together"]
            )
        if solution.status != 0:
            raise CalculationError(
                f"Feasibility projection failed: {solution.message}",
                calculation_type="linprog",
                input_data={"status": int(solution.status)}
            )

        return np.clip(solution.x[:n], problem.lower, problem.upper)

    def _volatility(self, problem: _Problem, weights: np.ndarray) -> float:
        return self.risk_assessor.expected_allocation_volatility(weights, problem.model)

    def _expected_return(self, problem: _Problem, weights: np.ndarray) -> float:
        return self.return_calculator.expected_allocation_return(
            weights, problem.model, max(0.0, 1.0 - weights.sum()), problem.cash_rate
        )

    @staticmethod
    def _turnover_value(problem: _Problem, weights: np.ndarray) -> float:
        return float(np.abs(weights - problem.current).sum() * problem.portfolio_value)

    def _objective_function(
        self,
        objective: OptimizationObjective,
        cash_rate: float,
        target: Optional[float]
    ) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
        penalty = self.config.target_penalty

        if objective == OptimizationObjective.MAXIMIZE_RETURN:
            return lambda r, s: r
        if objective == OptimizationObjective.MINIMIZE_RISK:
            return lambda r, s: -s
        if objective == OptimizationObjective.MAXIMIZE_SHARPE:
            def sharpe(r, s):
                with np.errstate(divide="ignore", invalid="ignore"):
                    return np.where(s > 0, (r - cash_rate) / np.where(s > 0, s, 1.0), -np.inf)
            return sharpe
        if objective == OptimizationObjective.TARGET_RETURN:
            return lambda r, s: -(penalty * np.abs(r - target) + s)
        if objective == OptimizationObjective.TARGET_RISK:
            return lambda r, s: -penalty * np.abs(s - target) + r

        raise ValidationError(f"Unsupported objective: {objective}", field_name="objective",
                              error_code=ErrorCode.INVALID_OBJECTIVE)

    def _search(
        self,
        problem: _Problem,
        start: np.ndarray,
        objective: OptimizationObjective,
        token: CancellationToken,
        target: Optional[float] = None,
        enforce_turnover: bool = True,
        enforce_risk: bool = True,
        stop_when: Optional[Callable[[np.ndarray], bool]] = None
    ) -> _SearchOutcome:
        """
        Pairwise transfer local search.

        Each move shifts weight from a donor to a receiver, limited by the
        current step and by every bound it touches. A move is taken only if it
        improves the objective by more than the tolerance, so equal-objective
        points closer to the current allocation are kept.
        """
        evaluate = self._objective_function(objective, problem.cash_rate, target)
        tol = self.config.feasibility_tolerance
        cov = problem.model.covariance
        mu = problem.model.expected_returns
        cov_diag = np.diag(cov)
        pair_curvature = cov_diag[:, None] + cov_diag[None, :] - 2 * cov
        cross_sector = problem.sector_index[:, None] != problem.sector_index[None, :]
        budget_fraction = (
            problem.turnover_budget / problem.portfolio_value
            if enforce_turnover and problem.turnover_budget is not None else None
        )
        risk_cap = problem.risk_budget if enforce_risk else None

        weights = start.copy()
        step = self.config.initial_step
        iterations = 0
        limited = False
        started = time.monotonic()

        while step >= self.config.min_step:
            if stop_when is not None and stop_when(weights):
                break
            if iterations >= self.config.max_iterations or time.monotonic() - started > self.config.max_seconds:
                limited = True
                break
            token.raise_if_cancelled("optimize")
            iterations += 1

            exposure = cov @ weights
            variance = float(weights @ exposure)
            ret = self._expected_return(problem, weights)
            current_score = float(evaluate(np.array(ret), np.array(math.sqrt(max(variance, 0.0)))))

            deviation = weights - problem.current
            sector_room = problem.sector_cap - problem.sector_sums(weights)

            delta = np.minimum(step, np.minimum((weights - problem.lower)[:, None], (problem.upper - weights)[None, :]))
            delta = np.where(cross_sector, np.minimum(delta, sector_room[problem.sector_index][None, :]), delta)
            np.fill_diagonal(delta, 0.0)
            valid = delta > 1e-12

            new_return = ret + delta * (mu[None, :] - mu[:, None])
            new_variance = variance + 2 * delta * (exposure[None, :] - exposure[:, None]) + delta ** 2 * pair_curvature
            new_vol = np.sqrt(np.maximum(new_variance, 0.0))

            if budget_fraction is not None:
                turnover = np.abs(deviation).sum()
                change = (
                    np.abs(deviation[:, None] - delta) + np.abs(deviation[None, :] + delta)
                    - np.abs(deviation)[:, None] - np.abs(deviation)[None, :]
                )
                valid &= turnover + change <= budget_fraction + tol
            if risk_cap is not None:
                valid &= new_vol <= risk_cap + tol

            scores = np.where(valid, evaluate(new_return, new_vol), -np.inf)
            donor, receiver = np.unravel_index(np.argmax(scores), scores.shape)

            if scores[donor, receiver] > current_score + self.config.improvement_tolerance:
                moved = delta[donor, receiver]
                weights[donor] -= moved
                weights[receiver] += moved
            else:
                step /= 2

        if limited:
            self.logger.warning(f"Local search stopped after {iterations} iterations")

        return _SearchOutcome(
            weights=np.clip(weights, problem.lower, problem.upper),
            iterations=iterations,
            iteration_limited=limited
        )

    def _build_result(
        self,
        portfolio: Portfolio,
        request: OptimizationRequest,
        problem: _Problem,
        weights: np.ndarray,
        issues: List[CalculationIssue],
        budget_limited: bool,
        iteration_limited: bool,
        iterations: int,
        as_of: datetime
    ) -> OptimizationResult:
        recommendations = []
        risk_levels = problem.model.risk_levels
        for i, holding in enumerate(problem.holdings):
            change = weights[i] - problem.current[i]
            if abs(change) < self.config.materiality_threshold:
                action, amount = TradeAction.HOLD, 0.0
            else:
                action = TradeAction.BUY if change > 0 else TradeAction.SELL
                amount = float(change * problem.portfolio_value)

            warnings = []
            if action == TradeAction.BUY:
                check = self.enforcer.check_allocation(weights, risk_levels, i)
                warnings = check.codes

            recommendations.append(AllocationRecommendation(
                investment_id=holding.id,
                name=holding.display_name,
                sector=holding.sector,
                risk_level=holding.risk_level,
                current_weight=float(problem.current[i]),
                recommended_weight=float(weights[i]),
                action=action,
                transaction_amount=amount,
                diversification_warnings=warnings
            ))

        traded = sum(abs(rec.transaction_amount) for rec in recommendations)
        cost = traded * self.config.transaction_cost_rate

        original_return = self._expected_return(problem, problem.current)
        original_risk = self._volatility(problem, problem.current)
        original_sharpe = self.return_calculator.sharpe_ratio(original_return, problem.cash_rate, volatility=original_risk)

        expected_return = self._expected_return(problem, weights)
        expected_risk = self._volatility(problem, weights)
        expected_sharpe = self.return_calculator.sharpe_ratio(expected_return, problem.cash_rate, volatility=expected_risk)
        if not expected_sharpe.is_defined:
            issues.append(CalculationIssue(
                code=ErrorCode.SHARPE_UNDEFINED.value,
                message="Expected Sharpe ratio is undefined for zero expected risk",
                metric="expectedSharpe"
            ))

        invested = weights.sum()
        normalized = weights / invested if invested > 0 else weights
        return_improvement = expected_return - original_return
        improvement = ImprovementMetrics(
            return_improvement=return_improvement,
            risk_reduction=original_risk - expected_risk,
            sharpe_improvement=(
                expected_sharpe.ratio - original_sharpe.ratio
                if expected_sharpe.is_defined and original_sharpe.is_defined else None
            ),
            diversification_improvement=herfindahl_index(problem.current) - herfindahl_index(normalized),
            cost_efficiency=return_improvement * problem.portfolio_value / cost if cost > 0 else 0.0
        )

        score = self.risk_assessor.risk_score(expected_risk, None, normalized_herfindahl(normalized))

        return OptimizationResult(
            portfolio_id=portfolio.id,
            objective=request.objective,
            status=OptimizationStatus.SOLVED,
            expected_return=expected_return,
            expected_risk=expected_risk,
            expected_sharpe=expected_sharpe.ratio,
            risk_level=classify_risk_score(score, self.risk_assessor.config),
            recommendations=recommendations,
            rebalancing_cost=cost,
            turnover=traded,
            improvement=improvement,
            cash_weight=float(max(0.0, 1.0 - invested)),
            rebalancing_budget=problem.turnover_budget,
            budget_limited=budget_limited,
            iteration_limited=iteration_limited,
            iterations=iterations,
            issues=issues,
            optimized_at=as_of
        )
