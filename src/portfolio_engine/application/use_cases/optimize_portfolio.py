"""
Optimize portfolio use case.
Runs the strategy optimizer and turns its result into recommendations.
"""

from datetime import datetime
from typing import Any, Optional

from .base import EndpointUseCase, EngineResponse, PortfolioInput
from ...data.models.requests import RequestKind
from ...data.models.results import OptimizationResult
from ...domain.services.strategy_optimizer import StrategyOptimizer
from ...domain.services.strategy_recommendations import StrategyRecommendationBuilder
from ...domain.value_objects.cancellation import CancellationToken
from ...infrastructure.error_handling import InfeasibleAllocationError, PortfolioEngineError
from ...infrastructure.monitoring import get_optimization_logger


class OptimizePortfolioUseCase(EndpointUseCase):
    """
    Use case for the optimize endpoint.

    Workflow:
    1. Validate the optimization request and the portfolio snapshot
    2. Solve for target weights under the request's constraints
    3. Build strategy recommendations from the solved allocation
    """

    request_kind = RequestKind.OPTIMIZATION

    def __init__(
        self,
        optimizer: Optional[StrategyOptimizer] = None,
        recommendation_builder: Optional[StrategyRecommendationBuilder] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.optimizer = optimizer or StrategyOptimizer()
        self.recommendation_builder = recommendation_builder or StrategyRecommendationBuilder(self.optimizer.config)

    def execute(
        self,
        payload: Any,
        portfolio: PortfolioInput,
        as_of: Optional[datetime] = None,
        token: Optional[CancellationToken] = None
    ) -> EngineResponse:
        as_of = as_of or datetime.utcnow()
        request, snapshot, failure = self._prepare(payload, portfolio, as_of)
        if failure:
            return failure

        opt_logger = get_optimization_logger(snapshot.id)
        opt_logger.log_solve_started(request.objective.value, len(snapshot.holdings))

        try:
            with self._timed("optimize_portfolio", portfolio_id=snapshot.id):
                result = self.optimizer.optimize(snapshot, request, as_of=as_of, token=token)
        except InfeasibleAllocationError as e:
            opt_logger.log_infeasible(e.reasons)
            return EngineResponse(422, self.formatter.infeasible(e, snapshot.id, request.objective.value))
        except PortfolioEngineError as e:
            return self._error_response(e)

        opt_logger.log_solve_finished(
            result.status.value,
            result.iterations,
            result.expected_return,
            result.expected_risk,
            budget_limited=result.budget_limited,
            iteration_limited=result.iteration_limited
        )

        recommendations = self.recommendation_builder.build(result, as_of)
        return EngineResponse(200, self.formatter.optimization(result, recommendations, self._message(result)))

    @staticmethod
    def _message(result: OptimizationResult) -> str:
        trades = sum(1 for rec in result.recommendations if rec.transaction_amount)
        if not trades:
            return "Portfolio is already close to the optimal allocation"
        message = f"Optimization completed with {trades} suggested trade{'s' if trades != 1 else ''}"
        if result.budget_limited:
            message += (
                f"; these trades exceed the rebalancing budget of {result.rebalancing_budget:,.2f} "
                "because the constraints cannot be met within it"
            )
        elif result.iteration_limited:
            message += "; search stopped at the iteration limit"
        return message
