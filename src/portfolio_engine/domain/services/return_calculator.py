"""
Return calculations: absolute, annualized (CAGR), IRR and Sharpe ratio.
"""

import logging
import math
import time
from datetime import datetime
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import optimize

from ..value_objects.asset_model import AssetModel
from ..value_objects.cancellation import CancellationToken
from ...application.config.settings import ReturnsConfig, get_returns_config
from ...data.models.portfolios import Portfolio
from ...data.models.requests import (
    CalculationType,
    CashFlow,
    InvestmentReturnInput,
    ReturnCalculationRequest
)
from ...data.models.results import (
    CalculationIssue,
    IRRResult,
    InvestmentReturnResult,
    PortfolioReturnMetrics,
    ReturnCalculationResult,
    ReturnSummary,
    SharpeResult
)
from ...infrastructure.error_handling import (
    ErrorCode,
    InsufficientCashFlowsError,
    handle_errors
)

DatedAmount = Tuple[datetime, float]

IRR_BRACKET_LOW = -0.9999
IRR_BRACKET_HIGH = 1.0
IRR_BRACKET_LIMIT = 1e6


class ReturnCalculator:
    """
    Return metrics for single investments and whole portfolios.

    Features:
    - Absolute and percentage return
    - Annualized (compound) return with a minimum holding period
    - IRR via Newton iteration with a scipy bisection fallback
    - Sharpe ratio with an explicit undefined result for zero volatility
    """

    def __init__(self, config: Optional[ReturnsConfig] = None):
        self.config = config or get_returns_config()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    # Simple returns

    @staticmethod
    def absolute_return(amount: float, current_value: float) -> float:
        return current_value - amount

    @staticmethod
    def return_percentage(amount: float, current_value: float) -> float:
        if amount <= 0:
            return 0.0
        return (current_value - amount) / amount * 100

    def annualized_return(self, amount: float, current_value: float, start: datetime, as_of: datetime) -> float:
        """
        Compound annual growth rate between ``start`` and ``as_of``.

        Holding periods shorter than ``min_holding_days`` are floored so very
        young positions do not explode. An unchanged value is exactly 0.
        """
        if current_value == amount:
            return 0.0
        if amount <= 0:
            return 0.0

        days = max((as_of - start).total_seconds() / 86400, self.config.min_holding_days)
        years = days / self.config.days_per_year
        growth = current_value / amount
        if growth <= 0:
            return -1.0
        return growth ** (1 / years) - 1

    # IRR

    @handle_errors(operation_name="calculate_irr")
    def irr(
        self,
        cash_flows: Sequence[Union[CashFlow, DatedAmount]],
        token: Optional[CancellationToken] = None
    ) -> IRRResult:
        """
        Solve for the rate at which the dated cash flows have zero NPV.

        Args:
            cash_flows: CashFlow models or (date, signed amount) pairs
            token: Optional cancellation token polled every iteration

        Returns:
            IRRResult; ``rate`` is None when no root could be found

        Raises:
            InsufficientCashFlowsError: fewer than two flows
            OperationCancelledError: the token was cancelled
        """
        flows = self._normalize_flows(cash_flows)
        if len(flows) < 2:
            raise InsufficientCashFlowsError(
                "IRR requires at least two cash flows",
                flow_count=len(flows)
            )

        token = token or CancellationToken.none()
        origin = flows[0][0]
        times = np.array(
            [(d - origin).total_seconds() / 86400 / self.config.irr_days_per_year for d, _ in flows]
        )
        amounts = np.array([a for _, a in flows], dtype=float)
        deadline = time.monotonic() + self.config.irr_max_seconds

        if not (amounts > 0).any() or not (amounts < 0).any():
            return IRRResult(
                rate=None, converged=False, iterations=0, method="none",
                code=ErrorCode.IRR_NOT_CONVERGED.value,
                message="Cash flows need both inflows and outflows"
            )

        def npv(rate: float) -> float:
            with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
                return float(np.sum(amounts / np.power(1 + rate, times)))

        def npv_derivative(rate: float) -> float:
            with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
                return float(np.sum(-times * amounts / np.power(1 + rate, times + 1)))

        rate = self.config.irr_initial_guess
        iterations = 0
        for iterations in range(1, self.config.irr_max_iterations + 1):
            token.raise_if_cancelled("irr")
            if time.monotonic() > deadline:
                break

            value = npv(rate)
            slope = npv_derivative(rate)
            if not math.isfinite(value) or not math.isfinite(slope) or slope == 0:
                break
            if abs(value) < self.config.irr_tolerance:
                return IRRResult(rate=rate, converged=True, iterations=iterations, method="newton")

            next_rate = rate - value / slope
            if next_rate <= -1:
                next_rate = (rate - 1) / 2
            if abs(next_rate - rate) < self.config.irr_tolerance:
                return IRRResult(rate=next_rate, converged=True, iterations=iterations, method="newton")
            rate = next_rate

        self.logger.debug(f"Newton IRR did not converge after {iterations} iterations, trying bisection")
        return self._bisect_irr(npv, token, deadline, iterations)

    def _bisect_irr(self, npv, token: CancellationToken, deadline: float, newton_iterations: int) -> IRRResult:
        def polled_npv(rate: float) -> float:
            token.raise_if_cancelled("irr")
            if time.monotonic() > deadline:
                raise TimeoutError("IRR time budget exhausted")
            return npv(rate)

        low, high = IRR_BRACKET_LOW, IRR_BRACKET_HIGH
        low_value = npv(low)
        while math.isfinite(low_value) and np.sign(npv(high)) == np.sign(low_value) and high < IRR_BRACKET_LIMIT:
            high *= 2

        high_value = npv(high)
        if not (math.isfinite(low_value) and math.isfinite(high_value)) or np.sign(low_value) == np.sign(high_value):
            return self._not_converged(newton_iterations, "No sign change found for IRR bracket")

        try:
            root, info = optimize.bisect(
                polled_npv, low, high,
                xtol=self.config.irr_tolerance,
                maxiter=self.config.irr_bisection_max_iterations,
                full_output=True,
                disp=False
            )
        except TimeoutError:
            return self._not_converged(newton_iterations, "IRR time budget exhausted")

        if not info.converged:
            return self._not_converged(newton_iterations + info.iterations, "Bisection did not converge")

        return IRRResult(
            rate=float(root), converged=True,
            iterations=newton_iterations + info.iterations, method="bisection"
        )

    @staticmethod
    def _not_converged(iterations: int, message: str) -> IRRResult:
        return IRRResult(
            rate=None, converged=False, iterations=iterations, method="bisection",
            code=ErrorCode.IRR_NOT_CONVERGED.value, message=message
        )

    @staticmethod
    def _normalize_flows(cash_flows: Sequence[Union[CashFlow, DatedAmount]]) -> List[DatedAmount]:
        flows = []
        for flow in cash_flows:
            if isinstance(flow, CashFlow):
                flows.append((flow.occurred_at, flow.signed_amount))
            else:
                flows.append((flow[0], float(flow[1])))
        return sorted(flows, key=lambda item: item[0])

    # Sharpe

    def sharpe_ratio(
        self,
        annualized_return: float,
        benchmark_rate: float,
        period_returns: Optional[Sequence[float]] = None,
        periods_per_year: Optional[int] = None,
        volatility: Optional[float] = None
    ) -> SharpeResult:
        """
        Excess return per unit of annualized volatility.

        Volatility is taken as given or derived from ``period_returns`` (sample
        standard deviation scaled by the square root of periods per year).
        """
        if volatility is None and period_returns is not None and len(period_returns) >= 2:
            periods = periods_per_year or self.config.default_periods_per_year
            volatility = float(np.std(np.asarray(period_returns, dtype=float), ddof=1) * math.sqrt(periods))

        if volatility is None or not math.isfinite(volatility) or volatility <= 0:
            return SharpeResult(
                ratio=None,
                annualized_return=annualized_return,
                benchmark_rate=benchmark_rate,
                volatility=volatility,
                code=ErrorCode.SHARPE_UNDEFINED.value
            )

        return SharpeResult(
            ratio=(annualized_return - benchmark_rate) / volatility,
            annualized_return=annualized_return,
            benchmark_rate=benchmark_rate,
            volatility=volatility
        )

    # Allocations

    @staticmethod
    def expected_allocation_return(
        weights: Sequence[float],
        model: AssetModel,
        cash_weight: float = 0.0,
        cash_rate: float = 0.0
    ) -> float:
        """Expected annual return of a weight vector under the asset model."""
        return model.portfolio_return(weights, cash_weight, cash_rate)

    # Aggregates

    @handle_errors(operation_name="calculate_portfolio_returns")
    def calculate_portfolio_returns(
        self,
        portfolio: Portfolio,
        as_of: Optional[datetime] = None,
        token: Optional[CancellationToken] = None
    ) -> PortfolioReturnMetrics:
        """Portfolio-level return figures; each holding is treated as one outflow."""
        as_of = as_of or datetime.utcnow()
        holdings = portfolio.holdings

        annualized = None
        start = portfolio.earliest_investment_date
        if start is not None:
            annualized = self.annualized_return(portfolio.total_invested, portfolio.total_value, start, as_of)

        irr_result = None
        if holdings:
            flows: List[DatedAmount] = [(h.invested_at, -h.amount) for h in holdings]
            flows.append((as_of, portfolio.holdings_value))
            irr_result = self.irr(flows, token)

        return PortfolioReturnMetrics(
            total_invested=portfolio.total_invested,
            total_value=portfolio.total_value,
            absolute_return=self.absolute_return(portfolio.total_invested, portfolio.total_value),
            return_percentage=self.return_percentage(portfolio.total_invested, portfolio.total_value),
            annualized_return=annualized,
            irr=irr_result
        )

    @handle_errors(operation_name="batch_calculate_returns")
    def batch_calculate(
        self,
        request: ReturnCalculationRequest,
        as_of: Optional[datetime] = None,
        token: Optional[CancellationToken] = None
    ) -> ReturnCalculationResult:
        """Per-investment metrics for a validated returns/calculate request."""
        as_of = as_of or datetime.utcnow()
        results = [
            self._calculate_single(index, investment, request, as_of, token)
            for index, investment in enumerate(request.investments)
        ]

        total_invested = sum(inv.amount for inv in request.investments)
        total_current = sum(inv.current_value for inv in request.investments)
        earliest = min(inv.investment_date for inv in request.investments)
        summary = ReturnSummary(
            total_invested=total_invested,
            total_current_value=total_current,
            total_absolute_return=total_current - total_invested,
            total_return_percentage=self.return_percentage(total_invested, total_current),
            annualized_return=self.annualized_return(total_invested, total_current, earliest, as_of)
        )

        self.logger.info(
            f"Calculated {request.calculation_type.value} returns for {len(results)} investments"
        )
        return ReturnCalculationResult(
            calculation_type=request.calculation_type,
            results=results,
            summary=summary,
            calculated_at=as_of
        )

    def _calculate_single(
        self,
        index: int,
        investment: InvestmentReturnInput,
        request: ReturnCalculationRequest,
        as_of: datetime,
        token: Optional[CancellationToken]
    ) -> InvestmentReturnResult:
        calc_type = request.calculation_type
        result = InvestmentReturnResult(
            index=index,
            reference=investment.id,
            amount=investment.amount,
            current_value=investment.current_value,
            absolute_return=self.absolute_return(investment.amount, investment.current_value),
            return_percentage=self.return_percentage(investment.amount, investment.current_value)
        )

        if calc_type == CalculationType.ABSOLUTE:
            return result

        result.annualized_return = self.annualized_return(
            investment.amount, investment.current_value, investment.investment_date, as_of
        )

        if calc_type == CalculationType.IRR:
            if len(investment.cash_flows) < 2:
                result.issues.append(CalculationIssue(
                    code=ErrorCode.INSUFFICIENT_CASH_FLOWS.value,
                    message="IRR requires at least two cash flows",
                    metric="irr"
                ))
            else:
                result.irr = self.irr(investment.cash_flows, token)
                if not result.irr.converged:
                    result.issues.append(CalculationIssue(
                        code=ErrorCode.IRR_NOT_CONVERGED.value,
                        message=result.irr.message or "IRR did not converge",
                        metric="irr"
                    ))

        if calc_type == CalculationType.SHARPE:
            result.sharpe = self.sharpe_ratio(
                result.annualized_return,
                request.benchmark_rate or 0.0,
                period_returns=investment.period_returns,
                periods_per_year=investment.periods_per_year
            )
            if not result.sharpe.is_defined:
                result.issues.append(CalculationIssue(
                    code=ErrorCode.SHARPE_UNDEFINED.value,
                    message="Sharpe ratio is undefined without positive volatility",
                    metric="sharpe"
                ))

        return result
