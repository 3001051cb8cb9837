"""
Portfolio analysis use case.
Combines return metrics with a risk assessment over a lookback window.
"""

from datetime import datetime
from typing import Any, Optional

import pandas as pd

from .base import EndpointUseCase, EngineResponse, PortfolioInput
from ...data.models.portfolios import Portfolio
from ...data.models.requests import RequestKind, Timeframe
from ...data.models.results import PortfolioAnalysis
from ...domain.services.return_calculator import ReturnCalculator
from ...domain.services.risk_assessor import RiskAssessor
from ...domain.value_objects.cancellation import CancellationToken
from ...infrastructure.error_handling import PortfolioEngineError

TIMEFRAME_MONTHS = {
    Timeframe.ONE_MONTH: 1,
    Timeframe.THREE_MONTHS: 3,
    Timeframe.SIX_MONTHS: 6,
    Timeframe.ONE_YEAR: 12,
    Timeframe.TWO_YEARS: 24,
    Timeframe.FIVE_YEARS: 60,
}


class AnalyzePortfolioUseCase(EndpointUseCase):
    """Use case for the portfolio-analysis endpoint."""

    request_kind = RequestKind.PORTFOLIO_ANALYSIS

    def __init__(
        self,
        calculator: Optional[ReturnCalculator] = None,
        risk_assessor: Optional[RiskAssessor] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.calculator = calculator or ReturnCalculator()
        self.risk_assessor = risk_assessor or RiskAssessor(return_calculator=self.calculator)

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

        windowed = self.window(snapshot, request.timeframe, as_of)
        try:
            with self._timed("analyze_portfolio", portfolio_id=snapshot.id, timeframe=request.timeframe.value):
                returns = self.calculator.calculate_portfolio_returns(snapshot, as_of=as_of, token=token)
                risk = self.risk_assessor.assess(windowed, as_of=as_of)
        except PortfolioEngineError as e:
            return self._error_response(e)

        analysis = PortfolioAnalysis(
            portfolio_id=snapshot.id,
            timeframe=request.timeframe,
            returns=returns,
            risk=risk,
            observations=len(windowed.value_history),
            analyzed_at=as_of
        )
        return EngineResponse(200, self.formatter.success(analysis))

    @staticmethod
    def window(portfolio: Portfolio, timeframe: Timeframe, as_of: datetime) -> Portfolio:
        """Copy of the portfolio whose value history starts at the timeframe boundary."""
        start = (pd.Timestamp(as_of) - pd.DateOffset(months=TIMEFRAME_MONTHS[timeframe])).date()
        history = [point for point in portfolio.value_history if start <= point.valued_on <= as_of.date()]
        return portfolio.model_copy(update={"value_history": history})
