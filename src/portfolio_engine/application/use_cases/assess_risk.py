"""
Risk assessment use case.
"""

from datetime import datetime
from typing import Any, Optional

from .base import EndpointUseCase, EngineResponse, PortfolioInput
from ...data.models.requests import RequestKind
from ...domain.services.risk_assessor import RiskAssessor
from ...infrastructure.error_handling import PortfolioEngineError


class AssessRiskUseCase(EndpointUseCase):
    """Use case for the risk-assessment endpoint."""

    request_kind = RequestKind.RISK_ASSESSMENT

    def __init__(self, risk_assessor: Optional[RiskAssessor] = None, **kwargs):
        super().__init__(**kwargs)
        self.risk_assessor = risk_assessor or RiskAssessor()

    def execute(self, payload: Any, portfolio: PortfolioInput, as_of: Optional[datetime] = None) -> EngineResponse:
        as_of = as_of or datetime.utcnow()
        request, snapshot, failure = self._prepare(payload, portfolio, as_of)
        if failure:
            return failure

        try:
            with self._timed("assess_risk", portfolio_id=snapshot.id):
                metrics = self.risk_assessor.assess(snapshot, request.options, as_of=as_of)
        except PortfolioEngineError as e:
            return self._error_response(e)

        self.logger.info(
            "Risk assessed",
            portfolio_id=snapshot.id,
            risk_score=metrics.risk_score,
            risk_level=metrics.risk_level.value,
            issues=[issue.code for issue in metrics.issues]
        )
        return EngineResponse(200, self.formatter.success(metrics))
