"""
Investment application use case.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Union

from .base import EndpointUseCase, EngineResponse, PortfolioInput
from ...data.models.portfolios import RiskLevel
from ...data.models.requests import ApplicationStatus, RequestKind
from ...data.models.results import ApplicationReceipt
from ...data.validators.business_rules import validate_investment_constraints
from ...domain.services.diversification_enforcer import DiversificationEnforcer
from ...infrastructure.error_handling import PortfolioEngineError


class SubmitInvestmentApplicationUseCase(EndpointUseCase):
    """
    Use case for the investment-applications endpoint.

    Workflow:
    1. Validate the application payload
    2. Check the amount against project limits, when the caller supplies them
    3. Run the diversification check against the investor's portfolio

    The diversification outcome is advisory: a breach is reported in the
    receipt but never rejects the application.
    """

    request_kind = RequestKind.INVESTMENT_APPLICATION

    def __init__(self, enforcer: Optional[DiversificationEnforcer] = None, **kwargs):
        super().__init__(**kwargs)
        self.enforcer = enforcer or DiversificationEnforcer()

    def execute(
        self,
        payload: Any,
        portfolio: Optional[PortfolioInput] = None,
        project_risk_level: Optional[Union[RiskLevel, str]] = None,
        project_limits: Optional[Dict[str, float]] = None,
        as_of: Optional[datetime] = None
    ) -> EngineResponse:
        """
        Args:
            payload: Raw application body
            portfolio: Investor portfolio snapshot, enables the diversification check
            project_risk_level: Risk level of the target project, MEDIUM when unknown
            project_limits: Optional ``min_investment``, ``max_investment`` and
                ``remaining_capacity`` of the target project
        """
        as_of = as_of or datetime.utcnow()
        request, failure = self._parse_request(payload, as_of)
        if failure:
            return failure

        if project_limits:
            limits = validate_investment_constraints(request.amount, **project_limits)
            if not limits.is_valid:
                return EngineResponse(400, self.formatter.validation_failure(limits))

        diversification = None
        if portfolio is not None:
            snapshot, failure = self._load_portfolio(portfolio)
            if failure:
                return failure
            risk_level = RiskLevel(project_risk_level) if project_risk_level else RiskLevel.MEDIUM
            try:
                diversification = self.enforcer.check_candidate(snapshot, request.amount, risk_level)
            except PortfolioEngineError as e:
                return self._error_response(e)

            if not diversification.is_within_limits:
                self.logger.warning(
                    "Application breaches diversification limits",
                    portfolio_id=snapshot.id,
                    project_id=request.project_id,
                    codes=diversification.codes
                )

        receipt = ApplicationReceipt(
            id=str(uuid.uuid4()),
            project_id=request.project_id,
            amount=request.amount,
            currency=request.currency,
            status=ApplicationStatus.PENDING,
            submitted_at=as_of,
            diversification=diversification
        )
        self.logger.info("Investment application accepted", application_id=receipt.id, project_id=receipt.project_id)
        return EngineResponse(200, self.formatter.success(receipt))
