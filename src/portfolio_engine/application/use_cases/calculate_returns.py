"""
Return calculation use case.
"""

from datetime import datetime
from typing import Any, Optional

from .base import EndpointUseCase, EngineResponse
from ...data.models.requests import RequestKind
from ...domain.services.return_calculator import ReturnCalculator
from ...domain.value_objects.cancellation import CancellationToken
from ...infrastructure.error_handling import PortfolioEngineError


class CalculateReturnsUseCase(EndpointUseCase):
    """
    Use case for the returns/calculate endpoint.

    The request carries its own investments, so no portfolio snapshot is
    involved. Per-investment numerical failures come back as issues inside
    a 200 body.
    """

    request_kind = RequestKind.RETURN_CALCULATION

    def __init__(self, calculator: Optional[ReturnCalculator] = None, **kwargs):
        super().__init__(**kwargs)
        self.calculator = calculator or ReturnCalculator()

    def execute(
        self,
        payload: Any,
        as_of: Optional[datetime] = None,
        token: Optional[CancellationToken] = None
    ) -> EngineResponse:
        as_of = as_of or datetime.utcnow()
        request, failure = self._parse_request(payload, as_of)
        if failure:
            return failure

        try:
            with self._timed(
                "calculate_returns",
                calculation_type=request.calculation_type.value,
                investments=len(request.investments)
            ):
                result = self.calculator.batch_calculate(request, as_of=as_of, token=token)
        except PortfolioEngineError as e:
            return self._error_response(e)

        return EngineResponse(200, self.formatter.success(result))
