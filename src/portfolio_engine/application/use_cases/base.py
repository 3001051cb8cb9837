"""
Shared plumbing for endpoint use cases.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from ...data.models.portfolios import Portfolio
from ...data.models.requests import RequestKind
from ...data.validators.gateway import ValidationGateway
from ...infrastructure.error_handling import (
    BusinessLogicError,
    ErrorCode,
    OperationCancelledError,
    PortfolioEngineError,
    RequestValidationError,
    ValidationError
)
from ...infrastructure.monitoring import get_logger, get_performance_logger
from ...presentation.formatters.response_formatter import ResponseFormatter

PortfolioInput = Union[Portfolio, Dict[str, Any]]


@dataclass
class EngineResponse:
    """Status code plus JSON body, the shape every endpoint returns."""
    status_code: int
    body: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class EndpointUseCase:
    """
    Base class for request/response use cases.

    Validation always runs first; a failing payload never reaches a service.
    """

    request_kind: RequestKind = None

    def __init__(self, gateway: Optional[ValidationGateway] = None, formatter: Optional[ResponseFormatter] = None):
        self.gateway = gateway or ValidationGateway()
        self.formatter = formatter or ResponseFormatter()
        self.logger = get_logger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        self.performance_logger = get_performance_logger()

    def _parse_request(self, payload: Any, as_of: Optional[datetime] = None) -> Tuple[Any, Optional[EngineResponse]]:
        try:
            return self.gateway.parse(self.request_kind, payload, as_of), None
        except RequestValidationError as e:
            self.logger.info(
                "Request rejected",
                request_kind=self.request_kind.value,
                codes=e.validation_result.codes
            )
            return None, EngineResponse(400, self.formatter.validation_failure(e.validation_result))

    def _load_portfolio(self, portfolio: PortfolioInput) -> Tuple[Optional[Portfolio], Optional[EngineResponse]]:
        """Accept a Portfolio model or a raw portfolio record."""
        if isinstance(portfolio, Portfolio):
            return portfolio, None
        try:
            return self.gateway.parse(RequestKind.PORTFOLIO_RECORD, portfolio), None
        except RequestValidationError as e:
            result = type(e.validation_result)().merge(e.validation_result, prefix="portfolio")
            return None, EngineResponse(400, self.formatter.validation_failure(result))

    def _check_portfolio_id(self, requested_id: str, portfolio: Portfolio) -> Optional[EngineResponse]:
        if requested_id == portfolio.id:
            return None
        return EngineResponse(400, self.formatter.field_error(
            ErrorCode.PORTFOLIO_MISMATCH,
            f"Request targets portfolio {requested_id} but snapshot {portfolio.id} was supplied",
            "portfolioId"
        ))

    def _prepare(
        self,
        payload: Any,
        portfolio: PortfolioInput,
        as_of: Optional[datetime] = None
    ) -> Tuple[Any, Optional[Portfolio], Optional[EngineResponse]]:
        """Parse the request and the snapshot and check they belong together."""
        request, failure = self._parse_request(payload, as_of)
        if failure:
            return None, None, failure

        snapshot, failure = self._load_portfolio(portfolio)
        if failure:
            return None, None, failure

        failure = self._check_portfolio_id(request.portfolio_id, snapshot)
        if failure:
            return None, None, failure

        return request, snapshot, None

    @contextmanager
    def _timed(self, operation: str, **context):
        started = time.perf_counter()
        try:
            yield
        finally:
            self.performance_logger.log_timing(operation, (time.perf_counter() - started) * 1000, **context)

    def _error_response(self, error: PortfolioEngineError) -> EngineResponse:
        """Map a service exception onto a response; cancellation is never mapped."""
        if isinstance(error, OperationCancelledError):
            raise error
        if isinstance(error, ValidationError):
            return EngineResponse(400, self.formatter.field_error(
                error.error_code, error.message, error.context.get("field_name")
            ))
        if isinstance(error, BusinessLogicError):
            return EngineResponse(422, self.formatter.engine_error(error))
        self.logger.error("Engine failure", error_id=error.error_id, error_code=error.error_code)
        return EngineResponse(500, self.formatter.engine_error(error))
