"""
Validation gateway: single entry point that checks raw payloads by request kind
and builds the typed request models.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .base import ValidationResult
from .request_validators import (
    InvestmentApplicationValidator,
    PortfolioRecordValidator,
    RiskAssessmentRequestValidator,
    ReturnCalculationRequestValidator,
    StressTestRequestValidator,
    OptimizationRequestValidator,
    PortfolioAnalysisRequestValidator
)
from ..models.portfolios import Portfolio
from ..models.requests import (
    RequestKind,
    CreateInvestmentApplicationRequest,
    OptimizationRequest,
    RiskAssessmentRequest,
    StressTestRequest,
    ReturnCalculationRequest,
    PortfolioAnalysisRequest
)
from ...application.config.settings import (
    OptimizerConfig,
    ValidationConfig,
    get_optimizer_config,
    get_validation_config
)
from ...infrastructure.error_handling import ErrorCode, RequestValidationError


class ValidationGateway:
    """
    Routes every request kind to its validator and its model.

    The registry is checked against RequestKind at import time, so adding a
    kind without a validator fails immediately.
    """

    REQUEST_MODELS: Dict[RequestKind, Type[BaseModel]] = {
        RequestKind.INVESTMENT_APPLICATION: CreateInvestmentApplicationRequest,
        RequestKind.PORTFOLIO_RECORD: Portfolio,
        RequestKind.OPTIMIZATION: OptimizationRequest,
        RequestKind.RISK_ASSESSMENT: RiskAssessmentRequest,
        RequestKind.STRESS_TEST: StressTestRequest,
        RequestKind.RETURN_CALCULATION: ReturnCalculationRequest,
        RequestKind.PORTFOLIO_ANALYSIS: PortfolioAnalysisRequest,
    }

    def __init__(
        self,
        config: Optional[ValidationConfig] = None,
        optimizer_config: Optional[OptimizerConfig] = None
    ):
        self.config = config or get_validation_config()
        self.optimizer_config = optimizer_config or get_optimizer_config()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

        self._validators: Dict[RequestKind, Callable[[Any, Optional[datetime]], ValidationResult]] = {
            RequestKind.INVESTMENT_APPLICATION: lambda p, as_of: InvestmentApplicationValidator.validate(p, self.config),
            RequestKind.PORTFOLIO_RECORD: lambda p, as_of: PortfolioRecordValidator.validate(p, self.config),
            RequestKind.OPTIMIZATION: lambda p, as_of: OptimizationRequestValidator.validate(p, self.optimizer_config),
            RequestKind.RISK_ASSESSMENT: lambda p, as_of: RiskAssessmentRequestValidator.validate(p, self.config),
            RequestKind.STRESS_TEST: lambda p, as_of: StressTestRequestValidator.validate(p),
            RequestKind.RETURN_CALCULATION: (
                lambda p, as_of: ReturnCalculationRequestValidator.validate(p, self.config, as_of)
            ),
            RequestKind.PORTFOLIO_ANALYSIS: lambda p, as_of: PortfolioAnalysisRequestValidator.validate(p, self.config),
        }

    def validate(self, kind: RequestKind, payload: Any, as_of: Optional[datetime] = None) -> ValidationResult:
        """Validate a raw payload; never raises for contract violations."""
        kind = RequestKind(kind)
        result = self._validators[kind](payload, as_of)

        if not result.is_valid:
            self.logger.info(
                f"{kind.value} payload rejected",
                extra={"request_kind": kind.value, "codes": result.codes}
            )
        return result

    def parse(self, kind: RequestKind, payload: Any, as_of: Optional[datetime] = None) -> BaseModel:
        """Validate then build the request model, raising RequestValidationError on failure."""
        kind = RequestKind(kind)
        result = self.validate(kind, payload, as_of)
        if not result.is_valid:
            raise RequestValidationError(
                f"{kind.value} request failed validation: {result.summary()}",
                result,
                request_kind=kind.value
            )

        try:
            return self.REQUEST_MODELS[kind].model_validate(payload)
        except PydanticValidationError as e:
            # Contract checks passed but the model still refused the payload
            fallback = ValidationResult()
            for error in e.errors():
                location = ".".join(str(part) for part in error.get("loc", ()))
                fallback.add_error(ErrorCode.INVALID_PAYLOAD, error.get("msg", "Invalid value"), location or None)
            raise RequestValidationError(
                f"{kind.value} request could not be parsed",
                fallback,
                request_kind=kind.value
            ) from e


_gateway: Optional[ValidationGateway] = None


def get_validation_gateway() -> ValidationGateway:
    global _gateway
    if _gateway is None:
        _gateway = ValidationGateway()
    return _gateway


def reset_validation_gateway():
    """Drop the cached gateway so the next call picks up fresh configuration."""
    global _gateway
    _gateway = None


def validate_request(kind: RequestKind, payload: Any, as_of: Optional[datetime] = None) -> ValidationResult:
    return get_validation_gateway().validate(kind, payload, as_of)


def parse_request(kind: RequestKind, payload: Any, as_of: Optional[datetime] = None) -> BaseModel:
    return get_validation_gateway().parse(kind, payload, as_of)
