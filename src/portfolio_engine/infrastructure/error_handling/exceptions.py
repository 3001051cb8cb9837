"""
Exception hierarchy for the portfolio engine.

Each exception carries a stable ``ErrorCode`` value, a category used for
tracking and a severity that decides the log level. Endpoint use cases map
the hierarchy onto responses: validation errors become 400, business rule
violations 422, anything else 500. Cancellation is never mapped.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .error_codes import ErrorCode


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    VALIDATION_ERROR = "validation_error"
    BUSINESS_RULE_VIOLATION = "business_rule_violation"
    NUMERICAL_NON_CONVERGENCE = "numerical_non_convergence"
    INFEASIBILITY = "infeasibility"
    CALCULATION_ERROR = "calculation_error"
    CONFIGURATION_ERROR = "configuration_error"
    CANCELLATION = "cancellation"
    SYSTEM_ERROR = "system_error"


def _stringify(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class PortfolioEngineError(Exception):
    """Base exception class for the portfolio engine."""

    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_category: ErrorCategory = ErrorCategory.SYSTEM_ERROR
    default_severity: ErrorSeverity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        error_code: Optional[Union[ErrorCode, str]] = None,
        severity: Optional[ErrorSeverity] = None,
        category: Optional[ErrorCategory] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        code = error_code or self.default_code
        self.message = message
        self.error_code = code.value if isinstance(code, ErrorCode) else code
        self.severity = severity or self.default_severity
        self.category = category or self.default_category
        self.context = dict(context or {})
        self.timestamp = datetime.utcnow()
        self.error_id = f"{self.category.value}_{self.timestamp:%Y%m%d%H%M%S}_{uuid.uuid4().hex[:8]}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_id": self.error_id,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat()
        }


class ValidationError(PortfolioEngineError):
    """A single input value broke a validation rule."""

    default_code = ErrorCode.VALIDATION_FAILED
    default_category = ErrorCategory.VALIDATION_ERROR
    default_severity = ErrorSeverity.LOW

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        field_value: Any = None,
        validation_rule: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        context.update(
            field_name=field_name,
            field_value=_stringify(field_value),
            validation_rule=validation_rule
        )
        super().__init__(message, context=context, **kwargs)


class RequestValidationError(ValidationError):
    """
    A request payload failed the validation gateway.

    Carries the complete ValidationResult so the caller can report every
    violation at once.
    """

    def __init__(self, message: str, validation_result: Any, request_kind: Optional[str] = None, **kwargs):
        self.validation_result = validation_result
        context = kwargs.pop("context", {})
        context.update(
            request_kind=request_kind,
            error_count=len(getattr(validation_result, "errors", []))
        )
        super().__init__(message, validation_rule="request_contract", context=context, **kwargs)


class CalculationError(PortfolioEngineError):
    default_code = ErrorCode.CALCULATION_ERROR
    default_category = ErrorCategory.CALCULATION_ERROR
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        calculation_type: Optional[str] = None,
        input_data: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        context.update(calculation_type=calculation_type, input_data=input_data)
        super().__init__(message, context=context, **kwargs)


class InsufficientCashFlowsError(CalculationError):
    """IRR needs at least two dated cash flows."""

    default_code = ErrorCode.INSUFFICIENT_CASH_FLOWS
    default_category = ErrorCategory.NUMERICAL_NON_CONVERGENCE

    def __init__(self, message: str, flow_count: int = 0, **kwargs):
        context = kwargs.pop("context", {})
        context["flow_count"] = flow_count
        super().__init__(message, calculation_type="irr", context=context, **kwargs)


class ConfigurationError(PortfolioEngineError):
    default_code = ErrorCode.CONFIGURATION_ERROR
    default_category = ErrorCategory.CONFIGURATION_ERROR

    def __init__(self, message: str, config_key: Optional[str] = None, config_value: Any = None, **kwargs):
        context = kwargs.pop("context", {})
        context.update(config_key=config_key, config_value=_stringify(config_value))
        super().__init__(message, context=context, **kwargs)


class BusinessLogicError(PortfolioEngineError):
    """Well-formed input that the engine cannot act on."""

    default_code = ErrorCode.BUSINESS_RULE_VIOLATION
    default_category = ErrorCategory.BUSINESS_RULE_VIOLATION
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        rule_name: Optional[str] = None,
        rule_description: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        context.update(rule_name=rule_name, rule_description=rule_description)
        super().__init__(message, context=context, **kwargs)


class InfeasibleAllocationError(BusinessLogicError):
    """The optimizer's constraints leave no feasible allocation."""

    default_code = ErrorCode.INFEASIBLE
    default_category = ErrorCategory.INFEASIBILITY

    def __init__(self, message: str, reasons: Optional[List[str]] = None, **kwargs):
        self.reasons = list(reasons or [])
        context = kwargs.pop("context", {})
        context["reasons"] = list(self.reasons)
        super().__init__(message, rule_name="feasible_region", context=context, **kwargs)


class OperationCancelledError(PortfolioEngineError):
    """The caller abandoned a long-running computation."""

    default_code = ErrorCode.OPERATION_CANCELLED
    default_category = ErrorCategory.CANCELLATION
    default_severity = ErrorSeverity.LOW

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        context["operation"] = operation
        super().__init__(message, context=context, **kwargs)
