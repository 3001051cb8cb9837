"""
Validation layer for engine requests and stand-alone business rules.
"""

from .base import (
    ValidationSeverity,
    ValidationIssue,
    ValidationResult,
    get_field,
    has_field,
    is_non_empty_string,
    check_number_in_range,
    check_date
)
from .request_validators import (
    InvestmentApplicationValidator,
    PortfolioInvestmentValidator,
    PortfolioRecordValidator,
    RiskAssessmentRequestValidator,
    ReturnCalculationRequestValidator,
    StressTestRequestValidator,
    OptimizationRequestValidator,
    PortfolioAnalysisRequestValidator
)
from .business_rules import (
    STATUS_TRANSITIONS,
    allowed_transitions,
    validate_status_transition,
    validate_investment_constraints,
    validate_date_range,
    validate_pagination,
    validate_enum_value,
    sanitize_input,
    validate_financial_calculation
)
from .gateway import (
    ValidationGateway,
    get_validation_gateway,
    reset_validation_gateway,
    validate_request,
    parse_request
)

__all__ = [
    "ValidationSeverity", "ValidationIssue", "ValidationResult",
    "get_field", "has_field", "is_non_empty_string", "check_number_in_range", "check_date",
    "InvestmentApplicationValidator", "PortfolioInvestmentValidator", "PortfolioRecordValidator",
    "RiskAssessmentRequestValidator", "ReturnCalculationRequestValidator", "StressTestRequestValidator",
    "OptimizationRequestValidator", "PortfolioAnalysisRequestValidator",
    "STATUS_TRANSITIONS", "allowed_transitions", "validate_status_transition",
    "validate_investment_constraints", "validate_date_range", "validate_pagination",
    "validate_enum_value", "sanitize_input", "validate_financial_calculation",
    "ValidationGateway", "get_validation_gateway", "reset_validation_gateway",
    "validate_request", "parse_request",
]
