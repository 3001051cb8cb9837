"""
Error handling infrastructure package.
"""

from .error_codes import ErrorCode

from .exceptions import (
    PortfolioEngineError,
    ErrorSeverity,
    ErrorCategory,
    ValidationError,
    RequestValidationError,
    CalculationError,
    InsufficientCashFlowsError,
    ConfigurationError,
    BusinessLogicError,
    InfeasibleAllocationError,
    OperationCancelledError
)

from .error_handler import (
    ErrorTracker,
    ErrorHandler,
    get_error_handler,
    handle_errors
)

__all__ = [
    # Codes
    "ErrorCode",

    # Exceptions
    "PortfolioEngineError",
    "ErrorSeverity",
    "ErrorCategory",
    "ValidationError",
    "RequestValidationError",
    "CalculationError",
    "InsufficientCashFlowsError",
    "ConfigurationError",
    "BusinessLogicError",
    "InfeasibleAllocationError",
    "OperationCancelledError",

    # Error handling
    "ErrorTracker",
    "ErrorHandler",
    "get_error_handler",
    "handle_errors"
]
