"""
Error handling tests: exception hierarchy, tracker and the handle_errors
decorator.
"""

import logging

import pytest

from portfolio_engine.infrastructure.error_handling import (
    BusinessLogicError,
    CalculationError,
    ErrorCategory,
    ErrorCode,
    ErrorHandler,
    ErrorSeverity,
    ErrorTracker,
    InfeasibleAllocationError,
    InsufficientCashFlowsError,
    OperationCancelledError,
    PortfolioEngineError,
    RequestValidationError,
    ValidationError,
    get_error_handler,
    handle_errors
)
from portfolio_engine.data.validators import ValidationResult


class TestExceptions:

    def test_error_code_enum_is_stored_as_string(self):
        error = PortfolioEngineError("boom", error_code=ErrorCode.CALCULATION_ERROR)
        assert error.error_code == "CALCULATION_ERROR"

    def test_to_dict(self):
        payload = BusinessLogicError("limit", rule_name="cap", error_code=ErrorCode.NO_HOLDINGS).to_dict()

        assert payload["error_code"] == "NO_HOLDINGS"
        assert payload["category"] == "business_rule_violation"
        assert payload["context"]["rule_name"] == "cap"
        assert payload["error_id"].startswith("business_rule_violation_")

    def test_validation_error_context(self):
        error = ValidationError("bad", field_name="amount", field_value=-1)

        assert error.error_code == "VALIDATION_FAILED"
        assert error.context["field_name"] == "amount"
        assert error.context["field_value"] == "-1"
        assert error.severity == ErrorSeverity.LOW

    def test_request_validation_error_keeps_result(self):
        result = ValidationResult().add_error(ErrorCode.INVALID_AMOUNT, "bad", "amount")
        error = RequestValidationError("invalid", result, request_kind="INVESTMENT_APPLICATION")

        assert error.validation_result is result
        assert error.context["error_count"] == 1
        assert isinstance(error, ValidationError)

    def test_infeasible_allocation(self):
        error = InfeasibleAllocationError("empty", reasons=["a", "b"])

        assert error.error_code == "INFEASIBLE"
        assert error.reasons == ["a", "b"]
        assert error.context["reasons"] == ["a", "b"]
        assert error.category == ErrorCategory.INFEASIBILITY
        assert isinstance(error, BusinessLogicError)

    def test_calculation_errors(self):
        assert CalculationError("x").error_code == "CALCULATION_ERROR"
        error = InsufficientCashFlowsError("x", flow_count=1)
        assert error.error_code == "INSUFFICIENT_CASH_FLOWS"
        assert error.context["flow_count"] == 1

    def test_cancelled(self):
        error = OperationCancelledError("stop", operation="irr")
        assert error.error_code == "OPERATION_CANCELLED"
        assert error.context["operation"] == "irr"


class TestErrorTracker:

    def test_counts_and_patterns(self):
        tracker = ErrorTracker()
        tracker.record_error(ValueError("x"))
        tracker.record_error(CalculationError("y"))
        tracker.record_error(CalculationError("z"))

        assert tracker.get_error_count("CalculationError") == 2
        patterns = tracker.get_error_patterns()
        assert patterns["total_errors"] == 3
        assert patterns["error_codes"] == {"CALCULATION_ERROR": 2}

    def test_operations_are_counted(self):
        tracker = ErrorTracker()
        tracker.record_error(CalculationError("y"), operation="irr")
        tracker.record_error(CalculationError("z"), operation="irr")

        assert tracker.get_error_patterns()["operations"] == {"irr": 2}

    def test_empty_patterns(self):
        assert ErrorTracker().get_error_patterns() == {}


class TestErrorHandler:

    def test_engine_error_severity(self):
        info = ErrorHandler().handle_error(ValidationError("bad"), operation_name="op")

        assert info["handled"]
        assert info["severity"] == "low"
        assert info["error_code"] == "VALIDATION_FAILED"

    def test_builtin_severity(self):
        handler = ErrorHandler(enable_tracking=False)

        assert handler.handle_error(ValueError("x"))["severity"] == "medium"
        assert handler.handle_error(ZeroDivisionError("x"))["severity"] == "high"
        assert handler.get_error_statistics() == {}

    def test_logs_at_severity_level(self, mocker):
        handler = ErrorHandler()
        mocker.patch.object(handler, "logger")

        handler.handle_error(ValidationError("bad"))
        handler.handle_error(CalculationError("worse"))

        levels = [c.args[0] for c in handler.logger.log.call_args_list]
        assert levels == [logging.INFO, logging.WARNING]


class TestHandleErrorsDecorator:

    def test_reraises_and_records(self):
        @handle_errors(operation_name="explode")
        def explode():
            raise CalculationError("boom")

        before = get_error_handler().tracker.get_error_count("CalculationError")
        with pytest.raises(CalculationError):
            explode()
        assert get_error_handler().tracker.get_error_count("CalculationError") == before + 1

    def test_swallow_when_requested(self):
        @handle_errors(reraise=False)
        def explode():
            raise ValueError("boom")

        assert explode() is None

    def test_passes_results_through(self):
        @handle_errors()
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert add.__name__ == "add"
