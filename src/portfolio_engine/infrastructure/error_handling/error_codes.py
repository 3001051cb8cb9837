"""
Stable machine-readable codes attached to validation issues, calculation
issues and engine exceptions.

Calling UIs localize messages from these codes, so values must never change
once published.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Closed set of engine error codes."""

    # Generic request shape
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_ENUM_VALUE = "INVALID_ENUM_VALUE"

    # Investment applications
    INVALID_PROJECT_ID = "INVALID_PROJECT_ID"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    AMOUNT_TOO_LOW = "AMOUNT_TOO_LOW"
    AMOUNT_TOO_HIGH = "AMOUNT_TOO_HIGH"
    INVALID_CURRENCY = "INVALID_CURRENCY"
    AMOUNT_BELOW_MINIMUM = "AMOUNT_BELOW_MINIMUM"
    AMOUNT_ABOVE_MAXIMUM = "AMOUNT_ABOVE_MAXIMUM"
    EXCEEDS_REMAINING_CAPACITY = "EXCEEDS_REMAINING_CAPACITY"

    # Portfolio records
    INVALID_PORTFOLIO_ID = "INVALID_PORTFOLIO_ID"
    INVALID_USER_ID = "INVALID_USER_ID"
    INVALID_NAME = "INVALID_NAME"
    NAME_TOO_LONG = "NAME_TOO_LONG"
    INVALID_TOTAL_VALUE = "INVALID_TOTAL_VALUE"
    INVALID_TOTAL_INVESTED = "INVALID_TOTAL_INVESTED"
    INVALID_RISK_SCORE = "INVALID_RISK_SCORE"
    PORTFOLIO_TOTALS_MISMATCH = "PORTFOLIO_TOTALS_MISMATCH"
    PORTFOLIO_MISMATCH = "PORTFOLIO_MISMATCH"
    INVALID_INVESTMENTS = "INVALID_INVESTMENTS"
    INVALID_INVESTMENT_ID = "INVALID_INVESTMENT_ID"
    INVALID_CURRENT_VALUE = "INVALID_CURRENT_VALUE"
    INVALID_RISK_LEVEL = "INVALID_RISK_LEVEL"
    INVALID_STATUS = "INVALID_STATUS"
    INVALID_INVESTED_DATE = "INVALID_INVESTED_DATE"
    INVALID_SECTOR = "INVALID_SECTOR"
    INVALID_VALUE_POINT = "INVALID_VALUE_POINT"

    # Status workflow
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Risk assessment
    INVALID_CONFIDENCE_LEVEL = "INVALID_CONFIDENCE_LEVEL"
    INVALID_TIME_HORIZON = "INVALID_TIME_HORIZON"
    INVALID_RISK_FREE_RATE = "INVALID_RISK_FREE_RATE"
    INVALID_BENCHMARK_RETURN = "INVALID_BENCHMARK_RETURN"
    INVALID_OPTIONS = "INVALID_OPTIONS"

    # Return calculation
    MISSING_INVESTMENTS = "MISSING_INVESTMENTS"
    TOO_MANY_INVESTMENTS = "TOO_MANY_INVESTMENTS"
    MISSING_INVESTMENT_DATE = "MISSING_INVESTMENT_DATE"
    INVALID_INVESTMENT_DATE = "INVALID_INVESTMENT_DATE"
    FUTURE_INVESTMENT_DATE = "FUTURE_INVESTMENT_DATE"
    INVALID_CASH_FLOWS = "INVALID_CASH_FLOWS"
    MISSING_CASH_FLOW_DATE = "MISSING_CASH_FLOW_DATE"
    INVALID_CASH_FLOW_DATE = "INVALID_CASH_FLOW_DATE"
    INVALID_CASH_FLOW_AMOUNT = "INVALID_CASH_FLOW_AMOUNT"
    INVALID_CASH_FLOW_TYPE = "INVALID_CASH_FLOW_TYPE"
    INVALID_PERIOD_RETURNS = "INVALID_PERIOD_RETURNS"
    INVALID_PERIODS_PER_YEAR = "INVALID_PERIODS_PER_YEAR"
    INVALID_CALCULATION_TYPE = "INVALID_CALCULATION_TYPE"
    MISSING_BENCHMARK_RATE = "MISSING_BENCHMARK_RATE"
    INVALID_BENCHMARK_RATE = "INVALID_BENCHMARK_RATE"
    INSUFFICIENT_CASH_FLOWS = "INSUFFICIENT_CASH_FLOWS"

    # Stress testing
    INVALID_SCENARIOS = "INVALID_SCENARIOS"
    INVALID_SCENARIO_NAME = "INVALID_SCENARIO_NAME"
    INVALID_SCENARIO_TYPE = "INVALID_SCENARIO_TYPE"
    INVALID_LOSS_THRESHOLD = "INVALID_LOSS_THRESHOLD"
    INVALID_SHOCK = "INVALID_SHOCK"
    MISSING_SHOCK = "MISSING_SHOCK"
    INVALID_SECTOR_SHOCK = "INVALID_SECTOR_SHOCK"

    # Optimization requests
    INVALID_OBJECTIVE = "INVALID_OBJECTIVE"
    INVALID_CONSTRAINTS = "INVALID_CONSTRAINTS"
    INVALID_CONSTRAINT = "INVALID_CONSTRAINT"
    INVALID_POSITION_BOUNDS = "INVALID_POSITION_BOUNDS"
    MISSING_TARGET_RETURN = "MISSING_TARGET_RETURN"
    INVALID_TARGET_RETURN = "INVALID_TARGET_RETURN"
    MISSING_TARGET_RISK = "MISSING_TARGET_RISK"
    INVALID_TARGET_RISK = "INVALID_TARGET_RISK"
    INVALID_REBALANCING_BUDGET = "INVALID_REBALANCING_BUDGET"

    # Reporting helpers
    INVALID_TIMEFRAME = "INVALID_TIMEFRAME"
    INVALID_START_DATE = "INVALID_START_DATE"
    INVALID_END_DATE = "INVALID_END_DATE"
    INVALID_DATE_ORDER = "INVALID_DATE_ORDER"
    FUTURE_END_DATE = "FUTURE_END_DATE"
    DATE_RANGE_TOO_LONG = "DATE_RANGE_TOO_LONG"
    INVALID_PAGE = "INVALID_PAGE"
    INVALID_LIMIT = "INVALID_LIMIT"
    INVALID_PRINCIPAL = "INVALID_PRINCIPAL"
    INVALID_RATE = "INVALID_RATE"
    INVALID_TIME = "INVALID_TIME"

    # Business rules
    CONCENTRATION_RISK_EXCEEDED = "CONCENTRATION_RISK_EXCEEDED"
    HIGH_RISK_LIMIT_EXCEEDED = "HIGH_RISK_LIMIT_EXCEEDED"
    SECTOR_CONCENTRATION_EXCEEDED = "SECTOR_CONCENTRATION_EXCEEDED"
    REBALANCING_BUDGET_EXCEEDED = "REBALANCING_BUDGET_EXCEEDED"

    # Numerical outcomes
    CALCULATION_ERROR = "CALCULATION_ERROR"
    IRR_NOT_CONVERGED = "IRR_NOT_CONVERGED"
    SHARPE_UNDEFINED = "SHARPE_UNDEFINED"
    VAR_UNDETERMINED = "VAR_UNDETERMINED"
    DRAWDOWN_UNDETERMINED = "DRAWDOWN_UNDETERMINED"
    INSUFFICIENT_HISTORY = "INSUFFICIENT_HISTORY"
    ITERATION_LIMIT_REACHED = "ITERATION_LIMIT_REACHED"

    # Optimizer and runtime
    INFEASIBLE = "INFEASIBLE"
    NO_HOLDINGS = "NO_HOLDINGS"
    OPERATION_CANCELLED = "OPERATION_CANCELLED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    INTERNAL_ERROR = "INTERNAL_ERROR"
