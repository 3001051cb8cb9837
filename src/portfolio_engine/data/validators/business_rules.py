"""
Stand-alone validation rules used by reporting and workflow collaborators.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Type

from .base import ValidationResult, check_number_in_range
from ..models.common import is_integral, is_number, parse_timestamp
from ..models.requests import ApplicationStatus
from ...application.config.settings import ValidationConfig, get_validation_config
from ...infrastructure.error_handling import ErrorCode

# Directed workflow graph for investment applications
STATUS_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({ApplicationStatus.UNDER_REVIEW, ApplicationStatus.CANCELLED}),
    ApplicationStatus.UNDER_REVIEW: frozenset({
        ApplicationStatus.APPROVED, ApplicationStatus.REJECTED, ApplicationStatus.PENDING
    }),
    ApplicationStatus.APPROVED: frozenset({ApplicationStatus.CANCELLED}),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.CANCELLED: frozenset(),
}

_ANGLE_BRACKETS = re.compile(r"[<>]")


def _coerce_status(value: Any) -> Optional[ApplicationStatus]:
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        return None


def allowed_transitions(status: ApplicationStatus) -> FrozenSet[ApplicationStatus]:
    return STATUS_TRANSITIONS[status]


def validate_status_transition(current_status: Any, new_status: Any) -> ValidationResult:
    """Check an application status change against the workflow graph."""
    result = ValidationResult()
    current = _coerce_status(current_status)
    new = _coerce_status(new_status)

    if current is None:
        result.add_error(ErrorCode.INVALID_STATUS, f"Unknown current status: {current_status}", "currentStatus")
    if new is None:
        result.add_error(ErrorCode.INVALID_STATUS, f"Unknown target status: {new_status}", "status")
    if current is None or new is None:
        return result

    if new not in STATUS_TRANSITIONS[current]:
        result.add_error(
            ErrorCode.INVALID_STATUS_TRANSITION,
            f"Cannot transition from {current.value} to {new.value}",
            "status"
        )

    return result


def validate_investment_constraints(
    amount: Any,
    min_investment: Optional[float] = None,
    max_investment: Optional[float] = None,
    remaining_capacity: Optional[float] = None
) -> ValidationResult:
    """Check an amount against project-level minimum, maximum and remaining capacity."""
    result = ValidationResult()

    if not check_number_in_range(result, amount, "amount", ErrorCode.INVALID_AMOUNT, minimum=0, exclusive_minimum=True):
        return result

    if min_investment is not None and amount < min_investment:
        result.add_error(
            ErrorCode.AMOUNT_BELOW_MINIMUM,
            f"Investment amount is below the project minimum of {min_investment:,.2f}",
            "amount"
        )

    if max_investment is not None and amount > max_investment:
        result.add_error(
            ErrorCode.AMOUNT_ABOVE_MAXIMUM,
            f"Investment amount exceeds the project maximum of {max_investment:,.2f}",
            "amount"
        )

    if remaining_capacity is not None and amount > remaining_capacity:
        result.add_error(
            ErrorCode.EXCEEDS_REMAINING_CAPACITY,
            f"Investment amount exceeds the remaining capacity of {remaining_capacity:,.2f}",
            "amount"
        )

    return result


def validate_date_range(
    start_date: Any,
    end_date: Any,
    as_of: Optional[datetime] = None,
    config: Optional[ValidationConfig] = None
) -> ValidationResult:
    """Validate a reporting date range: ordered, not in the future, bounded length."""
    config = config or get_validation_config()
    result = ValidationResult()
    now = as_of or datetime.utcnow()

    start = parse_timestamp(start_date)
    end = parse_timestamp(end_date)

    if start is None:
        result.add_error(ErrorCode.INVALID_START_DATE, "Start date must be a valid date", "startDate")
    if end is None:
        result.add_error(ErrorCode.INVALID_END_DATE, "End date must be a valid date", "endDate")
    if start is None or end is None:
        return result

    if start >= end:
        result.add_error(ErrorCode.INVALID_DATE_ORDER, "Start date must be before end date", "dateRange")

    if end > now:
        result.add_error(ErrorCode.FUTURE_END_DATE, "End date cannot be in the future", "endDate")

    span_years = (end - start).total_seconds() / 86400 / 365
    if span_years > config.max_date_range_years:
        result.add_error(
            ErrorCode.DATE_RANGE_TOO_LONG,
            f"Date range cannot exceed {config.max_date_range_years:g} years",
            "dateRange"
        )

    return result


def validate_pagination(page: Any, limit: Any, config: Optional[ValidationConfig] = None) -> ValidationResult:
    """Valid iff page is an integer >= 1 and limit an integer in [1, max_page_limit]."""
    config = config or get_validation_config()
    result = ValidationResult()

    if not is_integral(page) or page < 1:
        result.add_error(ErrorCode.INVALID_PAGE, "Page must be a positive integer", "page")

    if not is_integral(limit) or not 1 <= limit <= config.max_page_limit:
        result.add_error(
            ErrorCode.INVALID_LIMIT,
            f"Limit must be an integer between 1 and {config.max_page_limit}",
            "limit"
        )

    return result


def validate_enum_value(value: Any, enum_cls: Type[Enum], field: str) -> ValidationResult:
    result = ValidationResult()
    allowed = [member.value for member in enum_cls]

    if isinstance(value, enum_cls):
        return result
    if value not in allowed:
        result.add_error(
            ErrorCode.INVALID_ENUM_VALUE,
            f"{field} must be one of: {', '.join(str(v) for v in allowed)}",
            field
        )
    return result


def sanitize_input(text: Any, config: Optional[ValidationConfig] = None) -> str:
    """Trim, strip angle brackets and cap free text before it is echoed anywhere."""
    if not isinstance(text, str):
        return ""
    config = config or get_validation_config()
    return _ANGLE_BRACKETS.sub("", text.strip())[:config.max_sanitized_length]


def validate_financial_calculation(principal: Any, rate: Any, time: Any) -> ValidationResult:
    result = ValidationResult()

    check_number_in_range(
        result, principal, "principal", ErrorCode.INVALID_PRINCIPAL,
        minimum=0, exclusive_minimum=True, label="Principal"
    )
    check_number_in_range(result, rate, "rate", ErrorCode.INVALID_RATE, minimum=-1, maximum=10, label="Rate")
    if not is_number(time) or time <= 0:
        result.add_error(ErrorCode.INVALID_TIME, "Time must be a positive number", "time")

    return result
