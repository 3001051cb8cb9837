"""
Validation result containers and field helpers shared by every validator.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from ..models.common import is_number, parse_timestamp
from ...infrastructure.error_handling import ErrorCode

logger = logging.getLogger(__name__)

CodeLike = Union[ErrorCode, str]


class ValidationSeverity(str, Enum):
    """Validation issue severity levels."""
    ERROR = "error"
    WARNING = "warning"


class ValidationIssue:
    """A single field-scoped, code-tagged validation problem."""

    def __init__(
        self,
        code: CodeLike,
        message: str,
        field: Optional[str] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR
    ):
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.field = field
        self.severity = severity

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message, "code": self.code}

    def __eq__(self, other):
        if not isinstance(other, ValidationIssue):
            return NotImplemented
        return (self.code, self.field, self.severity) == (other.code, other.field, other.severity)

    def __repr__(self):
        return f"ValidationIssue(code={self.code!r}, field={self.field!r})"

    def __str__(self):
        field_info = f" ({self.field})" if self.field else ""
        return f"{self.code}: {self.message}{field_info}"


class ValidationResult:
    """
    Container for validation results.

    A result is valid iff it holds no error-severity issues. Validators keep
    adding issues after the first failure so callers see every violation.
    """

    def __init__(self):
        self.issues: List[ValidationIssue] = []

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == ValidationSeverity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == ValidationSeverity.WARNING]

    @property
    def codes(self) -> List[str]:
        return [issue.code for issue in self.errors]

    def add_error(self, code: CodeLike, message: str, field: Optional[str] = None) -> "ValidationResult":
        self.issues.append(ValidationIssue(code, message, field))
        return self

    def add_warning(self, code: CodeLike, message: str, field: Optional[str] = None) -> "ValidationResult":
        self.issues.append(ValidationIssue(code, message, field, ValidationSeverity.WARNING))
        return self

    def has_code(self, code: CodeLike) -> bool:
        value = code.value if isinstance(code, ErrorCode) else code
        return value in self.codes

    def errors_for(self, field: str) -> List[ValidationIssue]:
        return [issue for issue in self.errors if issue.field == field]

    def merge(self, other: "ValidationResult", prefix: Optional[str] = None) -> "ValidationResult":
        """Absorb another result, optionally nesting its field paths under ``prefix``."""
        for issue in other.issues:
            field = issue.field
            if prefix:
                field = f"{prefix}.{field}" if field else prefix
            self.issues.append(ValidationIssue(issue.code, issue.message, field, issue.severity))
        return self

    def summary(self) -> str:
        """Get summary of validation results."""
        error_count = len(self.errors)
        warning_count = len(self.warnings)

        if self.is_valid:
            return f"Valid with {warning_count} warnings" if warning_count else "Valid"
        return f"Invalid: {error_count} errors, {warning_count} warnings"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the response contract used on validation failure."""
        return {
            "isValid": self.is_valid,
            "errors": [issue.to_dict() for issue in self.errors],
        }

    @classmethod
    def combine(cls, results: Iterable["ValidationResult"]) -> "ValidationResult":
        combined = cls()
        for result in results:
            combined.merge(result)
        return combined


def get_field(payload: Dict[str, Any], name: str, default: Any = None) -> Any:
    """Read a camelCase field, falling back to its snake_case spelling."""
    if name in payload:
        return payload[name]

    snake = "".join(f"_{ch.lower()}" if ch.isupper() else ch for ch in name)
    return payload.get(snake, default)


def has_field(payload: Dict[str, Any], name: str) -> bool:
    return get_field(payload, name) is not None


def is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def check_number_in_range(
    result: ValidationResult,
    value: Any,
    field: str,
    code: CodeLike,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    exclusive_minimum: bool = False,
    exclusive_maximum: bool = False,
    label: Optional[str] = None
) -> bool:
    """Add ``code`` unless value is a finite number inside the given bounds."""
    label = label or field
    ok = is_number(value)

    if ok and minimum is not None:
        ok = value > minimum if exclusive_minimum else value >= minimum
    if ok and maximum is not None:
        ok = value < maximum if exclusive_maximum else value <= maximum

    if not ok:
        low = "(" if exclusive_minimum else "["
        high = ")" if exclusive_maximum else "]"
        bounds = f" in {low}{minimum if minimum is not None else '-inf'}, {maximum if maximum is not None else 'inf'}{high}"
        result.add_error(code, f"{label} must be a number{bounds}", field)

    return ok


def check_date(
    result: ValidationResult,
    value: Any,
    field: str,
    missing_code: CodeLike,
    invalid_code: CodeLike,
    future_code: Optional[CodeLike] = None,
    as_of: Optional[datetime] = None,
    label: Optional[str] = None
) -> Optional[datetime]:
    """Parse a date field, recording missing/invalid/future problems."""
    label = label or field

    if value is None or value == "":
        result.add_error(missing_code, f"{label} is required", field)
        return None

    parsed = parse_timestamp(value)
    if parsed is None:
        result.add_error(invalid_code, f"{label} must be a valid ISO date", field)
        return None

    if future_code is not None and parsed > (as_of or datetime.utcnow()):
        result.add_error(future_code, f"{label} cannot be in the future", field)

    return parsed
