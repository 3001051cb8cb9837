"""
Stand-alone business rule tests: status workflow, project limits, reporting
ranges and input hygiene.
"""

from datetime import datetime, timedelta

import pytest

from portfolio_engine.data.models.portfolios import RiskLevel
from portfolio_engine.data.models.requests import ApplicationStatus
from portfolio_engine.data.validators import (
    STATUS_TRANSITIONS,
    allowed_transitions,
    sanitize_input,
    validate_date_range,
    validate_enum_value,
    validate_financial_calculation,
    validate_investment_constraints,
    validate_pagination,
    validate_status_transition
)


class TestStatusTransitions:
    """Investment application workflow graph."""

    @pytest.mark.parametrize("current,new", [
        ("PENDING", "UNDER_REVIEW"),
        ("PENDING", "CANCELLED"),
        ("UNDER_REVIEW", "APPROVED"),
        ("UNDER_REVIEW", "REJECTED"),
        ("UNDER_REVIEW", "PENDING"),
        ("APPROVED", "CANCELLED"),
    ])
    def test_allowed_edges(self, current, new):
        assert validate_status_transition(current, new).is_valid

    @pytest.mark.parametrize("current,new", [
        ("PENDING", "APPROVED"),
        ("APPROVED", "PENDING"),
        ("REJECTED", "PENDING"),
        ("CANCELLED", "UNDER_REVIEW"),
        ("PENDING", "PENDING"),
    ])
    def test_forbidden_edges(self, current, new):
        result = validate_status_transition(current, new)
        assert result.codes == ["INVALID_STATUS_TRANSITION"]
        assert result.errors[0].field == "status"

    def test_terminal_states_have_no_exits(self):
        assert allowed_transitions(ApplicationStatus.REJECTED) == frozenset()
        assert allowed_transitions(ApplicationStatus.CANCELLED) == frozenset()

    def test_unknown_statuses_are_reported_separately(self):
        result = validate_status_transition("DRAFT", "ARCHIVED")
        assert [(i.field, i.code) for i in result.errors] == [
            ("currentStatus", "INVALID_STATUS"),
            ("status", "INVALID_STATUS"),
        ]

    def test_enum_members_are_accepted(self):
        assert validate_status_transition(ApplicationStatus.PENDING, ApplicationStatus.UNDER_REVIEW).is_valid

    def test_graph_covers_every_status(self):
        assert set(STATUS_TRANSITIONS) == set(ApplicationStatus)


class TestInvestmentConstraints:

    def test_within_all_limits(self):
        result = validate_investment_constraints(5000, min_investment=1000, max_investment=10000, remaining_capacity=8000)
        assert result.is_valid

    def test_all_limit_violations_reported(self):
        result = validate_investment_constraints(500, min_investment=1000, max_investment=400, remaining_capacity=100)
        assert set(result.codes) == {"AMOUNT_BELOW_MINIMUM", "AMOUNT_ABOVE_MAXIMUM", "EXCEEDS_REMAINING_CAPACITY"}

    @pytest.mark.parametrize("amount", [0, -1, "100", None, float("inf")])
    def test_invalid_amount_short_circuits(self, amount):
        result = validate_investment_constraints(amount, min_investment=1000)
        assert result.codes == ["INVALID_AMOUNT"]

    def test_limits_are_optional(self):
        assert validate_investment_constraints(1).is_valid


NOW = datetime(2024, 6, 30)
TEN_YEARS = timedelta(days=3650)

END_OFFSETS = [timedelta(days=-400), timedelta(seconds=-1), timedelta(0), timedelta(seconds=1), timedelta(days=1)]
SPANS = [
    timedelta(days=-1), timedelta(0), timedelta(seconds=1), timedelta(days=365),
    TEN_YEARS - timedelta(seconds=1), TEN_YEARS, TEN_YEARS + timedelta(seconds=1), timedelta(days=5000),
]


def expected_range_codes(start, end):
    codes = []
    if start >= end:
        codes.append("INVALID_DATE_ORDER")
    if end > NOW:
        codes.append("FUTURE_END_DATE")
    if end - start > TEN_YEARS:
        codes.append("DATE_RANGE_TOO_LONG")
    return codes


class TestDateRange:

    @pytest.mark.parametrize("span", SPANS)
    @pytest.mark.parametrize("end_offset", END_OFFSETS)
    def test_generated_ranges(self, end_offset, span):
        end = NOW + end_offset
        start = end - span
        result = validate_date_range(start.isoformat(), end.isoformat(), as_of=NOW)

        assert result.codes == expected_range_codes(start, end)
        assert result.is_valid == (start < end <= NOW and end - start <= TEN_YEARS)

    @pytest.mark.parametrize("start,end,codes", [
        ("2014-07-03", "2024-06-30", []),
        ("2014-07-02", "2024-06-30", ["DATE_RANGE_TOO_LONG"]),
        ("2014-07-01", "2024-06-30", ["DATE_RANGE_TOO_LONG"]),
        ("2014-03-03", "2024-02-28", []),
        ("2014-03-01", "2024-02-28", ["DATE_RANGE_TOO_LONG"]),
        ("2020-02-28", "2020-03-01", []),
        ("2024-06-30", "2024-06-30", ["INVALID_DATE_ORDER"]),
        ("2024-06-29T23:59:59", "2024-06-30T00:00:01", ["FUTURE_END_DATE"]),
        ("2024-01-01", "2023-01-01", ["INVALID_DATE_ORDER"]),
    ], ids=[
        "ten-years-across-three-leap-days", "ten-years-and-a-day", "ten-years-and-two-days",
        "leap-day-inside-short-of-limit", "leap-day-inside-over-limit", "over-leap-day",
        "empty", "one-second-in-future", "reversed",
    ])
    def test_calendar_boundaries(self, start, end, codes):
        assert validate_date_range(start, end, as_of=NOW).codes == codes

    def test_unparseable_dates(self):
        result = validate_date_range("soon", None, as_of=NOW)
        assert set(result.codes) == {"INVALID_START_DATE", "INVALID_END_DATE"}


PAGES = [-1, 0, 1, 2, 1000, 1.0, 3.0, 0.5, 1.5, float("nan"), float("inf"), True, False, "1", None, [1]]
LIMITS = [-5, 0, 1, 50, 100, 101, 1000, 50.0, 100.0, 50.5, 100.5, float("nan"), True, "10", None]


def is_whole_number(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return float(value).is_integer()


class TestPagination:

    @pytest.mark.parametrize("limit", LIMITS, ids=repr)
    @pytest.mark.parametrize("page", PAGES, ids=repr)
    def test_sampled_values(self, page, limit):
        page_ok = is_whole_number(page) and page >= 1
        limit_ok = is_whole_number(limit) and 1 <= limit <= 100
        result = validate_pagination(page, limit)

        assert ("INVALID_PAGE" in result.codes) == (not page_ok)
        assert ("INVALID_LIMIT" in result.codes) == (not limit_ok)
        assert result.is_valid == (page_ok and limit_ok)


class TestEnumAndSanitize:

    def test_enum_value_by_string_and_member(self):
        assert validate_enum_value("HIGH", RiskLevel, "riskLevel").is_valid
        assert validate_enum_value(RiskLevel.LOW, RiskLevel, "riskLevel").is_valid

    def test_enum_value_rejected(self):
        result = validate_enum_value("EXTREME", RiskLevel, "riskLevel")
        assert result.codes == ["INVALID_ENUM_VALUE"]
        assert "LOW" in result.errors[0].message

    @pytest.mark.parametrize("text,expected", [
        ("  hello  ", "hello"),
        ("<script>alert(1)</script>", "scriptalert(1)/script"),
        (42, ""),
        (None, ""),
    ])
    def test_sanitize(self, text, expected):
        assert sanitize_input(text) == expected

    def test_sanitize_caps_length(self):
        assert len(sanitize_input("a" * 5000)) == 1000


class TestFinancialCalculation:

    def test_valid_inputs(self):
        assert validate_financial_calculation(1000, 0.05, 2).is_valid

    @pytest.mark.parametrize("principal,rate,time,codes", [
        (0, 0.05, 1, ["INVALID_PRINCIPAL"]),
        (1000, -1.5, 1, ["INVALID_RATE"]),
        (1000, 11, 1, ["INVALID_RATE"]),
        (1000, 0.05, 0, ["INVALID_TIME"]),
        (None, None, None, ["INVALID_PRINCIPAL", "INVALID_RATE", "INVALID_TIME"]),
    ])
    def test_invalid_inputs(self, principal, rate, time, codes):
        assert validate_financial_calculation(principal, rate, time).codes == codes
