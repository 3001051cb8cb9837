"""
Diversification limit tests against post-trade totals.
"""

import pytest

from portfolio_engine.application.config.settings import DiversificationConfig
from portfolio_engine.data.models.portfolios import InvestmentStatus, RiskLevel
from portfolio_engine.domain.services.diversification_enforcer import DiversificationEnforcer


def around(boundary):
    """Positive amounts just below, at and just above a boundary amount."""
    return sorted({max(boundary + delta, 1) for delta in (-1000, -1, 0, 1, 1000)})


# Existing totals T; the 20% rule flips at a = T / 4
EXISTING_TOTALS = [0, 1000, 40000, 80000, 110000]
POSITION_CASES = [(total, amount) for total in EXISTING_TOTALS for amount in around(total // 4)]

# (high-risk existing H, other existing L); the 30% rule flips at a = (3L - 7H) / 7
EXPOSURES = [(0, 70000), (7000, 70000), (14000, 56000), (30000, 70000)]
HIGH_RISK_CASES = [
    (high, other, amount)
    for high, other in EXPOSURES
    for amount in around(max((3 * other - 7 * high) // 7, 0))
]


class TestCandidateLimits:

    def setup_method(self):
        self.enforcer = DiversificationEnforcer(DiversificationConfig())

    def _holdings(self, make_investment, high=0, other=0):
        holdings = []
        if high:
            holdings.append(make_investment("existing-high", high, risk_level=RiskLevel.HIGH))
        if other:
            holdings.append(make_investment("existing-other", other, risk_level=RiskLevel.LOW))
        return holdings

    @pytest.mark.parametrize("total,amount", POSITION_CASES)
    def test_position_limit_iff_above_a_fifth_of_the_result(self, make_investment, total, amount):
        check = self.enforcer.check_candidate(self._holdings(make_investment, other=total), amount, RiskLevel.LOW)

        # a > 0.2 (T + a)  <=>  4a > T, in exact integer arithmetic
        assert ("CONCENTRATION_RISK_EXCEEDED" in check.codes) == (4 * amount > total)
        assert check.resulting_total == total + amount

    @pytest.mark.parametrize("risk_level", [RiskLevel.HIGH, RiskLevel.VERY_HIGH])
    @pytest.mark.parametrize("high,other,amount", HIGH_RISK_CASES)
    def test_high_risk_limit_iff_above_thirty_percent(self, make_investment, high, other, amount, risk_level):
        check = self.enforcer.check_candidate(self._holdings(make_investment, high, other), amount, risk_level)

        # H + a > 0.3 (T + a)  <=>  10 (H + a) > 3 (H + L + a)
        assert ("HIGH_RISK_LIMIT_EXCEEDED" in check.codes) == (10 * (high + amount) > 3 * (high + other + amount))

    @pytest.mark.parametrize("risk_level", [RiskLevel.LOW, RiskLevel.MEDIUM])
    @pytest.mark.parametrize("high,other,amount", HIGH_RISK_CASES)
    def test_high_risk_limit_ignores_other_candidates(self, make_investment, high, other, amount, risk_level):
        check = self.enforcer.check_candidate(self._holdings(make_investment, high, other), amount, risk_level)
        assert "HIGH_RISK_LIMIT_EXCEEDED" not in check.codes


class TestCandidateChecks:

    def setup_method(self):
        self.enforcer = DiversificationEnforcer(DiversificationConfig())

    def test_within_limits(self, portfolio):
        check = self.enforcer.check_candidate(portfolio, 10000, RiskLevel.MEDIUM)

        assert check.is_within_limits
        assert check.resulting_total == 110000
        assert check.position_share == pytest.approx(10000 / 110000)

    def test_high_risk_share_for_fixture(self, portfolio):
        check = self.enforcer.check_candidate(portfolio, 10000, RiskLevel.HIGH)

        assert check.codes == ["HIGH_RISK_LIMIT_EXCEEDED"]
        assert check.high_risk_share == pytest.approx(40000 / 110000)

    def test_high_risk_limit_ignores_low_risk_candidates(self, portfolio):
        check = self.enforcer.check_candidate(portfolio, 10000, RiskLevel.LOW)
        assert check.high_risk_share == pytest.approx(30000 / 110000)
        assert check.is_within_limits

    def test_empty_portfolio_fails_both_limits(self):
        check = self.enforcer.check_candidate([], 5000, RiskLevel.VERY_HIGH)
        assert check.codes == ["CONCENTRATION_RISK_EXCEEDED", "HIGH_RISK_LIMIT_EXCEEDED"]

    def test_closed_investments_are_ignored(self, make_investment):
        holdings = [
            make_investment("a", 100000, status=InvestmentStatus.COMPLETED),
            make_investment("b", 50000),
            make_investment("c", 50000, status=InvestmentStatus.SUSPENDED),
        ]
        check = self.enforcer.check_candidate(holdings, 10000, RiskLevel.LOW)
        assert check.resulting_total == 110000

    def test_custom_limits(self, portfolio):
        enforcer = DiversificationEnforcer(DiversificationConfig(max_single_position_share=0.5, max_high_risk_share=0.5))
        assert enforcer.check_candidate(portfolio, 30000, RiskLevel.HIGH).is_within_limits


class TestAllocationChecks:

    def setup_method(self):
        self.enforcer = DiversificationEnforcer(DiversificationConfig())
        self.levels = [RiskLevel.HIGH, RiskLevel.HIGH, RiskLevel.LOW, RiskLevel.LOW]

    def test_position_and_high_risk_breach(self):
        check = self.enforcer.check_allocation([0.25, 0.25, 0.25, 0.25], self.levels, 0)
        assert check.codes == ["CONCENTRATION_RISK_EXCEEDED", "HIGH_RISK_LIMIT_EXCEEDED"]

    def test_low_risk_position_only_checks_size(self):
        check = self.enforcer.check_allocation([0.1, 0.1, 0.2, 0.2], self.levels, 2)
        assert check.is_within_limits
