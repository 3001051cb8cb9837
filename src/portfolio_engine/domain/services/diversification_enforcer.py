"""
Diversification limits applied to new investments and proposed allocations.
"""

import logging
from typing import Optional, Sequence, Union

from ...application.config.settings import DiversificationConfig, get_diversification_config
from ...data.models.portfolios import Portfolio, PortfolioInvestment, RiskLevel
from ...data.models.results import CalculationIssue, DiversificationCheck
from ...infrastructure.error_handling import ErrorCode, handle_errors

Holdings = Union[Portfolio, Sequence[PortfolioInvestment]]


class DiversificationEnforcer:
    """
    Checks single-position and high-risk concentration limits.

    Both limits are shares of the post-trade total: a candidate of amount a
    against holdings totalling T is measured against T + a.
    """

    def __init__(self, config: Optional[DiversificationConfig] = None):
        self.config = config or get_diversification_config()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @handle_errors(operation_name="check_diversification")
    def check_candidate(self, holdings: Holdings, amount: float, risk_level: RiskLevel) -> DiversificationCheck:
        """
        Check a prospective investment against the current holdings.

        Args:
            holdings: Portfolio or its holdings; only ACTIVE/SUSPENDED count
            amount: Candidate investment amount
            risk_level: Candidate risk level
        """
        if isinstance(holdings, Portfolio):
            holdings = holdings.holdings
        else:
            holdings = [h for h in holdings if h.status.is_holding]

        existing_total = sum(h.amount for h in holdings)
        high_risk_existing = sum(h.amount for h in holdings if h.risk_level.is_high_risk)
        resulting_total = existing_total + amount

        position_share = amount / resulting_total if resulting_total > 0 else 0.0
        high_risk_amount = high_risk_existing + (amount if risk_level.is_high_risk else 0.0)
        high_risk_share = high_risk_amount / resulting_total if resulting_total > 0 else 0.0

        violations = []
        if amount > self.config.max_single_position_share * resulting_total:
            violations.append(CalculationIssue(
                code=ErrorCode.CONCENTRATION_RISK_EXCEEDED.value,
                message=(
                    f"Single investment would be {position_share:.1%} of the portfolio "
                    f"(limit {self.config.max_single_position_share:.0%})"
                ),
                metric="amount"
            ))

        if risk_level.is_high_risk and high_risk_amount > self.config.max_high_risk_share * resulting_total:
            violations.append(CalculationIssue(
                code=ErrorCode.HIGH_RISK_LIMIT_EXCEEDED.value,
                message=(
                    f"High-risk holdings would be {high_risk_share:.1%} of the portfolio "
                    f"(limit {self.config.max_high_risk_share:.0%})"
                ),
                metric="riskLevel"
            ))

        if violations:
            self.logger.info(f"Diversification check failed: {[v.code for v in violations]}")

        return DiversificationCheck(
            is_within_limits=not violations,
            violations=violations,
            resulting_total=resulting_total,
            position_share=position_share,
            high_risk_share=high_risk_share
        )

    def check_allocation(
        self,
        weights: Sequence[float],
        risk_levels: Sequence[RiskLevel],
        index: int
    ) -> DiversificationCheck:
        """Apply the same limits to one position of a weight vector expressed as fractions of portfolio value."""
        total = float(sum(weights))
        position_share = float(weights[index])
        high_risk_share = float(sum(w for w, level in zip(weights, risk_levels) if level.is_high_risk))

        violations = []
        if position_share > self.config.max_single_position_share:
            violations.append(CalculationIssue(
                code=ErrorCode.CONCENTRATION_RISK_EXCEEDED.value,
                message=f"Position would be {position_share:.1%} of the allocation",
                metric="recommendedWeight"
            ))
        if risk_levels[index].is_high_risk and high_risk_share > self.config.max_high_risk_share:
            violations.append(CalculationIssue(
                code=ErrorCode.HIGH_RISK_LIMIT_EXCEEDED.value,
                message=f"High-risk holdings would be {high_risk_share:.1%} of the allocation",
                metric="riskLevel"
            ))

        return DiversificationCheck(
            is_within_limits=not violations,
            violations=violations,
            resulting_total=total,
            position_share=position_share,
            high_risk_share=high_risk_share
        )
