"""
Turns an optimization result into prioritized implementation recommendations.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ...application.config.settings import OptimizerConfig, get_optimizer_config
from ...data.models.results import (
    OptimizationResult,
    RecommendationPriority,
    RecommendationType,
    StrategyRecommendation,
    TradeAction
)

# Improvements above this are worth acting on soon
MATERIAL_IMPROVEMENT = 0.01


class StrategyRecommendationBuilder:
    """Builds the recommendation list returned by the optimize endpoint."""

    def __init__(self, config: Optional[OptimizerConfig] = None):
        self.config = config or get_optimizer_config()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def build(self, result: OptimizationResult, as_of: Optional[datetime] = None) -> List[StrategyRecommendation]:
        """
        Derive recommendations from an optimization result.

        Returns:
            Recommendations ordered by priority, then expected return impact
        """
        as_of = as_of or result.optimized_at or datetime.utcnow()
        valid_until = as_of + timedelta(days=self.config.recommendation_validity_days)
        improvement = result.improvement
        trades = result.trades
        drafts = []

        if trades:
            material = (
                improvement.return_improvement > MATERIAL_IMPROVEMENT
                or improvement.risk_reduction > MATERIAL_IMPROVEMENT
            )
            drafts.append((
                RecommendationType.REBALANCE,
                RecommendationPriority.HIGH if material else RecommendationPriority.MEDIUM,
                "Rebalance portfolio allocation",
                f"Execute {len(trades)} trades to move toward the {result.objective.value} objective "
                f"at an estimated cost of {result.rebalancing_cost:,.2f}",
                improvement.return_improvement,
                -improvement.risk_reduction,
                "1-3 months",
                [self._describe_trade(rec) for rec in trades]
            ))

        if result.budget_limited:
            drafts.append((
                RecommendationType.BUDGET_CONSTRAINED,
                RecommendationPriority.HIGH,
                "Rebalancing budget is too small",
                "The constraints cannot be met within the rebalancing budget; the proposed trades "
                "exceed it and are the smallest set that satisfies them",
                improvement.return_improvement,
                -improvement.risk_reduction,
                "Immediate",
                ["Raise the rebalancing budget or relax the constraints"]
            ))

        flagged = [rec for rec in trades if rec.action == TradeAction.BUY and rec.diversification_warnings]
        if flagged:
            drafts.append((
                RecommendationType.DIVERSIFY,
                RecommendationPriority.MEDIUM,
                "Review diversification of proposed purchases",
                f"{len(flagged)} purchases would breach diversification limits",
                0.0,
                0.0,
                "1-3 months",
                [f"{rec.name}: {', '.join(rec.diversification_warnings)}" for rec in flagged]
            ))

        if result.risk_level.is_high_risk:
            drafts.append((
                RecommendationType.RISK_REDUCTION,
                RecommendationPriority.HIGH,
                "Reduce portfolio risk",
                f"Expected risk remains {result.risk_level.value} at {result.expected_risk:.1%} volatility",
                0.0,
                -result.expected_risk,
                "3-6 months",
                ["Consider a risk budget or a MINIMIZE_RISK objective"]
            ))

        if result.cash_weight > 0:
            drafts.append((
                RecommendationType.LIQUIDITY,
                RecommendationPriority.LOW,
                "Maintain cash reserve",
                f"Keep {result.cash_weight:.1%} of the portfolio in cash",
                0.0,
                0.0,
                "Ongoing",
                [f"Hold {result.cash_weight:.1%} in liquid assets"]
            ))

        if not trades:
            drafts.append((
                RecommendationType.MAINTAIN,
                RecommendationPriority.LOW,
                "Maintain current allocation",
                "The current allocation is already optimal within the constraints",
                0.0,
                0.0,
                "Ongoing",
                ["Re-run optimization after material portfolio changes"]
            ))

        drafts.sort(key=lambda d: (d[1].rank, -d[4]))

        recommendations = []
        for index, draft in enumerate(drafts, start=1):
            rec_type, priority, title, description, return_impact, risk_impact, horizon, actions = draft
            recommendations.append(StrategyRecommendation(
                id=f"{result.portfolio_id}-{rec_type.value.lower()}-{index}",
                portfolio_id=result.portfolio_id,
                recommendation_type=rec_type,
                priority=priority,
                title=title,
                description=description,
                expected_return_impact=return_impact,
                expected_risk_impact=risk_impact,
                time_horizon=horizon,
                action_items=actions,
                valid_until=valid_until,
                created_at=as_of
            ))

        self.logger.debug(f"Built {len(recommendations)} recommendations for {result.portfolio_id}")
        return recommendations

    @staticmethod
    def _describe_trade(rec) -> str:
        return (
            f"{rec.action.value} {abs(rec.transaction_amount):,.2f} of {rec.name} "
            f"({rec.current_weight:.1%} -> {rec.recommended_weight:.1%})"
        )
