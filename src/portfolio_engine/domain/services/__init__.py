"""
Domain services: return, risk, diversification, optimization and stress testing.
"""

from .return_calculator import ReturnCalculator
from .risk_assessor import (
    RiskAssessor,
    classify_risk_score,
    herfindahl_index,
    normalized_herfindahl
)
from .diversification_enforcer import DiversificationEnforcer
from .strategy_optimizer import StrategyOptimizer, OptimizerState, ResolvedConstraints
from .strategy_recommendations import StrategyRecommendationBuilder
from .stress_test_engine import StressTestEngine

__all__ = [
    # Returns
    "ReturnCalculator",

    # Risk
    "RiskAssessor",
    "classify_risk_score",
    "herfindahl_index",
    "normalized_herfindahl",

    # Diversification
    "DiversificationEnforcer",

    # Optimization
    "StrategyOptimizer",
    "OptimizerState",
    "ResolvedConstraints",
    "StrategyRecommendationBuilder",

    # Stress testing
    "StressTestEngine"
]
