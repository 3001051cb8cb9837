"""
Data models for the portfolio engine.
"""

from .common import parse_timestamp, is_number, is_integral, to_jsonable
from .portfolios import (
    RiskLevel,
    InvestmentStatus,
    ValuePoint,
    PortfolioInvestment,
    Portfolio
)
from .requests import (
    RequestKind,
    Currency,
    ApplicationStatus,
    CashFlowType,
    CalculationType,
    ScenarioType,
    OptimizationObjective,
    Timeframe,
    CreateInvestmentApplicationRequest,
    CashFlow,
    InvestmentReturnInput,
    ReturnCalculationRequest,
    RiskAssessmentOptions,
    RiskAssessmentRequest,
    StressScenarioSpec,
    StressTestRequest,
    StrategyConstraints,
    OptimizationRequest,
    PortfolioAnalysisRequest
)
from .results import (
    TradeAction,
    RecommendationPriority,
    RecommendationType,
    OptimizationStatus,
    VolatilitySource,
    SerializableResult,
    CalculationIssue,
    IRRResult,
    SharpeResult,
    InvestmentReturnResult,
    ReturnSummary,
    ReturnCalculationResult,
    PortfolioReturnMetrics,
    RiskFactor,
    RiskMetrics,
    AllocationRecommendation,
    ImprovementMetrics,
    OptimizationResult,
    StrategyRecommendation,
    PositionImpact,
    ScenarioResult,
    StressTestReport,
    DiversificationCheck,
    ApplicationReceipt,
    PortfolioAnalysis
)

__all__ = [
    "parse_timestamp", "is_number", "is_integral", "to_jsonable",
    "RiskLevel", "InvestmentStatus", "ValuePoint", "PortfolioInvestment", "Portfolio",
    "RequestKind", "Currency", "ApplicationStatus", "CashFlowType", "CalculationType",
    "ScenarioType", "OptimizationObjective", "Timeframe",
    "CreateInvestmentApplicationRequest", "CashFlow", "InvestmentReturnInput",
    "ReturnCalculationRequest", "RiskAssessmentOptions", "RiskAssessmentRequest",
    "StressScenarioSpec", "StressTestRequest", "StrategyConstraints",
    "OptimizationRequest", "PortfolioAnalysisRequest",
    "TradeAction", "RecommendationPriority", "RecommendationType", "OptimizationStatus",
    "VolatilitySource", "SerializableResult", "CalculationIssue", "IRRResult", "SharpeResult",
    "InvestmentReturnResult", "ReturnSummary", "ReturnCalculationResult",
    "PortfolioReturnMetrics", "RiskFactor", "RiskMetrics", "AllocationRecommendation",
    "ImprovementMetrics", "OptimizationResult", "StrategyRecommendation",
    "PositionImpact", "ScenarioResult", "StressTestReport", "DiversificationCheck",
    "ApplicationReceipt", "PortfolioAnalysis",
]
