"""
Result objects returned by the engine services.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .common import to_jsonable
from .portfolios import RiskLevel
from .requests import ApplicationStatus, CalculationType, Currency, OptimizationObjective, ScenarioType, Timeframe


class TradeAction(str, Enum):
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"


class RecommendationPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return {RecommendationPriority.HIGH: 0, RecommendationPriority.MEDIUM: 1, RecommendationPriority.LOW: 2}[self]


class RecommendationType(str, Enum):
    REBALANCE = "REBALANCE"
    BUDGET_CONSTRAINED = "BUDGET_CONSTRAINED"
    DIVERSIFY = "DIVERSIFY"
    RISK_REDUCTION = "RISK_REDUCTION"
    LIQUIDITY = "LIQUIDITY"
    MAINTAIN = "MAINTAIN"


class OptimizationStatus(str, Enum):
    SOLVED = "SOLVED"
    INFEASIBLE = "INFEASIBLE"


class VolatilitySource(str, Enum):
    HISTORY = "HISTORY"
    MODEL = "MODEL"


class SerializableResult:
    """Mixin giving result dataclasses a camelCase ``to_dict``."""

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass
class CalculationIssue(SerializableResult):
    """Numerical or business-rule problem attached next to still-valid metrics."""
    code: str
    message: str
    metric: Optional[str] = None


@dataclass
class IRRResult(SerializableResult):
    """Outcome of an IRR solve; rate is None when no root was found."""
    rate: Optional[float]
    converged: bool
    iterations: int
    method: str
    code: Optional[str] = None
    message: Optional[str] = None


@dataclass
class SharpeResult(SerializableResult):
    ratio: Optional[float]
    annualized_return: float
    benchmark_rate: float
    volatility: Optional[float]
    code: Optional[str] = None

    @property
    def is_defined(self) -> bool:
        return self.ratio is not None


@dataclass
class InvestmentReturnResult(SerializableResult):
    """Per-investment metrics of a returns/calculate request."""
    index: int
    reference: Optional[str]
    amount: float
    current_value: float
    absolute_return: float
    return_percentage: float
    annualized_return: Optional[float] = None
    irr: Optional[IRRResult] = None
    sharpe: Optional[SharpeResult] = None
    issues: List[CalculationIssue] = field(default_factory=list)


@dataclass
class ReturnSummary(SerializableResult):
    total_invested: float
    total_current_value: float
    total_absolute_return: float
    total_return_percentage: float
    annualized_return: Optional[float]


@dataclass
class ReturnCalculationResult(SerializableResult):
    calculation_type: CalculationType
    results: List[InvestmentReturnResult]
    summary: ReturnSummary
    calculated_at: datetime


@dataclass
class PortfolioReturnMetrics(SerializableResult):
    """Portfolio-level return figures derived from a snapshot."""
    total_invested: float
    total_value: float
    absolute_return: float
    return_percentage: float
    annualized_return: Optional[float]
    irr: Optional[IRRResult]


@dataclass
class RiskFactor(SerializableResult):
    factor_type: str
    severity: RiskLevel
    description: str
    impact: float


@dataclass
class RiskMetrics(SerializableResult):
    """Risk assessment of a portfolio snapshot."""
    portfolio_id: str
    risk_score: float
    risk_level: RiskLevel
    volatility: Optional[float]
    annualized_volatility: Optional[float]
    volatility_source: VolatilitySource
    max_drawdown: Optional[float]
    value_at_risk: Optional[float]
    conditional_value_at_risk: Optional[float]
    confidence_level: float
    time_horizon: int
    concentration_index: float
    sharpe_ratio: Optional[float]
    annualized_return: Optional[float]
    benchmark_return: float
    outperformance: Optional[float]
    risk_factors: List[RiskFactor] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    issues: List[CalculationIssue] = field(default_factory=list)
    assessed_at: Optional[datetime] = None


@dataclass
class AllocationRecommendation(SerializableResult):
    investment_id: str
    name: str
    sector: str
    risk_level: RiskLevel
    current_weight: float
    recommended_weight: float
    action: TradeAction
    transaction_amount: float
    diversification_warnings: List[str] = field(default_factory=list)

    @property
    def weight_change(self) -> float:
        return self.recommended_weight - self.current_weight


@dataclass
class ImprovementMetrics(SerializableResult):
    return_improvement: float
    risk_reduction: float
    sharpe_improvement: Optional[float]
    diversification_improvement: float
    cost_efficiency: float


@dataclass
class OptimizationResult(SerializableResult):
    portfolio_id: str
    objective: OptimizationObjective
    status: OptimizationStatus
    expected_return: float
    expected_risk: float
    expected_sharpe: Optional[float]
    risk_level: RiskLevel
    recommendations: List[AllocationRecommendation]
    rebalancing_cost: float
    turnover: float
    improvement: ImprovementMetrics
    cash_weight: float = 0.0
    rebalancing_budget: Optional[float] = None
    budget_limited: bool = False
    iteration_limited: bool = False
    iterations: int = 0
    issues: List[CalculationIssue] = field(default_factory=list)
    optimized_at: Optional[datetime] = None

    @property
    def trades(self) -> List[AllocationRecommendation]:
        return [rec for rec in self.recommendations if rec.action != TradeAction.HOLD]


@dataclass
class StrategyRecommendation(SerializableResult):
    id: str
    portfolio_id: str
    recommendation_type: RecommendationType
    priority: RecommendationPriority
    title: str
    description: str
    expected_return_impact: float
    expected_risk_impact: float
    time_horizon: str
    action_items: List[str] = field(default_factory=list)
    valid_until: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class PositionImpact(SerializableResult):
    investment_id: str
    sector: str
    base_value: float
    stressed_value: float
    shock_percent: float

    @property
    def loss(self) -> float:
        return self.base_value - self.stressed_value


@dataclass
class ScenarioResult(SerializableResult):
    scenario_name: str
    scenario_type: ScenarioType
    base_value: float
    stressed_value: float
    loss: float
    loss_percentage: float
    max_loss_threshold: Optional[float]
    exceeds_threshold: bool
    position_impacts: List[PositionImpact] = field(default_factory=list)


@dataclass
class StressTestReport(SerializableResult):
    portfolio_id: str
    scenarios: List[ScenarioResult]
    worst_scenario: Optional[str]
    breached_count: int
    tested_at: Optional[datetime] = None


@dataclass
class DiversificationCheck(SerializableResult):
    """Outcome of the advisory diversification gate."""
    is_within_limits: bool
    violations: List[CalculationIssue] = field(default_factory=list)
    resulting_total: float = 0.0
    position_share: float = 0.0
    high_risk_share: float = 0.0

    @property
    def codes(self) -> List[str]:
        return [violation.code for violation in self.violations]


@dataclass
class ApplicationReceipt(SerializableResult):
    """Accepted investment application plus the advisory diversification outcome."""
    id: str
    project_id: str
    amount: float
    currency: Currency
    status: ApplicationStatus
    submitted_at: datetime
    diversification: Optional[DiversificationCheck] = None


@dataclass
class PortfolioAnalysis(SerializableResult):
    portfolio_id: str
    timeframe: Timeframe
    returns: PortfolioReturnMetrics
    risk: RiskMetrics
    observations: int
    analyzed_at: Optional[datetime] = None
