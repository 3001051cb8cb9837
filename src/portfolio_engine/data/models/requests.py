"""
Request models for every engine endpoint.

Each request kind maps to exactly one model; the validation gateway checks
raw payloads against the contract before any of these are constructed.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .common import ENGINE_MODEL_CONFIG, parse_timestamp


class RequestKind(str, Enum):
    """Closed set of request kinds handled by the gateway."""
    INVESTMENT_APPLICATION = "INVESTMENT_APPLICATION"
    PORTFOLIO_RECORD = "PORTFOLIO_RECORD"
    OPTIMIZATION = "OPTIMIZATION"
    RISK_ASSESSMENT = "RISK_ASSESSMENT"
    STRESS_TEST = "STRESS_TEST"
    RETURN_CALCULATION = "RETURN_CALCULATION"
    PORTFOLIO_ANALYSIS = "PORTFOLIO_ANALYSIS"


class Currency(str, Enum):
    CNY = "CNY"
    USD = "USD"
    EUR = "EUR"


class ApplicationStatus(str, Enum):
    """Investment application workflow states."""
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class CashFlowType(str, Enum):
    INFLOW = "INFLOW"
    OUTFLOW = "OUTFLOW"


class CalculationType(str, Enum):
    ABSOLUTE = "ABSOLUTE"
    ANNUALIZED = "ANNUALIZED"
    IRR = "IRR"
    SHARPE = "SHARPE"


class ScenarioType(str, Enum):
    """Deterministic shock models understood by the stress test engine."""
    MARKET_CRASH = "MARKET_CRASH"
    INTEREST_RATE_SHOCK = "INTEREST_RATE_SHOCK"
    LIQUIDITY_CRISIS = "LIQUIDITY_CRISIS"
    SECTOR_SPECIFIC = "SECTOR_SPECIFIC"
    UNIFORM = "UNIFORM"


class OptimizationObjective(str, Enum):
    MAXIMIZE_RETURN = "MAXIMIZE_RETURN"
    MINIMIZE_RISK = "MINIMIZE_RISK"
    MAXIMIZE_SHARPE = "MAXIMIZE_SHARPE"
    TARGET_RETURN = "TARGET_RETURN"
    TARGET_RISK = "TARGET_RISK"


class Timeframe(str, Enum):
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    TWO_YEARS = "2Y"
    FIVE_YEARS = "5Y"


class CreateInvestmentApplicationRequest(BaseModel):
    """Investment application submitted by an investor."""

    model_config = ENGINE_MODEL_CONFIG

    project_id: str = Field(..., min_length=1, description="Target project identifier")
    amount: float = Field(..., gt=0, description="Requested investment amount")
    currency: Currency = Field(Currency.CNY, description="Settlement currency")


class CashFlow(BaseModel):
    """Dated cash flow of a single investment."""

    model_config = ENGINE_MODEL_CONFIG

    occurred_at: datetime = Field(..., alias="date", description="Cash flow date")
    amount: float = Field(..., description="Cash flow amount")
    type: CashFlowType = Field(..., description="Direction of the flow")

    @field_validator('occurred_at', mode='before')
    @classmethod
    def coerce_date(cls, v):
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError('Cash flow date must be an ISO timestamp')
        return parsed

    @property
    def signed_amount(self) -> float:
        """Outflows are negative and inflows positive, whatever sign was sent."""
        if self.type == CashFlowType.OUTFLOW:
            return -abs(self.amount)
        return abs(self.amount)


class InvestmentReturnInput(BaseModel):
    """One investment inside a return-calculation request."""

    model_config = ENGINE_MODEL_CONFIG

    id: Optional[str] = Field(None, description="Caller reference")
    amount: float = Field(..., gt=0)
    current_value: float = Field(..., ge=0)
    investment_date: datetime = Field(...)
    cash_flows: List[CashFlow] = Field(default_factory=list)
    period_returns: Optional[List[float]] = Field(None, description="Periodic returns for Sharpe volatility")
    periods_per_year: Optional[int] = Field(None, gt=0)

    @field_validator('investment_date', mode='before')
    @classmethod
    def coerce_investment_date(cls, v):
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError('investmentDate must be an ISO timestamp')
        return parsed


class ReturnCalculationRequest(BaseModel):
    model_config = ENGINE_MODEL_CONFIG

    investments: List[InvestmentReturnInput] = Field(..., min_length=1)
    calculation_type: CalculationType = Field(...)
    benchmark_rate: Optional[float] = Field(None, ge=0, le=1)


class RiskAssessmentOptions(BaseModel):
    """Optional knobs of a risk assessment; unset values fall back to configuration."""

    model_config = ENGINE_MODEL_CONFIG

    confidence_level: Optional[float] = Field(None, gt=0, lt=1)
    time_horizon: Optional[int] = Field(None, gt=0)
    risk_free_rate: Optional[float] = Field(None, ge=0, le=1)
    benchmark_return: Optional[float] = Field(None, ge=-1, le=10)


class RiskAssessmentRequest(BaseModel):
    model_config = ENGINE_MODEL_CONFIG

    portfolio_id: str = Field(..., min_length=1)
    options: RiskAssessmentOptions = Field(default_factory=RiskAssessmentOptions)


class StressScenarioSpec(BaseModel):
    """Named shock scenario."""

    model_config = ENGINE_MODEL_CONFIG

    name: str = Field(..., min_length=1)
    type: ScenarioType = Field(...)
    max_loss_threshold: Optional[float] = Field(None, ge=0, le=100, description="Maximum acceptable loss in percent")
    shock_percent: Optional[float] = Field(None, ge=0, le=100, description="Uniform shock in percent")
    sector_shocks: Dict[str, float] = Field(default_factory=dict, description="Per-sector shock in percent")


class StressTestRequest(BaseModel):
    model_config = ENGINE_MODEL_CONFIG

    portfolio_id: str = Field(..., min_length=1)
    scenarios: List[StressScenarioSpec] = Field(..., min_length=1)


class StrategyConstraints(BaseModel):
    """Hard limits for the optimizer; unset values fall back to configuration."""

    model_config = ENGINE_MODEL_CONFIG

    max_position_size: Optional[float] = Field(None, ge=0, le=1)
    min_position_size: Optional[float] = Field(None, ge=0, le=1)
    max_sector_concentration: Optional[float] = Field(None, ge=0, le=1)
    liquidity_requirement: Optional[float] = Field(None, ge=0, le=1)
    risk_budget: Optional[float] = Field(None, ge=0, le=1, description="Maximum expected annualized volatility")
    allowed_sectors: Optional[List[str]] = Field(None)
    excluded_investments: List[str] = Field(default_factory=list)


class OptimizationRequest(BaseModel):
    model_config = ENGINE_MODEL_CONFIG

    portfolio_id: str = Field(..., min_length=1)
    objective: OptimizationObjective = Field(...)
    constraints: StrategyConstraints = Field(default_factory=StrategyConstraints)
    target_return: Optional[float] = Field(None)
    target_risk: Optional[float] = Field(None)
    rebalancing_budget: Optional[float] = Field(None, ge=0, description="Maximum total transaction volume")


class PortfolioAnalysisRequest(BaseModel):
    model_config = ENGINE_MODEL_CONFIG

    portfolio_id: str = Field(..., min_length=1)
    timeframe: Timeframe = Field(Timeframe.ONE_YEAR)
