"""
Portfolio snapshot models consumed (read-only) by the engine.
"""

from datetime import datetime, date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .common import ENGINE_MODEL_CONFIG, parse_timestamp


class RiskLevel(str, Enum):
    """Risk classification of a holding or a portfolio."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"

    @property
    def is_high_risk(self) -> bool:
        return self in (RiskLevel.HIGH, RiskLevel.VERY_HIGH)


class InvestmentStatus(str, Enum):
    """Lifecycle status of a portfolio investment."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    SUSPENDED = "SUSPENDED"

    @property
    def is_holding(self) -> bool:
        """Whether the investment still contributes to portfolio value."""
        return self in (InvestmentStatus.ACTIVE, InvestmentStatus.SUSPENDED)

    @property
    def is_tradable(self) -> bool:
        return self == InvestmentStatus.ACTIVE


class ValuePoint(BaseModel):
    """Observed portfolio value at a point in time."""

    model_config = ENGINE_MODEL_CONFIG

    valued_on: date = Field(..., alias="date", description="Valuation date")
    value: float = Field(..., ge=0, description="Total portfolio value on that date")

    @field_validator('valued_on', mode='before')
    @classmethod
    def coerce_date(cls, v):
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError('Value point date must be an ISO date')
        return parsed.date()


class PortfolioInvestment(BaseModel):
    """A single holding inside a portfolio."""

    model_config = ENGINE_MODEL_CONFIG

    id: str = Field(..., min_length=1, description="Investment identifier")
    portfolio_id: Optional[str] = Field(None, description="Owning portfolio identifier")
    project_id: Optional[str] = Field(None, description="Target project/asset identifier")
    name: Optional[str] = Field(None, description="Display name")
    amount: float = Field(..., gt=0, description="Invested amount")
    current_value: float = Field(..., ge=0, description="Current valuation")
    risk_level: RiskLevel = Field(..., description="Risk classification")
    status: InvestmentStatus = Field(InvestmentStatus.ACTIVE, description="Lifecycle status")
    sector: str = Field("Unclassified", min_length=1, description="Sector label")
    invested_at: datetime = Field(..., description="Funding timestamp")

    @field_validator('invested_at', mode='before')
    @classmethod
    def coerce_invested_at(cls, v):
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError('investedAt must be an ISO timestamp')
        return parsed

    @property
    def display_name(self) -> str:
        return self.name or self.project_id or self.id

    @property
    def unrealized_return(self) -> float:
        return self.current_value - self.amount


class Portfolio(BaseModel):
    """Read-only portfolio snapshot supplied by the caller."""

    model_config = ENGINE_MODEL_CONFIG

    id: str = Field(..., min_length=1, description="Portfolio identifier")
    user_id: str = Field(..., min_length=1, description="Owning user identifier")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    total_invested: float = Field(..., ge=0, description="Total invested amount")
    total_value: float = Field(..., ge=0, description="Total current value")
    total_return: Optional[float] = Field(None, description="totalValue - totalInvested")
    return_percentage: Optional[float] = Field(None, description="Total return in percent")
    risk_score: float = Field(0.0, ge=0, le=10, description="Stored risk score (0-10)")
    investments: List[PortfolioInvestment] = Field(default_factory=list)
    value_history: List[ValuePoint] = Field(default_factory=list, description="Observed value series")

    @property
    def holdings(self) -> List[PortfolioInvestment]:
        """Investments that still carry value (ACTIVE and SUSPENDED)."""
        return [inv for inv in self.investments if inv.status.is_holding]

    @property
    def holdings_value(self) -> float:
        return sum(inv.current_value for inv in self.holdings)

    @property
    def holdings_invested(self) -> float:
        return sum(inv.amount for inv in self.holdings)

    @property
    def earliest_investment_date(self) -> Optional[datetime]:
        dates = [inv.invested_at for inv in self.holdings]
        return min(dates) if dates else None
