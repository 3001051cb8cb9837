"""
pytest configuration file for the portfolio engine tests.
Provides shared fixtures and test configuration.
"""

import copy
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest

from portfolio_engine.application.config.settings import reset_config_manager
from portfolio_engine.data.models.portfolios import (
    InvestmentStatus,
    Portfolio,
    PortfolioInvestment,
    RiskLevel
)
from portfolio_engine.data.validators.gateway import reset_validation_gateway

AS_OF = datetime(2024, 6, 30, 12, 0, 0)

VALUE_HISTORY = [
    ("2023-07-01", 100000.0),
    ("2023-08-01", 101500.0),
    ("2023-09-01", 99800.0),
    ("2023-10-01", 102300.0),
    ("2023-11-01", 104000.0),
    ("2023-12-01", 103100.0),
    ("2024-01-01", 105600.0),
    ("2024-02-01", 107200.0),
    ("2024-03-01", 106000.0),
    ("2024-04-01", 108300.0),
    ("2024-05-01", 109100.0),
    ("2024-06-01", 110000.0),
]


@pytest.fixture(autouse=True)
def fresh_engine_state():
    """Each test starts from the packaged settings and a new gateway."""
    reset_config_manager()
    reset_validation_gateway()
    yield
    reset_config_manager()
    reset_validation_gateway()


@pytest.fixture
def as_of() -> datetime:
    return AS_OF


# Data fixtures
@pytest.fixture
def portfolio_record() -> Dict[str, Any]:
    """Raw camelCase portfolio snapshot: four holdings across four sectors."""
    return {
        "id": "pf-001",
        "userId": "user-42",
        "name": "Balanced Growth",
        "totalInvested": 100000.0,
        "totalValue": 110000.0,
        "totalReturn": 10000.0,
        "returnPercentage": 10.0,
        "riskScore": 4.5,
        "investments": [
            {
                "id": "inv-tech", "projectId": "proj-1", "name": "Cloud Infra Fund",
                "amount": 30000.0, "currentValue": 36000.0, "riskLevel": "HIGH",
                "status": "ACTIVE", "sector": "Technology", "investedAt": "2023-01-15T00:00:00Z"
            },
            {
                "id": "inv-health", "projectId": "proj-2", "name": "Regional Clinics",
                "amount": 25000.0, "currentValue": 26500.0, "riskLevel": "MEDIUM",
                "status": "ACTIVE", "sector": "Healthcare", "investedAt": "2023-03-01T00:00:00Z"
            },
            {
                "id": "inv-energy", "projectId": "proj-3", "name": "Solar Parks",
                "amount": 20000.0, "currentValue": 21000.0, "riskLevel": "MEDIUM",
                "status": "ACTIVE", "sector": "Energy", "investedAt": "2023-06-01T00:00:00Z"
            },
            {
                "id": "inv-finance", "projectId": "proj-4", "name": "SME Credit Notes",
                "amount": 25000.0, "currentValue": 26500.0, "riskLevel": "LOW",
                "status": "ACTIVE", "sector": "Finance", "investedAt": "2023-02-01T00:00:00Z"
            },
        ],
        "valueHistory": [{"date": d, "value": v} for d, v in VALUE_HISTORY],
    }


@pytest.fixture
def portfolio(portfolio_record) -> Portfolio:
    return Portfolio.model_validate(portfolio_record)


@pytest.fixture
def make_investment():
    """Factory for holdings with sensible defaults."""
    def _make_investment(
        investment_id: str,
        amount: float,
        current_value: Optional[float] = None,
        risk_level: RiskLevel = RiskLevel.MEDIUM,
        sector: str = "Technology",
        status: InvestmentStatus = InvestmentStatus.ACTIVE,
        invested_at: datetime = datetime(2023, 6, 30)
    ) -> PortfolioInvestment:
        return PortfolioInvestment(
            id=investment_id,
            amount=amount,
            current_value=amount if current_value is None else current_value,
            risk_level=risk_level,
            status=status,
            sector=sector,
            invested_at=invested_at
        )

    return _make_investment


@pytest.fixture
def make_portfolio():
    """Factory for portfolios whose totals are derived from the holdings."""
    def _make_portfolio(
        investments: List[PortfolioInvestment],
        value_history: Optional[List[tuple]] = None,
        portfolio_id: str = "pf-test"
    ) -> Portfolio:
        holding = [inv for inv in investments if inv.status.is_holding]
        invested = sum(inv.amount for inv in holding)
        value = sum(inv.current_value for inv in holding)
        return Portfolio.model_validate({
            "id": portfolio_id,
            "userId": "user-test",
            "name": "Test Portfolio",
            "totalInvested": invested,
            "totalValue": value,
            "investments": [inv.model_dump(by_alias=True) for inv in investments],
            "valueHistory": [{"date": d, "value": v} for d, v in (value_history or [])],
        })

    return _make_portfolio


# Request fixtures
@pytest.fixture
def optimization_payload() -> Dict[str, Any]:
    return {
        "portfolioId": "pf-001",
        "objective": "MAXIMIZE_SHARPE",
        "constraints": {
            "maxPositionSize": 0.30,
            "minPositionSize": 0.05,
            "maxSectorConcentration": 0.40,
            "liquidityRequirement": 0.0,
        },
    }


@pytest.fixture
def return_payload() -> Dict[str, Any]:
    return {
        "calculationType": "IRR",
        "investments": [
            {
                "id": "deal-1",
                "amount": 1000.0,
                "currentValue": 1100.0,
                "investmentDate": "2023-01-01T00:00:00Z",
                "cashFlows": [
                    {"date": "2023-01-01T00:00:00Z", "amount": 1000.0, "type": "OUTFLOW"},
                    {"date": "2024-01-01T00:00:00Z", "amount": 1100.0, "type": "INFLOW"},
                ],
            }
        ],
    }


@pytest.fixture
def stress_payload() -> Dict[str, Any]:
    return {
        "portfolioId": "pf-001",
        "scenarios": [
            {"name": "Crash", "type": "MARKET_CRASH", "maxLossThreshold": 25},
            {"name": "Flat ten", "type": "UNIFORM", "shockPercent": 10, "maxLossThreshold": 15},
        ],
    }


@pytest.fixture
def deep_copy():
    return copy.deepcopy
