"""
Expected-return and covariance model for portfolio holdings.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

import numpy as np

from ...application.config.settings import AssetModelConfig, get_asset_model_config
from ...data.models.portfolios import PortfolioInvestment, RiskLevel


@dataclass(frozen=True)
class AssetModel:
    """
    Immutable per-holding return and risk assumptions.

    Arrays are aligned with ``investment_ids``. Expected returns and
    volatilities are annualized.
    """
    investment_ids: List[str]
    sectors: List[str]
    risk_levels: List[RiskLevel]
    expected_returns: np.ndarray
    volatilities: np.ndarray
    covariance: np.ndarray

    @property
    def size(self) -> int:
        return len(self.investment_ids)

    def portfolio_return(self, weights: Sequence[float], cash_weight: float = 0.0, cash_rate: float = 0.0) -> float:
        w = np.asarray(weights, dtype=float)
        return float(w @ self.expected_returns + cash_weight * cash_rate)

    def portfolio_variance(self, weights: Sequence[float]) -> float:
        w = np.asarray(weights, dtype=float)
        return max(float(w @ self.covariance @ w), 0.0)

    def portfolio_volatility(self, weights: Sequence[float]) -> float:
        return float(np.sqrt(self.portfolio_variance(weights)))

    def sector_matrix(self) -> np.ndarray:
        """Boolean (sector x holding) membership matrix in sorted sector order."""
        names = sorted(set(self.sectors))
        return np.array([[sector == name for sector in self.sectors] for name in names], dtype=bool)

    def sector_names(self) -> List[str]:
        return sorted(set(self.sectors))


def realized_annual_return(investment: PortfolioInvestment, as_of: datetime, days_per_year: float = 365.0) -> float:
    """Compound annual growth of a holding from its funding date to ``as_of``."""
    days = max((as_of - investment.invested_at).total_seconds() / 86400, 1.0)
    growth = investment.current_value / investment.amount
    if growth <= 0:
        return -1.0
    return growth ** (days_per_year / days) - 1


def build_asset_model(
    holdings: Sequence[PortfolioInvestment],
    as_of: Optional[datetime] = None,
    config: Optional[AssetModelConfig] = None
) -> AssetModel:
    """
    Build the asset model for a set of holdings.

    Expected return blends the risk-level prior with the clipped realized
    CAGR; covariance uses a constant same-sector / cross-sector correlation.
    """
    config = config or get_asset_model_config()
    as_of = as_of or datetime.utcnow()

    priors = np.array([config.expected_returns[h.risk_level.value] for h in holdings], dtype=float)
    realized = np.array([realized_annual_return(h, as_of) for h in holdings], dtype=float)
    realized = np.clip(realized, config.realized_return_floor, config.realized_return_cap)

    weight = config.realized_return_weight
    expected = (1 - weight) * priors + weight * realized

    vols = np.array([config.volatilities[h.risk_level.value] for h in holdings], dtype=float)

    sectors = [h.sector for h in holdings]
    n = len(holdings)
    correlation = np.full((n, n), config.cross_sector_correlation)
    for i in range(n):
        for j in range(n):
            if i == j:
                correlation[i, j] = 1.0
            elif sectors[i] == sectors[j]:
                correlation[i, j] = config.same_sector_correlation

    covariance = np.outer(vols, vols) * correlation

    return AssetModel(
        investment_ids=[h.id for h in holdings],
        sectors=sectors,
        risk_levels=[h.risk_level for h in holdings],
        expected_returns=expected,
        volatilities=vols,
        covariance=covariance
    )
