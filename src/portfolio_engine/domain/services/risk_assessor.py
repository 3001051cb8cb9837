"""
Portfolio risk assessment: volatility, drawdown, VaR, concentration and a
banded 0-10 risk score.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.stats import norm

from .return_calculator import ReturnCalculator
from ..value_objects.asset_model import AssetModel, build_asset_model
from ...application.config.settings import (
    DiversificationConfig,
    RiskConfig,
    get_diversification_config,
    get_risk_config
)
from ...data.models.portfolios import Portfolio, RiskLevel
from ...data.models.requests import RiskAssessmentOptions
from ...data.models.results import CalculationIssue, RiskFactor, RiskMetrics, VolatilitySource
from ...infrastructure.error_handling import ErrorCode, handle_errors


def classify_risk_score(score: float, config: Optional[RiskConfig] = None) -> RiskLevel:
    """Map a 0-10 score onto its risk band."""
    config = config or get_risk_config()
    if score <= config.band_low_max:
        return RiskLevel.LOW
    if score <= config.band_medium_max:
        return RiskLevel.MEDIUM
    if score <= config.band_high_max:
        return RiskLevel.HIGH
    return RiskLevel.VERY_HIGH


def herfindahl_index(weights: Sequence[float]) -> float:
    w = np.asarray(weights, dtype=float)
    return float(np.sum(w ** 2)) if w.size else 0.0


def normalized_herfindahl(weights: Sequence[float]) -> float:
    """HHI rescaled so an equal-weight portfolio is 0 and a single holding is 1."""
    n = len(weights)
    if n == 0:
        return 0.0
    if n == 1:
        return 1.0
    hhi = herfindahl_index(weights)
    return max(0.0, min(1.0, (hhi - 1 / n) / (1 - 1 / n)))


@dataclass
class _ReturnStatistics:
    daily_mean: float
    daily_volatility: float
    annualized_volatility: float
    source: VolatilitySource


class RiskAssessor:
    """
    Risk metrics for a portfolio snapshot.

    Observed value history drives volatility and drawdown when available;
    otherwise the asset model supplies an ex-ante volatility estimate.
    """

    def __init__(
        self,
        config: Optional[RiskConfig] = None,
        diversification_config: Optional[DiversificationConfig] = None,
        return_calculator: Optional[ReturnCalculator] = None
    ):
        self.config = config or get_risk_config()
        self.diversification_config = diversification_config or get_diversification_config()
        self.return_calculator = return_calculator or ReturnCalculator()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @handle_errors(operation_name="assess_risk")
    def assess(
        self,
        portfolio: Portfolio,
        options: Optional[RiskAssessmentOptions] = None,
        as_of: Optional[datetime] = None,
        model: Optional[AssetModel] = None
    ) -> RiskMetrics:
        """
        Assess a portfolio.

        Numerical failures (VaR, drawdown, Sharpe) are reported as issues next
        to the metrics that could still be computed.
        """
        options = options or RiskAssessmentOptions()
        as_of = as_of or datetime.utcnow()
        confidence = options.confidence_level or self.config.default_confidence_level
        horizon = options.time_horizon or self.config.default_time_horizon
        risk_free = options.risk_free_rate if options.risk_free_rate is not None else self.config.default_risk_free_rate
        benchmark = options.benchmark_return if options.benchmark_return is not None else risk_free

        holdings = portfolio.holdings
        model = model or build_asset_model(holdings, as_of)
        weights = self.current_weights(portfolio)
        issues: List[CalculationIssue] = []

        returns = self.period_returns(portfolio, horizon)
        stats = self._return_statistics(returns, weights, model, issues)

        max_drawdown = self.max_drawdown(portfolio, horizon)
        if max_drawdown is None:
            issues.append(CalculationIssue(
                code=ErrorCode.DRAWDOWN_UNDETERMINED.value,
                message="Maximum drawdown needs at least two value observations",
                metric="maxDrawdown"
            ))

        value_at_risk, cvar = self.parametric_var(
            portfolio.total_value, stats.daily_mean, stats.daily_volatility, confidence, horizon
        )
        if value_at_risk is None:
            issues.append(CalculationIssue(
                code=ErrorCode.VAR_UNDETERMINED.value,
                message="Value-at-Risk could not be estimated from the available inputs",
                metric="valueAtRisk"
            ))

        hhi = herfindahl_index(weights)
        score = self.risk_score(stats.annualized_volatility, max_drawdown, normalized_herfindahl(weights))
        level = classify_risk_score(score, self.config)

        annualized_return = self.portfolio_annualized_return(portfolio, as_of)
        sharpe_ratio = None
        outperformance = None
        if annualized_return is not None:
            outperformance = annualized_return - benchmark
            sharpe = self.return_calculator.sharpe_ratio(
                annualized_return, risk_free, volatility=stats.annualized_volatility
            )
            sharpe_ratio = sharpe.ratio
            if not sharpe.is_defined:
                issues.append(CalculationIssue(
                    code=ErrorCode.SHARPE_UNDEFINED.value,
                    message="Sharpe ratio is undefined for zero volatility",
                    metric="sharpeRatio"
                ))

        factors = self.risk_factors(portfolio, weights, hhi, stats.annualized_volatility)

        metrics = RiskMetrics(
            portfolio_id=portfolio.id,
            risk_score=score,
            risk_level=level,
            volatility=stats.daily_volatility,
            annualized_volatility=stats.annualized_volatility,
            volatility_source=stats.source,
            max_drawdown=max_drawdown,
            value_at_risk=value_at_risk,
            conditional_value_at_risk=cvar,
            confidence_level=confidence,
            time_horizon=horizon,
            concentration_index=hhi,
            sharpe_ratio=sharpe_ratio,
            annualized_return=annualized_return,
            benchmark_return=benchmark,
            outperformance=outperformance,
            risk_factors=factors,
            recommendations=self.recommendations(factors, level),
            issues=issues,
            assessed_at=as_of
        )

        self.logger.info(
            f"Assessed portfolio {portfolio.id}: score {score:.2f} ({level.value}), "
            f"{len(issues)} issues"
        )
        return metrics

    @staticmethod
    def current_weights(portfolio: Portfolio) -> np.ndarray:
        values = np.array([h.current_value for h in portfolio.holdings], dtype=float)
        total = values.sum()
        if total <= 0:
            return np.zeros_like(values)
        return values / total

    @staticmethod
    def value_series(portfolio: Portfolio) -> pd.Series:
        if not portfolio.value_history:
            return pd.Series(dtype=float)
        series = pd.Series(
            [point.value for point in portfolio.value_history],
            index=pd.to_datetime([point.valued_on for point in portfolio.value_history])
        )
        return series.sort_index()

    def period_returns(self, portfolio: Portfolio, time_horizon: int) -> pd.Series:
        """Simple returns of the value series, limited to the last ``time_horizon`` periods."""
        series = self.value_series(portfolio)
        if len(series) < 2:
            return pd.Series(dtype=float)
        returns = series.pct_change().replace([np.inf, -np.inf], np.nan).dropna()
        return returns.tail(time_horizon)

    def _return_statistics(
        self,
        returns: pd.Series,
        weights: np.ndarray,
        model: AssetModel,
        issues: List[CalculationIssue]
    ) -> _ReturnStatistics:
        periods = self.config.trading_days_per_year
        if len(returns) >= 2:
            daily_vol = float(returns.std(ddof=1))
            return _ReturnStatistics(
                daily_mean=float(returns.mean()),
                daily_volatility=daily_vol,
                annualized_volatility=daily_vol * math.sqrt(periods),
                source=VolatilitySource.HISTORY
            )

        issues.append(CalculationIssue(
            code=ErrorCode.INSUFFICIENT_HISTORY.value,
            message="Fewer than two period returns; volatility estimated from the asset model",
            metric="volatility"
        ))
        annual_vol = self.expected_allocation_volatility(weights, model) if model.size else 0.0
        annual_return = model.portfolio_return(weights) if model.size else 0.0
        return _ReturnStatistics(
            daily_mean=annual_return / periods,
            daily_volatility=annual_vol / math.sqrt(periods),
            annualized_volatility=annual_vol,
            source=VolatilitySource.MODEL
        )

    def max_drawdown(self, portfolio: Portfolio, time_horizon: Optional[int] = None) -> Optional[float]:
        """
        Largest peak-to-trough fall of the value series, as a positive fraction.

        With ``time_horizon`` only the last ``time_horizon`` periods count, the
        same window the period returns use.
        """
        series = self.value_series(portfolio)
        if time_horizon is not None:
            series = series.tail(time_horizon + 1)
        if len(series) < 2:
            return None
        peaks = series.cummax()
        drawdowns = (series - peaks) / peaks.where(peaks > 0)
        worst = drawdowns.min()
        if pd.isna(worst):
            return 0.0
        return float(-worst)

    @staticmethod
    def parametric_var(
        portfolio_value: float,
        daily_mean: float,
        daily_volatility: float,
        confidence_level: float,
        time_horizon: int
    ):
        """
        Parametric (normal) Value-at-Risk and conditional VaR over ``time_horizon`` days.

        Returns (None, None) when inputs are not finite.
        """
        inputs = (portfolio_value, daily_mean, daily_volatility, confidence_level)
        if not all(math.isfinite(x) for x in inputs) or not 0 < confidence_level < 1 or daily_volatility < 0:
            return None, None

        tail = 1 - confidence_level
        z = norm.ppf(tail)
        drift = daily_mean * time_horizon
        spread = daily_volatility * math.sqrt(time_horizon)

        var = portfolio_value * max(0.0, -(drift + z * spread))
        cvar = portfolio_value * max(0.0, -drift + spread * norm.pdf(z) / tail)
        return float(var), float(cvar)

    def risk_score(
        self,
        annualized_volatility: Optional[float],
        max_drawdown: Optional[float],
        concentration: Optional[float]
    ) -> float:
        """Blend available components into a 0-10 score, renormalizing weights."""
        components: Dict[str, float] = {}
        if annualized_volatility is not None and math.isfinite(annualized_volatility):
            components["volatility"] = min(annualized_volatility / self.config.volatility_cap, 1.0)
        if max_drawdown is not None:
            components["drawdown"] = min(max_drawdown / self.config.drawdown_cap, 1.0)
        if concentration is not None:
            components["concentration"] = concentration

        total_weight = sum(self.config.score_weights[name] for name in components)
        if total_weight <= 0:
            return 0.0

        blended = sum(self.config.score_weights[name] * value for name, value in components.items()) / total_weight
        return round(10 * max(0.0, min(1.0, blended)), 2)

    def portfolio_annualized_return(self, portfolio: Portfolio, as_of: datetime) -> Optional[float]:
        series = self.value_series(portfolio)
        if len(series) >= 2 and series.iloc[0] > 0:
            start = series.index[0].to_pydatetime()
            end = series.index[-1].to_pydatetime()
            return self.return_calculator.annualized_return(float(series.iloc[0]), float(series.iloc[-1]), start, end)

        start = portfolio.earliest_investment_date
        if start is None or portfolio.total_invested <= 0:
            return None
        return self.return_calculator.annualized_return(portfolio.total_invested, portfolio.total_value, start, as_of)

    @staticmethod
    def expected_allocation_volatility(weights: Sequence[float], model: AssetModel) -> float:
        """Ex-ante annualized volatility of a weight vector under the asset model."""
        return model.portfolio_volatility(weights)

    def risk_factors(
        self,
        portfolio: Portfolio,
        weights: np.ndarray,
        hhi: float,
        annualized_volatility: float
    ) -> List[RiskFactor]:
        factors = []

        if hhi > self.config.concentration_high_hhi:
            factors.append(RiskFactor(
                factor_type="CONCENTRATION",
                severity=RiskLevel.HIGH,
                description=f"Holdings are highly concentrated (HHI {hhi:.2f})",
                impact=hhi
            ))
        elif hhi > self.config.concentration_medium_hhi:
            factors.append(RiskFactor(
                factor_type="CONCENTRATION",
                severity=RiskLevel.MEDIUM,
                description=f"Holdings are moderately concentrated (HHI {hhi:.2f})",
                impact=hhi
            ))

        if annualized_volatility is not None and annualized_volatility > self.config.high_volatility_threshold:
            factors.append(RiskFactor(
                factor_type="VOLATILITY",
                severity=RiskLevel.HIGH,
                description=f"Annualized volatility of {annualized_volatility:.1%} is elevated",
                impact=annualized_volatility
            ))

        high_risk_share = float(sum(
            w for w, h in zip(weights, portfolio.holdings) if h.risk_level.is_high_risk
        ))
        if high_risk_share > self.diversification_config.max_high_risk_share:
            factors.append(RiskFactor(
                factor_type="HIGH_RISK_EXPOSURE",
                severity=RiskLevel.HIGH,
                description=f"{high_risk_share:.1%} of value sits in high-risk holdings",
                impact=high_risk_share
            ))

        return factors

    @staticmethod
    def recommendations(factors: List[RiskFactor], level: RiskLevel) -> List[str]:
        advice = []
        for factor in factors:
            if factor.factor_type == "CONCENTRATION":
                advice.append("Spread capital across more holdings and sectors to reduce concentration")
            elif factor.factor_type == "VOLATILITY":
                advice.append("Add lower-volatility holdings or raise the cash reserve")
            elif factor.factor_type == "HIGH_RISK_EXPOSURE":
                advice.append("Trim high-risk positions below the portfolio high-risk limit")

        if level.is_high_risk and not advice:
            advice.append("Review the portfolio risk profile against your risk tolerance")
        if not advice:
            advice.append("Risk profile is within normal limits; keep monitoring")
        return advice
