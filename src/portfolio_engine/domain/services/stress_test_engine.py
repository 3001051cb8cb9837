"""
Deterministic stress scenarios applied to portfolio holdings.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from ...application.config.settings import StressConfig, get_stress_config
from ...data.models.portfolios import Portfolio, PortfolioInvestment
from ...data.models.requests import ScenarioType, StressScenarioSpec, StressTestRequest
from ...data.models.results import PositionImpact, ScenarioResult, StressTestReport
from ...infrastructure.error_handling import handle_errors


class StressTestEngine:
    """
    Applies percentage shocks to holding values.

    Every scenario type maps to a per-holding shock; ``sectorShocks`` entries
    replace that shock for holdings in the named sectors.
    """

    def __init__(self, config: Optional[StressConfig] = None):
        self.config = config or get_stress_config()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @handle_errors(operation_name="run_stress_test")
    def run(self, portfolio: Portfolio, request: StressTestRequest, as_of: Optional[datetime] = None) -> StressTestReport:
        results = [self.run_scenario(portfolio, scenario) for scenario in request.scenarios]

        worst = max(results, key=lambda r: r.loss_percentage) if results else None
        breached = sum(1 for r in results if r.exceeds_threshold)

        self.logger.info(
            f"Stress tested portfolio {portfolio.id} with {len(results)} scenarios, {breached} breached"
        )
        return StressTestReport(
            portfolio_id=portfolio.id,
            scenarios=results,
            worst_scenario=worst.scenario_name if worst else None,
            breached_count=breached,
            tested_at=as_of or datetime.utcnow()
        )

    def run_scenario(self, portfolio: Portfolio, scenario: StressScenarioSpec) -> ScenarioResult:
        holdings = portfolio.holdings
        shocked_sectors = self._shocked_sectors(holdings, scenario)

        impacts = []
        for holding in holdings:
            shock = self.shock_for(holding, scenario, shocked_sectors)
            impacts.append(PositionImpact(
                investment_id=holding.id,
                sector=holding.sector,
                base_value=holding.current_value,
                stressed_value=holding.current_value * (1 - shock / 100),
                shock_percent=shock
            ))

        base_value = sum(impact.base_value for impact in impacts)
        stressed_value = sum(impact.stressed_value for impact in impacts)
        loss = base_value - stressed_value
        loss_percentage = loss / base_value * 100 if base_value > 0 else 0.0
        threshold = scenario.max_loss_threshold

        return ScenarioResult(
            scenario_name=scenario.name,
            scenario_type=scenario.type,
            base_value=base_value,
            stressed_value=stressed_value,
            loss=loss,
            loss_percentage=loss_percentage,
            max_loss_threshold=threshold,
            exceeds_threshold=threshold is not None and loss_percentage > threshold,
            position_impacts=impacts
        )

    def shock_for(
        self,
        holding: PortfolioInvestment,
        scenario: StressScenarioSpec,
        shocked_sectors: Optional[set] = None
    ) -> float:
        """Shock in percent for one holding under one scenario."""
        if holding.sector in scenario.sector_shocks:
            return scenario.sector_shocks[holding.sector]

        scenario_type = scenario.type
        if scenario_type == ScenarioType.MARKET_CRASH:
            return self.config.market_crash_shock
        if scenario_type == ScenarioType.INTEREST_RATE_SHOCK:
            return self.config.interest_rate_shock
        if scenario_type == ScenarioType.LIQUIDITY_CRISIS:
            if holding.risk_level.is_high_risk:
                return self.config.liquidity_crisis_high_risk_shock
            return self.config.liquidity_crisis_shock
        if scenario_type == ScenarioType.SECTOR_SPECIFIC:
            if shocked_sectors and holding.sector in shocked_sectors:
                return self.config.sector_specific_shock
            return 0.0
        if scenario_type == ScenarioType.UNIFORM:
            return scenario.shock_percent or 0.0

        return 0.0

    @staticmethod
    def _shocked_sectors(holdings: List[PortfolioInvestment], scenario: StressScenarioSpec) -> set:
        if scenario.type != ScenarioType.SECTOR_SPECIFIC:
            return set()
        if scenario.sector_shocks:
            return set(scenario.sector_shocks)

        exposure: Dict[str, float] = defaultdict(float)
        for holding in holdings:
            exposure[holding.sector] += holding.current_value
        if not exposure:
            return set()
        # Ties go to the alphabetically first sector
        largest = max(sorted(exposure), key=lambda sector: exposure[sector])
        return {largest}
