"""
Request contract validators for every engine endpoint.

Each validator inspects a raw JSON-like payload and records every violation
it finds; none of them stop at the first problem.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .base import (
    ValidationResult,
    get_field,
    has_field,
    is_non_empty_string,
    check_number_in_range,
    check_date
)
from ..models.common import is_integral, is_number, parse_timestamp
from ..models.portfolios import RiskLevel, InvestmentStatus
from ..models.requests import (
    CalculationType,
    CashFlowType,
    OptimizationObjective,
    ScenarioType
)
from ...application.config.settings import (
    OptimizerConfig,
    ValidationConfig,
    get_optimizer_config,
    get_validation_config
)
from ...infrastructure.error_handling import ErrorCode

logger = logging.getLogger(__name__)

CONSTRAINT_FIELDS = (
    "maxPositionSize",
    "minPositionSize",
    "maxSectorConcentration",
    "liquidityRequirement",
    "riskBudget",
)


def _require_mapping(payload: Any, result: ValidationResult, field: Optional[str] = None) -> bool:
    if isinstance(payload, dict):
        return True
    result.add_error(ErrorCode.INVALID_PAYLOAD, "Request body must be a JSON object", field)
    return False


def _check_portfolio_id(payload: Dict[str, Any], result: ValidationResult, field: str = "portfolioId"):
    if not is_non_empty_string(get_field(payload, field)):
        result.add_error(ErrorCode.INVALID_PORTFOLIO_ID, "Portfolio ID is required and must be a string", field)


class InvestmentApplicationValidator:
    """Validator for CreateInvestmentApplicationRequest payloads."""

    @staticmethod
    def validate(payload: Any, config: Optional[ValidationConfig] = None) -> ValidationResult:
        config = config or get_validation_config()
        result = ValidationResult()
        if not _require_mapping(payload, result):
            return result

        if not is_non_empty_string(get_field(payload, "projectId")):
            result.add_error(ErrorCode.INVALID_PROJECT_ID, "Project ID is required and must be a string", "projectId")

        amount = get_field(payload, "amount")
        if not is_number(amount) or amount <= 0:
            result.add_error(ErrorCode.INVALID_AMOUNT, "Investment amount must be a positive number", "amount")
        elif amount < config.min_investment_amount:
            result.add_error(
                ErrorCode.AMOUNT_TOO_LOW,
                f"Minimum investment amount is {config.min_investment_amount:,.0f}",
                "amount"
            )
        elif amount > config.max_investment_amount:
            result.add_error(
                ErrorCode.AMOUNT_TOO_HIGH,
                f"Maximum investment amount is {config.max_investment_amount:,.0f}",
                "amount"
            )

        currency = get_field(payload, "currency")
        if currency is not None and currency not in config.allowed_currencies:
            result.add_error(
                ErrorCode.INVALID_CURRENCY,
                f"Currency must be one of: {', '.join(config.allowed_currencies)}",
                "currency"
            )

        return result


class PortfolioInvestmentValidator:
    """Validator for a single holding inside a portfolio record."""

    @staticmethod
    def validate(payload: Any) -> ValidationResult:
        result = ValidationResult()
        if not _require_mapping(payload, result):
            return result

        if not is_non_empty_string(get_field(payload, "id")):
            result.add_error(ErrorCode.INVALID_INVESTMENT_ID, "Investment ID is required and must be a string", "id")

        check_number_in_range(
            result, get_field(payload, "amount"), "amount", ErrorCode.INVALID_AMOUNT,
            minimum=0, exclusive_minimum=True, label="Investment amount"
        )
        check_number_in_range(
            result, get_field(payload, "currentValue"), "currentValue", ErrorCode.INVALID_CURRENT_VALUE,
            minimum=0, label="Current value"
        )

        risk_level = get_field(payload, "riskLevel")
        if risk_level not in [level.value for level in RiskLevel]:
            result.add_error(
                ErrorCode.INVALID_RISK_LEVEL,
                f"Risk level must be one of: {', '.join(level.value for level in RiskLevel)}",
                "riskLevel"
            )

        status = get_field(payload, "status")
        if status is not None and status not in [s.value for s in InvestmentStatus]:
            result.add_error(
                ErrorCode.INVALID_STATUS,
                f"Status must be one of: {', '.join(s.value for s in InvestmentStatus)}",
                "status"
            )

        check_date(
            result, get_field(payload, "investedAt"), "investedAt",
            ErrorCode.INVALID_INVESTED_DATE, ErrorCode.INVALID_INVESTED_DATE,
            label="Invested date"
        )

        sector = get_field(payload, "sector")
        if sector is not None and not is_non_empty_string(sector):
            result.add_error(ErrorCode.INVALID_SECTOR, "Sector must be a non-empty string", "sector")

        return result


class PortfolioRecordValidator:
    """Validator for portfolio snapshots supplied by collaborators."""

    @staticmethod
    def validate(payload: Any, config: Optional[ValidationConfig] = None) -> ValidationResult:
        config = config or get_validation_config()
        result = ValidationResult()
        if not _require_mapping(payload, result):
            return result

        _check_portfolio_id(payload, result, "id")

        if not is_non_empty_string(get_field(payload, "userId")):
            result.add_error(ErrorCode.INVALID_USER_ID, "User ID is required and must be a string", "userId")

        name = get_field(payload, "name")
        if not is_non_empty_string(name):
            result.add_error(ErrorCode.INVALID_NAME, "Portfolio name is required", "name")
        elif len(name) > config.max_portfolio_name_length:
            result.add_error(
                ErrorCode.NAME_TOO_LONG,
                f"Portfolio name cannot exceed {config.max_portfolio_name_length} characters",
                "name"
            )

        total_value = get_field(payload, "totalValue")
        total_invested = get_field(payload, "totalInvested")
        value_ok = check_number_in_range(
            result, total_value, "totalValue", ErrorCode.INVALID_TOTAL_VALUE, minimum=0, label="Total value"
        )
        invested_ok = check_number_in_range(
            result, total_invested, "totalInvested", ErrorCode.INVALID_TOTAL_INVESTED, minimum=0,
            label="Total invested"
        )

        if has_field(payload, "riskScore"):
            check_number_in_range(
                result, get_field(payload, "riskScore"), "riskScore", ErrorCode.INVALID_RISK_SCORE,
                minimum=0, maximum=config.max_risk_score, label="Risk score"
            )

        total_return = get_field(payload, "totalReturn")
        if total_return is not None:
            if not is_number(total_return):
                result.add_error(ErrorCode.PORTFOLIO_TOTALS_MISMATCH, "Total return must be a number", "totalReturn")
            elif value_ok and invested_ok and abs(total_value - (total_invested + total_return)) > config.totals_tolerance:
                result.add_error(
                    ErrorCode.PORTFOLIO_TOTALS_MISMATCH,
                    "Total value must equal total invested plus total return",
                    "totalReturn"
                )

        investments = get_field(payload, "investments", [])
        if not isinstance(investments, list):
            result.add_error(ErrorCode.INVALID_INVESTMENTS, "Investments must be a list", "investments")
        else:
            for i, investment in enumerate(investments):
                result.merge(PortfolioInvestmentValidator.validate(investment), prefix=f"investments[{i}]")

        history = get_field(payload, "valueHistory", [])
        if not isinstance(history, list):
            result.add_error(ErrorCode.INVALID_VALUE_POINT, "Value history must be a list", "valueHistory")
        else:
            for i, point in enumerate(history):
                valid_point = (
                    isinstance(point, dict)
                    and parse_timestamp(point.get("date")) is not None
                    and is_number(point.get("value"))
                    and point.get("value") >= 0
                )
                if not valid_point:
                    result.add_error(
                        ErrorCode.INVALID_VALUE_POINT,
                        "Value points need a valid date and a non-negative value",
                        f"valueHistory[{i}]"
                    )

        return result


class RiskAssessmentRequestValidator:
    """Validator for risk-assessment requests."""

    @staticmethod
    def validate(payload: Any, config: Optional[ValidationConfig] = None) -> ValidationResult:
        config = config or get_validation_config()
        result = ValidationResult()
        if not _require_mapping(payload, result):
            return result

        _check_portfolio_id(payload, result)

        options = get_field(payload, "options")
        if options is None:
            return result
        if not isinstance(options, dict):
            result.add_error(ErrorCode.INVALID_OPTIONS, "Options must be an object", "options")
            return result

        if has_field(options, "confidenceLevel"):
            check_number_in_range(
                result, get_field(options, "confidenceLevel"), "options.confidenceLevel",
                ErrorCode.INVALID_CONFIDENCE_LEVEL, minimum=0, maximum=1,
                exclusive_minimum=True, exclusive_maximum=True, label="Confidence level"
            )

        if has_field(options, "timeHorizon"):
            horizon = get_field(options, "timeHorizon")
            if not is_integral(horizon) or not 0 < horizon <= config.max_time_horizon_days:
                result.add_error(
                    ErrorCode.INVALID_TIME_HORIZON,
                    f"Time horizon must be a whole number of days in (0, {config.max_time_horizon_days}]",
                    "options.timeHorizon"
                )

        if has_field(options, "riskFreeRate"):
            check_number_in_range(
                result, get_field(options, "riskFreeRate"), "options.riskFreeRate",
                ErrorCode.INVALID_RISK_FREE_RATE, minimum=0, maximum=1, label="Risk-free rate"
            )

        if has_field(options, "benchmarkReturn"):
            check_number_in_range(
                result, get_field(options, "benchmarkReturn"), "options.benchmarkReturn",
                ErrorCode.INVALID_BENCHMARK_RETURN, minimum=-1, maximum=10, label="Benchmark return"
            )

        return result


class ReturnCalculationRequestValidator:
    """Validator for returns/calculate requests."""

    @staticmethod
    def validate(
        payload: Any,
        config: Optional[ValidationConfig] = None,
        as_of: Optional[datetime] = None
    ) -> ValidationResult:
        config = config or get_validation_config()
        result = ValidationResult()
        if not _require_mapping(payload, result):
            return result

        investments = get_field(payload, "investments")
        if not isinstance(investments, list) or not investments:
            result.add_error(ErrorCode.MISSING_INVESTMENTS, "At least one investment is required", "investments")
            investments = []
        elif len(investments) > config.max_return_investments:
            result.add_error(
                ErrorCode.TOO_MANY_INVESTMENTS,
                f"Cannot calculate returns for more than {config.max_return_investments} investments at once",
                "investments"
            )

        for i, investment in enumerate(investments):
            result.merge(
                ReturnCalculationRequestValidator._validate_investment(investment, as_of),
                prefix=f"investments[{i}]"
            )

        calculation_type = get_field(payload, "calculationType")
        if calculation_type not in [t.value for t in CalculationType]:
            result.add_error(
                ErrorCode.INVALID_CALCULATION_TYPE,
                f"Calculation type must be one of: {', '.join(t.value for t in CalculationType)}",
                "calculationType"
            )

        if calculation_type == CalculationType.SHARPE.value:
            benchmark = get_field(payload, "benchmarkRate")
            if benchmark is None:
                result.add_error(
                    ErrorCode.MISSING_BENCHMARK_RATE,
                    "Benchmark rate is required for Sharpe ratio calculation",
                    "benchmarkRate"
                )
            else:
                check_number_in_range(
                    result, benchmark, "benchmarkRate", ErrorCode.INVALID_BENCHMARK_RATE,
                    minimum=0, maximum=1, label="Benchmark rate"
                )

        if calculation_type == CalculationType.IRR.value:
            has_enough_flows = any(
                isinstance(inv, dict)
                and isinstance(get_field(inv, "cashFlows"), list)
                and len(get_field(inv, "cashFlows")) >= 2
                for inv in investments
            )
            if not has_enough_flows:
                result.add_error(
                    ErrorCode.INSUFFICIENT_CASH_FLOWS,
                    "IRR calculation requires at least one investment with two or more cash flows",
                    "investments"
                )

        return result

    @staticmethod
    def _validate_investment(investment: Any, as_of: Optional[datetime]) -> ValidationResult:
        result = ValidationResult()
        if not _require_mapping(investment, result):
            return result

        check_number_in_range(
            result, get_field(investment, "amount"), "amount", ErrorCode.INVALID_AMOUNT,
            minimum=0, exclusive_minimum=True, label="Investment amount"
        )
        check_number_in_range(
            result, get_field(investment, "currentValue"), "currentValue", ErrorCode.INVALID_CURRENT_VALUE,
            minimum=0, label="Current value"
        )
        check_date(
            result, get_field(investment, "investmentDate"), "investmentDate",
            ErrorCode.MISSING_INVESTMENT_DATE, ErrorCode.INVALID_INVESTMENT_DATE,
            future_code=ErrorCode.FUTURE_INVESTMENT_DATE, as_of=as_of, label="Investment date"
        )

        cash_flows = get_field(investment, "cashFlows")
        if cash_flows is not None:
            if not isinstance(cash_flows, list):
                result.add_error(ErrorCode.INVALID_CASH_FLOWS, "Cash flows must be a list", "cashFlows")
            else:
                for j, flow in enumerate(cash_flows):
                    result.merge(
                        ReturnCalculationRequestValidator._validate_cash_flow(flow),
                        prefix=f"cashFlows[{j}]"
                    )

        period_returns = get_field(investment, "periodReturns")
        if period_returns is not None:
            if not isinstance(period_returns, list) or not all(is_number(r) for r in period_returns):
                result.add_error(
                    ErrorCode.INVALID_PERIOD_RETURNS, "Period returns must be a list of numbers", "periodReturns"
                )

        periods_per_year = get_field(investment, "periodsPerYear")
        if periods_per_year is not None and (not is_integral(periods_per_year) or periods_per_year < 1):
            result.add_error(
                ErrorCode.INVALID_PERIODS_PER_YEAR, "Periods per year must be a positive integer", "periodsPerYear"
            )

        return result

    @staticmethod
    def _validate_cash_flow(flow: Any) -> ValidationResult:
        result = ValidationResult()
        if not _require_mapping(flow, result):
            return result

        check_date(
            result, get_field(flow, "date"), "date",
            ErrorCode.MISSING_CASH_FLOW_DATE, ErrorCode.INVALID_CASH_FLOW_DATE,
            label="Cash flow date"
        )

        if not is_number(get_field(flow, "amount")):
            result.add_error(ErrorCode.INVALID_CASH_FLOW_AMOUNT, "Cash flow amount must be a number", "amount")

        if get_field(flow, "type") not in [t.value for t in CashFlowType]:
            result.add_error(
                ErrorCode.INVALID_CASH_FLOW_TYPE,
                f"Cash flow type must be one of: {', '.join(t.value for t in CashFlowType)}",
                "type"
            )

        return result


class StressTestRequestValidator:
    """Validator for stress-test requests."""

    @staticmethod
    def validate(payload: Any) -> ValidationResult:
        result = ValidationResult()
        if not _require_mapping(payload, result):
            return result

        _check_portfolio_id(payload, result)

        scenarios = get_field(payload, "scenarios")
        if not isinstance(scenarios, list) or not scenarios:
            result.add_error(ErrorCode.INVALID_SCENARIOS, "At least one stress test scenario is required", "scenarios")
            return result

        for i, scenario in enumerate(scenarios):
            result.merge(StressTestRequestValidator._validate_scenario(scenario), prefix=f"scenarios[{i}]")

        return result

    @staticmethod
    def _validate_scenario(scenario: Any) -> ValidationResult:
        result = ValidationResult()
        if not _require_mapping(scenario, result):
            return result

        if not is_non_empty_string(get_field(scenario, "name")):
            result.add_error(ErrorCode.INVALID_SCENARIO_NAME, "Scenario name is required", "name")

        scenario_type = get_field(scenario, "type")
        if not is_non_empty_string(scenario_type) or scenario_type not in [t.value for t in ScenarioType]:
            result.add_error(
                ErrorCode.INVALID_SCENARIO_TYPE,
                f"Scenario type must be one of: {', '.join(t.value for t in ScenarioType)}",
                "type"
            )

        if has_field(scenario, "maxLossThreshold"):
            check_number_in_range(
                result, get_field(scenario, "maxLossThreshold"), "maxLossThreshold",
                ErrorCode.INVALID_LOSS_THRESHOLD, minimum=0, maximum=100, label="Max loss threshold"
            )

        if has_field(scenario, "shockPercent"):
            check_number_in_range(
                result, get_field(scenario, "shockPercent"), "shockPercent",
                ErrorCode.INVALID_SHOCK, minimum=0, maximum=100, label="Shock percent"
            )
        elif scenario_type == ScenarioType.UNIFORM.value:
            result.add_error(ErrorCode.MISSING_SHOCK, "Uniform scenarios require shockPercent", "shockPercent")

        sector_shocks = get_field(scenario, "sectorShocks")
        if sector_shocks is not None:
            if not isinstance(sector_shocks, dict):
                result.add_error(ErrorCode.INVALID_SECTOR_SHOCK, "Sector shocks must be an object", "sectorShocks")
            else:
                for sector, shock in sector_shocks.items():
                    if not is_non_empty_string(sector) or not is_number(shock) or not 0 <= shock <= 100:
                        result.add_error(
                            ErrorCode.INVALID_SECTOR_SHOCK,
                            "Sector shocks must map sector names to percentages in [0, 100]",
                            f"sectorShocks.{sector}"
                        )

        return result


class OptimizationRequestValidator:
    """Validator for optimize requests."""

    @staticmethod
    def validate(payload: Any, optimizer_config: Optional[OptimizerConfig] = None) -> ValidationResult:
        optimizer_config = optimizer_config or get_optimizer_config()
        result = ValidationResult()
        if not _require_mapping(payload, result):
            return result

        _check_portfolio_id(payload, result)

        objective = get_field(payload, "objective")
        if objective not in [o.value for o in OptimizationObjective]:
            result.add_error(
                ErrorCode.INVALID_OBJECTIVE,
                f"Objective must be one of: {', '.join(o.value for o in OptimizationObjective)}",
                "objective"
            )

        constraints = get_field(payload, "constraints")
        if constraints is not None:
            if not isinstance(constraints, dict):
                result.add_error(ErrorCode.INVALID_CONSTRAINTS, "Constraints must be an object", "constraints")
            else:
                OptimizationRequestValidator._validate_constraints(constraints, optimizer_config, result)

        if objective == OptimizationObjective.TARGET_RETURN.value:
            target = get_field(payload, "targetReturn")
            if target is None:
                result.add_error(
                    ErrorCode.MISSING_TARGET_RETURN, "targetReturn is required for TARGET_RETURN", "targetReturn"
                )
            else:
                check_number_in_range(
                    result, target, "targetReturn", ErrorCode.INVALID_TARGET_RETURN,
                    minimum=-1, maximum=10, label="Target return"
                )
        elif has_field(payload, "targetReturn"):
            check_number_in_range(
                result, get_field(payload, "targetReturn"), "targetReturn", ErrorCode.INVALID_TARGET_RETURN,
                minimum=-1, maximum=10, label="Target return"
            )

        if objective == OptimizationObjective.TARGET_RISK.value:
            target = get_field(payload, "targetRisk")
            if target is None:
                result.add_error(ErrorCode.MISSING_TARGET_RISK, "targetRisk is required for TARGET_RISK", "targetRisk")
            else:
                check_number_in_range(
                    result, target, "targetRisk", ErrorCode.INVALID_TARGET_RISK,
                    minimum=0, maximum=1, exclusive_minimum=True, label="Target risk"
                )
        elif has_field(payload, "targetRisk"):
            check_number_in_range(
                result, get_field(payload, "targetRisk"), "targetRisk", ErrorCode.INVALID_TARGET_RISK,
                minimum=0, maximum=1, exclusive_minimum=True, label="Target risk"
            )

        if has_field(payload, "rebalancingBudget"):
            check_number_in_range(
                result, get_field(payload, "rebalancingBudget"), "rebalancingBudget",
                ErrorCode.INVALID_REBALANCING_BUDGET, minimum=0, label="Rebalancing budget"
            )

        return result

    @staticmethod
    def _validate_constraints(
        constraints: Dict[str, Any],
        optimizer_config: OptimizerConfig,
        result: ValidationResult
    ):
        valid = {}
        for name in CONSTRAINT_FIELDS:
            if not has_field(constraints, name):
                continue
            if check_number_in_range(
                result, get_field(constraints, name), f"constraints.{name}",
                ErrorCode.INVALID_CONSTRAINT, minimum=0, maximum=1, label=name
            ):
                valid[name] = get_field(constraints, name)

        max_size = valid.get("maxPositionSize", optimizer_config.default_max_position_size)
        min_size = valid.get("minPositionSize", optimizer_config.default_min_position_size)
        if min_size > max_size:
            result.add_error(
                ErrorCode.INVALID_POSITION_BOUNDS,
                "minPositionSize cannot exceed maxPositionSize",
                "constraints.minPositionSize"
            )

        for list_field in ("allowedSectors", "excludedInvestments"):
            values = get_field(constraints, list_field)
            if values is not None and (
                not isinstance(values, list) or not all(is_non_empty_string(v) for v in values)
            ):
                result.add_error(
                    ErrorCode.INVALID_CONSTRAINT,
                    f"{list_field} must be a list of non-empty strings",
                    f"constraints.{list_field}"
                )


class PortfolioAnalysisRequestValidator:
    """Validator for portfolio analysis requests."""

    @staticmethod
    def validate(payload: Any, config: Optional[ValidationConfig] = None) -> ValidationResult:
        config = config or get_validation_config()
        result = ValidationResult()
        if not _require_mapping(payload, result):
            return result

        _check_portfolio_id(payload, result)

        timeframe = get_field(payload, "timeframe")
        if timeframe is not None and timeframe not in config.allowed_timeframes:
            result.add_error(
                ErrorCode.INVALID_TIMEFRAME,
                f"Timeframe must be one of: {', '.join(config.allowed_timeframes)}",
                "timeframe"
            )

        return result
