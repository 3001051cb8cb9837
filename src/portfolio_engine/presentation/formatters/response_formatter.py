"""
Response body formatting for engine endpoints.
"""

from typing import Any, Dict, List, Optional

from ...data.models.common import to_jsonable
from ...data.models.results import OptimizationResult, StrategyRecommendation
from ...data.validators.base import ValidationResult
from ...infrastructure.error_handling import ErrorCode, PortfolioEngineError


class ResponseFormatter:
    """Builds camelCase JSON bodies from engine results and errors."""

    @staticmethod
    def success(result: Any) -> Dict[str, Any]:
        return to_jsonable(result)

    @staticmethod
    def validation_failure(result: ValidationResult) -> Dict[str, Any]:
        return result.to_dict()

    @staticmethod
    def field_error(code: ErrorCode, message: str, field: Optional[str] = None) -> Dict[str, Any]:
        """Single-issue body in the validation-failure shape."""
        return ValidationResult().add_error(code, message, field).to_dict()

    @staticmethod
    def engine_error(error: PortfolioEngineError) -> Dict[str, Any]:
        body = {
            "isValid": False,
            "errors": [{"field": None, "message": error.message, "code": error.error_code}],
            "errorId": error.error_id,
        }
        reasons = error.context.get("reasons")
        if reasons:
            body["reasons"] = list(reasons)
        return body

    @staticmethod
    def optimization(
        result: OptimizationResult,
        recommendations: List[StrategyRecommendation],
        message: str
    ) -> Dict[str, Any]:
        return {
            "optimization": to_jsonable(result),
            "recommendations": to_jsonable(recommendations),
            "message": message,
        }

    @staticmethod
    def infeasible(error: PortfolioEngineError, portfolio_id: str, objective: str) -> Dict[str, Any]:
        body = ResponseFormatter.engine_error(error)
        body["optimization"] = {
            "portfolioId": portfolio_id,
            "objective": objective,
            "status": "INFEASIBLE",
        }
        return body
