"""
Application use cases, one per engine endpoint.
"""

from .base import EngineResponse, EndpointUseCase
from .optimize_portfolio import OptimizePortfolioUseCase
from .assess_risk import AssessRiskUseCase
from .run_stress_test import RunStressTestUseCase
from .calculate_returns import CalculateReturnsUseCase
from .submit_investment_application import SubmitInvestmentApplicationUseCase
from .analyze_portfolio import AnalyzePortfolioUseCase

ENDPOINTS = {
    "optimize": OptimizePortfolioUseCase,
    "risk-assessment": AssessRiskUseCase,
    "stress-test": RunStressTestUseCase,
    "returns/calculate": CalculateReturnsUseCase,
    "investment-applications": SubmitInvestmentApplicationUseCase,
    "portfolio-analysis": AnalyzePortfolioUseCase,
}

__all__ = [
    "EngineResponse",
    "EndpointUseCase",
    "OptimizePortfolioUseCase",
    "AssessRiskUseCase",
    "RunStressTestUseCase",
    "CalculateReturnsUseCase",
    "SubmitInvestmentApplicationUseCase",
    "AnalyzePortfolioUseCase",
    "ENDPOINTS"
]
