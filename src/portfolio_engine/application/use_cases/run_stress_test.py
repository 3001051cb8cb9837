"""
Stress test use case.
"""

from datetime import datetime
from typing import Any, Optional

from .base import EndpointUseCase, EngineResponse, PortfolioInput
from ...data.models.requests import RequestKind
from ...domain.services.stress_test_engine import StressTestEngine
from ...infrastructure.error_handling import PortfolioEngineError


class RunStressTestUseCase(EndpointUseCase):
    """Use case for the stress-test endpoint."""

    request_kind = RequestKind.STRESS_TEST

    def __init__(self, engine: Optional[StressTestEngine] = None, **kwargs):
        super().__init__(**kwargs)
        self.engine = engine or StressTestEngine()

    def execute(self, payload: Any, portfolio: PortfolioInput, as_of: Optional[datetime] = None) -> EngineResponse:
        as_of = as_of or datetime.utcnow()
        request, snapshot, failure = self._prepare(payload, portfolio, as_of)
        if failure:
            return failure

        try:
            with self._timed("run_stress_test", portfolio_id=snapshot.id, scenarios=len(request.scenarios)):
                report = self.engine.run(snapshot, request, as_of=as_of)
        except PortfolioEngineError as e:
            return self._error_response(e)

        if report.breached_count:
            self.logger.warning(
                "Stress thresholds breached",
                portfolio_id=snapshot.id,
                breached=report.breached_count,
                worst_scenario=report.worst_scenario
            )
        return EngineResponse(200, self.formatter.success(report))
