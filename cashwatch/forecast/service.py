"""
Cash Flow Forecast Service

Entry point `generate_forecast(user_id, options)`:
1. Load inputs (concurrent fetches, each degrading to a default)
2. Compute the scenarios concurrently; each one is a sequential weekly fold
3. Join and build insights, critical alerts, recommendations and summary
4. Upsert the weekly rows (best-effort)

Callers always get a CashFlowAnalysis back. An unexpected failure yields
an empty analysis with `error` set.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from cashwatch.config import settings
from cashwatch.data.loader import CashFlowDataLoader
from cashwatch.database import async_session_maker
from cashwatch.forecast.engine import CashFlowEngine
from cashwatch.forecast.models import CashFlowForecastRow
from cashwatch.forecast.types import CashFlowAnalysis, ForecastInputs, ForecastOptions, ScenarioForecast

logger = logging.getLogger(__name__)

Clock = Callable[[], date]


@dataclass
class ForecastRun:
    """An analysis together with the inputs it was computed from."""
    inputs: ForecastInputs
    analysis: CashFlowAnalysis
    today: date


class CashFlowForecastService:
    """Loads inputs, runs the engine and persists the weekly snapshot."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        engine: Optional[CashFlowEngine] = None,
        loader: Optional[CashFlowDataLoader] = None,
        clock: Optional[Clock] = None,
        persist: bool = True,
    ):
        self.session_factory = session_factory or async_session_maker
        self.engine = engine or CashFlowEngine(settings.forecast_parameters())
        self.loader = loader or CashFlowDataLoader(self.session_factory)
        self.clock = clock or date.today
        self.persist = persist

    async def generate_forecast(
        self, user_id: str, options: Optional[ForecastOptions] = None
    ) -> CashFlowAnalysis:
        try:
            run = await self.run(user_id, options)
            return run.analysis
        except Exception as e:
            logger.error(f"Forecast generation failed for user {user_id}: {e}")
            return CashFlowAnalysis(generated_for=self.clock(), error=str(e))

    async def run(self, user_id: str, options: Optional[ForecastOptions] = None) -> ForecastRun:
        """Load, compute and persist. Raises on unexpected failure."""
        today = self.clock()
        inputs = await self.loader.load(user_id)
        analysis = await self.compute(inputs, today, options)

        if self.persist:
            await self.save_forecasts(user_id, analysis.scenarios)

        logger.info(
            f"Forecast for user {user_id}: {len(analysis.scenarios)} scenarios, "
            f"{len(analysis.critical_alerts)} critical alerts"
        )
        return ForecastRun(inputs=inputs, analysis=analysis, today=today)

    async def compute(
        self,
        inputs: ForecastInputs,
        today: date,
        options: Optional[ForecastOptions] = None,
    ) -> CashFlowAnalysis:
        """Scenarios share no mutable state, so they run side by side."""
        start = self.engine.start_date(today, options)
        scenarios = await asyncio.gather(*[
            asyncio.to_thread(self.engine.generate_scenario, inputs, scenario_type, start, today)
            for scenario_type in self.engine.scenario_types(options)
        ])
        return self.engine.assemble_analysis(list(scenarios), inputs, today)

    async def save_forecasts(self, user_id: str, scenarios: List[ScenarioForecast]) -> bool:
        """Upsert weekly rows keyed on (user_id, week_ending, forecast_type)."""
        async with self.session_factory() as session:
            try:
                for scenario in scenarios:
                    week_dates = [f.week_ending for f in scenario.forecasts]
                    result = await session.execute(
                        select(CashFlowForecastRow)
                        .where(CashFlowForecastRow.user_id == user_id)
                        .where(CashFlowForecastRow.forecast_type == scenario.type.value)
                        .where(CashFlowForecastRow.week_ending.in_(week_dates))
                    )
                    existing = {row.week_ending: row for row in result.scalars().all()}

                    for forecast in scenario.forecasts:
                        row = existing.get(forecast.week_ending)
                        if row is None:
                            row = CashFlowForecastRow(
                                user_id=user_id,
                                week_ending=forecast.week_ending,
                                forecast_type=scenario.type.value,
                            )
                            session.add(row)
                        row.projected_inflow = forecast.projected_inflow
                        row.projected_outflow = forecast.projected_outflow
                        row.net_position = forecast.net_position
                        row.cumulative_position = forecast.cumulative_position
                        row.confidence_score = forecast.confidence_score
                        row.risk_level = forecast.risk_level.value
                        row.cash_runway_days = forecast.cash_runway_days
                        row.seasonal_adjustment_factor = forecast.seasonal_factor
                        row.market_conditions_factor = forecast.market_factor

                await session.commit()
                return True
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Error saving forecasts for user {user_id}: {e}")
                return False


async def generate_forecast(user_id: str, options: Optional[ForecastOptions] = None) -> CashFlowAnalysis:
    """Module-level entry point using the default session factory."""
    return await CashFlowForecastService().generate_forecast(user_id, options)
