"""
Insights Engine - qualitative findings from the realistic forecast.

This engine derives:
1. Critical risk: the realistic minimum cash position drops below a floor
2. Payment acceleration: outstanding value held by slow-paying clients
3. Seasonal pattern: Q4/Q1 collections are typically slower
"""
from datetime import date
from typing import List, Optional

from cashwatch.forecast.types import CashFlowInsight, ForecastInputs, ScenarioForecast

CRITICAL_CASH_FLOOR = 10000.0
SLOW_PAYER_DAYS = 45
ACCELERATION_SHARE = 0.7
SEASONAL_MONTHS = (11, 12, 1, 2)


class InsightGenerator:
    """Rule-based insight generation."""

    def __init__(
        self,
        critical_cash_floor: float = CRITICAL_CASH_FLOOR,
        slow_payer_days: float = SLOW_PAYER_DAYS,
        material_amount: float = 0.0,
    ):
        self.critical_cash_floor = critical_cash_floor
        self.slow_payer_days = slow_payer_days
        # Outstanding slow-payer value must exceed this to be reported
        self.material_amount = material_amount

    def generate(
        self,
        scenario: ScenarioForecast,
        inputs: ForecastInputs,
        today: date,
    ) -> List[CashFlowInsight]:
        insights = []
        for rule in (self._critical_risk, self._payment_acceleration, self._seasonal_pattern):
            insight = rule(scenario, inputs, today)
            if insight is not None:
                insights.append(insight)
        return insights

    def _critical_risk(
        self, scenario: ScenarioForecast, inputs: ForecastInputs, today: date
    ) -> Optional[CashFlowInsight]:
        if not scenario.forecasts or scenario.minimum_cash_position >= self.critical_cash_floor:
            return None

        week = next(
            f for f in scenario.forecasts
            if f.cumulative_position == scenario.minimum_cash_position
        )
        return CashFlowInsight(
            type="risk",
            title="Critical Cash Flow Risk Detected",
            description=(
                f"Your cash position drops to ${week.cumulative_position:,.2f} "
                f"in week ending {week.week_ending.isoformat()}"
            ),
            impact_amount=week.cumulative_position,
            confidence_level=week.confidence_score,
            actionable=True,
            recommended_actions=[
                "Accelerate collection of overdue invoices",
                "Negotiate extended payment terms with vendors",
                "Consider emergency funding options",
            ],
            timeframe=week.week_ending.isoformat(),
        )

    def _payment_acceleration(
        self, scenario: ScenarioForecast, inputs: ForecastInputs, today: date
    ) -> Optional[CashFlowInsight]:
        slow_clients = {
            p.client_id for p in inputs.client_profiles
            if p.avg_payment_days > self.slow_payer_days
        }
        if not slow_clients:
            return None

        slow_value = sum(inv.amount for inv in inputs.invoices if inv.client_id in slow_clients)
        if slow_value <= self.material_amount:
            return None

        return CashFlowInsight(
            type="opportunity",
            title="Payment Acceleration Opportunity",
            description=f"${slow_value:,.2f} in outstanding invoices from slow-paying clients",
            impact_amount=round(slow_value * ACCELERATION_SHARE, 2),
            confidence_level=75.0,
            actionable=True,
            recommended_actions=[
                "Offer early payment discounts to slow-paying clients",
                "Implement more aggressive collection procedures",
                "Consider factoring for immediate cash",
            ],
            timeframe="2-4 weeks",
        )

    def _seasonal_pattern(
        self, scenario: ScenarioForecast, inputs: ForecastInputs, today: date
    ) -> Optional[CashFlowInsight]:
        if today.month not in SEASONAL_MONTHS:
            return None

        return CashFlowInsight(
            type="pattern",
            title="Seasonal Cash Flow Pattern",
            description="Q4/Q1 typically shows slower payment patterns - plan accordingly",
            impact_amount=round(scenario.average_weekly_burn * 2, 2),
            confidence_level=85.0,
            actionable=True,
            recommended_actions=[
                "Build cash reserves during strong quarters",
                "Adjust payment terms for Q4/Q1 projects",
                "Increase collection efforts before holiday periods",
            ],
            timeframe="4-12 weeks",
        )
