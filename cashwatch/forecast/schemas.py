"""Forecast response schemas."""
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from cashwatch.forecast.types import CashFlowAnalysis, ScenarioForecast


class WeeklyForecastSchema(BaseModel):
    """Projection for a single week."""
    week_ending: date
    projected_inflow: float
    projected_outflow: float
    net_position: float
    cumulative_position: float
    confidence_score: float
    risk_level: str
    cash_runway_days: int
    seasonal_factor: float
    market_factor: float


class ScenarioSchema(BaseModel):
    type: str
    name: str
    assumptions: Dict[str, Any]
    starting_cash: float
    forecasts: List[WeeklyForecastSchema]
    total_projected_cash: float
    minimum_cash_position: float
    worst_week: Optional[date] = None
    average_weekly_burn: float

    @classmethod
    def from_scenario(cls, scenario: ScenarioForecast) -> "ScenarioSchema":
        return cls(**scenario.to_dict())


class InsightSchema(BaseModel):
    type: str
    title: str
    description: str
    impact_amount: float
    confidence_level: float
    actionable: bool
    recommended_actions: List[str]
    timeframe: str


class CriticalAlertSchema(BaseModel):
    severity: str
    type: str
    message: str
    projected_date: date
    impact_amount: float
    suggested_actions: List[str]
    days_to_impact: int


class RecommendationSchema(BaseModel):
    category: str
    priority: str
    title: str
    description: str
    estimated_impact: float
    implementation_effort: str
    time_to_implement: str
    steps: List[str]


class SummaryMetricsSchema(BaseModel):
    current_cash_position: float
    projected_cash_in_13_weeks: float
    total_inflow_next_13_weeks: float
    total_outflow_next_13_weeks: float
    net_cash_flow_13_weeks: float
    cash_runway_days: int
    risk_score: int
    health_score: int


class CashFlowAnalysisResponse(BaseModel):
    """Complete multi-scenario forecast response."""
    scenarios: List[ScenarioSchema]
    key_insights: List[InsightSchema]
    critical_alerts: List[CriticalAlertSchema]
    recommendations: List[RecommendationSchema]
    summary_metrics: Optional[SummaryMetricsSchema] = None
    generated_for: Optional[date] = None
    error: Optional[str] = None

    @classmethod
    def from_analysis(cls, analysis: CashFlowAnalysis) -> "CashFlowAnalysisResponse":
        return cls(
            scenarios=[ScenarioSchema.from_scenario(s) for s in analysis.scenarios],
            key_insights=[InsightSchema(**vars(i)) for i in analysis.key_insights],
            critical_alerts=[CriticalAlertSchema(**vars(a)) for a in analysis.critical_alerts],
            recommendations=[RecommendationSchema(**vars(r)) for r in analysis.recommendations],
            summary_metrics=(
                SummaryMetricsSchema(**vars(analysis.summary_metrics))
                if analysis.summary_metrics else None
            ),
            generated_for=analysis.generated_for,
            error=analysis.error,
        )
