"""
Cash Gap Detector - pure detection over one scenario.

Evaluates every week of a scenario against four independent triggers
plus any user-defined rules, then deduplicates and ranks the candidates:

1. BUFFER_BREACH - week-end cash below the minimum buffer
2. CASH_GAP - week-end cash below zero
3. EXPENSE_SPIKE - week outflow above 2x the weekly average
4. REVENUE_DROP - week inflow below 70% of the weekly average
5. CUSTOM_THRESHOLD - user rule matched a week metric

No database access and no clock reads; the monitor supplies `today`.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from cashwatch.forecast.types import ScenarioForecast, WeeklyForecast
from .recommendations import RecommendationContext, recommendations_for
from .types import (
    AlertCandidate,
    AlertSeverity,
    AlertTrigger,
    AlertType,
    TriggerType,
    severity_weight,
)

EXPENSE_SPIKE_MULTIPLIER = 2.0
REVENUE_DROP_RATIO = 0.7

# Contributing factor thresholds
ABOVE_AVERAGE_EXPENSE_RATIO = 1.5
BELOW_AVERAGE_REVENUE_RATIO = 0.8

CUSTOM_RULE_METRICS = (
    "cumulative_position",
    "net_position",
    "projected_inflow",
    "projected_outflow",
    "confidence_score",
)

CUSTOM_RULE_OPERATORS = ("less_than", "greater_than", "equals")


@dataclass(frozen=True)
class CustomRule:
    """A user-defined threshold on one weekly metric."""
    name: str
    condition: str
    threshold: float
    operator: str = "less_than"
    severity: AlertSeverity = AlertSeverity.MEDIUM
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomRule":
        return cls(
            name=data.get("name") or "Custom rule",
            condition=data["condition"],
            threshold=float(data["threshold"]),
            operator=data.get("operator", "less_than"),
            severity=AlertSeverity(data.get("severity", "medium")),
            enabled=bool(data.get("enabled", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "condition": self.condition,
            "threshold": self.threshold,
            "operator": self.operator,
            "severity": self.severity.value,
            "enabled": self.enabled,
        }

    def matches(self, week: WeeklyForecast) -> bool:
        if not self.enabled or self.condition not in CUSTOM_RULE_METRICS:
            return False
        value = getattr(week, self.condition)
        if self.operator == "less_than":
            return value < self.threshold
        if self.operator == "greater_than":
            return value > self.threshold
        if self.operator == "equals":
            return abs(value - self.threshold) < 0.005
        return False


@dataclass
class AlertThresholds:
    """Per-user detection thresholds."""
    minimum_cash_buffer: float = 25000.0
    warning_threshold_days: int = 30
    critical_threshold_days: int = 14
    custom_rules: List[CustomRule] = field(default_factory=list)


@dataclass
class DetectionContext:
    """Everything one detection pass needs."""
    user_id: str
    scenario: ScenarioForecast
    thresholds: AlertThresholds
    today: date
    overdue_total: float = 0.0


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _average(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def contributing_factors(
    week: WeeklyForecast, average_outflow: float, average_inflow: float
) -> List[str]:
    factors = []
    if average_outflow > 0 and week.projected_outflow > average_outflow * ABOVE_AVERAGE_EXPENSE_RATIO:
        factors.append("Above average expenses")
    if average_inflow > 0 and week.projected_inflow < average_inflow * BELOW_AVERAGE_REVENUE_RATIO:
        factors.append("Below average revenue")
    if week.net_position < 0:
        factors.append("Negative net cash flow")
    return factors or ["Normal cash flow fluctuation"]


def deduplicate_and_prioritize(candidates: List[AlertCandidate]) -> List[AlertCandidate]:
    """
    Keep the highest-severity candidate per (type, projected_date),
    then order by severity weight, critical first.

    Ties keep the first candidate seen; the sort is stable.
    """
    best: Dict[Any, AlertCandidate] = {}
    for candidate in candidates:
        key = (candidate.alert_type, candidate.projected_date)
        existing = best.get(key)
        if existing is None or severity_weight(candidate.severity) > severity_weight(existing.severity):
            best[key] = candidate
    return sorted(best.values(), key=lambda c: severity_weight(c.severity), reverse=True)


class CashGapDetector:
    """Produces deduplicated, ranked alert candidates for one scenario."""

    def __init__(
        self,
        expense_spike_multiplier: float = EXPENSE_SPIKE_MULTIPLIER,
        revenue_drop_ratio: float = REVENUE_DROP_RATIO,
    ):
        self.expense_spike_multiplier = expense_spike_multiplier
        self.revenue_drop_ratio = revenue_drop_ratio

    def detect(self, context: DetectionContext) -> List[AlertCandidate]:
        return deduplicate_and_prioritize(self.scan(context))

    def scan(self, context: DetectionContext) -> List[AlertCandidate]:
        """All raw candidates, one per trigger per week, in week order."""
        scenario = context.scenario
        average_outflow = _average(f.projected_outflow for f in scenario.forecasts)
        average_inflow = _average(f.projected_inflow for f in scenario.forecasts)

        candidates: List[AlertCandidate] = []
        for index, week in enumerate(scenario.forecasts):
            week_number = index + 1
            days_until = max(0, (week.week_ending - context.today).days)
            metadata = self._metadata(context, week, week_number, days_until, average_outflow, average_inflow)

            for candidate in (
                self._buffer_breach(context, week, week_number, days_until, metadata),
                self._negative_cash(context, week, week_number, days_until, metadata),
                self._expense_spike(context, week, week_number, days_until, metadata, average_outflow),
                self._revenue_drop(context, week, week_number, days_until, metadata, average_inflow),
                self._custom_rules(context, week, week_number, metadata),
            ):
                if candidate is not None:
                    candidates.append(candidate)

        return candidates

    # ==========================================================================
    # Triggers
    # ==========================================================================

    def _buffer_breach(
        self, context: DetectionContext, week: WeeklyForecast,
        week_number: int, days_until: int, metadata: Dict[str, Any],
    ) -> Optional[AlertCandidate]:
        buffer = context.thresholds.minimum_cash_buffer
        cash = week.cumulative_position
        if cash >= buffer:
            return None

        shortfall = round(buffer - cash, 2)
        if days_until <= context.thresholds.critical_threshold_days:
            severity = AlertSeverity.CRITICAL
            title = f"Critical Cash Gap - {_money(shortfall)} shortfall in {days_until} days"
            description = (
                f"Critical cash shortfall of {_money(shortfall)} projected for "
                f"{week.week_ending.isoformat()} ({context.scenario.type.value} scenario). "
                "Immediate action required to prevent cash flow crisis."
            )
        else:
            if days_until <= context.thresholds.warning_threshold_days:
                severity = AlertSeverity.HIGH
            else:
                severity = AlertSeverity.MEDIUM
            title = f"Cash Flow Warning - {_money(shortfall)} below buffer in {days_until} days"
            description = (
                f"Cash balance projected to fall {_money(shortfall)} below minimum buffer on "
                f"{week.week_ending.isoformat()} ({context.scenario.type.value} scenario). "
                "Consider taking preventive action."
            )

        return AlertCandidate(
            user_id=context.user_id,
            alert_type=AlertType.BUFFER_BREACH,
            severity=severity,
            title=title,
            description=description,
            projected_shortfall=shortfall,
            projected_date=week.week_ending,
            week_number=week_number,
            triggers=[AlertTrigger(
                type=TriggerType.MINIMUM_CASH_BREACH,
                threshold=buffer,
                actual_value=cash,
                description=f"Projected cash balance falls below minimum buffer of {_money(buffer)}",
            )],
            recommendations=recommendations_for(AlertType.BUFFER_BREACH, RecommendationContext(
                shortfall=shortfall,
                days_until=days_until,
                week_outflow=week.projected_outflow,
                overdue_total=context.overdue_total,
            )),
            metadata=dict(metadata),
        )

    def _negative_cash(
        self, context: DetectionContext, week: WeeklyForecast,
        week_number: int, days_until: int, metadata: Dict[str, Any],
    ) -> Optional[AlertCandidate]:
        cash = week.cumulative_position
        if cash >= 0:
            return None

        shortfall = round(abs(cash), 2)
        return AlertCandidate(
            user_id=context.user_id,
            alert_type=AlertType.CASH_GAP,
            severity=AlertSeverity.CRITICAL,
            title=f"Critical Cash Gap Alert - Week {week_number}",
            description=(
                f"Projected negative cash position of {_money(shortfall)} on "
                f"{week.week_ending.isoformat()} ({context.scenario.type.value} scenario)"
            ),
            projected_shortfall=shortfall,
            projected_date=week.week_ending,
            week_number=week_number,
            triggers=[AlertTrigger(
                type=TriggerType.PROJECTED_NEGATIVE_CASH,
                threshold=0.0,
                actual_value=cash,
                description="Cash balance projected to go negative",
            )],
            recommendations=recommendations_for(AlertType.CASH_GAP, RecommendationContext(
                shortfall=shortfall,
                days_until=days_until,
                week_outflow=week.projected_outflow,
                overdue_total=context.overdue_total,
            )),
            metadata=dict(metadata),
        )

    def _expense_spike(
        self, context: DetectionContext, week: WeeklyForecast, week_number: int,
        days_until: int, metadata: Dict[str, Any], average_outflow: float,
    ) -> Optional[AlertCandidate]:
        threshold = average_outflow * self.expense_spike_multiplier
        if average_outflow <= 0 or week.projected_outflow <= threshold:
            return None

        excess = round(week.projected_outflow - average_outflow, 2)
        return AlertCandidate(
            user_id=context.user_id,
            alert_type=AlertType.EXPENSE_SPIKE,
            severity=AlertSeverity.MEDIUM,
            title=f"Expense Spike Alert - Week {week_number}",
            description=(
                f"Unusually high expenses of {_money(week.projected_outflow)} projected for week of "
                f"{week.week_ending.isoformat()} ({context.scenario.type.value} scenario)"
            ),
            projected_shortfall=excess,
            projected_date=week.week_ending,
            week_number=week_number,
            triggers=[AlertTrigger(
                type=TriggerType.LARGE_EXPENSE_UPCOMING,
                threshold=round(threshold, 2),
                actual_value=week.projected_outflow,
                description=f"Weekly expenses exceed average by {_money(excess)}",
            )],
            recommendations=recommendations_for(AlertType.EXPENSE_SPIKE, RecommendationContext(
                shortfall=excess,
                days_until=days_until,
                week_outflow=week.projected_outflow,
            )),
            metadata=dict(metadata),
        )

    def _revenue_drop(
        self, context: DetectionContext, week: WeeklyForecast, week_number: int,
        days_until: int, metadata: Dict[str, Any], average_inflow: float,
    ) -> Optional[AlertCandidate]:
        threshold = average_inflow * self.revenue_drop_ratio
        if average_inflow <= 0 or week.projected_inflow >= threshold:
            return None

        shortfall = round(average_inflow - week.projected_inflow, 2)
        return AlertCandidate(
            user_id=context.user_id,
            alert_type=AlertType.REVENUE_DROP,
            severity=AlertSeverity.MEDIUM,
            title=f"Revenue Drop Alert - Week {week_number}",
            description=(
                f"Projected revenue of {_money(week.projected_inflow)} is below average for week of "
                f"{week.week_ending.isoformat()}, potential shortfall of {_money(shortfall)} "
                f"({context.scenario.type.value} scenario)"
            ),
            projected_shortfall=shortfall,
            projected_date=week.week_ending,
            week_number=week_number,
            triggers=[AlertTrigger(
                type=TriggerType.PAYMENT_DELAY_RISK,
                threshold=round(threshold, 2),
                actual_value=week.projected_inflow,
                description=f"Weekly revenue below 70% of average ({_money(shortfall)} shortfall)",
            )],
            recommendations=recommendations_for(AlertType.REVENUE_DROP, RecommendationContext(
                shortfall=shortfall,
                days_until=days_until,
                week_outflow=week.projected_outflow,
            )),
            metadata=dict(metadata),
        )

    def _custom_rules(
        self, context: DetectionContext, week: WeeklyForecast,
        week_number: int, metadata: Dict[str, Any],
    ) -> Optional[AlertCandidate]:
        matched = [rule for rule in context.thresholds.custom_rules if rule.matches(week)]
        if not matched:
            return None

        # Several rules on one week collapse into one alert at the worst severity
        rule = max(matched, key=lambda r: severity_weight(r.severity))
        value = getattr(week, rule.condition)
        shortfall = round(abs(rule.threshold - value), 2)

        return AlertCandidate(
            user_id=context.user_id,
            alert_type=AlertType.CUSTOM_THRESHOLD,
            severity=rule.severity,
            title=f"{rule.name} - Week {week_number}",
            description=(
                f"{rule.condition.replace('_', ' ').capitalize()} of {value:,.2f} is "
                f"{rule.operator.replace('_', ' ')} {rule.threshold:,.2f} for week of "
                f"{week.week_ending.isoformat()} ({context.scenario.type.value} scenario)"
            ),
            projected_shortfall=shortfall,
            projected_date=week.week_ending,
            week_number=week_number,
            triggers=[
                AlertTrigger(
                    type=TriggerType.CUSTOM_RULE,
                    threshold=r.threshold,
                    actual_value=getattr(week, r.condition),
                    description=f"{r.name}: {r.condition} {r.operator} {r.threshold}",
                )
                for r in matched
            ],
            recommendations=[],
            metadata=dict(metadata, custom_rules=[r.name for r in matched]),
        )

    def _metadata(
        self, context: DetectionContext, week: WeeklyForecast, week_number: int,
        days_until: int, average_outflow: float, average_inflow: float,
    ) -> Dict[str, Any]:
        return {
            "current_cash_position": context.scenario.starting_cash,
            "projected_minimum_cash": week.cumulative_position,
            "days_until_shortfall": days_until,
            "affected_weeks": [week_number],
            "confidence_level": week.confidence_score,
            "scenario_type": context.scenario.type.value,
            "contributing_factors": contributing_factors(week, average_outflow, average_inflow),
        }
