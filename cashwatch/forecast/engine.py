"""
Cash Flow Forecast Engine - pure computation.

Turns forecast inputs (open invoices, recurring expenses, payment history,
client profiles and current cash) into three 13-week scenario projections
plus the analysis built on top of them.

Everything here is a pure function of (inputs, today, parameters):
no database access, no clock reads, no randomness. The service layer
(cashwatch.forecast.service) handles loading and persistence.
"""
from datetime import date, timedelta
from dateutil.relativedelta import relativedelta
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from cashwatch.alerts.detection import CashGapDetector, DetectionContext
from cashwatch.forecast.probability import PaymentProbabilityEstimator
from cashwatch.forecast.types import (
    CashFlowAlert,
    CashFlowAnalysis,
    CashFlowRecommendation,
    CashFlowSummary,
    ClientProfileInput,
    ForecastInputs,
    ForecastOptions,
    ForecastParameters,
    InvoiceInput,
    RecurringExpenseInput,
    RiskLevel,
    ScenarioForecast,
    ScenarioType,
    WeeklyForecast,
    SCENARIO_ASSUMPTIONS,
    SCENARIO_EXPENSE_BUFFERS,
    SCENARIO_NAMES,
)
from cashwatch.insights.engine import InsightGenerator

# Runway helper: cash position -> days until cash runs out
RunwayCalculator = Callable[[float], int]

# Scenario order in the returned analysis
SCENARIO_ORDER = [ScenarioType.CONSERVATIVE, ScenarioType.REALISTIC, ScenarioType.OPTIMISTIC]

# Upper bound on occurrences scanned inside one window
_MAX_OCCURRENCES = 1000

ONE_TIME_FREQUENCIES = ("one_time", "one-time", "once")


# =============================================================================
# Date helpers
# =============================================================================

def next_monday(today: date) -> date:
    """Next Monday on or after today."""
    return today + timedelta(days=(7 - today.weekday()) % 7)


def seasonal_factor(week_ending: date) -> float:
    """Collection seasonality multiplier for a week."""
    month = week_ending.month
    # Holiday season: slower payments
    if month in (11, 12, 1):
        return 0.85
    # Summer
    if month in (6, 7, 8):
        return 0.95
    return 1.0


def _frequency_step(frequency: Optional[str]):
    """
    Interval between occurrences, or None for one-off expenses.

    Unrecognised frequencies are treated as one-off; the loader warns
    about them (see is_known_frequency).
    """
    freq = (frequency or "monthly").lower()
    if freq == "weekly":
        return timedelta(weeks=1)
    if freq in ("bi_weekly", "bi-weekly", "biweekly"):
        return timedelta(weeks=2)
    if freq == "monthly":
        return relativedelta(months=1)
    if freq == "quarterly":
        return relativedelta(months=3)
    if freq in ("annually", "yearly", "annual"):
        return relativedelta(years=1)
    return None


def is_known_frequency(frequency: Optional[str]) -> bool:
    return _frequency_step(frequency) is not None or (frequency or "").lower() in ONE_TIME_FREQUENCIES


def _steps_before(anchor: date, step, window_start: date) -> int:
    """Whole steps from anchor that stay on or before window_start (0 if the anchor is later)."""
    if window_start <= anchor:
        return 0
    if isinstance(step, timedelta):
        return (window_start - anchor).days // step.days
    months = step.years * 12 + step.months
    elapsed = (window_start.year - anchor.year) * 12 + window_start.month - anchor.month
    # Day-of-month clipping can land a step late; back off one
    return max(0, elapsed // months - 1)


def expense_occurrences(
    expense: RecurringExpenseInput,
    window_start: date,
    window_end: date,
) -> Iterator[date]:
    """Yield every occurrence of an expense inside [window_start, window_end]."""
    if not expense.active:
        return

    step = _frequency_step(expense.frequency)
    if step is None:
        if window_start <= expense.next_due_date <= window_end:
            yield expense.next_due_date
        return

    # Recompute from the anchor each time so month-end dates don't drift
    first = _steps_before(expense.next_due_date, step, window_start)
    for n in range(first, first + _MAX_OCCURRENCES):
        occurrence = expense.next_due_date + step * n
        if occurrence > window_end:
            return
        if occurrence >= window_start:
            yield occurrence


def monthly_equivalent(expense: RecurringExpenseInput) -> float:
    """Normalise an expense amount to a monthly figure."""
    if not expense.active:
        return 0.0
    freq = (expense.frequency or "monthly").lower()
    if freq == "weekly":
        return expense.amount * 52 / 12
    if freq in ("bi_weekly", "bi-weekly", "biweekly"):
        return expense.amount * 26 / 12
    if freq == "quarterly":
        return expense.amount / 3
    if freq in ("annually", "yearly", "annual"):
        return expense.amount / 12
    if freq == "monthly":
        return expense.amount
    return 0.0


def burn_rate_runway(
    expenses: Sequence[RecurringExpenseInput],
    max_days: int = 365,
) -> RunwayCalculator:
    """
    Default runway helper: days of cash at the recurring-expense burn rate.

    Returns 0 when cash is exhausted and max_days when there is no burn.
    """
    daily_burn = sum(monthly_equivalent(e) for e in expenses) / 30

    def _runway(cash: float) -> int:
        if cash <= 0:
            return 0
        if daily_burn <= 0:
            return max_days
        return min(max_days, int(cash / daily_burn))

    return _runway


# =============================================================================
# Scoring helpers
# =============================================================================

def confidence_score(week_offset: int, history_count: int) -> float:
    """Confidence in a week's projection, 20-95."""
    score = 85 - week_offset * 3

    if history_count > 50:
        score += 10
    elif history_count < 10:
        score -= 15

    return float(max(20, min(95, score)))


def determine_risk_level(cumulative: float, net: float) -> RiskLevel:
    if cumulative < 0:
        return RiskLevel.CRITICAL
    if cumulative < 5000 or net < -10000:
        return RiskLevel.HIGH
    if cumulative < 25000 or net < -5000:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _round(value: float) -> float:
    return round(value, 2)


# =============================================================================
# Scenario Forecast Generator
# =============================================================================

class ScenarioForecastGenerator:
    """Folds payment probabilities and expenses into a week-by-week projection."""

    def __init__(
        self,
        params: Optional[ForecastParameters] = None,
        estimator: Optional[PaymentProbabilityEstimator] = None,
    ):
        self.params = params or ForecastParameters()
        self.estimator = estimator or PaymentProbabilityEstimator(self.params)

    def weekly_inflow(
        self,
        week_ending: date,
        invoices: Sequence[InvoiceInput],
        profiles: Dict[str, ClientProfileInput],
        scenario_type: ScenarioType,
        today: date,
    ) -> float:
        total = 0.0
        for invoice in invoices:
            client = profiles.get(invoice.client_id) if invoice.client_id else None
            probability = self.estimator.estimate(invoice, client, week_ending, scenario_type, today)
            total += invoice.amount * probability
        return total

    def weekly_outflow(
        self,
        week_ending: date,
        expenses: Sequence[RecurringExpenseInput],
        scenario_type: ScenarioType,
    ) -> float:
        window_start = week_ending - timedelta(days=6)
        buffer = SCENARIO_EXPENSE_BUFFERS[scenario_type]
        total = 0.0
        for expense in expenses:
            for _ in expense_occurrences(expense, window_start, week_ending):
                total += expense.amount * buffer
        return total

    def generate(
        self,
        inputs: ForecastInputs,
        scenario_type: ScenarioType,
        start_date: date,
        today: date,
        runway: Optional[RunwayCalculator] = None,
    ) -> ScenarioForecast:
        """
        Produce the weekly projection for one scenario.

        The cumulative position is a sequential fold: each week starts from
        the previous week's rounded cumulative value.
        """
        scenario_type = ScenarioType(scenario_type)
        runway = runway or burn_rate_runway(inputs.expenses, self.params.max_runway_days)
        profiles = inputs.profiles_by_client()
        history_count = len(inputs.payment_history)
        market = self.params.market_factor

        forecasts: List[WeeklyForecast] = []
        cumulative = _round(inputs.current_cash)

        for week in range(self.params.weeks):
            week_ending = start_date + timedelta(weeks=week)

            inflow = self.weekly_inflow(week_ending, inputs.invoices, profiles, scenario_type, today)
            outflow = self.weekly_outflow(week_ending, inputs.expenses, scenario_type)

            season = seasonal_factor(week_ending)
            adjusted_inflow = _round(inflow * season * market)
            adjusted_outflow = _round(outflow)

            net = _round(adjusted_inflow - adjusted_outflow)
            cumulative = _round(cumulative + net)

            forecasts.append(WeeklyForecast(
                week_ending=week_ending,
                projected_inflow=adjusted_inflow,
                projected_outflow=adjusted_outflow,
                net_position=net,
                cumulative_position=cumulative,
                confidence_score=confidence_score(week, history_count),
                risk_level=determine_risk_level(cumulative, net),
                cash_runway_days=runway(cumulative),
                seasonal_factor=season,
                market_factor=market,
            ))

        if forecasts:
            worst = min(forecasts, key=lambda f: f.cumulative_position)
            minimum = worst.cumulative_position
            worst_week = worst.week_ending
            average_burn = _round(sum(f.projected_outflow for f in forecasts) / len(forecasts))
        else:
            minimum = cumulative
            worst_week = None
            average_burn = 0.0

        return ScenarioForecast(
            type=scenario_type,
            name=SCENARIO_NAMES[scenario_type],
            assumptions=dict(SCENARIO_ASSUMPTIONS[scenario_type]),
            starting_cash=_round(inputs.current_cash),
            forecasts=forecasts,
            total_projected_cash=cumulative,
            minimum_cash_position=minimum,
            worst_week=worst_week,
            average_weekly_burn=average_burn,
        )


# =============================================================================
# Analysis helpers (critical alerts, recommendations, summary)
# =============================================================================

def generate_critical_alerts(scenario: ScenarioForecast, today: date) -> List[CashFlowAlert]:
    """Headline alerts for immediate attention."""
    alerts: List[CashFlowAlert] = []

    critical_weeks = [f for f in scenario.forecasts if f.cumulative_position < 5000]
    if critical_weeks:
        first = critical_weeks[0]
        alerts.append(CashFlowAlert(
            severity="critical",
            type="cash_shortage",
            message=(
                f"URGENT: Cash position drops to ${first.cumulative_position:,.2f} "
                f"on {first.week_ending.isoformat()}"
            ),
            projected_date=first.week_ending,
            impact_amount=first.cumulative_position,
            suggested_actions=[
                "Immediate collection of all overdue invoices",
                "Delay non-critical expenses",
                "Secure emergency line of credit",
                "Contact clients for early payment",
            ],
            days_to_impact=(first.week_ending - today).days,
        ))

    negative_weeks = [f for f in scenario.forecasts if f.net_position < -5000]
    if negative_weeks:
        alerts.append(CashFlowAlert(
            severity="high",
            type="negative_cash_flow",
            message=f"{len(negative_weeks)} weeks with significant negative cash flow detected",
            projected_date=negative_weeks[0].week_ending,
            impact_amount=min(f.net_position for f in negative_weeks),
            suggested_actions=[
                "Review and optimize expense timing",
                "Accelerate invoicing for completed work",
                "Consider interim financing options",
            ],
            days_to_impact=(negative_weeks[0].week_ending - today).days,
        ))

    return alerts


def generate_recommendations(
    scenario: ScenarioForecast,
    inputs: ForecastInputs,
    today: date,
) -> List[CashFlowRecommendation]:
    """Structural improvements to payment terms and collections."""
    recommendations: List[CashFlowRecommendation] = []

    profiles = inputs.client_profiles
    if profiles:
        avg_payment_days = sum(p.avg_payment_days or 30 for p in profiles) / len(profiles)
        if avg_payment_days > 35:
            recommendations.append(CashFlowRecommendation(
                category="payment_terms",
                priority="high",
                title="Optimize Payment Terms",
                description=(
                    f"Average client payment time is {round(avg_payment_days)} days - "
                    "consider stricter terms"
                ),
                estimated_impact=_round(scenario.average_weekly_burn * 1.5),
                implementation_effort="medium",
                time_to_implement="2-4 weeks",
                steps=[
                    "Analyze client-by-client payment patterns",
                    "Implement NET 15 terms for new projects",
                    "Offer 2% discount for payments within 10 days",
                    "Set up automatic payment reminders",
                ],
            ))

    overdue = inputs.overdue_invoices(today)
    if overdue:
        overdue_amount = sum(inv.amount for inv in overdue)
        recommendations.append(CashFlowRecommendation(
            category="collection",
            priority="critical",
            title="Accelerate Collection Process",
            description=f"${overdue_amount:,.2f} in overdue invoices needs immediate attention",
            estimated_impact=_round(overdue_amount * 0.8),
            implementation_effort="low",
            time_to_implement="1-2 weeks",
            steps=[
                "Send immediate collection notices to all overdue accounts",
                "Offer payment plans for large overdue amounts",
                "Implement daily follow-up calls for critical accounts",
                "Consider collection agency for accounts >90 days",
            ],
        ))

    return recommendations


def calculate_summary_metrics(scenario: ScenarioForecast, current_cash: float) -> CashFlowSummary:
    total_inflow = _round(sum(f.projected_inflow for f in scenario.forecasts))
    total_outflow = _round(sum(f.projected_outflow for f in scenario.forecasts))

    health = 70.0
    if scenario.minimum_cash_position > 50000:
        health += 20
    elif scenario.minimum_cash_position < 0:
        health -= 40
    if scenario.forecasts:
        health += (scenario.average_confidence - 75) / 5

    risk = max(0.0, 100 - health)

    return CashFlowSummary(
        current_cash_position=_round(current_cash),
        projected_cash_in_13_weeks=scenario.total_projected_cash,
        total_inflow_next_13_weeks=total_inflow,
        total_outflow_next_13_weeks=total_outflow,
        net_cash_flow_13_weeks=_round(total_inflow - total_outflow),
        cash_runway_days=scenario.forecasts[-1].cash_runway_days if scenario.forecasts else 0,
        risk_score=round(risk),
        health_score=round(max(0.0, min(100.0, health))),
    )


# =============================================================================
# Engine facade
# =============================================================================

class CashFlowEngine:
    """
    Single entry point to the pure model.

    Bundles the payment probability estimator, the scenario generator,
    the insight generator and the cash gap detector so callers share one
    parameter set.
    """

    def __init__(self, params: Optional[ForecastParameters] = None):
        self.params = params or ForecastParameters()
        self.estimator = PaymentProbabilityEstimator(self.params)
        self.scenarios = ScenarioForecastGenerator(self.params, self.estimator)
        self.insights = InsightGenerator()
        self.detector = CashGapDetector()

    def scenario_types(self, options: Optional[ForecastOptions] = None) -> List[ScenarioType]:
        options = options or ForecastOptions()
        if options.include_scenarios:
            return list(SCENARIO_ORDER)
        return [ScenarioType.REALISTIC]

    def start_date(self, today: date, options: Optional[ForecastOptions] = None) -> date:
        if options and options.start_date:
            return options.start_date
        return next_monday(today)

    def generate_scenario(
        self,
        inputs: ForecastInputs,
        scenario_type: ScenarioType,
        start_date: date,
        today: date,
        runway: Optional[RunwayCalculator] = None,
    ) -> ScenarioForecast:
        return self.scenarios.generate(inputs, scenario_type, start_date, today, runway)

    def assemble_analysis(
        self,
        scenarios: Sequence[ScenarioForecast],
        inputs: ForecastInputs,
        today: date,
    ) -> CashFlowAnalysis:
        """Build insights, alerts, recommendations and summary from scenarios."""
        ordered = sorted(scenarios, key=lambda s: SCENARIO_ORDER.index(s.type))
        analysis = CashFlowAnalysis(scenarios=ordered, generated_for=today)

        realistic = analysis.realistic or ordered[0]
        # Most pessimistic scenario computed drives the headline alerts
        pessimistic = ordered[0]

        analysis.key_insights = self.insights.generate(realistic, inputs, today)
        analysis.critical_alerts = generate_critical_alerts(pessimistic, today)
        analysis.recommendations = generate_recommendations(realistic, inputs, today)
        analysis.summary_metrics = calculate_summary_metrics(realistic, inputs.current_cash)
        return analysis

    def generate_analysis(
        self,
        inputs: ForecastInputs,
        today: date,
        options: Optional[ForecastOptions] = None,
        runway: Optional[RunwayCalculator] = None,
    ) -> CashFlowAnalysis:
        """Synchronous end-to-end analysis (scenarios computed in order)."""
        start = self.start_date(today, options)
        scenarios = [
            self.generate_scenario(inputs, scenario_type, start, today, runway)
            for scenario_type in self.scenario_types(options)
        ]
        return self.assemble_analysis(scenarios, inputs, today)

    def detect_cash_gaps(self, context: DetectionContext):
        """Candidate alerts for the realistic scenario, deduplicated and ranked."""
        return self.detector.detect(context)
