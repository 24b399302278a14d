"""
Payment probability estimation.

Estimates the likelihood that a single invoice is paid by a given
week-ending date. Works in percentage points internally and returns a
probability in [0, 1].
"""
from datetime import date
from typing import Optional

from cashwatch.forecast.types import (
    ClientProfileInput,
    ForecastParameters,
    InvoiceInput,
    ScenarioType,
    SCENARIO_PROBABILITY_MULTIPLIERS,
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class PaymentProbabilityEstimator:
    """
    Per-invoice payment probability model.

    Steps:
    1. Start from the invoice's base probability (default 50%)
    2. Blend with the client's reliability score
    3. Bonus when the week falls in the client's typical payment window
    4. Penalty for days overdue, capped
    5. Time decay for distant weeks
    6. Scenario multiplier
    7. Clamp to [0, 1]
    """

    def __init__(self, params: Optional[ForecastParameters] = None):
        self.params = params or ForecastParameters()

    def estimate(
        self,
        invoice: InvoiceInput,
        client: Optional[ClientProfileInput],
        week_ending: date,
        scenario_type: ScenarioType,
        today: date,
    ) -> float:
        p = self.params

        if invoice.base_probability is None:
            probability = p.default_probability
        else:
            probability = _clamp(invoice.base_probability, 0.0, 1.0) * 100

        # No profile: invoice-only heuristic (no blend, no window bonus)
        if client is not None:
            reliability = _clamp(client.reliability_score, 0.0, 100.0)
            weight = _clamp(p.reliability_weight, 0.0, 1.0)
            probability = (1 - weight) * probability + weight * reliability

            days_from_issue = (week_ending - invoice.issue_date).days
            window_start = client.avg_payment_days - p.payment_window_days_before
            window_end = client.avg_payment_days + p.payment_window_days_after
            if window_start <= days_from_issue <= window_end:
                probability += p.payment_window_bonus

        days_overdue = (week_ending - invoice.due_date).days
        if days_overdue > 0:
            probability -= min(days_overdue * p.overdue_penalty_per_day, p.overdue_penalty_cap)

        weeks_out = max(0, (week_ending - today).days) // 7
        if weeks_out > 0:
            probability *= p.time_decay_rate ** weeks_out

        probability = _clamp(probability, 0.0, 100.0) / 100
        probability *= SCENARIO_PROBABILITY_MULTIPLIERS[ScenarioType(scenario_type)]

        return _clamp(probability, 0.0, 1.0)
