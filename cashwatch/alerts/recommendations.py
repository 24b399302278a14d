"""
Recommendation generators.

Pure functions, one per alert type, turning a detected risk into a ranked
list of remediation actions.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List

from .types import AlertRecommendation, AlertSeverity, AlertType, RecommendationType, severity_weight


@dataclass(frozen=True)
class RecommendationContext:
    """Figures a generator may size its actions from."""
    shortfall: float              # Shortfall, excess or revenue gap depending on alert type
    days_until: int
    week_outflow: float = 0.0
    overdue_total: float = 0.0


def _money(value: float) -> str:
    return f"${value:,.2f}"


def sort_by_urgency(recommendations: List[AlertRecommendation]) -> List[AlertRecommendation]:
    return sorted(recommendations, key=lambda r: severity_weight(r.urgency), reverse=True)


def cash_gap_recommendations(ctx: RecommendationContext) -> List[AlertRecommendation]:
    """Recommendations for a buffer breach."""
    recommendations = []
    shortfall = ctx.shortfall

    if ctx.overdue_total > 0 and ctx.overdue_total >= shortfall * 0.5:
        coverage = min(100.0, (ctx.overdue_total / shortfall) * 100) if shortfall > 0 else 100.0
        if ctx.days_until <= 14:
            urgency = AlertSeverity.CRITICAL
        elif ctx.days_until <= 30:
            urgency = AlertSeverity.HIGH
        else:
            urgency = AlertSeverity.MEDIUM
        recommendations.append(AlertRecommendation(
            type=RecommendationType.ACCELERATE_COLLECTIONS,
            title="Accelerate Outstanding Collections",
            description=(
                f"Focus on collecting {_money(ctx.overdue_total)} in overdue invoices "
                "to bridge the cash gap"
            ),
            impact=f"Could eliminate {coverage:.0f}% of the projected shortfall",
            urgency=urgency,
            estimated_improvement=round(min(ctx.overdue_total, shortfall), 2),
            time_to_implement="1-2 weeks",
            difficulty="medium",
        ))

    # Nothing to defer in a week without outflow
    if ctx.week_outflow > 0:
        deferable = ctx.week_outflow * 0.3
        recommendations.append(AlertRecommendation(
            type=RecommendationType.DELAY_EXPENSES,
            title="Defer Non-Critical Expenses",
            description=(
                f"Identify and postpone approximately {_money(deferable)} "
                "in non-essential expenses"
            ),
            impact="Could reduce cash outflow by up to 30%",
            urgency=AlertSeverity.CRITICAL if ctx.days_until <= 7 else AlertSeverity.HIGH,
            estimated_improvement=round(deferable, 2),
            time_to_implement="Immediate",
            difficulty="easy",
        ))

    if shortfall > 10000:
        recommendations.append(AlertRecommendation(
            type=RecommendationType.SECURE_FINANCING,
            title="Secure Bridge Financing",
            description=(
                f"Consider line of credit or short-term financing to cover "
                f"{_money(shortfall)} shortfall"
            ),
            impact="Immediate cash flow relief",
            urgency=AlertSeverity.CRITICAL if ctx.days_until <= 14 else AlertSeverity.MEDIUM,
            estimated_improvement=round(shortfall, 2),
            time_to_implement="1-3 weeks",
            difficulty="hard",
        ))

    recommendations.append(AlertRecommendation(
        type=RecommendationType.NEGOTIATE_TERMS,
        title="Renegotiate Payment Terms",
        description="Contact key suppliers to extend payment terms or arrange payment plans",
        impact="Improve cash flow timing without additional costs",
        urgency=AlertSeverity.MEDIUM,
        estimated_improvement=round(ctx.week_outflow * 0.4, 2),
        time_to_implement="1-2 weeks",
        difficulty="medium",
    ))

    return sort_by_urgency(recommendations)


def emergency_cash_recommendations(ctx: RecommendationContext) -> List[AlertRecommendation]:
    """Recommendations when cash is projected to go negative."""
    shortfall = ctx.shortfall
    return [
        AlertRecommendation(
            type=RecommendationType.ACCELERATE_COLLECTIONS,
            title="URGENT: Immediate Collection Blitz",
            description="Contact all outstanding clients immediately. Offer payment incentives if necessary",
            impact="Critical for avoiding cash crisis",
            urgency=AlertSeverity.CRITICAL,
            estimated_improvement=round(shortfall * 0.6, 2),
            time_to_implement="Immediate",
            difficulty="medium",
        ),
        AlertRecommendation(
            type=RecommendationType.SECURE_FINANCING,
            title="Emergency Credit Line",
            description="Contact bank immediately for emergency credit facility or advance against receivables",
            impact="Immediate cash injection",
            urgency=AlertSeverity.CRITICAL,
            estimated_improvement=round(shortfall, 2),
            time_to_implement="3-7 days",
            difficulty="hard",
        ),
        AlertRecommendation(
            type=RecommendationType.REDUCE_COSTS,
            title="Immediate Cost Reduction",
            description="Cancel or postpone all non-essential expenses and payments",
            impact="Preserve cash for critical operations",
            urgency=AlertSeverity.CRITICAL,
            estimated_improvement=round(shortfall * 0.3, 2),
            time_to_implement="Immediate",
            difficulty="easy",
        ),
    ]


def expense_spike_recommendations(ctx: RecommendationContext) -> List[AlertRecommendation]:
    excess = ctx.shortfall
    return [
        AlertRecommendation(
            type=RecommendationType.DELAY_EXPENSES,
            title="Review and Defer Excess Expenses",
            description=(
                f"Analyze the projected {_money(excess)} in additional expenses "
                "and defer non-critical items"
            ),
            impact="Smooth out cash flow fluctuations",
            urgency=AlertSeverity.MEDIUM,
            estimated_improvement=round(excess * 0.5, 2),
            time_to_implement="1 week",
            difficulty="easy",
        ),
        AlertRecommendation(
            type=RecommendationType.NEGOTIATE_TERMS,
            title="Negotiate Vendor Payment Terms",
            description="Contact vendors for the large expenses and request extended payment terms",
            impact="Spread expense impact over multiple weeks",
            urgency=AlertSeverity.MEDIUM,
            estimated_improvement=round(excess * 0.7, 2),
            time_to_implement="1-2 weeks",
            difficulty="medium",
        ),
    ]


def revenue_drop_recommendations(ctx: RecommendationContext) -> List[AlertRecommendation]:
    shortfall = ctx.shortfall
    return [
        AlertRecommendation(
            type=RecommendationType.ACCELERATE_COLLECTIONS,
            title="Accelerate Invoice Collections",
            description=(
                f"Focus on collecting payments to make up for the {_money(shortfall)} "
                "revenue shortfall"
            ),
            impact="Compensate for reduced projected revenue",
            urgency=AlertSeverity.HIGH,
            estimated_improvement=round(shortfall * 0.8, 2),
            time_to_implement="1-2 weeks",
            difficulty="medium",
        ),
        AlertRecommendation(
            type=RecommendationType.ADJUST_PRICING,
            title="Emergency Revenue Generation",
            description="Consider special promotions or rush service premiums to boost week revenue",
            impact="Generate additional revenue quickly",
            urgency=AlertSeverity.MEDIUM,
            estimated_improvement=round(shortfall * 0.4, 2),
            time_to_implement="1 week",
            difficulty="medium",
        ),
    ]


RECOMMENDATION_GENERATORS: Dict[AlertType, Callable[[RecommendationContext], List[AlertRecommendation]]] = {
    AlertType.BUFFER_BREACH: cash_gap_recommendations,
    AlertType.CASH_GAP: emergency_cash_recommendations,
    AlertType.EXPENSE_SPIKE: expense_spike_recommendations,
    AlertType.REVENUE_DROP: revenue_drop_recommendations,
}


def recommendations_for(alert_type: AlertType, ctx: RecommendationContext) -> List[AlertRecommendation]:
    """Dispatch to the generator for an alert type (empty for unknown types)."""
    generator = RECOMMENDATION_GENERATORS.get(AlertType(alert_type))
    if generator is None:
        return []
    return generator(ctx)
