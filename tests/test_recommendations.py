"""Tests for the per-alert-type recommendation generators."""

import pytest

from cashwatch.alerts.recommendations import (
    RecommendationContext,
    cash_gap_recommendations,
    emergency_cash_recommendations,
    expense_spike_recommendations,
    recommendations_for,
    revenue_drop_recommendations,
)
from cashwatch.alerts.types import AlertSeverity, AlertType, RecommendationType


class TestCashGapRecommendations:
    """Buffer breach recommendations."""

    def test_collections_when_overdue_covers_half(self):
        ctx = RecommendationContext(shortfall=5000.0, days_until=10, week_outflow=2000.0, overdue_total=4000.0)

        recs = cash_gap_recommendations(ctx)

        assert [r.type for r in recs] == [
            RecommendationType.ACCELERATE_COLLECTIONS,
            RecommendationType.DELAY_EXPENSES,
            RecommendationType.NEGOTIATE_TERMS,
        ]
        collections, defer, negotiate = recs
        assert collections.urgency == AlertSeverity.CRITICAL
        assert collections.estimated_improvement == 4000.0
        assert defer.urgency == AlertSeverity.HIGH
        assert defer.estimated_improvement == pytest.approx(600.0)
        assert negotiate.estimated_improvement == pytest.approx(800.0)

    def test_collections_capped_at_shortfall(self):
        ctx = RecommendationContext(shortfall=5000.0, days_until=20, week_outflow=1000.0, overdue_total=9000.0)

        collections = cash_gap_recommendations(ctx)[0]

        assert collections.type == RecommendationType.ACCELERATE_COLLECTIONS
        assert collections.urgency == AlertSeverity.HIGH
        assert collections.estimated_improvement == 5000.0

    def test_no_collections_below_half(self):
        ctx = RecommendationContext(shortfall=5000.0, days_until=10, week_outflow=1000.0, overdue_total=2000.0)

        types = [r.type for r in cash_gap_recommendations(ctx)]

        assert RecommendationType.ACCELERATE_COLLECTIONS not in types

    def test_bridge_financing_for_large_shortfall(self):
        ctx = RecommendationContext(shortfall=20000.0, days_until=20)

        recs = cash_gap_recommendations(ctx)

        # No outflow to defer; financing is medium beyond two weeks
        assert [r.type for r in recs] == [
            RecommendationType.SECURE_FINANCING,
            RecommendationType.NEGOTIATE_TERMS,
        ]
        assert recs[0].urgency == AlertSeverity.MEDIUM
        assert recs[0].estimated_improvement == 20000.0

    def test_defer_is_critical_within_a_week(self):
        ctx = RecommendationContext(shortfall=20000.0, days_until=5, week_outflow=1000.0)

        recs = cash_gap_recommendations(ctx)

        assert recs[0].urgency == AlertSeverity.CRITICAL
        assert recs[-1].type == RecommendationType.NEGOTIATE_TERMS


class TestOtherGenerators:
    """Emergency, expense spike and revenue drop recommendations."""

    def test_emergency_all_critical(self):
        recs = emergency_cash_recommendations(RecommendationContext(shortfall=10000.0, days_until=3))

        assert [r.type for r in recs] == [
            RecommendationType.ACCELERATE_COLLECTIONS,
            RecommendationType.SECURE_FINANCING,
            RecommendationType.REDUCE_COSTS,
        ]
        assert all(r.urgency == AlertSeverity.CRITICAL for r in recs)
        assert [r.estimated_improvement for r in recs] == [6000.0, 10000.0, 3000.0]

    def test_expense_spike(self):
        recs = expense_spike_recommendations(RecommendationContext(shortfall=4000.0, days_until=30))

        assert [r.estimated_improvement for r in recs] == [2000.0, 2800.0]
        assert recs[0].type == RecommendationType.DELAY_EXPENSES

    def test_revenue_drop(self):
        recs = revenue_drop_recommendations(RecommendationContext(shortfall=1000.0, days_until=30))

        assert [(r.type, r.urgency) for r in recs] == [
            (RecommendationType.ACCELERATE_COLLECTIONS, AlertSeverity.HIGH),
            (RecommendationType.ADJUST_PRICING, AlertSeverity.MEDIUM),
        ]
        assert [r.estimated_improvement for r in recs] == [800.0, 400.0]

    def test_dispatch_by_type(self):
        ctx = RecommendationContext(shortfall=1000.0, days_until=3)

        assert recommendations_for(AlertType.CASH_GAP, ctx) == emergency_cash_recommendations(ctx)
        assert recommendations_for("revenue_drop", ctx) == revenue_drop_recommendations(ctx)
        assert recommendations_for(AlertType.CUSTOM_THRESHOLD, ctx) == []

    def test_to_dict(self):
        rec = revenue_drop_recommendations(RecommendationContext(shortfall=1000.0, days_until=30))[0]

        data = rec.to_dict()

        assert data["type"] == "accelerate_collections"
        assert data["urgency"] == "high"
        assert data["estimated_improvement"] == 800.0
