"""Tests for the Insight Generator."""

import pytest
from datetime import date, timedelta

from cashwatch.forecast.types import ClientProfileInput, ForecastInputs, InvoiceInput
from cashwatch.insights.engine import InsightGenerator


@pytest.fixture
def generator():
    return InsightGenerator()


def _invoice(client_id, amount, today):
    return InvoiceInput(
        id=f"inv-{client_id}",
        client_id=client_id,
        amount=amount,
        issue_date=today - timedelta(days=30),
        due_date=today + timedelta(days=15),
    )


class TestInsightGenerator:
    """Tests for the three insight rules."""

    def test_critical_risk_names_week_and_amount(self, generator, make_scenario, today):
        cumulative = [30000.0] * 13
        cumulative[5] = 8000.0
        scenario = make_scenario(cumulative)

        insights = generator.generate(scenario, ForecastInputs(), today)

        risk = [i for i in insights if i.type == "risk"]
        assert len(risk) == 1
        week_ending = scenario.forecasts[5].week_ending
        assert risk[0].impact_amount == 8000.0
        assert "$8,000.00" in risk[0].description
        assert week_ending.isoformat() in risk[0].description
        assert risk[0].timeframe == week_ending.isoformat()

    def test_no_risk_above_floor(self, generator, make_scenario, today):
        insights = generator.generate(make_scenario([10000.0] * 13), ForecastInputs(), today)

        assert [i for i in insights if i.type == "risk"] == []

    def test_payment_acceleration(self, generator, make_scenario, today):
        inputs = ForecastInputs(
            invoices=[_invoice("slow", 10000.0, today), _invoice("fast", 4000.0, today)],
            client_profiles=[
                ClientProfileInput(client_id="slow", avg_payment_days=60, reliability_score=40),
                ClientProfileInput(client_id="fast", avg_payment_days=20, reliability_score=90),
            ],
        )

        insights = generator.generate(make_scenario([50000.0] * 13), inputs, today)

        opportunity = [i for i in insights if i.type == "opportunity"]
        assert len(opportunity) == 1
        assert opportunity[0].impact_amount == pytest.approx(7000.0)
        assert "$10,000.00" in opportunity[0].description

    def test_payment_acceleration_materiality(self, make_scenario, today):
        generator = InsightGenerator(material_amount=50000.0)
        inputs = ForecastInputs(
            invoices=[_invoice("slow", 10000.0, today)],
            client_profiles=[ClientProfileInput(client_id="slow", avg_payment_days=60, reliability_score=40)],
        )

        insights = generator.generate(make_scenario([50000.0] * 13), inputs, today)

        assert [i for i in insights if i.type == "opportunity"] == []

    @pytest.mark.parametrize("month, expected", [
        (1, True), (2, True), (11, True), (12, True), (3, False), (7, False),
    ])
    def test_seasonal_pattern(self, generator, make_scenario, month, expected):
        now = date(2026, month, 15)

        insights = generator.generate(make_scenario([50000.0] * 13), ForecastInputs(), now)

        assert any(i.type == "pattern" for i in insights) is expected
