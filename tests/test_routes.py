"""
Tests for the HTTP API.

Forecast and monitor routes run against mocked services; alert lifecycle
and settings routes run against the in-memory test database.
"""

import pytest
import pytest_asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from cashwatch.alerts.models import CashGapAlert
from cashwatch.alerts.monitor import MonitorResult
from cashwatch.alerts.routes import get_monitor
from cashwatch.database import get_db
from cashwatch.forecast.engine import CashFlowEngine
from cashwatch.forecast.routes import get_forecast_service
from cashwatch.forecast.types import CashFlowAnalysis, ForecastInputs, ForecastOptions, RecurringExpenseInput
from cashwatch.main import app


USER = "test-user-123"


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


def _alert(today, alert_id="cgalert_1", severity="critical", status="active"):
    return CashGapAlert(
        id=alert_id,
        user_id=USER,
        alert_type="buffer_breach",
        severity=severity,
        status=status,
        title="Critical Cash Gap - $5,000.00 shortfall in 10 days",
        description="",
        projected_shortfall=5000.0,
        projected_date=today + timedelta(days=10),
        week_number=2,
        triggers=[],
        recommendations=[],
        extra_data={"days_until_shortfall": 10},
    )


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


# =============================================================================
# Forecast
# =============================================================================

class TestForecastRoute:

    def _service(self, analysis):
        service = MagicMock()
        service.generate_forecast = AsyncMock(return_value=analysis)
        app.dependency_overrides[get_forecast_service] = lambda: service
        return service

    def test_returns_three_scenarios(self, client, params, today):
        inputs = ForecastInputs(
            current_cash=50000.0,
            expenses=[RecurringExpenseInput(amount=4000.0, next_due_date=today, frequency="weekly", name="Payroll")],
        )
        service = self._service(CashFlowEngine(params).generate_analysis(inputs, today))

        response = client.get("/api/forecast", params={"user_id": USER})

        assert response.status_code == 200
        body = response.json()
        assert [s["type"] for s in body["scenarios"]] == ["conservative", "realistic", "optimistic"]
        assert len(body["scenarios"][1]["forecasts"]) == 13
        assert body["summary_metrics"]["current_cash_position"] == 50000.0
        assert body["generated_for"] == today.isoformat()
        service.generate_forecast.assert_awaited_once_with(USER, ForecastOptions())

    def test_options_forwarded(self, client, params, today):
        service = self._service(CashFlowEngine(params).generate_analysis(ForecastInputs(), today))
        start = today + timedelta(days=7)

        client.get("/api/forecast", params={
            "user_id": USER,
            "start_date": start.isoformat(),
            "include_scenarios": "false",
        })

        service.generate_forecast.assert_awaited_once_with(
            USER, ForecastOptions(start_date=start, include_scenarios=False),
        )

    def test_error_is_500(self, client, today):
        self._service(CashFlowAnalysis(generated_for=today, error="database unavailable"))

        response = client.get("/api/forecast", params={"user_id": USER})

        assert response.status_code == 500
        assert "database unavailable" in response.json()["detail"]

    def test_user_id_required(self, client):
        assert client.get("/api/forecast").status_code == 422


# =============================================================================
# Monitor
# =============================================================================

class TestMonitorRoute:

    def _monitor(self, result):
        monitor = MagicMock()
        monitor.monitor_cash_gaps = AsyncMock(return_value=result)
        app.dependency_overrides[get_monitor] = lambda: monitor
        return monitor

    def test_run_monitor(self, client, today):
        self._monitor(MonitorResult(alerts=[_alert(today)], summary={"total_active": 1}))

        response = client.post("/api/alerts/monitor", params={"user_id": USER})

        assert response.status_code == 200
        body = response.json()
        assert body["summary"] == {"total_active": 1}
        assert body["alerts"][0]["id"] == "cgalert_1"
        assert body["alerts"][0]["metadata"] == {"days_until_shortfall": 10}

    def test_failed_run_is_500(self, client):
        self._monitor(MonitorResult(alerts=[], summary={}, error="forecast failed"))

        response = client.post("/api/alerts/monitor", params={"user_id": USER})

        assert response.status_code == 500

    def test_monitor_status(self, client):
        response = client.get("/api/alerts/monitor/status")

        assert response.status_code == 200
        assert response.json()["running"] is False
        assert "last_run" in response.json()


# =============================================================================
# Lifecycle and settings
# =============================================================================

@pytest_asyncio.fixture
async def api(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


@pytest_asyncio.fixture
async def stored_alert(session_factory, today):
    async with session_factory() as session:
        alert = _alert(today)
        session.add(alert)
        await session.commit()
    return alert


class TestAlertRoutes:

    @pytest.mark.asyncio
    async def test_list(self, api, stored_alert):
        response = await api.get("/api/alerts", params={"user_id": USER})

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["alerts"][0]["severity"] == "critical"

    @pytest.mark.asyncio
    async def test_acknowledge_then_conflict(self, api, stored_alert):
        url = f"/api/alerts/{stored_alert.id}/acknowledge"

        first = await api.post(url, params={"user_id": USER})
        second = await api.post(url, params={"user_id": USER})

        assert first.status_code == 200
        assert first.json()["status"] == "acknowledged"
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_resolve_with_notes(self, api, stored_alert):
        response = await api.post(
            f"/api/alerts/{stored_alert.id}/resolve",
            params={"user_id": USER},
            json={"notes": "Client paid"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "resolved"
        assert response.json()["resolution_notes"] == "Client paid"
        assert response.json()["metadata"]["resolution_reason"] == "user_resolved"

    @pytest.mark.asyncio
    async def test_dismiss(self, api, stored_alert):
        response = await api.post(
            f"/api/alerts/{stored_alert.id}/dismiss",
            params={"user_id": USER},
            json={"reason": "Expected"},
        )

        assert response.status_code == 200
        assert response.json()["dismiss_reason"] == "Expected"

    @pytest.mark.asyncio
    async def test_unknown_alert_is_404(self, api):
        response = await api.post("/api/alerts/cgalert_missing/acknowledge", params={"user_id": USER})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_settings_defaults_and_update(self, api):
        defaults = await api.get("/api/alerts/settings", params={"user_id": USER})

        assert defaults.status_code == 200
        assert defaults.json()["minimum_cash_buffer"] == 25000.0
        assert defaults.json()["critical_threshold_days"] == 14

        updated = await api.put(
            "/api/alerts/settings",
            params={"user_id": USER},
            json={
                "minimum_cash_buffer": 40000,
                "notification_timing": [
                    {"days_before_shortfall": 7, "repeat_interval": "daily", "channels": ["email"]},
                ],
            },
        )

        assert updated.status_code == 200
        body = updated.json()
        assert body["minimum_cash_buffer"] == 40000.0
        assert body["warning_threshold_days"] == 30
        assert body["notification_timing"] == [
            {"days_before_shortfall": 7, "repeat_interval": "daily", "channels": ["email"]},
        ]

    @pytest.mark.asyncio
    async def test_settings_validation(self, api):
        response = await api.put(
            "/api/alerts/settings",
            params={"user_id": USER},
            json={"minimum_cash_buffer": -1},
        )

        assert response.status_code == 422
