"""
Tests for alert lifecycle transitions and per-user alert settings.
"""

import pytest
import pytest_asyncio
from datetime import timedelta

from cashwatch.alerts.detection import CustomRule
from cashwatch.alerts.models import AlertSettings, CashGapAlert
from cashwatch.alerts.monitor import (
    AlertNotFoundError,
    InvalidAlertTransition,
    acknowledge_alert,
    dismiss_alert,
    get_alert,
    list_alerts,
    resolve_alert,
)
from cashwatch.alerts.settings import get_or_create_settings, update_alert_settings
from cashwatch.alerts.types import AlertSeverity


USER = "test-user-123"


def _alert(today, severity="critical", days=10, status="active", alert_type="buffer_breach", user_id=USER):
    return CashGapAlert(
        user_id=user_id,
        alert_type=alert_type,
        severity=severity,
        status=status,
        title=f"{alert_type} in {days} days",
        description="",
        projected_shortfall=5000.0,
        projected_date=today + timedelta(days=days),
        week_number=days // 7 + 1,
        triggers=[],
        recommendations=[],
        extra_data={"days_until_shortfall": days},
    )


@pytest_asyncio.fixture
async def alert(db, today):
    alert = _alert(today)
    db.add(alert)
    await db.flush()
    return alert


# =============================================================================
# Transitions
# =============================================================================

class TestLifecycle:
    """Tests for acknowledge / resolve / dismiss."""

    @pytest.mark.asyncio
    async def test_acknowledge(self, db, alert):
        updated = await acknowledge_alert(db, alert.id, user_id=USER)

        assert updated.status == "acknowledged"
        assert updated.acknowledged_at is not None

    @pytest.mark.asyncio
    async def test_acknowledge_twice_is_rejected(self, db, alert):
        await acknowledge_alert(db, alert.id)

        with pytest.raises(InvalidAlertTransition):
            await acknowledge_alert(db, alert.id)

    @pytest.mark.asyncio
    async def test_resolve_acknowledged_with_notes(self, db, alert):
        await acknowledge_alert(db, alert.id)

        resolved = await resolve_alert(db, alert.id, notes="Client paid early", user_id=USER)

        assert resolved.status == "resolved"
        assert resolved.resolved_at is not None
        assert resolved.resolution_notes == "Client paid early"
        assert resolved.extra_data["resolution_reason"] == "user_resolved"
        assert resolved.extra_data["days_until_shortfall"] == 10

    @pytest.mark.asyncio
    async def test_dismiss_with_reason(self, db, alert):
        dismissed = await dismiss_alert(db, alert.id, reason="Known seasonal dip")

        assert dismissed.status == "dismissed"
        assert dismissed.dismissed_at is not None
        assert dismissed.dismiss_reason == "Known seasonal dip"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", ["resolved", "dismissed"])
    async def test_terminal_states_are_final(self, db, today, terminal):
        alert = _alert(today, status=terminal)
        db.add(alert)
        await db.flush()

        with pytest.raises(InvalidAlertTransition):
            await acknowledge_alert(db, alert.id)
        with pytest.raises(InvalidAlertTransition):
            await resolve_alert(db, alert.id)
        with pytest.raises(InvalidAlertTransition):
            await dismiss_alert(db, alert.id)

    @pytest.mark.asyncio
    async def test_unknown_alert(self, db):
        with pytest.raises(AlertNotFoundError):
            await acknowledge_alert(db, "cgalert_missing")

    @pytest.mark.asyncio
    async def test_other_users_alert_is_not_found(self, db, alert):
        with pytest.raises(AlertNotFoundError):
            await get_alert(db, alert.id, user_id="someone-else")

    def test_not_found_is_a_value_error(self):
        assert issubclass(AlertNotFoundError, ValueError)


class TestListAlerts:
    """Tests for listing a user's alerts."""

    @pytest_asyncio.fixture
    async def stored(self, db, today):
        alerts = [
            _alert(today, severity="medium", days=3),
            _alert(today, severity="critical", days=20),
            _alert(today, severity="high", days=10),
            _alert(today, severity="critical", days=5, status="dismissed"),
            _alert(today, severity="critical", days=5, user_id="someone-else"),
        ]
        db.add_all(alerts)
        await db.flush()
        return alerts

    @pytest.mark.asyncio
    async def test_sorted_by_severity(self, db, stored):
        alerts = await list_alerts(db, USER)

        assert [(a.severity, a.status) for a in alerts] == [
            ("critical", "dismissed"),
            ("critical", "active"),
            ("high", "active"),
            ("medium", "active"),
        ]

    @pytest.mark.asyncio
    async def test_status_filter(self, db, stored):
        alerts = await list_alerts(db, USER, status="active")

        assert len(alerts) == 3
        assert {a.status for a in alerts} == {"active"}

    @pytest.mark.asyncio
    async def test_limit(self, db, stored):
        assert len(await list_alerts(db, USER, limit=2)) == 2

    @pytest.mark.asyncio
    async def test_limit_keeps_most_severe(self, db, today):
        """A later critical alert outranks an earlier medium one even when only one is returned."""
        db.add_all([
            _alert(today, severity="medium", days=0),
            _alert(today, severity="critical", days=21),
        ])
        await db.flush()

        alerts = await list_alerts(db, USER, limit=1)

        assert [a.severity for a in alerts] == ["critical"]

    @pytest.mark.asyncio
    async def test_same_severity_soonest_first(self, db, today):
        db.add_all([
            _alert(today, severity="high", days=30),
            _alert(today, severity="high", days=4),
        ])
        await db.flush()

        alerts = await list_alerts(db, USER, limit=1)

        assert alerts[0].projected_date == today + timedelta(days=4)


# =============================================================================
# Settings
# =============================================================================

class TestAlertSettings:
    """Tests for lazily created, partially updatable settings."""

    @pytest.mark.asyncio
    async def test_defaults(self, db):
        alert_settings = await get_or_create_settings(db, USER)

        assert alert_settings.minimum_cash_buffer == 25000.0
        assert alert_settings.warning_threshold_days == 30
        assert alert_settings.critical_threshold_days == 14
        assert alert_settings.enable_email_notifications is True
        assert alert_settings.enable_sms_notifications is False
        assert alert_settings.notification_timing == []
        assert alert_settings.custom_rules == []

    @pytest.mark.asyncio
    async def test_get_or_create_is_stable(self, db):
        first = await get_or_create_settings(db, USER)
        second = await get_or_create_settings(db, USER)

        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_partial_update(self, db):
        updated = await update_alert_settings(db, USER, {
            "minimum_cash_buffer": 40000.0,
            "warning_threshold_days": None,
        })

        assert updated.minimum_cash_buffer == 40000.0
        assert updated.warning_threshold_days == 30

    @pytest.mark.asyncio
    async def test_to_thresholds(self, db):
        alert_settings = await update_alert_settings(db, USER, {
            "critical_threshold_days": 7,
            "custom_rules": [{
                "name": "Low cash",
                "condition": "cumulative_position",
                "threshold": 10000,
                "operator": "less_than",
                "severity": "high",
                "enabled": True,
            }],
        })

        thresholds = alert_settings.to_thresholds()

        assert thresholds.minimum_cash_buffer == 25000.0
        assert thresholds.critical_threshold_days == 7
        assert thresholds.custom_rules == [
            CustomRule("Low cash", "cumulative_position", 10000.0, "less_than", AlertSeverity.HIGH),
        ]

    def test_enabled_channels(self):
        alert_settings = AlertSettings(
            user_id=USER,
            enable_email_notifications=True,
            enable_sms_notifications=False,
            enable_slack_notifications=True,
            notification_timing=[
                {"days_before_shortfall": 14, "repeat_interval": "daily", "channels": ["sms", "in_app"]},
            ],
        )

        # sms stays off: its flag wins over the timing entry
        assert alert_settings.enabled_channels() == ["email", "slack", "in_app"]
