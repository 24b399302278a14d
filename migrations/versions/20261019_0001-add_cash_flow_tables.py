"""Add cash flow forecasting and cash gap alert tables

Revision ID: c4f1a8e2b7d3
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "c4f1a8e2b7d3"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # =========================================================================
    # Forecast inputs (read-only for the forecast)
    # =========================================================================
    op.create_table(
        "cash_flow_invoices",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), nullable=True),
        sa.Column("invoice_number", sa.String(), nullable=True),
        sa.Column("total_amount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("currency", sa.String(), nullable=False, server_default="USD"),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="sent"),
        sa.Column("payment_probability", sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cash_flow_invoices_user_id", "cash_flow_invoices", ["user_id"])
    op.create_index("ix_cash_flow_invoices_client_id", "cash_flow_invoices", ["client_id"])

    op.create_table(
        "cash_flow_client_profiles",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), nullable=False),
        sa.Column("client_name", sa.String(), nullable=True),
        sa.Column("avg_payment_days", sa.Float(), nullable=True),
        sa.Column("reliability_score", sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cash_flow_client_profiles_user_id", "cash_flow_client_profiles", ["user_id"])
    op.create_index("ix_cash_flow_client_profiles_client_id", "cash_flow_client_profiles", ["client_id"])

    op.create_table(
        "cash_flow_recurring_expenses",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("amount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("next_due_date", sa.Date(), nullable=False),
        sa.Column("frequency", sa.String(), nullable=False, server_default="monthly"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cash_flow_recurring_expenses_user_id", "cash_flow_recurring_expenses", ["user_id"])

    op.create_table(
        "cash_flow_payment_history",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("invoice_id", sa.String(), nullable=True),
        sa.Column("client_id", sa.String(), nullable=True),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("days_to_pay", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cash_flow_payment_history_user_id", "cash_flow_payment_history", ["user_id"])

    op.create_table(
        "cash_accounts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("account_name", sa.String(), nullable=False),
        sa.Column("balance", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("currency", sa.String(), nullable=False, server_default="USD"),
        sa.Column("as_of_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cash_accounts_user_id", "cash_accounts", ["user_id"])

    # =========================================================================
    # Forecast snapshots
    # =========================================================================
    op.create_table(
        "cash_flow_forecasts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("week_ending", sa.Date(), nullable=False),
        sa.Column("forecast_type", sa.String(), nullable=False),
        sa.Column("projected_inflow", sa.Float(), nullable=False),
        sa.Column("projected_outflow", sa.Float(), nullable=False),
        sa.Column("net_position", sa.Float(), nullable=False),
        sa.Column("cumulative_position", sa.Float(), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("risk_level", sa.String(), nullable=False),
        sa.Column("cash_runway_days", sa.Integer(), nullable=True),
        sa.Column("seasonal_adjustment_factor", sa.Float(), nullable=False),
        sa.Column("market_conditions_factor", sa.Float(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "week_ending", "forecast_type", name="uq_cash_flow_forecast_week"),
    )
    op.create_index("ix_cash_flow_forecasts_user_id", "cash_flow_forecasts", ["user_id"])

    # =========================================================================
    # Cash gap alerts
    # =========================================================================
    op.create_table(
        "cash_flow_alerts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("alert_type", sa.String(), nullable=False),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("projected_shortfall", sa.Float(), nullable=False),
        sa.Column("projected_date", sa.Date(), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("triggers", sa.JSON(), nullable=False),
        sa.Column("recommendations", sa.JSON(), nullable=False),
        sa.Column("extra_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("dismissed_at", sa.DateTime(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("dismiss_reason", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_cash_flow_alerts_identity",
        "cash_flow_alerts",
        ["user_id", "alert_type", "projected_date"],
    )
    op.create_index(
        "ix_cash_flow_alerts_user_status",
        "cash_flow_alerts",
        ["user_id", "status"],
    )

    op.create_table(
        "cash_flow_alert_settings",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("minimum_cash_buffer", sa.Float(), nullable=False),
        sa.Column("warning_threshold_days", sa.Integer(), nullable=False),
        sa.Column("critical_threshold_days", sa.Integer(), nullable=False),
        sa.Column("enable_email_notifications", sa.Boolean(), nullable=False),
        sa.Column("enable_sms_notifications", sa.Boolean(), nullable=False),
        sa.Column("enable_slack_notifications", sa.Boolean(), nullable=False),
        sa.Column("notification_timing", sa.JSON(), nullable=False),
        sa.Column("custom_rules", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_cash_flow_alert_settings_user_id",
        "cash_flow_alert_settings",
        ["user_id"],
        unique=True,
    )

    # =========================================================================
    # Notification log
    # =========================================================================
    op.create_table(
        "notification_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("alert_id", sa.String(), nullable=True),
        sa.Column("channel", sa.String(), nullable=False),
        sa.Column("severity", sa.String(), nullable=True),
        sa.Column("subject", sa.String(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
        sa.Column("delivered", sa.Boolean(), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("external_id", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(
            ["alert_id"],
            ["cash_flow_alerts.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notification_logs_alert_channel",
        "notification_logs",
        ["alert_id", "channel"],
    )


def downgrade() -> None:
    op.drop_index("ix_notification_logs_alert_channel", table_name="notification_logs")
    op.drop_table("notification_logs")

    op.drop_index("ix_cash_flow_alert_settings_user_id", table_name="cash_flow_alert_settings")
    op.drop_table("cash_flow_alert_settings")

    op.drop_index("ix_cash_flow_alerts_user_status", table_name="cash_flow_alerts")
    op.drop_index("ix_cash_flow_alerts_identity", table_name="cash_flow_alerts")
    op.drop_table("cash_flow_alerts")

    op.drop_index("ix_cash_flow_forecasts_user_id", table_name="cash_flow_forecasts")
    op.drop_table("cash_flow_forecasts")

    op.drop_index("ix_cash_accounts_user_id", table_name="cash_accounts")
    op.drop_table("cash_accounts")

    op.drop_index("ix_cash_flow_payment_history_user_id", table_name="cash_flow_payment_history")
    op.drop_table("cash_flow_payment_history")

    op.drop_index("ix_cash_flow_recurring_expenses_user_id", table_name="cash_flow_recurring_expenses")
    op.drop_table("cash_flow_recurring_expenses")

    op.drop_index("ix_cash_flow_client_profiles_client_id", table_name="cash_flow_client_profiles")
    op.drop_index("ix_cash_flow_client_profiles_user_id", table_name="cash_flow_client_profiles")
    op.drop_table("cash_flow_client_profiles")

    op.drop_index("ix_cash_flow_invoices_client_id", table_name="cash_flow_invoices")
    op.drop_index("ix_cash_flow_invoices_user_id", table_name="cash_flow_invoices")
    op.drop_table("cash_flow_invoices")
