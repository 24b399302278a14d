"""Persisted weekly forecast snapshots."""
from sqlalchemy import Column, String, DateTime, Date, Float, Integer, UniqueConstraint
from sqlalchemy.sql import func

from cashwatch.database import Base
from cashwatch.data.base import generate_id


class CashFlowForecastRow(Base):
    """
    One week of one scenario, as last computed.

    Upserted on (user_id, week_ending, forecast_type) after each forecast run.
    """

    __tablename__ = "cash_flow_forecasts"

    id = Column(String, primary_key=True, default=lambda: generate_id("fcst"))
    user_id = Column(String, nullable=False, index=True)

    week_ending = Column(Date, nullable=False)
    forecast_type = Column(String, nullable=False)  # "conservative" | "realistic" | "optimistic"

    projected_inflow = Column(Float, nullable=False, default=0.0)
    projected_outflow = Column(Float, nullable=False, default=0.0)
    net_position = Column(Float, nullable=False, default=0.0)
    cumulative_position = Column(Float, nullable=False, default=0.0)
    confidence_score = Column(Float, nullable=False)
    risk_level = Column(String, nullable=False)
    cash_runway_days = Column(Integer, nullable=True)
    seasonal_adjustment_factor = Column(Float, nullable=False, default=1.0)
    market_conditions_factor = Column(Float, nullable=False, default=1.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "week_ending", "forecast_type", name="uq_cash_flow_forecast_week"),
    )
