"""Shared test fixtures and configuration for Cashwatch backend tests."""
import os

# Settings() requires DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cashwatch.database import Base

# Register every table on Base.metadata
import cashwatch.data.models  # noqa: F401
import cashwatch.forecast.models  # noqa: F401
import cashwatch.alerts.models  # noqa: F401
import cashwatch.notifications.models  # noqa: F401

from cashwatch.data.models import CashAccount, CashFlowInvoice, ClientPaymentProfile, RecurringExpense
from cashwatch.forecast.engine import determine_risk_level
from cashwatch.forecast.types import (
    ForecastParameters,
    ScenarioForecast,
    ScenarioType,
    WeeklyForecast,
    SCENARIO_ASSUMPTIONS,
    SCENARIO_NAMES,
)


# A Monday, so the first forecast week ends today
TODAY = date(2026, 3, 2)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def params():
    """Default model parameters, independent of the environment."""
    return ForecastParameters()


# =============================================================================
# Database
# =============================================================================

@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class Seeder:
    """Writes forecast input rows, one committed session per call."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _add(self, row):
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()
        return row

    async def cash(self, user_id: str, balance: float, name: str = "Operating"):
        return await self._add(CashAccount(
            user_id=user_id,
            account_name=name,
            balance=Decimal(str(balance)),
            as_of_date=TODAY,
        ))

    async def expense(
        self, user_id: str, amount: float, next_due: date,
        frequency: str = "monthly", name: str = "Rent", active: bool = True,
    ):
        return await self._add(RecurringExpense(
            user_id=user_id,
            name=name,
            amount=Decimal(str(amount)),
            next_due_date=next_due,
            frequency=frequency,
            is_active=active,
        ))

    async def invoice(
        self, user_id: str, amount: float, issue: date, due: date,
        status: str = "sent", client_id: Optional[str] = None, probability: Optional[float] = None,
    ):
        return await self._add(CashFlowInvoice(
            user_id=user_id,
            client_id=client_id,
            total_amount=Decimal(str(amount)),
            issue_date=issue,
            due_date=due,
            status=status,
            payment_probability=probability,
        ))

    async def client(self, user_id: str, client_id: str, avg_payment_days: float, reliability: float):
        return await self._add(ClientPaymentProfile(
            user_id=user_id,
            client_id=client_id,
            avg_payment_days=avg_payment_days,
            reliability_score=reliability,
        ))


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


# =============================================================================
# Scenario builder
# =============================================================================

def _build_scenario(
    cumulative: List[float],
    inflows: Optional[List[float]] = None,
    outflows: Optional[List[float]] = None,
    first_week_ending: Optional[date] = None,
    starting_cash: float = 30000.0,
    scenario_type: ScenarioType = ScenarioType.REALISTIC,
) -> ScenarioForecast:
    """
    Hand-built scenario for detection tests. Cumulative values are taken
    as given; inflow and outflow default to a flat 1,000 each week.
    """
    n = len(cumulative)
    inflows = inflows or [1000.0] * n
    outflows = outflows or [1000.0] * n
    start = first_week_ending or TODAY + timedelta(days=3)

    forecasts = []
    for i in range(n):
        net = round(inflows[i] - outflows[i], 2)
        forecasts.append(WeeklyForecast(
            week_ending=start + timedelta(weeks=i),
            projected_inflow=inflows[i],
            projected_outflow=outflows[i],
            net_position=net,
            cumulative_position=cumulative[i],
            confidence_score=80.0,
            risk_level=determine_risk_level(cumulative[i], net),
            cash_runway_days=90,
            seasonal_factor=1.0,
            market_factor=1.0,
        ))

    worst = min(forecasts, key=lambda f: f.cumulative_position)
    return ScenarioForecast(
        type=scenario_type,
        name=SCENARIO_NAMES[scenario_type],
        assumptions=dict(SCENARIO_ASSUMPTIONS[scenario_type]),
        starting_cash=starting_cash,
        forecasts=forecasts,
        total_projected_cash=cumulative[-1],
        minimum_cash_position=worst.cumulative_position,
        worst_week=worst.week_ending,
        average_weekly_burn=sum(outflows) / n,
    )


@pytest.fixture
def make_scenario():
    return _build_scenario
