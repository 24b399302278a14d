"""
Forecast input loader.

Fetches every input category concurrently, each in its own session and
under its own timeout. A category that fails or times out is replaced by
its default (empty list, or the configured default cash position) so one
missing source never aborts a forecast.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cashwatch.config import settings
from cashwatch.data.models import (
    CashAccount,
    CashFlowInvoice,
    ClientPaymentProfile,
    PaymentHistory,
    RecurringExpense,
)
from cashwatch.forecast.engine import is_known_frequency
from cashwatch.forecast.types import (
    ClientProfileInput,
    ForecastInputs,
    InvoiceInput,
    PaymentRecordInput,
    RecurringExpenseInput,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNPAID_INVOICE_STATUSES = ("sent", "viewed", "overdue")
PAYMENT_HISTORY_LIMIT = 200


def _to_float(value, default: float = 0.0) -> float:
    if value is None:
        return default
    return float(value)


class CashFlowDataLoader:
    """Loads ForecastInputs for one user."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        timeout: Optional[float] = None,
        default_cash_position: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.timeout = settings.FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        self.default_cash_position = (
            settings.DEFAULT_CASH_POSITION if default_cash_position is None else default_cash_position
        )

    async def load(self, user_id: str) -> ForecastInputs:
        current_cash, invoices, expenses, history, profiles = await asyncio.gather(
            self._guarded("current cash", self.fetch_current_cash, user_id, self.default_cash_position),
            self._guarded("invoices", self.fetch_unpaid_invoices, user_id, []),
            self._guarded("recurring expenses", self.fetch_recurring_expenses, user_id, []),
            self._guarded("payment history", self.fetch_payment_history, user_id, []),
            self._guarded("client profiles", self.fetch_client_profiles, user_id, []),
        )
        return ForecastInputs(
            current_cash=current_cash,
            invoices=invoices,
            expenses=expenses,
            payment_history=history,
            client_profiles=profiles,
        )

    async def _guarded(
        self,
        label: str,
        fetch: Callable[[AsyncSession, str], Awaitable[T]],
        user_id: str,
        default: T,
    ) -> T:
        """Run one fetch in its own session; log and substitute the default on failure."""
        async def _run() -> T:
            async with self.session_factory() as session:
                return await fetch(session, user_id)

        try:
            return await asyncio.wait_for(_run(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Fetching {label} for user {user_id} timed out after {self.timeout}s, using default")
        except SQLAlchemyError as e:
            logger.warning(f"Fetching {label} for user {user_id} failed, using default: {e}")
        return default

    # ==========================================================================
    # Fetches
    # ==========================================================================

    async def fetch_current_cash(self, session: AsyncSession, user_id: str) -> float:
        result = await session.execute(
            select(func.count(CashAccount.id), func.sum(CashAccount.balance))
            .where(CashAccount.user_id == user_id)
        )
        count, total = result.one()
        if not count:
            return self.default_cash_position
        return _to_float(total)

    async def fetch_unpaid_invoices(self, session: AsyncSession, user_id: str) -> List[InvoiceInput]:
        result = await session.execute(
            select(CashFlowInvoice)
            .where(CashFlowInvoice.user_id == user_id)
            .where(CashFlowInvoice.status.in_(UNPAID_INVOICE_STATUSES))
            .order_by(CashFlowInvoice.due_date, CashFlowInvoice.id)
        )
        return [
            InvoiceInput(
                id=row.id,
                client_id=row.client_id,
                amount=_to_float(row.total_amount),
                issue_date=row.issue_date,
                due_date=row.due_date,
                status=row.status,
                base_probability=row.payment_probability,
            )
            for row in result.scalars().all()
        ]

    async def fetch_recurring_expenses(
        self, session: AsyncSession, user_id: str
    ) -> List[RecurringExpenseInput]:
        result = await session.execute(
            select(RecurringExpense)
            .where(RecurringExpense.user_id == user_id)
            .where(RecurringExpense.is_active == True)
            .order_by(RecurringExpense.next_due_date, RecurringExpense.id)
        )
        expenses = []
        for row in result.scalars().all():
            frequency = row.frequency or "monthly"
            if not is_known_frequency(frequency):
                logger.warning(
                    f"Expense {row.id} for user {user_id} has unknown frequency '{frequency}', "
                    f"counting it once on {row.next_due_date}"
                )
            expenses.append(RecurringExpenseInput(
                amount=_to_float(row.amount),
                next_due_date=row.next_due_date,
                frequency=frequency,
                active=bool(row.is_active),
                name=row.name,
                id=row.id,
            ))
        return expenses

    async def fetch_payment_history(self, session: AsyncSession, user_id: str) -> List[PaymentRecordInput]:
        result = await session.execute(
            select(PaymentHistory)
            .where(PaymentHistory.user_id == user_id)
            .order_by(PaymentHistory.payment_date.desc())
            .limit(PAYMENT_HISTORY_LIMIT)
        )
        return [
            PaymentRecordInput(date=row.payment_date, amount=_to_float(row.amount))
            for row in result.scalars().all()
        ]

    async def fetch_client_profiles(self, session: AsyncSession, user_id: str) -> List[ClientProfileInput]:
        result = await session.execute(
            select(ClientPaymentProfile)
            .where(ClientPaymentProfile.user_id == user_id)
            .order_by(ClientPaymentProfile.client_id)
        )
        return [
            ClientProfileInput(
                client_id=row.client_id,
                avg_payment_days=_to_float(row.avg_payment_days, 30.0),
                reliability_score=_to_float(row.reliability_score, 50.0),
                client_name=row.client_name,
            )
            for row in result.scalars().all()
        ]
