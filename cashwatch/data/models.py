"""
Forecast input models.

Owned by the billing and bookkeeping side of the product; the forecast
only ever reads them.
"""
from sqlalchemy import Column, String, DateTime, Date, Numeric, Boolean, Integer, Float
from sqlalchemy.sql import func

from cashwatch.database import Base
from cashwatch.data.base import generate_id


class CashFlowInvoice(Base):
    """An issued invoice awaiting payment."""

    __tablename__ = "cash_flow_invoices"

    id = Column(String, primary_key=True, default=lambda: generate_id("inv"))
    user_id = Column(String, nullable=False, index=True)
    client_id = Column(String, nullable=True, index=True)

    invoice_number = Column(String, nullable=True)
    total_amount = Column(Numeric(precision=15, scale=2), nullable=False)
    currency = Column(String, nullable=False, default="USD")

    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="sent")  # "draft" | "sent" | "overdue" | "paid" | "void"

    # Payment likelihood from the billing side, 0-1
    payment_probability = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class ClientPaymentProfile(Base):
    """Aggregated payment behaviour of a client."""

    __tablename__ = "cash_flow_client_profiles"

    id = Column(String, primary_key=True, default=lambda: generate_id("cprof"))
    user_id = Column(String, nullable=False, index=True)
    client_id = Column(String, nullable=False, index=True)
    client_name = Column(String, nullable=True)

    avg_payment_days = Column(Float, nullable=True, default=30)
    reliability_score = Column(Float, nullable=True, default=50)  # 0-100

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class RecurringExpense(Base):
    """A recurring (or one-time) outgoing payment."""

    __tablename__ = "cash_flow_recurring_expenses"

    id = Column(String, primary_key=True, default=lambda: generate_id("rexp"))
    user_id = Column(String, nullable=False, index=True)

    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    next_due_date = Column(Date, nullable=False)
    # "weekly" | "bi_weekly" | "monthly" | "quarterly" | "annually" | "one_time"
    frequency = Column(String, nullable=False, default="monthly")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class PaymentHistory(Base):
    """A payment received in the past."""

    __tablename__ = "cash_flow_payment_history"

    id = Column(String, primary_key=True, default=lambda: generate_id("pay"))
    user_id = Column(String, nullable=False, index=True)
    invoice_id = Column(String, nullable=True)
    client_id = Column(String, nullable=True)

    payment_date = Column(Date, nullable=False)
    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    days_to_pay = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class CashAccount(Base):
    """Cash Account model - current cash position."""

    __tablename__ = "cash_accounts"

    id = Column(String, primary_key=True, default=lambda: generate_id("acct"))
    user_id = Column(String, nullable=False, index=True)
    account_name = Column(String, nullable=False)
    balance = Column(Numeric(precision=15, scale=2), nullable=False)
    currency = Column(String, nullable=False, default="USD")
    as_of_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
