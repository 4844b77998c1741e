"""SQLAlchemy ORM models for users, orders, balances and withdrawals"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Numeric, Text, Uuid, CheckConstraint
from sqlalchemy.orm import declarative_base

from loyalty_gateway.utils.date_utils import utcnow

Base = declarative_base()

MONEY = Numeric(14, 2, asdecimal=True)


class UserRecord(Base):
    """Registered account"""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    login = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class OrderRecord(Base):
    """Submitted order; the order number is the primary key"""

    __tablename__ = "orders"

    id = Column(String(64), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    status = Column(String(16), nullable=False, default="NEW", index=True)
    accrual = Column(MONEY, nullable=False, default=0)
    credited = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (CheckConstraint("accrual >= 0", name="ck_orders_accrual_non_negative"),)


class BalanceRecord(Base):
    """One row per user; current never goes below zero"""

    __tablename__ = "balances"

    user_id = Column(Uuid(as_uuid=True), primary_key=True)
    current = Column(MONEY, nullable=False, default=0)
    withdrawn = Column(MONEY, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("current >= 0", name="ck_balances_current_non_negative"),
        CheckConstraint("withdrawn >= 0", name="ck_balances_withdrawn_non_negative"),
    )


class WithdrawalRecord(Base):
    """Immutable debit record"""

    __tablename__ = "withdrawals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    order_id = Column(String(64), nullable=False, unique=True)
    sum = Column(MONEY, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint("sum > 0", name="ck_withdrawals_sum_positive"),)
