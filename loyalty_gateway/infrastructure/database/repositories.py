"""Data access layer for loyalty entities"""

import uuid
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from loyalty_gateway.domain.models import Balance, Order, OrderStatus, PreparedOrder, Withdrawal, to_money
from loyalty_gateway.infrastructure.database.models import BalanceRecord, OrderRecord, UserRecord, WithdrawalRecord

UNPROCESSED_STATUSES = (OrderStatus.NEW.value, OrderStatus.PROCESSING.value)


def order_from_record(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        owner_id=record.user_id,
        status=OrderStatus(record.status),
        accrual=to_money(record.accrual),
        credited=record.credited,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def balance_from_record(record: BalanceRecord) -> Balance:
    return Balance(
        owner_id=record.user_id,
        current=to_money(record.current),
        withdrawn=to_money(record.withdrawn),
        updated_at=record.updated_at,
    )


def withdrawal_from_record(record: WithdrawalRecord) -> Withdrawal:
    return Withdrawal(
        owner_id=record.user_id,
        order_id=record.order_id,
        sum=to_money(record.sum),
        processed_at=record.processed_at,
    )


class UserRepository:
    """Repository for registered users"""

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, login: str, password_hash: str) -> UserRecord:
        db_user = UserRecord(login=login, password_hash=password_hash)
        self.db.add(db_user)
        self.db.flush()  # Get ID without committing
        return db_user

    def get_user_by_login(self, login: str) -> Optional[UserRecord]:
        return self.db.query(UserRecord).filter(UserRecord.login == login).first()


class OrderRepository:
    """Repository for submitted orders"""

    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order_id: str, user_id: uuid.UUID) -> OrderRecord:
        """Register a new order in NEW state with zero accrual"""
        db_order = OrderRecord(
            id=order_id,
            user_id=user_id,
            status=OrderStatus.NEW.value,
            accrual=Decimal("0"),
            credited=False,
        )
        self.db.add(db_order)
        self.db.flush()
        return db_order

    def get_order_by_id(self, order_id: str) -> Optional[OrderRecord]:
        return self.db.get(OrderRecord, order_id, populate_existing=True)

    def get_orders_by_user(self, user_id: uuid.UUID) -> List[OrderRecord]:
        """Fetch a user's orders, newest first"""
        return (
            self.db.query(OrderRecord)
            .populate_existing()
            .filter(OrderRecord.user_id == user_id)
            .order_by(OrderRecord.created_at.desc(), OrderRecord.id.desc())
            .all()
        )

    def get_unprocessed_orders(self, limit: int) -> List[OrderRecord]:
        """Fetch one batch of NEW/PROCESSING orders, oldest first"""
        return (
            self.db.query(OrderRecord)
            .populate_existing()
            .filter(OrderRecord.status.in_(UNPROCESSED_STATUSES))
            .order_by(OrderRecord.updated_at.asc(), OrderRecord.id.asc())
            .limit(limit)
            .all()
        )

    def update_order_status(self, order_id: str, status: OrderStatus, accrual: Decimal) -> bool:
        """
        Set status and accrual while the order is still unresolved.

        The status guard keeps a late oracle answer from overwriting an order
        that already reached a terminal state.
        """
        result = self.db.execute(
            update(OrderRecord)
            .where(OrderRecord.id == order_id, OrderRecord.status.in_(UNPROCESSED_STATUSES))
            .values(status=status.value, accrual=accrual)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def get_prepared_orders(self) -> List[PreparedOrder]:
        """Lock and fetch PROCESSED orders whose accrual is not credited yet"""
        rows = self.db.execute(
            select(OrderRecord.id, OrderRecord.user_id, OrderRecord.accrual)
            .where(OrderRecord.status == OrderStatus.PROCESSED.value, OrderRecord.credited.is_(False))
            .order_by(OrderRecord.id)
            .with_for_update(skip_locked=True)
        ).all()
        return [PreparedOrder(order_id=r.id, owner_id=r.user_id, accrual=to_money(r.accrual)) for r in rows]

    def mark_orders_credited(self, order_ids: List[str]) -> int:
        """Flip credited for the given ids, re-checking they are still PROCESSED and uncredited"""
        if not order_ids:
            return 0
        result = self.db.execute(
            update(OrderRecord)
            .where(
                OrderRecord.id.in_(order_ids),
                OrderRecord.status == OrderStatus.PROCESSED.value,
                OrderRecord.credited.is_(False),
            )
            .values(credited=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get_credited_totals_by_user(self) -> Dict[uuid.UUID, Decimal]:
        rows = self.db.execute(
            select(OrderRecord.user_id, func.sum(OrderRecord.accrual))
            .where(OrderRecord.credited.is_(True))
            .group_by(OrderRecord.user_id)
        ).all()
        return {user_id: to_money(total or 0) for user_id, total in rows}


class BalanceRepository:
    """Repository for balances and withdrawals"""

    def __init__(self, db: Session):
        self.db = db

    def create_balance(
        self,
        user_id: uuid.UUID,
        current: Decimal = Decimal("0"),
        withdrawn: Decimal = Decimal("0"),
    ) -> BalanceRecord:
        db_balance = BalanceRecord(user_id=user_id, current=current, withdrawn=withdrawn)
        self.db.add(db_balance)
        self.db.flush()
        return db_balance

    def get_balance_by_user(self, user_id: uuid.UUID) -> Optional[BalanceRecord]:
        return self.db.get(BalanceRecord, user_id, populate_existing=True)

    def get_all_balances(self) -> List[BalanceRecord]:
        return self.db.query(BalanceRecord).populate_existing().order_by(BalanceRecord.user_id).all()

    def credit(self, user_id: uuid.UUID, amount: Decimal) -> bool:
        """Atomically add to current; False when the user has no balance row"""
        result = self.db.execute(
            update(BalanceRecord)
            .where(BalanceRecord.user_id == user_id)
            .values(current=BalanceRecord.current + amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def debit(self, user_id: uuid.UUID, amount: Decimal) -> bool:
        """
        Atomically move ``amount`` from current to withdrawn.

        The ``current >= amount`` guard makes this a compare-and-swap: it
        matches no row when funds are short, so current never goes negative
        even when a credit or another withdrawal races with it.
        """
        result = self.db.execute(
            update(BalanceRecord)
            .where(BalanceRecord.user_id == user_id, BalanceRecord.current >= amount)
            .values(
                current=BalanceRecord.current - amount,
                withdrawn=BalanceRecord.withdrawn + amount,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def add_withdrawal(self, user_id: uuid.UUID, order_id: str, amount: Decimal) -> WithdrawalRecord:
        db_withdrawal = WithdrawalRecord(user_id=user_id, order_id=order_id, sum=amount)
        self.db.add(db_withdrawal)
        self.db.flush()
        return db_withdrawal

    def get_withdrawals_by_user(self, user_id: uuid.UUID) -> List[WithdrawalRecord]:
        """Fetch a user's withdrawals, newest first"""
        return (
            self.db.query(WithdrawalRecord)
            .populate_existing()
            .filter(WithdrawalRecord.user_id == user_id)
            .order_by(WithdrawalRecord.processed_at.desc(), WithdrawalRecord.id.desc())
            .all()
        )

    def get_withdrawal_totals_by_user(self) -> Dict[uuid.UUID, Decimal]:
        rows = self.db.execute(
            select(WithdrawalRecord.user_id, func.sum(WithdrawalRecord.sum)).group_by(WithdrawalRecord.user_id)
        ).all()
        return {user_id: to_money(total or 0) for user_id, total in rows}
