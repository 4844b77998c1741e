"""Balance queries and user-initiated withdrawals"""

import logging
import uuid
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from loyalty_gateway.domain.exceptions import (
    BalanceNotFoundError,
    InsufficientFundsError,
    InvalidOrderNumberError,
    InvalidWithdrawalError,
    WithdrawalAlreadyExistsError,
)
from loyalty_gateway.domain.luhn import is_valid_order_number
from loyalty_gateway.domain.models import Balance, Withdrawal, to_money
from loyalty_gateway.infrastructure.database.repositories import (
    BalanceRepository,
    balance_from_record,
    withdrawal_from_record,
)
from loyalty_gateway.infrastructure.database.session import ConflictingWriteError, transaction
from loyalty_gateway.infrastructure.observability.metrics import withdrawal_counter

logger = logging.getLogger(__name__)


class WithdrawalProcessor:
    """Debits a user's balance against a Luhn-valid spend tag"""

    def __init__(self, db: Session):
        self.db = db
        self.balances = BalanceRepository(db)

    def withdraw(self, owner_id: uuid.UUID, order_number: str, amount: Decimal) -> Balance:
        """
        Spend ``amount`` from the user's current balance.

        The withdrawal record and the balance debit commit together; the debit
        is a conditional UPDATE so a concurrent credit or withdrawal cannot
        drive the balance negative.

        Returns:
            The balance after the debit

        Raises:
            InvalidOrderNumberError: Tag fails the Luhn check
            InvalidWithdrawalError: Non-positive or unrepresentable amount
            BalanceNotFoundError: User has no balance row
            InsufficientFundsError: current < amount; nothing changes
            WithdrawalAlreadyExistsError: Tag already used for a withdrawal
            StorageError: Database failure
        """
        if not is_valid_order_number(order_number):
            withdrawal_counter.labels(outcome="invalid_number").inc()
            raise InvalidOrderNumberError(f"Order number {order_number!r} is not valid")

        try:
            amount = to_money(amount)
        except ValueError as e:
            raise InvalidWithdrawalError(f"Withdrawal sum is not a valid amount: {e}") from e
        if amount <= 0:
            raise InvalidWithdrawalError(f"Withdrawal sum must be positive, got {amount}")

        try:
            with transaction(self.db):
                if self.balances.get_balance_by_user(owner_id) is None:
                    raise BalanceNotFoundError(f"No balance for user {owner_id}")

                if not self.balances.debit(owner_id, amount):
                    withdrawal_counter.labels(outcome="insufficient_funds").inc()
                    raise InsufficientFundsError(f"Insufficient funds to withdraw {amount}")

                self.balances.add_withdrawal(owner_id, order_number, amount)
                balance = self.balances.get_balance_by_user(owner_id)
        except ConflictingWriteError as e:
            withdrawal_counter.labels(outcome="duplicate").inc()
            raise WithdrawalAlreadyExistsError(f"Withdrawal for order {order_number} already exists") from e

        withdrawal_counter.labels(outcome="applied").inc()
        logger.info(
            "Withdrawal applied",
            extra={"step": "withdrawal_applied", "order_number": order_number, "owner_id": str(owner_id), "sum": str(amount)},
        )
        return balance_from_record(balance)

    def get_balance(self, owner_id: uuid.UUID) -> Balance:
        """Current and withdrawn totals; zero for a user without a balance row"""
        with transaction(self.db):
            record = self.balances.get_balance_by_user(owner_id)
        if record is None:
            return Balance(owner_id=owner_id, current=to_money(0), withdrawn=to_money(0))
        return balance_from_record(record)

    def list_withdrawals(self, owner_id: uuid.UUID) -> List[Withdrawal]:
        """Withdrawals, newest first"""
        with transaction(self.db):
            return [withdrawal_from_record(r) for r in self.balances.get_withdrawals_by_user(owner_id)]
