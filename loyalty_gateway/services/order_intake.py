"""Order registration and listing"""

import logging
import uuid
from typing import List

from sqlalchemy.orm import Session

from loyalty_gateway.domain.exceptions import InvalidOrderNumberError, OrderBelongsToAnotherUserError
from loyalty_gateway.domain.luhn import is_valid_order_number
from loyalty_gateway.domain.models import Order, SubmitOutcome
from loyalty_gateway.infrastructure.database.repositories import OrderRepository, order_from_record
from loyalty_gateway.infrastructure.database.session import ConflictingWriteError, transaction
from loyalty_gateway.infrastructure.observability.logging import log_order_event
from loyalty_gateway.infrastructure.observability.metrics import order_submission_counter

logger = logging.getLogger(__name__)


class OrderIntake:
    """Validates order numbers and binds each one to a single owner"""

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderRepository(db)

    def submit(self, owner_id: uuid.UUID, order_number: str) -> SubmitOutcome:
        """
        Register an order number for a user.

        Flow:
        1. Reject numbers failing the Luhn check
        2. New number -> create in NEW state, ACCEPTED
        3. Same owner again -> ALREADY_OWNED (idempotent)
        4. Different owner -> OrderBelongsToAnotherUserError

        Raises:
            InvalidOrderNumberError: Luhn check failed
            OrderBelongsToAnotherUserError: Another user registered this number
            StorageError: Database failure
        """
        if not is_valid_order_number(order_number):
            order_submission_counter.labels(outcome="invalid_number").inc()
            raise InvalidOrderNumberError(f"Order number {order_number!r} is not valid")

        with transaction(self.db):
            existing = self.orders.get_order_by_id(order_number)

        if existing is None:
            try:
                with transaction(self.db):
                    self.orders.create_order(order_number, owner_id)
            except ConflictingWriteError:
                # Lost an insert race; fall through to the ownership check
                with transaction(self.db):
                    existing = self.orders.get_order_by_id(order_number)
                if existing is None:
                    raise
            else:
                order_submission_counter.labels(outcome="accepted").inc()
                log_order_event("order_accepted", order_number, owner_id)
                return SubmitOutcome.ACCEPTED

        if existing.user_id != owner_id:
            order_submission_counter.labels(outcome="conflict").inc()
            logger.warning(
                "Order belongs to another user",
                extra={"order_number": order_number, "owner_id": str(owner_id)},
            )
            raise OrderBelongsToAnotherUserError(f"Order {order_number} belongs to another user")

        order_submission_counter.labels(outcome="already_owned").inc()
        return SubmitOutcome.ALREADY_OWNED

    def list_orders(self, owner_id: uuid.UUID) -> List[Order]:
        """Orders owned by the user, newest first"""
        with transaction(self.db):
            return [order_from_record(r) for r in self.orders.get_orders_by_user(owner_id)]
