"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Optional, Set, Union

from loyalty_gateway.domain.exceptions import InvalidStatusTransitionError


CENT = Decimal("0.01")


def to_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """Normalize an amount to a two-place Decimal; floats go through str() to avoid binary noise"""
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        # Too many digits for the decimal context
        raise ValueError(f"Monetary amount out of range: {value!r}") from e


class OrderStatus(str, Enum):
    """Local order lifecycle states"""

    NEW = "NEW"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    INVALID = "INVALID"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.PROCESSED, OrderStatus.INVALID)


ALLOWED_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.NEW: {OrderStatus.PROCESSING, OrderStatus.PROCESSED, OrderStatus.INVALID},
    OrderStatus.PROCESSING: {OrderStatus.PROCESSING, OrderStatus.PROCESSED, OrderStatus.INVALID},
    OrderStatus.PROCESSED: set(),
    OrderStatus.INVALID: set(),
}

# Accrual service vocabulary -> local status. REGISTERED means the oracle has
# the order but has not started on it yet.
ORACLE_STATUS_MAP: Dict[str, OrderStatus] = {
    "REGISTERED": OrderStatus.PROCESSING,
    "PROCESSING": OrderStatus.PROCESSING,
    "PROCESSED": OrderStatus.PROCESSED,
    "INVALID": OrderStatus.INVALID,
}


def validate_transition(current: OrderStatus, new: OrderStatus) -> None:
    """Raise when a status change is not allowed by the order lifecycle."""
    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(f"Invalid transition: {current.value} -> {new.value}")


class SubmitOutcome(str, Enum):
    """Result of registering an order number"""

    ACCEPTED = "accepted"
    ALREADY_OWNED = "already_owned"


@dataclass
class Order:
    """Purchase order submitted for loyalty evaluation"""

    id: str
    owner_id: uuid.UUID
    status: OrderStatus
    accrual: Decimal
    credited: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class Balance:
    """Spendable and withdrawn totals for one user"""

    owner_id: uuid.UUID
    current: Decimal
    withdrawn: Decimal
    updated_at: Optional[datetime] = None


@dataclass
class Withdrawal:
    """Single successful debit"""

    owner_id: uuid.UUID
    order_id: str
    sum: Decimal
    processed_at: datetime


@dataclass
class AccrualVerdict:
    """Accrual service classification of a single order"""

    order: str
    status: OrderStatus
    accrual: Decimal = Decimal("0")


@dataclass
class PreparedOrder:
    """Processed order whose accrual has not reached the balance yet"""

    order_id: str
    owner_id: uuid.UUID
    accrual: Decimal


@dataclass
class PollReport:
    """Outcome counters for one accrual poll cycle"""

    fetched: int = 0
    resolved: int = 0
    pending: int = 0
    invalid: int = 0
    failed: int = 0
    rate_limited_for: Optional[float] = None


@dataclass
class ReconcileReport:
    """Outcome of one ledger reconciliation cycle"""

    orders_credited: int = 0
    totals_by_owner: Dict[uuid.UUID, Decimal] = field(default_factory=dict)

    @property
    def total_credited(self) -> Decimal:
        return sum(self.totals_by_owner.values(), Decimal("0"))


@dataclass
class LedgerDiscrepancy:
    """Balance row that disagrees with its order and withdrawal history"""

    owner_id: uuid.UUID
    current: Decimal
    expected_current: Decimal
    withdrawn: Decimal
    expected_withdrawn: Decimal
