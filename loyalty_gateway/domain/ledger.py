"""Ledger arithmetic - aggregation and consistency checks over plain values"""

import uuid
from decimal import Decimal
from typing import Dict, Iterable, List

from loyalty_gateway.domain.models import Balance, LedgerDiscrepancy, PreparedOrder

ZERO = Decimal("0.00")


def total_accrual_by_user(orders: Iterable[PreparedOrder]) -> Dict[uuid.UUID, Decimal]:
    """Sum accrual per owner; owners whose orders add up to zero are dropped"""
    totals: Dict[uuid.UUID, Decimal] = {}
    for order in orders:
        totals[order.owner_id] = totals.get(order.owner_id, ZERO) + order.accrual
    return {owner: total for owner, total in totals.items() if total > 0}


def find_discrepancies(
    balances: Iterable[Balance],
    credited_totals: Dict[uuid.UUID, Decimal],
    withdrawal_totals: Dict[uuid.UUID, Decimal],
) -> List[LedgerDiscrepancy]:
    """
    Check every balance against its history.

    Identity per owner:
        current   == sum(credited accrual) - sum(withdrawals)
        withdrawn == sum(withdrawals)

    Owners with credited orders or withdrawals but no balance row are
    reported with current/withdrawn of zero.
    """
    seen = set()
    discrepancies = []

    for balance in balances:
        seen.add(balance.owner_id)
        credited = credited_totals.get(balance.owner_id, ZERO)
        withdrawn = withdrawal_totals.get(balance.owner_id, ZERO)
        expected_current = credited - withdrawn
        if balance.current != expected_current or balance.withdrawn != withdrawn:
            discrepancies.append(
                LedgerDiscrepancy(
                    owner_id=balance.owner_id,
                    current=balance.current,
                    expected_current=expected_current,
                    withdrawn=balance.withdrawn,
                    expected_withdrawn=withdrawn,
                )
            )

    orphans = (set(credited_totals) | set(withdrawal_totals)) - seen
    for owner_id in sorted(orphans, key=str):
        credited = credited_totals.get(owner_id, ZERO)
        withdrawn = withdrawal_totals.get(owner_id, ZERO)
        if credited == ZERO and withdrawn == ZERO:
            continue
        discrepancies.append(
            LedgerDiscrepancy(
                owner_id=owner_id,
                current=ZERO,
                expected_current=credited - withdrawn,
                withdrawn=ZERO,
                expected_withdrawn=withdrawn,
            )
        )

    return discrepancies
