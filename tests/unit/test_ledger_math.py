"""Unit tests for ledger aggregation and consistency checks"""

import uuid
from decimal import Decimal
from loyalty_gateway.domain.ledger import find_discrepancies, total_accrual_by_user
from loyalty_gateway.domain.models import Balance, PreparedOrder

ALICE = uuid.UUID("00000000-0000-0000-0000-00000000000a")
BOB = uuid.UUID("00000000-0000-0000-0000-00000000000b")


def test_total_accrual_groups_by_owner():
    orders = [
        PreparedOrder(order_id="1", owner_id=ALICE, accrual=Decimal("500.00")),
        PreparedOrder(order_id="2", owner_id=BOB, accrual=Decimal("10.50")),
        PreparedOrder(order_id="3", owner_id=ALICE, accrual=Decimal("0.25")),
    ]

    totals = total_accrual_by_user(orders)

    assert totals == {ALICE: Decimal("500.25"), BOB: Decimal("10.50")}


def test_total_accrual_drops_zero_totals():
    """Processed orders that earned nothing do not touch balances"""
    orders = [PreparedOrder(order_id="1", owner_id=ALICE, accrual=Decimal("0"))]
    assert total_accrual_by_user(orders) == {}


def test_total_accrual_empty():
    assert total_accrual_by_user([]) == {}


def test_consistent_ledger_has_no_discrepancies():
    balances = [Balance(owner_id=ALICE, current=Decimal("300.00"), withdrawn=Decimal("200.00"))]
    credited = {ALICE: Decimal("500.00")}
    withdrawn = {ALICE: Decimal("200.00")}

    assert find_discrepancies(balances, credited, withdrawn) == []


def test_lost_credit_is_reported():
    """Order marked credited but the balance never received it"""
    balances = [Balance(owner_id=ALICE, current=Decimal("0.00"), withdrawn=Decimal("0.00"))]

    discrepancies = find_discrepancies(balances, {ALICE: Decimal("500.00")}, {})

    assert len(discrepancies) == 1
    assert discrepancies[0].owner_id == ALICE
    assert discrepancies[0].current == Decimal("0.00")
    assert discrepancies[0].expected_current == Decimal("500.00")


def test_withdrawn_mismatch_is_reported():
    balances = [Balance(owner_id=BOB, current=Decimal("100.00"), withdrawn=Decimal("0.00"))]

    discrepancies = find_discrepancies(balances, {BOB: Decimal("150.00")}, {BOB: Decimal("50.00")})

    assert [d.expected_withdrawn for d in discrepancies] == [Decimal("50.00")]


def test_owner_without_balance_row_is_reported():
    discrepancies = find_discrepancies([], {BOB: Decimal("10.00")}, {})

    assert len(discrepancies) == 1
    assert discrepancies[0].owner_id == BOB
    assert discrepancies[0].expected_current == Decimal("10.00")
