"""Out-of-band check that balances match credited orders and withdrawals"""

import logging
from typing import List

from sqlalchemy.orm import sessionmaker

from loyalty_gateway.domain.ledger import find_discrepancies
from loyalty_gateway.domain.models import LedgerDiscrepancy
from loyalty_gateway.infrastructure.database.repositories import (
    BalanceRepository,
    OrderRepository,
    balance_from_record,
)
from loyalty_gateway.infrastructure.database.session import transaction

logger = logging.getLogger(__name__)


def audit_ledger(session_factory: sessionmaker) -> List[LedgerDiscrepancy]:
    """Compare every balance with its credited accruals and withdrawals"""
    with session_factory() as db, transaction(db):
        balance_repo = BalanceRepository(db)
        balances = [balance_from_record(r) for r in balance_repo.get_all_balances()]
        credited = OrderRepository(db).get_credited_totals_by_user()
        withdrawn = balance_repo.get_withdrawal_totals_by_user()

    discrepancies = find_discrepancies(balances, credited, withdrawn)
    for d in discrepancies:
        logger.warning(
            "Ledger discrepancy",
            extra={
                "owner_id": str(d.owner_id),
                "current": str(d.current),
                "expected_current": str(d.expected_current),
                "withdrawn": str(d.withdrawn),
                "expected_withdrawn": str(d.expected_withdrawn),
            },
        )
    return discrepancies
