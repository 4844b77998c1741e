"""Background loop crediting processed order accruals to user balances"""

import asyncio
import logging

from sqlalchemy.orm import sessionmaker

from loyalty_gateway.domain.exceptions import LedgerConflictError
from loyalty_gateway.domain.ledger import total_accrual_by_user
from loyalty_gateway.domain.models import ReconcileReport
from loyalty_gateway.infrastructure.database.repositories import BalanceRepository, OrderRepository
from loyalty_gateway.infrastructure.database.session import transaction
from loyalty_gateway.infrastructure.observability.metrics import ledger_cycle_failures_counter, record_credit

logger = logging.getLogger(__name__)


class LedgerReconciler:
    """
    Credits each processed order's accrual exactly once.

    Marking orders credited and adding the totals to balances happen in one
    database transaction: either both land or neither does, so a crash can
    neither lose a credit nor apply it twice. Selected rows are locked
    (SKIP LOCKED) so concurrent reconcilers split the work instead of
    double-counting it.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def run_cycle(self) -> ReconcileReport:
        return await asyncio.to_thread(self.reconcile)

    def reconcile(self) -> ReconcileReport:
        """
        One reconciliation pass.

        Flow:
        1. Lock PROCESSED, uncredited orders
        2. Sum accrual per owner
        3. Mark exactly those orders credited (re-checking status)
        4. Add each owner's total to their balance in owner id order,
           creating it if missing
        5. Commit

        Raises:
            LedgerConflictError: Selection changed under us; nothing applied
            StorageError: Database failure; nothing applied
        """
        try:
            with self.session_factory() as db, transaction(db):
                orders = OrderRepository(db)
                balances = BalanceRepository(db)

                prepared = orders.get_prepared_orders()
                if not prepared:
                    return ReconcileReport()

                totals = total_accrual_by_user(prepared)

                marked = orders.mark_orders_credited([p.order_id for p in prepared])
                if marked != len(prepared):
                    raise LedgerConflictError(f"Marked {marked} of {len(prepared)} prepared orders, rolling back")

                # Fixed lock order on balance rows across concurrent reconcilers
                for owner_id in sorted(totals):
                    total = totals[owner_id]
                    if not balances.credit(owner_id, total):
                        balances.create_balance(owner_id, current=total)
        except Exception:
            ledger_cycle_failures_counter.inc()
            raise

        report = ReconcileReport(orders_credited=len(prepared), totals_by_owner=totals)
        record_credit(report.orders_credited, report.total_credited)
        logger.info(
            "Ledger credited",
            extra={
                "step": "ledger_credited",
                "orders_credited": report.orders_credited,
                "owners": len(totals),
                "amount": str(report.total_credited),
            },
        )
        return report
