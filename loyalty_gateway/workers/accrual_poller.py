"""Background loop resolving unprocessed orders against the accrual service"""

import asyncio
import logging
import time
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from loyalty_gateway.domain.exceptions import (
    AccrualOracleError,
    AccrualRateLimitedError,
    InvalidStatusTransitionError,
    StorageError,
)
from loyalty_gateway.domain.models import AccrualVerdict, OrderStatus, PollReport, validate_transition
from loyalty_gateway.infrastructure.clients.accrual import AccrualClient
from loyalty_gateway.infrastructure.database.repositories import OrderRepository
from loyalty_gateway.infrastructure.database.session import transaction
from loyalty_gateway.infrastructure.observability.logging import log_order_event
from loyalty_gateway.infrastructure.observability.metrics import orders_resolved_counter

logger = logging.getLogger(__name__)

# Sentinel for "oracle call failed, leave the order alone this cycle"
_SKIPPED = object()


class AccrualPoller:
    """
    Moves NEW/PROCESSING orders towards PROCESSED or INVALID.

    Each cycle fetches one batch of unresolved orders, queries the accrual
    service with bounded concurrency, then writes results one order at a
    time so a single failure never sinks the rest of the batch. Database
    work runs in worker threads and never blocks the event loop.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        client: AccrualClient,
        batch_size: int = 100,
        concurrency: int = 4,
        clock=time.monotonic,
    ):
        self.session_factory = session_factory
        self.client = client
        self.batch_size = batch_size
        self.concurrency = max(concurrency, 1)
        self.clock = clock
        self._paused_until = 0.0

    @property
    def paused(self) -> bool:
        return self.clock() < self._paused_until

    async def run_cycle(self) -> PollReport:
        report = PollReport()
        if self.paused:
            return report

        try:
            pending = await asyncio.to_thread(self._fetch_unprocessed)
        except StorageError as e:
            logger.error(f"Could not fetch unprocessed orders: {e}", extra={"step": "poll_fetch"})
            return report

        report.fetched = len(pending)
        if not pending:
            return report

        verdicts = await self._query_oracle([number for number, _ in pending])

        for (number, current_status), verdict in zip(pending, verdicts):
            if verdict is _SKIPPED:
                report.failed += 1
                continue
            try:
                new_status = await asyncio.to_thread(self._apply, number, current_status, verdict)
            except (StorageError, InvalidStatusTransitionError) as e:
                report.failed += 1
                logger.warning(f"Order status not updated: {e}", extra={"order_number": number})
                continue

            if new_status is None:
                continue
            if new_status == OrderStatus.PROCESSED:
                report.resolved += 1
            elif new_status == OrderStatus.INVALID:
                report.invalid += 1
            else:
                report.pending += 1

        if self.paused:
            report.rate_limited_for = self._paused_until - self.clock()

        return report

    def _fetch_unprocessed(self) -> List[Tuple[str, OrderStatus]]:
        with self.session_factory() as db, transaction(db):
            records = OrderRepository(db).get_unprocessed_orders(self.batch_size)
            return [(r.id, OrderStatus(r.status)) for r in records]

    async def _query_oracle(self, numbers: List[str]) -> list:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def query(number: str):
            async with semaphore:
                # Another call hit the rate limit; leave the rest for later
                if self.paused:
                    return _SKIPPED
                try:
                    return await self.client.get_order(number)
                except AccrualRateLimitedError as e:
                    self._pause(e.retry_after)
                    logger.warning(
                        f"Accrual service rate limited, pausing {e.retry_after}s",
                        extra={"order_number": number},
                    )
                except AccrualOracleError as e:
                    logger.warning(f"Accrual service query failed: {e}", extra={"order_number": number})
                except Exception:
                    logger.exception("Unexpected error querying accrual service", extra={"order_number": number})
                return _SKIPPED

        return await asyncio.gather(*(query(n) for n in numbers))

    def _pause(self, seconds: float) -> None:
        self._paused_until = max(self._paused_until, self.clock() + seconds)

    def _apply(
        self,
        number: str,
        current_status: OrderStatus,
        verdict: Optional[AccrualVerdict],
    ) -> Optional[OrderStatus]:
        """Persist one verdict; None means the oracle does not know the order"""
        if verdict is None:
            new_status, accrual = OrderStatus.INVALID, Decimal("0")
        else:
            new_status = verdict.status
            accrual = verdict.accrual if new_status == OrderStatus.PROCESSED else Decimal("0")

        validate_transition(current_status, new_status)

        with self.session_factory() as db, transaction(db):
            updated = OrderRepository(db).update_order_status(number, new_status, accrual)

        if not updated:
            # Already resolved by a concurrent poller
            return None

        orders_resolved_counter.labels(status=new_status.value).inc()
        if new_status.is_terminal:
            log_order_event("order_resolved", number, status=new_status.value, accrual=str(accrual))
        return new_status
