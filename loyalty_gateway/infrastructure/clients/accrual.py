"""Accrual service HTTP client for classifying orders"""

import math
import time
from typing import Optional

import httpx

from loyalty_gateway.domain.exceptions import AccrualOracleError, AccrualRateLimitedError
from loyalty_gateway.domain.models import ORACLE_STATUS_MAP, AccrualVerdict, OrderStatus, to_money
from loyalty_gateway.infrastructure.observability.metrics import oracle_failure_counter, oracle_latency_histogram


class AccrualClient:
    """Client for the external accrual calculation service"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        default_retry_after: float = 60.0,
        max_retry_after: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        if "://" not in self.base_url:
            self.base_url = f"http://{self.base_url}"
        self.timeout = timeout
        self.default_retry_after = default_retry_after
        self.max_retry_after = max_retry_after
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_order(self, order_number: str) -> Optional[AccrualVerdict]:
        """
        Ask the accrual service how it classifies one order.

        Returns:
            The verdict, or None when the service does not know the order (204)

        Raises:
            AccrualRateLimitedError: On 429, carrying the Retry-After delay
            AccrualOracleError: On timeout, transport/HTTP errors, or invalid response
        """
        start = time.perf_counter()
        try:
            response = await self._client.get(f"/api/orders/{order_number}")
        except httpx.TimeoutException as e:
            oracle_failure_counter.labels(reason="timeout").inc()
            raise AccrualOracleError(f"Accrual service timeout after {self.timeout}s") from e
        except httpx.RequestError as e:
            oracle_failure_counter.labels(reason="transport").inc()
            raise AccrualOracleError(f"Accrual service unreachable: {e}") from e
        finally:
            oracle_latency_histogram.observe(time.perf_counter() - start)

        if response.status_code == httpx.codes.NO_CONTENT:
            return None

        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            oracle_failure_counter.labels(reason="rate_limited").inc()
            raise AccrualRateLimitedError(self._retry_after(response))

        if response.status_code != httpx.codes.OK:
            oracle_failure_counter.labels(reason="http_error").inc()
            raise AccrualOracleError(f"Accrual service error: {response.status_code}")

        try:
            return self._parse_verdict(order_number, response.json())
        except (KeyError, ValueError, TypeError) as e:
            oracle_failure_counter.labels(reason="malformed").inc()
            raise AccrualOracleError(f"Invalid accrual data for order {order_number}: {e}") from e

    def _retry_after(self, response: httpx.Response) -> float:
        """Seconds to back off; unparsable or non-finite values use the default, large ones are capped"""
        raw = response.headers.get("Retry-After", "")
        try:
            seconds = float(raw)
        except ValueError:
            return self.default_retry_after
        if not math.isfinite(seconds):
            return self.default_retry_after
        return min(max(seconds, 0.0), self.max_retry_after)

    @staticmethod
    def _parse_verdict(order_number: str, data: dict) -> AccrualVerdict:
        status = ORACLE_STATUS_MAP[data["status"]]
        if data.get("order", order_number) != order_number:
            raise ValueError(f"response is for order {data['order']}")

        accrual = to_money(data.get("accrual") or 0)
        if accrual < 0:
            raise ValueError(f"negative accrual {accrual}")
        if status != OrderStatus.PROCESSED:
            # Only a processed order carries a meaningful amount
            accrual = to_money(0)

        return AccrualVerdict(order=order_number, status=status, accrual=accrual)
