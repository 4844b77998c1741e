"""Prometheus metrics for order intake, accrual polling, ledger credits and withdrawals"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Order intake
order_submission_counter = Counter(
    "loyalty_order_submissions_total",
    "Order submissions by outcome",
    ["outcome"],  # accepted | already_owned | conflict | invalid_number
)

# Accrual oracle
oracle_latency_histogram = Histogram(
    "accrual_oracle_latency_seconds",
    "Accrual service response time",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

oracle_failure_counter = Counter(
    "accrual_oracle_failures_total",
    "Failed accrual service calls",
    ["reason"],  # timeout | http_error | transport | malformed | rate_limited
)

orders_resolved_counter = Counter(
    "loyalty_orders_resolved_total",
    "Order status updates applied by the poller",
    ["status"],
)

# Ledger
ledger_orders_credited_counter = Counter(
    "loyalty_ledger_orders_credited_total",
    "Orders whose accrual was credited to a balance",
)

ledger_amount_credited_counter = Counter(
    "loyalty_ledger_amount_credited_total",
    "Sum of accrual credited to balances",
)

ledger_cycle_failures_counter = Counter(
    "loyalty_ledger_cycle_failures_total",
    "Reconciliation cycles rolled back",
)

withdrawal_counter = Counter(
    "loyalty_withdrawals_total",
    "Withdrawal requests by outcome",
    ["outcome"],  # applied | invalid_number | insufficient_funds | duplicate
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_credit(orders: int, amount: Decimal) -> None:
    """Record a committed reconciliation cycle"""
    if orders:
        ledger_orders_credited_counter.inc(orders)
        ledger_amount_credited_counter.inc(float(amount))
