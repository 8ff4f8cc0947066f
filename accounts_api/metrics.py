"""
Prometheus Metrics for the Consumer Accounts Internal API.

This module defines all metrics exposed at the /metrics endpoint.
Metrics are categorized into:

1. Business Metrics - For operations and risk teams
   - Credit/debit outcomes, amounts moved, login attempts

2. Technical Metrics - For Engineering/SRE teams
   - Authorization decisions, policy service latency and failures
"""
from decimal import Decimal
from typing import Optional

from prometheus_client import Counter, Histogram, Info

# =============================================================================
# SERVICE INFO
# =============================================================================

SERVICE_INFO = Info(
    "accounts_service",
    "Service information"
)
SERVICE_INFO.info({
    "version": "1.0.0",
    "service": "consumer-accounts-internal-api",
})

# =============================================================================
# BUSINESS METRICS
# =============================================================================

# Counter: Credits/debits by outcome
TRANSACTIONS_TOTAL = Counter(
    "accounts_transactions_total",
    "Credit and debit requests processed",
    ["type", "outcome"]  # type: credit, debit. outcome: completed, rejected
)

# Histogram: Amounts moved by completed transactions
TRANSACTION_AMOUNT = Histogram(
    "accounts_transaction_amount",
    "Distribution of completed transaction amounts",
    ["type"],
    buckets=[10, 50, 100, 250, 500, 1000, 2500, 5000, 10000]
)

# Counter: Login attempts
LOGIN_ATTEMPTS = Counter(
    "accounts_login_attempts_total",
    "Employee login attempts",
    ["outcome"]  # success, invalid_credentials, inactive, missing_credentials
)

# =============================================================================
# TECHNICAL METRICS
# =============================================================================

# Counter: Authorization decisions
AUTHORIZATION_DECISIONS = Counter(
    "accounts_authorization_decisions_total",
    "Authorization decisions by strategy and outcome",
    ["strategy", "outcome"]  # outcome: allowed, denied, unauthenticated, public
)

# Histogram: Policy service request latency
POLICY_REQUEST_LATENCY = Histogram(
    "accounts_policy_request_latency_seconds",
    "Time to call the policy-decision service",
    ["operation"],  # lookup_user, decide, health
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# Counter: Policy service failures
POLICY_REQUEST_FAILURES = Counter(
    "accounts_policy_request_failures_total",
    "Policy-decision service failures",
    ["error_type"]  # timeout, connection_error, http_error
)

# =============================================================================
# HTTP METRICS (Standard)
# =============================================================================

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

HTTP_REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def record_transaction(transaction_type: str, completed: bool, amount: Optional[Decimal] = None) -> None:
    """
    Record the outcome of a credit or debit request.

    Args:
        transaction_type: "credit" or "debit"
        completed: Whether the transaction was written
        amount: The amount moved (only observed for completed transactions)
    """
    outcome = "completed" if completed else "rejected"
    TRANSACTIONS_TOTAL.labels(type=transaction_type, outcome=outcome).inc()

    if completed and amount is not None:
        TRANSACTION_AMOUNT.labels(type=transaction_type).observe(float(amount))


def record_authorization(strategy: str, outcome: str) -> None:
    """Record one authorization decision."""
    AUTHORIZATION_DECISIONS.labels(strategy=strategy, outcome=outcome).inc()


def record_policy_request(
    operation: str,
    success: bool,
    latency_seconds: float,
    error_type: Optional[str] = None,
) -> None:
    """Record a call to the policy-decision service."""
    POLICY_REQUEST_LATENCY.labels(operation=operation).observe(latency_seconds)

    if not success:
        POLICY_REQUEST_FAILURES.labels(error_type=error_type or "unknown").inc()


def record_login(outcome: str) -> None:
    """Record a login attempt outcome."""
    LOGIN_ATTEMPTS.labels(outcome=outcome).inc()


def record_http_request(method: str, endpoint: str, status: int, latency_seconds: float) -> None:
    """Record standard HTTP request metrics."""
    HTTP_REQUESTS.labels(method=method, endpoint=endpoint, status=status).inc()
    HTTP_REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(latency_seconds)
