"""
Prometheus metrics for observability
"""

import re
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry

# Custom registry to avoid conflicts with the default process collectors
metrics_registry = CollectorRegistry()

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["path", "method", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["path", "method"],
    registry=metrics_registry,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Charge metrics
charges_total = Counter(
    "paychain_charges_total",
    "Charge requests by mode and outcome",
    ["mode", "outcome"],  # outcome: accepted, replayed, or an error code
    registry=metrics_registry,
)

# Settlement metrics
settlements_total = Counter(
    "paychain_settlements_total",
    "Transactions resolved to a terminal status",
    ["status", "source"],  # source: sandbox_simulator, provider_callback, reconciliation
    registry=metrics_registry,
)

settlement_noops_total = Counter(
    "paychain_settlement_noops_total",
    "Settlement attempts on transactions that had already left PENDING",
    ["source"],
    registry=metrics_registry,
)

# Provider callback metrics
settlement_callback_rejected_total = Counter(
    "paychain_settlement_callback_rejected_total",
    "Provider settlement callbacks rejected",
    ["reason"],
    registry=metrics_registry,
)

# Merchant webhook metrics
webhook_deliveries_total = Counter(
    "paychain_webhook_deliveries_total",
    "Outbound merchant webhook deliveries",
    ["outcome"],  # delivered, failed, skipped
    registry=metrics_registry,
)


def record_http_request(
    path: str,
    method: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    normalized_path = _normalize_path(path)

    http_requests_total.labels(
        path=normalized_path,
        method=method.upper(),
        status=str(status_code),
    ).inc()

    http_request_duration_seconds.labels(
        path=normalized_path,
        method=method.upper(),
    ).observe(duration_seconds)


def record_charge(mode: str, outcome: str) -> None:
    charges_total.labels(mode=mode, outcome=outcome).inc()


def record_settlement(status: str, source: str) -> None:
    settlements_total.labels(status=status, source=source).inc()


def record_settlement_noop(source: str) -> None:
    settlement_noops_total.labels(source=source).inc()


def record_callback_rejected(reason: str) -> None:
    settlement_callback_rejected_total.labels(reason=reason).inc()


def record_webhook_delivery(outcome: str) -> None:
    webhook_deliveries_total.labels(outcome=outcome).inc()


def _normalize_path(path: str) -> str:
    """
    Normalize path for metrics (replace ids with placeholders).

    Examples:
        /api/v1/transactions/txn_3f2a... -> /api/v1/transactions/{id}
        /admin/v1/accounts/123e4567-.../suspend -> /admin/v1/accounts/{id}/suspend
    """
    path = re.sub(
        r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
        '{id}',
        path,
        flags=re.IGNORECASE,
    )
    path = re.sub(r'txn_[0-9a-f]+', '{id}', path)
    path = re.sub(r'/\d+', '/{id}', path)
    return path


def get_metrics_output() -> bytes:
    """Get Prometheus metrics output"""
    return generate_latest(metrics_registry)
