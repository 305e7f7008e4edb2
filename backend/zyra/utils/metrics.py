"""
Prometheus metrics for observability
"""

import re
from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.core import CollectorRegistry

# Create a custom registry to avoid conflicts
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
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Webhook metrics
webhook_received_total = Counter(
    "webhook_received_total",
    "Total webhook deliveries received",
    ["source"],  # whatsapp, mpesa
    registry=metrics_registry,
)

webhook_rejected_total = Counter(
    "webhook_rejected_total",
    "Total webhook deliveries rejected",
    ["source", "reason"],  # signature_invalid, secret_invalid, duplicate, malformed
    registry=metrics_registry,
)

# Command metrics
commands_total = Counter(
    "commands_total",
    "Total chat commands handled",
    ["command", "outcome"],
    registry=metrics_registry,
)

# Deposit callback metrics
deposit_callbacks_total = Counter(
    "deposit_callbacks_total",
    "Total deposit completion callbacks",
    ["status"],  # success, failed, duplicate, ignored, error
    registry=metrics_registry,
)

# Ledger metrics
ledger_confirmation_seconds = Histogram(
    "ledger_confirmation_seconds",
    "Time spent waiting for ledger transfer confirmation",
    registry=metrics_registry,
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 45.0, 60.0),
)

# Rate limiting metrics
rate_limited_total = Counter(
    "rate_limited_total",
    "Total requests rate limited",
    ["group"],  # webhook, api
    registry=metrics_registry,
)


def record_http_request(
    path: str,
    method: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics.

    Args:
        path: Request path (normalized)
        method: HTTP method
        status_code: Response status code
        duration_seconds: Request duration in seconds
    """
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


def record_webhook_received(source: str) -> None:
    """Record webhook received"""
    webhook_received_total.labels(source=source).inc()


def record_webhook_rejected(source: str, reason: str) -> None:
    """Record webhook rejection"""
    webhook_rejected_total.labels(source=source, reason=reason).inc()


def record_command(command: str, outcome: str) -> None:
    """
    Record a handled chat command.

    Args:
        command: Command name (verify, deposit, send, balance, unrecognized)
        outcome: Outcome kind (completed, client_error, not_found, ignored, dependency_failure)
    """
    commands_total.labels(command=command, outcome=outcome).inc()


def record_deposit_callback(status: str) -> None:
    """Record deposit completion callback"""
    deposit_callbacks_total.labels(status=status).inc()


def record_ledger_confirmation(duration_seconds: float) -> None:
    """Record ledger confirmation wait"""
    ledger_confirmation_seconds.observe(duration_seconds)


def record_rate_limit_exceeded(group: str) -> None:
    """Record rate limit exceeded"""
    rate_limited_total.labels(group=group).inc()


def _normalize_path(path: str) -> str:
    """
    Normalize path for metrics (replace UUIDs and IDs with placeholders).

    Examples:
        /api/v1/transactions -> /api/v1/transactions
        /api/v1/transactions/123e4567-... -> /api/v1/transactions/{id}
    """
    path = re.sub(
        r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
        '{id}',
        path,
        flags=re.IGNORECASE,
    )
    path = re.sub(r'/\d+', '/{id}', path)
    return path


def get_metrics_output() -> bytes:
    """Get Prometheus metrics output"""
    return generate_latest(metrics_registry)
