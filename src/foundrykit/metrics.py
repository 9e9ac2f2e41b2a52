"""Prometheus metrics definitions for foundrykit.

All custom metrics use the ``foundrykit_`` prefix. These count storage
operations and key generations; the relay's HTTP-level metrics (request
count, duration, sizes) come from ``prometheus-fastapi-instrumentator``.

When metrics are disabled the module-level references stay ``None`` and the
record helpers do nothing.
"""

from __future__ import annotations

from prometheus_client import Counter

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Storage operation counter  (labels: provider, operation, status)
# ---------------------------------------------------------------------------
storage_operations_total: Counter | None = None

# ---------------------------------------------------------------------------
# SSH key generation counter
# ---------------------------------------------------------------------------
ssh_keys_generated_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Safe to call more than once; collectors are registered in the global
    registry only on the first call.
    """
    global _initialized
    global storage_operations_total, ssh_keys_generated_total

    if _initialized:
        return

    storage_operations_total = Counter(
        "foundrykit_storage_operations_total",
        "Total object storage operations by provider, type and outcome",
        ["provider", "operation", "status"],
    )

    ssh_keys_generated_total = Counter(
        "foundrykit_ssh_keys_generated_total",
        "Total SSH key pairs generated",
    )

    _initialized = True


def record_storage_operation(provider: str, operation: str, status: str) -> None:
    """Count one storage operation outcome (no-op when metrics are off)."""
    if storage_operations_total is not None:
        storage_operations_total.labels(provider=provider, operation=operation, status=status).inc()


def record_ssh_key_generated() -> None:
    """Count one generated key pair (no-op when metrics are off)."""
    if ssh_keys_generated_total is not None:
        ssh_keys_generated_total.inc()
