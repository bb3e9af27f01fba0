# -*- coding: utf-8 -*-
"""
Prometheus Metrics - FuelEU Maritime Compliance Service

Prometheus metrics for the compliance, banking and pooling operations.

All metric names use the ``gl_fueleu_`` prefix for consistent
identification in Prometheus queries and dashboards across the platform.

Metrics:
    1. gl_fueleu_calculations_total             (Counter,   labels: operation, status)
    2. gl_fueleu_ledger_transactions_total      (Counter,   labels: kind, status)
    3. gl_fueleu_ledger_amount_gco2e_total      (Counter,   labels: kind)
    4. gl_fueleu_pools_created_total            (Counter,   labels: status)
    5. gl_fueleu_errors_total                   (Counter,   labels: kind)
    6. gl_fueleu_operation_duration_seconds     (Histogram, labels: operation)
    7. gl_fueleu_pool_size                      (Histogram)
    8. gl_fueleu_routes_registered              (Gauge)

Label Values Reference:
    operation:
        compute_cb, compare, compare_multiple, bank, apply, create_pool.
    status:
        success, rejected, failed.
    kind:
        BANK, APPLY (ledger); INVALID_INPUT, NOT_FOUND, BUSINESS_RULE,
        UNAVAILABLE (errors).

Recording is skipped while metrics are disabled via
``GL_FUELEU_ENABLE_METRICS=false``.

Example:
    >>> from fueleu.metrics import record_calculation, observe_duration
    >>> record_calculation("compute_cb", "success")
    >>> observe_duration("compute_cb", 0.002)

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Calculator invocations by operation and outcome
fueleu_calculations_total = Counter(
    "gl_fueleu_calculations_total",
    "Total FuelEU calculations performed",
    labelnames=["operation", "status"],
)

# 2. Ledger transactions by kind and outcome
fueleu_ledger_transactions_total = Counter(
    "gl_fueleu_ledger_transactions_total",
    "Total banking ledger transactions by kind and status",
    labelnames=["kind", "status"],
)

# 3. Cumulative banked / applied amounts
fueleu_ledger_amount_gco2e_total = Counter(
    "gl_fueleu_ledger_amount_gco2e_total",
    "Cumulative banked or applied compliance balance in gCO2e",
    labelnames=["kind"],
)

# 4. Pool creation attempts by outcome
fueleu_pools_created_total = Counter(
    "gl_fueleu_pools_created_total",
    "Total pool creation attempts by status",
    labelnames=["status"],
)

# 5. Raised errors by kind
fueleu_errors_total = Counter(
    "gl_fueleu_errors_total",
    "Total FuelEU errors by error kind",
    labelnames=["kind"],
)

# 6. Operation duration histogram
fueleu_operation_duration_seconds = Histogram(
    "gl_fueleu_operation_duration_seconds",
    "Duration of FuelEU service operations in seconds",
    labelnames=["operation"],
    buckets=(
        0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25,
        0.5, 1.0, 2.5,
    ),
)

# 7. Members per created pool
fueleu_pool_size = Histogram(
    "gl_fueleu_pool_size",
    "Number of ships in created pools",
    buckets=(1, 2, 3, 5, 10, 25, 50, 100),
)

# 8. Routes currently stored
fueleu_routes_registered = Gauge(
    "gl_fueleu_routes_registered",
    "Number of routes currently stored",
)


# ---------------------------------------------------------------------------
# MetricsCollector class
# ---------------------------------------------------------------------------


class MetricsCollector:
    """Facade for recording FuelEU Prometheus metrics.

    Recording can be switched off globally with :meth:`set_enabled`,
    which the service calls from ``config.enable_metrics``.

    Example:
        >>> MetricsCollector.record_ledger_transaction("BANK", "success", 1000.0)
        >>> MetricsCollector.observe_duration("bank", 0.004)
    """

    enabled: bool = True

    @classmethod
    def set_enabled(cls, enabled: bool) -> None:
        """Enable or disable metric recording."""
        cls.enabled = enabled
        logger.debug("FuelEU metrics recording enabled=%s", enabled)

    @classmethod
    def record_calculation(cls, operation: str, status: str) -> None:
        """Record a calculator invocation.

        Args:
            operation: Operation name (compute_cb, compare, ...).
            status: Outcome (success, rejected, failed).
        """
        if not cls.enabled:
            return
        fueleu_calculations_total.labels(
            operation=operation,
            status=status,
        ).inc()

    @classmethod
    def record_ledger_transaction(
        cls, kind: str, status: str, amount: float = 0.0
    ) -> None:
        """Record a banking ledger transaction.

        Args:
            kind: BANK or APPLY.
            status: Outcome.
            amount: Transaction amount in gCO2e, counted on success only.
        """
        if not cls.enabled:
            return
        fueleu_ledger_transactions_total.labels(
            kind=kind,
            status=status,
        ).inc()
        if status == "success" and amount > 0:
            fueleu_ledger_amount_gco2e_total.labels(kind=kind).inc(amount)

    @classmethod
    def record_pool(cls, status: str, size: int = 0) -> None:
        """Record a pool creation attempt.

        Args:
            status: Outcome.
            size: Member count, observed on success only.
        """
        if not cls.enabled:
            return
        fueleu_pools_created_total.labels(status=status).inc()
        if status == "success" and size > 0:
            fueleu_pool_size.observe(size)

    @classmethod
    def record_error(cls, kind: str) -> None:
        """Record a raised error by kind."""
        if not cls.enabled:
            return
        fueleu_errors_total.labels(kind=kind).inc()

    @classmethod
    def observe_duration(cls, operation: str, seconds: float) -> None:
        """Record the duration of an operation."""
        if not cls.enabled:
            return
        fueleu_operation_duration_seconds.labels(
            operation=operation,
        ).observe(seconds)

    @classmethod
    def set_routes_registered(cls, count: int) -> None:
        """Set the stored routes gauge."""
        if not cls.enabled:
            return
        fueleu_routes_registered.set(count)


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------


def record_calculation(operation: str, status: str) -> None:
    """Record a calculation. See MetricsCollector."""
    MetricsCollector.record_calculation(operation, status)


def record_ledger_transaction(
    kind: str, status: str, amount: float = 0.0
) -> None:
    """Record a ledger transaction. See MetricsCollector."""
    MetricsCollector.record_ledger_transaction(kind, status, amount)


def record_pool(status: str, size: int = 0) -> None:
    """Record a pool creation. See MetricsCollector."""
    MetricsCollector.record_pool(status, size)


def record_error(kind: str) -> None:
    """Record an error. See MetricsCollector."""
    MetricsCollector.record_error(kind)


def observe_duration(operation: str, seconds: float) -> None:
    """Record operation duration. See MetricsCollector."""
    MetricsCollector.observe_duration(operation, seconds)


def set_routes_registered(count: int) -> None:
    """Set routes gauge. See MetricsCollector."""
    MetricsCollector.set_routes_registered(count)


__all__ = [
    "fueleu_calculations_total",
    "fueleu_ledger_transactions_total",
    "fueleu_ledger_amount_gco2e_total",
    "fueleu_pools_created_total",
    "fueleu_errors_total",
    "fueleu_operation_duration_seconds",
    "fueleu_pool_size",
    "fueleu_routes_registered",
    "MetricsCollector",
    "record_calculation",
    "record_ledger_transaction",
    "record_pool",
    "record_error",
    "observe_duration",
    "set_routes_registered",
]
