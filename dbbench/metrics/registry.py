from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram

OPERATION_LATENCY_MICROSECONDS = "dbbench_operation_latency_microseconds"
OPERATION_RETURN_CODES = "dbbench_operation_return_codes"
OPERATION_RETRIES = "dbbench_operation_retries"

# 100us .. 10s, roughly logarithmic.
LATENCY_BUCKETS_US = (
    100, 250, 500,
    1_000, 2_500, 5_000,
    10_000, 25_000, 50_000,
    100_000, 250_000, 500_000,
    1_000_000, 2_500_000, 5_000_000, 10_000_000,
)

RETRY_BUCKETS = (0, 1, 2, 3, 5, 10, 20, 50)


@dataclass(frozen=True)
class OperationMetrics:
    latency_us: Histogram
    return_codes: Counter
    retries: Histogram


def create_operation_metrics(registry: CollectorRegistry) -> OperationMetrics:
    """Register the per-operation collectors on ``registry``."""
    return OperationMetrics(
        latency_us=Histogram(
            OPERATION_LATENCY_MICROSECONDS,
            "End-to-end operation latency including retries and retry delays",
            ["operation"],
            buckets=LATENCY_BUCKETS_US,
            registry=registry,
        ),
        return_codes=Counter(
            OPERATION_RETURN_CODES,
            "Completed operation invocations",
            ["operation"],
            registry=registry,
        ),
        retries=Histogram(
            OPERATION_RETRIES,
            "Failed attempts per retryable operation invocation",
            ["operation"],
            buckets=RETRY_BUCKETS,
            registry=registry,
        ),
    )
