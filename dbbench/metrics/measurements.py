from __future__ import annotations

import math
from typing import Any, Dict, List, Protocol, Tuple, Union

from prometheus_client import CollectorRegistry, generate_latest

from ..db.models import OperationKind
from .registry import (
    OPERATION_LATENCY_MICROSECONDS,
    OPERATION_RETRIES,
    OPERATION_RETURN_CODES,
    create_operation_metrics,
)

Kind = Union[OperationKind, str]


def _label(kind: Kind) -> str:
    return kind.value if isinstance(kind, OperationKind) else str(kind)


class MeasurementSink(Protocol):
    """
    Destination for per-operation measurements.

    Implementations are shared by every worker and must accept
    unsynchronized concurrent calls without losing updates.
    """

    def measure(self, kind: Kind, elapsed_us: int) -> None:
        """Record one end-to-end latency sample."""
        ...

    def report_return_code(self, kind: Kind) -> None:
        """Count one completed invocation."""
        ...

    def report_retry_count(self, kind: Kind, count: int) -> None:
        """Record how many failed attempts one invocation made."""
        ...


class Measurements:
    """
    Process-wide aggregator for latency, return-code and retry measurements.

    Construct one instance and hand it to every ``DBWrapper``. Each instance
    owns its own ``CollectorRegistry`` so several benchmarks (or tests) can
    run side by side. Every labelled child metric carries its own lock, so
    writers for different operation kinds never contend with each other.

    Read methods see a consistent value per metric but may lag behind
    writers that are still in flight.

    Usage:
        measurements = Measurements()
        db = DBWrapper(BasicDB(props), measurements, WrapperConfig.from_properties(props))
        ...
        print(measurements.export_text())
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics = create_operation_metrics(self.registry)

    # -- writer side -----------------------------------------------------

    def measure(self, kind: Kind, elapsed_us: int) -> None:
        self._metrics.latency_us.labels(operation=_label(kind)).observe(elapsed_us)

    def report_return_code(self, kind: Kind) -> None:
        self._metrics.return_codes.labels(operation=_label(kind)).inc()

    def report_retry_count(self, kind: Kind, count: int) -> None:
        self._metrics.retries.labels(operation=_label(kind)).observe(count)

    # -- reader side -----------------------------------------------------

    def _sample(self, name: str, kind: Kind) -> float:
        value = self.registry.get_sample_value(name, {"operation": _label(kind)})
        return value if value is not None else 0.0

    def operations(self, kind: Kind) -> int:
        """Number of latency samples recorded for ``kind``."""
        return int(self._sample(f"{OPERATION_LATENCY_MICROSECONDS}_count", kind))

    def latency_sum_us(self, kind: Kind) -> float:
        return self._sample(f"{OPERATION_LATENCY_MICROSECONDS}_sum", kind)

    def return_codes(self, kind: Kind) -> int:
        return int(self._sample(f"{OPERATION_RETURN_CODES}_total", kind))

    def retry_samples(self, kind: Kind) -> int:
        """Number of retry-count reports for ``kind``."""
        return int(self._sample(f"{OPERATION_RETRIES}_count", kind))

    def retry_total(self, kind: Kind) -> int:
        """Sum of failed attempts reported for ``kind``."""
        return int(self._sample(f"{OPERATION_RETRIES}_sum", kind))

    def kinds(self) -> List[str]:
        """Operation kinds that have at least one measurement, sorted."""
        seen = set()
        for family in self.registry.collect():
            for sample in family.samples:
                op = sample.labels.get("operation")
                if op is not None:
                    seen.add(op)
        return sorted(seen)

    def _latency_buckets(self, kind: Kind) -> List[Tuple[float, float]]:
        label = _label(kind)
        buckets = []
        for family in self.registry.collect():
            if family.name != OPERATION_LATENCY_MICROSECONDS:
                continue
            for sample in family.samples:
                if (
                    sample.name.endswith("_bucket")
                    and sample.labels.get("operation") == label
                ):
                    buckets.append((float(sample.labels["le"]), sample.value))
        return sorted(buckets)

    def latency_percentile_us(self, kind: Kind, percentile: float) -> float:
        """
        Upper bound of the histogram bucket holding the given percentile.

        Returns 0.0 when nothing was measured and ``inf`` when the
        percentile falls past the largest finite bucket.
        """
        if not 0 < percentile <= 100:
            raise ValueError("percentile must be in (0, 100]")
        total = self.operations(kind)
        if total == 0:
            return 0.0
        target = math.ceil(total * percentile / 100.0)
        for upper, cumulative in self._latency_buckets(kind):
            if cumulative >= target:
                return upper
        return math.inf

    def summary(self) -> Dict[str, Dict[str, Any]]:
        """Per-kind snapshot of every aggregated value."""
        result: Dict[str, Dict[str, Any]] = {}
        for kind in self.kinds():
            ops = self.operations(kind)
            result[kind] = {
                "operations": ops,
                "average_latency_us": (self.latency_sum_us(kind) / ops) if ops else 0.0,
                "p95_latency_us": self.latency_percentile_us(kind, 95),
                "p99_latency_us": self.latency_percentile_us(kind, 99),
                "return_codes": self.return_codes(kind),
                "retry_samples": self.retry_samples(kind),
                "retries": self.retry_total(kind),
            }
        return result

    def export_text(self) -> str:
        """One ``[KIND], Metric, value`` line per aggregated value."""
        lines = []
        for kind, stats in self.summary().items():
            lines.append(f"[{kind}], Operations, {stats['operations']}")
            lines.append(f"[{kind}], AverageLatency(us), {stats['average_latency_us']:.2f}")
            lines.append(f"[{kind}], 95thPercentileLatency(us), {stats['p95_latency_us']}")
            lines.append(f"[{kind}], 99thPercentileLatency(us), {stats['p99_latency_us']}")
            lines.append(f"[{kind}], Return=0, {stats['return_codes']}")
            if stats["retry_samples"]:
                lines.append(f"[{kind}], Retries, {stats['retries']}")
        return "\n".join(lines) + ("\n" if lines else "")

    def render(self) -> bytes:
        """Prometheus text exposition of every collector."""
        return generate_latest(self.registry)
