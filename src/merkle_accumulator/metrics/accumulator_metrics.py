"""
Merkle Accumulator - Accumulator Metrics

Prometheus metrics for the accumulator service.

Metrics Categories:
- Leaf insertions and rejections
- Root computation
- Accumulator provisioning
"""

from prometheus_client import Counter, Gauge, Histogram, Info

import structlog

logger = structlog.get_logger(__name__)


class AccumulatorMetrics:
    """
    Centralized metrics for the accumulator service.

    Provides visibility into:
    - Leaf insertion success/rejection
    - Root computation times
    - Tree sizes
    """

    def __init__(self) -> None:
        """Initialize all accumulator metrics."""
        self._init_insertion_metrics()
        self._init_merkle_metrics()
        self._init_lifecycle_metrics()
        self._init_info_metrics()

    def _init_insertion_metrics(self) -> None:
        """Initialize leaf insertion metrics."""
        self.leaves_inserted = Counter(
            "merkle_accumulator_leaves_inserted_total",
            "Total leaves successfully inserted",
        )

        self.inserts_rejected = Counter(
            "merkle_accumulator_inserts_rejected_total",
            "Total rejected leaf insertions",
            ["reason"],
        )

        self.inserts_in_progress = Gauge(
            "merkle_accumulator_inserts_in_progress",
            "Leaf insertions currently in progress",
        )

    def _init_merkle_metrics(self) -> None:
        """Initialize Merkle root metrics."""
        self.root_compute_duration = Histogram(
            "merkle_accumulator_root_compute_duration_seconds",
            "Time to append a leaf and recompute the root",
            buckets=[0.00001, 0.00005, 0.0001, 0.0005, 0.001, 0.005, 0.01],
        )

        self.tree_size = Histogram(
            "merkle_accumulator_tree_size",
            "Number of leaves after each insertion",
            buckets=[1, 2, 4, 8, 16, 24, 30],
        )

    def _init_lifecycle_metrics(self) -> None:
        """Initialize provisioning metrics."""
        self.accumulators_initialized = Counter(
            "merkle_accumulator_initialized_total",
            "Total accumulators provisioned",
        )

        self.accumulators_deleted = Counter(
            "merkle_accumulator_deleted_total",
            "Total accumulators torn down",
        )

    def _init_info_metrics(self) -> None:
        """Initialize info metrics."""
        self.service_info = Info(
            "merkle_accumulator_service",
            "Accumulator service information",
        )

    # Convenience methods

    def record_leaf_inserted(self, duration: float, tree_size: int) -> None:
        """Record successful leaf insertion."""
        self.leaves_inserted.inc()
        self.root_compute_duration.observe(duration)
        self.tree_size.observe(tree_size)

    def record_insert_rejected(self, reason: str) -> None:
        """Record rejected leaf insertion."""
        self.inserts_rejected.labels(reason=reason).inc()

    def record_initialized(self) -> None:
        self.accumulators_initialized.inc()

    def record_deleted(self) -> None:
        self.accumulators_deleted.inc()

    def set_service_info(self, version: str, environment: str, root_strategy: str) -> None:
        """Set service info labels."""
        self.service_info.info({
            "version": version,
            "environment": environment,
            "root_strategy": root_strategy,
        })


# Singleton instance
_accumulator_metrics: AccumulatorMetrics | None = None


def get_accumulator_metrics() -> AccumulatorMetrics:
    """Get global accumulator metrics instance."""
    global _accumulator_metrics
    if _accumulator_metrics is None:
        _accumulator_metrics = AccumulatorMetrics()
    return _accumulator_metrics
