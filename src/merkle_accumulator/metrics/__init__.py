"""
Merkle Accumulator - Metrics Module

Prometheus metrics for the accumulator service.

Exports:
- Leaf insertion counters
- Rejection counters
- Root computation times
"""

from merkle_accumulator.metrics.accumulator_metrics import (
    AccumulatorMetrics,
    get_accumulator_metrics,
)

__all__ = [
    "AccumulatorMetrics",
    "get_accumulator_metrics",
]
