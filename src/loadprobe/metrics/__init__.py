from __future__ import annotations

from loadprobe.metrics.aggregator import aggregate_per_second, latency_stats, percentile, summarize
from loadprobe.metrics.collector import CollectorClosedError, CollectorCounts, OutcomeCollector
from loadprobe.metrics.models import (
    TIMEOUT_CLASSIFIER,
    ErrorClassifier,
    LatencyStats,
    OutcomeKind,
    PerSecondMetrics,
    RequestOutcome,
    RunReport,
)

__all__ = [
    "TIMEOUT_CLASSIFIER",
    "CollectorClosedError",
    "CollectorCounts",
    "ErrorClassifier",
    "LatencyStats",
    "OutcomeCollector",
    "OutcomeKind",
    "PerSecondMetrics",
    "RequestOutcome",
    "RunReport",
    "aggregate_per_second",
    "latency_stats",
    "percentile",
    "summarize",
]
