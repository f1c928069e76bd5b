from __future__ import annotations

from collections import Counter, defaultdict
import math
from typing import Iterable, Sequence

import numpy as np

from loadprobe.metrics.models import (
    ErrorClassifier,
    LatencyStats,
    OutcomeKind,
    PerSecondMetrics,
    RequestOutcome,
    RunReport,
)

PERCENTILES = (0.50, 0.95, 0.99)


def percentile(sorted_values: Sequence[float] | np.ndarray, p: float) -> float:
    # Nearest rank on ascending input, no interpolation.
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = min(math.floor(n * p), n - 1)
    return float(sorted_values[idx])


def latency_stats(latencies: Iterable[float]) -> LatencyStats:
    values = np.sort(np.fromiter(latencies, dtype=float))
    if values.size == 0:
        return LatencyStats()
    p50, p95, p99 = (percentile(values, p) for p in PERCENTILES)
    return LatencyStats(
        min_ms=float(values[0]),
        max_ms=float(values[-1]),
        mean_ms=float(values.mean()),
        p50_ms=p50,
        p95_ms=p95,
        p99_ms=p99,
    )


def summarize(outcomes: Iterable[RequestOutcome], observed_duration_sec: float) -> RunReport:
    total = 0
    success_latencies: list[float] = []
    breakdown: Counter[ErrorClassifier] = Counter()
    for outcome in outcomes:
        total += 1
        if outcome.is_success:
            success_latencies.append(outcome.latency_ms)
        else:
            breakdown[outcome.classifier] += 1
    success = len(success_latencies)
    throughput = total / observed_duration_sec if observed_duration_sec > 0 else 0.0
    return RunReport(
        total_requests=total,
        success_count=success,
        failure_count=total - success,
        latency=latency_stats(success_latencies),
        error_breakdown=dict(breakdown),
        observed_duration_sec=observed_duration_sec,
        observed_throughput=throughput,
    )


def aggregate_per_second(
    outcomes: Iterable[RequestOutcome],
    duration_sec: int,
    requested_rps: float,
) -> list[PerSecondMetrics]:
    buckets: dict[int, list[RequestOutcome]] = defaultdict(list)
    for outcome in outcomes:
        # The final slot can be issued a hair past the nominal end.
        second = min(max(0, int(outcome.offset_sec)), duration_sec - 1)
        buckets[second].append(outcome)

    metrics: list[PerSecondMetrics] = []
    for second in range(duration_sec):
        bucket = buckets.get(second, [])
        latencies = np.sort(np.array([o.latency_ms for o in bucket if o.is_success], dtype=float))
        achieved = len(bucket)
        error_count = sum(1 for o in bucket if not o.is_success)
        timeout_count = sum(1 for o in bucket if o.kind is OutcomeKind.TIMEOUT)
        total = max(1, achieved)
        metrics.append(
            PerSecondMetrics(
                second=second,
                requested_rps=requested_rps,
                achieved_rps=float(achieved),
                p50_ms=percentile(latencies, 0.50),
                p95_ms=percentile(latencies, 0.95),
                p99_ms=percentile(latencies, 0.99),
                error_rate=error_count / total,
                timeout_rate=timeout_count / total,
            )
        )
    return metrics
