from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

TIMEOUT_CLASSIFIER = "timeout"

ErrorClassifier = int | str


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    HTTP_ERROR = "http_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    endpoint: str
    issued_at: float
    offset_sec: float
    latency_ms: float
    kind: OutcomeKind
    status_code: int | None = None
    error_code: str | None = None

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def classifier(self) -> ErrorClassifier | None:
        if self.kind is OutcomeKind.HTTP_ERROR:
            return self.status_code
        if self.kind is OutcomeKind.NETWORK_ERROR:
            return self.error_code
        if self.kind is OutcomeKind.TIMEOUT:
            return TIMEOUT_CLASSIFIER
        return None


@dataclass(frozen=True, slots=True)
class LatencyStats:
    min_ms: float = 0.0
    max_ms: float = 0.0
    mean_ms: float = 0.0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class RunReport:
    total_requests: int
    success_count: int
    failure_count: int
    latency: LatencyStats
    error_breakdown: Mapping[ErrorClassifier, int] = field(default_factory=dict)
    observed_duration_sec: float = 0.0
    observed_throughput: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.success_count / self.total_requests * 100.0

    @property
    def failure_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.failure_count / self.total_requests * 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "success_rate": self.success_rate,
            "failure_rate": self.failure_rate,
            "observed_duration_sec": self.observed_duration_sec,
            "observed_throughput": self.observed_throughput,
            "latency": {
                "min_ms": self.latency.min_ms,
                "max_ms": self.latency.max_ms,
                "mean_ms": self.latency.mean_ms,
                "p50_ms": self.latency.p50_ms,
                "p95_ms": self.latency.p95_ms,
                "p99_ms": self.latency.p99_ms,
            },
            "error_breakdown": {str(key): count for key, count in self.error_breakdown.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RunReport:
        breakdown: dict[ErrorClassifier, int] = {}
        for key, count in data.get("error_breakdown", {}).items():
            # Status codes are stored as strings once serialized.
            breakdown[int(key) if str(key).isdigit() else str(key)] = int(count)
        return cls(
            total_requests=int(data["total_requests"]),
            success_count=int(data["success_count"]),
            failure_count=int(data["failure_count"]),
            latency=LatencyStats(**data.get("latency", {})),
            error_breakdown=breakdown,
            observed_duration_sec=float(data.get("observed_duration_sec", 0.0)),
            observed_throughput=float(data.get("observed_throughput", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class PerSecondMetrics:
    second: int
    requested_rps: float
    achieved_rps: float
    p50_ms: float
    p95_ms: float
    p99_ms: float
    error_rate: float
    timeout_rate: float
