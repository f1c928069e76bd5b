from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence
from urllib.parse import urlsplit

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_ENDPOINTS: tuple[str, ...] = (
    "/health",
    "/api/info",
    "/api/comparison",
    "/api/metrics",
)

# Minimum wait after the scheduling loop before results are frozen.
MIN_DRAIN_GRACE_SEC = 2.0
DRAIN_MARGIN_SEC = 0.25


class ConfigError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class RunConfig:
    target_base_url: str
    endpoints: Sequence[str] = DEFAULT_ENDPOINTS
    duration_sec: int = 30
    target_rps: float = 100.0
    timeout_ms: int = 5000
    seed: int | None = None
    drain_grace_sec: float | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    run_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "endpoints", tuple(self.endpoints))
        object.__setattr__(self, "target_base_url", self.target_base_url.rstrip("/"))
        self._validate()

    def _validate(self) -> None:
        parts = urlsplit(self.target_base_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            msg = f"Target URL must be an absolute http(s) URL, got {self.target_base_url!r}"
            raise ConfigError(msg)
        if not self.endpoints:
            raise ConfigError("At least one endpoint is required")
        for endpoint in self.endpoints:
            if not endpoint.startswith("/"):
                msg = f"Endpoint paths must start with '/', got {endpoint!r}"
                raise ConfigError(msg)
        for name in ("duration_sec", "timeout_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                msg = f"{name} must be an integer, got {value!r}"
                raise ConfigError(msg)
        if isinstance(self.target_rps, bool) or not isinstance(self.target_rps, (int, float)):
            msg = f"Target rate must be a number, got {self.target_rps!r}"
            raise ConfigError(msg)
        for key, value in self.headers.items():
            if not (key.isascii() and value.isascii()):
                msg = f"Header {key!r} must be ASCII"
                raise ConfigError(msg)
        if self.duration_sec <= 0:
            msg = f"Duration must be positive, got {self.duration_sec}"
            raise ConfigError(msg)
        if self.target_rps <= 0:
            msg = f"Target rate must be positive, got {self.target_rps}"
            raise ConfigError(msg)
        if self.timeout_ms <= 0:
            msg = f"Timeout must be positive, got {self.timeout_ms}"
            raise ConfigError(msg)
        if self.drain_grace_sec is not None and self.drain_grace_sec < 0:
            msg = f"Drain grace period cannot be negative, got {self.drain_grace_sec}"
            raise ConfigError(msg)

    @property
    def interval_sec(self) -> float:
        return 1.0 / self.target_rps

    @property
    def timeout_sec(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def effective_drain_grace_sec(self) -> float:
        if self.drain_grace_sec is not None:
            return self.drain_grace_sec
        return max(MIN_DRAIN_GRACE_SEC, self.timeout_sec + DRAIN_MARGIN_SEC)

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "run_id": self.run_id or "",
            "created_at": self.created_at.isoformat(),
            "target_base_url": self.target_base_url,
            "endpoints": list(self.endpoints),
            "duration_sec": self.duration_sec,
            "target_rps": self.target_rps,
            "timeout_ms": self.timeout_ms,
            "seed": self.seed,
            "drain_grace_sec": self.effective_drain_grace_sec,
            "headers": dict(self.headers),
            "notes": self.notes,
        }


@dataclass(frozen=True, slots=True)
class ComparisonTarget:
    name: str
    url: str
    duration_sec: int = 30
    target_rps: float = 50.0
    timeout_ms: int = 5000
    endpoints: Sequence[str] = DEFAULT_ENDPOINTS

    def to_run_config(self) -> RunConfig:
        return RunConfig(
            target_base_url=self.url,
            endpoints=self.endpoints,
            duration_sec=self.duration_sec,
            target_rps=self.target_rps,
            timeout_ms=self.timeout_ms,
            notes=f"comparison: {self.name}",
        )
