from __future__ import annotations

import pytest

from loadprobe.config import DEFAULT_ENDPOINTS, ComparisonTarget, ConfigError, RunConfig


def test_defaults_match_demo_service() -> None:
    config = RunConfig(target_base_url="http://localhost:8080/")
    assert config.target_base_url == "http://localhost:8080"
    assert config.endpoints == DEFAULT_ENDPOINTS
    assert config.duration_sec == 30
    assert config.target_rps == 100.0
    assert config.timeout_ms == 5000
    assert config.interval_sec == pytest.approx(0.01)


def test_endpoints_are_frozen_into_a_tuple() -> None:
    paths = ["/a", "/b"]
    config = RunConfig(target_base_url="http://svc:80", endpoints=paths)
    paths.append("/c")
    assert config.endpoints == ("/a", "/b")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"duration_sec": 0},
        {"duration_sec": -5},
        {"target_rps": 0},
        {"target_rps": -1.5},
        {"timeout_ms": 0},
        {"endpoints": []},
        {"endpoints": ["health"]},
        {"drain_grace_sec": -1.0},
        {"duration_sec": 1.5},
        {"duration_sec": True},
        {"timeout_ms": 100.0},
        {"target_rps": "10"},
        {"headers": {"X-Note": "caf\u00e9"}},
    ],
)
def test_invalid_values_fail_fast(kwargs: dict[str, object]) -> None:
    with pytest.raises(ConfigError):
        RunConfig(target_base_url="http://localhost:8080", **kwargs)


@pytest.mark.parametrize("url", ["localhost:8080", "ftp://host", "http://", ""])
def test_rejects_non_http_urls(url: str) -> None:
    with pytest.raises(ConfigError):
        RunConfig(target_base_url=url)


def test_drain_grace_covers_request_deadline() -> None:
    assert RunConfig(target_base_url="http://h", timeout_ms=100).effective_drain_grace_sec == 2.0
    assert RunConfig(target_base_url="http://h", timeout_ms=5000).effective_drain_grace_sec == pytest.approx(5.25)
    assert RunConfig(target_base_url="http://h", drain_grace_sec=0.5).effective_drain_grace_sec == 0.5


def test_metadata_is_json_ready() -> None:
    config = RunConfig(target_base_url="http://h", seed=3, notes="baseline")
    meta = config.to_metadata()
    assert meta["endpoints"] == list(DEFAULT_ENDPOINTS)
    assert meta["seed"] == 3
    assert meta["notes"] == "baseline"
    assert isinstance(meta["created_at"], str)


def test_comparison_target_builds_run_config() -> None:
    target = ComparisonTarget(name="GKE", url="http://localhost:8081", duration_sec=5, target_rps=20)
    config = target.to_run_config()
    assert config.target_base_url == "http://localhost:8081"
    assert config.duration_sec == 5
    assert config.target_rps == 20
    assert "GKE" in config.notes
