from __future__ import annotations

import sys
from collections.abc import Callable  # noqa: TC003

import pytest

from stakeledger.config import (
    ConfigurationError,
    MissingConfigurationError,
    env_bool,
    env_float,
    env_int,
    env_list,
    get_ingest_config,
    get_rebuild_config,
    get_rest_config,
)
from stakeledger.config.ingest import DEFAULT_RPC_PROVIDERS, IngestConfig


def test_ingest_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("RPC_PROVIDERS", "RPC_QUORUM_MIN", "OVERLAP_HOURS", "INCREMENTAL"):
        monkeypatch.delenv(name, raising=False)

    config = get_ingest_config()

    assert config.providers == DEFAULT_RPC_PROVIDERS
    assert config.quorum_min == 2
    assert config.overlap_hours == 6.0
    assert config.incremental is True
    assert config.concurrency == len(DEFAULT_RPC_PROVIDERS)


def test_ingest_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RPC_PROVIDERS", " https://a.example/ , ,https://b.example")
    monkeypatch.setenv("RPC_QUORUM_MIN", "0")
    monkeypatch.setenv("INCREMENTAL", "no")
    monkeypatch.setenv("LIMIT_PAGES", "4")

    config = get_ingest_config()

    assert config.providers == ("https://a.example", "https://b.example")
    assert config.quorum_min == 1
    assert config.incremental is False
    assert config.limit_pages == 4


def test_empty_provider_list_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RPC_PROVIDERS", " , ")

    with pytest.raises(MissingConfigurationError):
        get_ingest_config()


def test_widened_config_scans_more(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OVERLAP_HOURS", raising=False)
    base = IngestConfig(overlap_hours=6, limit_pages=10, exec_limit_pages=2)

    wide = base.widened()

    assert wide.incremental is False
    assert wide.overlap_hours == 168
    assert wide.limit_pages == 20
    assert wide.exec_limit_pages == 6
    assert base.incremental is True


def test_quorum_below_one_is_clamped() -> None:
    assert IngestConfig(quorum_min=0).quorum_min == 1


def test_provider_resilience_never_retries() -> None:
    resilience = IngestConfig().provider_resilience("https://rpc.example", name="rpc.example")

    assert resilience.retry.total == 0
    assert resilience.cache is None
    assert resilience.base_url == "https://rpc.example"


def test_rest_base_trailing_slash_is_trimmed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REST_BASE", "https://rest.example/")

    config = get_rest_config()

    assert config.base_url == "https://rest.example"
    assert config.resilience.base_url == "https://rest.example"


def test_rebuild_derivation_commands_use_this_interpreter(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("RUN_PENDING", "false")

    config = get_rebuild_config()

    assert config.run_pending is False
    assert config.pending_command[0] == sys.executable
    assert config.unbonding_command[-1] == "unbonding-flows"


@pytest.mark.parametrize(
    ("loader", "raw"),
    [
        (lambda: env_int("PROBE", 1), "many"),
        (lambda: env_int("PROBE", 1), "-2"),
        (lambda: env_float("PROBE", 1.0), "nan"),
        (lambda: env_float("PROBE", 1.0), "inf"),
        (lambda: env_bool("PROBE", True), "maybe"),
    ],
)
def test_invalid_values_raise_configuration_error(
    monkeypatch: pytest.MonkeyPatch, loader: Callable[[], object], raw: str
) -> None:
    monkeypatch.setenv("PROBE", raw)

    with pytest.raises(ConfigurationError, match="PROBE"):
        loader()


def test_blank_values_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROBE", "   ")

    assert env_int("PROBE", 7) == 7
    assert env_bool("PROBE", False) is False
    assert env_list("PROBE", ("x",)) == ("x",)
