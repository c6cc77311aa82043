from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stakeledger import app
from stakeledger.config.ingest import IngestConfig
from stakeledger.config.rebuild import HealthConfig, RebuildConfig
from stakeledger.config.storage import (
    FEED_FILENAME,
    HEALTH_FILENAME,
    PENDING_FILENAME,
    SOURCE_STATUS_FILENAME,
    STATE_ARTIFACT,
    UNBONDING_FLOWS_FILENAME,
    StorageConfig,
)
from stakeledger.domain.repair import RepairStage
from stakeledger.domain.time_windows import to_iso
from stakeledger.domain.types import HealthStatus
from stakeledger.errors import DerivationError
from tests.helpers.events import make_record
from tests.helpers.fetchers import FakeFetcher, RecordingRunner

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stakeledger.adapters.files import JsonArtifactStore
    from stakeledger.domain.time_windows import Clock

CONFIG = IngestConfig(providers=("https://a.example", "https://b.example"), quorum_min=2)


def _monikers(addresses: Iterable[str]) -> dict[str, str]:
    return {address: "Validator One" for address in addresses}


def test_build_providers_names_endpoints_by_host() -> None:
    providers = app.build_providers(CONFIG)

    assert [provider.name for provider in providers] == ["a.example", "b.example"]


@pytest.mark.integration
def test_ingest_rebuild_and_health_share_one_data_directory(
    storage_config: StorageConfig, artifacts: JsonArtifactStore, clock: Clock
) -> None:
    records = [make_record(txhash="T1"), make_record(txhash="T2", event_type="undelegate")]
    fetchers = [FakeFetcher("node-a", records=records), FakeFetcher("node-b", records=records)]

    ingested = app.ingest(config=CONFIG, storage=storage_config, fetchers=fetchers, clock=clock)
    rebuilt = app.rebuild(
        config=RebuildConfig(run_pending=False, run_unbonding=False),
        storage=storage_config,
        lookup=_monikers,
        runner=RecordingRunner(),
        clock=clock,
    )
    report = app.health(config=HealthConfig(), storage=storage_config, clock=clock)

    assert ingested.appended == 2
    assert rebuilt.events == 2
    assert artifacts.read(STATE_ARTIFACT) is not None
    assert artifacts.read(SOURCE_STATUS_FILENAME) is not None
    feed = artifacts.read(FEED_FILENAME)
    assert feed is not None
    assert feed["delegates"] == 1
    assert feed["undelegates"] == 1
    assert storage_config.validator_cache_path.exists()
    assert artifacts.read(HEALTH_FILENAME) is not None
    # Pending and unbonding views were never produced.
    assert report.checks["pending"] == "missing"
    assert report.checks["unbonding"] == "missing"


def test_rebuild_saves_validator_names_even_when_a_derivation_fails(
    storage_config: StorageConfig, clock: Clock
) -> None:
    fetchers = [FakeFetcher("node-a", records=[make_record()])]
    app.ingest(config=CONFIG, storage=storage_config, fetchers=fetchers, clock=clock)

    with pytest.raises(DerivationError):
        app.rebuild(
            config=RebuildConfig(),
            storage=storage_config,
            lookup=_monikers,
            runner=RecordingRunner(fail={"pending-unbonding"}),
            clock=clock,
        )

    assert storage_config.validator_cache_path.exists()


def test_repair_runs_wide_ingest_then_forced_rebuild(
    monkeypatch: pytest.MonkeyPatch, storage_config: StorageConfig
) -> None:
    seen: dict[str, object] = {}

    def fake_ingest(*, config: IngestConfig, **_: object) -> None:
        seen["config"] = config

    def fake_rebuild(*, force_derivations: bool, **_: object) -> None:
        seen["force"] = force_derivations

    monkeypatch.setattr(app, "ingest", fake_ingest)
    monkeypatch.setattr(app, "rebuild", fake_rebuild)
    monkeypatch.setattr(app, "health", lambda **_: None)

    outcome = app.repair(config=CONFIG, storage=storage_config)

    assert outcome.stage is RepairStage.DONE
    wide = seen["config"]
    assert isinstance(wide, IngestConfig)
    assert wide.incremental is False
    assert wide.overlap_hours >= 168
    assert seen["force"] is True


@pytest.mark.integration
def test_single_surviving_provider_is_accepted_but_reported_degraded(
    storage_config: StorageConfig, artifacts: JsonArtifactStore, clock: Clock
) -> None:
    config = IngestConfig(
        providers=("https://a.example", "https://b.example", "https://c.example"), quorum_min=2
    )
    fetchers = [
        FakeFetcher("node-a", records=[make_record(txhash="T1"), make_record(txhash="T2")]),
        FakeFetcher("node-b", error=TimeoutError("timed out")),
        FakeFetcher("node-c", error=RuntimeError("502 Bad Gateway")),
    ]

    ingested = app.ingest(config=config, storage=storage_config, fetchers=fetchers, clock=clock)
    app.rebuild(
        config=RebuildConfig(run_pending=False, run_unbonding=False),
        storage=storage_config,
        lookup=_monikers,
        runner=RecordingRunner(),
        clock=clock,
    )
    generated_at = to_iso(clock())
    artifacts.write(PENDING_FILENAME, {"generated_at": generated_at, "schedule": []})
    artifacts.write(UNBONDING_FLOWS_FILENAME, {"generated_at": generated_at, "daily_flows": []})
    report = app.health(config=HealthConfig(), storage=storage_config, clock=clock)

    assert ingested.quorum.providers_ok == 1
    assert ingested.quorum.quorum_required == 1
    assert ingested.appended == 2
    assert ingested.source_status["status"] == "degraded"
    assert report.checks["quorum"] == "ok"
    assert report.checks["provider_node-a"] == "ok"
    assert report.checks["provider_node-b"] == "degraded"
    assert report.checks["provider_node-c"] == "degraded"
    assert all(report.checks[name] == "ok" for name in ("source", "feed", "hourly"))
    assert report.overall is HealthStatus.DEGRADED
