"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from stakeledger.adapters.cosmos_rest import RestValidatorLookup
from stakeledger.adapters.files import JsonArtifactStore, JsonlLedger, ValidatorDirectory
from stakeledger.adapters.subprocess_runner import SubprocessRunner
from stakeledger.adapters.tendermint import TendermintProvider, provider_name
from stakeledger.config.derivations import (
    get_pending_unbonding_config,
    get_unbonding_flow_config,
)
from stakeledger.config.ingest import get_ingest_config, get_rest_config
from stakeledger.config.rebuild import get_health_config, get_rebuild_config
from stakeledger.config.storage import get_storage_config
from stakeledger.derivations import run_pending_unbonding, run_unbonding_flows
from stakeledger.domain.derived import DerivedViewBuilder
from stakeledger.domain.health import reconcile_health
from stakeledger.domain.ingestion import run_ingest
from stakeledger.domain.repair import RepairOrchestrator
from stakeledger.domain.time_windows import utcnow

if TYPE_CHECKING:
    from stakeledger.config.ingest import IngestConfig, RestConfig
    from stakeledger.config.rebuild import HealthConfig, RebuildConfig
    from stakeledger.config.storage import StorageConfig
    from stakeledger.derivations.unbonding_flows import UnbondingFlowResult
    from stakeledger.domain.derived import RebuildResult
    from stakeledger.domain.health import HealthReport
    from stakeledger.domain.ingestion import IngestResult
    from stakeledger.domain.ports.fetching import ProviderFetcher, ValidatorLookup
    from stakeledger.domain.ports.processes import DerivationRunner
    from stakeledger.domain.repair import RepairOutcome
    from stakeledger.domain.time_windows import Clock


log = getLogger(__name__)


def build_providers(config: IngestConfig) -> list[ProviderFetcher]:
    return [
        TendermintProvider(
            endpoint=endpoint,
            resilience=config.provider_resilience(endpoint, name=provider_name(endpoint)),
        )
        for endpoint in config.providers
    ]


def ingest(
    *,
    config: IngestConfig | None = None,
    storage: StorageConfig | None = None,
    fetchers: list[ProviderFetcher] | None = None,
    clock: Clock = utcnow,
) -> IngestResult:
    """Fetch from every provider, apply quorum and append to the ledger."""

    cfg = config or get_ingest_config()
    store = storage or get_storage_config()
    data_dir = store.ensure_data_dir()
    return run_ingest(
        fetchers=fetchers if fetchers is not None else build_providers(cfg),
        ledger=JsonlLedger(store.ledger_dir),
        artifacts=JsonArtifactStore(data_dir),
        config=cfg,
        clock=clock,
    )


def rebuild(
    *,
    config: RebuildConfig | None = None,
    rest: RestConfig | None = None,
    storage: StorageConfig | None = None,
    force_derivations: bool = False,
    lookup: ValidatorLookup | None = None,
    runner: DerivationRunner | None = None,
    clock: Clock = utcnow,
) -> RebuildResult:
    """Regenerate feed, exports and aggregates from the ledger, then run derivations."""

    store = storage or get_storage_config()
    data_dir = store.ensure_data_dir()
    directory = ValidatorDirectory.load(store.validator_cache_path)
    builder = DerivedViewBuilder(
        ledger=JsonlLedger(store.ledger_dir),
        artifacts=JsonArtifactStore(data_dir),
        config=config or get_rebuild_config(),
        validators=directory,
        lookup=lookup or RestValidatorLookup(rest or get_rest_config()),
        runner=runner or SubprocessRunner(env={"STAKELEDGER_DATA_DIR": str(data_dir)}),
        clock=clock,
    )
    try:
        return builder.rebuild(force_derivations=force_derivations)
    finally:
        directory.save(store.validator_cache_path)


def health(
    *,
    config: HealthConfig | None = None,
    storage: StorageConfig | None = None,
    clock: Clock = utcnow,
) -> HealthReport:
    """Recompute ``ingestion-health.json`` from the published artifacts."""

    store = storage or get_storage_config()
    return reconcile_health(
        artifacts=JsonArtifactStore(store.ensure_data_dir()),
        budgets=(config or get_health_config()).budgets,
        clock=clock,
    )


def repair(
    *,
    config: IngestConfig | None = None,
    storage: StorageConfig | None = None,
    clock: Clock = utcnow,
) -> RepairOutcome:
    """Wide non-incremental ingest, forced rebuild and health reconciliation."""

    wide = (config or get_ingest_config()).widened()
    store = storage or get_storage_config()
    log.info(
        "Starting repair: overlap_hours=%s, limit_pages=%s, exec_limit_pages=%s",
        wide.overlap_hours,
        wide.limit_pages,
        wide.exec_limit_pages,
    )
    orchestrator = RepairOrchestrator(
        wide_ingest=lambda: ingest(config=wide, storage=store, clock=clock),
        rebuild=lambda: rebuild(storage=store, force_derivations=True, clock=clock),
        reconcile=lambda: health(storage=store, clock=clock),
    )
    return orchestrator.run()


def pending_unbonding(
    *, storage: StorageConfig | None = None, clock: Clock = utcnow
) -> dict[str, object]:
    store = storage or get_storage_config()
    return run_pending_unbonding(
        artifacts=JsonArtifactStore(store.ensure_data_dir()),
        resilience=get_rest_config().resilience,
        config=get_pending_unbonding_config(),
        clock=clock,
    )


def unbonding_flows(
    *, storage: StorageConfig | None = None, clock: Clock = utcnow
) -> UnbondingFlowResult:
    store = storage or get_storage_config()
    ingest_config = get_ingest_config()
    endpoint = ingest_config.providers[0]
    return run_unbonding_flows(
        artifacts=JsonArtifactStore(store.ensure_data_dir()),
        rpc_resilience=ingest_config.provider_resilience(endpoint, name=provider_name(endpoint)),
        rest_resilience=get_rest_config().resilience,
        config=get_unbonding_flow_config(),
        clock=clock,
    )
