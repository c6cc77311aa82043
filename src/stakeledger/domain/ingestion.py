"""One ingest run: fetch, normalize, reconcile, append, record state."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from stakeledger.config.storage import SOURCE_STATUS_FILENAME, STATE_ARTIFACT
from stakeledger.domain.ledger import LedgerWriter, LedgerWriteResult, total_rows
from stakeledger.domain.normalization import Rejection, normalize_records
from stakeledger.domain.orchestration import fetch_all
from stakeledger.domain.ports.fetching import FetchRequest
from stakeledger.domain.quorum import QuorumResult, reconcile
from stakeledger.domain.state import RunState, RunStats
from stakeledger.domain.time_windows import overlap_cursor, to_iso, utcnow
from stakeledger.domain.types import HealthStatus
from stakeledger.errors import NoProvidersAvailableError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from stakeledger.config.ingest import IngestConfig
    from stakeledger.domain.ports.fetching import ProviderFetcher
    from stakeledger.domain.ports.persistence import ArtifactStore, LedgerStorage
    from stakeledger.domain.time_windows import Clock
    from stakeledger.domain.types import ProviderRun

log = getLogger(__name__)


@dataclass(slots=True)
class IngestResult:
    runs: list[ProviderRun]
    quorum: QuorumResult
    write: LedgerWriteResult
    state: RunState
    source_status: dict[str, object]
    rejected: Counter[Rejection] = field(default_factory=Counter[Rejection])

    @property
    def appended(self) -> int:
        return self.write.appended


def source_status(providers_ok: int, configured_minimum: int) -> HealthStatus:
    """Full quorum is ok, any surviving provider is degraded, none is critical."""

    if providers_ok >= max(1, configured_minimum):
        return HealthStatus.OK
    if providers_ok > 0:
        return HealthStatus.DEGRADED
    return HealthStatus.CRITICAL


def build_fetch_request(config: IngestConfig, previous: RunState | None) -> FetchRequest:
    since = previous.next_cursor if config.incremental and previous is not None else None
    return FetchRequest(
        since=since,
        limit_pages=config.limit_pages,
        exec_limit_pages=config.exec_limit_pages,
        per_page=config.per_page,
        min_amount=config.feed_min,
    )


def normalize_runs(
    runs: Sequence[ProviderRun], *, chain_id: str, ingested_at: datetime
) -> Counter[Rejection]:
    """Attach normalized events to each ok run; return the rejection tally."""

    rejected: Counter[Rejection] = Counter()
    for run in runs:
        if not run.ok:
            continue
        result = normalize_records(
            run.raw_events, source=run.provider, chain_id=chain_id, ingested_at=ingested_at
        )
        run.events = result.events
        rejected.update(result.rejected)
        if result.rejected_total:
            log.warning(
                "Provider %s: %s raw records rejected (%s)",
                run.provider,
                result.rejected_total,
                ", ".join(f"{reason}={count}" for reason, count in sorted(result.rejected.items())),
            )
    return rejected


def build_stats(
    runs: Sequence[ProviderRun],
    quorum: QuorumResult,
    write: LedgerWriteResult,
    rejected: Counter[Rejection],
) -> RunStats:
    return RunStats(
        providers_total=len(runs),
        providers_ok=quorum.providers_ok,
        quorum_required=quorum.quorum_required,
        candidates=quorum.candidates,
        accepted=len(quorum.accepted),
        dropped_by_quorum=quorum.dropped_by_quorum,
        skipped_existing=write.skipped_existing,
        appended=write.appended,
        partitions_touched=list(write.partitions_touched),
        avg_supporters=quorum.evidence.average_supporters(),
        amount_conflicts=quorum.amount_conflicts,
        rejected={reason.value: rejected.get(reason, 0) for reason in Rejection},
        ledger_rows_before=write.rows_before,
        ledger_rows_after=write.rows_after,
        providers={run.provider: run.stats() for run in runs},
    )


def build_source_status(
    *,
    generated_at: datetime,
    config: IngestConfig,
    stats: RunStats,
) -> dict[str, object]:
    status = source_status(stats.providers_ok, config.quorum_min)
    return {
        "generated_at": to_iso(generated_at),
        "status": status.value,
        "chain_id": config.chain_id,
        "overlap_hours": config.overlap_hours,
        "incremental": config.incremental,
        "quorum": {
            "configured_min": config.quorum_min,
            "required": stats.quorum_required,
            "providers_ok": stats.providers_ok,
            "providers_total": stats.providers_total,
            "candidates": stats.candidates,
            "accepted": stats.accepted,
            "dropped_by_quorum": stats.dropped_by_quorum,
            "avg_supporters": stats.avg_supporters,
            "amount_conflicts": stats.amount_conflicts,
        },
        "providers": stats.providers,
        "ledger": {
            "appended": stats.appended,
            "skipped_existing": stats.skipped_existing,
            "partitions_touched": stats.partitions_touched,
            "rows_before": stats.ledger_rows_before,
            "rows_after": stats.ledger_rows_after,
        },
    }


def run_ingest(
    *,
    fetchers: Sequence[ProviderFetcher],
    ledger: LedgerStorage,
    artifacts: ArtifactStore,
    config: IngestConfig,
    clock: Clock = utcnow,
) -> IngestResult:
    """Run one ingest pass and publish ``state.json`` and ``source-status.json``.

    Raises ``NoProvidersAvailableError`` when every provider failed (after the
    critical status has been written, and without moving the cursor), and
    ``LedgerIntegrityError`` before any write when the ledger would shrink.
    """

    started = clock()
    previous = RunState.from_json(artifacts.read(STATE_ARTIFACT))
    request = build_fetch_request(config, previous)
    log.info(
        "Starting ingest: providers=%s, quorum_min=%s, since=%s",
        len(fetchers),
        config.quorum_min,
        to_iso(request.since) if request.since else "-",
    )

    runs = fetch_all(
        fetchers,
        request,
        concurrency=config.concurrency,
        timeout_seconds=config.provider_timeout_seconds,
    )
    rejected = normalize_runs(runs, chain_id=config.chain_id, ingested_at=started)
    quorum = reconcile(runs, configured_minimum=config.quorum_min)

    if quorum.providers_ok == 0:
        rows = total_rows(ledger)
        write = LedgerWriteResult(rows_before=rows, rows_after=rows)
        stats = build_stats(runs, quorum, write, rejected)
        cursor = previous.next_cursor if previous else overlap_cursor(
            config.overlap_hours, now=started
        )
        state = RunState(
            last_ingest_at=started,
            next_cursor=cursor,
            overlap_hours=config.overlap_hours,
            incremental=config.incremental,
            stats=stats,
        )
        artifacts.write(STATE_ARTIFACT, state.to_json())
        artifacts.write(
            SOURCE_STATUS_FILENAME,
            build_source_status(generated_at=started, config=config, stats=stats),
        )
        errors = "; ".join(f"{run.provider}: {run.error}" for run in runs) or "none configured"
        raise NoProvidersAvailableError(f"No provider returned data ({errors})")

    write = LedgerWriter(ledger).append(
        quorum.accepted,
        previous_total=previous.ledger_rows if previous else None,
    )
    stats = build_stats(runs, quorum, write, rejected)
    state = RunState(
        last_ingest_at=started,
        next_cursor=overlap_cursor(config.overlap_hours, now=started),
        overlap_hours=config.overlap_hours,
        incremental=config.incremental,
        stats=stats,
    )
    status_doc = build_source_status(generated_at=started, config=config, stats=stats)
    artifacts.write(STATE_ARTIFACT, state.to_json())
    artifacts.write(SOURCE_STATUS_FILENAME, status_doc)

    log.info(
        "Finished ingest: providers_ok=%s/%s, required=%s, candidates=%s, accepted=%s, "
        "dropped=%s, appended=%s, status=%s",
        stats.providers_ok,
        stats.providers_total,
        stats.quorum_required,
        stats.candidates,
        stats.accepted,
        stats.dropped_by_quorum,
        stats.appended,
        status_doc["status"],
    )
    return IngestResult(
        runs=runs,
        quorum=quorum,
        write=write,
        state=state,
        source_status=status_doc,
        rejected=rejected,
    )


__all__ = [
    "IngestResult",
    "build_fetch_request",
    "build_source_status",
    "build_stats",
    "normalize_runs",
    "run_ingest",
    "source_status",
]
