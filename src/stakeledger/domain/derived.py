"""Rebuild every user-facing view from the ledger alone.

All outputs are a pure function of the ledger contents, the validator names
and the injected clock, so rebuilding an unchanged ledger at the same instant
reproduces the same bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING

from stakeledger.config.rebuild import WHALE_EXPORT_DAYS
from stakeledger.config.storage import (
    DAILY_FILENAME,
    FEED_FILENAME,
    HOURLY_FILENAME,
    RAW_EXPORT_FILENAME,
    SOURCE_STATUS_FILENAME,
    WHALE_FILENAME,
)
from stakeledger.domain.time_windows import days_before, to_iso, utcnow
from stakeledger.domain.types import EventType, LedgerRow, amount_to_json

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from stakeledger.config.rebuild import RebuildConfig
    from stakeledger.domain.ports.fetching import ValidatorLookup, ValidatorStore
    from stakeledger.domain.ports.persistence import ArtifactStore, LedgerStorage
    from stakeledger.domain.ports.processes import DerivationRunner
    from stakeledger.domain.time_windows import Clock

log = getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def load_rows(ledger: LedgerStorage) -> list[LedgerRow]:
    """Read the whole ledger, keeping the last occurrence of each id."""

    by_id: dict[str, LedgerRow] = {}
    for raw in ledger.iter_rows():
        row = LedgerRow.from_json(raw)
        if row is not None:
            by_id[row.id] = row
    return list(by_id.values())


def newest_first(rows: Iterable[LedgerRow]) -> list[LedgerRow]:
    return sorted(
        rows,
        key=lambda row: (row.timestamp or _EPOCH, row.height, row.id),
        reverse=True,
    )


def within(row: LedgerRow, cutoff: datetime) -> bool:
    """Rows without a timestamp are never aged out."""

    return row.timestamp is None or row.timestamp >= cutoff


def hour_key(timestamp: datetime) -> str:
    return to_iso(timestamp.astimezone(UTC).replace(minute=0, second=0, microsecond=0))


def day_key(timestamp: datetime) -> str:
    return timestamp.astimezone(UTC).strftime("%Y-%m-%d")


@dataclass(slots=True)
class FlowBucket:
    key: str
    delegate_amount: Decimal = Decimal(0)
    undelegate_amount: Decimal = Decimal(0)
    delegates_count: int = 0
    undelegates_count: int = 0

    @property
    def net(self) -> Decimal:
        return self.delegate_amount - self.undelegate_amount

    def add(self, row: LedgerRow) -> None:
        if row.type == EventType.DELEGATE:
            self.delegate_amount += row.amount
            self.delegates_count += 1
        else:
            self.undelegate_amount += row.amount
            self.undelegates_count += 1

    def to_json(self) -> dict[str, object]:
        return {
            "key": self.key,
            "delegate_amount": amount_to_json(self.delegate_amount),
            "undelegate_amount": amount_to_json(self.undelegate_amount),
            "net": amount_to_json(self.net),
            "delegates_count": self.delegates_count,
            "undelegates_count": self.undelegates_count,
            "total_count": self.delegates_count + self.undelegates_count,
        }


def aggregate(
    rows: Iterable[LedgerRow],
    key_fn: Callable[[datetime], str],
    *,
    cutoff: datetime | None = None,
) -> list[FlowBucket]:
    """Bucket timestamped rows by ``key_fn``; ascending by key."""

    buckets: dict[str, FlowBucket] = {}
    for row in rows:
        if row.timestamp is None or row.amount <= 0:
            continue
        if row.type not in (EventType.DELEGATE, EventType.UNDELEGATE):
            continue
        if cutoff is not None and row.timestamp < cutoff:
            continue
        key = key_fn(row.timestamp)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = FlowBucket(key=key)
        bucket.add(row)
    return [buckets[key] for key in sorted(buckets)]


def select_feed(
    ordered: Sequence[LedgerRow],
    *,
    keep: int,
    whale_min: Decimal,
    whale_cutoff: datetime,
) -> list[LedgerRow]:
    """Most recent ``keep`` rows plus recent whale rows, newest first."""

    selected: dict[str, LedgerRow] = {row.id: row for row in ordered[:keep]}
    for row in ordered:
        if row.amount >= whale_min and within(row, whale_cutoff):
            selected.setdefault(row.id, row)
    return newest_first(selected.values())


def whale_item(row: LedgerRow) -> dict[str, object]:
    return {
        "type": row.type,
        "amount": amount_to_json(row.amount),
        "timestamp": to_iso(row.timestamp) if row.timestamp else None,
        "txhash": row.txhash,
        "validator_addr": row.validator_addr,
        "validator_name": row.validator_name,
        "delegator": row.delegator,
    }


def apply_validator_names(
    rows: Sequence[LedgerRow],
    directory: ValidatorStore,
    lookup: ValidatorLookup | None,
) -> None:
    """Learn names present in rows, look up the rest, then fill the gaps."""

    unknown: list[str] = []
    for row in rows:
        if not row.validator_addr:
            continue
        if row.validator_name:
            directory.remember(row.validator_addr, row.validator_name)
        elif not directory.get(row.validator_addr):
            unknown.append(row.validator_addr)
    if unknown:
        directory.fill(unknown, lookup)
    for row in rows:
        if row.validator_addr and not row.validator_name:
            row.validator_name = directory.get(row.validator_addr)


@dataclass(slots=True)
class RebuildResult:
    events: int = 0
    feed_items: int = 0
    hourly_buckets: int = 0
    daily_buckets: int = 0
    whales: int = 0
    derivations: list[str] = field(default_factory=list[str])


@dataclass(slots=True)
class DerivedViewBuilder:
    ledger: LedgerStorage
    artifacts: ArtifactStore
    config: RebuildConfig
    validators: ValidatorStore
    lookup: ValidatorLookup | None = None
    runner: DerivationRunner | None = None
    clock: Clock = utcnow

    def rebuild(self, *, force_derivations: bool = False) -> RebuildResult:
        now = self.clock()
        generated_at = to_iso(now)
        cfg = self.config

        rows = [
            row
            for row in load_rows(self.ledger)
            if within(row, days_before(now, cfg.raw_keep_days))
        ]
        apply_validator_names(rows, self.validators, self.lookup)
        ordered = newest_first(rows)

        feed = select_feed(
            ordered,
            keep=cfg.feed_keep,
            whale_min=Decimal(str(cfg.whale_feed_min)),
            whale_cutoff=days_before(now, cfg.whale_feed_days),
        )
        self.artifacts.write(
            FEED_FILENAME,
            {
                "generated_at": generated_at,
                "total": len(feed),
                "delegates": sum(1 for row in feed if row.type == EventType.DELEGATE),
                "undelegates": sum(1 for row in feed if row.type == EventType.UNDELEGATE),
                "source_status": self.artifacts.read(SOURCE_STATUS_FILENAME) or {},
                "items": [row.feed_item() for row in feed],
            },
        )
        self.artifacts.write(
            RAW_EXPORT_FILENAME,
            {
                "generated_at": generated_at,
                "timezone": "UTC",
                "retention_days": cfg.raw_keep_days,
                "total": len(ordered),
                "items": [row.feed_item() for row in ordered],
            },
        )

        hourly = aggregate(ordered, hour_key, cutoff=days_before(now, cfg.hourly_keep_days))
        daily = aggregate(ordered, day_key)
        self.artifacts.write(
            HOURLY_FILENAME,
            {
                "generated_at": generated_at,
                "timezone": "UTC",
                "retention_days": cfg.hourly_keep_days,
                "total": len(hourly),
                "items": [bucket.to_json() for bucket in hourly],
            },
        )
        self.artifacts.write(
            DAILY_FILENAME,
            {
                "generated_at": generated_at,
                "timezone": "UTC",
                "total": len(daily),
                "items": [bucket.to_json() for bucket in daily],
            },
        )

        whale_min = Decimal(str(cfg.whale_event_min))
        whale_cutoff = days_before(now, WHALE_EXPORT_DAYS)
        whales = [row for row in ordered if row.amount >= whale_min and within(row, whale_cutoff)]
        self.artifacts.write(
            WHALE_FILENAME,
            {
                "generated_at": generated_at,
                "whale_min_amount": cfg.whale_event_min,
                "total": len(whales),
                "events": [whale_item(row) for row in whales],
            },
        )

        result = RebuildResult(
            events=len(ordered),
            feed_items=len(feed),
            hourly_buckets=len(hourly),
            daily_buckets=len(daily),
            whales=len(whales),
        )
        result.derivations = self._run_derivations(force=force_derivations)
        log.info(
            "Rebuilt derived views: events=%s, feed=%s, hourly=%s, daily=%s, whales=%s",
            result.events,
            result.feed_items,
            result.hourly_buckets,
            result.daily_buckets,
            result.whales,
        )
        return result

    def _run_derivations(self, *, force: bool) -> list[str]:
        planned: list[tuple[str, tuple[str, ...], dict[str, str]]] = []
        if force or self.config.run_pending:
            planned.append(
                (
                    "pending-unbonding",
                    self.config.pending_command,
                    {"PENDING_MIN_AMOUNT": str(self.config.pending_min_amount)},
                )
            )
        if force or self.config.run_unbonding:
            planned.append(("unbonding-flows", self.config.unbonding_command, {}))
        runner = self.runner
        if runner is None:
            if planned:
                log.warning(
                    "No derivation runner configured; skipping %s derivation(s)", len(planned)
                )
            return []
        ran: list[str] = []
        for name, command, env in planned:
            runner(name, command, env=env)
            ran.append(name)
        return ran


__all__ = [
    "DerivedViewBuilder",
    "FlowBucket",
    "RebuildResult",
    "aggregate",
    "apply_validator_names",
    "day_key",
    "hour_key",
    "load_rows",
    "newest_first",
    "select_feed",
]
