"""Append quorum-accepted events into month partitions without ever shrinking them."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from stakeledger.errors import LedgerIntegrityError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from stakeledger.domain.ports.persistence import LedgerStorage, StagedPartition
    from stakeledger.domain.types import Event

log = getLogger(__name__)

def partition_key(event: Event) -> str:
    """UTC calendar month of the event, ``YYYY-MM``."""

    return event.partition_time.astimezone(UTC).strftime("%Y-%m")


def _append_order(event: Event) -> tuple[datetime, int, str]:
    # Timestamp-less events sort by ingestion time, the same instant that picks their partition.
    return (event.partition_time, event.height, event.id)


@dataclass(slots=True)
class LedgerWriteResult:
    appended: int = 0
    skipped_existing: int = 0
    partitions_touched: list[str] = field(default_factory=list[str])
    rows_before: int = 0
    rows_after: int = 0


def total_rows(storage: LedgerStorage) -> int:
    return sum(storage.row_count(partition) for partition in storage.list_partitions())


def verify_staged(staged: Iterable[StagedPartition]) -> None:
    for partition in staged:
        if partition.rows_after < partition.rows_before:
            raise LedgerIntegrityError(
                f"Ledger shrink blocked for partition {partition.partition} "
                f"({partition.rows_before} -> {partition.rows_after})",
                partition=partition.partition,
            )


@dataclass(slots=True)
class LedgerWriter:
    storage: LedgerStorage

    def append(
        self,
        accepted: Sequence[Event],
        *,
        previous_total: int | None = None,
    ) -> LedgerWriteResult:
        """Append events absent from their target partition.

        Raises ``LedgerIntegrityError`` before publishing anything if the ledger
        is already smaller than ``previous_total`` or any staged partition would
        hold fewer rows than it does now.
        """

        rows_before = total_rows(self.storage)
        if previous_total is not None and rows_before < previous_total:
            raise LedgerIntegrityError(
                f"Ledger shrank since the previous run ({previous_total} -> {rows_before})"
            )

        by_partition: defaultdict[str, list[Event]] = defaultdict(list)
        for event in accepted:
            by_partition[partition_key(event)].append(event)

        result = LedgerWriteResult(rows_before=rows_before, rows_after=rows_before)
        pending: dict[str, list[Event]] = {}
        for partition in sorted(by_partition):
            existing = self.storage.load_ids(partition)
            fresh: list[Event] = []
            for event in by_partition[partition]:
                if event.id in existing:
                    result.skipped_existing += 1
                    continue
                existing.add(event.id)
                fresh.append(event)
            if fresh:
                pending[partition] = sorted(fresh, key=_append_order)

        staged = [
            self.storage.stage_append(partition, [event.to_row() for event in events])
            for partition, events in pending.items()
        ]
        verify_staged(staged)
        self.storage.commit(staged)

        result.appended = sum(len(events) for events in pending.values())
        result.partitions_touched = list(pending)
        result.rows_after = rows_before + sum(p.rows_after - p.rows_before for p in staged)
        log.info(
            "Ledger append: appended=%s, skipped_existing=%s, partitions=%s",
            result.appended,
            result.skipped_existing,
            ",".join(result.partitions_touched) or "-",
        )
        return result


__all__ = ["LedgerWriteResult", "LedgerWriter", "partition_key", "total_rows", "verify_staged"]
