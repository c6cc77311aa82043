"""JSONL implementation of the ledger storage port.

Layout: ``<ledger_dir>/events-YYYY-MM.jsonl``, one JSON object per line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from stakeledger.common.storage import count_lines, encode_jsonl, iter_jsonl, write_text_atomic
from stakeledger.domain.ports.persistence import StagedPartition

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence
    from pathlib import Path

log = getLogger(__name__)

_PARTITION_FILE = re.compile(r"^events-(\d{4}-\d{2})\.jsonl$")


@dataclass(slots=True)
class JsonlLedger:
    directory: Path

    def path_for(self, partition: str) -> Path:
        return self.directory / f"events-{partition}.jsonl"

    def list_partitions(self) -> list[str]:
        if not self.directory.exists():
            return []
        partitions: list[str] = []
        for child in self.directory.iterdir():
            match = _PARTITION_FILE.match(child.name)
            if match and child.is_file():
                partitions.append(match.group(1))
        return sorted(partitions)

    def load_ids(self, partition: str) -> set[str]:
        ids: set[str] = set()
        for row in iter_jsonl(self.path_for(partition)):
            row_id = row.get("id")
            if isinstance(row_id, str) and row_id:
                ids.add(row_id)
        return ids

    def row_count(self, partition: str) -> int:
        return count_lines(self.path_for(partition))

    def stage_append(
        self, partition: str, rows: Sequence[Mapping[str, object]]
    ) -> StagedPartition:
        path = self.path_for(partition)
        existing = path.read_text(encoding="utf-8") if path.exists() else ""
        if existing and not existing.endswith("\n"):
            existing += "\n"
        payload = existing + encode_jsonl(rows)
        return StagedPartition(
            partition=partition,
            rows_before=count_lines(path),
            rows_after=sum(1 for line in payload.splitlines() if line.strip()),
            payload=payload,
        )

    def commit(self, staged: Sequence[StagedPartition]) -> None:
        if not staged:
            return
        self.directory.mkdir(parents=True, exist_ok=True)
        for partition in staged:
            write_text_atomic(self.path_for(partition.partition), partition.payload)
            log.debug(
                "Committed partition %s (%s -> %s rows)",
                partition.partition,
                partition.rows_before,
                partition.rows_after,
            )

    def iter_rows(self) -> Iterator[dict[str, object]]:
        for partition in self.list_partitions():
            yield from iter_jsonl(self.path_for(partition))
