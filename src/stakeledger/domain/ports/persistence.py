"""Persistence ports for the ledger and the derived artifacts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence


@dataclass(frozen=True, slots=True)
class StagedPartition:
    """Full next content of one partition, prepared but not yet published."""

    partition: str
    rows_before: int
    rows_after: int
    payload: str


@runtime_checkable
class LedgerStorage(Protocol):
    """Month-partitioned, append-only event log."""

    def list_partitions(self) -> list[str]: ...

    def load_ids(self, partition: str) -> set[str]: ...

    def row_count(self, partition: str) -> int: ...

    def stage_append(
        self, partition: str, rows: Sequence[Mapping[str, object]]
    ) -> StagedPartition: ...

    def commit(self, staged: Sequence[StagedPartition]) -> None: ...

    def iter_rows(self) -> Iterator[dict[str, object]]: ...


@runtime_checkable
class ArtifactStore(Protocol):
    """Named JSON documents published next to the ledger."""

    def read(self, name: str) -> dict[str, object] | None: ...

    def write(self, name: str, payload: Mapping[str, object]) -> None: ...


__all__ = ["ArtifactStore", "LedgerStorage", "StagedPartition"]
