"""Run state carried from one ingest run to the next."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING

from stakeledger.domain.time_windows import parse_iso, to_iso

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


@dataclass(slots=True)
class RunStats:
    providers_total: int = 0
    providers_ok: int = 0
    quorum_required: int = 0
    candidates: int = 0
    accepted: int = 0
    dropped_by_quorum: int = 0
    skipped_existing: int = 0
    appended: int = 0
    partitions_touched: list[str] = field(default_factory=list[str])
    avg_supporters: float = 0.0
    amount_conflicts: int = 0
    rejected: dict[str, int] = field(default_factory=dict[str, int])
    ledger_rows_before: int = 0
    ledger_rows_after: int = 0
    providers: dict[str, dict[str, object]] = field(default_factory=dict[str, dict[str, object]])


@dataclass(slots=True)
class RunState:
    """What the next run needs: when we last ran, where to re-scan from, what we saw."""

    last_ingest_at: datetime
    next_cursor: datetime
    overlap_hours: float
    incremental: bool
    stats: RunStats = field(default_factory=RunStats)

    def to_json(self) -> dict[str, object]:
        return {
            "last_ingest_at": to_iso(self.last_ingest_at),
            "next_cursor": to_iso(self.next_cursor),
            "overlap_hours": self.overlap_hours,
            "incremental": self.incremental,
            "stats": asdict(self.stats),
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, object] | None) -> RunState | None:
        """Rebuild a state document; ``None`` when absent or missing its timestamps."""

        if not payload:
            return None
        last_ingest_at = parse_iso(payload.get("last_ingest_at"))
        next_cursor = parse_iso(payload.get("next_cursor"))
        if last_ingest_at is None or next_cursor is None:
            return None
        stats_payload = payload.get("stats")
        stats = RunStats()
        if isinstance(stats_payload, dict):
            rows_after = stats_payload.get("ledger_rows_after")
            if isinstance(rows_after, int) and not isinstance(rows_after, bool):
                stats.ledger_rows_after = rows_after
            appended = stats_payload.get("appended")
            if isinstance(appended, int) and not isinstance(appended, bool):
                stats.appended = appended
        overlap = payload.get("overlap_hours")
        return cls(
            last_ingest_at=last_ingest_at,
            next_cursor=next_cursor,
            overlap_hours=float(overlap) if isinstance(overlap, int | float) else 0.0,
            incremental=bool(payload.get("incremental", True)),
            stats=stats,
        )

    @property
    def ledger_rows(self) -> int:
        return self.stats.ledger_rows_after


__all__ = ["RunState", "RunStats"]
