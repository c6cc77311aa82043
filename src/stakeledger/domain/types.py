"""Core domain types for the delegation ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING, TypeAlias

from stakeledger.domain.time_windows import parse_iso, to_iso

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

RawRecord: TypeAlias = "Mapping[str, object]"

AMOUNT_QUANTUM = Decimal("0.000001")


class EventType(StrEnum):
    DELEGATE = "delegate"
    UNDELEGATE = "undelegate"


class HealthStatus(StrEnum):
    OK = "ok"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class FreshnessStatus(StrEnum):
    OK = "ok"
    STALE = "stale"
    MISSING = "missing"


def amount_to_json(amount: Decimal) -> float:
    return float(amount.quantize(AMOUNT_QUANTUM))


@dataclass(frozen=True, slots=True)
class Event:
    """One delegation or undelegation, as agreed on by the providers.

    Instances are created by the normalizer and never mutated afterwards.
    """

    id: str
    chain_id: str
    source: str
    type: EventType
    txhash: str
    msg_index: int
    event_index: int
    timestamp: datetime | None
    height: int
    delegator: str
    validator_addr: str
    validator_name: str
    amount: Decimal
    ingested_at: datetime

    @property
    def partition_time(self) -> datetime:
        return self.timestamp or self.ingested_at

    def to_row(self) -> dict[str, object]:
        return {
            "id": self.id,
            "chain_id": self.chain_id,
            "source": self.source,
            "type": self.type.value,
            "txhash": self.txhash,
            "msg_index": self.msg_index,
            "event_index": self.event_index,
            "timestamp": to_iso(self.timestamp) if self.timestamp else None,
            "height": self.height,
            "delegator": self.delegator,
            "validator_addr": self.validator_addr,
            "validator_name": self.validator_name,
            "amount": amount_to_json(self.amount),
            "ingested_at": to_iso(self.ingested_at),
        }


@dataclass(slots=True)
class LedgerRow:
    """A row read back from a ledger partition, tolerant of partial records."""

    id: str
    type: str
    amount: Decimal
    timestamp: datetime | None
    height: int
    txhash: str = ""
    delegator: str = ""
    validator_addr: str = ""
    validator_name: str = ""
    source: str = ""
    raw: dict[str, object] = field(default_factory=dict[str, object])

    @classmethod
    def from_json(cls, row: Mapping[str, object]) -> LedgerRow | None:
        row_id = row.get("id")
        if not isinstance(row_id, str) or not row_id:
            return None
        amount_value = row.get("amount", row.get("amount_atom", 0))
        try:
            amount = Decimal(str(amount_value))
        except ArithmeticError:
            amount = Decimal(0)
        if not amount.is_finite():
            amount = Decimal(0)
        height_value = row.get("height", 0)
        try:
            height = int(str(height_value or 0))
        except ValueError:
            height = 0
        return cls(
            id=row_id,
            type=str(row.get("type") or ""),
            amount=amount,
            timestamp=parse_iso(row.get("timestamp")),
            height=height,
            txhash=str(row.get("txhash") or ""),
            delegator=str(row.get("delegator") or ""),
            validator_addr=str(row.get("validator_addr") or ""),
            validator_name=str(row.get("validator_name") or ""),
            source=str(row.get("source") or ""),
            raw=dict(row),
        )

    def feed_item(self) -> dict[str, object]:
        return {
            "type": self.type,
            "amount": amount_to_json(self.amount),
            "delegator": self.delegator,
            "validator_addr": self.validator_addr,
            "validator_name": self.validator_name,
            "height": self.height,
            "txhash": self.txhash,
            "timestamp": to_iso(self.timestamp) if self.timestamp else None,
        }


@dataclass(slots=True)
class ProviderRun:
    """Outcome of one provider fetch: either raw records or an error."""

    provider: str
    endpoint: str
    ok: bool
    error: str | None = None
    raw_events: list[RawRecord] = field(default_factory=list[RawRecord])
    events: list[Event] = field(default_factory=list[Event])

    def stats(self) -> dict[str, object]:
        return {
            "endpoint": self.endpoint,
            "ok": self.ok,
            "error": self.error,
            "raw_events": len(self.raw_events),
            "events": len(self.events),
        }


__all__ = [
    "AMOUNT_QUANTUM",
    "Event",
    "EventType",
    "FreshnessStatus",
    "HealthStatus",
    "LedgerRow",
    "ProviderRun",
    "RawRecord",
    "amount_to_json",
]
