"""Map heterogeneous provider records onto canonical ``Event`` instances.

Providers (and different versions of the same provider) name the same logical
field differently. Each logical field is resolved through an ordered alias
tuple; the first alias holding a non-blank value wins.

The event id folds case and rounding noise out of the inputs so that two
providers reporting the same on-chain event converge on one id:

* the transaction hash is upper-cased and the delegator lower-cased,
* the amount is fixed to six decimals,
* indices and height are rendered as plain integers.
"""

from __future__ import annotations

import hashlib
from collections import Counter
from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from stakeledger.domain.time_windows import parse_iso
from stakeledger.domain.types import AMOUNT_QUANTUM, Event, EventType

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from stakeledger.domain.types import RawRecord

FIELD_ALIASES: Final[dict[str, tuple[str, ...]]] = {
    "type": ("type", "msg_type", "action", "event_type"),
    "txhash": ("txhash", "tx_hash", "hash", "transaction_hash"),
    "msg_index": ("msg_index", "message_index"),
    "event_index": ("event_index", "log_index"),
    "amount": ("amount_atom", "amount", "atom"),
    "timestamp": ("timestamp", "block_time", "time", "completion_time"),
    "height": ("height", "block_height"),
    "delegator": ("delegator", "delegator_address", "address"),
    "validator_addr": ("validator_addr", "validator", "validator_address"),
    "validator_name": ("validator_name", "validator_moniker"),
}


class Rejection(StrEnum):
    UNKNOWN_TYPE = "unknown_type"
    INVALID_AMOUNT = "invalid_amount"
    UNRESOLVABLE_TIME = "unresolvable_time"


def resolve_field(record: RawRecord, name: str) -> object | None:
    """Return the first non-blank value among the aliases of ``name``."""

    for alias in FIELD_ALIASES[name]:
        value = record.get(alias)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def normalize_type(value: object) -> EventType | None:
    text = str(value or "").lower()
    if "undelegate" in text or "unbond" in text:
        return EventType.UNDELEGATE
    if "delegate" in text:
        return EventType.DELEGATE
    return None


def parse_amount(value: object) -> Decimal | None:
    """Parse a positive, finite decimal amount; anything else is ``None``."""

    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    try:
        amount.quantize(AMOUNT_QUANTUM)
    except InvalidOperation:
        return None
    return amount


def _parse_int(value: object) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return 0


def fixed_amount(amount: Decimal) -> str:
    return str(amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_EVEN))


def event_id(
    *,
    chain_id: str,
    txhash: str,
    msg_index: int,
    event_index: int,
    event_type: EventType,
    delegator: str,
    validator_addr: str,
    amount: Decimal,
    height: int,
) -> str:
    parts = (
        chain_id,
        txhash.upper(),
        str(msg_index),
        str(event_index),
        event_type.value,
        delegator.lower(),
        validator_addr,
        fixed_amount(amount),
        str(height),
    )
    return hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()  # noqa: S324


@dataclass(slots=True)
class NormalizationResult:
    events: list[Event] = field(default_factory=list[Event])
    rejected: Counter[Rejection] = field(default_factory=Counter[Rejection])

    @property
    def rejected_total(self) -> int:
        return sum(self.rejected.values())


def normalize_record(
    record: RawRecord,
    *,
    source: str,
    chain_id: str,
    ingested_at: datetime,
) -> Event | Rejection:
    """Normalize one raw record, returning the reason instead of raising on bad input."""

    event_type = normalize_type(resolve_field(record, "type"))
    if event_type is None:
        return Rejection.UNKNOWN_TYPE

    amount = parse_amount(resolve_field(record, "amount"))
    if amount is None:
        return Rejection.INVALID_AMOUNT

    timestamp = parse_iso(resolve_field(record, "timestamp"))
    height = max(0, _parse_int(resolve_field(record, "height")))
    if timestamp is None and height == 0:
        return Rejection.UNRESOLVABLE_TIME

    txhash = str(resolve_field(record, "txhash") or "").strip().upper()
    msg_index = _parse_int(resolve_field(record, "msg_index"))
    event_index = _parse_int(resolve_field(record, "event_index"))
    delegator = str(resolve_field(record, "delegator") or "").strip().lower()
    validator_addr = str(resolve_field(record, "validator_addr") or "").strip()
    validator_name = str(resolve_field(record, "validator_name") or "").strip()

    return Event(
        id=event_id(
            chain_id=chain_id,
            txhash=txhash,
            msg_index=msg_index,
            event_index=event_index,
            event_type=event_type,
            delegator=delegator,
            validator_addr=validator_addr,
            amount=amount,
            height=height,
        ),
        chain_id=chain_id,
        source=source,
        type=event_type,
        txhash=txhash,
        msg_index=msg_index,
        event_index=event_index,
        timestamp=timestamp,
        height=height,
        delegator=delegator,
        validator_addr=validator_addr,
        validator_name=validator_name,
        amount=amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_EVEN),
        ingested_at=ingested_at,
    )


def normalize_records(
    records: Iterable[RawRecord],
    *,
    source: str,
    chain_id: str,
    ingested_at: datetime,
) -> NormalizationResult:
    result = NormalizationResult()
    for record in records:
        outcome = normalize_record(
            record, source=source, chain_id=chain_id, ingested_at=ingested_at
        )
        if isinstance(outcome, Rejection):
            result.rejected[outcome] += 1
            continue
        result.events.append(outcome)
    return result


__all__ = [
    "FIELD_ALIASES",
    "NormalizationResult",
    "Rejection",
    "event_id",
    "normalize_record",
    "normalize_records",
    "normalize_type",
    "parse_amount",
    "resolve_field",
]
