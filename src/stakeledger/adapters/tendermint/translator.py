"""Translate ``tx_search`` payloads into raw delegation records."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .schema import TxEvent, TxPayload

UATOM_PER_ATOM = Decimal(1_000_000)
EVENT_TYPES = {"delegate": "delegate", "unbond": "undelegate"}

_UATOM = re.compile(r"^(\d+)\s*uatom$", re.IGNORECASE)


def parse_uatom(value: str | None) -> Decimal:
    """Convert ``"<int>uatom"`` to ATOM; anything else is zero."""

    if not value:
        return Decimal(0)
    match = _UATOM.match(value.strip())
    if match is None:
        return Decimal(0)
    return Decimal(match.group(1)) / UATOM_PER_ATOM


def _msg_index(event: TxEvent) -> int:
    value = event.attr("msg_index")
    if value is None or not value.strip().isdigit():
        return 0
    return int(value)


def records_from_tx(
    tx: TxPayload,
    *,
    event_types: Iterable[str],
    min_amount: Decimal,
    timestamp: str | None = None,
) -> list[dict[str, object]]:
    wanted = set(event_types)
    records: list[dict[str, object]] = []
    if tx.tx_result.code != 0:
        return records
    for position, event in enumerate(tx.tx_result.events):
        if event.type not in wanted:
            continue
        amount = parse_uatom(event.attr("amount"))
        if amount < min_amount or amount <= 0:
            continue
        records.append(
            {
                "type": EVENT_TYPES[event.type],
                "txhash": tx.hash,
                "msg_index": _msg_index(event),
                "event_index": position,
                "amount": str(amount),
                "height": tx.height,
                "delegator": event.attr("delegator") or "",
                "validator": event.attr("validator") or "",
                "timestamp": timestamp,
            }
        )
    return records


__all__ = ["EVENT_TYPES", "parse_uatom", "records_from_tx"]
