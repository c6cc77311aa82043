"""Schedule of unbonding delegations that have not matured yet."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from stakeledger.adapters.cosmos_rest import CosmosRest
from stakeledger.adapters.http_resilience import default_client_factory
from stakeledger.config.storage import PENDING_FILENAME
from stakeledger.domain.time_windows import to_iso, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from stakeledger.adapters.cosmos_rest import UnbondingResponse
    from stakeledger.adapters.http_resilience import ResilientClient
    from stakeledger.config.derivations import PendingUnbondingConfig
    from stakeledger.config.http_resilience import ResilienceConfig
    from stakeledger.domain.ports.persistence import ArtifactStore
    from stakeledger.domain.time_windows import Clock

log = getLogger(__name__)

UATOM_PER_ATOM = Decimal(1_000_000)


@dataclass(frozen=True, slots=True)
class PendingEntry:
    delegator: str
    validator: str
    amount: Decimal
    completion_date: str


def _balance(value: str) -> Decimal:
    try:
        return Decimal(value) / UATOM_PER_ATOM
    except ArithmeticError:
        return Decimal(0)


def collect_entries(
    responses: Iterable[UnbondingResponse], *, validator: str, min_amount: Decimal
) -> list[PendingEntry]:
    entries: list[PendingEntry] = []
    for response in responses:
        for entry in response.entries:
            amount = _balance(entry.balance)
            if amount < min_amount or not entry.completion_time:
                continue
            entries.append(
                PendingEntry(
                    delegator=response.delegator_address,
                    validator=validator,
                    amount=amount,
                    completion_date=entry.completion_time[:10],
                )
            )
    return entries


def build_schedule(entries: Iterable[PendingEntry], *, generated_at: str) -> dict[str, object]:
    by_date: defaultdict[str, list[PendingEntry]] = defaultdict(list)
    for entry in entries:
        by_date[entry.completion_date].append(entry)

    schedule: list[dict[str, object]] = []
    total = 0
    delegators_by_date: dict[str, list[dict[str, object]]] = {}
    for date in sorted(by_date):
        day = sorted(
            by_date[date], key=lambda e: (e.amount, e.delegator, e.validator), reverse=True
        )
        day_total = round(sum((e.amount for e in day), Decimal(0)))
        total += day_total
        schedule.append(
            {
                "date": date,
                "amount": day_total,
                "delegator_count": len({e.delegator for e in day}),
            }
        )
        delegators_by_date[date] = [
            {
                "address": e.delegator,
                "amount": float(round(e.amount, 3)),
                "validator": e.validator,
            }
            for e in day
        ]

    return {
        "generated_at": generated_at,
        "total_unbonding": total,
        "schedule": schedule,
        "delegators_by_date": delegators_by_date,
    }


async def fetch_pending_entries(
    rest: CosmosRest, config: PendingUnbondingConfig
) -> list[PendingEntry]:
    """List bonded validators (fatal on failure), then their unbonding entries."""

    validators = await rest.bonded_validators(max_pages=config.validator_pages)
    min_amount = Decimal(str(config.min_amount))
    semaphore = asyncio.Semaphore(max(1, config.batch_size))

    async def for_validator(valoper: str) -> list[PendingEntry]:
        async with semaphore:
            try:
                responses = await rest.unbonding_delegations(
                    valoper, max_pages=config.unbonding_pages
                )
            except (httpx.HTTPError, ValidationError) as exc:
                log.warning("Skipping validator %s: %s", valoper, exc)
                return []
        return collect_entries(responses, validator=valoper, min_amount=min_amount)

    batches = await asyncio.gather(
        *(for_validator(validator.operator_address) for validator in validators)
    )
    return [entry for batch in batches for entry in batch]


def run_pending_unbonding(
    *,
    artifacts: ArtifactStore,
    resilience: ResilienceConfig,
    config: PendingUnbondingConfig,
    client_factory: Callable[[ResilienceConfig], ResilientClient] = default_client_factory,
    clock: Clock = utcnow,
) -> dict[str, object]:
    async def fetch() -> list[PendingEntry]:
        async with CosmosRest(resilience, client_factory=client_factory) as rest:
            return await fetch_pending_entries(rest, config)

    entries = asyncio.run(fetch())
    document = build_schedule(entries, generated_at=to_iso(clock()))
    artifacts.write(PENDING_FILENAME, document)
    log.info(
        "Pending unbonding: %s entries over %s dates, total %s",
        len(entries),
        len({entry.completion_date for entry in entries}),
        document["total_unbonding"],
    )
    return document


__all__ = [
    "PendingEntry",
    "build_schedule",
    "collect_entries",
    "fetch_pending_entries",
    "run_pending_unbonding",
]
