"""Where matured unbondings went: re-staked, bridged, sent to an exchange or held.

Classification looks at each delegator's most recent transactions:

* ``MsgDelegate`` -> ``restaked``
* ``MsgTransfer`` (IBC) -> ``ibc_transfer``, destination chain from the channel
* ``MsgSend`` with a memo and a large enough amount -> ``exchange``
* anything else -> ``held``
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from stakeledger.adapters.cosmos_rest import CosmosRest
from stakeledger.adapters.http_resilience import default_client_factory
from stakeledger.adapters.tendermint import TendermintRpcError, search_txs
from stakeledger.config.derivations import ARCHIVE_KEEP_DAYS, REUSE_TRACKED_PCT
from stakeledger.config.storage import (
    PENDING_FILENAME,
    UNBONDING_FLOWS_FILENAME,
    UNDELEGATION_ARCHIVE_FILENAME,
    UNDELEGATION_HISTORY_FILENAME,
)
from stakeledger.domain.time_windows import days_before, to_iso, utcnow
from stakeledger.errors import DerivationError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from stakeledger.adapters.cosmos_rest import TxMessage
    from stakeledger.adapters.http_resilience import ResilientClient
    from stakeledger.adapters.tendermint import TxPayload
    from stakeledger.config.derivations import UnbondingFlowConfig
    from stakeledger.config.http_resilience import ResilienceConfig
    from stakeledger.domain.ports.persistence import ArtifactStore
    from stakeledger.domain.time_windows import Clock

log = getLogger(__name__)

UATOM_PER_ATOM = Decimal(1_000_000)
MEMO_HINT_LENGTH = 20
TOP_IBC_DESTINATIONS = 5

IBC_CHANNELS: dict[str, str] = {
    "channel-0": "osmosis",
    "channel-141": "osmosis",
    "channel-1": "crypto-org",
    "channel-4": "iris",
    "channel-207": "stride",
    "channel-391": "stride",
    "channel-405": "dydx",
    "channel-569": "celestia",
    "channel-570": "neutron",
    "channel-585": "noble",
}

_FETCH_ERRORS = (httpx.HTTPError, ValidationError, TendermintRpcError)


class FlowClass(StrEnum):
    RESTAKED = "restaked"
    EXCHANGE = "exchange"
    IBC_TRANSFER = "ibc_transfer"
    HELD = "held"


def resolve_ibc_chain(channel: str) -> str:
    return IBC_CHANNELS.get(channel, f"ibc-{channel}")


def _atom(value: str) -> Decimal:
    try:
        return Decimal(value) / UATOM_PER_ATOM
    except ArithmeticError:
        return Decimal(0)


def _amount(value: object) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, int | float | str):
        return Decimal(0)
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        return Decimal(0)
    return amount if amount.is_finite() else Decimal(0)


@dataclass(frozen=True, slots=True)
class Delegator:
    address: str
    amount: Decimal

    @classmethod
    def from_json(cls, payload: object) -> Delegator | None:
        if not isinstance(payload, dict):
            return None
        address = payload.get("address")
        if not isinstance(address, str) or not address:
            return None
        return cls(address=address, amount=_amount(payload.get("amount")))


@dataclass(slots=True)
class DelegatorFlow:
    address: str
    matured: Decimal
    classification: FlowClass = FlowClass.HELD
    amount: Decimal = Decimal(0)
    details: dict[str, str] | None = None

    def to_json(self) -> dict[str, object]:
        return {
            "address": self.address,
            "amount": round(self.matured),
            "classification": self.classification.value,
            "details": self.details,
        }


def message_actions(tx: TxPayload) -> list[str]:
    return [
        action
        for event in tx.tx_result.events
        if event.type == "message"
        for action in event.values("action")
    ]


def _memo_hint(memo: str) -> str:
    if len(memo) <= MEMO_HINT_LENGTH:
        return memo
    return memo[:MEMO_HINT_LENGTH] + "…"


def _uatom_total(message: TxMessage) -> Decimal:
    return sum(
        (_atom(coin.amount) for coin in message.coins() if coin.denom.lower() == "uatom"),
        Decimal(0),
    )


@dataclass(slots=True)
class FlowClassifier:
    rpc: ResilientClient
    rest: CosmosRest
    memo_min_amount: Decimal
    recent_tx_limit: int = 10

    async def classify(self, address: str, matured: Decimal) -> DelegatorFlow:
        flow = DelegatorFlow(address=address, matured=matured)
        try:
            txs = await search_txs(
                self.rpc, f"message.sender='{address}'", per_page=self.recent_tx_limit
            )
        except _FETCH_ERRORS as exc:
            log.warning("Could not list transactions of %s: %s", address, exc)
            return flow

        for tx in txs:
            actions = message_actions(tx)
            if any("MsgDelegate" in a and "MsgUndelegate" not in a for a in actions):
                flow.classification = FlowClass.RESTAKED
                flow.amount = matured
                return flow
            if any("MsgTransfer" in a for a in actions):
                await self._apply_ibc(flow, tx.hash)
                return flow
            if any("MsgSend" in a for a in actions) and await self._apply_exchange(flow, tx.hash):
                return flow
        return flow

    async def _apply_ibc(self, flow: DelegatorFlow, txhash: str) -> None:
        flow.classification = FlowClass.IBC_TRANSFER
        flow.amount = flow.matured
        try:
            detail = await self.rest.tx(txhash)
        except _FETCH_ERRORS as exc:
            log.warning("Could not fetch IBC transfer %s: %s", txhash, exc)
            return
        for message in detail.tx.body.messages:
            if "MsgTransfer" not in message.type_url:
                continue
            amount = _atom(message.token.amount) if message.token else Decimal(0)
            flow.amount = amount or flow.matured
            flow.details = {
                "chain": resolve_ibc_chain(message.source_channel),
                "channel": message.source_channel,
            }
            return

    async def _apply_exchange(self, flow: DelegatorFlow, txhash: str) -> bool:
        try:
            detail = await self.rest.tx(txhash)
        except _FETCH_ERRORS as exc:
            log.warning("Could not fetch send %s: %s", txhash, exc)
            return False
        memo = detail.tx.body.memo.strip()
        if not memo:
            return False
        for message in detail.tx.body.messages:
            if "MsgSend" not in message.type_url:
                continue
            amount = _uatom_total(message)
            if amount >= self.memo_min_amount:
                flow.classification = FlowClass.EXCHANGE
                flow.amount = amount
                flow.details = {"to_address": message.to_address, "memo_hint": _memo_hint(memo)}
                return True
        return False


def merge_archive(
    archive: Mapping[str, object], delegators_by_date: Mapping[str, object]
) -> dict[str, list[object]]:
    """Keep, per date, whichever delegator list is longer."""

    merged: dict[str, list[object]] = {
        date: list(entries) for date, entries in archive.items() if isinstance(entries, list)
    }
    for date, entries in delegators_by_date.items():
        if not isinstance(entries, list):
            continue
        if date not in merged or len(entries) > len(merged[date]):
            merged[date] = list(entries)
    return merged


def prune_archive(archive: dict[str, list[object]], *, cutoff_date: str) -> dict[str, list[object]]:
    return {date: entries for date, entries in sorted(archive.items()) if date >= cutoff_date}


def matured_dates(archive: Mapping[str, object], *, today: str, lookback_days: int) -> list[str]:
    return sorted((date for date in archive if date <= today), reverse=True)[:lookback_days]


def _pct(part: Decimal, whole: Decimal) -> float:
    if whole <= 0:
        return 0.0
    return float(round(part / whole * 100, 1))


def summarize_day(
    date: str,
    delegators: Sequence[Delegator],
    tracked: Sequence[Delegator],
    flows: Sequence[DelegatorFlow],
) -> dict[str, object]:
    total = sum((d.amount for d in delegators), Decimal(0))
    tracked_amount = sum((d.amount for d in tracked), Decimal(0))
    by_class: dict[FlowClass, Decimal] = dict.fromkeys(FlowClass, Decimal(0))
    ibc: defaultdict[str, Decimal] = defaultdict(Decimal)
    for flow in flows:
        by_class[flow.classification] += flow.matured
        if flow.classification is FlowClass.IBC_TRANSFER and flow.details:
            ibc[flow.details["chain"]] += flow.amount or flow.matured

    top_ibc = sorted(ibc.items(), key=lambda item: (-item[1], item[0]))[:TOP_IBC_DESTINATIONS]
    return {
        "date": date,
        "total_matured": round(total),
        "tracked_amount": round(tracked_amount),
        "untracked_amount": round(total - tracked_amount),
        "tracked_pct": _pct(tracked_amount, total),
        "flows": {
            flow_class.value: {"amount": round(amount), "pct": _pct(amount, tracked_amount)}
            for flow_class, amount in by_class.items()
        },
        "top_ibc_destinations": [
            {"chain": chain, "amount": round(amount)} for chain, amount in top_ibc
        ],
        "delegators": [flow.to_json() for flow in flows],
    }


def build_history(archive: Mapping[str, list[object]], *, generated_at: str) -> dict[str, object]:
    totals: list[dict[str, object]] = []
    for date in sorted(archive):
        delegators = [d for d in map(Delegator.from_json, archive[date]) if d is not None]
        totals.append(
            {
                "date": date,
                "amount": round(sum((d.amount for d in delegators), Decimal(0))),
                "delegator_count": len({d.address for d in delegators}),
            }
        )
    return {"generated_at": generated_at, "daily_totals": totals}


def _reusable(flow: Mapping[str, object]) -> bool:
    tracked_pct = flow.get("tracked_pct")
    return isinstance(tracked_pct, int | float) and tracked_pct > REUSE_TRACKED_PCT


def _previous_flows(document: Mapping[str, object] | None) -> dict[str, dict[str, object]]:
    flows = (document or {}).get("daily_flows")
    if not isinstance(flows, list):
        return {}
    return {
        str(flow["date"]): flow
        for flow in flows
        if isinstance(flow, dict) and isinstance(flow.get("date"), str)
    }


@dataclass(slots=True)
class UnbondingFlowResult:
    daily_flows: list[dict[str, object]] = field(default_factory=list[dict[str, object]])
    reused: list[str] = field(default_factory=list[str])
    archive_dates: int = 0


async def _classify_day(
    classifier: FlowClassifier,
    tracked: Sequence[Delegator],
    *,
    batch_size: int,
) -> list[DelegatorFlow]:
    semaphore = asyncio.Semaphore(max(1, batch_size))

    async def one(delegator: Delegator) -> DelegatorFlow:
        async with semaphore:
            return await classifier.classify(delegator.address, delegator.amount)

    return list(await asyncio.gather(*(one(delegator) for delegator in tracked)))


def run_unbonding_flows(
    *,
    artifacts: ArtifactStore,
    rpc_resilience: ResilienceConfig,
    rest_resilience: ResilienceConfig,
    config: UnbondingFlowConfig,
    client_factory: Callable[[ResilienceConfig], ResilientClient] = default_client_factory,
    clock: Clock = utcnow,
) -> UnbondingFlowResult:
    """Classify recently matured unbondings and publish flows, archive and history.

    Raises ``DerivationError`` when the pending-unbonding document is missing.
    """

    pending = artifacts.read(PENDING_FILENAME)
    if pending is None:
        raise DerivationError(
            f"{PENDING_FILENAME} is missing; run pending-unbonding first",
            name="unbonding-flows",
        )

    now = clock()
    generated_at = to_iso(now)
    today = now.date().isoformat()
    delegators_by_date = pending.get("delegators_by_date")
    archive = merge_archive(
        artifacts.read(UNDELEGATION_ARCHIVE_FILENAME) or {},
        delegators_by_date if isinstance(delegators_by_date, dict) else {},
    )
    dates = matured_dates(archive, today=today, lookback_days=config.lookback_days)
    previous = _previous_flows(artifacts.read(UNBONDING_FLOWS_FILENAME))
    result = UnbondingFlowResult()

    async def analyse() -> None:
        async with (
            CosmosRest(rest_resilience, client_factory=client_factory) as rest,
            client_factory(rpc_resilience) as rpc,
        ):
            classifier = FlowClassifier(
                rpc=rpc,
                rest=rest,
                memo_min_amount=Decimal(str(config.memo_min_amount)),
                recent_tx_limit=config.recent_tx_limit,
            )
            for date in dates:
                earlier = previous.get(date)
                if earlier is not None and _reusable(earlier):
                    log.info(
                        "%s: reusing previous analysis (%s%% tracked)", date, earlier["tracked_pct"]
                    )
                    result.daily_flows.append(earlier)
                    result.reused.append(date)
                    continue
                delegators = [d for d in map(Delegator.from_json, archive[date]) if d is not None]
                tracked = sorted(
                    (d for d in delegators if d.amount >= Decimal(str(config.flow_min_amount))),
                    key=lambda d: (d.amount, d.address),
                    reverse=True,
                )[: config.max_delegators]
                flows = await _classify_day(classifier, tracked, batch_size=config.batch_size)
                result.daily_flows.append(summarize_day(date, delegators, tracked, flows))
                log.info("%s: classified %s delegators", date, len(flows))

    if dates:
        asyncio.run(analyse())
    else:
        log.info("No matured unbonding dates yet")

    result.daily_flows.sort(key=lambda flow: str(flow["date"]), reverse=True)
    cutoff_date = days_before(now, ARCHIVE_KEEP_DAYS).date().isoformat()
    archive = prune_archive(archive, cutoff_date=cutoff_date)
    result.archive_dates = len(archive)

    artifacts.write(
        UNBONDING_FLOWS_FILENAME,
        {"generated_at": generated_at, "daily_flows": result.daily_flows},
    )
    artifacts.write(UNDELEGATION_ARCHIVE_FILENAME, archive)
    history = build_history(archive, generated_at=generated_at)
    artifacts.write(UNDELEGATION_HISTORY_FILENAME, history)
    log.info(
        "Unbonding flows: %s dates (%s reused), archive holds %s dates",
        len(result.daily_flows),
        len(result.reused),
        result.archive_dates,
    )
    return result


__all__ = [
    "IBC_CHANNELS",
    "DelegatorFlow",
    "FlowClass",
    "FlowClassifier",
    "UnbondingFlowResult",
    "build_history",
    "matured_dates",
    "merge_archive",
    "prune_archive",
    "resolve_ibc_chain",
    "run_unbonding_flows",
    "summarize_day",
]
