"""Provider fetcher backed by a Tendermint/CometBFT RPC node."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from stakeledger.adapters.http_resilience import ResilientClient, default_client_factory
from stakeledger.domain.time_windows import parse_iso, to_iso

from .schema import BlockResponse, TxPayload, TxSearchResponse
from .translator import records_from_tx

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from stakeledger.config.http_resilience import ResilienceConfig
    from stakeledger.domain.ports.fetching import FetchRequest
    from stakeledger.domain.types import RawRecord

log = getLogger(__name__)

MSG_DELEGATE = "/cosmos.staking.v1beta1.MsgDelegate"
MSG_UNDELEGATE = "/cosmos.staking.v1beta1.MsgUndelegate"
MSG_EXEC = "/cosmos.authz.v1beta1.MsgExec"

PAGE_OUT_OF_RANGE = "page should be within"
MAX_BLOCK_LOOKUPS = 300


class TendermintRpcError(RuntimeError):
    """Raised when a node answers with a JSON-RPC error object."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True, slots=True)
class ActionScan:
    action: str
    event_types: tuple[str, ...]
    pages: int


def scan_plan(request: FetchRequest) -> tuple[ActionScan, ...]:
    return (
        ActionScan(MSG_DELEGATE, ("delegate",), request.limit_pages),
        ActionScan(MSG_UNDELEGATE, ("unbond",), request.limit_pages),
        ActionScan(MSG_EXEC, ("delegate", "unbond"), request.exec_limit_pages),
    )


def provider_name(endpoint: str) -> str:
    try:
        host = httpx.URL(endpoint).host
    except httpx.InvalidURL:
        host = ""
    return host or endpoint


def _read_payload(response: httpx.Response) -> object:
    # Out-of-range pages come back as HTTP 500 with a JSON-RPC error body.
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        response.raise_for_status()
        raise httpx.DecodingError(
            f"Malformed JSON from {response.request.url}", request=response.request
        ) from exc


async def search_txs(
    client: ResilientClient, query: str, *, page: int = 1, per_page: int = 100
) -> list[TxPayload]:
    """Run one `tx_search` page, newest first; an out-of-range page is empty."""

    params = httpx.QueryParams(
        {
            "query": f"\"{query}\"",
            "prove": "false",
            "page": page,
            "per_page": per_page,
            "order_by": '"desc"',
        }
    )
    response = await client.get("/tx_search", params=params)
    parsed = TxSearchResponse.model_validate(_read_payload(response))
    if parsed.error is not None:
        detail = parsed.error.describe()
        if PAGE_OUT_OF_RANGE in detail:
            return []
        raise TendermintRpcError(detail, code=parsed.error.code)
    response.raise_for_status()
    if parsed.result is None:
        return []
    return parsed.result.txs


class BlockTimes:
    """Per-run memo of block height -> block time."""

    def __init__(self, client: ResilientClient, *, max_lookups: int = MAX_BLOCK_LOOKUPS) -> None:
        self._client = client
        self._max_lookups = max_lookups
        self._times: dict[int, datetime | None] = {}

    async def time_at(self, height: int) -> datetime | None:
        if height in self._times:
            return self._times[height]
        if len(self._times) >= self._max_lookups:
            return None
        self._times[height] = None
        try:
            response = await self._client.get("/block", params={"height": height})
            parsed = BlockResponse.model_validate(_read_payload(response))
        except (httpx.HTTPError, ValidationError) as exc:
            log.debug("Block time lookup failed for height %s: %s", height, exc)
            return None
        if parsed.result is None:
            return None
        block_time = parse_iso(parsed.result.block.header.time)
        self._times[height] = block_time
        return block_time

    async def fill(self, records: list[dict[str, object]]) -> int:
        """Attach block times to records lacking one; return how many were filled."""

        heights = sorted(
            {int(str(record["height"])) for record in records if not record.get("timestamp")},
            reverse=True,
        )
        resolved = await asyncio.gather(*(self.time_at(height) for height in heights))
        by_height = dict(zip(heights, resolved, strict=True))
        filled = 0
        for record in records:
            if record.get("timestamp"):
                continue
            block_time = by_height.get(int(str(record["height"])))
            if block_time is not None:
                record["timestamp"] = to_iso(block_time)
                filled += 1
        return filled


@dataclass(slots=True)
class TendermintProvider:
    endpoint: str
    resilience: ResilienceConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )

    @property
    def name(self) -> str:
        return provider_name(self.endpoint)

    async def fetch(self, request: FetchRequest) -> list[RawRecord]:
        records: list[dict[str, object]] = []
        seen: set[tuple[str, int]] = set()
        async with self.client_factory(self.resilience) as client:
            blocks = BlockTimes(client)
            for scan in scan_plan(request):
                found = await self._scan_action(client, scan, request, blocks)
                for record in found:
                    key = (str(record["txhash"]), int(str(record["event_index"])))
                    if key in seen:
                        continue
                    seen.add(key)
                    records.append(record)
            filled = await blocks.fill(records)
        log.info("%s: %s raw records (%s block times resolved)", self.name, len(records), filled)
        result: list[RawRecord] = list(records)
        return result

    async def _scan_action(
        self,
        client: ResilientClient,
        scan: ActionScan,
        request: FetchRequest,
        blocks: BlockTimes,
    ) -> list[dict[str, object]]:
        min_amount = Decimal(str(request.min_amount))
        records: list[dict[str, object]] = []
        for page in range(1, scan.pages + 1):
            txs = await search_txs(
                client, f"message.action='{scan.action}'", page=page, per_page=request.per_page
            )
            if not txs:
                break
            page_records = [
                record
                for tx in txs
                for record in records_from_tx(
                    tx, event_types=scan.event_types, min_amount=min_amount
                )
            ]
            if request.since is not None and await self._crosses_cursor(
                txs, request.since, blocks
            ):
                records.extend(
                    await self._newer_than(page_records, request.since, blocks)
                )
                log.debug(
                    "%s: %s page %s crosses the cursor, stopping", self.name, scan.action, page
                )
                break
            records.extend(page_records)
        return records

    async def _crosses_cursor(
        self, txs: list[TxPayload], since: datetime, blocks: BlockTimes
    ) -> bool:
        oldest = await blocks.time_at(min(tx.height for tx in txs))
        return oldest is not None and oldest < since

    async def _newer_than(
        self, records: list[dict[str, object]], since: datetime, blocks: BlockTimes
    ) -> list[dict[str, object]]:
        kept: list[dict[str, object]] = []
        for record in records:
            block_time = await blocks.time_at(int(str(record["height"])))
            # Unknown block times stay in; the ledger drops what it already holds.
            if block_time is None or block_time >= since:
                kept.append(record)
        return kept

