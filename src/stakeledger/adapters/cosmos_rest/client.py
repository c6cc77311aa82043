"""Async client for the Cosmos SDK REST endpoint."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from stakeledger.adapters.http_resilience import default_client_factory

from .schema import (
    GetTxResponse,
    UnbondingDelegationsResponse,
    UnbondingResponse,
    ValidatorPayload,
    ValidatorResponse,
    ValidatorsResponse,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from types import TracebackType

    from stakeledger.adapters.http_resilience import ResilientClient
    from stakeledger.config.http_resilience import ResilienceConfig
    from stakeledger.config.ingest import RestConfig
    from stakeledger.domain.ports.fetching import ValidatorLookup

log = getLogger(__name__)

STAKING_PATH = "/cosmos/staking/v1beta1"
TX_PATH = "/cosmos/tx/v1beta1/txs"
PAGE_LIMIT = 100


class CosmosRest:
    """Thin typed wrapper around the staking and tx REST routes."""

    def __init__(
        self,
        resilience: ResilienceConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] = default_client_factory,
    ) -> None:
        self._client = client_factory(resilience)

    async def __aenter__(self) -> CosmosRest:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self._client.aclose()

    async def validator(self, address: str) -> ValidatorPayload:
        payload = await self._client.get_json(f"{STAKING_PATH}/validators/{address}")
        return ValidatorResponse.model_validate(payload).validator

    async def bonded_validators(self, *, max_pages: int = 10) -> list[ValidatorPayload]:
        validators: list[ValidatorPayload] = []
        next_key: str | None = None
        for _ in range(max_pages):
            params: dict[str, str | int] = {
                "status": "BOND_STATUS_BONDED",
                "pagination.limit": PAGE_LIMIT,
            }
            if next_key:
                params["pagination.key"] = next_key
            payload = await self._client.get_json(f"{STAKING_PATH}/validators", params=params)
            page = ValidatorsResponse.model_validate(payload)
            validators.extend(page.validators)
            next_key = page.pagination.next_key if page.pagination else None
            if not next_key or not page.validators:
                break
        log.info("Fetched %s bonded validators", len(validators))
        return validators

    async def unbonding_delegations(
        self, valoper: str, *, max_pages: int = 20
    ) -> list[UnbondingResponse]:
        responses: list[UnbondingResponse] = []
        next_key: str | None = None
        for _ in range(max_pages):
            params: dict[str, str | int] = {"pagination.limit": PAGE_LIMIT}
            if next_key:
                params["pagination.key"] = next_key
            payload = await self._client.get_json(
                f"{STAKING_PATH}/validators/{valoper}/unbonding_delegations", params=params
            )
            page = UnbondingDelegationsResponse.model_validate(payload)
            responses.extend(page.unbonding_responses)
            next_key = page.pagination.next_key if page.pagination else None
            if not next_key or not page.unbonding_responses:
                break
        return responses

    async def tx(self, txhash: str) -> GetTxResponse:
        payload = await self._client.get_json(f"{TX_PATH}/{txhash}")
        return GetTxResponse.model_validate(payload)


@dataclass(slots=True)
class RestValidatorLookup:
    """Resolve validator monikers one request per address; failures are skipped."""

    config: RestConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )

    def __call__(self, addresses: Iterable[str]) -> dict[str, str]:
        return asyncio.run(self._lookup(list(addresses)))

    async def _lookup(self, addresses: list[str]) -> dict[str, str]:
        async with CosmosRest(self.config.resilience, client_factory=self.client_factory) as rest:
            results = await asyncio.gather(
                *(self._moniker(rest, address) for address in addresses)
            )
        return {
            address: moniker
            for address, moniker in zip(addresses, results, strict=True)
            if moniker
        }

    async def _moniker(self, rest: CosmosRest, address: str) -> str:
        try:
            validator = await rest.validator(address)
        except (httpx.HTTPError, ValidationError) as exc:
            log.warning("Validator lookup failed for %s: %s", address, exc)
            return ""
        return validator.description.moniker.strip()


if TYPE_CHECKING:
    _lookup_check: ValidatorLookup = RestValidatorLookup(config=RestConfig())
