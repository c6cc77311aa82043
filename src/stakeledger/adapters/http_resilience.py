"""Rate-limited, retrying httpx client used by the RPC and REST adapters."""

from __future__ import annotations

import json
from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import RetryTransport

from stakeledger.config.http_resilience import (
    CacheablePayload,
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
)
from stakeledger.config.storage import get_storage_config

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._types import QueryParamTypes, TimeoutTypes

log = getLogger(__name__)


class AsyncClientOptions(TypedDict, total=False):
    base_url: str
    timeout: TimeoutTypes
    headers: dict[str, str]
    transport: httpx.AsyncBaseTransport


class ResilientClient:
    """One endpoint's client: aiolimiter pacing over an httpx-retries transport.

    REST endpoints can additionally sit behind a hishel cache so repeated
    validator lookups within a run do not hit the gateway again.
    """

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self.requests_sent = 0
        self._limiter: AsyncLimiter | None = _limiter(config.ratelimit)
        self._client = _build_client(config)

    @property
    def name(self) -> str:
        return self.config.name

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        log.debug("%s: closing after %s requests", self.name, self.requests_sent)
        await self._client.aclose()

    async def get(self, url: str, *, params: QueryParamTypes | None = None) -> httpx.Response:
        self.requests_sent += 1
        if self._limiter is None:
            return await self._client.get(url, params=params)
        async with self._limiter:
            return await self._client.get(url, params=params)

    async def get_json(self, url: str, *, params: QueryParamTypes | None = None) -> object:
        """GET ``url`` and decode the body, raising ``httpx.HTTPError`` on failure.

        Non-2xx responses and undecodable bodies both surface as ``httpx`` errors
        so callers can treat every transport or payload failure the same way.
        """

        response = await self.get(url, params=params)
        response.raise_for_status()
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise httpx.DecodingError(
                f"Malformed JSON from {response.request.url}", request=response.request
            ) from exc


def _limiter(ratelimit: RateLimit | None) -> AsyncLimiter | None:
    if ratelimit is None:
        return None
    return AsyncLimiter(ratelimit.max_calls, ratelimit.per_seconds)


def _build_client(config: ResilienceConfig) -> httpx.AsyncClient:
    options: AsyncClientOptions = {
        "timeout": config.timeout_seconds,
        "headers": dict(config.headers),
        "transport": RetryTransport(retry=config.retry.build()),
    }
    if config.base_url is not None:
        options["base_url"] = config.base_url
    if config.cache is None:
        return httpx.AsyncClient(**options)
    return AsyncCacheClient(
        **options,
        storage=_cache_storage(config.cache),
        policy=_cache_policy(config.cache.should_cache),
    )


class _PayloadFilter(BaseFilter[HishelCacheResponse]):
    """Keep gateway error bodies out of the cache."""

    def __init__(self, predicate: CacheablePayload) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if body is None:
            return True
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))


def _cache_storage(config: CacheConfig) -> AsyncSqliteStorage:
    if config.backend == "sqlite":
        storage = get_storage_config()
        storage.ensure_data_dir()
        database_path = str(storage.http_cache_path)
    elif config.backend == "memory":
        database_path = ":memory:"
    else:
        msg = f"Unsupported cache backend: {config.backend}"
        raise ValueError(msg)
    return AsyncSqliteStorage(database_path=database_path, default_ttl=config.ttl_seconds)


def _cache_policy(predicate: CacheablePayload | None) -> FilterPolicy | None:
    if predicate is None:
        return None
    return FilterPolicy(response_filters=[_PayloadFilter(predicate)])


def default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


ClientFactory = Callable[[ResilienceConfig], ResilientClient]

__all__ = [
    "CacheConfig",
    "ClientFactory",
    "RateLimit",
    "ResilienceConfig",
    "ResilientClient",
    "RetryPolicy",
    "default_client_factory",
]
