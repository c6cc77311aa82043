from __future__ import annotations

from collections.abc import Callable  # noqa: TC003

import httpx

from stakeledger.adapters.http_resilience import ResilienceConfig, ResilientClient

Handler = Callable[[httpx.Request], httpx.Response]


def make_client_factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=resilience.base_url or "https://node.test",
            transport=httpx.MockTransport(async_handler),
        )
        return client

    return factory


def resilience_config(name: str = "test", base_url: str = "https://node.test") -> ResilienceConfig:
    return ResilienceConfig(name=name, base_url=base_url, cache=None)
