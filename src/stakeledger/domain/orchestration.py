"""Fan one fetch out per provider and fan the outcomes back in.

Each provider runs in its own task with its own timeout. A failing or hanging
provider becomes a ``ProviderRun(ok=False)``; it never cancels or delays the
others beyond the shared concurrency bound.
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from stakeledger.domain.types import ProviderRun

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stakeledger.domain.ports.fetching import FetchRequest, ProviderFetcher

log = getLogger(__name__)

DEFAULT_PROVIDER_TIMEOUT_SECONDS = 120.0


def unique_names(fetchers: Sequence[ProviderFetcher]) -> list[str]:
    """Provider names, suffixed where two endpoints share a host."""

    names: list[str] = []
    counts: dict[str, int] = {}
    for fetcher in fetchers:
        base = fetcher.name
        counts[base] = counts.get(base, 0) + 1
        names.append(base if counts[base] == 1 else f"{base}#{counts[base]}")
    return names


async def _run_provider(
    fetcher: ProviderFetcher,
    request: FetchRequest,
    *,
    name: str,
    semaphore: asyncio.Semaphore,
    timeout_seconds: float,
) -> ProviderRun:
    async with semaphore:
        try:
            async with asyncio.timeout(timeout_seconds):
                records = await fetcher.fetch(request)
        except TimeoutError:
            error = f"timed out after {timeout_seconds:g}s"
            log.warning("Provider %s %s", name, error)
            return ProviderRun(provider=name, endpoint=fetcher.endpoint, ok=False, error=error)
        except Exception as exc:  # noqa: BLE001
            error = str(exc) or type(exc).__name__
            log.warning("Provider %s failed: %s", name, error)
            return ProviderRun(provider=name, endpoint=fetcher.endpoint, ok=False, error=error)
    log.info("Provider %s returned %s raw records", name, len(records))
    return ProviderRun(
        provider=name, endpoint=fetcher.endpoint, ok=True, raw_events=list(records)
    )


async def fetch_all_async(
    fetchers: Sequence[ProviderFetcher],
    request: FetchRequest,
    *,
    concurrency: int | None = None,
    timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
) -> list[ProviderRun]:
    semaphore = asyncio.Semaphore(max(1, concurrency or len(fetchers)))
    names = unique_names(fetchers)
    runs = await asyncio.gather(
        *(
            _run_provider(
                fetcher,
                request,
                name=name,
                semaphore=semaphore,
                timeout_seconds=timeout_seconds,
            )
            for fetcher, name in zip(fetchers, names, strict=True)
        )
    )
    return list(runs)


def fetch_all(
    fetchers: Sequence[ProviderFetcher],
    request: FetchRequest,
    *,
    concurrency: int | None = None,
    timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
) -> list[ProviderRun]:
    """Run every provider fetch to completion, in configured order."""

    if not fetchers:
        return []
    return asyncio.run(
        fetch_all_async(
            fetchers, request, concurrency=concurrency, timeout_seconds=timeout_seconds
        )
    )


__all__ = ["fetch_all", "fetch_all_async", "unique_names"]
