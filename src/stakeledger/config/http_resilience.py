"""Transport settings shared by the Tendermint RPC and Cosmos REST clients."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Literal

import httpx
from httpx_retries import Retry

JSON_HEADERS: Mapping[str, str] = {"accept": "application/json"}

# Public node gateways answer overload with these.
GATEWAY_STATUSES = frozenset({429, 502, 503, 504})

CacheablePayload = Callable[[object], bool]


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Attempts after the first one; ``total=0`` sends each request exactly once."""

    total: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 30.0
    retry_statuses: frozenset[int] = GATEWAY_STATUSES

    def build(self) -> Retry:
        return Retry(
            total=self.total,
            backoff_factor=self.backoff_factor,
            max_backoff_wait=self.max_backoff_wait,
            respect_retry_after_header=True,
            allowed_methods=("GET",),
            status_forcelist=tuple(sorted(self.retry_statuses)),
            retry_on_exceptions=(
                httpx.TimeoutException,
                httpx.NetworkError,
                httpx.RemoteProtocolError,
            ),
        )


# Provider fetches are retried by the next scheduled run, never within one.
NO_RETRY = RetryPolicy(total=0)


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float = 1.0


def is_success_payload(payload: object) -> bool:
    """False for Cosmos gateway error bodies (``{"code": 5, "message": ...}``)."""

    if not isinstance(payload, dict):
        return True
    code = payload.get("code")
    if isinstance(code, int) and code != 0:
        return False
    return "error" not in payload


@dataclass(slots=True, frozen=True)
class CacheConfig:
    """hishel response cache; only worth it for lookups that rarely change."""

    backend: Literal["sqlite", "memory"] = "memory"
    ttl_seconds: float | None = 6 * 3600
    should_cache: CacheablePayload | None = is_success_payload


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 15.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: CacheConfig | None = None
    headers: Mapping[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))
