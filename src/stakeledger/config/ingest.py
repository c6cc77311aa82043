"""Ingestion defaults: providers, quorum, overlap and fetch limits."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .env import env_bool, env_float, env_int, env_list, env_str
from .errors import MissingConfigurationError
from .http_resilience import NO_RETRY, CacheConfig, RateLimit, ResilienceConfig

DEFAULT_RPC_PROVIDERS = (
    "https://cosmos-rpc.publicnode.com",
    "https://rpc.cosmos.directory/cosmoshub",
    "https://rpc.silknodes.io/cosmos",
)
DEFAULT_REST_BASE = "https://rest.cosmos.directory/cosmoshub"
DEFAULT_CHAIN_ID = "cosmoshub-4"
DEFAULT_QUORUM_MIN = 2
DEFAULT_OVERLAP_HOURS = 6.0
DEFAULT_LIMIT_PAGES = 10
DEFAULT_EXEC_LIMIT_PAGES = 2
DEFAULT_PER_PAGE = 100
DEFAULT_FEED_MIN = 1.0
DEFAULT_PROVIDER_TIMEOUT_SECONDS = 120.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 15.0

REPAIR_OVERLAP_HOURS = 168.0
REPAIR_LIMIT_PAGES = 20
REPAIR_EXEC_LIMIT_PAGES = 6


@dataclass(frozen=True, slots=True)
class IngestConfig:
    providers: tuple[str, ...] = DEFAULT_RPC_PROVIDERS
    chain_id: str = DEFAULT_CHAIN_ID
    quorum_min: int = DEFAULT_QUORUM_MIN
    overlap_hours: float = DEFAULT_OVERLAP_HOURS
    incremental: bool = True
    limit_pages: int = DEFAULT_LIMIT_PAGES
    exec_limit_pages: int = DEFAULT_EXEC_LIMIT_PAGES
    per_page: int = DEFAULT_PER_PAGE
    feed_min: float = DEFAULT_FEED_MIN
    provider_timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_concurrency: int | None = None
    provider_ratelimit: RateLimit | None = field(
        default_factory=lambda: RateLimit(max_calls=4, per_seconds=1.0)
    )

    def __post_init__(self) -> None:
        # Quorum below one would accept unattested events.
        if self.quorum_min < 1:
            object.__setattr__(self, "quorum_min", 1)

    @property
    def concurrency(self) -> int:
        return max(1, self.max_concurrency or len(self.providers))

    def provider_resilience(self, base_url: str, *, name: str) -> ResilienceConfig:
        return ResilienceConfig(
            name=name,
            base_url=base_url,
            timeout_seconds=self.request_timeout_seconds,
            retry=NO_RETRY,
            ratelimit=self.provider_ratelimit,
            cache=None,
        )

    def widened(self) -> IngestConfig:
        """Return the non-incremental, wide-window variant used by repair runs."""

        return replace(
            self,
            incremental=False,
            overlap_hours=max(self.overlap_hours, REPAIR_OVERLAP_HOURS),
            limit_pages=max(self.limit_pages, REPAIR_LIMIT_PAGES),
            exec_limit_pages=max(self.exec_limit_pages, REPAIR_EXEC_LIMIT_PAGES),
        )


@dataclass(frozen=True, slots=True)
class RestConfig:
    base_url: str = DEFAULT_REST_BASE
    resilience: ResilienceConfig = field(
        default_factory=lambda: rest_resilience(DEFAULT_REST_BASE)
    )


def rest_resilience(base_url: str, *, timeout_seconds: float = 20.0) -> ResilienceConfig:
    return ResilienceConfig(
        name="cosmos-rest",
        base_url=base_url,
        timeout_seconds=timeout_seconds,
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        cache=CacheConfig(),
    )


def get_ingest_config() -> IngestConfig:
    providers = env_list("RPC_PROVIDERS", DEFAULT_RPC_PROVIDERS)
    if not providers:
        raise MissingConfigurationError("RPC_PROVIDERS lists no endpoints")
    return IngestConfig(
        providers=providers,
        chain_id=env_str("CHAIN_ID", DEFAULT_CHAIN_ID),
        quorum_min=max(1, env_int("RPC_QUORUM_MIN", DEFAULT_QUORUM_MIN)),
        overlap_hours=env_float("OVERLAP_HOURS", DEFAULT_OVERLAP_HOURS),
        incremental=env_bool("INCREMENTAL", True),
        limit_pages=env_int("LIMIT_PAGES", DEFAULT_LIMIT_PAGES, minimum=1),
        exec_limit_pages=env_int("EXEC_LIMIT_PAGES", DEFAULT_EXEC_LIMIT_PAGES),
        per_page=env_int("PER_PAGE", DEFAULT_PER_PAGE, minimum=1),
        feed_min=env_float("FEED_MIN", DEFAULT_FEED_MIN),
        provider_timeout_seconds=env_float(
            "PROVIDER_TIMEOUT_SECONDS", DEFAULT_PROVIDER_TIMEOUT_SECONDS
        ),
        request_timeout_seconds=env_float(
            "REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS
        ),
    )


def get_rest_config() -> RestConfig:
    base_url = env_str("REST_BASE", DEFAULT_REST_BASE).rstrip("/")
    return RestConfig(base_url=base_url, resilience=rest_resilience(base_url))
