"""Application configuration helpers."""

from __future__ import annotations

from .derivations import (
    PendingUnbondingConfig,
    UnbondingFlowConfig,
    get_pending_unbonding_config,
    get_unbonding_flow_config,
)
from .env import env_bool, env_float, env_int, env_list, env_str
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .ingest import IngestConfig, RestConfig, get_ingest_config, get_rest_config
from .rebuild import (
    FreshnessBudget,
    HealthConfig,
    RebuildConfig,
    get_health_config,
    get_rebuild_config,
)
from .storage import StorageConfig, get_storage_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "MissingConfigurationError",
    "FreshnessBudget",
    "HealthConfig",
    "IngestConfig",
    "PendingUnbondingConfig",
    "RateLimit",
    "RebuildConfig",
    "ResilienceConfig",
    "RestConfig",
    "RetryPolicy",
    "StorageConfig",
    "UnbondingFlowConfig",
    "env_bool",
    "env_float",
    "env_int",
    "env_list",
    "env_str",
    "get_health_config",
    "get_ingest_config",
    "get_pending_unbonding_config",
    "get_rebuild_config",
    "get_rest_config",
    "get_storage_config",
    "get_unbonding_flow_config",
]
