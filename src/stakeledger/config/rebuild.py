"""Derived-view rebuild and health reconciliation defaults."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field

from .env import env_bool, env_float, env_int

DEFAULT_FEED_KEEP = 1000
DEFAULT_WHALE_FEED_MIN = 50_000.0
DEFAULT_WHALE_FEED_DAYS = 30
DEFAULT_WHALE_EVENT_MIN = 50_000.0
WHALE_EXPORT_DAYS = 365
DEFAULT_RAW_KEEP_DAYS = 365
DEFAULT_HOURLY_KEEP_DAYS = 370
DEFAULT_PENDING_MIN_AMOUNT = 100.0


def _derivation_command(name: str, *args: str) -> tuple[str, ...]:
    return (sys.executable, "-m", "stakeledger.main", name, *args)


@dataclass(frozen=True, slots=True)
class RebuildConfig:
    feed_keep: int = DEFAULT_FEED_KEEP
    whale_feed_min: float = DEFAULT_WHALE_FEED_MIN
    whale_feed_days: int = DEFAULT_WHALE_FEED_DAYS
    whale_event_min: float = DEFAULT_WHALE_EVENT_MIN
    raw_keep_days: int = DEFAULT_RAW_KEEP_DAYS
    hourly_keep_days: int = DEFAULT_HOURLY_KEEP_DAYS
    run_pending: bool = True
    run_unbonding: bool = True
    pending_min_amount: float = DEFAULT_PENDING_MIN_AMOUNT
    pending_command: tuple[str, ...] = field(
        default_factory=lambda: _derivation_command("pending-unbonding")
    )
    unbonding_command: tuple[str, ...] = field(
        default_factory=lambda: _derivation_command("unbonding-flows")
    )


@dataclass(frozen=True, slots=True)
class FreshnessBudget:
    """Maximum acceptable artifact age in minutes."""

    source: int = 30
    feed: int = 30
    pending: int = 90
    unbonding: int = 90
    hourly: int = 30


@dataclass(frozen=True, slots=True)
class HealthConfig:
    budgets: FreshnessBudget = field(default_factory=FreshnessBudget)


def get_rebuild_config() -> RebuildConfig:
    return RebuildConfig(
        feed_keep=env_int("FEED_KEEP", DEFAULT_FEED_KEEP),
        whale_feed_min=env_float("WHALE_FEED_MIN", DEFAULT_WHALE_FEED_MIN),
        whale_feed_days=env_int("WHALE_FEED_DAYS", DEFAULT_WHALE_FEED_DAYS),
        whale_event_min=env_float("WHALE_EVENT_MIN", DEFAULT_WHALE_EVENT_MIN),
        raw_keep_days=env_int("RAW_KEEP_DAYS", DEFAULT_RAW_KEEP_DAYS),
        hourly_keep_days=env_int("HOURLY_KEEP_DAYS", DEFAULT_HOURLY_KEEP_DAYS),
        run_pending=env_bool("RUN_PENDING", True),
        run_unbonding=env_bool("RUN_UNBONDING", True),
        pending_min_amount=env_float("PENDING_MIN_AMOUNT", DEFAULT_PENDING_MIN_AMOUNT),
    )


def get_health_config() -> HealthConfig:
    return HealthConfig(
        budgets=FreshnessBudget(
            source=env_int("FRESHNESS_SOURCE_MINUTES", 30),
            feed=env_int("FRESHNESS_FEED_MINUTES", 30),
            pending=env_int("FRESHNESS_PENDING_MINUTES", 90),
            unbonding=env_int("FRESHNESS_UNBONDING_MINUTES", 90),
            hourly=env_int("FRESHNESS_HOURLY_MINUTES", 30),
        )
    )
