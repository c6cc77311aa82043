"""Settings for the pending-unbonding and unbonding-flow derivations."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int

DEFAULT_VALIDATOR_PAGES = 10
DEFAULT_UNBONDING_PAGES = 20
DEFAULT_BATCH_SIZE = 5
DEFAULT_FLOW_MIN_AMOUNT = 1000.0
DEFAULT_MEMO_MIN_AMOUNT = 1000.0
DEFAULT_MAX_DELEGATORS = 50
DEFAULT_LOOKBACK_DAYS = 3
ARCHIVE_KEEP_DAYS = 365
REUSE_TRACKED_PCT = 50.0


@dataclass(frozen=True, slots=True)
class PendingUnbondingConfig:
    min_amount: float = 100.0
    batch_size: int = DEFAULT_BATCH_SIZE
    validator_pages: int = DEFAULT_VALIDATOR_PAGES
    unbonding_pages: int = DEFAULT_UNBONDING_PAGES


@dataclass(frozen=True, slots=True)
class UnbondingFlowConfig:
    flow_min_amount: float = DEFAULT_FLOW_MIN_AMOUNT
    memo_min_amount: float = DEFAULT_MEMO_MIN_AMOUNT
    max_delegators: int = DEFAULT_MAX_DELEGATORS
    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    batch_size: int = 3
    recent_tx_limit: int = 10


def get_pending_unbonding_config() -> PendingUnbondingConfig:
    return PendingUnbondingConfig(
        min_amount=env_float("PENDING_MIN_AMOUNT", 100.0),
        batch_size=env_int("BATCH_SIZE", DEFAULT_BATCH_SIZE, minimum=1),
    )


def get_unbonding_flow_config() -> UnbondingFlowConfig:
    return UnbondingFlowConfig(
        flow_min_amount=env_float("FLOW_MIN_AMOUNT", DEFAULT_FLOW_MIN_AMOUNT),
        memo_min_amount=env_float("MEMO_MIN_AMOUNT", DEFAULT_MEMO_MIN_AMOUNT),
        max_delegators=env_int("MAX_DELEGATORS", DEFAULT_MAX_DELEGATORS, minimum=1),
        lookback_days=env_int("LOOKBACK_DAYS", DEFAULT_LOOKBACK_DAYS, minimum=1),
    )
