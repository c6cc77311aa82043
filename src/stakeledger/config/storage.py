"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DEFAULT_DATA_DIR: Final[str] = "data"
LEDGER_DIR_NAME: Final[str] = "ledger"
STATE_FILENAME: Final[str] = "state.json"
SOURCE_STATUS_FILENAME: Final[str] = "source-status.json"
FEED_FILENAME: Final[str] = "delegation_feed.json"
RAW_EXPORT_FILENAME: Final[str] = "delegation-events-raw.json"
HOURLY_FILENAME: Final[str] = "delegation-flow-hourly.json"
DAILY_FILENAME: Final[str] = "delegation-flow-daily.json"
WHALE_FILENAME: Final[str] = "whale-events.json"
PENDING_FILENAME: Final[str] = "pending-unbonding.json"
UNBONDING_FLOWS_FILENAME: Final[str] = "unbonding-flows.json"
UNDELEGATION_ARCHIVE_FILENAME: Final[str] = "undelegation-archive.json"
UNDELEGATION_HISTORY_FILENAME: Final[str] = "undelegation-history.json"
HEALTH_FILENAME: Final[str] = "ingestion-health.json"
VALIDATOR_CACHE_FILENAME: Final[str] = "validator_cache.json"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"
STATE_ARTIFACT: Final[str] = f"{LEDGER_DIR_NAME}/{STATE_FILENAME}"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def artifact(self, filename: str) -> Path:
        return self.resolve_data_dir() / filename

    @property
    def ledger_dir(self) -> Path:
        return self.resolve_data_dir() / LEDGER_DIR_NAME

    @property
    def state_path(self) -> Path:
        return self.ledger_dir / STATE_FILENAME

    @property
    def source_status_path(self) -> Path:
        return self.artifact(SOURCE_STATUS_FILENAME)

    @property
    def feed_path(self) -> Path:
        return self.artifact(FEED_FILENAME)

    @property
    def raw_export_path(self) -> Path:
        return self.artifact(RAW_EXPORT_FILENAME)

    @property
    def hourly_path(self) -> Path:
        return self.artifact(HOURLY_FILENAME)

    @property
    def daily_path(self) -> Path:
        return self.artifact(DAILY_FILENAME)

    @property
    def whale_path(self) -> Path:
        return self.artifact(WHALE_FILENAME)

    @property
    def pending_path(self) -> Path:
        return self.artifact(PENDING_FILENAME)

    @property
    def unbonding_flows_path(self) -> Path:
        return self.artifact(UNBONDING_FLOWS_FILENAME)

    @property
    def undelegation_archive_path(self) -> Path:
        return self.artifact(UNDELEGATION_ARCHIVE_FILENAME)

    @property
    def undelegation_history_path(self) -> Path:
        return self.artifact(UNDELEGATION_HISTORY_FILENAME)

    @property
    def health_path(self) -> Path:
        return self.artifact(HEALTH_FILENAME)

    @property
    def validator_cache_path(self) -> Path:
        return self.artifact(VALIDATOR_CACHE_FILENAME)

    @property
    def http_cache_path(self) -> Path:
        return self.artifact(HTTP_CACHE_FILENAME)


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("STAKELEDGER_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else Path(DEFAULT_DATA_DIR)
    return StorageConfig(data_dir=data_dir)
