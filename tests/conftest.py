from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING

import pytest

from stakeledger.adapters.files import JsonArtifactStore, JsonlLedger
from stakeledger.config.storage import LEDGER_DIR_NAME, StorageConfig

if TYPE_CHECKING:
    from stakeledger.domain.time_windows import Clock

FIXED_NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(now: datetime) -> Clock:
    def fixed() -> datetime:
        return now

    return fixed


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def storage_config(data_dir: Path) -> StorageConfig:
    return StorageConfig(data_dir=data_dir)


@pytest.fixture
def artifacts(data_dir: Path) -> JsonArtifactStore:
    return JsonArtifactStore(data_dir)


@pytest.fixture
def ledger(data_dir: Path) -> JsonlLedger:
    return JsonlLedger(data_dir / LEDGER_DIR_NAME)
