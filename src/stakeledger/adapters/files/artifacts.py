"""JSON documents stored under the data directory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from stakeledger.common.storage import read_json, write_json_atomic

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path


@dataclass(slots=True)
class JsonArtifactStore:
    directory: Path

    def path_for(self, name: str) -> Path:
        return self.directory / name

    def read(self, name: str) -> dict[str, object] | None:
        return read_json(self.path_for(name))

    def write(self, name: str, payload: Mapping[str, object]) -> None:
        write_json_atomic(self.path_for(name), dict(payload))
