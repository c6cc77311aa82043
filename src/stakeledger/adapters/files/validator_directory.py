"""Persisted validator address -> moniker store."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from stakeledger.common.storage import read_json, write_json_atomic

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from stakeledger.domain.ports.fetching import ValidatorLookup

log = getLogger(__name__)


@dataclass(slots=True)
class ValidatorDirectory:
    """Key-value store handed explicitly to the stages that need monikers."""

    names: dict[str, str] = field(default_factory=dict[str, str])

    @classmethod
    def load(cls, path: Path) -> ValidatorDirectory:
        payload = read_json(path) or {}
        names = {
            str(address): value
            for address, value in payload.items()
            if isinstance(value, str) and value
        }
        log.debug("Loaded %s cached validator names", len(names))
        return cls(names=names)

    def save(self, path: Path) -> None:
        write_json_atomic(path, dict(sorted(self.names.items())))

    def get(self, address: str) -> str:
        return self.names.get(address, "")

    def remember(self, address: str, name: str) -> None:
        if address and name:
            self.names[address] = name

    def missing(self, addresses: Iterable[str]) -> list[str]:
        return sorted({address for address in addresses if address and address not in self.names})

    def fill(self, addresses: Iterable[str], lookup: ValidatorLookup | None) -> int:
        """Resolve unknown ``addresses`` through ``lookup``; return how many were found."""

        unknown = self.missing(addresses)
        if not unknown or lookup is None:
            return 0
        resolved = lookup(unknown)
        for address, name in resolved.items():
            self.remember(address, name)
        log.info("Resolved %s of %s unknown validator names", len(resolved), len(unknown))
        return len(resolved)
