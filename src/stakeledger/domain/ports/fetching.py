"""Ports for fetching raw delegation records and validator metadata."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from stakeledger.domain.types import RawRecord


@dataclass(frozen=True, slots=True)
class FetchRequest:
    """Bounds for one provider scan.

    ``since`` is the re-scan cursor of an incremental run; ``None`` scans the
    full page budget.
    """

    since: datetime | None = None
    limit_pages: int = 10
    exec_limit_pages: int = 2
    per_page: int = 100
    min_amount: float = 1.0


@runtime_checkable
class ProviderFetcher(Protocol):
    """One independently operated read-only node."""

    @property
    def name(self) -> str: ...

    @property
    def endpoint(self) -> str: ...

    async def fetch(self, request: FetchRequest) -> list[RawRecord]: ...


@runtime_checkable
class ValidatorLookup(Protocol):
    """Resolve validator operator addresses to their monikers."""

    def __call__(self, addresses: Iterable[str]) -> dict[str, str]: ...


@runtime_checkable
class ValidatorStore(Protocol):
    """Validator address -> moniker store handed to the stages that need names."""

    def get(self, address: str) -> str: ...

    def remember(self, address: str, name: str) -> None: ...

    def fill(self, addresses: Iterable[str], lookup: ValidatorLookup | None) -> int: ...


__all__ = ["FetchRequest", "ProviderFetcher", "ValidatorLookup", "ValidatorStore"]
