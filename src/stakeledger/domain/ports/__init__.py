"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import FetchRequest, ProviderFetcher, ValidatorLookup, ValidatorStore
from .persistence import ArtifactStore, LedgerStorage, StagedPartition
from .processes import DerivationRunner

__all__ = [
    "ArtifactStore",
    "DerivationRunner",
    "FetchRequest",
    "LedgerStorage",
    "ProviderFetcher",
    "StagedPartition",
    "ValidatorLookup",
    "ValidatorStore",
]
