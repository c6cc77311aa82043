"""File-backed adapters: ledger partitions, JSON artifacts and the validator directory."""

from __future__ import annotations

from .artifacts import JsonArtifactStore
from .ledger import JsonlLedger
from .validator_directory import ValidatorDirectory

__all__ = ["JsonArtifactStore", "JsonlLedger", "ValidatorDirectory"]
