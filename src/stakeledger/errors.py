"""Exception hierarchy shared by the pipeline stages."""

from __future__ import annotations


class StakeLedgerError(RuntimeError):
    """Base class for fatal pipeline errors."""


class NoProvidersAvailableError(StakeLedgerError):
    """Raised when every configured provider failed during an ingest run."""


class LedgerIntegrityError(StakeLedgerError):
    """Raised when a ledger write would shrink a partition or the ledger total."""

    def __init__(self, message: str, *, partition: str | None = None) -> None:
        super().__init__(message)
        self.partition = partition


class DerivationError(StakeLedgerError):
    """Raised when a dependent derivation subprocess exits unsuccessfully."""

    def __init__(self, message: str, *, name: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.returncode = returncode
