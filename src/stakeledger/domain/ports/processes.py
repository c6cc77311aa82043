"""Port for dependent derivations that run outside this process."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


@runtime_checkable
class DerivationRunner(Protocol):
    """Run ``command``; raise ``DerivationError`` unless it exits with status 0."""

    def __call__(
        self,
        name: str,
        command: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> None: ...


__all__ = ["DerivationRunner"]
