"""Run dependent derivations as child processes."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from stakeledger.errors import DerivationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from stakeledger.domain.ports.processes import DerivationRunner

log = getLogger(__name__)

_DETAIL_LIMIT = 2000


@dataclass(slots=True)
class SubprocessRunner:
    env: Mapping[str, str] = field(default_factory=dict[str, str])
    timeout_seconds: float | None = 1800.0

    def __call__(
        self,
        name: str,
        command: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        child_env = {**os.environ, **self.env, **(env or {})}
        log.info("Running derivation %s: %s", name, " ".join(command))
        try:
            completed = subprocess.run(  # noqa: S603
                list(command),
                capture_output=True,
                text=True,
                env=child_env,
                timeout=self.timeout_seconds,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise DerivationError(f"Derivation {name} could not run: {exc}", name=name) from exc

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or "").strip()[-_DETAIL_LIMIT:]
            raise DerivationError(
                f"Derivation {name} exited with {completed.returncode}: {detail}",
                name=name,
                returncode=completed.returncode,
            )
        log.info("Derivation %s finished", name)


if TYPE_CHECKING:
    _runner_check: DerivationRunner = SubprocessRunner()
