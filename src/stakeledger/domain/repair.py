"""Wide-window recovery run, expressed as an explicit state machine.

    Idle -> WideIngest -> Rebuild -> Reconcile -> Done
                 \\            \\            \\
                  +------------+------------+--> Failed

A failing stage stops the machine; later stages never run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)


class RepairStage(StrEnum):
    IDLE = "idle"
    WIDE_INGEST = "wide_ingest"
    REBUILD = "rebuild"
    RECONCILE = "reconcile"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class RepairOutcome:
    stage: RepairStage
    completed: list[RepairStage] = field(default_factory=list[RepairStage])
    failed_stage: RepairStage | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.stage is RepairStage.DONE


@dataclass(slots=True)
class RepairOrchestrator:
    wide_ingest: Callable[[], object]
    rebuild: Callable[[], object]
    reconcile: Callable[[], object]
    stage: RepairStage = RepairStage.IDLE

    def steps(self) -> tuple[tuple[RepairStage, Callable[[], object]], ...]:
        return (
            (RepairStage.WIDE_INGEST, self.wide_ingest),
            (RepairStage.REBUILD, self.rebuild),
            (RepairStage.RECONCILE, self.reconcile),
        )

    def run(self) -> RepairOutcome:
        if self.stage is not RepairStage.IDLE:
            raise RuntimeError(f"Repair already ran (stage={self.stage})")

        outcome = RepairOutcome(stage=self.stage)
        for stage, step in self.steps():
            self.stage = stage
            log.info("Repair stage %s", stage)
            try:
                step()
            except Exception as exc:  # noqa: BLE001
                log.exception("Repair stage %s failed", stage)
                self.stage = RepairStage.FAILED
                outcome.stage = RepairStage.FAILED
                outcome.failed_stage = stage
                outcome.error = exc
                return outcome
            outcome.completed.append(stage)

        self.stage = RepairStage.DONE
        outcome.stage = RepairStage.DONE
        log.info("Repair completed")
        return outcome


__all__ = ["RepairOrchestrator", "RepairOutcome", "RepairStage"]
