"""Quorum reconciliation across independent providers.

Only events attested by enough distinct providers are trusted. The required
number degrades with provider availability instead of halting the run::

    effective = max(1, min(configured_minimum, providers_ok))
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stakeledger.domain.types import Event, ProviderRun


def effective_quorum(configured_minimum: int, providers_ok: int) -> int:
    return max(1, min(configured_minimum, providers_ok))


@dataclass(slots=True)
class EvidenceMap:
    """Event id -> distinct supporting providers, plus one representative per id."""

    supporters: dict[str, set[str]] = field(default_factory=dict[str, set[str]])
    canonical: dict[str, Event] = field(default_factory=dict[str, "Event"])

    def add(self, provider: str, event: Event) -> None:
        self.canonical.setdefault(event.id, event)
        self.supporters.setdefault(event.id, set()).add(provider)

    def support(self, event_id: str) -> int:
        return len(self.supporters.get(event_id, ()))

    def __len__(self) -> int:
        return len(self.canonical)

    def average_supporters(self) -> float:
        if not self.supporters:
            return 0.0
        total = sum(len(providers) for providers in self.supporters.values())
        return round(total / len(self.supporters), 3)


@dataclass(slots=True)
class QuorumResult:
    quorum_required: int
    providers_ok: int
    evidence: EvidenceMap
    accepted: list[Event] = field(default_factory=list["Event"])
    dropped: list[Event] = field(default_factory=list["Event"])
    amount_conflicts: int = 0

    @property
    def candidates(self) -> int:
        return len(self.evidence)

    @property
    def dropped_by_quorum(self) -> int:
        return len(self.dropped)


def build_evidence(runs: Sequence[ProviderRun]) -> EvidenceMap:
    evidence = EvidenceMap()
    for run in runs:
        if not run.ok:
            continue
        for event in run.events:
            evidence.add(run.provider, event)
    return evidence


def count_amount_conflicts(evidence: EvidenceMap) -> int:
    """Count on-chain positions reported with more than one distinct amount.

    The amount is part of the event id, so providers that disagree on it
    produce unrelated ids; this makes the disagreement visible in statistics.
    """

    amounts: defaultdict[tuple[str, int, int, str], set[str]] = defaultdict(set)
    for event in evidence.canonical.values():
        if not event.txhash:
            continue
        position = (event.txhash, event.msg_index, event.event_index, event.type.value)
        amounts[position].add(str(event.amount))
    return sum(1 for values in amounts.values() if len(values) > 1)


def reconcile(runs: Sequence[ProviderRun], *, configured_minimum: int) -> QuorumResult:
    """Accept events whose supporter count reaches the effective quorum."""

    providers_ok = sum(1 for run in runs if run.ok)
    required = effective_quorum(configured_minimum, providers_ok)
    evidence = build_evidence(runs)
    result = QuorumResult(
        quorum_required=required,
        providers_ok=providers_ok,
        evidence=evidence,
        amount_conflicts=count_amount_conflicts(evidence),
    )
    for event_id, event in evidence.canonical.items():
        if evidence.support(event_id) >= required:
            result.accepted.append(event)
        else:
            result.dropped.append(event)
    return result


__all__ = [
    "EvidenceMap",
    "QuorumResult",
    "build_evidence",
    "count_amount_conflicts",
    "effective_quorum",
    "reconcile",
]
