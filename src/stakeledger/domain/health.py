"""Roll artifact freshness and provider/quorum health into one status.

Every check resolves to ``ok`` or a failure label. The overall status is ``ok``
when nothing fails, ``degraded`` for one or two failures and ``critical``
beyond that.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from stakeledger.config.storage import (
    FEED_FILENAME,
    HEALTH_FILENAME,
    HOURLY_FILENAME,
    PENDING_FILENAME,
    SOURCE_STATUS_FILENAME,
    UNBONDING_FLOWS_FILENAME,
)
from stakeledger.domain.time_windows import parse_iso, to_iso, utcnow
from stakeledger.domain.types import FreshnessStatus, HealthStatus

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from stakeledger.config.rebuild import FreshnessBudget
    from stakeledger.domain.ports.persistence import ArtifactStore
    from stakeledger.domain.time_windows import Clock

log = getLogger(__name__)

MAX_DEGRADED_FAILURES = 2

FRESHNESS_ARTIFACTS: tuple[tuple[str, str], ...] = (
    ("source", SOURCE_STATUS_FILENAME),
    ("feed", FEED_FILENAME),
    ("pending", PENDING_FILENAME),
    ("unbonding", UNBONDING_FLOWS_FILENAME),
    ("hourly", HOURLY_FILENAME),
)


def minutes_since(value: object, now: datetime) -> int | None:
    generated_at = parse_iso(value)
    if generated_at is None:
        return None
    return round((now - generated_at).total_seconds() / 60)


def classify_freshness(minutes: int | None, budget: int) -> FreshnessStatus:
    if minutes is None:
        return FreshnessStatus.MISSING
    if minutes <= budget:
        return FreshnessStatus.OK
    return FreshnessStatus.STALE


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return 0


def quorum_check(source: Mapping[str, object]) -> HealthStatus:
    quorum = source.get("quorum")
    if not isinstance(quorum, dict):
        return HealthStatus.CRITICAL
    providers_ok = _as_int(quorum.get("providers_ok"))
    required = max(1, _as_int(quorum.get("required")))
    if providers_ok == 0:
        return HealthStatus.CRITICAL
    if providers_ok < required:
        return HealthStatus.DEGRADED
    return HealthStatus.OK


def provider_checks(source: Mapping[str, object]) -> dict[str, str]:
    providers = source.get("providers")
    if not isinstance(providers, dict):
        return {}
    checks: dict[str, str] = {}
    for name, info in sorted(providers.items()):
        ok = isinstance(info, dict) and info.get("ok") is True
        checks[f"provider_{name}"] = (HealthStatus.OK if ok else HealthStatus.DEGRADED).value
    return checks


def rollup(checks: Mapping[str, str]) -> HealthStatus:
    failing = sum(1 for status in checks.values() if status != HealthStatus.OK)
    if failing == 0:
        return HealthStatus.OK
    if failing <= MAX_DEGRADED_FAILURES:
        return HealthStatus.DEGRADED
    return HealthStatus.CRITICAL


def _list_length(document: Mapping[str, object], key: str) -> int:
    value = document.get(key)
    return len(value) if isinstance(value, list) else 0


@dataclass(slots=True)
class HealthReport:
    generated_at: datetime
    overall: HealthStatus
    freshness: dict[str, int | None] = field(default_factory=dict[str, int | None])
    checks: dict[str, str] = field(default_factory=dict[str, str])
    stats: dict[str, int] = field(default_factory=dict[str, int])

    @property
    def failing(self) -> list[str]:
        return [name for name, status in self.checks.items() if status != HealthStatus.OK]

    def to_json(self) -> dict[str, object]:
        return {
            "generated_at": to_iso(self.generated_at),
            "overall": self.overall.value,
            "freshness": self.freshness,
            "checks": self.checks,
            "stats": self.stats,
        }


def reconcile_health(
    *,
    artifacts: ArtifactStore,
    budgets: FreshnessBudget,
    clock: Clock = utcnow,
) -> HealthReport:
    """Recompute health from the published artifacts and write ``ingestion-health.json``."""

    now = clock()
    documents = {name: artifacts.read(filename) or {} for name, filename in FRESHNESS_ARTIFACTS}

    freshness: dict[str, int | None] = {}
    checks: dict[str, str] = {}
    for name, _ in FRESHNESS_ARTIFACTS:
        minutes = minutes_since(documents[name].get("generated_at"), now)
        freshness[f"{name}_mins"] = minutes
        checks[name] = classify_freshness(minutes, getattr(budgets, name)).value

    source = documents["source"]
    checks.update(provider_checks(source))
    checks["quorum"] = quorum_check(source).value

    feed = documents["feed"]
    report = HealthReport(
        generated_at=now,
        overall=rollup(checks),
        freshness=freshness,
        checks=checks,
        stats={
            "feed_total": _as_int(feed.get("total")),
            "delegates": _as_int(feed.get("delegates")),
            "undelegates": _as_int(feed.get("undelegates")),
            "pending_days": _list_length(documents["pending"], "schedule"),
            "unbonding_days": _list_length(documents["unbonding"], "daily_flows"),
        },
    )
    artifacts.write(HEALTH_FILENAME, report.to_json())
    if report.overall is HealthStatus.OK:
        log.info("Health: ok (%s checks)", len(checks))
    else:
        log.warning("Health: %s (failing: %s)", report.overall.value, ", ".join(report.failing))
    return report


__all__ = [
    "FRESHNESS_ARTIFACTS",
    "HealthReport",
    "classify_freshness",
    "minutes_since",
    "provider_checks",
    "quorum_check",
    "reconcile_health",
    "rollup",
]
