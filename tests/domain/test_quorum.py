from __future__ import annotations

import pytest

from stakeledger.domain.quorum import (
    EvidenceMap,
    count_amount_conflicts,
    effective_quorum,
    reconcile,
)
from tests.helpers.events import failed_run, make_event, ok_run


@pytest.mark.parametrize(
    ("configured", "providers_ok", "expected"),
    [(2, 3, 2), (2, 1, 1), (3, 0, 1), (1, 5, 1), (5, 3, 3)],
)
def test_effective_quorum(configured: int, providers_ok: int, expected: int) -> None:
    assert effective_quorum(configured, providers_ok) == expected


def test_event_needs_distinct_supporters() -> None:
    shared = make_event(txhash="T1")
    lonely = make_event(txhash="T2")
    runs = [
        ok_run("node-a", [shared, lonely]),
        ok_run("node-b", [shared]),
        ok_run("node-c", []),
    ]

    result = reconcile(runs, configured_minimum=2)

    assert result.quorum_required == 2
    assert result.providers_ok == 3
    assert [event.id for event in result.accepted] == [shared.id]
    assert [event.id for event in result.dropped] == [lonely.id]
    assert result.candidates == 2
    assert result.dropped_by_quorum == 1


def test_duplicate_reports_from_one_provider_count_once() -> None:
    event = make_event()
    runs = [ok_run("node-a", [event, event]), ok_run("node-b", [])]

    result = reconcile(runs, configured_minimum=2)

    assert result.evidence.support(event.id) == 1
    assert result.accepted == []


def test_quorum_degrades_when_providers_fail() -> None:
    event = make_event()
    runs = [ok_run("node-a", [event]), failed_run("node-b"), failed_run("node-c")]

    result = reconcile(runs, configured_minimum=2)

    assert result.quorum_required == 1
    assert [accepted.id for accepted in result.accepted] == [event.id]


def test_failed_runs_contribute_no_evidence() -> None:
    event = make_event()
    failed = failed_run("node-b")
    failed.events = [event]

    evidence = reconcile([ok_run("node-a", []), failed], configured_minimum=1).evidence

    assert len(evidence) == 0


def test_average_supporters() -> None:
    evidence = EvidenceMap()
    first = make_event(txhash="T1")
    second = make_event(txhash="T2")
    evidence.add("node-a", first)
    evidence.add("node-b", first)
    evidence.add("node-a", second)

    assert evidence.average_supporters() == 1.5
    assert EvidenceMap().average_supporters() == 0.0


def test_amount_disagreement_is_counted_not_resolved() -> None:
    evidence = EvidenceMap()
    evidence.add("node-a", make_event(txhash="T1", amount="10"))
    evidence.add("node-b", make_event(txhash="T1", amount="10.5"))
    evidence.add("node-a", make_event(txhash="T2", amount="3"))

    assert count_amount_conflicts(evidence) == 1
    assert len(evidence) == 3
