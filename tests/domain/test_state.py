from __future__ import annotations

from datetime import UTC, datetime

from stakeledger.domain.state import RunState, RunStats


def test_state_round_trips_through_json() -> None:
    state = RunState(
        last_ingest_at=datetime(2025, 3, 10, 12, tzinfo=UTC),
        next_cursor=datetime(2025, 3, 10, 6, tzinfo=UTC),
        overlap_hours=6.0,
        incremental=True,
        stats=RunStats(appended=4, ledger_rows_after=40),
    )

    payload = state.to_json()
    restored = RunState.from_json(payload)

    assert payload["next_cursor"] == "2025-03-10T06:00:00.000Z"
    assert restored is not None
    assert restored.next_cursor == state.next_cursor
    assert restored.last_ingest_at == state.last_ingest_at
    assert restored.ledger_rows == 40
    assert restored.stats.appended == 4


def test_missing_or_partial_state_is_ignored() -> None:
    assert RunState.from_json(None) is None
    assert RunState.from_json({}) is None
    assert RunState.from_json({"last_ingest_at": "2025-03-10T12:00:00Z"}) is None
    assert RunState.from_json({"last_ingest_at": "garbage", "next_cursor": "garbage"}) is None


def test_bogus_stats_fall_back_to_defaults() -> None:
    restored = RunState.from_json(
        {
            "last_ingest_at": "2025-03-10T12:00:00Z",
            "next_cursor": "2025-03-10T06:00:00Z",
            "overlap_hours": "six",
            "stats": {"ledger_rows_after": True, "appended": "4"},
        }
    )

    assert restored is not None
    assert restored.overlap_hours == 0.0
    assert restored.ledger_rows == 0
    assert restored.stats.appended == 0
    assert restored.incremental is True
