from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from stakeledger.adapters.files import JsonlLedger
from stakeledger.domain.ledger import LedgerWriter, partition_key, total_rows
from stakeledger.errors import LedgerIntegrityError
from tests.helpers.events import INGESTED_AT, make_event


def test_partition_key_uses_event_time_or_ingestion_time() -> None:
    late_january = make_event(timestamp=datetime(2025, 1, 31, 23, 59, tzinfo=UTC))

    assert partition_key(late_january) == "2025-01"
    assert partition_key(make_event(timestamp=None)) == INGESTED_AT.strftime("%Y-%m")


def test_append_is_idempotent(ledger: JsonlLedger) -> None:
    events = [
        make_event(txhash="T1", timestamp=datetime(2025, 2, 3, tzinfo=UTC)),
        make_event(txhash="T2", timestamp=datetime(2025, 3, 4, tzinfo=UTC)),
    ]
    writer = LedgerWriter(ledger)

    first = writer.append(events)
    second = writer.append(events)

    assert first.appended == 2
    assert sorted(first.partitions_touched) == ["2025-02", "2025-03"]
    assert second.appended == 0
    assert second.skipped_existing == 2
    assert second.partitions_touched == []
    assert total_rows(ledger) == 2
    assert second.rows_before == second.rows_after == 2


def test_rows_are_appended_in_event_order(ledger: JsonlLedger) -> None:
    later = make_event(txhash="LATE", timestamp=datetime(2025, 3, 9, tzinfo=UTC))
    earlier = make_event(txhash="EARLY", timestamp=datetime(2025, 3, 1, tzinfo=UTC))

    LedgerWriter(ledger).append([later, earlier])

    lines = ledger.path_for("2025-03").read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["txhash"] for line in lines] == ["EARLY", "LATE"]


def test_events_without_timestamp_follow_their_ingestion_time(ledger: JsonlLedger) -> None:
    undated = make_event(txhash="UNDATED", timestamp=None)
    before = make_event(txhash="BEFORE", timestamp=INGESTED_AT - timedelta(hours=2))
    after = make_event(txhash="AFTER", timestamp=INGESTED_AT + timedelta(minutes=5))

    LedgerWriter(ledger).append([after, undated, before])

    partition = INGESTED_AT.strftime("%Y-%m")
    lines = ledger.path_for(partition).read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["txhash"] for line in lines] == ["BEFORE", "UNDATED", "AFTER"]


def test_existing_rows_are_preserved_byte_for_byte(ledger: JsonlLedger) -> None:
    writer = LedgerWriter(ledger)
    writer.append([make_event(txhash="T1")])
    path = ledger.path_for("2025-03")
    before = path.read_text(encoding="utf-8")

    writer.append([make_event(txhash="T2")])

    assert path.read_text(encoding="utf-8").startswith(before)


def test_shrunk_ledger_blocks_the_write(ledger: JsonlLedger) -> None:
    writer = LedgerWriter(ledger)
    writer.append([make_event(txhash="T1"), make_event(txhash="T2")])

    with pytest.raises(LedgerIntegrityError):
        writer.append([make_event(txhash="T3")], previous_total=5)

    assert total_rows(ledger) == 2


def test_malformed_lines_are_counted_but_not_loaded(ledger: JsonlLedger) -> None:
    ledger.directory.mkdir(parents=True)
    ledger.path_for("2025-03").write_text('{"id": "a"}\nnot json\n\n', encoding="utf-8")

    assert ledger.row_count("2025-03") == 2
    assert ledger.load_ids("2025-03") == {"a"}
    assert list(ledger.iter_rows()) == [{"id": "a"}]
