from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from stakeledger.domain.normalization import (
    Rejection,
    normalize_record,
    normalize_records,
    normalize_type,
    parse_amount,
    resolve_field,
)
from stakeledger.domain.types import Event, EventType
from tests.helpers.events import CHAIN_ID, INGESTED_AT, make_record


def _normalize(record: dict[str, object], source: str = "node-a") -> Event:
    outcome = normalize_record(record, source=source, chain_id=CHAIN_ID, ingested_at=INGESTED_AT)
    assert isinstance(outcome, Event)
    return outcome


def test_same_event_from_differently_shaped_records_converges_on_one_id() -> None:
    first = _normalize(make_record(txhash="abc123", amount="1500.5"), source="node-a")
    second = _normalize(
        {
            "action": "/cosmos.staking.v1beta1.MsgDelegate",
            "tx_hash": "ABC123",
            "message_index": "0",
            "log_index": 0,
            "amount_atom": "1500.500000",
            "block_height": "24000000",
            "delegator_address": "COSMOS1DELEGATOR",
            "validator_address": "cosmosvaloper1validator",
            "block_time": "2025-03-10T11:30:00Z",
        },
        source="node-b",
    )

    assert first.id == second.id
    assert first.source != second.source
    assert second.txhash == "ABC123"
    assert second.delegator == "cosmos1delegator"


def test_different_amounts_produce_different_ids() -> None:
    first = _normalize(make_record(amount="10"))
    second = _normalize(make_record(amount="10.000001"))

    assert first.id != second.id


def test_first_non_blank_alias_wins() -> None:
    record = {"amount_atom": "  ", "amount": "5", "atom": "7"}

    assert resolve_field(record, "amount") == "5"
    assert resolve_field({}, "amount") is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("delegate", EventType.DELEGATE),
        ("/cosmos.staking.v1beta1.MsgDelegate", EventType.DELEGATE),
        ("undelegate", EventType.UNDELEGATE),
        ("unbond", EventType.UNDELEGATE),
        ("MsgUndelegate", EventType.UNDELEGATE),
        ("transfer", None),
        (None, None),
    ],
)
def test_normalize_type(value: object, expected: EventType | None) -> None:
    assert normalize_type(value) is expected


@pytest.mark.parametrize("value", ["0", "-3", "abc", "NaN", "Infinity", None, True, ""])
def test_parse_amount_rejects_non_positive_or_garbage(value: object) -> None:
    assert parse_amount(value) is None


def test_parse_amount_accepts_numbers_and_strings() -> None:
    assert parse_amount("2.5") == Decimal("2.5")
    assert parse_amount(3) == Decimal(3)


def test_rejections_are_counted_by_reason() -> None:
    records = [
        make_record(),
        make_record(event_type="transfer"),
        make_record(amount="0"),
        make_record(timestamp=None, height=0),
    ]

    result = normalize_records(records, source="node-a", chain_id=CHAIN_ID, ingested_at=INGESTED_AT)

    assert len(result.events) == 1
    assert result.rejected == {
        Rejection.UNKNOWN_TYPE: 1,
        Rejection.INVALID_AMOUNT: 1,
        Rejection.UNRESOLVABLE_TIME: 1,
    }
    assert result.rejected_total == 3


def test_record_with_height_but_no_timestamp_is_kept() -> None:
    event = _normalize(make_record(timestamp=None, height=123))

    assert event.timestamp is None
    assert event.height == 123
    assert event.partition_time == INGESTED_AT


def test_nanosecond_block_times_are_parsed() -> None:
    event = _normalize(make_record(timestamp="2025-03-10T11:30:00.123456789Z"))

    assert event.timestamp == datetime(2025, 3, 10, 11, 30, 0, 123456, tzinfo=UTC)
