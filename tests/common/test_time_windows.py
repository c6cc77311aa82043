from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from stakeledger.domain.time_windows import (
    days_before,
    ensure_utc,
    overlap_cursor,
    parse_iso,
    to_iso,
)


def test_overlap_cursor_trails_run_start() -> None:
    started = datetime(2025, 3, 10, 12, tzinfo=UTC)

    assert overlap_cursor(6, now=started) == datetime(2025, 3, 10, 6, tzinfo=UTC)
    assert overlap_cursor(1.5, now=started) == datetime(2025, 3, 10, 10, 30, tzinfo=UTC)


def test_overlap_cursor_rejects_negative_overlap() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        overlap_cursor(-1, now=datetime(2025, 3, 10, tzinfo=UTC))


def test_days_before_converts_to_utc() -> None:
    cet = timezone(timedelta(hours=1))
    now = datetime(2025, 3, 10, 13, tzinfo=cet)

    assert days_before(now, 30) == datetime(2025, 2, 8, 12, tzinfo=UTC)


def test_days_before_rejects_negative_retention() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        days_before(datetime(2025, 3, 10, tzinfo=UTC), -1)


def test_ensure_utc_treats_naive_as_utc() -> None:
    naive = datetime(2025, 3, 10, 12)  # noqa: DTZ001

    assert ensure_utc(naive) == datetime(2025, 3, 10, 12, tzinfo=UTC)
    assert ensure_utc(naive).tzinfo is UTC


def test_to_iso_renders_milliseconds_and_z() -> None:
    value = datetime(2025, 3, 10, 12, 5, 6, 789999, tzinfo=UTC)

    assert to_iso(value) == "2025-03-10T12:05:06.789Z"
    assert to_iso(datetime(2025, 3, 10)) == "2025-03-10T00:00:00.000Z"  # noqa: DTZ001


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2025-03-10T12:00:00Z", datetime(2025, 3, 10, 12, tzinfo=UTC)),
        ("2025-03-10T14:00:00+02:00", datetime(2025, 3, 10, 12, tzinfo=UTC)),
        ("2025-03-10T12:00:00", datetime(2025, 3, 10, 12, tzinfo=UTC)),
        ("2025-03-10T12:00:00.000000001Z", datetime(2025, 3, 10, 12, tzinfo=UTC)),
        ("2025-03-10T12:00:00.123456789Z", datetime(2025, 3, 10, 12, 0, 0, 123456, tzinfo=UTC)),
        ("yesterday", None),
        ("", None),
        (None, None),
        (1710072000, None),
    ],
)
def test_parse_iso(value: object, expected: datetime | None) -> None:
    assert parse_iso(value) == expected
