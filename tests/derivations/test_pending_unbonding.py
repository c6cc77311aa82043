from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from stakeledger.adapters.files import JsonArtifactStore  # noqa: TC001
from stakeledger.config.derivations import PendingUnbondingConfig
from stakeledger.config.storage import PENDING_FILENAME
from stakeledger.derivations import run_pending_unbonding
from stakeledger.derivations.pending_unbonding import PendingEntry, build_schedule
from stakeledger.domain.time_windows import Clock  # noqa: TC001
from tests.helpers.http import make_client_factory, resilience_config

VALIDATORS_PATH = "/cosmos/staking/v1beta1/validators"


def _unbonding(delegator: str, *entries: tuple[str, str]) -> dict[str, object]:
    return {
        "delegator_address": delegator,
        "validator_address": "cosmosvaloper1a",
        "entries": [
            {
                "creation_height": "1",
                "completion_time": completion,
                "initial_balance": balance,
                "balance": balance,
            }
            for completion, balance in entries
        ],
    }


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == VALIDATORS_PATH:
        return httpx.Response(
            200,
            json={
                "validators": [
                    {"operator_address": "cosmosvaloper1a", "description": {"moniker": "A"}},
                    {"operator_address": "cosmosvaloper1b", "description": {"moniker": "B"}},
                ],
                "pagination": {"next_key": None},
            },
        )
    if path == f"{VALIDATORS_PATH}/cosmosvaloper1a/unbonding_delegations":
        return httpx.Response(
            200,
            json={
                "unbonding_responses": [
                    _unbonding(
                        "cosmos1a",
                        ("2025-03-20T10:00:00.123456Z", "150000000"),
                        ("2025-03-21T10:00:00Z", "50000000"),
                    ),
                    _unbonding("cosmos1b", ("2025-03-20T18:30:00Z", "300000000")),
                ],
                "pagination": {"next_key": None},
            },
        )
    return httpx.Response(503, json={"message": "unavailable"})


def test_schedule_groups_entries_by_completion_date(
    artifacts: JsonArtifactStore, clock: Clock
) -> None:
    document = run_pending_unbonding(
        artifacts=artifacts,
        resilience=resilience_config(base_url="https://rest.example.org"),
        config=PendingUnbondingConfig(min_amount=100),
        client_factory=make_client_factory(_handler),
        clock=clock,
    )

    assert document == {
        "generated_at": "2025-03-10T12:00:00.000Z",
        "total_unbonding": 450,
        "schedule": [{"date": "2025-03-20", "amount": 450, "delegator_count": 2}],
        "delegators_by_date": {
            "2025-03-20": [
                {"address": "cosmos1b", "amount": 300.0, "validator": "cosmosvaloper1a"},
                {"address": "cosmos1a", "amount": 150.0, "validator": "cosmosvaloper1a"},
            ]
        },
    }
    assert artifacts.read(PENDING_FILENAME) == document


def test_validator_listing_failure_is_fatal(artifacts: JsonArtifactStore, clock: Clock) -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "unavailable"})

    with pytest.raises(httpx.HTTPStatusError):
        run_pending_unbonding(
            artifacts=artifacts,
            resilience=resilience_config(base_url="https://rest.example.org"),
            config=PendingUnbondingConfig(),
            client_factory=make_client_factory(handler),
            clock=clock,
        )

    assert artifacts.read(PENDING_FILENAME) is None


def test_build_schedule_orders_dates() -> None:
    entries = [
        PendingEntry("cosmos1x", "val", Decimal("200.4"), "2025-04-02"),
        PendingEntry("cosmos1y", "val", Decimal("100.6"), "2025-04-01"),
        PendingEntry("cosmos1y", "val2", Decimal("100"), "2025-04-01"),
    ]

    document = build_schedule(entries, generated_at="now")

    schedule = document["schedule"]
    assert isinstance(schedule, list)
    assert [day["date"] for day in schedule] == ["2025-04-01", "2025-04-02"]
    assert [day["delegator_count"] for day in schedule] == [1, 1]
    assert document["total_unbonding"] == 401
