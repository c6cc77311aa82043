from __future__ import annotations

import pytest

from stakeledger import main as main_module
from stakeledger.adapters.cosmos_rest.schema import ValidatorsResponse
from stakeledger.config.errors import ConfigurationError
from stakeledger.domain.repair import RepairOutcome, RepairStage
from stakeledger.errors import DerivationError, NoProvidersAvailableError


def _exit_code(argv: list[str]) -> int | str | None:
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(argv)
    return excinfo.value.code


def test_successful_command_exits_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(main_module.app, "ingest", lambda: calls.append("ingest"))

    assert _exit_code(["ingest"]) == 0
    assert calls == ["ingest"]


def test_hyphenated_commands_dispatch_to_app(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(main_module.app, "pending_unbonding", lambda: calls.append("pending"))
    monkeypatch.setattr(main_module.app, "unbonding_flows", lambda: calls.append("flows"))

    assert _exit_code(["pending-unbonding"]) == 0
    assert _exit_code(["--verbose", "unbonding-flows"]) == 0
    assert calls == ["pending", "flows"]


def test_no_providers_exits_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail() -> None:
        raise NoProvidersAvailableError("No provider returned data")

    monkeypatch.setattr(main_module.app, "ingest", fail)

    assert _exit_code(["ingest"]) == 1


def test_configuration_error_exits_two(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def fail() -> None:
        raise ConfigurationError("RPC_QUORUM_MIN must be an integer, got 'two'")

    monkeypatch.setattr(main_module.app, "rebuild", fail)

    assert _exit_code(["rebuild"]) == 2
    assert "RPC_QUORUM_MIN" in capsys.readouterr().err


def test_malformed_payload_is_a_runtime_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail() -> None:
        ValidatorsResponse.model_validate({"validators": [{"description": {}}]})

    monkeypatch.setattr(main_module.app, "pending_unbonding", fail)

    assert _exit_code(["pending-unbonding"]) == 1


def test_unexpected_error_exits_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail() -> None:
        raise OSError("disk full")

    monkeypatch.setattr(main_module.app, "health", fail)

    assert _exit_code(["health"]) == 1


def test_failed_repair_exits_one(monkeypatch: pytest.MonkeyPatch) -> None:
    outcome = RepairOutcome(
        stage=RepairStage.FAILED,
        completed=[RepairStage.WIDE_INGEST],
        failed_stage=RepairStage.REBUILD,
        error=DerivationError("exited with 1", name="pending-unbonding"),
    )
    monkeypatch.setattr(main_module.app, "repair", lambda: outcome)

    assert _exit_code(["repair"]) == 1


def test_successful_repair_exits_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        main_module.app, "repair", lambda: RepairOutcome(stage=RepairStage.DONE)
    )

    assert _exit_code(["repair"]) == 0


def test_unknown_command_is_a_usage_error() -> None:
    assert _exit_code(["frobnicate"]) == 2
    assert _exit_code([]) == 2
