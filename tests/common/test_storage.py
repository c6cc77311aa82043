from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from stakeledger.common.storage import (
    count_lines,
    encode_jsonl,
    iter_jsonl,
    read_json,
    write_json_atomic,
    write_text_atomic,
)
from stakeledger.config.storage import get_storage_config


def test_storage_config_prefers_explicit_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv("STAKELEDGER_DATA_DIR", str(custom))

    config = get_storage_config()

    assert config.resolve_data_dir() == custom.resolve()
    assert config.state_path == custom.resolve() / "ledger" / "state.json"
    assert config.ensure_data_dir().is_dir()


def test_atomic_write_replaces_content_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "doc.json"

    write_json_atomic(target, {"version": 1})
    write_json_atomic(target, {"version": 2})

    assert read_json(target) == {"version": 2}
    assert [path.name for path in target.parent.iterdir()] == ["doc.json"]


def test_write_text_atomic_uses_unix_newlines(tmp_path: Path) -> None:
    target = tmp_path / "rows.jsonl"

    write_text_atomic(target, encode_jsonl([{"a": 1}, {"b": "é"}]))

    assert target.read_bytes() == '{"a":1}\n{"b":"é"}\n'.encode()


def test_jsonl_reader_skips_malformed_lines(tmp_path: Path) -> None:
    target = tmp_path / "rows.jsonl"
    target.write_text('{"a": 1}\n[1]\nbroken\n\n{"b": 2}\n', encoding="utf-8")

    assert list(iter_jsonl(target)) == [{"a": 1}, {"b": 2}]
    assert count_lines(target) == 4
    assert list(iter_jsonl(tmp_path / "absent.jsonl")) == []
