"""Staged file writes and tolerant JSON readers.

Every published artifact is written to a sibling temporary file first and then
moved into place with ``os.replace``, so a crash mid-write leaves the previous
version intact.
"""

from __future__ import annotations

import json
import os
import tempfile
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, cast

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

log = getLogger(__name__)


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temporary file in the same directory."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def dump_json(payload: object) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def write_json_atomic(path: Path, payload: object) -> None:
    write_text_atomic(path, dump_json(payload))


def read_json(path: Path) -> dict[str, object] | None:
    """Return the JSON object stored at ``path`` or ``None`` if absent/unreadable."""

    if not path.exists():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.warning("Ignoring unreadable JSON document %s: %s", path, exc)
        return None
    if not isinstance(payload, dict):
        log.warning("Ignoring non-object JSON document %s", path)
        return None
    return cast("dict[str, object]", payload)


def iter_jsonl(path: Path) -> Iterator[dict[str, object]]:
    """Yield JSON objects from a newline-delimited file, skipping malformed lines."""

    if not path.exists():
        return
    malformed = 0
    with path.open(encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped:
                continue
            try:
                row = json.loads(stripped)
            except json.JSONDecodeError:
                malformed += 1
                continue
            if isinstance(row, dict):
                yield cast("dict[str, object]", row)
            else:
                malformed += 1
    if malformed:
        log.warning("Skipped %s malformed line(s) in %s", malformed, path)


def count_lines(path: Path) -> int:
    """Count non-blank lines, malformed ones included."""

    if not path.exists():
        return 0
    with path.open(encoding="utf-8") as handle:
        return sum(1 for line in handle if line.strip())


def encode_jsonl(rows: Iterable[object]) -> str:
    return "".join(
        json.dumps(row, ensure_ascii=False, separators=(",", ":")) + "\n" for row in rows
    )
