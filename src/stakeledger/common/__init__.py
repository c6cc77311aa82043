from __future__ import annotations

from .logging import configure_logging
from .storage import read_json, write_json_atomic, write_text_atomic

__all__ = ["configure_logging", "read_json", "write_json_atomic", "write_text_atomic"]
