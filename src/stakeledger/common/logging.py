"""Shared logging helpers for stakeledger."""

from __future__ import annotations

import logging
import time

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once for a batch run.

    Timestamps are UTC so log lines line up with ``generated_at`` in the
    published artifacts. Pass ``force=True`` to reconfigure during tests.
    """

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%SZ",
        force=force,
    )
    for handler in logging.getLogger().handlers:
        if handler.formatter is not None:
            handler.formatter.converter = time.gmtime
    # httpx logs every request at INFO; page scans would drown the run summary.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
