"""Dependent derivations run by the rebuild as separate processes."""

from __future__ import annotations

from .pending_unbonding import run_pending_unbonding
from .unbonding_flows import run_unbonding_flows

__all__ = ["run_pending_unbonding", "run_unbonding_flows"]
