"""Public interface for the Tendermint RPC adapter."""

from __future__ import annotations

from .client import (
    TendermintProvider,
    TendermintRpcError,
    provider_name,
    scan_plan,
    search_txs,
)
from .schema import BlockResponse, TxPayload, TxSearchResponse
from .translator import parse_uatom, records_from_tx

__all__ = [
    "BlockResponse",
    "TendermintProvider",
    "TendermintRpcError",
    "TxPayload",
    "TxSearchResponse",
    "parse_uatom",
    "provider_name",
    "records_from_tx",
    "scan_plan",
    "search_txs",
]
