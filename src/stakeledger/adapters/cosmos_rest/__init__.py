"""Public interface for the Cosmos REST adapter."""

from __future__ import annotations

from .client import CosmosRest, RestValidatorLookup
from .schema import GetTxResponse, TxMessage, UnbondingResponse, ValidatorPayload

__all__ = [
    "CosmosRest",
    "GetTxResponse",
    "RestValidatorLookup",
    "TxMessage",
    "UnbondingResponse",
    "ValidatorPayload",
]
