"""Pydantic models describing the Tendermint/CometBFT RPC payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RpcBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EventAttribute(RpcBaseModel):
    key: str
    value: str | None = None


class TxEvent(RpcBaseModel):
    type: str
    attributes: list[EventAttribute] = Field(default_factory=list[EventAttribute])

    def attr(self, key: str) -> str | None:
        for attribute in self.attributes:
            if attribute.key == key:
                return attribute.value
        return None

    def values(self, key: str) -> list[str]:
        return [a.value for a in self.attributes if a.key == key and a.value is not None]


class TxResult(RpcBaseModel):
    code: int = 0
    events: list[TxEvent] = Field(default_factory=list[TxEvent])


class TxPayload(RpcBaseModel):
    hash: str
    height: int
    tx_result: TxResult = Field(default_factory=TxResult)

    @field_validator("height", mode="before")
    @classmethod
    def _parse_height(cls, value: int | str) -> int:
        return int(value)


class TxSearchResult(RpcBaseModel):
    txs: list[TxPayload] = Field(default_factory=list[TxPayload])
    total_count: int = 0

    @field_validator("total_count", mode="before")
    @classmethod
    def _parse_total(cls, value: int | str | None) -> int:
        return int(value or 0)


class RpcError(RpcBaseModel):
    code: int | None = None
    message: str = ""
    data: str | None = None

    def describe(self) -> str:
        return f"{self.message}: {self.data}" if self.data else self.message


class TxSearchResponse(RpcBaseModel):
    result: TxSearchResult | None = None
    error: RpcError | None = None


class BlockHeader(RpcBaseModel):
    time: str
    height: int | None = None


class Block(RpcBaseModel):
    header: BlockHeader


class BlockResult(RpcBaseModel):
    block: Block


class BlockResponse(RpcBaseModel):
    result: BlockResult | None = None
    error: RpcError | None = None
