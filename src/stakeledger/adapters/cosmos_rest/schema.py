"""Pydantic models for the Cosmos SDK REST (LCD) endpoints we read."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RestBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Pagination(RestBaseModel):
    next_key: str | None = None


class ValidatorDescription(RestBaseModel):
    moniker: str = ""


class ValidatorPayload(RestBaseModel):
    operator_address: str
    description: ValidatorDescription = Field(default_factory=ValidatorDescription)


class ValidatorResponse(RestBaseModel):
    validator: ValidatorPayload


class ValidatorsResponse(RestBaseModel):
    validators: list[ValidatorPayload] = Field(default_factory=list[ValidatorPayload])
    pagination: Pagination | None = None


class UnbondingEntry(RestBaseModel):
    creation_height: str | None = None
    completion_time: str = ""
    initial_balance: str = "0"
    balance: str = "0"


class UnbondingResponse(RestBaseModel):
    delegator_address: str = ""
    validator_address: str = ""
    entries: list[UnbondingEntry] = Field(default_factory=list[UnbondingEntry])


class UnbondingDelegationsResponse(RestBaseModel):
    unbonding_responses: list[UnbondingResponse] = Field(
        default_factory=list[UnbondingResponse]
    )
    pagination: Pagination | None = None


class Coin(RestBaseModel):
    denom: str = ""
    amount: str = "0"


class TxMessage(RestBaseModel):
    type_url: str = Field(default="", alias="@type")
    to_address: str = ""
    source_channel: str = ""
    token: Coin | None = None
    amount: list[Coin] | Coin | None = None

    def coins(self) -> list[Coin]:
        if self.amount is None:
            return []
        if isinstance(self.amount, Coin):
            return [self.amount]
        return self.amount


class TxBody(RestBaseModel):
    messages: list[TxMessage] = Field(default_factory=list[TxMessage])
    memo: str = ""


class DecodedTx(RestBaseModel):
    body: TxBody = Field(default_factory=TxBody)


class GetTxResponse(RestBaseModel):
    tx: DecodedTx = Field(default_factory=DecodedTx)
