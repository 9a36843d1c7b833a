"""Multisig event payload schemas.

The parser encodes the parameters of each multisig action as JSON using the
actor's field names. These models validate that JSON at the parser boundary
before the ledger trusts it.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _PayloadModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class ConstructorParams(_PayloadModel):
    signers: list[str] = Field(default_factory=list, alias="Signers")
    threshold: int = Field(default=0, alias="NumApprovalsThreshold")
    locked_balance: str = Field(default="", alias="LockedBalance")
    unlock_duration: int = Field(default=0, alias="UnlockDuration")

    @field_validator("signers", mode="before")
    @classmethod
    def null_signers_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class AddSignerParams(_PayloadModel):
    signer: str = Field(alias="Signer")


class SwapSignerParams(_PayloadModel):
    from_signer: str = Field(alias="From")
    to_signer: str = Field(alias="To")


class RemoveSignerParams(_PayloadModel):
    signer: str = Field(alias="Signer")


class LockBalanceParams(_PayloadModel):
    amount: str = Field(alias="Amount")
    start_epoch: int = Field(default=0, alias="StartEpoch")
    unlock_duration: int = Field(default=0, alias="UnlockDuration")
