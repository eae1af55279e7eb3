"""
Status and reward results returned to the query layer
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Status(BaseModel):
    """Claim authorization for one recipient of one boost"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    boost_id: int = Field(..., alias="boostId")
    recipient: str
    amount: int = 0
    chain_id: int = Field(..., alias="chainId")
    guard: str
    sig: Optional[str] = None

    @field_serializer("amount")
    def serialize_amount(self, amount: int) -> str:
        return str(amount)


class Reward(BaseModel):
    """Entitlement of a recipient, without authorization"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    boost_id: int = Field(..., alias="boostId")
    recipient: str
    chain_id: int = Field(..., alias="chainId")
    entitled: int
    issued: int
    claimable: int

    @field_serializer("entitled", "issued", "claimable")
    def serialize_amounts(self, amount: int) -> str:
        return str(amount)
