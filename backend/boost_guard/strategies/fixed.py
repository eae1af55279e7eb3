"""
Fixed strategy: every recipient may claim the same amount
"""
from typing import Any, Mapping

from pydantic import BaseModel, field_validator

from boost_guard.models.boost import Boost, parse_amount

NAME = "fixed"


class FixedParams(BaseModel):
    amount: int

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount_field(cls, v: Any) -> int:
        value = parse_amount(v)
        if value < 0:
            raise ValueError("amount must be non-negative")
        return value


def evaluate(boost: Boost, recipient: str, params: FixedParams, as_of: int,
             facts: Mapping[str, Any]) -> int:
    return params.amount
