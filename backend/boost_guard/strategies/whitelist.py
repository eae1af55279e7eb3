"""
Whitelist strategy: each listed recipient may claim a fixed amount
"""
from typing import Any, Dict, Mapping

from pydantic import BaseModel, field_validator

from boost_guard.core.errors import InvalidRecipient
from boost_guard.models.boost import Boost, normalize_recipient, parse_amount

NAME = "whitelist"


class WhitelistParams(BaseModel):
    recipients: Dict[str, int]

    @field_validator("recipients", mode="before")
    @classmethod
    def parse_recipients(cls, v: Any) -> Dict[str, int]:
        if not isinstance(v, dict):
            raise ValueError("recipients must be a mapping of address to amount")
        parsed = {}
        for address, amount in v.items():
            value = parse_amount(amount)
            if value < 0:
                raise ValueError(f"negative amount for {address}")
            try:
                parsed[normalize_recipient(str(address))] = value
            except InvalidRecipient as e:
                raise ValueError(e.message) from e
        return parsed


def evaluate(boost: Boost, recipient: str, params: WhitelistParams, as_of: int,
             facts: Mapping[str, Any]) -> int:
    return params.recipients.get(normalize_recipient(recipient), 0)
