"""
Boost, Token and Strategy domain models (read-only views of registry data)
"""
import re
from typing import Any, Optional, Tuple

from pydantic import (BaseModel, ConfigDict, Field, field_serializer,
                      field_validator, model_validator)

from boost_guard.core.errors import InvalidRecipient


# 0x-prefixed hex is case-insensitive; other chain encodings (base58, bech32) are not
HEX_RECIPIENT = re.compile(r"^0x[0-9a-f]+$", re.IGNORECASE)


def normalize_recipient(recipient: Optional[str]) -> str:
    """Canonical form of a chain-native recipient string"""
    text = (recipient or "").strip()
    if not text:
        raise InvalidRecipient("recipient is required", details={"recipient": recipient})
    if HEX_RECIPIENT.match(text):
        return text.lower()
    return text


def parse_amount(value: Any) -> int:
    """Parse a decimal-string (or int) amount in token base units"""
    if isinstance(value, bool):
        raise ValueError("amount must be a decimal string or integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return int(text)
        if text.startswith("-") and text[1:].isdigit():
            return int(text)
    raise ValueError(f"amount must be a decimal string or integer, got {value!r}")


class Token(BaseModel):
    """Token metadata, immutable once resolved"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    address: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = Field(default=None, ge=0, le=255)

    @field_validator("address")
    @classmethod
    def normalize_address(cls, v: str) -> str:
        return v.strip().lower()


class Strategy(BaseModel):
    """Strategy reference attached to a boost; params are validated lazily"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    strategy: Optional[str] = None
    params: Any = None


class Boost(BaseModel):
    """Funded, time-bounded incentive pool"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(..., ge=0)
    chain_id: int = Field(..., gt=0, alias="chainId")
    strategy_uri: str = Field(default="", alias="strategyURI")
    balance: int
    guard: str
    start: int
    end: int
    owner: str
    token: Token
    strategy: Optional[Strategy] = None

    @field_validator("balance", mode="before")
    @classmethod
    def parse_balance(cls, v: Any) -> int:
        amount = parse_amount(v)
        if amount < 0:
            raise ValueError("balance must be non-negative")
        return amount

    @field_validator("guard", "owner")
    @classmethod
    def normalize_address(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def check_window(self) -> "Boost":
        if self.start > self.end:
            raise ValueError(f"boost start {self.start} is after end {self.end}")
        return self

    @field_serializer("balance")
    def serialize_balance(self, balance: int) -> str:
        return str(balance)

    @property
    def key(self) -> Tuple[int, int]:
        return self.id, self.chain_id

    @property
    def strategy_name(self) -> Optional[str]:
        return self.strategy.strategy if self.strategy else None

    def is_active(self, as_of: int) -> bool:
        """Whether claims are eligible at `as_of` (bounds inclusive)"""
        return self.start <= as_of <= self.end
