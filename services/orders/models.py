"""Order models: local intents and server-authoritative orders."""

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# RFC3339 with more than microsecond precision (the backend emits nanoseconds)
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderIntent(BaseModel):
    """What the user asked for; validated locally before any network call."""
    model_config = ConfigDict(str_strip_whitespace=True)

    symbol: str
    side: OrderSide
    quantity: Optional[int] = None
    price: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.upper()

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class Order(BaseModel):
    """An order as recorded by the server. Immutable once returned."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    user_id: Optional[str] = Field(default=None, alias="userId")
    symbol: str
    side: OrderSide
    quantity: int = Field(gt=0)
    price: Decimal
    submitted_at: datetime = Field(alias="timestamp")
    status: str

    @field_validator("submitted_at", mode="before")
    @classmethod
    def trim_nanoseconds(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _EXCESS_FRACTION.sub(r"\1", v)
        return v

    @property
    def notional(self) -> Decimal:
        return self.price * self.quantity
