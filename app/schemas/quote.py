from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_TWO_PLACES = Decimal("0.01")


class Market(str, Enum):
    NIGERIA = "nigeria"
    KENYA = "kenya"
    RWANDA = "rwanda"


class MarketClass(str, Enum):
    PRIMARY = "primary-region"
    SECONDARY = "secondary-region"


MARKET_CURRENCY: dict[Market, str] = {
    Market.NIGERIA: "NGN",
    Market.KENYA: "KES",
    Market.RWANDA: "RWF",
}

MARKET_CLASS: dict[Market, MarketClass] = {
    Market.NIGERIA: MarketClass.PRIMARY,
    Market.KENYA: MarketClass.PRIMARY,
    Market.RWANDA: MarketClass.SECONDARY,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    try:
        if value is None or value == "":
            return default
        parsed = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return default
    return parsed if parsed.is_finite() else default


class Quote(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symbol: str = Field(min_length=1)
    display_name: str = ""
    price: Decimal = Field(ge=0)
    change: Decimal = Decimal("0")
    change_percent: Decimal = Decimal("0")
    volume: int | None = Field(default=None, ge=0)
    partition: Market
    currency: str = Field(pattern=r"^[A-Z]{3}$")
    market_class: MarketClass = Field(alias="class")
    captured_at: datetime = Field(default_factory=utcnow)
    source: str = "unknown"
    synthetic: bool = False

    @field_validator("symbol", "display_name", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("price", "change", "change_percent")
    @classmethod
    def quantize(cls, value: Decimal) -> Decimal:
        return value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("display_name"):
            data["display_name"] = data.get("symbol", "")
        # a zero price, as stored after rounding, has no meaningful relative move
        price = to_decimal(data.get("price"), Decimal("-1"))
        if price.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP) == 0:
            data["change_percent"] = Decimal("0")
        return data

    @classmethod
    def for_market(cls, market: Market | str, **fields: Any) -> "Quote":
        market = Market(market)
        fields.setdefault("currency", MARKET_CURRENCY[market])
        fields.setdefault("market_class", MARKET_CLASS[market])
        return cls(partition=market, **fields)

    def public_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
