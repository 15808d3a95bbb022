from __future__ import annotations

import hashlib
import random
from decimal import Decimal
from enum import Enum

from app.schemas.quote import Market, Quote


class FallbackPolicy(str, Enum):
    """What the aggregator does with a unit that failed or timed out.

    ``fallback-on-failure`` keeps the result count stable by substituting
    synthesized quotes. ``real-data-only`` drops the missing identifiers so no
    synthetic value is ever served.
    """

    FALLBACK_ON_FAILURE = "fallback-on-failure"
    REAL_DATA_ONLY = "real-data-only"


FALLBACK_SOURCE = "fallback"

# symbol -> (display name, price, change, volume)
_BASELINES: dict[Market, dict[str, tuple[str, str, str, int]]] = {
    Market.NIGERIA: {
        "DANGCEM": ("Dangote Cement", "285.00", "2.50", 1250000),
        "MTNN": ("MTN Nigeria", "195.00", "-1.20", 850000),
        "BUACEMENT": ("BUA Cement", "78.50", "0.80", 620000),
        "GTCO": ("Guaranty Trust Holding", "32.50", "0.30", 4500000),
        "SEPLAT": ("Seplat Energy", "2150.00", "15.00", 125000),
    },
    Market.KENYA: {
        "EQTY": ("Equity Group Holdings", "45.50", "0.75", 2500000),
        "KCB": ("KCB Group", "32.25", "-0.50", 1800000),
        "SCOM": ("Safaricom", "18.75", "0.25", 8500000),
        "SCBK": ("Standard Chartered Bank", "165.00", "2.00", 450000),
        "BAMB": ("Bamburi Cement", "35.50", "-0.25", 320000),
    },
    Market.RWANDA: {
        "BK": ("Bank of Kigali", "320.00", "5.00", 15000),
        "BLR": ("Bralirwa", "185.00", "-2.00", 8000),
        "IMR": ("I&M Bank Rwanda", "2100.00", "10.00", 3500),
    },
}


def _percent(change: Decimal, price: Decimal) -> Decimal:
    previous = price - change
    if previous <= 0:
        return Decimal("0")
    return change / previous * 100


class FallbackSynthesizer:
    def baseline_identifiers(self, partition: Market | str) -> list[str]:
        return list(_BASELINES.get(Market(partition), {}))

    def synthesize(self, identifier: str, partition: Market | str) -> Quote:
        market = Market(partition)
        symbol = identifier.strip()
        known = _BASELINES.get(market, {}).get(symbol.upper())
        if known is not None:
            name, price_raw, change_raw, volume = known
            price = Decimal(price_raw)
            change = Decimal(change_raw)
        else:
            name, price, change, volume = symbol, *self._seeded_baseline(symbol, market)

        return Quote.for_market(
            market,
            symbol=symbol,
            display_name=name,
            price=price,
            change=change,
            change_percent=_percent(change, price),
            volume=volume,
            source=FALLBACK_SOURCE,
            synthetic=True,
        )

    @staticmethod
    def _seeded_baseline(symbol: str, market: Market) -> tuple[Decimal, Decimal, int]:
        digest = hashlib.sha256(f"{market.value}:{symbol}".encode("utf-8")).digest()
        rng = random.Random(int.from_bytes(digest[:8], "big"))
        price = Decimal(str(round(rng.uniform(5.0, 500.0), 2)))
        change = Decimal(str(round(price * Decimal(str(rng.uniform(-0.03, 0.03))), 2)))
        volume = rng.randrange(1_000, 1_000_000)
        return price, change, volume
