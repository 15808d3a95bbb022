from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import requests

from app.errors import ParseError
from app.integrations.http import get_checked
from app.schemas.quote import Market, Quote, to_decimal


class QuoteApiAdapter:
    """JSON quote REST client, one request per identifier."""

    def __init__(
        self,
        source_id: str,
        base_url: str,
        market: Market | str,
        *,
        timeout: float = 10.0,
        session: Optional[Any] = None,
    ) -> None:
        self.source_id = source_id
        self.base_url = base_url.rstrip("/")
        self.market = Market(market)
        self.timeout = timeout
        self.session = session or requests

    @staticmethod
    def _to_volume(value: Any) -> int | None:
        try:
            if value is None or value == "":
                return None
            volume = int(float(str(value).replace(",", "")))
        except (TypeError, ValueError):
            return None
        return volume if volume >= 0 else None

    def fetch_one(self, identifier: str) -> Quote:
        response = get_checked(
            self.session,
            f"{self.base_url}/quotes/{identifier}",
            source=self.source_id,
            timeout=self.timeout,
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(f"invalid JSON for {identifier}", source=self.source_id) from exc
        if not isinstance(payload, dict):
            raise ParseError(f"unexpected payload for {identifier}", source=self.source_id)

        price = to_decimal(payload.get("price"), Decimal("-1"))
        if price < 0:
            raise ParseError(f"missing price for {identifier}", source=self.source_id)

        return Quote.for_market(
            self.market,
            symbol=str(payload.get("symbol") or identifier),
            display_name=str(payload.get("name") or ""),
            price=price,
            change=to_decimal(payload.get("change")),
            change_percent=to_decimal(payload.get("changePercent", payload.get("change_pct"))),
            volume=self._to_volume(payload.get("volume")),
            source=self.source_id,
        )
