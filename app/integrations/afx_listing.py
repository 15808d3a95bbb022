from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Any, Iterable, Optional

import requests
from bs4 import BeautifulSoup

from app.errors import ParseError
from app.integrations.http import get_checked
from app.schemas.quote import Market, Quote, to_decimal

logger = logging.getLogger(__name__)

_NOT_UNSIGNED = re.compile(r"[^\d.]")
_NOT_SIGNED = re.compile(r"[^\d.-]")


def _parse_price(text: str) -> Decimal:
    return to_decimal(_NOT_UNSIGNED.sub("", text))


def _parse_signed(text: str) -> Decimal:
    return to_decimal(_NOT_SIGNED.sub("", text))


def _parse_volume(text: str) -> int | None:
    digits = text.replace(",", "").strip()
    return int(digits) if digits.isdigit() else None


class AfxListingAdapter:
    """Scrapes one market listing page into quotes.

    Each table row is ``symbol | price | change | change % | volume``. A cell
    that does not parse degrades to zero for that row only.
    """

    MIN_CELLS = 5

    def __init__(
        self,
        source_id: str,
        url: str,
        market: Market | str,
        *,
        identifiers: Optional[Iterable[str]] = None,
        timeout: float = 10.0,
        session: Optional[Any] = None,
    ) -> None:
        self.source_id = source_id
        self.url = url
        self.market = Market(market)
        self.allow_list = {s.strip().upper() for s in identifiers or () if s.strip()}
        self.timeout = timeout
        self.session = session or requests

    def fetch_many(self) -> list[Quote]:
        response = get_checked(self.session, self.url, source=self.source_id, timeout=self.timeout)
        quotes = self.parse_page(response.text)
        logger.info("[SCRAPE][listing_parsed] source=%s market=%s rows=%d", self.source_id, self.market.value, len(quotes))
        return quotes

    def parse_page(self, html: str) -> list[Quote]:
        soup = BeautifulSoup(html, "html.parser")
        if soup.find("table") is None:
            raise ParseError(f"no listing table at {self.url}", source=self.source_id)

        quotes: list[Quote] = []
        for row in soup.select("table tbody tr"):
            cells = [td.get_text(strip=True) for td in row.find_all("td")]
            if len(cells) < self.MIN_CELLS:
                continue
            symbol = cells[0]
            if not symbol:
                continue
            if self.allow_list and symbol.upper() not in self.allow_list:
                continue
            quotes.append(
                Quote.for_market(
                    self.market,
                    symbol=symbol,
                    price=_parse_price(cells[1]),
                    change=_parse_signed(cells[2]),
                    change_percent=_parse_signed(cells[3]),
                    volume=_parse_volume(cells[4]),
                    source=self.source_id,
                )
            )
        return quotes
