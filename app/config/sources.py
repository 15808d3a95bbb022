from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from app.config.settings import Settings
from app.errors import ConfigError
from app.schemas.quote import Market
from app.services.fallback import FallbackPolicy

AFX_BASE_URL = "https://afx.kwayisi.org"

_AFX_BOARDS = {
    Market.NIGERIA: "ngx",
    Market.KENYA: "nse",
    Market.RWANDA: "rse",
}


class SourceConfig(BaseModel):
    source_id: str = Field(min_length=1)
    kind: Literal["listing", "quote-api"]
    market: Market
    url: str = Field(min_length=1)
    identifiers: list[str] = Field(default_factory=list)
    deadline_sec: float = Field(default=15.0, gt=0)
    rate_limit_delay_sec: float = Field(default=0.0, ge=0)
    http_timeout_sec: float = Field(default=10.0, gt=0)
    fallback_policy: FallbackPolicy | None = None

    @field_validator("identifiers")
    @classmethod
    def strip_identifiers(cls, value: list[str]) -> list[str]:
        stripped = [s.strip() for s in value]
        if any(not s for s in stripped):
            raise ValueError("identifiers must not be blank")
        return stripped

    @model_validator(mode="after")
    def check_identifiers(self) -> "SourceConfig":
        if self.kind == "quote-api" and not self.identifiers:
            raise ValueError(f"quote-api source {self.source_id} needs identifiers")
        return self


def validate_source_table(rows: list[dict | SourceConfig]) -> list[SourceConfig]:
    """Validate a raw source table. Raises ConfigError on any bad row."""
    table: list[SourceConfig] = []
    seen: set[str] = set()
    for position, row in enumerate(rows):
        try:
            config = row if isinstance(row, SourceConfig) else SourceConfig.model_validate(row)
        except ValidationError as exc:
            raise ConfigError(f"invalid source at position {position}: {exc}") from exc
        if config.source_id in seen:
            raise ConfigError(f"duplicate source_id: {config.source_id}")
        seen.add(config.source_id)
        table.append(config)
    return table


def build_source_table(settings: Settings) -> list[SourceConfig]:
    rows: list[dict] = []
    for market, board in _AFX_BOARDS.items():
        rows.append(
            {
                "source_id": f"afx-{board}",
                "kind": "listing",
                "market": market,
                "url": f"{AFX_BASE_URL}/{board}/",
                "deadline_sec": settings.SOURCE_DEADLINE_SEC,
                "http_timeout_sec": settings.HTTP_TIMEOUT_SEC,
            }
        )

    if settings.QUOTE_API_BASE_URL and settings.QUOTE_API_SYMBOLS:
        rows.append(
            {
                "source_id": "quote-api",
                "kind": "quote-api",
                "market": settings.QUOTE_API_MARKET,
                "url": settings.QUOTE_API_BASE_URL,
                "identifiers": settings.QUOTE_API_SYMBOLS,
                "deadline_sec": settings.SOURCE_DEADLINE_SEC,
                "rate_limit_delay_sec": settings.RATE_LIMIT_DELAY_SEC,
                "http_timeout_sec": settings.HTTP_TIMEOUT_SEC,
            }
        )

    return validate_source_table(rows)
