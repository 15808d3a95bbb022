import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from app.errors import ConfigError


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [s.strip() for s in raw.split(",") if s.strip()]


class Settings(BaseModel):
    REFRESH_INTERVAL_SEC: float = Field(default=900.0, gt=0)
    REFRESH_ON_STARTUP: bool = True
    FALLBACK_POLICY: Literal["fallback-on-failure", "real-data-only"] = "fallback-on-failure"
    SOURCE_DEADLINE_SEC: float = Field(default=15.0, gt=0)
    HTTP_TIMEOUT_SEC: float = Field(default=10.0, gt=0)
    RATE_LIMIT_DELAY_SEC: float = Field(default=0.5, ge=0)
    QUOTE_API_BASE_URL: str | None = None
    QUOTE_API_SYMBOLS: list[str] = Field(default_factory=list)
    QUOTE_API_MARKET: Literal["nigeria", "kenya", "rwanda"] = "nigeria"
    LOG_LEVEL: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        raw = {
            "REFRESH_INTERVAL_SEC": os.getenv("REFRESH_INTERVAL_SEC"),
            "REFRESH_ON_STARTUP": _env_bool("REFRESH_ON_STARTUP", True),
            "FALLBACK_POLICY": os.getenv("FALLBACK_POLICY"),
            "SOURCE_DEADLINE_SEC": os.getenv("SOURCE_DEADLINE_SEC"),
            "HTTP_TIMEOUT_SEC": os.getenv("HTTP_TIMEOUT_SEC"),
            "RATE_LIMIT_DELAY_SEC": os.getenv("RATE_LIMIT_DELAY_SEC"),
            "QUOTE_API_BASE_URL": os.getenv("QUOTE_API_BASE_URL") or None,
            "QUOTE_API_SYMBOLS": _env_list("QUOTE_API_SYMBOLS"),
            "QUOTE_API_MARKET": (os.getenv("QUOTE_API_MARKET") or "").lower() or None,
            "LOG_LEVEL": (os.getenv("LOG_LEVEL") or "").upper() or None,
        }
        # unset variables fall back to the field defaults
        values = {k: v for k, v in raw.items() if v is not None}
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(f"invalid settings: {exc}") from exc


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
