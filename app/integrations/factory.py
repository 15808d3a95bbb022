from __future__ import annotations

from typing import Any, Optional

from app.config.sources import SourceConfig
from app.integrations.afx_listing import AfxListingAdapter
from app.integrations.quote_api import QuoteApiAdapter


def build_adapter(config: SourceConfig, session: Optional[Any] = None):
    if config.kind == "listing":
        return AfxListingAdapter(
            config.source_id,
            config.url,
            config.market,
            identifiers=config.identifiers,
            timeout=config.http_timeout_sec,
            session=session,
        )
    return QuoteApiAdapter(
        config.source_id,
        config.url,
        config.market,
        timeout=config.http_timeout_sec,
        session=session,
    )
