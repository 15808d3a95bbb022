from __future__ import annotations

from typing import Any

import requests

from app.errors import NetworkError, RateLimitedError

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def get_checked(session: Any, url: str, *, source: str, timeout: float, **kwargs: Any) -> Any:
    """GET ``url`` and map transport failures onto the source error taxonomy."""
    headers = {"User-Agent": USER_AGENT, **kwargs.pop("headers", {})}
    try:
        response = session.get(url, headers=headers, timeout=timeout, **kwargs)
        response.raise_for_status()
    except requests.HTTPError as exc:
        code = getattr(exc.response, "status_code", None)
        if code == 429:
            raise RateLimitedError(f"rate limited by {url}", source=source) from exc
        raise NetworkError(f"http {code} from {url}", source=source) from exc
    except requests.RequestException as exc:
        raise NetworkError(f"{type(exc).__name__}: {exc}", source=source) from exc
    return response
