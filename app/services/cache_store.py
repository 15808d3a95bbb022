from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from app.schemas.quote import Market, Quote
from app.schemas.snapshot import Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheState:
    snapshot: Snapshot
    version: int = 0
    last_update: datetime | None = None


class CacheStore:
    """Latest committed snapshot behind a single swappable reference.

    Readers take the current ``CacheState`` without locking. ``commit`` builds
    the replacement state first and swaps it in one assignment, so a reader
    sees either the old snapshot or the new one, never a mix.
    """

    def __init__(self) -> None:
        self._state = CacheState(snapshot=Snapshot.empty())
        self._write_lock = threading.Lock()

    def state(self) -> CacheState:
        return self._state

    def get(self) -> Snapshot:
        return self._state.snapshot

    def get_partition(self, name: Market | str) -> tuple[Quote, ...]:
        return self._state.snapshot.partition(name)

    def last_update(self) -> datetime | None:
        return self._state.last_update

    def search(self, query: str) -> list[Quote]:
        return self._state.snapshot.search(query)

    def commit(self, snapshot: Snapshot) -> bool:
        with self._write_lock:
            current = self._state
            if current.last_update is not None and snapshot.captured_at < current.snapshot.captured_at:
                logger.warning(
                    "[CACHE][commit_rejected] reason=older_snapshot captured_at=%s current=%s",
                    snapshot.captured_at.isoformat(),
                    current.snapshot.captured_at.isoformat(),
                )
                return False
            self._state = CacheState(
                snapshot=snapshot,
                version=current.version + 1,
                last_update=snapshot.captured_at,
            )
        logger.info(
            "[CACHE][commit] version=%d quotes=%d partitions=%s",
            current.version + 1,
            len(snapshot.quotes),
            ",".join(sorted(snapshot.partition_index)),
        )
        return True

    def metrics(self) -> dict:
        state = self._state
        return {
            "version": state.version,
            "cached_quotes": len(state.snapshot.quotes),
            "partitions": {name: len(rows) for name, rows in state.snapshot.partition_index.items()},
            "last_update": state.last_update.isoformat() if state.last_update else None,
        }
