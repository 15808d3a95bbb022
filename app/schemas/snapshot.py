from __future__ import annotations

from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_serializer, field_validator

from app.schemas.quote import Market, MarketClass, Quote, utcnow

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SourceOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    market: Market | None = None
    ok: int = 0
    timed_out: int = 0
    errored: int = 0
    synthesized: int = 0
    dropped: int = 0
    count: int = 0
    last_error: str | None = None


class FetchOutcome(BaseModel):
    """Result of one bounded fetch: exactly one of ok, timed-out or errored."""

    model_config = ConfigDict(frozen=True)

    status: Literal["ok", "timed-out", "errored"]
    value: Any = None
    error: str | None = None
    error_kind: str | None = None
    elapsed_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class TriggerResult(BaseModel):
    status: Literal["accepted", "already-running", "failed"]
    market: Market | None = None
    total_quotes: int = 0
    captured_at: datetime | None = None
    error: str | None = None


class Snapshot(BaseModel):
    """Immutable view of one committed refresh.

    ``partition_index`` is derived from ``quotes``; both it and
    ``source_outcomes`` are exposed as read-only mappings.
    """

    model_config = ConfigDict(frozen=True)

    quotes: tuple[Quote, ...] = ()
    captured_at: datetime = EPOCH
    source_outcomes: Mapping[str, SourceOutcome] = Field(default_factory=dict, validate_default=True)

    _partition_index: Mapping[str, tuple[Quote, ...]] = PrivateAttr(default_factory=dict)

    @field_validator("source_outcomes")
    @classmethod
    def freeze_outcomes(cls, value: Mapping[str, SourceOutcome]) -> Mapping[str, SourceOutcome]:
        return MappingProxyType(dict(value))

    @field_serializer("source_outcomes")
    def dump_outcomes(self, value: Mapping[str, SourceOutcome]) -> dict[str, SourceOutcome]:
        return dict(value)

    def model_post_init(self, __context: Any) -> None:
        index: dict[str, list[Quote]] = {}
        for quote in self.quotes:
            index.setdefault(quote.partition.value, []).append(quote)
        self._partition_index = MappingProxyType({name: tuple(rows) for name, rows in index.items()})

    @property
    def partition_index(self) -> Mapping[str, tuple[Quote, ...]]:
        return self._partition_index

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls()

    @classmethod
    def build(
        cls,
        quotes: Iterable[Quote],
        source_outcomes: Mapping[str, SourceOutcome] | None = None,
        captured_at: datetime | None = None,
    ) -> "Snapshot":
        # last write wins per (partition, symbol), first position kept
        rows: dict[tuple[str, str], Quote] = {}
        for quote in quotes:
            rows[(quote.partition.value, quote.symbol)] = quote

        return cls(
            quotes=tuple(rows.values()),
            captured_at=captured_at or utcnow(),
            source_outcomes=dict(source_outcomes or {}),
        )

    @property
    def is_empty(self) -> bool:
        return not self.quotes and not self.source_outcomes

    def partition(self, name: Market | str) -> tuple[Quote, ...]:
        key = name.value if isinstance(name, Market) else str(name).lower()
        return self.partition_index.get(key, ())

    def by_class(self, market_class: MarketClass | str) -> tuple[Quote, ...]:
        wanted = MarketClass(market_class)
        return tuple(q for q in self.quotes if q.market_class == wanted)

    def search(self, query: str) -> list[Quote]:
        needle = query.strip().lower()
        if not needle:
            return []
        return [
            q
            for q in self.quotes
            if needle in q.symbol.lower() or needle in q.display_name.lower()
        ]

    def refreshed_markets(self) -> set[Market]:
        return {o.market for o in self.source_outcomes.values() if o.market is not None}

    def replace_partitions(self, fresh: "Snapshot") -> "Snapshot":
        """Return a snapshot with the markets refreshed in ``fresh`` swapped in."""
        replaced = fresh.refreshed_markets() | {q.partition for q in fresh.quotes}
        kept = [q for q in self.quotes if q.partition not in replaced]
        outcomes = {
            source_id: outcome
            for source_id, outcome in self.source_outcomes.items()
            if outcome.market not in replaced
        }
        outcomes.update(fresh.source_outcomes)
        return Snapshot.build(
            [*kept, *fresh.quotes],
            source_outcomes=outcomes,
            captured_at=fresh.captured_at,
        )
