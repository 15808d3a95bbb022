from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError

from app.config.sources import SourceConfig
from app.errors import AggregationError
from app.schemas.quote import Quote, utcnow
from app.schemas.snapshot import FetchOutcome, Snapshot, SourceOutcome
from app.services.bounded_fetch import bounded
from app.services.fallback import FallbackPolicy, FallbackSynthesizer
from app.services.pacer import DispatchPacer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkUnit:
    config: SourceConfig
    call: Callable[[], Any]
    identifier: str | None = None

    @property
    def label(self) -> str:
        if self.identifier is None:
            return self.config.source_id
        return f"{self.config.source_id}:{self.identifier}"


class Aggregator:
    """Fans one refresh cycle out over every configured source."""

    def __init__(
        self,
        adapters: Mapping[str, Any],
        *,
        synthesizer: FallbackSynthesizer | None = None,
        default_policy: FallbackPolicy | str = FallbackPolicy.FALLBACK_ON_FAILURE,
        max_workers: int = 32,
        pacer_factory: Callable[[dict[str, float]], DispatchPacer] = DispatchPacer,
    ) -> None:
        self.adapters = dict(adapters)
        self.synthesizer = synthesizer or FallbackSynthesizer()
        self.default_policy = FallbackPolicy(default_policy)
        self.max_workers = max_workers
        self.pacer_factory = pacer_factory

    def policy_for(self, config: SourceConfig) -> FallbackPolicy:
        return config.fallback_policy or self.default_policy

    def enumerate_units(self, sources: Sequence[SourceConfig]) -> list[WorkUnit]:
        units: list[WorkUnit] = []
        for config in sources:
            adapter = self.adapters.get(config.source_id)
            if adapter is None:
                logger.error("[REFRESH][source_skipped] source=%s reason=no_adapter", config.source_id)
                continue
            if config.kind == "listing":
                units.append(WorkUnit(config=config, call=adapter.fetch_many))
                continue
            for identifier in config.identifiers:
                units.append(
                    WorkUnit(
                        config=config,
                        call=lambda a=adapter, i=identifier: a.fetch_one(i),
                        identifier=identifier,
                    )
                )
        return units

    def _run_unit(self, pacer: DispatchPacer, unit: WorkUnit) -> FetchOutcome:
        pacer.acquire(unit.config.source_id)
        return bounded(unit.call, unit.config.deadline_sec, label=unit.label)

    def _fallback_identifiers(self, unit: WorkUnit) -> list[str]:
        if unit.identifier is not None:
            return [unit.identifier]
        if unit.config.identifiers:
            return list(unit.config.identifiers)
        return self.synthesizer.baseline_identifiers(unit.config.market)

    def _synthesize(self, config: SourceConfig, identifiers: list[str]) -> list[Quote]:
        rows: list[Quote] = []
        for identifier in identifiers:
            try:
                rows.append(self.synthesizer.synthesize(identifier, config.market))
            except ValidationError as exc:
                logger.warning(
                    "[REFRESH][fallback_skipped] source=%s identifier=%r error=%s",
                    config.source_id,
                    identifier,
                    exc.errors()[0]["msg"],
                )
        return rows

    @staticmethod
    def _as_quotes(value: Any) -> list[Quote]:
        if isinstance(value, Quote):
            return [value]
        return [q for q in value or () if isinstance(q, Quote)]

    def run_cycle(self, sources: Sequence[SourceConfig]) -> Snapshot:
        started = time.monotonic()
        units = self.enumerate_units(sources)
        if not units:
            raise AggregationError("no work units could be enumerated from the source table")

        pacer = self.pacer_factory(
            {c.source_id: c.rate_limit_delay_sec for c in sources}
        )
        workers = max(1, min(self.max_workers, len(units)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="refresh-unit") as pool:
            futures = [pool.submit(self._run_unit, pacer, unit) for unit in units]
            outcomes = [f.result() for f in futures]

        quotes_by_source: dict[str, list[Quote]] = {c.source_id: [] for c in sources}
        counters: dict[str, dict[str, Any]] = {}
        for unit, outcome in zip(units, outcomes):
            config = unit.config
            stats = counters.setdefault(
                config.source_id,
                {"market": config.market, "ok": 0, "timed_out": 0, "errored": 0,
                 "synthesized": 0, "dropped": 0, "count": 0, "last_error": None},
            )
            if outcome.ok:
                stats["ok"] += 1
                rows = self._as_quotes(outcome.value)
            else:
                stats["timed_out" if outcome.status == "timed-out" else "errored"] += 1
                stats["last_error"] = outcome.error
                missing = self._fallback_identifiers(unit)
                if self.policy_for(config) is FallbackPolicy.REAL_DATA_ONLY:
                    stats["dropped"] += len(missing)
                    rows = []
                else:
                    rows = self._synthesize(config, missing)
                    stats["synthesized"] += len(rows)
                    stats["dropped"] += len(missing) - len(rows)
            stats["count"] += len(rows)
            quotes_by_source[config.source_id].extend(rows)

        merged = [q for rows in quotes_by_source.values() for q in rows]
        snapshot = Snapshot.build(
            merged,
            source_outcomes={sid: SourceOutcome(**stats) for sid, stats in counters.items()},
            captured_at=utcnow(),
        )

        elapsed = time.monotonic() - started
        logger.info(
            "[REFRESH][cycle_done] units=%d quotes=%d synthesized=%d failed_units=%d elapsed_sec=%.2f",
            len(units),
            len(snapshot.quotes),
            sum(o.synthesized for o in snapshot.source_outcomes.values()),
            sum(o.timed_out + o.errored for o in snapshot.source_outcomes.values()),
            elapsed,
        )
        return snapshot
