from __future__ import annotations

import logging
import threading
import time
from typing import Sequence

from app.config.sources import SourceConfig
from app.errors import AggregationError, RefreshBusyError
from app.schemas.quote import Market
from app.schemas.snapshot import Snapshot, TriggerResult
from app.services.aggregator import Aggregator
from app.services.cache_store import CacheStore

logger = logging.getLogger(__name__)

IDLE = "IDLE"
RUNNING = "RUNNING"


class RefreshCoordinator:
    """Runs at most one refresh cycle at a time and commits its snapshot."""

    def __init__(
        self,
        *,
        aggregator: Aggregator,
        cache_store: CacheStore,
        sources: Sequence[SourceConfig],
    ) -> None:
        self.aggregator = aggregator
        self.cache_store = cache_store
        self.sources = list(sources)
        self._run_lock = threading.Lock()
        self._metrics_lock = threading.Lock()
        self.state = IDLE
        self._metrics = {
            "runs": 0,
            "accepted": 0,
            "failures": 0,
            "rejected": 0,
        }
        self.last_error: str | None = None
        self.last_run_at: int | None = None

    def _enter_running(self) -> None:
        if not self._run_lock.acquire(blocking=False):
            raise RefreshBusyError()
        self.state = RUNNING

    def _leave_running(self) -> None:
        self.state = IDLE
        self._run_lock.release()

    def _sources_for(self, market: Market | None) -> list[SourceConfig]:
        if market is None:
            return list(self.sources)
        return [c for c in self.sources if c.market == market]

    def _inc(self, key: str) -> None:
        with self._metrics_lock:
            self._metrics[key] += 1

    def _fail(self, target: Market | None, error: str) -> TriggerResult:
        self._inc("failures")
        self.last_error = error
        return TriggerResult(status="failed", market=target, error=error)

    def _commit(self, fresh: Snapshot, target: Market | None) -> Snapshot | None:
        current = self.cache_store.get()
        snapshot = fresh if target is None else current.replace_partitions(fresh)
        if self.cache_store.last_update() is not None and snapshot.captured_at < current.captured_at:
            # wall clock stepped back; keep commits ordered without discarding the cycle
            logger.warning(
                "[REFRESH][captured_at_clamped] captured_at=%s current=%s",
                snapshot.captured_at.isoformat(),
                current.captured_at.isoformat(),
            )
            snapshot = snapshot.model_copy(update={"captured_at": current.captured_at})
        if not self.cache_store.commit(snapshot):
            return None
        return snapshot

    def trigger(self, market: Market | str | None = None) -> TriggerResult:
        target = Market(market) if market is not None else None
        try:
            self._enter_running()
        except RefreshBusyError:
            self._inc("rejected")
            logger.info("[REFRESH][trigger_rejected] reason=already_running market=%s", target)
            return TriggerResult(status="already-running", market=target)

        try:
            self._inc("runs")
            self.last_run_at = int(time.time())
            logger.info("[REFRESH][cycle_start] market=%s", target.value if target else "all")
            try:
                fresh = self.aggregator.run_cycle(self._sources_for(target))
            except AggregationError as exc:
                logger.error("[REFRESH][cycle_failed] market=%s error=%s", target, exc)
                return self._fail(target, str(exc))
            except Exception as exc:
                logger.exception("[REFRESH][cycle_failed] market=%s unexpected error", target)
                return self._fail(target, f"{type(exc).__name__}: {exc}")

            committed = self._commit(fresh, target)
            if committed is None:
                logger.error("[REFRESH][commit_rejected] market=%s", target)
                return self._fail(target, "STALE_SNAPSHOT_REJECTED")

            self.last_error = None
            self._inc("accepted")
            return TriggerResult(
                status="accepted",
                market=target,
                total_quotes=len(fresh.quotes),
                captured_at=committed.captured_at,
            )
        finally:
            self._leave_running()

    def status(self) -> dict:
        with self._metrics_lock:
            metrics = dict(self._metrics)
        return {
            "state": self.state,
            **metrics,
            "last_error": self.last_error,
            "last_run_at": self.last_run_at,
        }


class RefreshScheduler:
    """Periodic trigger for the coordinator on a daemon thread."""

    def __init__(
        self,
        *,
        coordinator: RefreshCoordinator,
        interval_sec: float = 900.0,
        refresh_on_start: bool = True,
    ) -> None:
        self.coordinator = coordinator
        self.interval_sec = interval_sec
        self.refresh_on_start = refresh_on_start
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def _tick(self) -> None:
        try:
            self.coordinator.trigger()
        except Exception:
            logger.exception("[REFRESH][scheduled_trigger_error]")

    def _loop(self) -> None:
        if self.refresh_on_start:
            self._tick()
        while not self._stop_event.wait(self.interval_sec):
            self._tick()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="refresh-scheduler")
        self._thread.start()
        logger.info("[REFRESH][scheduler_start] interval_sec=%s", self.interval_sec)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        logger.info("[REFRESH][scheduler_stop]")

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())
