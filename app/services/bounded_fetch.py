from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, wait
from typing import Any, Callable

from app.errors import SourceError
from app.schemas.snapshot import FetchOutcome

logger = logging.getLogger(__name__)


def _run_into(future: Future, call: Callable[[], Any]) -> None:
    if not future.set_running_or_notify_cancel():
        return
    try:
        result = call()
    except Exception as exc:  # delivered to the waiter, or dropped after the deadline
        future.set_exception(exc)
    else:
        future.set_result(result)


def bounded(
    call: Callable[[], Any],
    deadline_sec: float,
    *,
    label: str = "fetch",
    clock: Callable[[], float] = time.monotonic,
) -> FetchOutcome:
    """Race ``call`` against ``deadline_sec``.

    The call runs on a daemon thread. When the deadline wins the thread is
    abandoned, not killed: whatever it returns later lands in a future nobody
    reads anymore.
    """
    started = clock()
    future: Future = Future()
    worker = threading.Thread(
        target=_run_into,
        args=(future, call),
        daemon=True,
        name=f"bounded-{label}",
    )
    worker.start()

    done, _ = wait([future], timeout=deadline_sec)
    elapsed = round(clock() - started, 3)

    if not done:
        future.cancel()
        logger.warning("[FETCH][deadline_exceeded] unit=%s deadline_sec=%s", label, deadline_sec)
        return FetchOutcome(status="timed-out", error="DEADLINE_EXCEEDED", elapsed_sec=elapsed)

    exc = future.exception()
    if exc is not None:
        kind = exc.kind if isinstance(exc, SourceError) else "network"
        logger.warning("[FETCH][unit_error] unit=%s kind=%s error=%s", label, kind, exc)
        return FetchOutcome(status="errored", error=str(exc) or type(exc).__name__, error_kind=kind, elapsed_sec=elapsed)

    return FetchOutcome(status="ok", value=future.result(), elapsed_sec=elapsed)
