"""
Bounded worker pool for fan-out requests.

A fixed number of puller threads drain one shared FIFO queue of work units.
Each unit produces exactly one :class:`WorkResult`, successful or not, so a
batch of N units always yields N results unless the caller cancels it.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from recexplorer.exceptions import MalformedResponseError, RecExplorerError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class WorkUnit:
    """One independent piece of fan-out work, e.g. "fetch this user's recordings"."""

    subject_id: str
    subject_label: str = ""
    payload: Any = None


@dataclass(frozen=True)
class UnitError:
    """Structured error for a failed work unit."""

    subject_id: str
    subject_label: str
    message: str
    status: int | None = None
    raw: str | None = None

    @classmethod
    def from_exception(cls, unit: WorkUnit, exc: Exception) -> UnitError:
        status: int | None = None
        raw: str | None = None
        message = str(exc)
        if isinstance(exc, TransportError):
            status = exc.status_code
            raw = exc.body or None
        elif isinstance(exc, MalformedResponseError):
            raw = exc.raw or None
        if isinstance(exc, RecExplorerError) and exc.details and not raw:
            message = f"{exc.message}: {exc.details}"
        return cls(
            subject_id=unit.subject_id,
            subject_label=unit.subject_label,
            message=message,
            status=status,
            raw=raw,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "subject_label": self.subject_label,
            "status": self.status,
            "message": self.message,
            "raw": self.raw,
        }


@dataclass(frozen=True)
class WorkResult(Generic[T]):
    """Outcome of one work unit: either ``value`` or ``error`` is set."""

    unit: WorkUnit
    value: T | None = None
    error: UnitError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PoolOutcome(Generic[T]):
    """All results of one batch, with convenience splits."""

    results: list[WorkResult[T]] = field(default_factory=list)
    dispatched: int = 0
    cancelled: bool = False

    @property
    def successes(self) -> list[WorkResult[T]]:
        return [r for r in self.results if r.ok]

    @property
    def errors(self) -> list[UnitError]:
        return [r.error for r in self.results if r.error is not None]

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def error_count(self) -> int:
        return len(self.errors)


def guarded(task: Callable[[WorkUnit], T]) -> Callable[[WorkUnit], WorkResult[T]]:
    """Wrap ``task`` so any exception becomes an error-shaped WorkResult."""

    def _run(unit: WorkUnit) -> WorkResult[T]:
        try:
            return WorkResult(unit=unit, value=task(unit))
        except Exception as exc:
            logger.warning(
                "Work unit %s (%s) failed: %s", unit.subject_id, unit.subject_label, exc
            )
            return WorkResult(unit=unit, error=UnitError.from_exception(unit, exc))

    return _run


def run_bounded(
    units: Sequence[WorkUnit],
    limit: int,
    task: Callable[[WorkUnit], T],
    *,
    cancel: threading.Event | None = None,
) -> PoolOutcome[T]:
    """Run ``task`` over ``units`` with at most ``limit`` units in flight.

    Results arrive in completion order, not input order; each result carries
    its unit. Setting ``cancel`` stops pullers from starting new units and
    discards results of units still in flight. Requests already sent are not
    aborted.
    """
    outcome: PoolOutcome[T] = PoolOutcome()
    if not units:
        return outcome

    workers = max(1, min(limit, len(units)))
    queue: deque[WorkUnit] = deque(units)
    queue_lock = threading.Lock()
    results_lock = threading.Lock()
    run_one = guarded(task)

    def _take() -> WorkUnit | None:
        with queue_lock:
            return queue.popleft() if queue else None

    def _puller() -> None:
        while True:
            if cancel is not None and cancel.is_set():
                return
            unit = _take()
            if unit is None:
                return
            with results_lock:
                outcome.dispatched += 1
            result = run_one(unit)
            with results_lock:
                if cancel is not None and cancel.is_set():
                    return
                outcome.results.append(result)

    logger.debug("Running %d work units with %d workers", len(units), workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fanout") as executor:
        futures = [executor.submit(_puller) for _ in range(workers)]
        for future in futures:
            future.result()

    outcome.cancelled = bool(cancel is not None and cancel.is_set())
    return outcome
