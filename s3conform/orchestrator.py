"""Concurrent fan-out and aggregation of probe tasks.

One test case runs as: Dispatch -> Await(N) -> Aggregate -> Report.

- Dispatch: one task per fixture, tagged with the fixture's index, on a
  thread pool capped at max_in_flight.
- Await: the calling thread receives exactly N results from a queue
  sized N. It never stops early, so no worker is left blocked on a send.
- Aggregate: successful results are handed to on_result on the calling
  thread, the only place fixtures get written. The first error in receive
  order fails the case and (optionally) sets the cancellation event.
- Report: a CaseOutcome with pass/fail and that first error.
"""

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, TypeVar

from s3conform.errors import FixtureError, ProbeCancelled, ProbeError
from s3conform.models import TaskResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# task(index, fixture, cancel_event) -> produced entity (or None)
Task = Callable[[int, T, threading.Event], Any]


def check_cancelled(cancel: threading.Event, index: int) -> None:
    """Raise ProbeCancelled if a sibling task already failed."""
    if cancel.is_set():
        raise ProbeCancelled(index)


@dataclass
class CaseOutcome:
    """What one fan-out produced."""

    results: list[TaskResult] = field(default_factory=list)
    first_error: Optional[Exception] = None

    @property
    def passed(self) -> bool:
        return self.first_error is None

    @property
    def errors(self) -> list[TaskResult]:
        return [r for r in self.results if r.error is not None]


class Orchestrator:
    """Runs one task per fixture concurrently and aggregates the results."""

    def __init__(self, max_in_flight: int = 16, cancel_on_failure: bool = True):
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self.max_in_flight = max_in_flight
        self.cancel_on_failure = cancel_on_failure

    def run(
        self,
        fixtures: Sequence[T],
        task: Task,
        on_result: Optional[Callable[[TaskResult], None]] = None,
    ) -> CaseOutcome:
        """Fan task out over fixtures and drain every result.

        Args:
            fixtures: Inputs, one task each. The count is fixed here.
            task: Called as task(index, fixture, cancel_event) on a worker
                thread. Its return value becomes TaskResult.entity.
            on_result: Called on this thread for each successful result.

        Returns:
            CaseOutcome with results ordered by index.
        """
        outcome = CaseOutcome()
        total = len(fixtures)
        if total == 0:
            return outcome

        results: "queue.Queue[TaskResult]" = queue.Queue(maxsize=total)
        cancel = threading.Event()

        def worker(index: int, fixture: T) -> None:
            try:
                check_cancelled(cancel, index)
                entity = task(index, fixture, cancel)
            except ProbeError as e:
                results.put(TaskResult(index=index, error=e))
            except Exception as e:
                # Unexpected failures still travel the channel so the
                # drain below receives exactly `total` results.
                logger.exception("Probe task %d raised unexpectedly", index)
                results.put(TaskResult(index=index, error=e))
            else:
                results.put(TaskResult(index=index, entity=entity))

        received: list[TaskResult] = []
        with ThreadPoolExecutor(
            max_workers=min(self.max_in_flight, total),
            thread_name_prefix="probe",
        ) as pool:
            for index, fixture in enumerate(fixtures):
                pool.submit(worker, index, fixture)

            for _ in range(total):
                result = self._aggregate(results.get(), outcome, cancel, on_result)
                received.append(result)

        outcome.results = sorted(received, key=lambda r: r.index)
        return outcome

    def _aggregate(
        self,
        result: TaskResult,
        outcome: CaseOutcome,
        cancel: threading.Event,
        on_result: Optional[Callable[[TaskResult], None]],
    ) -> TaskResult:
        if result.error is None and on_result is not None:
            try:
                on_result(result)
            except FixtureError as e:
                result = TaskResult(index=result.index, entity=result.entity, error=e)

        if result.error is None:
            return result

        if isinstance(result.error, ProbeCancelled):
            logger.debug("Probe %d cancelled", result.index)
            return result

        logger.debug("Probe %d failed: %s", result.index, result.error)
        if outcome.first_error is None:
            outcome.first_error = result.error
            if self.cancel_on_failure:
                cancel.set()
        return result
