"""
Notifications - Retry Queue.

============================================================
RESPONSIBILITY
============================================================
Holds pending notification work and drives delivery.

- submit() is non-blocking for callers
- Dispatcher pulls items whose not_before has passed
- Transient failure: re-enqueue at exactly now + linear delay
- Permanent failure: drop and surface to the operator channel
- Concurrent attempts bounded by a semaphore
- Optional pacing: after a successful delivery no new attempt
  starts until wait_secs_between_notifications has elapsed,
  and attempts run one at a time

============================================================
DESIGN PRINCIPLES
============================================================
- Work items are explicit, ordered by (not_before, sequence)
  in a min-heap; retry timing never relies on sleep() alone
- No deduplication inside the queue
- No ordering guarantee across fingerprints
- Queue contents are not persisted; the re-alert cycle
  recovers anything lost on crash

============================================================
"""

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from core.clock import ClockProtocol, SystemClock, to_iso8601
from core.exceptions import PermanentDeliveryError, TransientDeliveryError

from .base import DeliveryClient
from .models import Notification


logger = logging.getLogger(__name__)

operator_logger = logging.getLogger("relay.operator")
"""Channel for failures that need a human (bad keys, rejected payloads)."""


# ============================================================
# WORK ITEM
# ============================================================

DeliveredCallback = Callable[["WorkItem"], None]


@dataclass(order=True)
class WorkItem:
    """One pending delivery."""

    not_before: datetime
    """Earliest time the next attempt may run."""

    sequence: int
    """Tie-breaker keeping FIFO order for equal not_before."""

    fingerprint: str = field(compare=False)
    """Alert the notification belongs to."""

    notification: Notification = field(compare=False)
    """Rendered notification."""

    attempt_count: int = field(default=0, compare=False)
    """Failed attempts so far."""

    on_delivered: Optional[DeliveredCallback] = field(default=None, compare=False, repr=False)
    """Completion signal invoked after successful delivery."""


# ============================================================
# RETRY QUEUE
# ============================================================

class RetryQueue:
    """
    Delivery queue with linear retry.

    Every transient failure schedules the next attempt at
    exactly now + linear_retry_secs, regardless of how many
    attempts have been made. Retries are unbounded.
    """

    def __init__(
        self,
        client: DeliveryClient,
        credentials: Sequence[str],
        linear_retry_secs: float = 60.0,
        clock: Optional[ClockProtocol] = None,
        max_in_flight: int = 4,
        max_idle_seconds: float = 30.0,
        max_failures_kept: int = 50,
        wait_secs_between_notifications: float = 0.0,
    ):
        """
        Initialize retry queue.

        Args:
            client: Delivery client
            credentials: Provider API keys passed to every send
            linear_retry_secs: Fixed delay after a transient failure
            clock: Time source
            max_in_flight: Maximum concurrent delivery attempts
            max_idle_seconds: Longest dispatcher sleep between checks
            max_failures_kept: Permanent failures retained for display
            wait_secs_between_notifications: Pause after each successful delivery
        """
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        if wait_secs_between_notifications < 0:
            raise ValueError("wait_secs_between_notifications must not be negative")

        self._client = client
        self._credentials = list(credentials)
        self._retry_delay = timedelta(seconds=linear_retry_secs)
        self._clock = clock or SystemClock()
        self._max_in_flight = max_in_flight
        self._max_idle_seconds = max_idle_seconds
        self._max_failures_kept = max_failures_kept
        self._pacing = timedelta(seconds=wait_secs_between_notifications)
        self._paused_until: Optional[datetime] = None

        self._heap: List[WorkItem] = []
        self._sequence = itertools.count()
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._wakeup = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()
        self._running = False

        self._attempts = 0
        self._delivered = 0
        self._retried = 0
        self._dropped = 0
        self._permanent_failures: List[Dict[str, Any]] = []

    # --------------------------------------------------------
    # Submission
    # --------------------------------------------------------

    def submit(
        self,
        fingerprint: str,
        notification: Notification,
        on_delivered: Optional[DeliveredCallback] = None,
    ) -> WorkItem:
        """
        Enqueue a notification for immediate delivery.

        Must be called from the event loop thread.
        """
        item = WorkItem(
            not_before=self._clock.now(),
            sequence=next(self._sequence),
            fingerprint=fingerprint,
            notification=notification,
            on_delivered=on_delivered,
        )
        heapq.heappush(self._heap, item)
        self._wakeup.set()
        logger.debug(f"Queued notification for {fingerprint}: '{notification.event}'")
        return item

    # --------------------------------------------------------
    # Introspection
    # --------------------------------------------------------

    @property
    def pending(self) -> int:
        """Items waiting for an attempt."""
        return len(self._heap)

    @property
    def in_flight(self) -> int:
        """Attempts currently running."""
        return len(self._tasks)

    @property
    def is_running(self) -> bool:
        """Check if the dispatcher loop is active."""
        return self._running

    @property
    def permanent_failures(self) -> List[Dict[str, Any]]:
        """Most recent permanently rejected notifications."""
        return list(self._permanent_failures)

    def next_due(self) -> Optional[datetime]:
        """not_before of the earliest pending item."""
        return self._heap[0].not_before if self._heap else None

    def pending_items(self) -> List[WorkItem]:
        """Pending items in dispatch order."""
        return sorted(self._heap)

    def stats(self) -> Dict[str, int]:
        """Get queue statistics."""
        return {
            "pending": self.pending,
            "in_flight": self.in_flight,
            "attempts": self._attempts,
            "delivered": self._delivered,
            "retried": self._retried,
            "dropped": self._dropped,
        }

    # --------------------------------------------------------
    # Dispatch
    # --------------------------------------------------------

    @property
    def paused_until(self) -> Optional[datetime]:
        """End of the pause after the last successful delivery."""
        return self._paused_until

    def _pop_due(self, limit: Optional[int] = None) -> List[WorkItem]:
        now = self._clock.now()
        if self._paused_until is not None and now < self._paused_until:
            return []
        due: List[WorkItem] = []
        while self._heap and self._heap[0].not_before <= now:
            if limit is not None and len(due) >= limit:
                break
            due.append(heapq.heappop(self._heap))
        return due

    async def process_due(self) -> int:
        """
        Attempt every item that is due now and wait for all of them.

        With pacing, items are attempted one at a time and the step
        ends at the pause that follows a successful delivery.

        Returns:
            Number of attempts made
        """
        if self._pacing:
            attempts = 0
            while True:
                due = self._pop_due(limit=1)
                if not due:
                    return attempts
                await self._bounded_attempt(due[0])
                attempts += 1

        due = self._pop_due()
        if due:
            await asyncio.gather(*(self._bounded_attempt(item) for item in due))
        return len(due)

    async def _bounded_attempt(self, item: WorkItem) -> None:
        async with self._semaphore:
            await self._attempt(item)

    async def _attempt(self, item: WorkItem) -> None:
        """Run one delivery attempt and settle the item."""
        self._attempts += 1
        try:
            await self._client.send(item.notification, self._credentials)
        except TransientDeliveryError as e:
            self._reschedule(item, e.message)
        except PermanentDeliveryError as e:
            self._drop(item, e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected delivery failure for {item.fingerprint}")
            self._reschedule(item, f"{type(e).__name__}: {e}")
        else:
            self._delivered += 1
            if self._pacing:
                self._paused_until = self._clock.now() + self._pacing
            logger.info(
                f"Delivered '{item.notification.event}' for {item.fingerprint} "
                f"after {item.attempt_count + 1} attempt(s)"
            )
            if item.on_delivered is not None:
                try:
                    item.on_delivered(item)
                except Exception:
                    logger.exception(f"Delivery callback failed for {item.fingerprint}")

    def _reschedule(self, item: WorkItem, reason: str) -> None:
        item.attempt_count += 1
        item.not_before = self._clock.now() + self._retry_delay
        item.sequence = next(self._sequence)
        heapq.heappush(self._heap, item)
        self._retried += 1
        self._wakeup.set()
        logger.warning(
            f"Failed to send notification for {item.fingerprint} ({reason}). "
            f"Attempt {item.attempt_count}, retrying at {to_iso8601(item.not_before)}"
        )

    def _drop(self, item: WorkItem, error: PermanentDeliveryError) -> None:
        self._dropped += 1
        failure = {
            "fingerprint": item.fingerprint,
            "event": item.notification.event,
            "attempts": item.attempt_count + 1,
            "error": error.message,
            "status_code": error.status_code,
            "failed_at": to_iso8601(self._clock.now()),
        }
        self._permanent_failures.append(failure)
        if len(self._permanent_failures) > self._max_failures_kept:
            self._permanent_failures = self._permanent_failures[-self._max_failures_kept:]
        operator_logger.error(
            f"Notification for {item.fingerprint} permanently rejected, not retrying: "
            f"{error.message} | {error.context}"
        )

    # --------------------------------------------------------
    # Dispatcher loop
    # --------------------------------------------------------

    def _idle_delay(self) -> float:
        due = self.next_due()
        if due is None:
            return self._max_idle_seconds
        if self._paused_until is not None:
            due = max(due, self._paused_until)
        delay = (due - self._clock.now()).total_seconds()
        return min(max(delay, 0.0), self._max_idle_seconds)

    async def _attempt_and_release(self, item: WorkItem) -> None:
        try:
            await self._attempt(item)
        finally:
            self._semaphore.release()

    async def run(self) -> None:
        """Dispatcher loop. Runs until stop() or cancellation."""
        self._running = True
        logger.debug("Notification dispatcher started")
        try:
            while self._running:
                self._wakeup.clear()
                if self._pacing:
                    due = self._pop_due(limit=1)
                    for item in due:
                        await self._bounded_attempt(item)
                    if due:
                        continue
                else:
                    for item in self._pop_due():
                        await self._semaphore.acquire()
                        task = asyncio.create_task(self._attempt_and_release(item))
                        self._tasks.add(task)
                        task.add_done_callback(self._tasks.discard)

                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=self._idle_delay())
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.debug("Notification dispatcher stopped")

    async def stop(self) -> None:
        """Stop dispatching and abandon in-flight attempts."""
        self._running = False
        self._wakeup.set()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._heap:
            logger.warning(f"Dispatcher stopped with {len(self._heap)} undelivered notification(s)")


__all__ = [
    "WorkItem",
    "RetryQueue",
    "DeliveredCallback",
]
