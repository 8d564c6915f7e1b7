"""
Re-alert - Scheduler.

============================================================
RESPONSIBILITY
============================================================
Periodically re-notifies alerts that are still firing.

- Wakes on a fixed short tick (default 60s) so cron edges
  are detected at minute granularity
- Selects due ACTIVE records, stamps last_alerted at
  submission time, submits re-alert notifications
- Persists the store once per tick that changed anything

============================================================
DESIGN PRINCIPLES
============================================================
- last_alerted is stamped at submission, not at delivery
- A tick with nothing due does no work
- Resolved alerts are never re-notified

============================================================
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from core.clock import ClockProtocol, SystemClock, ensure_utc
from fingerprints.persistence import SnapshotWriter
from fingerprints.store import RecordStore
from notifications.formatter import NotificationFormatter
from notifications.retry_queue import RetryQueue

from .schedule import RealertPolicy, realert_trigger


logger = logging.getLogger(__name__)


# ============================================================
# RE-ALERT SCHEDULER
# ============================================================

class RealertScheduler:
    """Drives interval and cron re-alerts."""

    def __init__(
        self,
        store: RecordStore,
        queue: RetryQueue,
        formatter: NotificationFormatter,
        writer: Optional[SnapshotWriter],
        policy: RealertPolicy,
        clock: Optional[ClockProtocol] = None,
        tick_seconds: float = 60.0,
    ):
        """
        Initialize scheduler.

        Args:
            store: Record store to scan
            queue: Queue receiving re-alert notifications
            formatter: Renders re-alert notifications
            writer: Snapshot writer, None disables persistence
            policy: Configured triggers
            clock: Time source
            tick_seconds: Interval between ticks
        """
        self._store = store
        self._queue = queue
        self._formatter = formatter
        self._writer = writer
        self._policy = policy
        self._clock = clock or SystemClock()
        self._tick_seconds = tick_seconds
        self._previous_tick = self._clock.now()
        self._running = False
        self._realerts_submitted = 0

    @property
    def policy(self) -> RealertPolicy:
        """Configured triggers."""
        return self._policy

    @property
    def previous_tick(self) -> datetime:
        """End of the last evaluated window."""
        return self._previous_tick

    @property
    def realerts_submitted(self) -> int:
        """Re-alerts submitted since start."""
        return self._realerts_submitted

    def tick(self, now: Optional[datetime] = None) -> List[str]:
        """
        Evaluate all ACTIVE records once.

        Args:
            now: Evaluation time (defaults to clock)

        Returns:
            Fingerprints submitted for re-alert
        """
        submitted = self._submit_due(now)
        if submitted and self._writer is not None:
            self._writer.persist(self._store.snapshot())
        return submitted

    async def tick_async(self, now: Optional[datetime] = None) -> List[str]:
        """Same as tick(), with the snapshot written in a worker thread."""
        submitted = self._submit_due(now)
        if submitted and self._writer is not None:
            await asyncio.to_thread(self._writer.persist, self._store.snapshot())
        return submitted

    def _submit_due(self, now: Optional[datetime]) -> List[str]:
        now = ensure_utc(now or self._clock.now())
        previous = self._previous_tick
        submitted: List[str] = []

        if self._policy.enabled:
            with self._store.batch():
                for record in self._store.get_active():
                    trigger = realert_trigger(record, now, previous, self._policy)
                    if trigger is None:
                        continue

                    notification = self._formatter.format_realert(record)
                    self._store.mark_alerted(record.fingerprint, now)
                    self._queue.submit(record.fingerprint, notification)
                    submitted.append(record.fingerprint)
                    logger.debug(f"Re-alert ({trigger}) queued for {record.fingerprint}")

        self._previous_tick = max(previous, now)

        if submitted:
            self._realerts_submitted += len(submitted)
            logger.info(f"Queued {len(submitted)} re-alert(s)")

        return submitted

    async def run(self) -> None:
        """Tick loop. Returns immediately if no trigger is configured."""
        if not self._policy.enabled:
            logger.debug("Re-alerting not configured, scheduler not started")
            return

        self._running = True
        logger.info(
            f"Re-alert scheduler started (every={self._policy.alert_every}, "
            f"cron={self._policy.cron!r}, tick={self._tick_seconds}s)"
        )
        try:
            while self._running:
                await asyncio.sleep(self._tick_seconds)
                try:
                    await self.tick_async()
                except Exception:
                    logger.exception("Re-alert tick failed")
        finally:
            self._running = False

    def stop(self) -> None:
        """Stop after the current sleep."""
        self._running = False


__all__ = [
    "RealertScheduler",
]
