"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Wires the relay components into one runtime.

- Restores the record store from the snapshot on start-up
- Chooses the delivery client (Prowl, or logging only in
  test mode)
- Runs the notification dispatcher and re-alert scheduler
  as background tasks on the running event loop
- Writes a final snapshot on shutdown

============================================================
ARCHITECTURAL POSITION
============================================================
- The runtime holds NO alert logic
- Components receive their collaborators explicitly
- A snapshot that cannot be loaded aborts start-up

============================================================
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from core.clock import ClockProtocol, SystemClock
from fingerprints.persistence import SnapshotWriter
from fingerprints.store import RecordStore
from ingest.coordinator import IngestCoordinator
from notifications.base import DeliveryClient
from notifications.formatter import NotificationFormatter
from notifications.noop import NoopDeliveryClient
from notifications.prowl import ProwlClient
from notifications.retry_queue import RetryQueue
from realert.schedule import RealertPolicy
from realert.scheduler import RealertScheduler

from .config import RelayConfig


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        correlation_id: Correlation ID for tracing

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
                "correlation_id": correlation_id or "",
            })
        )
    else:
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {correlation_id or ''} | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    logging.getLogger("uvicorn.access").setLevel(max(log_level, logging.WARNING))

    return logging.getLogger("orchestrator")


logger = logging.getLogger(__name__)


# ============================================================
# RELAY RUNTIME
# ============================================================

class RelayRuntime:
    """
    Owns every relay component and their background tasks.
    """

    def __init__(
        self,
        config: RelayConfig,
        clock: Optional[ClockProtocol] = None,
        client: Optional[DeliveryClient] = None,
    ):
        """
        Initialize runtime.

        Args:
            config: Validated configuration
            clock: Time source
            client: Delivery client override

        Raises:
            SnapshotLoadError: If the existing snapshot cannot be used
        """
        self._config = config
        self._clock = clock or SystemClock()

        self._store = RecordStore()
        self._writer = SnapshotWriter(config.fingerprints_file)
        state = self._writer.load()
        if state is not None:
            self._store.restore(state)

        if client is None:
            if config.test_mode:
                logger.warning("Test mode enabled: notifications are logged, not sent")
                client = NoopDeliveryClient()
            else:
                client = ProwlClient(timeout_seconds=config.request_timeout_secs)
        self._client = client

        self._formatter = NotificationFormatter(app_name=config.app_name)
        self._queue = RetryQueue(
            client=self._client,
            credentials=config.prowl_api_keys,
            linear_retry_secs=config.linear_retry_secs,
            clock=self._clock,
            max_in_flight=config.max_in_flight,
            wait_secs_between_notifications=config.wait_secs_between_notifications,
        )
        self._policy = RealertPolicy.from_settings(
            alert_every_minutes=config.alert_every_minutes,
            cron=config.realert_cron,
        )
        self._scheduler = RealertScheduler(
            store=self._store,
            queue=self._queue,
            formatter=self._formatter,
            writer=self._writer,
            policy=self._policy,
            clock=self._clock,
            tick_seconds=config.scheduler_tick_secs,
        )
        self._coordinator = IngestCoordinator(
            store=self._store,
            queue=self._queue,
            formatter=self._formatter,
            writer=self._writer,
            clock=self._clock,
        )

        self._tasks: List[asyncio.Task] = []
        self._running = False

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> RelayConfig:
        """Get configuration."""
        return self._config

    @property
    def clock(self) -> ClockProtocol:
        """Get clock."""
        return self._clock

    @property
    def store(self) -> RecordStore:
        """Get record store."""
        return self._store

    @property
    def writer(self) -> SnapshotWriter:
        """Get snapshot writer."""
        return self._writer

    @property
    def client(self) -> DeliveryClient:
        """Get delivery client."""
        return self._client

    @property
    def queue(self) -> RetryQueue:
        """Get retry queue."""
        return self._queue

    @property
    def scheduler(self) -> RealertScheduler:
        """Get re-alert scheduler."""
        return self._scheduler

    @property
    def coordinator(self) -> IngestCoordinator:
        """Get ingest coordinator."""
        return self._coordinator

    @property
    def is_running(self) -> bool:
        """Check if background tasks are running."""
        return self._running

    # --------------------------------------------------------
    # Operations
    # --------------------------------------------------------

    async def delete_fingerprint(self, fingerprint: str) -> bool:
        """
        Delete a record and persist in a worker thread.

        Returns:
            False if the fingerprint was unknown
        """
        if not self._store.delete(fingerprint):
            return False
        await asyncio.to_thread(self._writer.persist, self._store.snapshot())
        return True

    def status(self) -> Dict[str, Any]:
        """Summary for the status page and health endpoint."""
        return {
            "running": self._running,
            "test_mode": self._config.test_mode,
            "provider": self._client.provider_name,
            "records": self._store.stats(),
            "queue": self._queue.stats(),
            "realerts_submitted": self._scheduler.realerts_submitted,
            "persistence_failures": self._writer.failures,
            "last_persistence_error": self._writer.last_error,
        }

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self) -> None:
        """Start the dispatcher and scheduler on the running loop."""
        if self._running:
            return

        self._tasks = [
            asyncio.create_task(self._queue.run(), name="relay-dispatcher"),
            asyncio.create_task(self._scheduler.run(), name="relay-scheduler"),
        ]
        self._running = True
        logger.info(
            f"Relay started | provider={self._client.provider_name} | "
            f"records={len(self._store)} | realert={self._policy.enabled}"
        )

    async def stop(self) -> None:
        """Cancel background tasks, persist and release the client."""
        if not self._running:
            return
        self._running = False

        self._scheduler.stop()
        await self._queue.stop()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        await asyncio.to_thread(self._writer.persist, self._store.snapshot())
        await self._client.close()
        logger.info("Relay stopped")


def create_runtime(config: RelayConfig, **kwargs) -> RelayRuntime:
    """Create a runtime and configure logging from config."""
    setup_logging(level=config.log_level, log_format=config.log_format)
    return RelayRuntime(config, **kwargs)


__all__ = [
    "RelayRuntime",
    "create_runtime",
    "setup_logging",
]
