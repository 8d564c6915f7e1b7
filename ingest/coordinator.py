"""
Ingest - Coordinator.

============================================================
RESPONSIBILITY
============================================================
Applies a batch of alert observations to the record store.

- Upserts every observation
- Renders and submits a notification when an observation
  is new or changed status, stamping last_alerted at
  submission time
- Persists the store once per batch

============================================================
ERROR HANDLING
============================================================
A malformed observation is logged and skipped. It never
aborts the rest of the batch.

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from core.clock import ClockProtocol, SystemClock
from core.exceptions import MalformedObservationError
from fingerprints.models import AlertStatus, Observation
from fingerprints.persistence import SnapshotWriter
from fingerprints.store import RecordStore
from notifications.formatter import NotificationFormatter
from notifications.retry_queue import RetryQueue


logger = logging.getLogger(__name__)


ObservationParser = Callable[[Any], Observation]


# ============================================================
# RESULT
# ============================================================

@dataclass
class IngestResult:
    """Outcome of one ingested batch."""

    accepted: int = 0
    """Observations applied to the store."""

    notified: List[str] = field(default_factory=list)
    """Fingerprints submitted for notification."""

    skipped: List[Dict[str, Any]] = field(default_factory=list)
    """Malformed observations with the reason they were skipped."""

    persisted: bool = True
    """Whether the post-batch snapshot was written."""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "accepted": self.accepted,
            "notified": list(self.notified),
            "skipped": list(self.skipped),
            "persisted": self.persisted,
        }


# ============================================================
# OBSERVATION PARSING
# ============================================================

def parse_observation(raw: Any) -> Observation:
    """
    Parse a normalized observation {fingerprint, status, metadata}.

    Raises:
        MalformedObservationError: On missing or invalid fields
    """
    if isinstance(raw, Observation):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedObservationError(
            f"Observation must be a mapping, got {type(raw).__name__}"
        )

    fingerprint = raw.get("fingerprint")
    if not isinstance(fingerprint, str) or not fingerprint.strip():
        raise MalformedObservationError("Observation has no fingerprint", field_name="fingerprint")

    try:
        status = AlertStatus.parse(raw.get("status"))
    except ValueError as e:
        raise MalformedObservationError(str(e), field_name="status", cause=e) from e

    metadata = raw.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise MalformedObservationError("Observation metadata must be a mapping", field_name="metadata")

    return Observation(
        fingerprint=fingerprint.strip(),
        status=status,
        metadata={str(k): str(v) for k, v in metadata.items()},
    )


# ============================================================
# INGEST COORDINATOR
# ============================================================

class IngestCoordinator:
    """Entry point for externally reported alert batches."""

    def __init__(
        self,
        store: RecordStore,
        queue: RetryQueue,
        formatter: NotificationFormatter,
        writer: Optional[SnapshotWriter] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize coordinator.

        Args:
            store: Record store
            queue: Delivery queue
            formatter: Renders notifications
            writer: Snapshot writer, None disables persistence
            clock: Time source
        """
        self._store = store
        self._queue = queue
        self._formatter = formatter
        self._writer = writer
        self._clock = clock or SystemClock()

    def ingest(
        self,
        batch: Iterable[Any],
        parser: ObservationParser = parse_observation,
    ) -> IngestResult:
        """
        Apply a batch of observations and persist once.

        Args:
            batch: Raw observations
            parser: Converts each raw item into an Observation

        Returns:
            IngestResult
        """
        result = self._apply(batch, parser)
        if self._writer is not None:
            result.persisted = self._writer.persist(self._store.snapshot())
        self._log_result(result)
        return result

    async def ingest_async(
        self,
        batch: Iterable[Any],
        parser: ObservationParser = parse_observation,
    ) -> IngestResult:
        """Same as ingest(), with the snapshot written in a worker thread."""
        result = self._apply(batch, parser)
        if self._writer is not None:
            snapshot = self._store.snapshot()
            result.persisted = await asyncio.to_thread(self._writer.persist, snapshot)
        self._log_result(result)
        return result

    def _apply(self, batch: Iterable[Any], parser: ObservationParser) -> IngestResult:
        result = IngestResult()
        now = self._clock.now()

        with self._store.batch():
            for index, raw in enumerate(batch):
                try:
                    observation = parser(raw)
                except MalformedObservationError as e:
                    logger.warning(f"Skipping malformed observation #{index}: {e.message}")
                    result.skipped.append({"index": index, "error": e.message, **e.context})
                    continue

                record, fresh = self._store.upsert(
                    observation.fingerprint,
                    observation.status,
                    observation.metadata,
                    now,
                )
                result.accepted += 1
                logger.debug(
                    f"Looking at {record.name} ({record.fingerprint}), status_changed={fresh}"
                )
                if not fresh:
                    continue

                notification = self._formatter.format_alert(record)
                self._store.mark_alerted(record.fingerprint, now)
                self._queue.submit(record.fingerprint, notification)
                result.notified.append(record.fingerprint)

        return result

    def _log_result(self, result: IngestResult) -> None:
        logger.info(
            f"Ingested batch: accepted={result.accepted} "
            f"notified={len(result.notified)} skipped={len(result.skipped)}"
        )


__all__ = [
    "IngestCoordinator",
    "IngestResult",
    "parse_observation",
]
