"""
Fingerprints - Record Store.

============================================================
RESPONSIBILITY
============================================================
Owns the in-memory mapping of fingerprint -> AlertRecord.

- Applies observations (upsert) and reports when a fresh
  notification is required
- Stamps last_alerted when a notification is enqueued
- Serves read-only copies to the scheduler and status page
- Produces and restores full snapshots

============================================================
CONCURRENCY
============================================================
All access goes through one re-entrant lock. The mapping
itself is never handed out; callers only receive copies.
batch() lets a caller hold the lock across several calls so
upsert + stamp for a whole batch is applied atomically.

============================================================
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple
import logging
import threading

from core.clock import ensure_utc
from core.exceptions import SnapshotLoadError

from .models import AlertRecord, AlertStatus


logger = logging.getLogger(__name__)


SCHEMA_VERSION = 1
"""On-disk snapshot schema version."""


# ============================================================
# RECORD STORE
# ============================================================

class RecordStore:
    """
    Alert record store.

    In-memory state is authoritative for the running process.
    Persistence failures never roll it back.
    """

    def __init__(self):
        """Initialize an empty store."""
        self._records: Dict[str, AlertRecord] = {}
        self._revision = 0
        self._lock = threading.RLock()

    # --------------------------------------------------------
    # Locking
    # --------------------------------------------------------

    @contextmanager
    def batch(self) -> Iterator["RecordStore"]:
        """Hold the store lock across several operations."""
        with self._lock:
            yield self

    @property
    def revision(self) -> int:
        """Monotonic counter bumped on every mutation."""
        with self._lock:
            return self._revision

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._records

    # --------------------------------------------------------
    # Mutations
    # --------------------------------------------------------

    def upsert(
        self,
        fingerprint: str,
        status: AlertStatus,
        metadata: Optional[Mapping[str, str]],
        now: datetime,
    ) -> Tuple[AlertRecord, bool]:
        """
        Apply one observation.

        Args:
            fingerprint: Alert identity
            status: Observed status
            metadata: Summary fields, replaces the stored ones
            now: Observation time

        Returns:
            (record copy, requires_notification). The flag is True
            when the record is new or its status just changed.
        """
        now = ensure_utc(now)
        metadata = dict(metadata or {})

        with self._lock:
            self._revision += 1
            record = self._records.get(fingerprint)

            if record is None:
                record = AlertRecord(
                    fingerprint=fingerprint,
                    status=status,
                    first_seen=now,
                    last_seen=now,
                    last_alerted=now,
                    resolved_at=now if status == AlertStatus.RESOLVED else None,
                    metadata=metadata,
                )
                self._records[fingerprint] = record
                logger.debug(f"New fingerprint {fingerprint} ({status.value})")
                return record.copy(), True

            record.last_seen = max(record.last_seen, now)
            if metadata:
                record.metadata = metadata

            if record.status == status:
                return record.copy(), False

            logger.debug(
                f"Fingerprint {fingerprint} transitioned "
                f"{record.status.value} -> {status.value}"
            )
            record.status = status
            if status == AlertStatus.RESOLVED:
                record.resolved_at = now
            else:
                record.resolved_at = None
            return record.copy(), True

    def mark_alerted(self, fingerprint: str, now: datetime) -> Optional[AlertRecord]:
        """
        Stamp last_alerted for a fingerprint.

        last_alerted only ever moves forward.

        Returns:
            Updated record copy, or None if the fingerprint is unknown
        """
        now = ensure_utc(now)
        with self._lock:
            record = self._records.get(fingerprint)
            if record is None:
                return None
            self._revision += 1
            record.last_alerted = max(record.last_alerted, now)
            return record.copy()

    def delete(self, fingerprint: str) -> bool:
        """
        Remove a fingerprint. Operator action only.

        Returns:
            Whether the fingerprint existed
        """
        with self._lock:
            if self._records.pop(fingerprint, None) is None:
                return False
            self._revision += 1
            logger.info(f"Deleted fingerprint {fingerprint}")
            return True

    # --------------------------------------------------------
    # Read-only accessors
    # --------------------------------------------------------

    def get(self, fingerprint: str) -> Optional[AlertRecord]:
        """Get a copy of one record."""
        with self._lock:
            record = self._records.get(fingerprint)
            return record.copy() if record else None

    def get_active(self) -> List[AlertRecord]:
        """Get copies of all ACTIVE records."""
        with self._lock:
            return [
                r.copy() for r in self._sorted_records()
                if r.status == AlertStatus.ACTIVE
            ]

    def get_all(self) -> List[AlertRecord]:
        """Get copies of all records."""
        with self._lock:
            return [r.copy() for r in self._sorted_records()]

    def stats(self) -> Dict[str, int]:
        """Get record counts."""
        with self._lock:
            active = sum(1 for r in self._records.values() if r.is_active)
            return {
                "total": len(self._records),
                "active": active,
                "resolved": len(self._records) - active,
                "revision": self._revision,
            }

    def _sorted_records(self) -> List[AlertRecord]:
        return [self._records[k] for k in sorted(self._records)]

    # --------------------------------------------------------
    # Snapshot
    # --------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Full serializable state."""
        with self._lock:
            return {
                "version": SCHEMA_VERSION,
                "revision": self._revision,
                "records": [r.to_dict() for r in self._sorted_records()],
            }

    def restore(self, state: Dict[str, Any]) -> None:
        """
        Replace the store contents with a snapshot.

        Raises:
            SnapshotLoadError: If the snapshot does not match the schema
        """
        records = _parse_snapshot(state)
        with self._lock:
            self._records = {r.fingerprint: r for r in records}
            self._revision = int(state["revision"])
        logger.info(f"Restored {len(records)} fingerprint(s), revision={state['revision']}")


# ============================================================
# SNAPSHOT VALIDATION
# ============================================================

def _parse_snapshot(state: Any) -> List[AlertRecord]:
    """Validate snapshot structure and decode its records."""
    if not isinstance(state, dict):
        raise SnapshotLoadError(f"Snapshot must be an object, got {type(state).__name__}")

    if "version" not in state:
        if "data" in state or all(isinstance(v, str) for v in state.values()):
            raise SnapshotLoadError(
                "Snapshot uses a legacy unversioned layout. "
                "Remove the file to start with an empty store."
            )
        raise SnapshotLoadError("Snapshot has no schema version")

    if state["version"] != SCHEMA_VERSION:
        raise SnapshotLoadError(
            f"Unsupported snapshot version {state['version']!r}, expected {SCHEMA_VERSION}"
        )

    unknown = set(state) - {"version", "revision", "records"}
    if unknown:
        raise SnapshotLoadError(f"Snapshot has unknown fields: {sorted(unknown)}")
    if not isinstance(state.get("revision"), int) or state["revision"] < 0:
        raise SnapshotLoadError("Snapshot revision must be a non-negative integer")
    if not isinstance(state.get("records"), list):
        raise SnapshotLoadError("Snapshot records must be a list")

    records: List[AlertRecord] = []
    seen = set()
    for index, raw in enumerate(state["records"]):
        try:
            record = AlertRecord.from_dict(raw)
        except (ValueError, TypeError) as e:
            raise SnapshotLoadError(f"Invalid record #{index}: {e}", cause=e) from e
        if record.fingerprint in seen:
            raise SnapshotLoadError(f"Duplicate fingerprint in snapshot: {record.fingerprint}")
        seen.add(record.fingerprint)
        records.append(record)
    return records


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "RecordStore",
    "SCHEMA_VERSION",
]
