"""
Fingerprints Package.

Alert-state tracking keyed by the upstream fingerprint.

Components:
- models: AlertStatus, AlertRecord, Observation
- store: RecordStore (single lock, copies out)
- persistence: SnapshotWriter (atomic JSON snapshots)
"""

from .models import AlertStatus, AlertRecord, Observation
from .store import RecordStore, SCHEMA_VERSION
from .persistence import SnapshotWriter

__all__ = [
    "AlertStatus",
    "AlertRecord",
    "Observation",
    "RecordStore",
    "SCHEMA_VERSION",
    "SnapshotWriter",
]
