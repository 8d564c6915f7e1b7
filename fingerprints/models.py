"""
Fingerprints - Models.

============================================================
PURPOSE
============================================================
Data shapes for alert-state tracking.

- AlertStatus: lifecycle status as last reported upstream
- AlertRecord: one tracked alert, keyed by fingerprint
- Observation: one normalized upstream report of an alert

============================================================
SERIALIZATION
============================================================
Records serialize to a flat dict with ISO 8601 UTC timestamps.
Deserialization is strict: unknown or missing fields raise
instead of defaulting, so a schema change never goes unnoticed.

============================================================
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from core.clock import from_iso8601, to_iso8601


# ============================================================
# ALERT STATUS
# ============================================================

class AlertStatus(Enum):
    """Alert lifecycle status. Values match the upstream wire format."""

    ACTIVE = "firing"
    """Alert is firing."""

    RESOLVED = "resolved"
    """Alert has been reported as resolved."""

    @classmethod
    def parse(cls, value: Any) -> "AlertStatus":
        """Parse an upstream status string."""
        if isinstance(value, AlertStatus):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Status must be a string, got {type(value).__name__}")
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown alert status: {value!r}") from None


# ============================================================
# ALERT RECORD
# ============================================================

RECORD_FIELDS = (
    "fingerprint",
    "status",
    "first_seen",
    "last_seen",
    "last_alerted",
    "resolved_at",
    "metadata",
)


@dataclass
class AlertRecord:
    """
    Tracked state for one alert fingerprint.

    Invariants:
    - last_seen >= first_seen
    - resolved_at is set iff status is RESOLVED
    - last_alerted never moves backwards
    """

    fingerprint: str
    """Stable identifier supplied by the upstream source."""

    status: AlertStatus
    """Last reported status."""

    first_seen: datetime
    """When the fingerprint was first observed."""

    last_seen: datetime
    """When the fingerprint was last observed."""

    last_alerted: datetime
    """When a notification was last enqueued for this fingerprint."""

    resolved_at: Optional[datetime] = None
    """When the alert transitioned to RESOLVED."""

    metadata: Dict[str, str] = field(default_factory=dict)
    """Human-readable summary fields used to render notifications."""

    @property
    def is_active(self) -> bool:
        """Check if alert is still firing."""
        return self.status == AlertStatus.ACTIVE

    @property
    def name(self) -> str:
        """Display name of the alert."""
        return self.metadata.get("alertname") or "Unknown"

    def copy(self) -> "AlertRecord":
        """Detached copy safe to hand out of the store."""
        return replace(self, metadata=dict(self.metadata))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "fingerprint": self.fingerprint,
            "status": self.status.value,
            "first_seen": to_iso8601(self.first_seen),
            "last_seen": to_iso8601(self.last_seen),
            "last_alerted": to_iso8601(self.last_alerted),
            "resolved_at": to_iso8601(self.resolved_at) if self.resolved_at else None,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertRecord":
        """
        Deserialize from dictionary.

        Raises:
            ValueError: On unknown, missing or ill-typed fields
        """
        if not isinstance(data, dict):
            raise ValueError(f"Record must be an object, got {type(data).__name__}")

        keys = set(data)
        missing = set(RECORD_FIELDS) - keys
        unknown = keys - set(RECORD_FIELDS)
        if missing:
            raise ValueError(f"Record is missing fields: {sorted(missing)}")
        if unknown:
            raise ValueError(f"Record has unknown fields: {sorted(unknown)}")

        metadata = data["metadata"]
        if not isinstance(metadata, dict):
            raise ValueError("Record metadata must be an object")

        record = cls(
            fingerprint=str(data["fingerprint"]),
            status=AlertStatus.parse(data["status"]),
            first_seen=from_iso8601(data["first_seen"]),
            last_seen=from_iso8601(data["last_seen"]),
            last_alerted=from_iso8601(data["last_alerted"]),
            resolved_at=from_iso8601(data["resolved_at"]) if data["resolved_at"] else None,
            metadata={str(k): str(v) for k, v in metadata.items()},
        )

        if record.last_seen < record.first_seen:
            raise ValueError(f"Record {record.fingerprint}: last_seen precedes first_seen")
        if (record.resolved_at is not None) != (record.status == AlertStatus.RESOLVED):
            raise ValueError(
                f"Record {record.fingerprint}: resolved_at inconsistent with status"
            )
        return record


# ============================================================
# OBSERVATION
# ============================================================

@dataclass(frozen=True)
class Observation:
    """One normalized upstream report of an alert."""

    fingerprint: str
    status: AlertStatus
    metadata: Dict[str, str] = field(default_factory=dict)


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "AlertStatus",
    "AlertRecord",
    "Observation",
    "RECORD_FIELDS",
]
