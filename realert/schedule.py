"""
Re-alert - Schedule Evaluation.

============================================================
PURPOSE
============================================================
Pure functions deciding whether an ACTIVE record is due for
a repeat notification. No I/O, no wall-clock reads, so every
rule can be tested with fixed timestamps.

============================================================
TRIGGERS
============================================================
Interval: now - last_alerted >= alert_every
Cron:     a cron slot (UTC, 5-field) lies in (previous_tick, now]
          and last_alerted predates that slot

Both triggers are independent and additive.

============================================================
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from croniter import croniter

from core.clock import ensure_utc
from fingerprints.models import AlertRecord, AlertStatus


TRIGGER_INTERVAL = "interval"
TRIGGER_CRON = "cron"


# ============================================================
# POLICY
# ============================================================

@dataclass(frozen=True)
class RealertPolicy:
    """Configured re-alert triggers."""

    alert_every: Optional[timedelta] = None
    """Re-alert when this much time passed since last_alerted."""

    cron: Optional[str] = None
    """Standard 5-field cron expression, evaluated in UTC."""

    def __post_init__(self):
        if self.alert_every is not None and self.alert_every <= timedelta(0):
            raise ValueError("alert_every must be positive")
        if self.cron is not None and not croniter.is_valid(self.cron):
            raise ValueError(f"Invalid cron expression: {self.cron!r}")

    @property
    def enabled(self) -> bool:
        """Check if any trigger is configured."""
        return self.alert_every is not None or self.cron is not None

    @classmethod
    def from_settings(
        cls,
        alert_every_minutes: Optional[int] = None,
        cron: Optional[str] = None,
    ) -> "RealertPolicy":
        """Build a policy from configuration values."""
        alert_every = (
            timedelta(minutes=alert_every_minutes)
            if alert_every_minutes is not None else None
        )
        return cls(alert_every=alert_every, cron=cron or None)


# ============================================================
# CRON EVALUATION
# ============================================================

def latest_cron_slot(
    expression: str,
    previous_tick: datetime,
    now: datetime,
) -> Optional[datetime]:
    """
    Latest cron trigger point in (previous_tick, now].

    Returns:
        The slot, or None if the window contains no slot
    """
    previous_tick = ensure_utc(previous_tick)
    now = ensure_utc(now)
    if now <= previous_tick:
        return None

    schedule = croniter(expression, previous_tick)
    slot = None
    candidate = ensure_utc(schedule.get_next(datetime))
    while candidate <= now:
        slot = candidate
        candidate = ensure_utc(schedule.get_next(datetime))
    return slot


# ============================================================
# DUE EVALUATION
# ============================================================

def realert_trigger(
    record: AlertRecord,
    now: datetime,
    previous_tick: datetime,
    policy: RealertPolicy,
) -> Optional[str]:
    """
    Which trigger makes the record due, if any.

    Returns:
        TRIGGER_INTERVAL, TRIGGER_CRON or None
    """
    if record.status != AlertStatus.ACTIVE:
        return None

    now = ensure_utc(now)
    last_alerted = ensure_utc(record.last_alerted)

    if policy.alert_every is not None and now - last_alerted >= policy.alert_every:
        return TRIGGER_INTERVAL

    if policy.cron is not None:
        slot = latest_cron_slot(policy.cron, previous_tick, now)
        if slot is not None and last_alerted < slot:
            return TRIGGER_CRON

    return None


def due(
    record: AlertRecord,
    now: datetime,
    previous_tick: datetime,
    policy: RealertPolicy,
) -> bool:
    """Check if an ACTIVE record is due for re-notification."""
    return realert_trigger(record, now, previous_tick, policy) is not None


__all__ = [
    "RealertPolicy",
    "latest_cron_slot",
    "realert_trigger",
    "due",
    "TRIGGER_INTERVAL",
    "TRIGGER_CRON",
]
