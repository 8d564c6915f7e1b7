"""
Notifications - Formatter.

============================================================
PURPOSE
============================================================
Renders alert records into push notifications.

- Fresh alerts: status icon + alert name, "<status>: <summary>"
- Re-alerts: clock icon + alert name, "<name> is still firing."
- Priority derived from the alert name prefix
- Fields truncated to provider limits

============================================================
"""

from typing import Dict

from fingerprints.models import AlertRecord, AlertStatus

from .models import Notification, Priority


# ============================================================
# PROVIDER LIMITS
# ============================================================

MAX_APPLICATION_LENGTH = 256
MAX_EVENT_LENGTH = 1024
MAX_DESCRIPTION_LENGTH = 10000
MAX_URL_LENGTH = 512


# ============================================================
# NOTIFICATION FORMATTER
# ============================================================

class NotificationFormatter:
    """
    Formats alert records for delivery.

    The record's metadata is only read here; the store never
    interprets it.
    """

    STATUS_ICONS: Dict[AlertStatus, str] = {
        AlertStatus.ACTIVE: "🔥",
        AlertStatus.RESOLVED: "✅",
    }

    REALERT_ICON = "🕓"

    EMERGENCY_PREFIXES = ("[critical]", "[CRIT]")
    HIGH_PREFIXES = ("[high]", "[HIGH]")

    def __init__(self, app_name: str = "Grafana"):
        """
        Initialize formatter.

        Args:
            app_name: Application name shown on notifications
        """
        self._app_name = _truncate(app_name, MAX_APPLICATION_LENGTH)

    @property
    def app_name(self) -> str:
        """Application name shown on notifications."""
        return self._app_name

    @classmethod
    def priority_for(cls, record: AlertRecord) -> Priority:
        """Derive priority from status and alert name prefix."""
        if record.status != AlertStatus.ACTIVE:
            return Priority.VERY_LOW

        name = record.metadata.get("alertname", "")
        if name.startswith(cls.EMERGENCY_PREFIXES):
            return Priority.EMERGENCY
        if name.startswith(cls.HIGH_PREFIXES):
            return Priority.HIGH
        return Priority.NORMAL

    def format_alert(self, record: AlertRecord) -> Notification:
        """Format a new or status-changed alert."""
        icon = self.STATUS_ICONS.get(record.status, record.status.value)
        summary = record.metadata.get("summary", "")
        url = record.metadata.get("generator_url") or None

        return Notification(
            application=self._app_name,
            event=_truncate(f"[{icon}] {record.name}", MAX_EVENT_LENGTH),
            description=_truncate(f"{record.status.value}: {summary}", MAX_DESCRIPTION_LENGTH),
            priority=self.priority_for(record),
            url=url if url and len(url) <= MAX_URL_LENGTH else None,
        )

    def format_realert(self, record: AlertRecord) -> Notification:
        """Format a repeat notification for a still-firing alert."""
        return Notification(
            application=self._app_name,
            event=_truncate(f"[{self.REALERT_ICON}] {record.name}", MAX_EVENT_LENGTH),
            description=_truncate(f"{record.name} is still firing.", MAX_DESCRIPTION_LENGTH),
            priority=self.priority_for(record),
        )


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


__all__ = [
    "NotificationFormatter",
    "MAX_APPLICATION_LENGTH",
    "MAX_EVENT_LENGTH",
    "MAX_DESCRIPTION_LENGTH",
    "MAX_URL_LENGTH",
]
