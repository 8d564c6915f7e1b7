"""
Notifications - Models.

============================================================
PURPOSE
============================================================
Rendered notification payloads handed to delivery clients.

============================================================
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional


# ============================================================
# PRIORITY
# ============================================================

class Priority(IntEnum):
    """Push priority, on the provider's -2..2 scale."""

    VERY_LOW = -2
    MODERATE = -1
    NORMAL = 0
    HIGH = 1
    EMERGENCY = 2


# ============================================================
# NOTIFICATION
# ============================================================

@dataclass(frozen=True)
class Notification:
    """A fully rendered push notification."""

    application: str
    """Sending application name shown by the client."""

    event: str
    """Notification title."""

    description: str
    """Notification body."""

    priority: Priority = Priority.NORMAL
    """Delivery priority."""

    url: Optional[str] = None
    """Optional link attached to the notification."""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "application": self.application,
            "event": self.event,
            "description": self.description,
            "priority": int(self.priority),
            "url": self.url,
        }


__all__ = [
    "Priority",
    "Notification",
]
