"""
Notifications - Delivery Client Interface.

============================================================
PURPOSE
============================================================
Contract every push provider implements.

send() returns normally on success and raises:
- TransientDeliveryError: retry later
- PermanentDeliveryError: never retry, configuration problem

============================================================
"""

from abc import ABC, abstractmethod
from typing import Sequence

from .models import Notification


class DeliveryClient(ABC):
    """Sends a single notification to an external provider."""

    provider_name: str = "unknown"

    @abstractmethod
    async def send(self, notification: Notification, credentials: Sequence[str]) -> None:
        """
        Deliver one notification.

        Args:
            notification: Rendered notification
            credentials: Provider API keys

        Raises:
            TransientDeliveryError: On retryable failure
            PermanentDeliveryError: On non-retryable failure
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None


__all__ = [
    "DeliveryClient",
]
