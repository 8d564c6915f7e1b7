"""
Notifications - No-op Delivery Client.

Test-mode client: no network call, always succeeds. Keeps the
notifications it was asked to send so the rest of the pipeline
can be checked deterministically.
"""

import logging
from typing import List, Sequence

from .base import DeliveryClient
from .models import Notification


logger = logging.getLogger(__name__)


class NoopDeliveryClient(DeliveryClient):
    """Delivery client that only records what it receives."""

    provider_name = "noop"

    def __init__(self, max_history: int = 1000):
        self._sent: List[Notification] = []
        self._max_history = max_history

    @property
    def sent(self) -> List[Notification]:
        """Notifications accepted so far, oldest first."""
        return list(self._sent)

    async def send(self, notification: Notification, credentials: Sequence[str]) -> None:
        logger.info(f"[test mode] would send '{notification.event}'")
        self._sent.append(notification)
        if len(self._sent) > self._max_history:
            self._sent = self._sent[-self._max_history:]


__all__ = [
    "NoopDeliveryClient",
]
