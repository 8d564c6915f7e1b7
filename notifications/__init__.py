"""
Notifications Package.

Rendering and delivery of push notifications.

Components:
- models: Notification, Priority
- formatter: NotificationFormatter
- base: DeliveryClient interface
- prowl: ProwlClient (aiohttp)
- noop: NoopDeliveryClient (test mode)
- retry_queue: RetryQueue, WorkItem
"""

from .models import Notification, Priority
from .formatter import NotificationFormatter
from .base import DeliveryClient
from .prowl import ProwlClient
from .noop import NoopDeliveryClient
from .retry_queue import RetryQueue, WorkItem

__all__ = [
    "Notification",
    "Priority",
    "NotificationFormatter",
    "DeliveryClient",
    "ProwlClient",
    "NoopDeliveryClient",
    "RetryQueue",
    "WorkItem",
]
