"""
Re-alert Package.

Repeat notifications for alerts that stay ACTIVE.

Components:
- schedule: RealertPolicy and the pure due() predicate
- scheduler: RealertScheduler tick loop
"""

from .schedule import RealertPolicy, due, latest_cron_slot, realert_trigger
from .scheduler import RealertScheduler

__all__ = [
    "RealertPolicy",
    "due",
    "latest_cron_slot",
    "realert_trigger",
    "RealertScheduler",
]
