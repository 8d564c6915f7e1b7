"""
Dashboard Package.

HTTP surface of the relay: webhook, status page, admin
deletion and health.
"""

from .api import create_app
from .status_page import render_status_page

__all__ = [
    "create_app",
    "render_status_page",
]
