"""
Notifications - Prowl Delivery Client.

============================================================
PURPOSE
============================================================
Sends push notifications through the Prowl public API.

PRINCIPLES:
- One HTTP call per notification, all API keys in one call
- Every request bounded by a timeout
- Provider responses mapped onto transient / permanent

============================================================
RESPONSE MAPPING
============================================================
200            -> delivered
406, 429, 5xx  -> TransientDeliveryError (rate limit, provider busy)
400, 401, 409  -> PermanentDeliveryError (payload / key problems)
timeout, I/O   -> TransientDeliveryError

============================================================
"""

import asyncio
import logging
from typing import Dict, Optional, Sequence

import aiohttp

from core.exceptions import PermanentDeliveryError, TransientDeliveryError

from .base import DeliveryClient
from .models import Notification


logger = logging.getLogger(__name__)


TRANSIENT_STATUS_CODES = {406, 429}
"""Non-5xx statuses that are worth retrying."""


# ============================================================
# PROWL CLIENT
# ============================================================

class ProwlClient(DeliveryClient):
    """Prowl push delivery client."""

    provider_name = "prowl"

    BASE_URL = "https://api.prowlapp.com/publicapi/add"

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize Prowl client.

        Args:
            timeout_seconds: Per-request timeout
            base_url: Override the API endpoint
            session: Optional shared HTTP session
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._url = base_url or self.BASE_URL
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the client."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @staticmethod
    def build_payload(notification: Notification, credentials: Sequence[str]) -> Dict[str, str]:
        """Build the form payload for one notification."""
        payload = {
            "apikey": ",".join(credentials),
            "application": notification.application,
            "event": notification.event,
            "description": notification.description,
            "priority": str(int(notification.priority)),
        }
        if notification.url:
            payload["url"] = notification.url
        return payload

    async def send(self, notification: Notification, credentials: Sequence[str]) -> None:
        """Send one notification to Prowl."""
        keys = [k for k in credentials if k]
        if not keys:
            raise PermanentDeliveryError(
                "No Prowl API keys configured",
                provider=self.provider_name,
            )

        payload = self.build_payload(notification, keys)

        try:
            session = await self._get_session()
            async with session.post(self._url, data=payload, timeout=self._timeout) as response:
                status = response.status
                if status == 200:
                    logger.debug(f"Prowl accepted '{notification.event}'")
                    return
                body = await response.text()
        except asyncio.TimeoutError as e:
            raise TransientDeliveryError(
                "Prowl request timed out",
                provider=self.provider_name,
                cause=e,
            ) from e
        except aiohttp.ClientError as e:
            raise TransientDeliveryError(
                f"Prowl request failed: {e}",
                provider=self.provider_name,
                cause=e,
            ) from e

        if status >= 500 or status in TRANSIENT_STATUS_CODES:
            raise TransientDeliveryError(
                f"Prowl API error {status}",
                provider=self.provider_name,
                status_code=status,
                response_body=body,
            )
        raise PermanentDeliveryError(
            f"Prowl rejected notification with {status}",
            provider=self.provider_name,
            status_code=status,
            response_body=body,
        )


__all__ = [
    "ProwlClient",
    "TRANSIENT_STATUS_CODES",
]
