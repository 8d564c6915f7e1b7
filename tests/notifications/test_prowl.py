"""
Tests for the Prowl delivery client.

The HTTP session is replaced by an in-memory fake so no
request leaves the process.
"""

import asyncio
import pytest
from typing import Any, Dict, List, Optional

import aiohttp

from core.exceptions import PermanentDeliveryError, TransientDeliveryError
from notifications.models import Notification, Priority
from notifications.noop import NoopDeliveryClient
from notifications.prowl import ProwlClient


# ============================================================
# FIXTURES
# ============================================================

class FakeResponse:
    """Minimal aiohttp response stand-in."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeSession:
    """Records posts and returns a canned response or raises."""

    def __init__(self, response: Optional[FakeResponse] = None, error: Optional[BaseException] = None):
        self.closed = False
        self.calls: List[Dict[str, Any]] = []
        self._response = response
        self._error = error

    def post(self, url: str, data: Optional[Dict[str, str]] = None, timeout: Any = None):
        self.calls.append({"url": url, "data": data})
        if self._error is not None:
            raise self._error
        return self._response

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def notification():
    """Create a notification."""
    return Notification(
        application="Grafana",
        event="[🔥] Disk",
        description="firing: 95% used",
        priority=Priority.HIGH,
        url="http://grafana/alert",
    )


def make_client(response=None, error=None):
    session = FakeSession(response=response, error=error)
    return ProwlClient(session=session), session


# ============================================================
# PAYLOAD
# ============================================================

class TestBuildPayload:
    """Tests for the form payload."""

    def test_payload_fields(self, notification):
        """Test every Prowl field is populated."""
        payload = ProwlClient.build_payload(notification, ["key1", "key2"])

        assert payload == {
            "apikey": "key1,key2",
            "application": "Grafana",
            "event": "[🔥] Disk",
            "description": "firing: 95% used",
            "priority": "1",
            "url": "http://grafana/alert",
        }

    def test_payload_without_url(self):
        """Test url is omitted when absent."""
        payload = ProwlClient.build_payload(
            Notification(application="a", event="e", description="d"), ["k"]
        )
        assert "url" not in payload


# ============================================================
# SEND
# ============================================================

class TestSend:
    """Tests for ProwlClient.send."""

    @pytest.mark.asyncio
    async def test_success(self, notification):
        """Test 200 is delivered."""
        client, session = make_client(FakeResponse(200))

        await client.send(notification, ["key1"])

        assert len(session.calls) == 1
        assert session.calls[0]["url"] == ProwlClient.BASE_URL
        assert session.calls[0]["data"]["apikey"] == "key1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [406, 429, 500, 503])
    async def test_transient_statuses(self, notification, status):
        """Test rate limits and server errors are transient."""
        client, _ = make_client(FakeResponse(status, "busy"))

        with pytest.raises(TransientDeliveryError) as exc_info:
            await client.send(notification, ["key1"])

        assert exc_info.value.status_code == status
        assert exc_info.value.is_retryable

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 409])
    async def test_permanent_statuses(self, notification, status):
        """Test bad requests and bad keys are permanent."""
        client, _ = make_client(FakeResponse(status, "<error code='401'>Invalid API key</error>"))

        with pytest.raises(PermanentDeliveryError) as exc_info:
            await client.send(notification, ["key1"])

        assert exc_info.value.status_code == status
        assert not exc_info.value.is_retryable

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, notification):
        """Test timeouts are retried."""
        client, _ = make_client(error=asyncio.TimeoutError())

        with pytest.raises(TransientDeliveryError, match="timed out"):
            await client.send(notification, ["key1"])

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, notification):
        """Test network errors are retried."""
        client, _ = make_client(error=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(TransientDeliveryError):
            await client.send(notification, ["key1"])

    @pytest.mark.asyncio
    async def test_no_keys_is_permanent(self, notification):
        """Test missing credentials never reach the network."""
        client, session = make_client(FakeResponse(200))

        with pytest.raises(PermanentDeliveryError):
            await client.send(notification, ["", ""])

        assert session.calls == []

    @pytest.mark.asyncio
    async def test_close_keeps_borrowed_session(self, notification):
        """Test a session passed in is not closed by the client."""
        client, session = make_client(FakeResponse(200))

        await client.close()

        assert session.closed is False


class TestNoopClient:
    """Tests for the test-mode client."""

    @pytest.mark.asyncio
    async def test_records_sent(self, notification):
        """Test notifications are recorded instead of sent."""
        client = NoopDeliveryClient()

        await client.send(notification, [])

        assert client.sent == [notification]
        assert client.provider_name == "noop"
