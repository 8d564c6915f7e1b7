"""
Tests for NotificationFormatter.
"""

import pytest
from datetime import datetime, timezone

from fingerprints.models import AlertRecord, AlertStatus
from notifications.formatter import (
    MAX_DESCRIPTION_LENGTH,
    MAX_EVENT_LENGTH,
    NotificationFormatter,
)
from notifications.models import Notification, Priority


# ============================================================
# FIXTURES
# ============================================================

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_record(
    name: str = "Alert Name",
    status: AlertStatus = AlertStatus.ACTIVE,
    summary: str = "Annotation Summary",
    url: str = "http://something/this",
) -> AlertRecord:
    return AlertRecord(
        fingerprint="abc123",
        status=status,
        first_seen=T0,
        last_seen=T0,
        last_alerted=T0,
        resolved_at=T0 if status == AlertStatus.RESOLVED else None,
        metadata={"alertname": name, "summary": summary, "generator_url": url},
    )


@pytest.fixture
def formatter():
    """Create formatter."""
    return NotificationFormatter()


# ============================================================
# TESTS
# ============================================================

class TestFormatAlert:
    """Tests for fresh alert notifications."""

    def test_firing_alert(self, formatter):
        """Test a firing alert renders icon, summary and link."""
        notification = formatter.format_alert(make_record())

        assert notification.application == "Grafana"
        assert notification.event == "[🔥] Alert Name"
        assert notification.description == "firing: Annotation Summary"
        assert notification.url == "http://something/this"
        assert notification.priority == Priority.NORMAL

    def test_resolved_alert(self, formatter):
        """Test a resolved alert is very low priority."""
        notification = formatter.format_alert(
            make_record(name="[high] Alert Name", status=AlertStatus.RESOLVED)
        )

        assert notification.event == "[✅] [high] Alert Name"
        assert notification.description == "resolved: Annotation Summary"
        assert notification.priority == Priority.VERY_LOW

    def test_custom_app_name(self):
        """Test application name comes from configuration."""
        notification = NotificationFormatter(app_name="Prod").format_alert(make_record())
        assert notification.application == "Prod"

    def test_missing_url_omitted(self, formatter):
        """Test empty generator URL renders no link."""
        notification = formatter.format_alert(make_record(url=""))
        assert notification.url is None

    def test_long_fields_truncated(self, formatter):
        """Test fields are cut to provider limits."""
        notification = formatter.format_alert(
            make_record(name="x" * 5000, summary="y" * 20000)
        )

        assert len(notification.event) == MAX_EVENT_LENGTH
        assert len(notification.description) == MAX_DESCRIPTION_LENGTH
        assert notification.event.endswith("…")


class TestPriority:
    """Tests for priority derivation."""

    @pytest.mark.parametrize("name,expected", [
        ("[critical] Disk", Priority.EMERGENCY),
        ("[CRIT] Disk", Priority.EMERGENCY),
        ("[high] Disk", Priority.HIGH),
        ("[HIGH] Disk", Priority.HIGH),
        ("Disk [high]", Priority.NORMAL),
        ("Disk", Priority.NORMAL),
    ])
    def test_firing_priority(self, name, expected):
        """Test name prefixes map to priorities."""
        assert NotificationFormatter.priority_for(make_record(name=name)) == expected

    def test_resolved_always_very_low(self):
        """Test resolution overrides the name prefix."""
        record = make_record(name="[critical] Disk", status=AlertStatus.RESOLVED)
        assert NotificationFormatter.priority_for(record) == Priority.VERY_LOW


class TestFormatRealert:
    """Tests for re-alert notifications."""

    def test_realert(self, formatter):
        """Test re-alert wording keeps firing priority."""
        notification = formatter.format_realert(make_record(name="[high] Disk"))

        assert notification.event == "[🕓] [high] Disk"
        assert notification.description == "[high] Disk is still firing."
        assert notification.priority == Priority.HIGH
        assert notification.url is None


class TestNotification:
    """Tests for the Notification model."""

    def test_to_dict(self):
        """Test serialization uses the integer priority."""
        notification = Notification(
            application="Grafana",
            event="e",
            description="d",
            priority=Priority.EMERGENCY,
        )
        assert notification.to_dict()["priority"] == 2
