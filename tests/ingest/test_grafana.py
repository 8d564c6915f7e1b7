"""
Tests for Grafana webhook normalization.
"""

import pytest

from core.exceptions import MalformedObservationError
from fingerprints.models import AlertStatus
from ingest.grafana import GrafanaWebhook, normalize_alert


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def firing_alert():
    """Grafana firing alert as sent by the webhook contact point."""
    return {
        "status": "firing",
        "labels": {"alertname": "Alert Name", "team": "ops"},
        "annotations": {"summary": "Annotation Summary"},
        "startsAt": "2024-03-01T12:00:00Z",
        "endsAt": "0001-01-01T00:00:00Z",
        "generatorURL": "http://something/this",
        "fingerprint": "a1b2c3",
        "silenceURL": "http://something/silence",
        "values": {"B": 42},
    }


# ============================================================
# TESTS
# ============================================================

class TestNormalizeAlert:
    """Tests for normalize_alert."""

    def test_firing(self, firing_alert):
        """Test consumed fields are extracted and the rest ignored."""
        observation = normalize_alert(firing_alert)

        assert observation.fingerprint == "a1b2c3"
        assert observation.status == AlertStatus.ACTIVE
        assert observation.metadata == {
            "alertname": "Alert Name",
            "summary": "Annotation Summary",
            "generator_url": "http://something/this",
        }

    def test_resolved(self, firing_alert):
        """Test resolved status maps to RESOLVED."""
        firing_alert["status"] = "resolved"
        assert normalize_alert(firing_alert).status == AlertStatus.RESOLVED

    def test_optional_fields_default(self):
        """Test labels, annotations and URL may be absent."""
        observation = normalize_alert({"status": "firing", "fingerprint": "x"})

        assert observation.metadata == {}

    def test_empty_values_omitted(self, firing_alert):
        """Test blank metadata values are left out."""
        firing_alert["annotations"] = {"summary": ""}
        del firing_alert["generatorURL"]

        assert normalize_alert(firing_alert).metadata == {"alertname": "Alert Name"}

    def test_missing_fingerprint(self, firing_alert):
        """Test alerts without a fingerprint are malformed."""
        del firing_alert["fingerprint"]

        with pytest.raises(MalformedObservationError) as exc_info:
            normalize_alert(firing_alert)

        assert exc_info.value.context["field"] == "fingerprint"

    def test_blank_fingerprint(self, firing_alert):
        """Test whitespace fingerprints are malformed."""
        firing_alert["fingerprint"] = "   "

        with pytest.raises(MalformedObservationError):
            normalize_alert(firing_alert)

    def test_unknown_status(self, firing_alert):
        """Test statuses other than firing/resolved are malformed."""
        firing_alert["status"] = "pending"

        with pytest.raises(MalformedObservationError, match="pending"):
            normalize_alert(firing_alert)

    def test_not_an_object(self):
        """Test non-object entries are malformed."""
        with pytest.raises(MalformedObservationError):
            normalize_alert(["firing"])


class TestGrafanaWebhook:
    """Tests for the webhook envelope."""

    def test_alerts_kept_raw(self, firing_alert):
        """Test one bad alert does not reject the envelope."""
        webhook = GrafanaWebhook.model_validate({
            "receiver": "prowl",
            "status": "firing",
            "alerts": [firing_alert, {"status": "firing"}],
        })

        assert len(webhook.alerts) == 2

    def test_non_object_alerts_kept(self, firing_alert):
        """Test non-object entries reach normalization instead of failing validation."""
        webhook = GrafanaWebhook.model_validate({"alerts": [firing_alert, "garbage", 7]})

        assert webhook.alerts[1:] == ["garbage", 7]
