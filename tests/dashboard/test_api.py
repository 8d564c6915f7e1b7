"""
Tests for the HTTP surface.
"""

import pytest
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from core.clock import MockClock
from dashboard.api import create_app
from dashboard.status_page import render_status_page
from fingerprints.models import AlertStatus
from orchestrator.config import RelayConfig
from orchestrator.core import RelayRuntime


# ============================================================
# FIXTURES
# ============================================================

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def runtime(tmp_path):
    """Create a test-mode runtime."""
    config = RelayConfig.from_dict({
        "fingerprints_file": str(tmp_path / "fingerprints.json"),
        "test_mode": True,
        "alert_every_minutes": 30,
    })
    return RelayRuntime(config, clock=MockClock(T0))


@pytest.fixture
def client(runtime):
    """Create a test client without background tasks."""
    return TestClient(create_app(runtime, manage_lifecycle=False))


def grafana_payload(*alerts):
    return {"receiver": "prowl", "status": "firing", "alerts": list(alerts)}


def grafana_alert(fingerprint="f1", status="firing", name="Disk"):
    return {
        "status": status,
        "fingerprint": fingerprint,
        "labels": {"alertname": name},
        "annotations": {"summary": "95% used"},
        "generatorURL": "http://grafana/alert",
    }


# ============================================================
# WEBHOOK
# ============================================================

class TestWebhook:
    """Tests for POST /webhooks/grafana."""

    def test_accepts_batch(self, client, runtime):
        """Test alerts are ingested and queued."""
        response = client.post("/webhooks/grafana", json=grafana_payload(grafana_alert()))

        assert response.status_code == 200
        assert response.json() == {"status": "accepted", "accepted": 1, "notified": 1, "skipped": 0}
        assert runtime.store.get("f1").status == AlertStatus.ACTIVE
        assert runtime.queue.pending == 1

    def test_malformed_alert_skipped(self, client, runtime):
        """Test a bad alert is skipped while the rest are applied."""
        response = client.post(
            "/webhooks/grafana",
            json=grafana_payload(grafana_alert("f1"), {"status": "firing"}, grafana_alert("f2")),
        )

        assert response.status_code == 200
        assert response.json()["skipped"] == 1
        assert "f1" in runtime.store and "f2" in runtime.store

    def test_non_object_alert_skipped(self, client, runtime):
        """Test a non-object entry is skipped while valid alerts are applied."""
        response = client.post("/webhooks/grafana", json=grafana_payload(grafana_alert("f1"), "garbage"))

        assert response.status_code == 200
        assert response.json()["skipped"] == 1
        assert response.json()["accepted"] == 1
        assert runtime.store.get("f1").status == AlertStatus.ACTIVE

    def test_invalid_envelope(self, client):
        """Test a body without an alert list is rejected."""
        response = client.post("/webhooks/grafana", json={"alerts": "nope"})
        assert response.status_code == 422

    def test_snapshot_written(self, client, runtime):
        """Test the batch is persisted."""
        client.post("/webhooks/grafana", json=grafana_payload(grafana_alert()))
        assert runtime.writer.path.exists()


# ============================================================
# STATUS
# ============================================================

class TestStatus:
    """Tests for status endpoints."""

    def test_status_page(self, client):
        """Test the HTML table lists fingerprints."""
        client.post("/webhooks/grafana", json=grafana_payload(grafana_alert(name="[high] <Disk>")))

        response = client.get("/")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "<th>ID</th>" in response.text
        assert "f1" in response.text
        assert "&lt;Disk&gt;" in response.text
        assert "HIGH" in response.text

    def test_fingerprints_json(self, client):
        """Test records are listed as JSON."""
        client.post("/webhooks/grafana", json=grafana_payload(grafana_alert()))

        data = client.get("/api/fingerprints").json()

        assert data["count"] == 1
        assert data["records"][0]["fingerprint"] == "f1"
        assert data["records"][0]["status"] == "firing"

    def test_health(self, client):
        """Test health reports counters."""
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["test_mode"] is True
        assert data["records"]["total"] == 0


# ============================================================
# ADMIN
# ============================================================

class TestDelete:
    """Tests for DELETE /fingerprints/{fingerprint}."""

    def test_delete_existing(self, client, runtime):
        """Test deletion removes and persists."""
        client.post("/webhooks/grafana", json=grafana_payload(grafana_alert()))

        response = client.delete("/fingerprints/f1")

        assert response.status_code == 200
        assert "f1" not in runtime.store

    def test_delete_unknown(self, client):
        """Test unknown fingerprints return 404."""
        assert client.delete("/fingerprints/missing").status_code == 404


# ============================================================
# LIFECYCLE
# ============================================================

class TestLifespan:
    """Tests for runtime start/stop with the app."""

    def test_lifespan_delivers(self, runtime):
        """Test background dispatcher delivers webhook notifications."""
        with TestClient(create_app(runtime)) as client:
            assert runtime.is_running
            client.post("/webhooks/grafana", json=grafana_payload(grafana_alert()))
            for _ in range(50):
                if runtime.client.sent:
                    break
                client.get("/health")

        assert not runtime.is_running
        assert runtime.client.sent[0].event == "[🔥] Disk"


class TestStatusPage:
    """Tests for the status page renderer."""

    def test_empty(self):
        """Test an empty store renders only the header row."""
        html = render_status_page([])
        assert html.count("<tr>") == 1
