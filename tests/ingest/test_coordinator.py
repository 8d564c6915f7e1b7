"""
Tests for the Ingest Coordinator.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from core.clock import MockClock
from core.exceptions import MalformedObservationError
from fingerprints.models import AlertStatus, Observation
from fingerprints.persistence import SnapshotWriter
from fingerprints.store import RecordStore
from ingest.coordinator import IngestCoordinator, parse_observation
from ingest.grafana import normalize_alert
from notifications.formatter import NotificationFormatter
from notifications.models import Priority
from notifications.noop import NoopDeliveryClient
from notifications.retry_queue import RetryQueue


# ============================================================
# FIXTURES
# ============================================================

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Create mock clock."""
    return MockClock(T0)


@pytest.fixture
def store():
    """Create empty store."""
    return RecordStore()


@pytest.fixture
def queue(clock):
    """Create retry queue."""
    return RetryQueue(NoopDeliveryClient(), ["key"], clock=clock)


@pytest.fixture
def writer():
    """Create mock writer."""
    writer = MagicMock(spec=SnapshotWriter)
    writer.persist.return_value = True
    return writer


@pytest.fixture
def coordinator(store, queue, writer, clock):
    """Create coordinator."""
    return IngestCoordinator(store, queue, NotificationFormatter(), writer, clock)


def observation(fingerprint="A", status="firing", name="Disk"):
    return {
        "fingerprint": fingerprint,
        "status": status,
        "metadata": {"alertname": name, "summary": "full"},
    }


# ============================================================
# PARSING
# ============================================================

class TestParseObservation:
    """Tests for parse_observation."""

    def test_valid(self):
        """Test a normalized mapping is parsed."""
        parsed = parse_observation(observation())

        assert parsed == Observation(
            fingerprint="A",
            status=AlertStatus.ACTIVE,
            metadata={"alertname": "Disk", "summary": "full"},
        )

    def test_observation_passthrough(self):
        """Test Observation instances are accepted as-is."""
        obs = Observation("A", AlertStatus.RESOLVED)
        assert parse_observation(obs) is obs

    @pytest.mark.parametrize("raw", [
        "not a mapping",
        {"status": "firing"},
        {"fingerprint": "  ", "status": "firing"},
        {"fingerprint": "A", "status": "pending"},
        {"fingerprint": "A"},
        {"fingerprint": "A", "status": "firing", "metadata": ["x"]},
    ])
    def test_malformed(self, raw):
        """Test malformed observations raise."""
        with pytest.raises(MalformedObservationError):
            parse_observation(raw)


# ============================================================
# INGEST
# ============================================================

class TestIngest:
    """Tests for IngestCoordinator.ingest."""

    def test_new_alert_submitted_and_stamped(self, coordinator, store, queue):
        """Test fresh observations are queued with last_alerted = now."""
        result = coordinator.ingest([observation()])

        assert result.accepted == 1
        assert result.notified == ["A"]
        assert store.get("A").last_alerted == T0
        item = queue.pending_items()[0]
        assert item.fingerprint == "A"
        assert item.notification.event == "[🔥] Disk"

    def test_repeat_not_submitted(self, coordinator, queue, clock):
        """Test unchanged status is not re-notified."""
        coordinator.ingest([observation()])
        clock.advance(minutes=1)
        result = coordinator.ingest([observation()])

        assert result.accepted == 1
        assert result.notified == []
        assert queue.pending == 1

    def test_resolution_submitted(self, coordinator, store, queue, clock):
        """Test status change to resolved is notified at very low priority."""
        coordinator.ingest([observation()])
        clock.advance(minutes=5)
        result = coordinator.ingest([observation(status="resolved")])

        assert result.notified == ["A"]
        assert store.get("A").last_alerted == T0 + timedelta(minutes=5)
        resolved = queue.pending_items()[-1].notification
        assert resolved.event == "[✅] Disk"
        assert resolved.priority == Priority.VERY_LOW

    def test_malformed_item_skipped(self, coordinator, store):
        """Test one malformed observation does not abort the batch."""
        result = coordinator.ingest([
            observation("A"),
            {"status": "firing"},
            observation("B"),
        ])

        assert result.accepted == 2
        assert result.notified == ["A", "B"]
        assert len(result.skipped) == 1
        assert result.skipped[0]["index"] == 1
        assert "A" in store and "B" in store

    def test_persist_once_per_batch(self, coordinator, writer):
        """Test the snapshot is written once for the whole batch."""
        coordinator.ingest([observation("A"), observation("B"), observation("C")])

        writer.persist.assert_called_once()
        snapshot = writer.persist.call_args[0][0]
        assert len(snapshot["records"]) == 3

    def test_persist_failure_reported(self, coordinator, writer, store):
        """Test in-memory state survives a failed write."""
        writer.persist.return_value = False

        result = coordinator.ingest([observation()])

        assert result.persisted is False
        assert "A" in store

    def test_empty_batch(self, coordinator, queue):
        """Test an empty batch does nothing."""
        result = coordinator.ingest([])

        assert result.accepted == 0
        assert queue.pending == 0

    def test_replay_idempotent(self, coordinator, store):
        """Test replaying the same batch at the same instant changes nothing."""
        batch = [observation("A"), observation("B", status="resolved")]

        coordinator.ingest(batch)
        first = store.snapshot()["records"]
        coordinator.ingest(batch)

        assert store.snapshot()["records"] == first

    def test_grafana_parser(self, coordinator, store):
        """Test a custom parser is used per item."""
        result = coordinator.ingest(
            [{
                "status": "firing",
                "fingerprint": "f1",
                "labels": {"alertname": "[high] Disk"},
                "annotations": {"summary": "95%"},
                "generatorURL": "http://grafana/alert",
            }],
            parser=normalize_alert,
        )

        assert result.notified == ["f1"]
        assert store.get("f1").metadata["generator_url"] == "http://grafana/alert"

    def test_grafana_sparse_repeat_keeps_metadata(self, coordinator, store):
        """Test a repeat without labels keeps the stored alert name."""
        coordinator.ingest(
            [{"status": "firing", "fingerprint": "f1", "labels": {"alertname": "Disk"}}],
            parser=normalize_alert,
        )

        coordinator.ingest([{"status": "firing", "fingerprint": "f1"}], parser=normalize_alert)

        assert store.get("f1").metadata == {"alertname": "Disk"}

    def test_without_writer(self, store, queue, clock):
        """Test persistence can be disabled."""
        coordinator = IngestCoordinator(store, queue, NotificationFormatter(), None, clock)

        result = coordinator.ingest([observation()])

        assert result.persisted is True
        assert result.to_dict()["notified"] == ["A"]

    @pytest.mark.asyncio
    async def test_ingest_async_writes_snapshot(self, store, queue, clock, tmp_path):
        """Test the async path applies the batch and writes the snapshot."""
        writer = SnapshotWriter(tmp_path / "fingerprints.json")
        coordinator = IngestCoordinator(store, queue, NotificationFormatter(), writer, clock)

        result = await coordinator.ingest_async([observation("A"), "garbage"])

        assert result.notified == ["A"]
        assert len(result.skipped) == 1
        assert result.persisted is True
        assert writer.load()["revision"] == store.revision
