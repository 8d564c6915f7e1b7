"""
Ingest Package.

Applies externally reported alert batches to the record store.

Components:
- coordinator: IngestCoordinator, parse_observation
- grafana: Grafana webhook payload normalization
"""

from .coordinator import IngestCoordinator, IngestResult, parse_observation
from .grafana import GrafanaAlert, GrafanaWebhook, normalize_alert

__all__ = [
    "IngestCoordinator",
    "IngestResult",
    "parse_observation",
    "GrafanaAlert",
    "GrafanaWebhook",
    "normalize_alert",
]
