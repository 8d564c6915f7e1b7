"""
Orchestrator Package - Relay Wiring Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Loads configuration, wires the relay components into one
runtime and serves them.

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                    RelayRuntime                     |
    |-----------------------------------------------------|
    |  RecordStore        |  alert records, one lock      |
    |  SnapshotWriter     |  atomic JSON snapshots        |
    |  RetryQueue         |  linear-backoff delivery      |
    |  RealertScheduler   |  interval and cron re-alerts  |
    |  IngestCoordinator  |  webhook batches              |
    +-----------------------------------------------------+

============================================================
"""

from .config import RelayConfig, load_config
from .core import RelayRuntime, create_runtime, setup_logging

__all__ = [
    "RelayConfig",
    "load_config",
    "RelayRuntime",
    "create_runtime",
    "setup_logging",
]
