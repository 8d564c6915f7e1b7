#!/usr/bin/env python3
"""
Grafana Prowl Relay - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
- Loads configuration (CLI argument, $RELAY_CONFIG, ./config.json)
- Restores the fingerprint snapshot
- Serves the webhook and status page until interrupted

============================================================
USAGE
============================================================
Direct execution:
    python app.py config.json

Environment-based configuration:
    RELAY_CONFIG=/etc/relay.json python app.py

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.cli import main


if __name__ == "__main__":
    sys.exit(main())
