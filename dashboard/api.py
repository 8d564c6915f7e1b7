"""
Dashboard - API.

============================================================
RESPONSIBILITY
============================================================
HTTP surface of the relay.

- POST   /webhooks/grafana        Grafana alert webhook
- GET    /                        HTML status page
- GET    /api/fingerprints        Records as JSON
- DELETE /fingerprints/{id}       Forget a record
- GET    /health                  Liveness and counters

============================================================
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from ingest.grafana import GrafanaWebhook, normalize_alert
from orchestrator.core import RelayRuntime

from .status_page import render_status_page

logger = logging.getLogger(__name__)


# ============================================================
# Response Models
# ============================================================

class WebhookResponse(BaseModel):
    status: str = "accepted"
    accepted: int = 0
    notified: int = 0
    skipped: int = 0


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime_seconds: float = 0
    running: bool = False
    test_mode: bool = False
    records: Dict[str, int] = {}
    queue: Dict[str, int] = {}
    persistence_failures: int = 0
    last_persistence_error: Optional[str] = None


class FingerprintsResponse(BaseModel):
    count: int
    records: List[Dict[str, Any]]


# ============================================================
# FastAPI Application
# ============================================================

def create_app(runtime: RelayRuntime, manage_lifecycle: bool = True) -> FastAPI:
    """
    Build the FastAPI application around a runtime.

    Args:
        runtime: Wired relay runtime
        manage_lifecycle: Start and stop the runtime with the app

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            await runtime.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await runtime.stop()

    app = FastAPI(
        title="Grafana Prowl Relay",
        description="Relays Grafana alert webhooks to Prowl push notifications",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    started_at = runtime.clock.now()

    # --------------------------------------------------------
    # Webhook
    # --------------------------------------------------------

    @app.post("/webhooks/grafana", response_model=WebhookResponse, tags=["Webhooks"])
    async def grafana_webhook(payload: GrafanaWebhook):
        """Ingest one Grafana webhook batch."""
        result = await runtime.coordinator.ingest_async(payload.alerts, parser=normalize_alert)
        return WebhookResponse(
            accepted=result.accepted,
            notified=len(result.notified),
            skipped=len(result.skipped),
        )

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    @app.get("/", response_class=HTMLResponse, tags=["Status"])
    async def status_page():
        """HTML table of known fingerprints."""
        return render_status_page(
            runtime.store.get_all(),
            status=runtime.status(),
            failures=runtime.queue.permanent_failures,
        )

    @app.get("/api/fingerprints", response_model=FingerprintsResponse, tags=["Status"])
    async def list_fingerprints():
        """Known fingerprints as JSON."""
        records = [r.to_dict() for r in runtime.store.get_all()]
        return FingerprintsResponse(count=len(records), records=records)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        now: datetime = runtime.clock.now()
        status = runtime.status()
        return HealthResponse(
            status="healthy" if status["last_persistence_error"] is None else "degraded",
            timestamp=now.isoformat(),
            uptime_seconds=(now - started_at).total_seconds(),
            running=status["running"],
            test_mode=status["test_mode"],
            records=status["records"],
            queue=status["queue"],
            persistence_failures=status["persistence_failures"],
            last_persistence_error=status["last_persistence_error"],
        )

    # --------------------------------------------------------
    # Admin
    # --------------------------------------------------------

    @app.delete("/fingerprints/{fingerprint}", tags=["Admin"])
    async def delete_fingerprint(fingerprint: str):
        """Forget a fingerprint."""
        if not await runtime.delete_fingerprint(fingerprint):
            raise HTTPException(status_code=404, detail=f"Unknown fingerprint: {fingerprint}")
        logger.info(f"Deleted fingerprint {fingerprint}")
        return {"deleted": fingerprint}

    return app


__all__ = [
    "create_app",
]
