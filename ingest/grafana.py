"""
Ingest - Grafana Webhook Normalization.

============================================================
PURPOSE
============================================================
Turns Grafana alerting webhook alerts into Observations.

Only the fields the relay consumes are read:
- fingerprint
- status ("firing" | "resolved")
- labels.alertname
- annotations.summary
- generatorURL

Everything else in the payload is ignored.

============================================================
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.exceptions import MalformedObservationError
from fingerprints.models import AlertStatus, Observation


# ============================================================
# PAYLOAD MODELS
# ============================================================

class GrafanaAlert(BaseModel):
    """One alert inside a Grafana webhook payload."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: str
    fingerprint: str = Field(min_length=1)
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    generator_url: str = Field(default="", alias="generatorURL")

    @field_validator("fingerprint")
    @classmethod
    def _strip_fingerprint(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("fingerprint must not be blank")
        return value


class GrafanaWebhook(BaseModel):
    """
    Grafana webhook envelope.

    Alerts are kept raw so one malformed alert is skipped
    without rejecting the whole batch.
    """

    model_config = ConfigDict(extra="ignore")

    alerts: List[Any] = Field(default_factory=list)


# ============================================================
# NORMALIZATION
# ============================================================

def normalize_alert(raw: Any) -> Observation:
    """
    Convert one raw Grafana alert into an Observation.

    Raises:
        MalformedObservationError: If required fields are missing or invalid
    """
    if not isinstance(raw, dict):
        raise MalformedObservationError(
            f"Alert must be an object, got {type(raw).__name__}"
        )

    try:
        alert = GrafanaAlert.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field_name = ".".join(str(p) for p in first.get("loc", ())) or None
        raise MalformedObservationError(
            f"Invalid Grafana alert: {first.get('msg', str(e))}",
            field_name=field_name,
            cause=e,
        ) from e

    try:
        status = AlertStatus.parse(alert.status)
    except ValueError as e:
        raise MalformedObservationError(str(e), field_name="status", cause=e) from e

    metadata = {
        "alertname": alert.labels.get("alertname", ""),
        "summary": alert.annotations.get("summary", ""),
        "generator_url": alert.generator_url,
    }
    # Empty values are omitted; an empty mapping leaves stored metadata untouched
    metadata = {key: value for key, value in metadata.items() if value}
    return Observation(
        fingerprint=alert.fingerprint,
        status=status,
        metadata=metadata,
    )


__all__ = [
    "GrafanaAlert",
    "GrafanaWebhook",
    "normalize_alert",
]
