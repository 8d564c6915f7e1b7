"""
Dashboard - Status Page.

Renders the read-only HTML table of known fingerprints.
"""

from datetime import datetime
from html import escape
from typing import Any, Dict, List, Optional

from fingerprints.models import AlertRecord
from notifications.formatter import NotificationFormatter


LAST_ALERT_FORMAT = "%d/%m/%y %H:%M"
FIRST_SEEN_FORMAT = "%d/%m/%Y %H:%M"

COLUMNS = ("ID", "Name", "Priority", "Status", "Last Alert", "First Seen")


def _format_time(value: Optional[datetime], fmt: str) -> str:
    if value is None:
        return "Unknown"
    return value.strftime(fmt)


def _row(cells: List[str], tag: str = "td") -> str:
    return "<tr>" + "".join(f"<{tag}>{escape(c)}</{tag}>" for c in cells) + "</tr>"


def render_record_row(record: AlertRecord) -> str:
    """One table row for a record."""
    return _row([
        record.fingerprint,
        record.name,
        NotificationFormatter.priority_for(record).name,
        record.status.value,
        _format_time(record.last_alerted, LAST_ALERT_FORMAT),
        _format_time(record.first_seen, FIRST_SEEN_FORMAT),
    ])


def render_status_page(
    records: List[AlertRecord],
    status: Optional[Dict[str, Any]] = None,
    failures: Optional[List[Dict[str, Any]]] = None,
) -> str:
    """
    Render the status page.

    Args:
        records: Records to list
        status: Runtime summary (queue and record counts)
        failures: Recent permanent delivery failures

    Returns:
        HTML document
    """
    parts = ["<html><head><title>Alert Relay</title></head><body>"]

    if status:
        queue = status.get("queue", {})
        counts = status.get("records", {})
        parts.append(
            "<p>"
            f"Records: {counts.get('total', 0)} "
            f"(active {counts.get('active', 0)}, resolved {counts.get('resolved', 0)}) | "
            f"Queue: {queue.get('pending', 0)} pending, {queue.get('in_flight', 0)} in flight, "
            f"{queue.get('delivered', 0)} delivered, {queue.get('dropped', 0)} dropped"
            "</p>"
        )

    table = ["<table border='1px solid black'>", _row(list(COLUMNS), tag="th")]
    table.extend(render_record_row(record) for record in records)
    table.append("</table>")
    parts.append("".join(table))

    if failures:
        parts.append("<h3>Permanent delivery failures</h3><ul>")
        for failure in failures:
            parts.append(
                f"<li>{escape(str(failure.get('failed_at', '')))} "
                f"{escape(str(failure.get('fingerprint', '')))}: "
                f"{escape(str(failure.get('error', '')))}</li>"
            )
        parts.append("</ul>")

    parts.append("</body></html>")
    return "".join(parts)


__all__ = [
    "render_status_page",
    "render_record_row",
]
