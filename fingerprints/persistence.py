"""
Fingerprints - Persistence Writer.

============================================================
RESPONSIBILITY
============================================================
Writes full store snapshots to disk and loads them back.

- Write to a temp file in the target directory, fsync,
  then atomically rename over the previous snapshot
- A crash mid-write never corrupts the last valid snapshot
- Write failures are logged, never raised to callers

============================================================
LOADING
============================================================
- Missing file: empty store
- Unreadable file / invalid JSON: SnapshotLoadError
  (start-up aborts instead of silently discarding history)

============================================================
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging
import os
import tempfile
import threading

from core.exceptions import PersistenceError, SnapshotLoadError


logger = logging.getLogger(__name__)


# ============================================================
# SNAPSHOT WRITER
# ============================================================

class SnapshotWriter:
    """
    Atomic JSON snapshot writer.

    Snapshots carry the store revision. A snapshot older than
    the last one written is skipped so concurrent batches
    never regress the file.
    """

    def __init__(self, path: Union[str, Path]):
        """
        Initialize writer.

        Args:
            path: Snapshot file path
        """
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._last_revision: Optional[int] = None
        self._failures = 0
        self._last_error: Optional[str] = None

    @property
    def path(self) -> Path:
        """Snapshot file path."""
        return self._path

    @property
    def failures(self) -> int:
        """Number of failed writes since start."""
        return self._failures

    @property
    def last_error(self) -> Optional[str]:
        """Message of the most recent write failure."""
        return self._last_error

    def persist(self, snapshot: Dict[str, Any]) -> bool:
        """
        Write a full snapshot.

        Args:
            snapshot: Output of RecordStore.snapshot()

        Returns:
            True if written (or skipped as stale), False on failure
        """
        revision = snapshot.get("revision")

        with self._lock:
            if (
                isinstance(revision, int)
                and self._last_revision is not None
                and revision < self._last_revision
            ):
                logger.debug(
                    f"Skipping stale snapshot revision={revision} "
                    f"(last written={self._last_revision})"
                )
                return True

            try:
                self._write(snapshot)
            except PersistenceError as e:
                self._failures += 1
                self._last_error = e.message
                logger.error(f"Failed to persist fingerprints: {e.message} | {e.context}")
                return False

            if isinstance(revision, int):
                self._last_revision = revision
            self._last_error = None
            logger.debug(f"Persisted snapshot revision={revision} to {self._path}")
            return True

    def _write(self, snapshot: Dict[str, Any]) -> None:
        """Write-to-temp then atomic rename."""
        try:
            payload = json.dumps(snapshot, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                f"Failed to serialize snapshot: {e}", path=str(self._path), cause=e
            ) from e

        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                dir=str(self._path.parent),
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as e:
            raise PersistenceError(
                f"Failed to write snapshot: {e}", path=str(self._path), cause=e
            ) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning(f"Could not remove temp snapshot {tmp_name}")

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Load the snapshot file.

        Returns:
            Decoded snapshot, or None if the file does not exist

        Raises:
            SnapshotLoadError: If the file exists but cannot be used
        """
        if not self._path.exists():
            logger.warning(f"No snapshot at {self._path}, starting with an empty store")
            return None

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SnapshotLoadError(
                f"Snapshot {self._path} is not valid JSON: {e}", path=str(self._path), cause=e
            ) from e
        except OSError as e:
            raise SnapshotLoadError(
                f"Snapshot {self._path} could not be read: {e}", path=str(self._path), cause=e
            ) from e

        if not isinstance(data, dict):
            raise SnapshotLoadError(
                f"Snapshot {self._path} must contain a JSON object", path=str(self._path)
            )

        revision = data.get("revision")
        if isinstance(revision, int):
            self._last_revision = revision
        return data


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "SnapshotWriter",
]
