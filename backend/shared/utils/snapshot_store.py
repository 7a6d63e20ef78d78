"""
Single-file snapshot store.

Holds the most recent snapshot as one JSON document on local disk. Writes go
to a temp file in the same directory and are swapped in with os.replace, so a
concurrent reader sees either the previous document or the new one, never a
truncated one.
"""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.errors import PersistenceFailure
from shared.utils.logging import get_logger
from shared.utils.metrics import SNAPSHOT_WRITES

logger = get_logger(__name__)


def serialize_snapshot(payload: Any) -> str:
    """Canonical JSON text: the exact bytes written to disk and sent to subscribers."""
    return json.dumps(payload, ensure_ascii=False, indent=2, allow_nan=False)


class SnapshotStore:
    """Last-write-wins store for the current snapshot."""

    def __init__(self, path: Path | str | None = None, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._path = Path(path) if path is not None else Path(self._settings.snapshot_path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def write(self, payload: Any) -> str:
        """
        Serialize and atomically replace the backing file.

        Returns:
            The canonical JSON text that was persisted.

        Raises:
            PersistenceFailure: If the payload holds NaN or Infinity, or the file cannot be written.
        """
        try:
            text = serialize_snapshot(payload)
        except ValueError as exc:
            SNAPSHOT_WRITES.labels(outcome="error").inc()
            raise PersistenceFailure(f"Snapshot is not serializable as strict JSON: {exc}") from exc
        directory = self._path.parent
        tmp_name: Optional[str] = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except OSError as exc:
            SNAPSHOT_WRITES.labels(outcome="error").inc()
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceFailure(f"Could not write snapshot to {self._path}: {exc}") from exc

        SNAPSHOT_WRITES.labels(outcome="ok").inc()
        logger.debug("snapshot_written", path=str(self._path), size=len(text))
        return text

    def read_text(self) -> Optional[str]:
        """Return the stored JSON text, or None when no snapshot has been written yet."""
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("snapshot_read_failed", path=str(self._path), error=str(exc))
            return None

    def read(self) -> Optional[Any]:
        """Return the stored snapshot decoded, or None when absent or unreadable."""
        text = self.read_text()
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("snapshot_corrupt", path=str(self._path), error=str(exc))
            return None
