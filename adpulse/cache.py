"""
Local snapshot cache — a JSON file holding the last known clients, campaigns
and secrets. Written before every durable-store write so a restart with the
database unreachable still comes up with the last good state.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class LocalCache:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self) -> Optional[dict]:
        """Return the cached snapshot, or None when absent or unreadable."""
        if not self.path.is_file():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Local cache at {self.path} is unreadable: {e}")
            return None
        return data if isinstance(data, dict) else None

    def write_collection(self, collection: str, items: list[dict]) -> None:
        """Replace one collection in the snapshot, keeping the others."""
        snapshot = self.read() or {}
        snapshot[collection] = items
        self._write(snapshot)

    def _write(self, snapshot: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so a crash never leaves a half-written snapshot
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".adpulse-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(snapshot, fh, default=str)
            os.replace(tmp, self.path)
        except Exception:
            Path(tmp).unlink(missing_ok=True)
            raise
