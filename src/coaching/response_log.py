"""
Bounded log of coaching exchanges, persisted as a single JSON array.

Read once at startup, then rewritten in full on every append (no
incremental writes). Keeps the most recent `max_entries` records.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

log = logging.getLogger("coaching")

MAX_ENTRIES = 500


class ResponseLog:

    def __init__(self, path: Optional[str], max_entries: int = MAX_ENTRIES):
        self.path = path
        self.max_entries = max_entries
        self._records: List[Dict[str, Any]] = self._load()

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path or not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            log.warning("Could not read response log %s: %s", self.path, e)
            return []
        if not isinstance(data, list):
            log.warning("Response log %s is not a JSON array; starting empty", self.path)
            return []
        return data[-self.max_entries:]

    def __len__(self) -> int:
        return len(self._records)

    def append(self, prompt: str, message: str, **flags: Any) -> Dict[str, Any]:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "prompt": prompt,
            "message": message,
            "flags": flags,
        }
        self._records.append(record)
        if len(self._records) > self.max_entries:
            del self._records[: len(self._records) - self.max_entries]
        self._write()
        return record

    def _write(self) -> None:
        if not self.path:
            return
        try:
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump(self._records, fh, indent=2, ensure_ascii=False)
        except OSError as e:
            log.warning("Failed to write response log %s: %s", self.path, e)

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Newest `limit` records, oldest first."""
        if limit <= 0:
            return []
        return list(self._records[-limit:])

    def all(self) -> List[Dict[str, Any]]:
        return list(self._records)
