"""Operational utilities for dogwalk."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional


class HealthMonitor:
    """Track whether the record store is reachable and how far behind we are."""

    def __init__(self) -> None:
        self.persistence_online = True
        self.pending_effects = 0
        self.last_sync: Optional[datetime] = None
        self.last_error: Optional[str] = None

    def mark_synced(self, at: datetime, *, pending: int = 0) -> None:
        self.persistence_online = True
        self.pending_effects = pending
        self.last_sync = at
        self.last_error = None

    def mark_unavailable(self, reason: str, *, pending: int) -> None:
        self.persistence_online = False
        self.pending_effects = pending
        self.last_error = reason

    @property
    def local_only(self) -> bool:
        return not self.persistence_online

    def status(self, *, at: Optional[datetime] = None) -> dict:
        return {
            "persistence": "ok" if self.persistence_online else "local-only",
            "pending_effects": self.pending_effects,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "last_sync_age_seconds": self.sync_age_seconds(at=at),
            "last_error": self.last_error,
        }

    def sync_age_seconds(self, *, at: Optional[datetime] = None) -> Optional[int]:
        if not self.last_sync:
            return None
        return int(((at or datetime.now()) - self.last_sync).total_seconds())


class StructuredLogger:
    """Write JSON lines log entries for household activity."""

    def __init__(self, *, path: Path | None = None) -> None:
        self.path = path
        self._entries: list[dict] = []

    def log(self, event_type: str, **fields: object) -> dict:
        entry = {"timestamp": datetime.now().isoformat(), "event": event_type, **fields}
        self._entries.append(entry)
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry, default=str) + "\n")
        return entry

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        return tuple(self._entries[-limit:])

    def events(self, event_type: str) -> tuple[dict, ...]:
        return tuple(entry for entry in self._entries if entry["event"] == event_type)


__all__ = ["HealthMonitor", "StructuredLogger"]
