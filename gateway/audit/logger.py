"""Append-only JSONL audit logger for gateway requests."""

from __future__ import annotations

import json
import threading
from pathlib import Path

from contracts.audit import AuditEntry, AuditEvent, AuditLogger


class JsonlAuditLogger(AuditLogger):
    """Thread-safe, append-only JSONL audit logger."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def log(self, entry: AuditEntry) -> None:
        line = entry.model_dump_json() + "\n"
        with self._lock:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)

    def query_by_request(self, request_id: str) -> list[AuditEntry]:
        return [e for e in self._read_all() if e.request_id == request_id]

    def query_by_event(self, event: AuditEvent, limit: int = 100) -> list[AuditEntry]:
        matches = [e for e in self._read_all() if e.event == event]
        return matches[-limit:]

    def tail(self, n: int = 20) -> list[AuditEntry]:
        return self._read_all()[-n:]

    # ── internal ────────────────────────────────────────────────────

    def _read_all(self) -> list[AuditEntry]:
        if not self._path.exists():
            return []
        with self._lock:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        return [AuditEntry(**json.loads(line)) for line in lines if line.strip()]


class NullAuditLogger(AuditLogger):
    """Discards every entry; used when auditing is disabled."""

    def log(self, entry: AuditEntry) -> None:
        return None

    def query_by_request(self, request_id: str) -> list[AuditEntry]:
        return []

    def query_by_event(self, event: AuditEvent, limit: int = 100) -> list[AuditEntry]:
        return []

    def tail(self, n: int = 20) -> list[AuditEntry]:
        return []
