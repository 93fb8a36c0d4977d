"""Audit trail for token checks, ingestion and extraction events.

Append-only JSON Lines file, rotated by size, each entry chained to the
previous one through ``prev_hash`` (SHA-256 of the previous line).
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path

from src.models import AuditEvent

_DEFAULT_MAX_BYTES = 10_485_760
_DEFAULT_BACKUP_COUNT = 5


def token_prefix(token: str | None) -> str | None:
    """Short, non-secret form of a token for log lines."""
    if not token:
        return None
    return f"{token[:8]}..."


@dataclass
class ChainValidationResult:
    valid: bool
    broken_at_line: int | None = None


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check that every entry's prev_hash matches the line before it."""
    text = log_path.read_text().strip()
    if not text:
        return ChainValidationResult(valid=True)

    lines = text.split("\n")
    previous: str | None = None
    for number, line in enumerate(lines, start=1):
        entry = json.loads(line)
        expected = hashlib.sha256(previous.encode()).hexdigest() if previous else None
        if entry.get("prev_hash") != expected:
            return ChainValidationResult(valid=False, broken_at_line=number)
        previous = line

    return ChainValidationResult(valid=True)


class AuditLogger:
    """Hash-chained JSON Lines writer with size-based rotation."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = _DEFAULT_MAX_BYTES,
        backup_count: int = _DEFAULT_BACKUP_COUNT,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._lock = threading.Lock()
        self._last_line = self._read_last_line()

    @classmethod
    def from_env(cls, log_path: str) -> AuditLogger:
        max_bytes = int(os.environ.get("AUDIT_LOG_MAX_BYTES", str(_DEFAULT_MAX_BYTES)))
        backup_count = int(
            os.environ.get("AUDIT_LOG_BACKUP_COUNT", str(_DEFAULT_BACKUP_COUNT)),
        )
        return cls(log_path=log_path, max_bytes=max_bytes, backup_count=backup_count)

    def _read_last_line(self) -> str | None:
        if not self.log_path.exists() or self.log_path.stat().st_size == 0:
            return None
        text = self.log_path.read_text().strip()
        return text.split("\n")[-1] if text else None

    def _backup(self, index: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{index}")

    def _maybe_rotate(self) -> None:
        if not self.log_path.exists():
            return
        if self.log_path.stat().st_size < self._max_bytes:
            return

        oldest = self._backup(self._backup_count)
        if oldest.exists():
            oldest.unlink()
        for index in range(self._backup_count - 1, 0, -1):
            if self._backup(index).exists():
                self._backup(index).rename(self._backup(index + 1))
        self.log_path.rename(self._backup(1))

    def log(self, event: AuditEvent) -> None:
        with self._lock:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

            prev_hash = None
            if self._last_line is not None:
                prev_hash = hashlib.sha256(self._last_line.encode()).hexdigest()

            data = event.model_dump(mode="json")
            data["prev_hash"] = prev_hash
            line = json.dumps(data, separators=(",", ":"))

            # Lock file keeps rotation and append atomic across processes
            lock_file = self.log_path.with_name(f".{self.log_path.name}.lock")
            with open(lock_file, "w") as lf:
                fcntl.flock(lf, fcntl.LOCK_EX)
                try:
                    self._maybe_rotate()
                    with open(self.log_path, "a") as f:
                        f.write(line + "\n")
                finally:
                    fcntl.flock(lf, fcntl.LOCK_UN)

            self._last_line = line
