"""Append-only in-memory record stores and webhook id generation."""

from __future__ import annotations

import threading
import time
from typing import Generic, TypeVar

from src.models import ExtractedContent, WebhookRecord

T = TypeVar("T")


class RecordStore(Generic[T]):
    """Ordered, append-only list guarded by a lock."""

    def __init__(self) -> None:
        self._records: list[T] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def append(self, record: T) -> None:
        with self._lock:
            self._records.append(record)

    def all(self) -> list[T]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class WebhookStore(RecordStore[WebhookRecord]):
    def get(self, webhook_id: str) -> WebhookRecord | None:
        with self._lock:
            for record in self._records:
                if record.id == webhook_id:
                    return record
        return None


class ExtractedStore(RecordStore[ExtractedContent]):
    pass


class WebhookIdGenerator:
    """Epoch-millisecond ids that strictly increase within the process."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            candidate = int(time.time() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)
