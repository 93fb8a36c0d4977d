"""Data models for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.models import ExtractedContent


@dataclass
class InboundRequest:
    """Transport-independent view of an inbound webhook call."""

    method: str
    url: str  # path plus query string, as received
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None  # object, array, string or None
    query: dict[str, str] = field(default_factory=dict)
    ip: str | None = None


@dataclass
class IngestionResult:
    webhook_id: str
    timestamp: str
    urls_found: int
    extracted: list[ExtractedContent] = field(default_factory=list)

    def to_wire(self, message: str) -> dict[str, Any]:
        return {
            "success": True,
            "message": message,
            "webhookId": self.webhook_id,
            "timestamp": self.timestamp,
            "urlsFound": self.urls_found,
            "extractedData": (
                [item.to_wire() for item in self.extracted] if self.extracted else None
            ),
        }
