"""Webhook ingestion pipeline.

Stages, per inbound request:
1. Record the webhook
2. Discover URLs in its body and referer header
3. Extract each URL in discovery order, storing every result
4. Report the id, URL count and this request's results

Extraction is sequential so results land in the store in discovery order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from src.audit.logger import token_prefix
from src.extraction.discovery import discover_urls
from src.extraction.summary import log_extraction
from src.models import (
    AuditEvent,
    AuditEventType,
    ContentKind,
    ErrorContent,
    ExtractedContent,
    RiskLevel,
    WebhookRecord,
)
from src.webhook.models import InboundRequest, IngestionResult

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.extraction.extractor import ContentExtractor
    from src.storage.records import ExtractedStore, WebhookIdGenerator, WebhookStore

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Ties the stores, URL discovery and the content extractor together."""

    def __init__(
        self,
        webhooks: WebhookStore,
        extracted: ExtractedStore,
        extractor: ContentExtractor,
        id_generator: WebhookIdGenerator,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._webhooks = webhooks
        self._extracted = extracted
        self._extractor = extractor
        self._ids = id_generator
        self._audit = audit_logger

    def record(self, request: InboundRequest) -> WebhookRecord:
        record = WebhookRecord(
            id=self._ids.next_id(),
            timestamp=datetime.now(UTC).isoformat(),
            headers=request.headers,
            body=request.body,
            query=request.query,
            method=request.method,
            url=request.url,
            ip=request.ip,
        )
        self._webhooks.append(record)
        return record

    async def ingest(
        self,
        request: InboundRequest,
        token: str | None = None,
    ) -> IngestionResult:
        """Record ``request`` and extract every URL it references.

        ``token`` is forwarded to each outbound fetch; callers on public
        routes pass None.
        """
        record = self.record(request)
        logger.info(
            "New webhook received: id=%s method=%s url=%s",
            record.id, record.method, record.url,
        )
        logger.debug("Webhook %s headers=%s body=%r", record.id, record.headers, record.body)

        urls = discover_urls(record.body, record.headers)
        if urls:
            logger.info("Found %d URLs to extract data from", len(urls))

        results = await self._extract_all(urls, token, "EXTRACTED DATA FROM")

        if self._audit:
            self._audit.log(AuditEvent(
                event_type=AuditEventType.WEBHOOK_RECEIVED,
                source_ip=record.ip,
                token_prefix=token_prefix(token),
                action=f"{record.method} {record.url}",
                result="success",
                risk_level=RiskLevel.INFO,
                details={"webhook_id": record.id, "urls_found": len(urls)},
            ))

        return IngestionResult(
            webhook_id=record.id,
            timestamp=record.timestamp,
            urls_found=len(urls),
            extracted=results,
        )

    async def extract(self, url: str, token: str | None = None) -> ExtractedContent:
        logger.info("Manual extraction requested for: %s", url)
        return await self._extract_one(url, token, "MANUAL EXTRACTION FROM")

    async def extract_batch(
        self,
        urls: Iterable[Any],
        token: str | None = None,
    ) -> list[ExtractedContent]:
        items = list(urls)
        logger.info("Batch extraction requested for %d URLs", len(items))
        return await self._extract_all(items, token, "BATCH EXTRACTION FROM")

    async def _extract_all(
        self,
        urls: Iterable[Any],
        token: str | None,
        label: str,
    ) -> list[ExtractedContent]:
        return [await self._extract_one(url, token, label) for url in urls]

    async def _extract_one(
        self,
        url: Any,
        token: str | None,
        label: str,
    ) -> ExtractedContent:
        if isinstance(url, str):
            content = await self._extractor.extract(url, token)
        else:
            content = ErrorContent(url=str(url), error="URL must be a string")

        self._extracted.append(content)
        log_extraction(label, content)

        if self._audit:
            self._audit.log(AuditEvent(
                event_type=AuditEventType.CONTENT_EXTRACTED,
                token_prefix=token_prefix(token),
                action=f"extract {content.url}",
                result="error" if content.type == ContentKind.ERROR else "success",
                risk_level=RiskLevel.INFO,
                details={"type": content.type},
            ))
        return content
