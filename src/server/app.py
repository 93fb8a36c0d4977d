"""FastAPI application: webhook ingestion, URL extraction and record access."""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any
from urllib.parse import parse_qsl

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.audit.logger import AuditLogger
from src.extraction.extractor import ContentExtractor
from src.server.auth_middleware import STATE_TOKEN_KEY, TokenAuthMiddleware
from src.server.token_routes import create_token_router, read_json_object
from src.storage.records import ExtractedStore, WebhookIdGenerator, WebhookStore
from src.tokens.store import DEFAULT_TOKEN, TokenStore
from src.webhook.models import InboundRequest
from src.webhook.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)

_MAX_BODY_SIZE = 10 * 1024 * 1024  # 10MB

AVAILABLE_ENDPOINTS = [
    "GET / - Health check",
    "POST /webhook - Receive webhook (requires token)",
    "POST /webhook-public - Receive webhook (no token required)",
    "GET /webhooks - List all webhooks",
    "GET /webhook/:id - Get specific webhook",
    "DELETE /webhooks - Clear all webhooks",
    "POST /extract - Extract data from single URL (requires token)",
    "POST /extract-batch - Extract data from multiple URLs (requires token)",
    "GET /extracted - List all extracted data",
    "DELETE /extracted - Clear all extracted data",
    "GET /tokens - List all tokens",
    "POST /tokens - Create new token",
    "DELETE /tokens/:token - Delete token",
]


class InvalidBodyError(ValueError):
    """Raised when an inbound body cannot be decoded for its content type."""


class BodyTooLargeError(ValueError):
    """Raised when an inbound body exceeds the size limit."""


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    default_token = os.environ.get("DEFAULT_WEBHOOK_TOKEN", DEFAULT_TOKEN)
    production = os.environ.get("APP_ENV", "development").lower() == "production"
    audit_log = os.environ.get("AUDIT_LOG_PATH")
    audit_logger = AuditLogger.from_env(audit_log) if audit_log else None
    return create_app(
        tokens=TokenStore(default_token=default_token),
        audit_logger=audit_logger,
        production=production,
    )


def parse_body(content_type: str, raw: bytes) -> Any:
    """Decode an inbound body according to its declared content type."""
    if not raw:
        return None
    declared = content_type.lower()
    if "json" in declared:
        try:
            return json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InvalidBodyError(str(exc)) from exc
    if "application/x-www-form-urlencoded" in declared:
        return dict(parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True))
    if declared.startswith("text/"):
        return raw.decode("utf-8", errors="replace")
    return None


async def read_inbound(request: Request) -> InboundRequest:
    raw = await request.body()
    if len(raw) > _MAX_BODY_SIZE:
        raise BodyTooLargeError(f"Body of {len(raw)} bytes exceeds {_MAX_BODY_SIZE}")
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return InboundRequest(
        method=request.method,
        url=url,
        headers=dict(request.headers),
        body=parse_body(request.headers.get("content-type", ""), raw),
        query=dict(request.query_params),
        ip=request.client.host if request.client else None,
    )


def create_app(
    tokens: TokenStore | None = None,
    webhooks: WebhookStore | None = None,
    extracted: ExtractedStore | None = None,
    extractor: ContentExtractor | None = None,
    audit_logger: AuditLogger | None = None,
    production: bool = False,
) -> FastAPI:
    """Create the app with explicitly owned stores and extractor."""
    app = FastAPI(docs_url=None, redoc_url=None)

    tokens = tokens if tokens is not None else TokenStore()
    webhooks = webhooks if webhooks is not None else WebhookStore()
    extracted = extracted if extracted is not None else ExtractedStore()
    pipeline = IngestionPipeline(
        webhooks=webhooks,
        extracted=extracted,
        extractor=extractor or ContentExtractor(),
        id_generator=WebhookIdGenerator(),
        audit_logger=audit_logger,
    )
    app.state.tokens = tokens
    app.state.webhooks = webhooks
    app.state.extracted = extracted
    app.state.pipeline = pipeline

    def internal_error(exc: Exception) -> JSONResponse:
        return JSONResponse(
            {
                "success": False,
                "message": "Internal server error",
                "error": "Something went wrong" if production else str(exc),
            },
            status_code=500,
        )

    def validated_token(request: Request) -> str | None:
        return getattr(request.state, STATE_TOKEN_KEY, None)

    async def ingest(request: Request, token: str | None, message: str) -> JSONResponse:
        try:
            inbound = await read_inbound(request)
        except InvalidBodyError:
            return JSONResponse(
                {"success": False, "message": "Invalid JSON body"}, status_code=400,
            )
        except BodyTooLargeError:
            return JSONResponse(
                {"success": False, "message": "Request body too large"}, status_code=413,
            )

        try:
            result = await pipeline.ingest(inbound, token)
        except Exception as exc:
            logger.exception("Error processing webhook")
            return internal_error(exc)
        return JSONResponse(result.to_wire(message))

    @app.get("/")
    async def health() -> dict[str, Any]:
        return {
            "message": "Webhook server is running!",
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "totalWebhooks": len(webhooks),
        }

    @app.post("/webhook")
    async def receive_webhook(request: Request) -> JSONResponse:
        return await ingest(request, validated_token(request), "Webhook received successfully")

    @app.post("/webhook-public")
    async def receive_public_webhook(request: Request) -> JSONResponse:
        # Caller-supplied credentials are never forwarded from the public route
        return await ingest(request, None, "Public webhook received successfully")

    @app.get("/webhooks")
    async def list_webhooks() -> JSONResponse:
        records = webhooks.all()
        return JSONResponse({
            "success": True,
            "count": len(records),
            "webhooks": [record.to_wire() for record in records],
        })

    @app.get("/webhook/{webhook_id}")
    async def get_webhook(webhook_id: str) -> JSONResponse:
        record = webhooks.get(webhook_id)
        if record is None:
            return JSONResponse(
                {"success": False, "message": "Webhook not found"}, status_code=404,
            )
        return JSONResponse({"success": True, "webhook": record.to_wire()})

    @app.delete("/webhooks")
    async def clear_webhooks() -> JSONResponse:
        webhooks.clear()
        return JSONResponse({"success": True, "message": "All webhooks cleared"})

    @app.post("/extract")
    async def extract(request: Request) -> JSONResponse:
        body = await read_json_object(request)
        url = body.get("url")
        if not url:
            return JSONResponse(
                {"success": False, "message": "URL is required"}, status_code=400,
            )
        try:
            content = await pipeline.extract(str(url), validated_token(request))
        except Exception as exc:
            logger.exception("Error extracting data")
            return internal_error(exc)
        return JSONResponse({
            "success": True,
            "message": "Data extracted successfully",
            "extractedData": content.to_wire(),
        })

    @app.post("/extract-batch")
    async def extract_batch(request: Request) -> JSONResponse:
        body = await read_json_object(request)
        urls = body.get("urls")
        if not isinstance(urls, list):
            return JSONResponse(
                {"success": False, "message": "URLs array is required"}, status_code=400,
            )
        try:
            results = await pipeline.extract_batch(urls, validated_token(request))
        except Exception as exc:
            logger.exception("Error in batch extraction")
            return internal_error(exc)
        return JSONResponse({
            "success": True,
            "message": f"Extracted data from {len(urls)} URLs",
            "results": [content.to_wire() for content in results],
        })

    @app.get("/extracted")
    async def list_extracted() -> JSONResponse:
        items = extracted.all()
        return JSONResponse({
            "success": True,
            "count": len(items),
            "extractedData": [content.to_wire() for content in items],
        })

    @app.delete("/extracted")
    async def clear_extracted() -> JSONResponse:
        extracted.clear()
        return JSONResponse({"success": True, "message": "All extracted data cleared"})

    app.include_router(create_token_router(tokens, audit_logger))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return JSONResponse(
                {
                    "success": False,
                    "message": "Route not found",
                    "availableEndpoints": AVAILABLE_ENDPOINTS,
                },
                status_code=404,
            )
        return JSONResponse(
            {"success": False, "message": str(exc.detail)}, status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return internal_error(exc)

    app.add_middleware(TokenAuthMiddleware, token_store=tokens, audit_logger=audit_logger)

    return app
