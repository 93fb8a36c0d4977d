"""Token management endpoints: list, create, delete."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.audit.logger import token_prefix
from src.models import AuditEvent, AuditEventType, RiskLevel
from src.tokens.store import TokenNotFoundError

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.tokens.store import TokenStore

logger = logging.getLogger(__name__)

_LISTED_PREFIX_LENGTH = 8


async def read_json_object(request: Request) -> dict[str, object]:
    """Request body as a dict; anything else (empty, invalid, non-object) is {}."""
    body = await request.body()
    if not body:
        return {}
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def create_token_router(
    tokens: TokenStore,
    audit_logger: AuditLogger | None = None,
) -> APIRouter:
    router = APIRouter(prefix="/tokens")

    @router.get("")
    async def list_tokens() -> JSONResponse:
        listed = []
        for token, info in tokens.items():
            entry = info.to_wire()
            entry["token"] = token[:_LISTED_PREFIX_LENGTH] + "..."
            listed.append(entry)
        return JSONResponse({"success": True, "count": len(listed), "tokens": listed})

    @router.post("")
    async def create_token(request: Request) -> JSONResponse:
        body = await read_json_object(request)
        name = body.get("name")
        token, info = tokens.create(name if isinstance(name, str) else None)
        logger.info("Created token %s (%s)", token_prefix(token), info.name)

        if audit_logger:
            audit_logger.log(AuditEvent(
                event_type=AuditEventType.TOKEN_CREATED,
                token_prefix=token_prefix(token),
                action="create_token",
                result="success",
                risk_level=RiskLevel.MEDIUM,
                details={"name": info.name},
            ))

        return JSONResponse({
            "success": True,
            "message": "Token created successfully",
            "token": token,
            "name": info.name,
        })

    @router.delete("/{token}")
    async def delete_token(token: str) -> JSONResponse:
        try:
            tokens.delete(token)
        except TokenNotFoundError:
            return JSONResponse(
                {"success": False, "message": "Token not found"},
                status_code=404,
            )

        if audit_logger:
            audit_logger.log(AuditEvent(
                event_type=AuditEventType.TOKEN_DELETED,
                token_prefix=token_prefix(token),
                action="delete_token",
                result="success",
                risk_level=RiskLevel.MEDIUM,
            ))

        return JSONResponse({"success": True, "message": "Token deleted successfully"})

    return router
