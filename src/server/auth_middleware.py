"""ASGI middleware that gates selected routes behind a webhook token."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from src.audit.logger import AuditLogger, token_prefix
from src.models import AuditEvent, AuditEventType, RiskLevel
from src.tokens.store import TokenStore

TOKEN_HEADER = "x-webhook-token"
TOKEN_QUERY_PARAM = "token"
BEARER_PREFIX = "Bearer "

# Request state key holding the validated token for downstream handlers
STATE_TOKEN_KEY = "webhook_token"

PROTECTED_ROUTES: frozenset[tuple[str, str]] = frozenset({
    ("POST", "/webhook"),
    ("POST", "/extract"),
    ("POST", "/extract-batch"),
})


def extract_candidate(request: Request) -> str | None:
    """Pick the credential: token header, then Bearer header, then ?token=."""
    header_token = request.headers.get(TOKEN_HEADER)
    if header_token:
        return header_token

    authorization = request.headers.get("authorization", "")
    if authorization.startswith(BEARER_PREFIX) and authorization[len(BEARER_PREFIX):]:
        return authorization[len(BEARER_PREFIX):]

    return request.query_params.get(TOKEN_QUERY_PARAM) or None


class TokenAuthMiddleware:
    """Validates tokens against the TokenStore on protected (method, path) pairs.

    A successful check bumps the token's usage metadata and stores the token
    in ``request.state.webhook_token``. Failures answer 401 without touching
    the store.
    """

    def __init__(
        self,
        app: ASGIApp,
        token_store: TokenStore,
        audit_logger: AuditLogger | None = None,
        protected_routes: frozenset[tuple[str, str]] = PROTECTED_ROUTES,
    ) -> None:
        self.app = app
        self._tokens = token_store
        self.audit_logger = audit_logger
        self._protected = protected_routes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        if (request.method, request.url.path) not in self._protected:
            await self.app(scope, receive, send)
            return

        candidate = extract_candidate(request)

        if not candidate:
            response = JSONResponse(
                {
                    "success": False,
                    "message": "Webhook token required",
                    "hint": "Add X-Webhook-Token header or ?token=your-token query parameter",
                },
                status_code=401,
            )
            self._log_failure(request, "missing_token")
            await response(scope, receive, send)
            return

        if self._tokens.authorize(candidate) is None:
            response = JSONResponse(
                {
                    "success": False,
                    "message": "Invalid webhook token",
                    "hint": "Use a valid token or create a new one",
                },
                status_code=401,
            )
            self._log_failure(request, "invalid_token")
            await response(scope, receive, send)
            return

        scope.setdefault("state", {})[STATE_TOKEN_KEY] = candidate

        if self.audit_logger:
            self.audit_logger.log(AuditEvent(
                event_type=AuditEventType.AUTH_SUCCESS,
                source_ip=request.client.host if request.client else None,
                token_prefix=token_prefix(candidate),
                action=f"{request.method} {request.url.path}",
                result="success",
                risk_level=RiskLevel.INFO,
            ))

        await self.app(scope, receive, send)

    def _log_failure(self, request: Request, reason: str) -> None:
        if self.audit_logger:
            self.audit_logger.log(AuditEvent(
                event_type=AuditEventType.AUTH_FAILURE,
                source_ip=request.client.host if request.client else None,
                action=f"{request.method} {request.url.path}",
                result="failure",
                risk_level=RiskLevel.HIGH,
                details={"reason": reason},
            ))
