"""Shared Pydantic data models for hookscout."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class WireModel(BaseModel):
    """Base for models that travel over HTTP with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Enums ---


class ContentKind(str, Enum):
    JSON = "json"
    HTML = "html"
    TEXT = "text"
    OTHER = "other"
    ERROR = "error"


class AuditEventType(str, Enum):
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILURE = "auth_failure"
    WEBHOOK_RECEIVED = "webhook_received"
    CONTENT_EXTRACTED = "content_extracted"
    TOKEN_CREATED = "token_created"
    TOKEN_DELETED = "token_deleted"


class RiskLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Webhook records ---


class WebhookRecord(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: str
    headers: dict[str, str]
    body: Any = None
    query: dict[str, str] = Field(default_factory=dict)
    method: str
    url: str
    ip: str | None = None


# --- Extracted content ---


class _ExtractedBase(WireModel):
    model_config = ConfigDict(frozen=True)

    url: str
    timestamp: str = Field(default_factory=_now_iso)


class JsonContent(_ExtractedBase):
    type: Literal["json"] = "json"
    data: Any = None


class HtmlContent(_ExtractedBase):
    type: Literal["html"] = "html"
    title: str = ""
    description: str = ""
    text: str = ""
    links: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)


class TextContent(_ExtractedBase):
    type: Literal["text"] = "text"
    content: str


class OtherContent(_ExtractedBase):
    type: Literal["other"] = "other"
    content_type: str
    content: str


class ErrorContent(_ExtractedBase):
    type: Literal["error"] = "error"
    error: str


ExtractedContent = Annotated[
    JsonContent | HtmlContent | TextContent | OtherContent | ErrorContent,
    Field(discriminator="type"),
]


# --- Tokens ---


class TokenInfo(WireModel):
    name: str
    created: str = Field(default_factory=_now_iso)
    last_used: str | None = None
    usage_count: int = Field(default=0, ge=0)


# --- Audit Models ---


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    token_prefix: str | None = None
    action: str
    result: str  # "success" | "failure" | "error"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
