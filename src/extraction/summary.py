"""Human-readable summaries of extraction results for the server log."""

from __future__ import annotations

import json
import logging

from src.models import (
    ErrorContent,
    ExtractedContent,
    HtmlContent,
    JsonContent,
    TextContent,
)

logger = logging.getLogger(__name__)

_RULE = "=" * 80
_HTML_TEXT_PREVIEW = 500
_TEXT_PREVIEW = 1000


def _preview(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def summarize(label: str, content: ExtractedContent) -> str:
    lines = [
        _RULE,
        f"{label}: {content.url}",
        _RULE,
        f"Type: {content.type}",
        f"Timestamp: {content.timestamp}",
        "-" * 40,
    ]
    if isinstance(content, HtmlContent):
        lines += [
            f"Title: {content.title}",
            f"Description: {content.description}",
            f"Text Content (first {_HTML_TEXT_PREVIEW} chars):",
            _preview(content.text, _HTML_TEXT_PREVIEW),
            f"Links found: {len(content.links)}",
            f"Images found: {len(content.images)}",
        ]
    elif isinstance(content, JsonContent):
        lines += ["JSON Data:", json.dumps(content.data, indent=2, default=str)]
    elif isinstance(content, TextContent):
        lines += ["Text Content:", _preview(content.content, _TEXT_PREVIEW)]
    elif isinstance(content, ErrorContent):
        lines.append(f"Error: {content.error}")
    else:
        lines += ["Raw Content:", json.dumps(content.to_wire(), indent=2)]
    lines.append(_RULE)
    return "\n".join(lines)


def log_extraction(label: str, content: ExtractedContent) -> None:
    if not logger.isEnabledFor(logging.INFO):
        return
    logger.info("\n%s", summarize(label, content))
