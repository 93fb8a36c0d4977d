"""Find candidate URLs inside an inbound webhook."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

URL_PATTERN = re.compile(r"https?://[^\s\"<>]+")

REFERER_HEADER = "referer"


def discover_urls(body: Any, headers: Mapping[str, str] | None = None) -> list[str]:
    """Return URLs found in ``body`` plus the referer header, in order.

    Only objects and arrays are scanned; they are serialized to compact JSON
    first so nested values are covered. Duplicates are kept. The referer
    value, when present, is always appended last.
    """
    urls: list[str] = []
    if isinstance(body, (dict, list)):
        serialized = json.dumps(body, ensure_ascii=False, separators=(",", ":"))
        urls.extend(URL_PATTERN.findall(serialized))

    if headers:
        referer = _header(headers, REFERER_HEADER)
        if referer:
            urls.append(referer)
    return urls


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None
