"""Fetch a URL and classify what it serves.

One GET per call, no retries. The declared ``Content-Type`` alone picks the
result variant; the body is never sniffed, so a JSON-declared body that does
not decode is still a ``json`` result holding the raw text. Every fetch
failure comes back as an ``ErrorContent`` value instead of an exception.
"""

from __future__ import annotations

import logging

import httpx
from bs4 import BeautifulSoup

from src.models import (
    ErrorContent,
    ExtractedContent,
    HtmlContent,
    JsonContent,
    OtherContent,
    TextContent,
)

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 10.0
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

_INVISIBLE_TAGS = ["script", "style", "noscript", "template"]
# Only stripped when the markup has no <body>; html.parser does not synthesize one
_HEAD_TAGS = ["head", "title", "meta", "link", "base"]


def build_headers(token: str | None = None) -> dict[str, str]:
    """Outbound request headers; a token is sent both as Bearer and API key."""
    headers = {"User-Agent": USER_AGENT}
    if token:
        headers["Authorization"] = f"Bearer {token}"
        headers["X-API-Key"] = token
    return headers


def classify(url: str, content_type: str, response: httpx.Response) -> ExtractedContent:
    """Turn a successful response into the variant its content type names."""
    declared = content_type.lower()
    if "application/json" in declared:
        try:
            data = response.json()
        except ValueError:
            # Declared JSON that does not decode is kept as the raw body
            data = response.text
        return JsonContent(url=url, data=data)
    if "text/html" in declared:
        return parse_html(url, response.text)
    if "text/plain" in declared or "text/markdown" in declared:
        return TextContent(url=url, content=response.text)
    return OtherContent(url=url, content_type=content_type, content=response.text)


def parse_html(url: str, markup: str) -> HtmlContent:
    soup = BeautifulSoup(markup, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text().strip() if title_tag else ""

    meta = soup.find("meta", attrs={"name": "description"})
    description = meta.get("content", "") if meta else ""

    links = [a["href"] for a in soup.find_all("a", href=True)]
    images = [img["src"] for img in soup.find_all("img", src=True)]

    root = soup.body
    hidden = _INVISIBLE_TAGS
    if root is None:
        root = soup
        hidden = _INVISIBLE_TAGS + _HEAD_TAGS
    for tag in root.find_all(hidden):
        tag.decompose()
    text = " ".join(root.get_text().split())

    return HtmlContent(
        url=url,
        title=title,
        description=description or "",
        text=text,
        links=links,
        images=images,
    )


def _error_message(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"Request failed with status code {exc.response.status_code}"
    if isinstance(exc, httpx.TimeoutException):
        return str(exc) or "Request timed out"
    return str(exc) or exc.__class__.__name__


class ContentExtractor:
    """Performs single outbound fetches and returns typed extraction results."""

    def __init__(
        self,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def extract(self, url: str, token: str | None = None) -> ExtractedContent:
        logger.info("Extracting data from URL: %s", url)
        if token:
            logger.debug("Using token for authentication")
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, headers=build_headers(token))
                response.raise_for_status()
                content_type = response.headers.get("content-type", "")
                return classify(url, content_type, response)
        except Exception as exc:  # every failure becomes an error result
            message = _error_message(exc)
            logger.warning("Error extracting data from %s: %s", url, message)
            return ErrorContent(url=url, error=message)
