"""In-memory webhook token registry."""

from __future__ import annotations

import secrets
import string
import threading
import time
from datetime import UTC, datetime

from src.models import TokenInfo

DEFAULT_TOKEN = "webhook-secret-2024"
DEFAULT_TOKEN_NAME = "Default Token"
GENERATED_TOKEN_NAME = "Generated Token"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LENGTH = 13


class TokenNotFoundError(KeyError):
    """Raised when deleting a token that is not registered."""


def generate_token() -> str:
    """Build a token from the current epoch milliseconds and random base36 text."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"webhook-{int(time.time() * 1000)}-{suffix}"


class TokenStore:
    """Token -> metadata map with exact-match lookup.

    All access goes through a lock so usage counters never lose updates.
    """

    def __init__(self, default_token: str | None = DEFAULT_TOKEN) -> None:
        self._tokens: dict[str, TokenInfo] = {}
        self._lock = threading.Lock()
        if default_token:
            self._tokens[default_token] = TokenInfo(name=DEFAULT_TOKEN_NAME)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._tokens

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def get(self, token: str) -> TokenInfo | None:
        with self._lock:
            info = self._tokens.get(token)
            return info.model_copy() if info else None

    def authorize(self, candidate: str | None) -> TokenInfo | None:
        """Record a use of ``candidate`` if it is a registered token.

        Returns a snapshot of the updated metadata, or None when the
        candidate is empty or unknown (nothing is modified in that case).
        """
        if not candidate:
            return None
        with self._lock:
            info = self._tokens.get(candidate)
            if info is None:
                return None
            info.last_used = datetime.now(UTC).isoformat()
            info.usage_count += 1
            return info.model_copy()

    def create(self, name: str | None = None) -> tuple[str, TokenInfo]:
        with self._lock:
            token = generate_token()
            while token in self._tokens:
                token = generate_token()
            info = TokenInfo(name=name or GENERATED_TOKEN_NAME)
            self._tokens[token] = info
            return token, info.model_copy()

    def delete(self, token: str) -> None:
        with self._lock:
            if token not in self._tokens:
                raise TokenNotFoundError(token)
            del self._tokens[token]

    def items(self) -> list[tuple[str, TokenInfo]]:
        with self._lock:
            return [(token, info.model_copy()) for token, info in self._tokens.items()]
