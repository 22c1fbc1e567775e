"""API key validation for the library service."""

from __future__ import annotations

import hmac
from collections.abc import Iterable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader, APIKeyQuery

API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY = "api_key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)
api_key_query = APIKeyQuery(name=API_KEY_QUERY, auto_error=False)


class APIKeyManager:
    """Set of accepted API keys, compared in constant time."""

    def __init__(self, keys: Iterable[str]):
        self._keys: set[str] = {k for k in keys if k}

    def is_valid(self, key: str | None) -> bool:
        if not key:
            return False
        return any(hmac.compare_digest(key, known) for known in self._keys)

    def validate(self, key: str | None) -> str:
        """Validate a presented key.

        Raises:
            HTTPException: 401 if the key is missing or unknown
        """
        if not self.is_valid(key):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or missing API key",
            )
        return key  # type: ignore[return-value]


def get_api_key_manager(request: Request) -> APIKeyManager:
    """FastAPI dependency returning the app's key manager."""
    manager = getattr(request.app.state, "api_key_manager", None)
    if manager is None:
        raise RuntimeError("API key manager not configured")
    return manager


def require_api_key(
    header_key: str | None = Depends(api_key_header),
    query_key: str | None = Depends(api_key_query),
    manager: APIKeyManager = Depends(get_api_key_manager),
) -> str:
    """Accept the key from the X-API-Key header, falling back to ?api_key=."""
    return manager.validate(header_key or query_key)
