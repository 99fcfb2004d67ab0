"""API key authentication for operator endpoints."""

import secrets

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import APIKeyHeader

from deadline.config import Settings, get_settings

API_KEY_HEADER = "x-api-key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def api_key_matches(provided: str | None, settings: Settings | None = None) -> bool:
    """Exact match against API_SECRET_KEY. Nothing matches when no secret is set."""
    settings = settings or get_settings()
    expected = settings.api_secret_key
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


def request_api_key(request: Request, body: dict | None = None) -> str | None:
    """
    Read the API key from a request.

    GET: `api_key` query parameter, then the x-api-key header.
    POST: the x-api-key header, then `api_key` in the JSON body.
    """
    if request.method == "GET":
        return request.query_params.get("api_key") or request.headers.get(API_KEY_HEADER)
    value = request.headers.get(API_KEY_HEADER) or (body or {}).get("api_key")
    return str(value) if value is not None else None


def require_api_key(
    header_key: str | None = Depends(api_key_header),
    api_key: str | None = Query(None),
    settings: Settings = Depends(get_settings),
) -> str:
    """Dependency for routes that accept the key as header or query parameter."""
    provided = header_key or api_key
    if not api_key_matches(provided, settings):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid API key",
        )
    return provided
