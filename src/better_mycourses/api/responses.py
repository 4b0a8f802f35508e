"""
Response envelope and header helpers for the API facade.

Every body is ``{"success": bool, ...payload, "error"?: str, "message": str}``.
Expected failures are 200 with ``success: false``; only a missing or invalid
bearer token gives 401 and only a matching ``If-None-Match`` gives 304.
"""

from typing import Any, Optional

from fastapi import Response
from fastapi.responses import JSONResponse

from better_mycourses.cache.memory import CachedResult
from better_mycourses.shared.utils import to_jsonable

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


def success(message: Optional[str] = None, **payload: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    body.update({key: to_jsonable(value) for key, value in payload.items() if value is not None})
    if message:
        body["message"] = message
    return body


def failure(error: str, message: str, **payload: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False}
    body.update({key: to_jsonable(value) for key, value in payload.items() if value is not None})
    body["error"] = error
    body["message"] = message
    return body


def unauthorized(error: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content=failure(error, "Authentication required"),
    )


def cache_headers(ttl: int, fingerprint: Optional[str], was_hit: bool) -> dict[str, str]:
    headers = {
        "Cache-Control": f"private, max-age={ttl}",
        "X-Cache": "HIT" if was_hit else "MISS",
    }
    if fingerprint:
        headers["ETag"] = fingerprint
    return headers


def cached_response(
    result: CachedResult,
    ttl: int,
    if_none_match: Optional[str],
    field: Optional[str] = None,
    message: Optional[str] = None,
) -> Response:
    """
    Wrap a cached record in the envelope, or answer 304 when unchanged.

    The record goes under ``field``; without a field its own members are
    spread into the envelope. The 304 short-circuit compares the client's
    token with the fingerprint and never serializes the body.
    """
    if if_none_match is not None and if_none_match == result.fingerprint:
        return Response(status_code=304, headers=cache_headers(ttl, result.fingerprint, True))

    payload = {field: result.value} if field else to_jsonable(result.value)
    return JSONResponse(
        content=success(message, **payload),
        headers=cache_headers(ttl, result.fingerprint, result.was_hit),
    )
