"""Response envelope normalization, one unwrap function per endpoint group.

The backend wraps every payload as ``{"data": ..., "statusCode": ..., "timestamp": ...}``.
The admin session endpoints may wrap that envelope a second time, so each
group states its own depth instead of assuming one universal nesting.
"""

from __future__ import annotations

from typing import Any, Callable

import httpx

from .errors import TransientRequestError

Unwrap = Callable[[Any], Any]

_ENVELOPE_META_KEYS = ("statusCode", "timestamp")


def _is_envelope(payload: Any) -> bool:
    return isinstance(payload, dict) and "data" in payload


def _looks_like_inner_envelope(payload: Any) -> bool:
    return _is_envelope(payload) and any(key in payload for key in _ENVELOPE_META_KEYS)


def _unwrap_once(payload: Any, group: str) -> Any:
    if not _is_envelope(payload):
        raise TransientRequestError(
            f"Malformed {group} response: missing data envelope",
            response=payload if isinstance(payload, dict) else None,
        )
    return payload["data"]


def unwrap_auth(payload: Any) -> Any:
    """``/auth/*``: single envelope."""
    return _unwrap_once(payload, "auth")


def unwrap_collections(payload: Any) -> Any:
    """``/api/collections``: single envelope."""
    return _unwrap_once(payload, "collections")


def unwrap_admin_sessions(payload: Any) -> Any:
    """``/admin/sessions/*``: one envelope, sometimes a second one inside it."""
    value = _unwrap_once(payload, "admin sessions")
    if _looks_like_inner_envelope(value):
        value = value["data"]
    return value


def error_body(response: httpx.Response) -> dict[str, Any]:
    """Best-effort JSON body of an error response."""
    try:
        data = response.json() if response.content else {}
    except ValueError:
        data = {"raw_response": response.text[:500]}
    return data if isinstance(data, dict) else {"raw_response": data}
