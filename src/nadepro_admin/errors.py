"""Error taxonomy for the admin client."""

from __future__ import annotations

from typing import Any


class NadeProError(Exception):
    """Base exception for admin client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class AuthError(NadeProError):
    """401 the pipeline could not recover from.

    A rejected or absent refresh token also forces a logout. A 401 on a call
    already retried after a refresh is raised as-is.
    """


class TransientRequestError(NadeProError):
    """Network failure or server fault, surfaced verbatim."""


class ValidationError(NadeProError):
    """A required input is missing; raised before any call is made."""


class DomainError(NadeProError):
    """Business-rule rejection reported by the backend (e.g. quota exceeded)."""


def message_from(body: dict[str, Any] | None, default: str) -> str:
    """Pull the backend's ``message`` out of an error body, unmodified."""
    if not body:
        return default
    message = body.get("message")
    if isinstance(message, list):
        message = "; ".join(str(m) for m in message)
    return message or default
