"""Client for the backend's ``/auth`` endpoints.

Handles the token exchanges that sit outside the request pipeline:
1. Build the Steam login URL the browser is sent to
2. Verify the token pair handed back by the login callback (``/auth/me``)
3. Exchange a refresh token for a fresh credential set (``/auth/refresh``)
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from ..config import settings
from ..envelope import error_body, unwrap_auth
from ..errors import AuthError, TransientRequestError, message_from
from ..models import Credentials, Principal

logger = logging.getLogger(__name__)


class AuthClient:
    """Token exchanges against ``/auth``.

    Usage:
        client = AuthClient()

        # Send the operator's browser here
        url = client.login_url("http://localhost:3000/login")

        # Rotate the token pair
        credentials = await client.refresh_tokens(refresh_token)
    """

    def __init__(
        self,
        base_url: str | None = None,
        http: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self._http = http

    def login_url(self, callback_url: str) -> str:
        """URL that starts the Steam OpenID login and redirects to ``callback_url``."""
        return f"{self.base_url}/auth/steam?{urlencode({'redirect': callback_url})}"

    async def refresh_tokens(self, refresh_token: str) -> Credentials:
        """Exchange a refresh token for a new access/refresh pair.

        Raises:
            AuthError: If the backend rejects the refresh token
            TransientRequestError: On network failure or server fault
        """
        logger.debug("Exchanging refresh token at %s/auth/refresh", self.base_url)
        response = await self._send("POST", "/auth/refresh", json={"refreshToken": refresh_token})
        data = self._parse(response, "Token refresh failed")
        return self._credentials_from(data)

    async def get_me(self, access_token: str) -> dict[str, Any]:
        """Fetch ``/auth/me`` with an explicit bearer token.

        Returns the unwrapped payload: either ``{accessToken, refreshToken, user}``
        or the bare principal.
        """
        response = await self._send(
            "GET",
            "/auth/me",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        data = self._parse(response, "Principal lookup failed")
        if not isinstance(data, dict):
            raise TransientRequestError("Invalid /auth/me response", response.status_code)
        return data

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            if self._http is not None:
                return await self._http.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransientRequestError(f"Auth request failed: {e}") from e

    def _parse(self, response: httpx.Response, failure: str) -> Any:
        if response.status_code >= 500:
            raise TransientRequestError(
                f"{failure}: {response.status_code}",
                response.status_code,
                error_body(response),
            )
        if response.status_code >= 400:
            body = error_body(response)
            raise AuthError(
                message_from(body, f"{failure}: {response.status_code}"),
                response.status_code,
                body,
            )
        try:
            return unwrap_auth(response.json())
        except ValueError as e:
            raise TransientRequestError(f"{failure}: invalid JSON", response.status_code) from e

    def _credentials_from(self, data: Any) -> Credentials:
        try:
            return Credentials(
                access_token=data["accessToken"],
                refresh_token=data["refreshToken"],
                principal=Principal.from_dict(data["user"]),
            )
        except (KeyError, TypeError) as e:
            raise AuthError(
                f"Invalid token response: missing {e}",
                response={"response_keys": list(data.keys()) if isinstance(data, dict) else []},
            ) from e

