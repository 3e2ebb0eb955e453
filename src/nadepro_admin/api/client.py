"""NadePro admin API client and request pipeline.

Every outbound call goes through ``AdminClient.send``, which attaches the
current bearer token and runs the refresh-once protocol on a 401:

1. the call is re-issued with an explicit ``retried=True`` marker, never by
   mutating the call itself;
2. the refresh token (if any) is exchanged at ``/auth/refresh``;
3. on success the new credential set is committed and the original call is
   sent again exactly once;
4. on failure the store is logged out and the original 401 surfaces as
   ``AuthError``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..auth.client import AuthClient
from ..auth.store import TokenStore, get_token_store
from ..config import settings
from ..envelope import Unwrap, error_body, unwrap_auth
from ..errors import (
    AuthError,
    DomainError,
    NadeProError,
    TransientRequestError,
    message_from,
)
from ..models import Principal
from .collections import CollectionsAPI
from .sessions import SessionsAPI

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiCall:
    """Immutable description of one outbound request."""

    method: str
    path: str
    params: dict[str, Any] | None = None
    json: dict[str, Any] | None = None


class AdminClient:
    """Authenticated client for the NadePro admin backend.

    Usage:
        async with AdminClient() as api:
            session = await api.sessions.create_editor("de_mirage", collection_id)
            running = await api.sessions.running()
    """

    def __init__(
        self,
        base_url: str | None = None,
        store: TokenStore | None = None,
        auth_client: AuthClient | None = None,
        http: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        single_flight_refresh: bool | None = None,
    ):
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.store = store or get_token_store()
        self.single_flight_refresh = (
            settings.single_flight_refresh if single_flight_refresh is None else single_flight_refresh
        )

        self._owns_client = http is None
        self._client = http or httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
        )
        self.auth_client = auth_client or AuthClient(self.base_url, http=self._client)
        self._refresh_task: asyncio.Task[bool] | None = None

        self.sessions = SessionsAPI(self)
        self.collections = CollectionsAPI(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    # Pipeline

    async def send(self, call: ApiCall, retried: bool = False) -> httpx.Response:
        """Send ``call`` with the current bearer token, refreshing once on 401.

        Raises:
            AuthError: 401 that could not be recovered by a refresh
            DomainError: Other 4xx rejections, with the backend's message
            TransientRequestError: 5xx or transport failure
        """
        token = self.store.access_token
        response = await self._dispatch(call, token)

        if response.status_code == 401:
            if retried:
                raise self._auth_error(response)
            if not await self._refresh(token):
                raise self._auth_error(response)
            logger.debug("Retrying %s %s with refreshed token", call.method, call.path)
            return await self.send(call, retried=True)

        self._raise_for_status(response)
        return response

    async def request(self, call: ApiCall, unwrap: Unwrap) -> Any:
        """Send ``call`` and normalize its body with the endpoint group's unwrap."""
        response = await self.send(call)
        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as e:
            raise TransientRequestError(
                f"Invalid JSON from {call.method} {call.path}", response.status_code
            ) from e
        return unwrap(payload)

    async def _get(self, path: str, unwrap: Unwrap, params: dict[str, Any] | None = None) -> Any:
        return await self.request(ApiCall("GET", path, params=params), unwrap)

    async def _post(self, path: str, unwrap: Unwrap, json: dict[str, Any] | None = None) -> Any:
        return await self.request(ApiCall("POST", path, json=json), unwrap)

    async def me(self) -> Principal:
        """Current principal, fetched through the pipeline."""
        data = await self._get("/auth/me", unwrap_auth)
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        return Principal.from_dict(data)

    async def _dispatch(self, call: ApiCall, token: str | None) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            return await self._client.request(
                call.method,
                f"{self.base_url}{call.path}",
                params=call.params,
                json=call.json,
                headers=headers,
            )
        except httpx.TransportError as e:
            raise TransientRequestError(f"{call.method} {call.path} failed: {e}") from e

    # Refresh

    async def _refresh(self, failed_token: str | None) -> bool:
        """Obtain a fresh credential set. Returns False after a forced logout."""
        refresh_token = self.store.refresh_token
        if not refresh_token:
            logger.info("Got 401 without a refresh token; logging out")
            self.store.logout()
            return False

        if not self.single_flight_refresh:
            return await self._exchange(refresh_token)

        current = self.store.access_token
        if current is not None and current != failed_token:
            # Another call already rotated the pair since this one was sent.
            return True

        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._exchange(refresh_token))
        return await asyncio.shield(self._refresh_task)

    async def _exchange(self, refresh_token: str) -> bool:
        logger.info("Access token rejected; refreshing")
        try:
            credentials = await self.auth_client.refresh_tokens(refresh_token)
        except NadeProError as e:
            logger.warning("Token refresh failed, logging out: %s", e)
            self.store.logout()
            return False

        self.store.set_tokens(
            credentials.access_token, credentials.refresh_token, credentials.principal
        )
        return True

    # Errors

    def _auth_error(self, response: httpx.Response) -> AuthError:
        body = error_body(response)
        return AuthError(message_from(body, "Unauthorized"), response.status_code, body)

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        body = error_body(response)
        if response.status_code >= 500:
            raise TransientRequestError(
                message_from(body, f"Server error: {response.status_code}"),
                response.status_code,
                body,
            )
        raise DomainError(
            message_from(body, f"Request rejected: {response.status_code}"),
            response.status_code,
            body,
        )

