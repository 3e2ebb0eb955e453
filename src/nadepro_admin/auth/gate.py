"""Startup authentication gate for protected admin views.

Hydrates the TokenStore, proves the stored refresh token is still alive by
exchanging it, and admits only operators and administrators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..errors import NadeProError
from ..models import Principal
from .client import AuthClient
from .store import TokenStore, get_token_store

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
UNAUTHORIZED_PATH = "/login?error=unauthorized"
UNAUTHORIZED_MESSAGE = "Access denied. Admin or worker role required."


class GateState(str, Enum):
    CHECKING = "checking"
    AUTHORIZED = "authorized"
    LOGIN_REQUIRED = "login_required"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class GateResult:
    state: GateState
    principal: Principal | None = None
    redirect: str | None = None
    message: str | None = None

    @property
    def allowed(self) -> bool:
        return self.state is GateState.AUTHORIZED


class AuthGate:
    """Gate protected content behind a verified privileged principal.

    ``state`` is ``CHECKING`` until ``activate()`` completes; callers show a
    loading placeholder meanwhile and render protected content only once the
    result is ``AUTHORIZED``.

    The check runs once per activation. Credential changes made by another
    process after that are not observed.
    """

    def __init__(self, store: TokenStore | None = None, auth_client: AuthClient | None = None):
        self.store = store or get_token_store()
        self.auth_client = auth_client or AuthClient()
        self.state = GateState.CHECKING
        self.result: GateResult | None = None

    async def activate(self) -> GateResult:
        self.state = GateState.CHECKING
        self.store.hydrate()

        refresh_token = self.store.refresh_token
        if not refresh_token:
            return self._finish(GateResult(GateState.LOGIN_REQUIRED, redirect=LOGIN_PATH))

        try:
            credentials = await self.auth_client.refresh_tokens(refresh_token)
        except NadeProError as e:
            logger.info("Stored session rejected: %s", e)
            self.store.logout()
            return self._finish(
                GateResult(GateState.LOGIN_REQUIRED, redirect=LOGIN_PATH, message=str(e))
            )

        if not credentials.principal.is_privileged:
            logger.warning(
                "Principal %s has role %s; privileged role required",
                credentials.principal.username,
                credentials.principal.role.value,
            )
            return self.reject_login("unauthorized")

        self.store.set_tokens(
            credentials.access_token, credentials.refresh_token, credentials.principal
        )
        return self._finish(GateResult(GateState.AUTHORIZED, principal=credentials.principal))

    async def complete_login(self, access_token: str, refresh_token: str) -> GateResult:
        """Finish a login from the token pair handed to the login callback.

        The principal is looked up with the callback's access token directly,
        so nothing is written to the store until the role check passes.
        """
        self.state = GateState.CHECKING
        try:
            data = await self.auth_client.get_me(access_token)
            if isinstance(data.get("user"), dict):
                principal = Principal.from_dict(data["user"])
                access_token = data.get("accessToken") or access_token
                refresh_token = data.get("refreshToken") or refresh_token
            else:
                principal = Principal.from_dict(data)
        except (NadeProError, KeyError) as e:
            logger.info("Login callback verification failed: %s", e)
            self.store.logout()
            return self._finish(
                GateResult(
                    GateState.LOGIN_REQUIRED,
                    redirect=LOGIN_PATH,
                    message="Failed to authenticate. Please try again.",
                )
            )

        if not principal.is_privileged:
            return self.reject_login("unauthorized")

        self.store.set_tokens(access_token, refresh_token, principal)
        return self._finish(GateResult(GateState.AUTHORIZED, principal=principal))

    def reject_login(self, error: str) -> GateResult:
        """Record a login callback that carried an error instead of tokens."""
        self.store.logout()
        if error == "unauthorized":
            return self._finish(
                GateResult(
                    GateState.UNAUTHORIZED,
                    redirect=UNAUTHORIZED_PATH,
                    message=UNAUTHORIZED_MESSAGE,
                )
            )
        return self._finish(GateResult(GateState.LOGIN_REQUIRED, redirect=LOGIN_PATH, message=error))

    def _finish(self, result: GateResult) -> GateResult:
        self.state = result.state
        self.result = result
        return result
