"""Process-wide holder of the current credential set.

The only writers are login, logout and the refresh path of the request
pipeline. There is no lock: all writers run on the event loop thread and
each write is a single reference swap.
"""

from __future__ import annotations

import logging

from ..config import settings
from ..models import Credentials, Principal
from .storage import CredentialStorage

logger = logging.getLogger(__name__)


class TokenStore:
    """Named operations over the one credential set of this process.

    Usage:
        store = get_token_store()
        store.hydrate()
        if store.refresh_token:
            ...
        store.set_tokens(access, refresh, principal)
        store.logout()
    """

    def __init__(self, storage: CredentialStorage | None = None):
        self._storage = storage or CredentialStorage(settings.credentials_file)
        self._credentials: Credentials | None = None

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    @property
    def access_token(self) -> str | None:
        return self._credentials.access_token if self._credentials else None

    @property
    def refresh_token(self) -> str | None:
        return self._credentials.refresh_token if self._credentials else None

    @property
    def principal(self) -> Principal | None:
        return self._credentials.principal if self._credentials else None

    @property
    def is_authenticated(self) -> bool:
        return self._credentials is not None

    def hydrate(self) -> None:
        """Load previously persisted credentials. No-op if none exist."""
        stored = self._storage.load()
        if stored is None:
            return
        self._credentials = stored
        logger.debug("Hydrated credentials for %s", stored.principal.username)

    def set_tokens(self, access_token: str, refresh_token: str, principal: Principal) -> Credentials:
        """Atomically replace the credential set and persist it."""
        credentials = Credentials(
            access_token=access_token,
            refresh_token=refresh_token,
            principal=principal,
        )
        self._storage.save(credentials)
        self._credentials = credentials
        return credentials

    def logout(self) -> None:
        """Clear in-memory and persisted credentials. Idempotent."""
        if self._credentials is not None:
            logger.info("Logging out %s", self._credentials.principal.username)
        self._credentials = None
        self._storage.clear()


_store: TokenStore | None = None


def get_token_store() -> TokenStore:
    """Return the process-wide TokenStore, creating it on first use."""
    global _store
    if _store is None:
        _store = TokenStore()
    return _store
