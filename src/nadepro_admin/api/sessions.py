"""Admin Sessions API - editor session lifecycle and fleet monitoring."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from ..envelope import unwrap_admin_sessions
from ..errors import DomainError
from ..models import ExhaustedUser, HistoryFilter, PaginatedSessions, Session

if TYPE_CHECKING:
    from .client import AdminClient


class SessionsAPI:
    """Admin session endpoints.

    Session status is owned by the backend orchestrator; these calls only
    request creation or termination and read back what the backend reports.

    Usage:
        async with AdminClient() as api:
            session = await api.sessions.create_editor("de_mirage", "col_123")
            active = await api.sessions.active()
            page = await api.sessions.history(HistoryFilter(status=SessionStatus.ENDED))
            await api.sessions.end(session.id)
    """

    def __init__(self, client: "AdminClient"):
        self._client = client

    async def create_editor(self, map_name: str, collection_id: str) -> Session:
        """Request a new editor session restricted to one collection.

        Returns:
            The initial Session, usually ``queued`` or ``pending``
        """
        data = await self._client._post(
            "/admin/sessions/editor",
            unwrap_admin_sessions,
            {"mapName": map_name, "collectionId": collection_id},
        )
        return Session.from_dict(data)

    async def active(self) -> Session | None:
        """The caller's own current session, if the backend reports one."""
        data = await self._client._get("/admin/sessions/active", unwrap_admin_sessions)
        return Session.from_dict(data) if data else None

    async def running(self) -> list[Session]:
        data = await self._client._get("/admin/sessions/running", unwrap_admin_sessions)
        return [Session.from_dict(item) for item in data or []]

    async def history(self, filter: HistoryFilter | None = None) -> PaginatedSessions:
        """Paginated session history across all users.

        Args:
            filter: page, limit, optional status and free-text owner search
        """
        params = (filter or HistoryFilter()).to_params()
        data = await self._client._get("/admin/sessions/history", unwrap_admin_sessions, params)
        return PaginatedSessions.from_dict(data or {})

    async def get(self, session_id: str) -> Session | None:
        """Read one session by id. Returns None if the backend no longer knows it."""
        try:
            data = await self._client._get(f"/admin/sessions/{session_id}", unwrap_admin_sessions)
        except DomainError as e:
            if e.status_code == 404:
                return None
            raise
        return Session.from_dict(data) if data else None

    async def end(self, session_id: str) -> dict[str, Any] | None:
        """Ask the backend to terminate a session.

        Returns the acknowledgement only; the terminal status is observed by
        a later read.
        """
        return await self._client._post(f"/admin/sessions/{session_id}/end", unwrap_admin_sessions)

    async def exhausted_users(self) -> list[ExhaustedUser]:
        """Users at their weekly usage limit, computed fresh by the backend."""
        data = await self._client._get("/admin/sessions/exhausted-users", unwrap_admin_sessions)
        return [ExhaustedUser.from_dict(item) for item in data or []]
