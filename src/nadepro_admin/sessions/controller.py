"""Editor session lifecycle: start, observe, list and end.

The backend orchestrator drives every status change. The controller only
requests creation or termination and otherwise observes by polling::

    queued → pending → provisioning → ready → active → ending → ended
    {pending, provisioning} → failed
    {ready, active} → recyclable → ended
"""

from __future__ import annotations

import logging
from typing import Callable

from ..api.client import AdminClient
from ..config import settings
from ..errors import NadeProError, ValidationError
from ..models import (
    MAPS,
    ExhaustedUser,
    HistoryFilter,
    PaginatedSessions,
    Session,
    is_valid_transition,
)
from .polling import PeriodicPoll

logger = logging.getLogger(__name__)

SessionCallback = Callable[[Session], None]


class SessionWatch:
    """Handle for one polled session.

    ``session`` is the latest accepted observation. Observations that cannot
    follow it along the state graph are ignored, and nothing is applied once
    a terminal status has been seen.
    """

    def __init__(
        self,
        controller: "SessionController",
        session: Session,
        on_update: SessionCallback | None = None,
        on_error: Callable[[NadeProError], None] | None = None,
        interval: float | None = None,
    ):
        self.session = session
        self.vanished = False
        self.ignored = 0
        self._on_update = on_update
        self._poll: PeriodicPoll[Session | None] = PeriodicPoll(
            fetch=lambda: controller.observe_session(session.id),
            on_result=self._apply,
            interval=interval if interval is not None else controller.poll_interval,
            on_error=on_error,
            name=f"session-watch:{session.id}",
        )

    @property
    def running(self) -> bool:
        return self._poll.running

    @property
    def polls(self) -> int:
        return self._poll.polls

    def start(self) -> "SessionWatch":
        if self.session.is_terminal:
            logger.debug("Session %s already terminal; not polling", self.session.id)
            self._poll.stop()
            return self
        self._poll.start()
        return self

    def stop(self) -> None:
        self._poll.stop()

    async def wait(self) -> Session:
        """Wait for the watch to end and return the last accepted observation."""
        await self._poll.wait()
        return self.session

    async def aclose(self) -> None:
        await self._poll.aclose()

    async def __aenter__(self) -> "SessionWatch":
        return self.start()

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    def _apply(self, observed: Session | None) -> bool:
        if self.session.is_terminal:
            return False

        if observed is None:
            logger.info("Session %s is no longer active", self.session.id)
            self.vanished = True
            return False

        if not is_valid_transition(self.session.status, observed.status):
            self.ignored += 1
            logger.warning(
                "Ignoring out-of-order status for session %s: %s -> %s",
                self.session.id,
                self.session.status.value,
                observed.status.value,
            )
            return True

        changed = observed != self.session
        if observed.status != self.session.status:
            logger.info(
                "Session %s: %s -> %s",
                self.session.id,
                self.session.status.value,
                observed.status.value,
            )
        self.session = observed
        if changed and self._on_update is not None:
            self._on_update(observed)

        return not observed.is_terminal


class SessionController:
    """Creates, observes, lists and ends editor sessions.

    Usage:
        controller = SessionController(api)
        session = await controller.start_editor_session("de_mirage", collection_id)
        async with controller.watch(session, on_update=render) as watch:
            final = await watch.wait()
    """

    def __init__(
        self,
        api: AdminClient,
        poll_interval: float | None = None,
        by_id_fallback: bool | None = None,
    ):
        self.api = api
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.poll_interval_seconds
        )
        self.by_id_fallback = (
            settings.watch_by_id_fallback if by_id_fallback is None else by_id_fallback
        )
        self._watches: set[SessionWatch] = set()

    async def start_editor_session(self, map_name: str, collection_id: str | None) -> Session:
        """Request a new editor session for one collection.

        Raises:
            ValidationError: No collection selected or unknown map
            DomainError: Backend rejected the request (e.g. usage quota)
        """
        if not collection_id or not collection_id.strip():
            raise ValidationError("Please select a collection")
        if map_name not in MAPS:
            raise ValidationError(f"Unknown map: {map_name}")

        session = await self.api.sessions.create_editor(map_name, collection_id.strip())
        logger.info("Started editor session %s (%s)", session.id, session.status.value)
        return session

    async def get_active_session(self) -> Session | None:
        """The caller's own non-terminal session, or None."""
        session = await self.api.sessions.active()
        if session is None or session.is_terminal:
            return None
        return session

    async def get_running_sessions(self) -> list[Session]:
        sessions = await self.api.sessions.running()
        return [s for s in sessions if not s.is_terminal]

    async def get_session_history(self, filter: HistoryFilter | None = None) -> PaginatedSessions:
        return await self.api.sessions.history(filter)

    async def get_session(self, session_id: str) -> Session | None:
        return await self.api.sessions.get(session_id)

    async def observe_session(self, session_id: str) -> Session | None:
        """Latest backend report for ``session_id``, terminal records included.

        Checks the caller's active session first, then the fleet-wide running
        list. None means the session has left the non-terminal set. With
        ``by_id_fallback`` the id-addressed read is tried before giving up.
        """
        active = await self.api.sessions.active()
        if active is not None and active.id == session_id:
            return active

        for session in await self.api.sessions.running():
            if session.id == session_id:
                return session

        if self.by_id_fallback:
            return await self.get_session(session_id)
        return None

    async def get_exhausted_users(self) -> list[ExhaustedUser]:
        return await self.api.sessions.exhausted_users()

    async def end_session(self, session_id: str) -> None:
        """Request termination. The resulting status is only seen by a later poll."""
        await self.api.sessions.end(session_id)
        logger.info("Requested end of session %s", session_id)

    def watch(
        self,
        session: Session,
        on_update: SessionCallback | None = None,
        on_error: Callable[[NadeProError], None] | None = None,
    ) -> SessionWatch:
        """Start polling ``session``. The returned handle must be stopped by the caller."""
        handle = SessionWatch(self, session, on_update=on_update, on_error=on_error)
        self._watches.add(handle)
        return handle.start()

    def stop_watching(self, handle: SessionWatch) -> None:
        handle.stop()
        self._watches.discard(handle)

    async def aclose(self) -> None:
        """Stop every watch this controller started."""
        watches, self._watches = self._watches, set()
        for handle in watches:
            handle.stop()
        for handle in watches:
            await handle.aclose()
