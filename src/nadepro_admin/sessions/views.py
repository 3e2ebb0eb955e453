"""View models for session screens.

Everything here is derived from a Session as last reported by the backend;
nothing is written back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from ..errors import NadeProError
from ..models import MAPS, Session, SessionStatus, TerminationReason
from .controller import SessionController
from .polling import PeriodicPoll

logger = logging.getLogger(__name__)

STATUS_LABELS: dict[SessionStatus, str] = {
    SessionStatus.QUEUED: "In Queue",
    SessionStatus.PENDING: "Pending",
    SessionStatus.PROVISIONING: "Provisioning Server...",
    SessionStatus.READY: "Ready",
    SessionStatus.ACTIVE: "Active",
    SessionStatus.RECYCLABLE: "Recyclable",
    SessionStatus.ENDING: "Ending",
    SessionStatus.ENDED: "Ended",
    SessionStatus.FAILED: "Failed",
}

STATUS_STYLES: dict[SessionStatus, str] = {
    SessionStatus.QUEUED: "medium_purple",
    SessionStatus.PENDING: "yellow",
    SessionStatus.PROVISIONING: "yellow",
    SessionStatus.READY: "green",
    SessionStatus.ACTIVE: "green",
    SessionStatus.RECYCLABLE: "dark_orange",
    SessionStatus.ENDING: "grey50",
    SessionStatus.ENDED: "grey50",
    SessionStatus.FAILED: "red",
}

TERMINATION_LABELS: dict[TerminationReason, str] = {
    TerminationReason.USER_ENDED: "User Left",
    TerminationReason.EXPIRED: "Time Expired",
    TerminationReason.DISCONNECTED: "Disconnected",
    TerminationReason.CONNECTION_TIMEOUT: "Connection Timeout",
    TerminationReason.RECYCLED: "Recycled",
    TerminationReason.ADMIN_ENDED: "Admin Ended",
    TerminationReason.KICKED: "Usage Limit",
    TerminationReason.PROVISIONING_FAILED: "Provisioning Failed",
}


def status_label(status: SessionStatus) -> str:
    return STATUS_LABELS.get(status, status.value)


def termination_label(reason: TerminationReason | None) -> str:
    if reason is None:
        return "-"
    return TERMINATION_LABELS.get(reason, reason.value)


def map_display_name(map_name: str) -> str:
    return MAPS.get(map_name, map_name)


def format_duration(started_at: datetime | None, ended_at: datetime | None = None, now: datetime | None = None) -> str:
    """Human duration such as ``45s``, ``3m 20s`` or ``1h 5m``."""
    if started_at is None:
        return "-"
    end = ended_at or now or datetime.now(timezone.utc)
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    seconds = max(0, int((end - started_at).total_seconds()))
    if seconds < 60:
        return f"{seconds}s"
    mins = seconds // 60
    if mins < 60:
        return f"{mins}m {seconds % 60}s"
    return f"{mins // 60}h {mins % 60}m"


def format_seconds(seconds: int) -> str:
    mins = seconds // 60
    if mins < 60:
        return f"{mins}m"
    return f"{mins // 60}h {mins % 60}m"


@dataclass(frozen=True)
class ConnectionDetails:
    host: str
    port: int
    secret: str | None = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def connect_command(self) -> str:
        command = f"connect {self.address}"
        if self.secret:
            command += f"; password {self.secret}"
        return command

    @property
    def steam_url(self) -> str:
        return f"steam://connect/{self.address}/{self.secret or ''}"


@dataclass(frozen=True)
class SessionCard:
    """What a session screen may show for one observation."""

    session_id: str
    status: SessionStatus
    label: str
    map_label: str
    collection_name: str | None
    queue_position: int | None
    connection: ConnectionDetails | None
    termination: str
    error: str | None
    owner: str
    is_editor: bool

    @property
    def show_queue(self) -> bool:
        return self.queue_position is not None

    @classmethod
    def from_session(cls, session: Session) -> "SessionCard":
        # queuePosition is stale the moment the status leaves queued.
        queue_position = (
            session.queue_position if session.status is SessionStatus.QUEUED else None
        )

        connection = None
        if session.status.exposes_endpoint and session.host:
            connection = ConnectionDetails(
                host=session.host,
                port=session.port or 0,
                secret=session.secret,
            )

        return cls(
            session_id=session.id,
            status=session.status,
            label=status_label(session.status),
            map_label=map_display_name(session.map_name),
            collection_name=session.collection_name,
            queue_position=queue_position,
            connection=connection,
            termination=termination_label(session.termination_reason) if session.is_terminal else "-",
            error=session.provisioning_error,
            owner=session.owner.username if session.owner else "Unknown",
            is_editor=session.is_editor_session,
        )


class RunningSessionsView:
    """Fleet-wide list of running sessions.

    ``end()`` marks a row as ending immediately; the row's authoritative
    status only changes when a later refresh reports it.
    """

    def __init__(self, controller: SessionController):
        self.controller = controller
        self.sessions: list[Session] = []
        self.ending: set[str] = set()
        self._poll: PeriodicPoll[list[Session]] | None = None

    @property
    def rows(self) -> list[SessionCard]:
        return [SessionCard.from_session(s) for s in self.sessions]

    def is_ending(self, session_id: str) -> bool:
        return session_id in self.ending

    async def refresh(self) -> list[Session]:
        self._apply(await self.controller.get_running_sessions())
        return self.sessions

    async def end(self, session_id: str) -> None:
        """Request termination and mark the row until the backend confirms it."""
        await self.controller.end_session(session_id)
        self.ending.add(session_id)

    def start_polling(self, interval: float | None = None) -> PeriodicPoll[list[Session]]:
        """Poll the list at the controller's cadence. Caller stops the handle."""
        if self._poll is None or not self._poll.running:
            self._poll = PeriodicPoll(
                fetch=self.controller.get_running_sessions,
                on_result=self._on_poll,
                interval=interval if interval is not None else self.controller.poll_interval,
                on_error=self._on_error,
                name="running-sessions",
            ).start()
        return self._poll

    async def stop_polling(self) -> None:
        if self._poll is not None:
            await self._poll.aclose()
            self._poll = None

    def _on_poll(self, sessions: list[Session]) -> bool:
        self._apply(sessions)
        return True

    def _on_error(self, error: NadeProError) -> None:
        logger.warning("Running sessions refresh failed: %s", error)

    def _apply(self, sessions: list[Session]) -> None:
        self.sessions = list(sessions)
        present = {s.id for s in sessions}
        # Rows the backend no longer lists are confirmed gone.
        self.ending &= present
