"""Data model for principals, credentials and editor sessions.

Wire payloads use camelCase keys; every model exposes ``from_dict`` to parse
the unwrapped ``data`` value of a response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

DEFAULT_SERVER_PORT = 27015

MAPS: dict[str, str] = {
    "de_mirage": "Mirage",
    "de_dust2": "Dust II",
    "de_inferno": "Inferno",
    "de_nuke": "Nuke",
    "de_overpass": "Overpass",
    "de_ancient": "Ancient",
    "de_anubis": "Anubis",
    "de_vertigo": "Vertigo",
}


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class Role(str, Enum):
    USER = "user"
    OPERATOR = "worker"
    ADMINISTRATOR = "admin"


PRIVILEGED_ROLES = frozenset({Role.OPERATOR, Role.ADMINISTRATOR})


class SessionStatus(str, Enum):
    QUEUED = "queued"
    PENDING = "pending"
    PROVISIONING = "provisioning"
    READY = "ready"
    ACTIVE = "active"
    RECYCLABLE = "recyclable"
    ENDING = "ending"
    ENDED = "ended"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def exposes_endpoint(self) -> bool:
        return self in (SessionStatus.READY, SessionStatus.ACTIVE)


TERMINAL_STATUSES = frozenset({SessionStatus.ENDED, SessionStatus.FAILED})

# Direct transitions driven by the remote orchestrator.
TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.QUEUED: frozenset({SessionStatus.PENDING}),
    SessionStatus.PENDING: frozenset({SessionStatus.PROVISIONING, SessionStatus.FAILED}),
    SessionStatus.PROVISIONING: frozenset({SessionStatus.READY, SessionStatus.FAILED}),
    SessionStatus.READY: frozenset({SessionStatus.ACTIVE, SessionStatus.RECYCLABLE}),
    SessionStatus.ACTIVE: frozenset({SessionStatus.ENDING, SessionStatus.RECYCLABLE}),
    SessionStatus.RECYCLABLE: frozenset({SessionStatus.ENDED}),
    SessionStatus.ENDING: frozenset({SessionStatus.ENDED}),
    SessionStatus.ENDED: frozenset(),
    SessionStatus.FAILED: frozenset(),
}


def _reachable_from(status: SessionStatus) -> frozenset[SessionStatus]:
    seen: set[SessionStatus] = set()
    stack = list(TRANSITIONS[status])
    while stack:
        nxt = stack.pop()
        if nxt in seen:
            continue
        seen.add(nxt)
        stack.extend(TRANSITIONS[nxt])
    return frozenset(seen)


# Polling can miss intermediate states, so observations are checked against
# the transitive closure of TRANSITIONS.
REACHABLE: dict[SessionStatus, frozenset[SessionStatus]] = {
    status: _reachable_from(status) for status in SessionStatus
}


def is_valid_transition(current: SessionStatus, observed: SessionStatus) -> bool:
    """Whether ``observed`` can follow ``current`` along the state graph."""
    return observed == current or observed in REACHABLE[current]


class TerminationReason(str, Enum):
    USER_ENDED = "user_ended"
    EXPIRED = "expired"
    DISCONNECTED = "disconnected"
    CONNECTION_TIMEOUT = "connection_timeout"
    RECYCLED = "recycled"
    ADMIN_ENDED = "admin_ended"
    KICKED = "kicked"
    PROVISIONING_FAILED = "provisioning_failed"


@dataclass(frozen=True)
class Principal:
    """Authenticated identity returned by the backend."""

    id: str
    username: str
    role: Role
    is_premium: bool = False
    steam_id: str | None = None
    avatar: str | None = None
    created_at: str | None = None

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value,
            "isPremium": self.is_premium,
            "steamId": self.steam_id,
            "avatar": self.avatar,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Principal":
        try:
            role = Role(data.get("role", Role.USER.value))
        except ValueError:
            # Unknown roles are never privileged.
            role = Role.USER
        return cls(
            id=str(data["id"]),
            username=data.get("username") or "",
            role=role,
            is_premium=bool(data.get("isPremium", False)),
            steam_id=data.get("steamId"),
            avatar=data.get("avatar"),
            created_at=data.get("createdAt"),
        )


@dataclass(frozen=True)
class Credentials:
    """Access/refresh token pair plus the principal they belong to.

    Always replaced as a whole; never updated field by field.
    """

    access_token: str
    refresh_token: str
    principal: Principal

    def to_dict(self) -> dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "user": self.principal.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Credentials":
        return cls(
            access_token=data["accessToken"],
            refresh_token=data["refreshToken"],
            principal=Principal.from_dict(data["user"]),
        )


@dataclass(frozen=True)
class SessionOwner:
    username: str
    avatar: str | None = None
    is_premium: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionOwner":
        return cls(
            username=data.get("username") or "Unknown",
            avatar=data.get("avatar"),
            is_premium=bool(data.get("isPremium", False)),
        )


@dataclass(frozen=True)
class Session:
    """A remote-provisioned editor or practice server instance."""

    id: str
    owner_id: str
    map_name: str
    status: SessionStatus
    expires_at: datetime | None = None
    host: str | None = None
    port: int | None = None
    secret: str | None = None
    queue_position: int | None = None
    created_at: datetime | None = None
    queued_at: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    connection_timeout_at: datetime | None = None
    termination_reason: TerminationReason | None = None
    is_editor_session: bool = False
    editing_collection_id: str | None = None
    editing_collection_name: str | None = None
    practice_collection_name: str | None = None
    provisioning_error: str | None = None
    owner: SessionOwner | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def collection_name(self) -> str | None:
        return self.editing_collection_name or self.practice_collection_name

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        host = data.get("serverIp") or None
        port = data.get("serverPort")
        if host and not port:
            port = DEFAULT_SERVER_PORT

        reason = data.get("endReason")
        try:
            termination_reason = TerminationReason(reason) if reason else None
        except ValueError:
            termination_reason = None

        queue_position = data.get("queuePosition")
        owner = data.get("user")

        return cls(
            id=str(data["id"]),
            owner_id=str(data.get("userId", "")),
            map_name=data.get("mapName", ""),
            status=SessionStatus(data["status"]),
            expires_at=parse_timestamp(data.get("expiresAt")),
            host=host,
            port=int(port) if port else None,
            secret=data.get("serverPassword") or None,
            queue_position=int(queue_position) if queue_position is not None else None,
            created_at=parse_timestamp(data.get("createdAt")),
            queued_at=parse_timestamp(data.get("queuedAt")),
            started_at=parse_timestamp(data.get("startedAt")),
            ended_at=parse_timestamp(data.get("endedAt")),
            connection_timeout_at=parse_timestamp(data.get("connectionTimeoutAt")),
            termination_reason=termination_reason,
            is_editor_session=bool(data.get("isEditorSession", False)),
            editing_collection_id=data.get("editingCollectionId"),
            editing_collection_name=data.get("editingCollectionName"),
            practice_collection_name=data.get("practiceCollectionName"),
            provisioning_error=data.get("provisioningError"),
            owner=SessionOwner.from_dict(owner) if isinstance(owner, dict) else None,
        )


@dataclass
class PaginatedSessions:
    items: list[Session] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaginatedSessions":
        return cls(
            items=[Session.from_dict(item) for item in data.get("items", [])],
            total=int(data.get("total", 0)),
            page=int(data.get("page", 1)),
            limit=int(data.get("limit", 20)),
            total_pages=int(data.get("totalPages", 0)),
        )


@dataclass(frozen=True)
class HistoryFilter:
    page: int = 1
    limit: int = 20
    status: SessionStatus | None = None
    search: str | None = None

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"page": self.page, "limit": self.limit}
        if self.status is not None:
            params["status"] = self.status.value
        if self.search and self.search.strip():
            params["search"] = self.search.strip()
        return params


@dataclass(frozen=True)
class ExhaustedUser:
    """A user who has consumed their weekly session allowance."""

    user_id: str
    username: str
    used_seconds: int
    limit_seconds: int
    avatar: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExhaustedUser":
        return cls(
            user_id=str(data["userId"]),
            username=data.get("username") or "",
            used_seconds=int(data.get("usedSeconds", 0)),
            limit_seconds=int(data.get("limitSeconds", 0)),
            avatar=data.get("avatar"),
        )


@dataclass(frozen=True)
class LineupCollection:
    id: str
    name: str
    map_name: str
    description: str | None = None
    is_default: bool = False
    lineup_count: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LineupCollection":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            map_name=data.get("mapName", ""),
            description=data.get("description"),
            is_default=bool(data.get("isDefault", False)),
            lineup_count=int(data.get("lineupCount", 0)),
        )
