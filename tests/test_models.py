"""Tests for the session and principal data model."""

import pytest
from datetime import datetime, timezone

from nadepro_admin.models import (
    DEFAULT_SERVER_PORT,
    REACHABLE,
    Credentials,
    HistoryFilter,
    PaginatedSessions,
    Principal,
    Role,
    Session,
    SessionStatus,
    TerminationReason,
    is_valid_transition,
    parse_timestamp,
)
from tests.conftest import MOCK_WORKER, SAMPLE_SESSION_ID, session_payload


class TestPrincipal:
    """Tests for Principal parsing and role checks."""

    @pytest.mark.parametrize(
        "role,privileged",
        [("worker", True), ("admin", True), ("user", False)],
    )
    def test_privileged_roles(self, role, privileged):
        principal = Principal.from_dict({**MOCK_WORKER, "role": role})
        assert principal.is_privileged is privileged

    def test_unknown_role_is_not_privileged(self):
        """Roles the client doesn't know never pass the gate."""
        principal = Principal.from_dict({**MOCK_WORKER, "role": "superuser"})
        assert principal.role is Role.USER
        assert principal.is_privileged is False

    def test_wire_values(self):
        assert Role.OPERATOR.value == "worker"
        assert Role.ADMINISTRATOR.value == "admin"

    def test_credentials_to_dict_and_from_dict(self):
        creds = Credentials("a", "r", Principal.from_dict(MOCK_WORKER))
        data = creds.to_dict()

        assert data["accessToken"] == "a"
        assert data["refreshToken"] == "r"
        assert data["user"]["role"] == "worker"
        assert Credentials.from_dict(data) == creds


class TestSession:
    """Tests for Session.from_dict."""

    def test_queued_session(self):
        session = Session.from_dict(session_payload())

        assert session.id == SAMPLE_SESSION_ID
        assert session.status is SessionStatus.QUEUED
        assert session.queue_position == 3
        assert session.host is None
        assert session.port is None
        assert session.is_editor_session is True
        assert session.collection_name == "Mirage smokes"
        assert session.owner.username == "worker1"
        assert session.expires_at == datetime(2024, 1, 15, 11, tzinfo=timezone.utc)

    def test_default_port_when_host_known(self):
        session = Session.from_dict(session_payload(status="ready", serverIp="10.0.0.5"))
        assert session.port == DEFAULT_SERVER_PORT

    def test_explicit_port_and_secret(self):
        session = Session.from_dict(
            session_payload(status="active", serverIp="10.0.0.5", serverPort=27020, serverPassword="pw")
        )
        assert session.port == 27020
        assert session.secret == "pw"

    def test_termination_reason(self):
        session = Session.from_dict(session_payload(status="ended", endReason="admin_ended"))
        assert session.is_terminal
        assert session.termination_reason is TerminationReason.ADMIN_ENDED

    def test_unknown_termination_reason_ignored(self):
        session = Session.from_dict(session_payload(status="ended", endReason="meteor"))
        assert session.termination_reason is None

    def test_practice_collection_name_fallback(self):
        session = Session.from_dict(
            session_payload(editingCollectionName=None, practiceCollectionName="Dust2 flashes")
        )
        assert session.collection_name == "Dust2 flashes"


class TestStateGraph:
    """Tests for status transition rules."""

    def test_terminal_statuses(self):
        assert SessionStatus.ENDED.is_terminal
        assert SessionStatus.FAILED.is_terminal
        assert not SessionStatus.RECYCLABLE.is_terminal

    def test_terminal_has_no_successors(self):
        assert REACHABLE[SessionStatus.ENDED] == frozenset()
        assert REACHABLE[SessionStatus.FAILED] == frozenset()

    @pytest.mark.parametrize(
        "current,observed",
        [
            (SessionStatus.QUEUED, SessionStatus.PENDING),
            (SessionStatus.QUEUED, SessionStatus.READY),
            (SessionStatus.PENDING, SessionStatus.FAILED),
            (SessionStatus.READY, SessionStatus.RECYCLABLE),
            (SessionStatus.ACTIVE, SessionStatus.ENDED),
            (SessionStatus.ACTIVE, SessionStatus.ACTIVE),
        ],
    )
    def test_valid_transitions(self, current, observed):
        assert is_valid_transition(current, observed)

    @pytest.mark.parametrize(
        "current,observed",
        [
            (SessionStatus.ACTIVE, SessionStatus.QUEUED),
            (SessionStatus.READY, SessionStatus.PROVISIONING),
            (SessionStatus.READY, SessionStatus.FAILED),
            (SessionStatus.ENDED, SessionStatus.ACTIVE),
            (SessionStatus.FAILED, SessionStatus.ENDED),
        ],
    )
    def test_invalid_transitions(self, current, observed):
        assert not is_valid_transition(current, observed)

    def test_endpoint_exposed_only_when_ready_or_active(self):
        exposing = {s for s in SessionStatus if s.exposes_endpoint}
        assert exposing == {SessionStatus.READY, SessionStatus.ACTIVE}


class TestHistory:
    def test_filter_params_minimal(self):
        assert HistoryFilter().to_params() == {"page": 1, "limit": 20}

    def test_filter_params_full(self):
        params = HistoryFilter(page=2, limit=50, status=SessionStatus.FAILED, search="  bob ").to_params()
        assert params == {"page": 2, "limit": 50, "status": "failed", "search": "bob"}

    def test_blank_search_omitted(self):
        assert "search" not in HistoryFilter(search="   ").to_params()

    def test_paginated_sessions(self):
        page = PaginatedSessions.from_dict(
            {"items": [session_payload()], "total": 41, "page": 2, "limit": 20, "totalPages": 3}
        )
        assert len(page.items) == 1
        assert page.total == 41
        assert page.total_pages == 3


def test_parse_timestamp():
    assert parse_timestamp("2024-01-15T10:00:00Z") == datetime(2024, 1, 15, 10, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None
    assert parse_timestamp("not a date") is None
