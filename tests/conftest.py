"""Shared test fixtures for the NadePro admin test suite."""

import pytest
from typing import Any

from typer.testing import CliRunner

from nadepro_admin.auth import store as store_module
from nadepro_admin.auth.storage import CredentialStorage
from nadepro_admin.auth.store import TokenStore
from nadepro_admin.config import settings
from nadepro_admin.models import Principal, Role

BASE_URL = "https://api.test"

# Sample IDs used across tests
SAMPLE_USER_ID = "user_test789"
SAMPLE_SESSION_ID = "sess_abc123"
SAMPLE_COLLECTION_ID = "col_def456"


# ============================================================================
# Mock Response Data
# ============================================================================

MOCK_WORKER = {
    "id": SAMPLE_USER_ID,
    "username": "worker1",
    "role": "worker",
    "isPremium": False,
    "steamId": "76561198000000000",
    "avatar": None,
    "createdAt": "2024-01-15T10:00:00Z",
}

MOCK_PLAIN_USER = {**MOCK_WORKER, "id": "user_plain", "username": "player", "role": "user"}

MOCK_SESSION = {
    "id": SAMPLE_SESSION_ID,
    "userId": SAMPLE_USER_ID,
    "mapName": "de_mirage",
    "status": "queued",
    "serverIp": None,
    "serverPort": None,
    "serverPassword": None,
    "queuePosition": 3,
    "createdAt": "2024-01-15T10:00:00Z",
    "queuedAt": "2024-01-15T10:00:00Z",
    "startedAt": None,
    "endedAt": None,
    "expiresAt": "2024-01-15T11:00:00Z",
    "endReason": None,
    "isEditorSession": True,
    "editingCollectionId": SAMPLE_COLLECTION_ID,
    "editingCollectionName": "Mirage smokes",
    "user": {"username": "worker1", "avatar": None, "isPremium": False},
}


def envelope(data: Any, status_code: int = 200) -> dict[str, Any]:
    """Wrap a payload the way the backend does."""
    return {"data": data, "statusCode": status_code, "timestamp": "2024-01-15T10:00:00Z"}


def session_payload(**overrides: Any) -> dict[str, Any]:
    return {**MOCK_SESSION, **overrides}


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.nadepro directory."""
    monkeypatch.setattr(settings, "config_dir", tmp_path / "config")
    monkeypatch.setattr(settings, "api_url", BASE_URL)
    monkeypatch.setattr(store_module, "_store", None)


@pytest.fixture
def worker():
    return Principal.from_dict(MOCK_WORKER)


@pytest.fixture
def plain_user():
    return Principal(id="user_plain", username="player", role=Role.USER)


@pytest.fixture
def storage(tmp_path):
    """CredentialStorage in a temporary directory."""
    return CredentialStorage(tmp_path / "credentials.json")


@pytest.fixture
def store(storage):
    return TokenStore(storage)


@pytest.fixture
def logged_in_store(store, worker):
    store.set_tokens("access_old", "refresh_old", worker)
    return store


@pytest.fixture
def cli_runner():
    return CliRunner()
