"""On-disk persistence for the admin credential set.

Stores credentials in ~/.nadepro/credentials.json with restrictive file
permissions.

Note: Tokens are stored in plaintext and protected by file permissions (0o600).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from ..models import Credentials

logger = logging.getLogger(__name__)


@dataclass
class StoredCredentials:
    """Complete credential file structure."""

    credentials: Credentials | None = None
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "credentials": self.credentials.to_dict() if self.credentials else None,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredCredentials":
        creds = data.get("credentials")
        return cls(
            credentials=Credentials.from_dict(creds) if creds else None,
            updated_at=data.get("updated_at", datetime.now().isoformat()),
        )


class CredentialStorage:
    """File-backed storage for one credential set.

    Usage:
        storage = CredentialStorage()
        storage.save(credentials)
        creds = storage.load()
        storage.clear()
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> Credentials | None:
        """Load the persisted credential set, or None if absent/unreadable."""
        if not self.path.exists():
            return None

        try:
            with open(self.path) as f:
                data = json.load(f)
            return StoredCredentials.from_dict(data).credentials
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Could not load credentials from %s: %s", self.path, e)
            return None

    def save(self, credentials: Credentials) -> None:
        """Replace the persisted credential set."""
        self._write(StoredCredentials(credentials=credentials))

    def clear(self) -> None:
        """Remove persisted credentials. Safe to call repeatedly."""
        if self.path.exists():
            self.path.unlink()

    def exists(self) -> bool:
        return self.path.exists()

    def _write(self, data: StoredCredentials) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(data.to_dict(), indent=2)

        # Readers see either the old or the new pair, never a mix.
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            f.write(content)
        os.chmod(tmp, 0o600)
        os.replace(tmp, self.path)
