"""Collections API - read-only lookup used to pick an editor collection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..envelope import unwrap_collections
from ..models import LineupCollection

if TYPE_CHECKING:
    from .client import AdminClient


class CollectionsAPI:
    def __init__(self, client: "AdminClient"):
        self._client = client

    async def list(self, map_name: str | None = None) -> list[LineupCollection]:
        """List lineup collections, optionally for one map."""
        params = {"map": map_name} if map_name else None
        data = await self._client._get("/api/collections", unwrap_collections, params)
        if not isinstance(data, list):
            return []
        return [LineupCollection.from_dict(item) for item in data]
