"""NadePro admin API client module.

Usage:
    from nadepro_admin.api import AdminClient

    async with AdminClient() as api:
        running = await api.sessions.running()
        collections = await api.collections.list("de_mirage")
"""

from .client import AdminClient, ApiCall
from .collections import CollectionsAPI
from .sessions import SessionsAPI

__all__ = [
    "AdminClient",
    "ApiCall",
    "CollectionsAPI",
    "SessionsAPI",
]
