"""Authentication module for the NadePro admin client.

Usage:
    from nadepro_admin.auth import AuthGate

    gate = AuthGate()
    result = await gate.activate()
    if result.allowed:
        ...  # render protected content
"""

from .client import AuthClient
from .gate import AuthGate, GateResult, GateState
from .server import LoginCallbackServer, run_login_flow
from .storage import CredentialStorage
from .store import TokenStore, get_token_store

__all__ = [
    "AuthClient",
    "AuthGate",
    "GateResult",
    "GateState",
    "LoginCallbackServer",
    "run_login_flow",
    "CredentialStorage",
    "TokenStore",
    "get_token_store",
]
