"""Local login callback server.

Starts a temporary local HTTP server that receives the backend's redirect
after Steam login, carrying the new token pair as query parameters.
"""

from __future__ import annotations

import asyncio
import html
import logging
import socket
import webbrowser
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Thread
from urllib.parse import parse_qs, urlparse

from .gate import AuthGate, GateResult

logger = logging.getLogger(__name__)


@dataclass
class CallbackResult:
    """Query parameters delivered to the login callback."""

    token: str | None = None
    refresh_token: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return bool(self.token and self.refresh_token) and self.error is None


class LoginCallbackHandler(BaseHTTPRequestHandler):
    """HTTP handler for the login redirect."""

    callback_result: CallbackResult | None = None

    def log_message(self, format, *args):
        logger.debug("callback server: " + format, *args)

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path.rstrip("/") != "/login":
            self.send_response(404)
            self.end_headers()
            return

        params = parse_qs(parsed.query)
        result = CallbackResult(
            token=params.get("token", [None])[0],
            refresh_token=params.get("refreshToken", [None])[0],
            error=params.get("error", [None])[0],
        )
        LoginCallbackHandler.callback_result = result

        if result.success:
            self._send_page(200, "Login received", "You can close this window and return to the terminal.")
        else:
            self._send_page(400, "Login failed", result.error or "No token pair in callback.")

    def _send_page(self, status: int, title: str, body: str):
        page = (
            "<!DOCTYPE html><html><head><title>NadePro Admin</title></head>"
            f"<body><h1>{html.escape(title)}</h1><p>{html.escape(body)}</p></body></html>"
        )
        self.send_response(status)
        self.send_header("Content-Type", "text/html")
        self.end_headers()
        self.wfile.write(page.encode())


class LoginCallbackServer:
    """Local server for the login redirect.

    Usage:
        async with LoginCallbackServer(port=3000) as server:
            result = await server.wait_for_callback_async(timeout=300)
    """

    def __init__(self, port: int = 3000, host: str = "localhost"):
        self.port = port
        self.host = host
        self._server: HTTPServer | None = None
        self._thread: Thread | None = None

    @property
    def callback_url(self) -> str:
        return f"http://{self.host}:{self.port}/login"

    def _find_free_port(self) -> int:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("", 0))
            return s.getsockname()[1]

    def start(self, find_free_port: bool = True) -> int:
        """Start the callback server and return the port it listens on."""
        LoginCallbackHandler.callback_result = None

        try:
            self._server = HTTPServer((self.host, self.port), LoginCallbackHandler)
        except OSError:
            if not find_free_port:
                raise
            self.port = self._find_free_port()
            self._server = HTTPServer((self.host, self.port), LoginCallbackHandler)
        self.port = self._server.server_address[1]

        self._thread = Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        return self.port

    def stop(self):
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=1)
            self._thread = None

    async def wait_for_callback_async(self, timeout: float = 300) -> CallbackResult:
        """Wait for the login redirect.

        Raises:
            TimeoutError: If no callback arrives within ``timeout`` seconds
        """
        loop = asyncio.get_running_loop()
        start = loop.time()
        while loop.time() - start < timeout:
            if LoginCallbackHandler.callback_result is not None:
                return LoginCallbackHandler.callback_result
            await asyncio.sleep(0.1)

        raise TimeoutError(f"No login callback received within {timeout} seconds")

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *args):
        self.stop()


async def run_login_flow(
    gate: AuthGate,
    port: int = 3000,
    timeout: float = 300,
    open_browser: bool = True,
    on_url=None,
) -> GateResult:
    """Run the browser login and verify the resulting principal.

    1. Start the local callback server
    2. Open the Steam login URL
    3. Wait for the redirect with the token pair
    4. Verify role and commit the credentials through the gate
    """
    async with LoginCallbackServer(port=port) as server:
        url = gate.auth_client.login_url(server.callback_url)
        if on_url is not None:
            on_url(url)
        if open_browser:
            webbrowser.open(url)

        result = await server.wait_for_callback_async(timeout=timeout)

    if not result.success:
        return gate.reject_login(result.error or "Login callback carried no token pair")

    return await gate.complete_login(result.token, result.refresh_token)
