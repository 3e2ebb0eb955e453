"""Tests for the local login callback server."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from nadepro_admin.auth.gate import GateResult, GateState
from nadepro_admin.auth.server import (
    CallbackResult,
    LoginCallbackHandler,
    LoginCallbackServer,
    run_login_flow,
)


class TestCallbackResult:
    def test_success_requires_both_tokens(self):
        assert CallbackResult(token="a", refresh_token="r").success
        assert not CallbackResult(token="a").success
        assert not CallbackResult(token="a", refresh_token="r", error="x").success


class TestLoginCallbackServer:
    @pytest.fixture
    def server(self):
        server = LoginCallbackServer(port=0, host="127.0.0.1")
        server.start()
        yield server
        server.stop()

    def test_receives_token_pair(self, server):
        response = httpx.get(f"{server.callback_url}?token=abc&refreshToken=def", trust_env=False)

        assert response.status_code == 200
        result = LoginCallbackHandler.callback_result
        assert result.token == "abc"
        assert result.refresh_token == "def"
        assert result.success

    def test_receives_error(self, server):
        response = httpx.get(f"{server.callback_url}?error=unauthorized", trust_env=False)

        assert response.status_code == 400
        assert "unauthorized" in response.text
        assert LoginCallbackHandler.callback_result.error == "unauthorized"

    def test_error_is_escaped(self, server):
        response = httpx.get(server.callback_url, params={"error": "<script>"}, trust_env=False)
        assert "<script>" not in response.text

    def test_unknown_path(self, server):
        response = httpx.get(f"http://127.0.0.1:{server.port}/other", trust_env=False)
        assert response.status_code == 404
        assert LoginCallbackHandler.callback_result is None

    @pytest.mark.asyncio
    async def test_wait_times_out(self):
        server = LoginCallbackServer()
        with pytest.raises(TimeoutError):
            await server.wait_for_callback_async(timeout=0.05)


class TestRunLoginFlow:
    @pytest.fixture
    def fake_server(self):
        def _create(result):
            server = MagicMock()
            server.callback_url = "http://localhost:3000/login"
            server.wait_for_callback_async = AsyncMock(return_value=result)
            server.__aenter__ = AsyncMock(return_value=server)
            server.__aexit__ = AsyncMock(return_value=None)
            return server
        return _create

    @pytest.fixture
    def gate(self):
        gate = MagicMock()
        gate.auth_client.login_url.return_value = "https://api.test/auth/steam?redirect=x"
        gate.complete_login = AsyncMock(return_value=GateResult(GateState.AUTHORIZED))
        gate.reject_login.return_value = GateResult(GateState.UNAUTHORIZED)
        return gate

    @pytest.mark.asyncio
    async def test_success_completes_login(self, gate, fake_server):
        urls = []
        with patch(
            "nadepro_admin.auth.server.LoginCallbackServer",
            return_value=fake_server(CallbackResult(token="a", refresh_token="r")),
        ):
            result = await run_login_flow(gate, open_browser=False, on_url=urls.append)

        assert result.allowed
        assert urls == ["https://api.test/auth/steam?redirect=x"]
        gate.auth_client.login_url.assert_called_once_with("http://localhost:3000/login")
        gate.complete_login.assert_called_once_with("a", "r")

    @pytest.mark.asyncio
    async def test_error_rejects_login(self, gate, fake_server):
        with patch(
            "nadepro_admin.auth.server.LoginCallbackServer",
            return_value=fake_server(CallbackResult(error="unauthorized")),
        ):
            result = await run_login_flow(gate, open_browser=False)

        assert result.state is GateState.UNAUTHORIZED
        gate.reject_login.assert_called_once_with("unauthorized")
        gate.complete_login.assert_not_called()

    @pytest.mark.asyncio
    async def test_opens_browser(self, gate, fake_server):
        with patch(
            "nadepro_admin.auth.server.LoginCallbackServer",
            return_value=fake_server(CallbackResult(token="a", refresh_token="r")),
        ), patch("nadepro_admin.auth.server.webbrowser.open") as mock_open:
            await run_login_flow(gate)

        mock_open.assert_called_once_with("https://api.test/auth/steam?redirect=x")
