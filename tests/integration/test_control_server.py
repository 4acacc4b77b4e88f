"""End-to-end tests against a real loopback listener."""

import asyncio
import json
import logging
import socket
from typing import List

import httpx
import pytest

from vaultgate.models.operation import ApprovalRequest
from vaultgate.server import ControlServer, ServerState
from vaultgate.services.consent import ConsentSurface, StaticConsent

pytestmark = pytest.mark.integration


class HangingConsent(ConsentSurface):
    def __init__(self) -> None:
        self.presented: List[ApprovalRequest] = []

    async def present(self, request: ApprovalRequest) -> bool:
        self.presented.append(request)
        await asyncio.Event().wait()
        return False


@pytest.fixture
def server_config(make_config):
    return make_config(port=0, search_enabled=False)


@pytest.mark.asyncio
async def test_serves_health_and_authenticated_calls(server_config, vault_root) -> None:
    (vault_root / "a.md").write_text("hello")

    async with ControlServer(server_config, consent=StaticConsent(False)) as server:
        assert server.state is ServerState.RUNNING
        assert server.port and server.port > 0

        async with httpx.AsyncClient(base_url=server.url) as http:
            health = await http.get("/health")
            token = (await http.get("/auth/token")).json()["token"]
            response = await http.post(
                "/mcp/call",
                json={"tool": "read_note", "arguments": {"path": "a.md"}},
                headers={"Authorization": f"Bearer {token}"},
            )

        assert health.json() == {"status": "ok", "vault": "Test Vault"}
        assert token == server.token
        assert json.loads(response.json()["content"][0]["text"]) == {"content": "hello"}

    assert server.state is ServerState.STOPPED
    assert server.port is None


@pytest.mark.asyncio
async def test_token_rotates_per_start_and_stop_is_idempotent(server_config) -> None:
    server = ControlServer(server_config, consent=StaticConsent(False))

    await server.start()
    first = server.token
    await server.start()
    assert server.token == first

    await server.stop()
    await server.stop()
    assert server.token is None

    await server.start()
    try:
        assert server.token is not None
        assert server.token != first
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_session_token_is_not_logged(server_config, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="vaultgate")

    async with ControlServer(server_config, consent=StaticConsent(False)) as server:
        token = server.token

    assert token
    assert token not in caplog.text


@pytest.mark.asyncio
async def test_stop_denies_pending_approvals(server_config, vault_root) -> None:
    consent = HangingConsent()
    server = ControlServer(server_config, consent=consent)
    await server.start()

    async with httpx.AsyncClient(base_url=server.url, timeout=10) as http:
        request = asyncio.create_task(
            http.post(
                "/mcp/call",
                json={"tool": "write_note", "arguments": {"path": "a.md", "content": "x"}},
                headers={"Authorization": f"Bearer {server.token}"},
            )
        )
        for _ in range(400):
            if server.guard.pending():
                break
            await asyncio.sleep(0.01)
        assert len(server.guard.pending()) == 1

        await server.stop()
        response = await request

    body = response.json()
    assert body["isError"] is True
    assert json.loads(body["content"][0]["text"])["code"] == "approval_cancelled"
    assert not (vault_root / "a.md").exists()
    assert server.guard.pending() == []
    outcomes = [entry.details["outcome"] for entry in server.audit.get_recent() if entry.type == "approval_response"]
    assert outcomes == ["cancelled"]


@pytest.mark.asyncio
async def test_port_in_use_fails_start(make_config) -> None:
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen()
    try:
        port = blocker.getsockname()[1]
        server = ControlServer(make_config(port=port), consent=StaticConsent(False))

        with pytest.raises(OSError):
            await server.start()

        assert server.state is ServerState.STOPPED
        assert server.token is None
    finally:
        blocker.close()
