"""HTTP surface tests: request gate, bootstrap routes and tool routes."""

import json
from typing import Iterator
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from vaultgate.api.main import create_app
from vaultgate.api.middleware.request_gate import origin_allowed
from vaultgate.services.auth import UNAUTHORIZED_HINT, SessionAuth
from vaultgate.services.rate_limit import RateLimiter
from vaultgate.services.tool_executor import ToolExecutor


@pytest.fixture
def auth() -> SessionAuth:
    session = SessionAuth()
    session.rotate()
    return session


@pytest.fixture
def executor(config) -> ToolExecutor:
    return ToolExecutor(config)


@pytest.fixture
def app(config, auth, executor):
    return create_app(config, auth=auth, executor=executor, rate_limiter=RateLimiter(100, 60))


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def headers(auth) -> dict:
    return {"Authorization": f"Bearer {auth.token}"}


def call(client: TestClient, headers: dict, tool: str, arguments: dict) -> httpx.Response:
    return client.post("/mcp/call", json={"tool": tool, "arguments": arguments}, headers=headers)


def asgi_client(app, host: str) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app, client=(host, 51234))
    return httpx.AsyncClient(transport=transport, base_url="http://test")


class TestPublicRoutes:
    def test_health_needs_no_token(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "vault": "Test Vault"}

    def test_health_accepts_post(self, client: TestClient) -> None:
        assert client.post("/health").status_code == 200

    @pytest.mark.asyncio
    async def test_token_is_served_to_loopback(self, app, auth: SessionAuth) -> None:
        async with asgi_client(app, "127.0.0.1") as http:
            response = await http.get("/auth/token")

        assert response.status_code == 200
        assert response.json() == {"token": auth.token}

    @pytest.mark.asyncio
    async def test_token_is_served_to_mapped_loopback(self, app, auth: SessionAuth) -> None:
        async with asgi_client(app, "::ffff:127.0.0.1") as http:
            response = await http.get("/auth/token")

        assert response.json() == {"token": auth.token}

    @pytest.mark.asyncio
    async def test_token_is_refused_to_remote_clients(self, app) -> None:
        async with asgi_client(app, "192.168.1.20") as http:
            response = await http.get("/auth/token")

        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden"}

    @pytest.mark.asyncio
    async def test_token_unavailable_when_revoked(self, app, auth: SessionAuth) -> None:
        auth.revoke()

        async with asgi_client(app, "127.0.0.1") as http:
            response = await http.get("/auth/token")

        assert response.status_code == 503


class TestAuthentication:
    def test_missing_token_is_rejected_without_audit(self, client: TestClient, executor: ToolExecutor) -> None:
        response = client.post("/mcp/call", json={"tool": "read_note", "arguments": {"path": "a.md"}})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "hint": UNAUTHORIZED_HINT}
        assert len(executor.audit) == 0

    @pytest.mark.parametrize(
        "authorization",
        ["Bearer wrong-token", "Basic dXNlcjpwYXNz", "Bearer", "token-without-scheme"],
    )
    def test_bad_authorization_headers(self, client: TestClient, authorization: str) -> None:
        response = client.get("/mcp/tools", headers={"Authorization": authorization})

        assert response.status_code == 401

    def test_unknown_route_requires_auth_before_404(self, client: TestClient, headers: dict) -> None:
        assert client.get("/nowhere").status_code == 401

        response = client.get("/nowhere", headers=headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_token_rotation_invalidates_old_token(
        self, client: TestClient, auth: SessionAuth, headers: dict
    ) -> None:
        auth.rotate()

        assert client.get("/mcp/tools", headers=headers).status_code == 401
        fresh = {"Authorization": f"Bearer {auth.token}"}
        assert client.get("/mcp/tools", headers=fresh).status_code == 200


class TestCors:
    @pytest.mark.parametrize(
        "origin",
        ["http://localhost", "http://localhost:5173", "https://127.0.0.1:8443", "app://obsidian.md"],
    )
    def test_local_origins_are_reflected(self, client: TestClient, origin: str) -> None:
        response = client.get("/health", headers={"Origin": origin})

        assert response.headers["access-control-allow-origin"] == origin
        assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"

    @pytest.mark.parametrize("origin", ["https://evil.example", "http://localhost.evil.example"])
    def test_foreign_origins_are_not_reflected(self, client: TestClient, origin: str) -> None:
        response = client.get("/health", headers={"Origin": origin})

        assert response.status_code == 200
        assert "access-control-allow-origin" not in response.headers

    def test_preflight_short_circuits(self, client: TestClient) -> None:
        response = client.options("/mcp/call", headers={"Origin": "http://localhost:3000"})

        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert response.headers["access-control-allow-headers"] == "Content-Type, Authorization"

    def test_origin_matching_respects_boundaries(self) -> None:
        assert origin_allowed("http://127.0.0.1:3333")
        assert not origin_allowed("http://127.0.0.10")
        assert not origin_allowed(None)

    def test_cors_headers_do_not_bypass_auth(self, client: TestClient) -> None:
        response = client.get("/mcp/tools", headers={"Origin": "http://localhost"})

        assert response.status_code == 401
        assert response.headers["access-control-allow-origin"] == "http://localhost"


class TestGateOrdering:
    @pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH"])
    def test_other_methods_are_rejected_before_auth(self, client: TestClient, method: str) -> None:
        response = client.request(method, "/mcp/call")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    def test_rate_limit_applies_to_all_routes(self, client: TestClient) -> None:
        for _ in range(100):
            assert client.get("/health").status_code == 200

        response = client.get("/health")

        assert response.status_code == 429
        assert response.json() == {"error": "Too many requests"}
        assert int(response.headers["retry-after"]) >= 1

    def test_rate_limit_precedes_auth(self, config, auth, executor) -> None:
        app = create_app(config, auth=auth, executor=executor, rate_limiter=RateLimiter(1, 60))
        client = TestClient(app)

        assert client.get("/mcp/tools").status_code == 401
        assert client.get("/mcp/tools").status_code == 429


class TestToolRoutes:
    def test_list_tools(self, client: TestClient, headers: dict) -> None:
        response = client.get("/mcp/tools", headers=headers)

        assert response.status_code == 200
        names = [tool["name"] for tool in response.json()["tools"]]
        assert names == [
            "read_note",
            "write_note",
            "search_vault",
            "list_notes",
            "list_tasks",
            "add_task",
            "complete_task",
        ]

    def test_call_returns_tool_result(self, client: TestClient, headers: dict, vault_root) -> None:
        (vault_root / "a.md").write_text("hello")

        response = call(client, headers, "read_note", {"path": "a.md"})

        assert response.status_code == 200
        body = response.json()
        assert "isError" not in body
        assert body["content"][0]["type"] == "text"
        assert json.loads(body["content"][0]["text"]) == {"content": "hello"}

    def test_application_errors_are_200_results(self, client: TestClient, headers: dict) -> None:
        response = call(client, headers, "read_note", {"path": "missing.md"})

        assert response.status_code == 200
        assert response.json()["isError"] is True

    def test_call_records_client_address(
        self, client: TestClient, headers: dict, executor: ToolExecutor
    ) -> None:
        call(client, headers, "list_notes", {})

        (entry,) = executor.audit.get_recent()
        assert entry.client_id == "testclient"

    @pytest.mark.parametrize(
        "body, message",
        [
            (b"{not json", "Invalid JSON"),
            (b"[1, 2]", "Request body must be a JSON object"),
            (b'{"arguments": {}}', "Missing or invalid 'tool'"),
            (b'{"tool": 7}', "Missing or invalid 'tool'"),
        ],
    )
    def test_malformed_bodies(self, client: TestClient, headers: dict, body: bytes, message: str) -> None:
        response = client.post(
            "/mcp/call", content=body, headers={**headers, "Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_oversized_declared_body(self, make_config, auth) -> None:
        config = make_config(max_body_bytes=64)
        client = TestClient(create_app(config, auth=auth, executor=ToolExecutor(config)))

        response = client.post(
            "/mcp/call",
            content=json.dumps({"tool": "write_note", "arguments": {"path": "a.md", "content": "x" * 200}}),
            headers={"Authorization": f"Bearer {auth.token}"},
        )

        assert response.status_code == 413
        assert response.headers["connection"] == "close"
        assert response.json()["error"] == "Payload too large"

    def test_oversized_streamed_body(self, make_config, auth) -> None:
        config = make_config(max_body_bytes=64)
        client = TestClient(create_app(config, auth=auth, executor=ToolExecutor(config)))

        def chunks() -> Iterator[bytes]:
            for _ in range(10):
                yield b"x" * 16

        response = client.post("/mcp/call", content=chunks(), headers={"Authorization": f"Bearer {auth.token}"})

        assert response.status_code == 413

    def test_unexpected_failure_is_500(self, client: TestClient, headers: dict, executor: ToolExecutor) -> None:
        executor.execute = AsyncMock(side_effect=RuntimeError("boom"))

        response = call(client, headers, "read_note", {"path": "a.md"})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "message": "boom"}
