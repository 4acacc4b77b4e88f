import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vaultgate.services.errors import SearchError, SearchUnavailableError
from vaultgate.services.search import (
    INSTALL_INSTRUCTIONS,
    SearchClient,
    parse_search_output,
    parse_text_output,
)


def fake_process(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> MagicMock:
    process = MagicMock()
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.wait = AsyncMock(return_value=returncode)
    process.returncode = returncode
    return process


@pytest.fixture
def qmd(tmp_path: Path) -> Path:
    binary = tmp_path / "bin" / "qmd"
    binary.parent.mkdir()
    binary.write_text("#!/bin/sh\n")
    return binary


@pytest.fixture
def client(make_config, qmd: Path) -> SearchClient:
    return SearchClient(make_config(search_path=qmd))


@pytest.mark.asyncio
async def test_search_builds_argument_vector(client: SearchClient, qmd: Path, vault_root: Path) -> None:
    output = json.dumps([{"path": "Projects/a.md", "score": 0.9, "snippet": "alpha"}]).encode()
    exec_mock = AsyncMock(return_value=fake_process(output))

    with patch("vaultgate.services.search.asyncio.create_subprocess_exec", exec_mock):
        results = await client.search("find; rm -rf /", mode="semantic", limit=5, folder="Projects")

    args, kwargs = exec_mock.call_args
    assert args == (
        str(qmd),
        "search",
        "--semantic",
        "--limit",
        "5",
        "--path",
        "Projects",
        "--json",
        "find; rm -rf /",
    )
    assert kwargs["cwd"] == str(vault_root.resolve())
    assert results[0].path == "Projects/a.md"
    assert results[0].title == "a"


@pytest.mark.asyncio
async def test_search_uses_configured_defaults(client: SearchClient) -> None:
    exec_mock = AsyncMock(return_value=fake_process(b"[]"))

    with patch("vaultgate.services.search.asyncio.create_subprocess_exec", exec_mock):
        assert await client.search("query") == []

    args, _ = exec_mock.call_args
    assert "--semantic" not in args and "--keyword" not in args
    assert args[args.index("--limit") + 1] == "10"


@pytest.mark.asyncio
async def test_search_failure_raises(client: SearchClient) -> None:
    exec_mock = AsyncMock(return_value=fake_process(stderr=b"index missing", returncode=2))

    with patch("vaultgate.services.search.asyncio.create_subprocess_exec", exec_mock):
        with pytest.raises(SearchError, match="index missing"):
            await client.search("query")


@pytest.mark.asyncio
async def test_search_timeout_kills_process(client: SearchClient) -> None:
    process = fake_process()

    async def never_finishes():
        await asyncio.Event().wait()

    process.communicate = never_finishes
    exec_mock = AsyncMock(return_value=process)

    with patch("vaultgate.services.search.asyncio.create_subprocess_exec", exec_mock), patch(
        "vaultgate.services.search.SEARCH_TIMEOUT_SECONDS", 0.01
    ):
        with pytest.raises(SearchError, match="timed out"):
            await client.search("query")

    process.kill.assert_called_once()


@pytest.mark.asyncio
async def test_search_without_executable_reports_instructions(make_config) -> None:
    client = SearchClient(make_config(search_path=None))

    with pytest.raises(SearchUnavailableError) as excinfo:
        await client.search("query")

    assert excinfo.value.as_payload()["instructions"] == INSTALL_INSTRUCTIONS


@pytest.mark.asyncio
async def test_search_disabled_in_settings(make_config, qmd: Path) -> None:
    client = SearchClient(make_config(search_path=qmd, search_enabled=False))

    with pytest.raises(SearchUnavailableError):
        await client.search("query")


@pytest.mark.asyncio
async def test_is_available_probes_version(client: SearchClient) -> None:
    exec_mock = AsyncMock(return_value=fake_process(b"qmd 1.2.3\n"))

    with patch("vaultgate.services.search.asyncio.create_subprocess_exec", exec_mock):
        assert await client.is_available() is True
        assert await client.get_version() == "qmd 1.2.3"

    assert exec_mock.call_args.args[1:] == ("--version",)


@pytest.mark.asyncio
async def test_is_available_false_when_exec_fails(client: SearchClient) -> None:
    exec_mock = AsyncMock(side_effect=PermissionError("not executable"))

    with patch("vaultgate.services.search.asyncio.create_subprocess_exec", exec_mock):
        assert await client.is_available() is False


@pytest.mark.asyncio
async def test_is_available_false_without_executable(make_config) -> None:
    client = SearchClient(make_config(search_path=None))

    with patch("vaultgate.services.search.resolve_search_executable", return_value=None):
        assert await client.is_available() is False


@pytest.mark.asyncio
async def test_index_runs_in_vault(client: SearchClient) -> None:
    exec_mock = AsyncMock(return_value=fake_process())

    with patch("vaultgate.services.search.asyncio.create_subprocess_exec", exec_mock):
        await client.index()

    assert exec_mock.call_args.args[1:] == ("index",)


def test_update_settings_re_resolves_executable(make_config, qmd: Path) -> None:
    client = SearchClient(make_config(search_path=None))

    with patch("vaultgate.services.search.resolve_search_executable", return_value=qmd) as resolver:
        client.update_settings(make_config(search_path=qmd))

    resolver.assert_called_once_with(qmd)
    assert client.executable == qmd


def test_parse_search_output_normalizes_alternate_keys() -> None:
    output = json.dumps(
        [{"file": "notes/b.md", "similarity": 0.5, "content": "beta", "highlights": ["be"]}]
    )

    (result,) = parse_search_output(output)

    assert result.path == "notes/b.md"
    assert result.score == 0.5
    assert result.snippet == "beta"
    assert result.title == "b"
    assert result.highlights == ["be"]


def test_parse_search_output_falls_back_to_text() -> None:
    results = parse_search_output("notes/a.md: first hit\nnoise line\nb.md\n")

    assert [(r.path, r.snippet, r.score) for r in results] == [
        ("notes/a.md", "first hit", 1.0),
        ("b.md", "", 1.0),
    ]


def test_parse_text_output_ignores_blank_lines() -> None:
    assert parse_text_output("\n\n") == []
