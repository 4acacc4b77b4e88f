"""Semantic search via the external ``qmd`` executable.

Commands are always executed as an argument vector, never through a shell,
with the vault root as working directory.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
import logging
from pathlib import Path, PurePosixPath
import re
from typing import Any, Dict, List, Optional, Sequence

from ..models.search import SearchResult
from .config import AppConfig, SearchMode, get_config, resolve_search_executable
from .errors import SearchError, SearchUnavailableError

logger = logging.getLogger(__name__)

SEARCH_TIMEOUT_SECONDS = 30.0
VERSION_TIMEOUT_SECONDS = 5.0
INDEX_TIMEOUT_SECONDS = 300.0

INSTALL_INSTRUCTIONS = """QMD is not installed. Install it with:

bun install -g https://github.com/tobi/qmd

Or visit: https://github.com/tobi/qmd"""

TEXT_RESULT_PATTERN = re.compile(r"^(.+\.md):?\s*(.*)$")


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _title_from_path(path: str) -> str:
    if not path:
        return ""
    name = PurePosixPath(path).name
    return name[: -len(".md")] if name.endswith(".md") else name


def _normalize_hit(raw: Dict[str, Any]) -> SearchResult:
    path = str(raw.get("path") or raw.get("file") or "")
    highlights = raw.get("highlights") or []
    return SearchResult(
        path=path,
        score=float(raw.get("score") or raw.get("similarity") or 0),
        snippet=str(raw.get("snippet") or raw.get("content") or ""),
        title=str(raw.get("title") or _title_from_path(path)),
        highlights=[str(item) for item in highlights] if isinstance(highlights, list) else [],
    )


def parse_text_output(stdout: str) -> List[SearchResult]:
    """Fallback parser for ``<file>.md: snippet`` lines."""
    results: List[SearchResult] = []
    for line in stdout.strip().splitlines():
        if not line.strip():
            continue
        match = TEXT_RESULT_PATTERN.match(line)
        if match:
            path = match.group(1)
            results.append(
                SearchResult(path=path, score=1.0, snippet=match.group(2) or "", title=_title_from_path(path))
            )
    return results


def parse_search_output(stdout: str) -> List[SearchResult]:
    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError:
        return parse_text_output(stdout)
    if isinstance(payload, dict):
        payload = payload.get("results", [])
    if not isinstance(payload, list):
        return parse_text_output(stdout)
    return [_normalize_hit(item) for item in payload if isinstance(item, dict)]


class SearchClient:
    """Thin async wrapper around the search executable."""

    def __init__(self, config: AppConfig | None = None, executable: Optional[Path] = None) -> None:
        self.config = config or get_config()
        self.vault_root = self.config.vault_root
        self.executable: Optional[Path] = executable or self.config.search_path

    def initialize(self) -> Optional[Path]:
        """(Re-)resolve the executable location."""
        self.executable = resolve_search_executable(self.config.search_path)
        if self.executable is None:
            logger.info("Search executable not found; search_vault will report install instructions")
        else:
            logger.info("Using search executable", extra={"executable": str(self.executable)})
        return self.executable

    async def is_available(self) -> bool:
        if self.executable is None:
            self.initialize()
        if self.executable is None:
            return False
        try:
            result = await self._run(["--version"], timeout=VERSION_TIMEOUT_SECONDS)
        except SearchError:
            return False
        return result.ok

    async def get_version(self) -> Optional[str]:
        if self.executable is None:
            return None
        try:
            result = await self._run(["--version"], timeout=VERSION_TIMEOUT_SECONDS)
        except SearchError:
            return None
        return result.stdout.strip() if result.ok else None

    async def index(self) -> None:
        self._require_executable()
        result = await self._run(["index"], timeout=INDEX_TIMEOUT_SECONDS)
        if not result.ok:
            raise SearchError(f"Failed to index vault: {result.stderr.strip() or 'exit code %d' % result.returncode}")

    async def search(
        self,
        query: str,
        mode: Optional[SearchMode] = None,
        limit: Optional[int] = None,
        folder: Optional[str] = None,
    ) -> List[SearchResult]:
        if not self.config.search_enabled:
            raise SearchUnavailableError("Search is disabled in settings", self.install_instructions())
        self._require_executable()

        mode = mode or self.config.search_mode
        limit = limit or self.config.max_search_results

        args: List[str] = ["search"]
        if mode == "semantic":
            args.append("--semantic")
        elif mode == "keyword":
            args.append("--keyword")
        args.extend(["--limit", str(limit)])
        if folder:
            args.extend(["--path", folder])
        args.append("--json")
        args.append(query)

        result = await self._run(args, timeout=SEARCH_TIMEOUT_SECONDS)
        if not result.ok:
            raise SearchError(f"Search failed: {result.stderr.strip() or 'exit code %d' % result.returncode}")
        return parse_search_output(result.stdout)

    def install_instructions(self) -> str:
        return INSTALL_INSTRUCTIONS

    def update_settings(self, config: AppConfig) -> None:
        previous = self.config.search_path
        self.config = config
        self.vault_root = config.vault_root
        if config.search_path != previous or self.executable is None:
            self.initialize()

    def _require_executable(self) -> Path:
        if self.executable is None:
            raise SearchUnavailableError("QMD is not available", self.install_instructions())
        return self.executable

    async def _run(self, args: Sequence[str], *, timeout: float) -> CommandResult:
        executable = self._require_executable()
        try:
            process = await asyncio.create_subprocess_exec(
                str(executable),
                *args,
                cwd=str(self.vault_root),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise SearchUnavailableError(f"Cannot run search executable: {exc}", self.install_instructions()) from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            logger.warning("Search command timed out", extra={"args": list(args), "timeout": timeout})
            raise SearchError(f"Search command timed out after {timeout:g}s") from exc

        return CommandResult(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )


__all__ = ["SearchClient", "CommandResult", "parse_search_output", "parse_text_output", "INSTALL_INSTRUCTIONS"]
