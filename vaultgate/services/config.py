"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import logging
import os
from pathlib import Path
import shutil
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_VAULT_ROOT = Path.cwd() / "vault"
DEFAULT_PORT = 3333
SEARCH_COMMAND = "qmd"

SearchMode = Literal["hybrid", "semantic", "keyword"]
TaskFormat = Literal["obsidian-tasks", "dataview", "basic"]
ConsentMode = Literal["terminal", "deny", "allow"]


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    vault_root: Path = Field(..., description="Directory the server is sandboxed to")
    vault_name: str = Field(default="", description="Display name of the vault")
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535, description="Loopback port (0 = ephemeral)")

    require_approval: bool = Field(default=True, description="Gate mutating tools behind user consent")
    approval_timeout_seconds: float = Field(default=30.0, gt=0)
    consent_mode: ConsentMode = Field(default="terminal", description="How approval prompts are surfaced")

    audit_logging: bool = Field(default=True, description="Record tool calls in the in-memory audit log")
    audit_max_entries: int = Field(default=1000, gt=0)
    debug_mode: bool = Field(default=False, description="Echo audit entries to the log")

    rate_limit_requests: int = Field(default=100, gt=0)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    max_body_bytes: int = Field(default=10 * 1024 * 1024, gt=0)

    search_enabled: bool = Field(default=True)
    search_path: Optional[Path] = Field(
        default=None, description="Resolved search executable (None when not installed)"
    )
    search_mode: SearchMode = Field(default="hybrid")
    max_search_results: int = Field(default=10, gt=0)

    task_format: TaskFormat = Field(default="obsidian-tasks")

    @field_validator("vault_root", mode="before")
    @classmethod
    def _normalize_vault_root(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("VAULT_ROOT is required")
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("search_path", mode="before")
    @classmethod
    def _normalize_search_path(cls, value: str | Path | None) -> Optional[Path]:
        if value is None or value == "":
            return None
        return Path(value).expanduser()

    @model_validator(mode="before")
    @classmethod
    def _default_vault_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("vault_name") and data.get("vault_root"):
            data = dict(data)
            data["vault_name"] = Path(data["vault_root"]).expanduser().resolve().name
        return data


def resolve_search_executable(configured: str | Path | None = None) -> Optional[Path]:
    """
    Locate the search executable once, so collaborators receive an explicit path.

    Order: explicitly configured path, then ``PATH``, then the usual install
    locations. Returns None when nothing is found.
    """
    if configured:
        candidate = Path(configured).expanduser()
        if candidate.is_file():
            return candidate
        logger.warning("Configured search executable not found: %s", candidate)

    found = shutil.which(SEARCH_COMMAND)
    if found:
        return Path(found)

    home = Path.home()
    for candidate in (
        Path("/usr/local/bin") / SEARCH_COMMAND,
        Path("/opt/homebrew/bin") / SEARCH_COMMAND,
        home / ".local" / "bin" / SEARCH_COMMAND,
        home / ".bun" / "bin" / SEARCH_COMMAND,
    ):
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return candidate
    return None


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


def _read_flag(key: str, default: str) -> bool:
    return (_read_env(key, default) or default).lower() not in {"0", "false", "no", "off"}


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    config = AppConfig(
        vault_root=_read_env("VAULT_ROOT", str(DEFAULT_VAULT_ROOT)),
        vault_name=_read_env("VAULT_NAME", ""),
        port=_read_env("VAULTGATE_PORT", str(DEFAULT_PORT)),
        require_approval=_read_flag("REQUIRE_APPROVAL", "true"),
        approval_timeout_seconds=_read_env("APPROVAL_TIMEOUT_SECONDS", "30"),
        consent_mode=_read_env("CONSENT_MODE", "terminal"),
        audit_logging=_read_flag("AUDIT_LOGGING", "true"),
        audit_max_entries=_read_env("AUDIT_MAX_ENTRIES", "1000"),
        debug_mode=_read_flag("DEBUG_MODE", "false"),
        rate_limit_requests=_read_env("RATE_LIMIT_REQUESTS", "100"),
        rate_limit_window_seconds=_read_env("RATE_LIMIT_WINDOW_SECONDS", "60"),
        max_body_bytes=_read_env("MAX_BODY_BYTES", str(10 * 1024 * 1024)),
        search_enabled=_read_flag("SEARCH_ENABLED", "true"),
        search_path=resolve_search_executable(_read_env("SEARCH_PATH")),
        search_mode=_read_env("SEARCH_MODE", "hybrid"),
        max_search_results=_read_env("MAX_SEARCH_RESULTS", "10"),
        task_format=_read_env("TASK_FORMAT", "obsidian-tasks"),
    )
    # Ensure the vault directory exists for downstream services.
    config.vault_root.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "resolve_search_executable",
    "DEFAULT_VAULT_ROOT",
    "DEFAULT_PORT",
]
