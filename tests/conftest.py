from pathlib import Path
from typing import Any, Callable

import pytest

from vaultgate.services.config import AppConfig


@pytest.fixture
def vault_root(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def make_config(vault_root: Path) -> Callable[..., AppConfig]:
    """Build an AppConfig rooted at the temporary vault; keyword overrides win."""

    def factory(**overrides: Any) -> AppConfig:
        values: dict = {"vault_root": vault_root, "vault_name": "Test Vault", "consent_mode": "deny"}
        values.update(overrides)
        return AppConfig(**values)

    return factory


@pytest.fixture
def config(make_config: Callable[..., AppConfig]) -> AppConfig:
    return make_config()
