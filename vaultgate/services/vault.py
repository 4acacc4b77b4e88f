"""Filesystem note store."""

from __future__ import annotations

from pathlib import Path
import re
from typing import Any, Dict, List

import frontmatter

from ..models.note import NoteStat
from .config import AppConfig, get_config

INLINE_TAG_PATTERN = re.compile(r"(?:^|\s)(#[A-Za-z0-9_][\w/-]*)")
MARKDOWN_SUFFIX = ".md"


def sanitize_path(vault_root: Path, note_path: str) -> Path:
    """
    Resolve a vault-relative path.

    Raises ValueError if the resolved path escapes the vault root.
    """
    vault = vault_root.resolve()
    full_path = (vault / note_path).resolve()
    if full_path != vault and vault not in full_path.parents:
        raise ValueError(f"Path escapes vault root: {note_path}")
    return full_path


def _to_millis(timestamp: float) -> int:
    return int(timestamp * 1000)


class VaultService:
    """
    Reads and writes notes below a single vault root.

    Paths are expected to be validated by the caller; containment is checked
    here again independently.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or get_config()
        self.vault_root = self.config.vault_root
        self.vault_root.mkdir(parents=True, exist_ok=True)

    def resolve(self, note_path: str) -> Path:
        return sanitize_path(self.vault_root, note_path)

    def exists(self, note_path: str) -> bool:
        return self.resolve(note_path).exists()

    def read(self, note_path: str) -> str:
        absolute_path = self.resolve(note_path)
        if not absolute_path.is_file():
            raise FileNotFoundError(f"Note not found: {note_path}")
        return absolute_path.read_text(encoding="utf-8")

    def write(self, note_path: str, content: str) -> None:
        """Create or overwrite a note. Parent folders must already exist."""
        absolute_path = self.resolve(note_path)
        if absolute_path.is_dir():
            raise IsADirectoryError(f"Path is a folder: {note_path}")
        if not absolute_path.parent.is_dir():
            raise FileNotFoundError(f"Folder not found: {Path(note_path).parent.as_posix()}")
        absolute_path.write_text(content, encoding="utf-8")

    def create_folder(self, folder_path: str) -> None:
        absolute_path = self.resolve(folder_path)
        if absolute_path.is_file():
            raise FileExistsError(f"A note already exists at: {folder_path}")
        absolute_path.mkdir(exist_ok=True)

    def stat(self, note_path: str) -> NoteStat:
        absolute_path = self.resolve(note_path)
        if not absolute_path.exists():
            raise FileNotFoundError(f"Note not found: {note_path}")
        stat = absolute_path.stat()
        created = getattr(stat, "st_birthtime", stat.st_ctime)
        return NoteStat(size=stat.st_size, created=_to_millis(created), modified=_to_millis(stat.st_mtime))

    def read_metadata(self, note_path: str) -> Dict[str, Any]:
        """Frontmatter and tags (frontmatter ``tags`` plus inline ``#tags``)."""
        post = frontmatter.loads(self.read(note_path))
        metadata = dict(post.metadata or {})

        tags: List[str] = []
        declared = metadata.get("tags")
        if isinstance(declared, str):
            declared = [declared]
        if isinstance(declared, list):
            for tag in declared:
                if isinstance(tag, str) and tag.strip():
                    tags.append(tag if tag.startswith("#") else f"#{tag.strip()}")
        for match in INLINE_TAG_PATTERN.finditer(post.content or ""):
            tags.append(match.group(1))

        return {
            "frontmatter": metadata or None,
            "tags": list(dict.fromkeys(tags)),
        }

    def list_markdown_files(self) -> List[str]:
        """All notes, as sorted vault-relative POSIX paths. Hidden folders are skipped."""
        base = self.vault_root.resolve()
        results: List[str] = []
        for file_path in base.rglob(f"*{MARKDOWN_SUFFIX}"):
            relative = file_path.relative_to(base)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if not file_path.is_file():
                continue
            results.append(relative.as_posix())
        return sorted(results, key=str.lower)


__all__ = ["VaultService", "sanitize_path"]
