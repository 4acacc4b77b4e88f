"""Path sandboxing for tool arguments.

Every path an agent supplies is checked here before any collaborator touches
the filesystem. Validation is pure string arithmetic against a fixed root: no
I/O happens, so results must not be cached across mutating operations.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
import posixpath
import re
from pathlib import Path
from typing import Any, Optional

ALLOWED_EXTENSIONS = frozenset({".md", ".txt", ".json", ".yaml", ".yml", ".csv"})
DEFAULT_EXTENSION = ".md"

DANGEROUS_PATTERNS = (
    re.compile(r"\.\."),  # parent traversal
    re.compile(r"^~/"),  # home directory
    re.compile(r"^\$"),  # environment variable
    re.compile(r"%2e%2e", re.IGNORECASE),  # URL-encoded ..
    re.compile(r"%252e%252e", re.IGNORECASE),  # double URL-encoded ..
    re.compile(r"\x00"),  # NUL byte
)
DRIVE_LETTER = re.compile(r"^[A-Za-z]:")


@dataclass(frozen=True)
class PathValidationResult:
    """Outcome of validating one untrusted path string."""

    valid: bool
    sanitized_path: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, sanitized_path: str) -> "PathValidationResult":
        return cls(valid=True, sanitized_path=sanitized_path)

    @classmethod
    def fail(cls, error: str) -> "PathValidationResult":
        return cls(valid=False, error=error)


class PathValidator:
    """Validates caller-supplied paths against a fixed vault root."""

    def __init__(self, root: str | Path) -> None:
        self._root = os.path.normpath(os.path.abspath(str(root)))
        self._root_with_sep = self._root if self._root.endswith(os.sep) else self._root + os.sep

    @property
    def root(self) -> Path:
        return Path(self._root)

    def validate(self, requested_path: Any) -> PathValidationResult:
        """Validate a path that must name something strictly inside the root."""
        result = self._check(requested_path)
        if result.valid and result.sanitized_path == ".":
            return PathValidationResult.fail("Path must not denote the vault root")
        return result

    def validate_with_extension(
        self, requested_path: Any, require_extension: bool = True
    ) -> PathValidationResult:
        """Validate, then enforce the extension allow-list (appending .md when absent)."""
        result = self.validate(requested_path)
        if not result.valid:
            return result

        sanitized = result.sanitized_path or ""
        extension = posixpath.splitext(sanitized)[1].lower()
        if not extension:
            if require_extension:
                return PathValidationResult.ok(sanitized + DEFAULT_EXTENSION)
            return result
        if extension not in ALLOWED_EXTENSIONS:
            return PathValidationResult.fail(f'Extension "{extension}" is not allowed')
        return result

    def validate_folder(self, folder_path: Any) -> PathValidationResult:
        """Validate a folder; empty input denotes the vault root."""
        if folder_path is None or folder_path == "":
            return PathValidationResult.ok("")

        result = self._check(folder_path)
        if not result.valid:
            return result
        sanitized = (result.sanitized_path or "").rstrip("/")
        return PathValidationResult.ok("" if sanitized == "." else sanitized)

    def resolve_safe(self, relative_path: Any) -> Optional[Path]:
        """Return the absolute location for a valid path, or None."""
        result = self.validate(relative_path)
        if not result.valid or not result.sanitized_path:
            return None
        return Path(self._root) / result.sanitized_path

    def is_within_root(self, absolute_path: str | Path) -> bool:
        resolved = os.path.normpath(os.path.abspath(str(absolute_path)))
        return resolved == self._root or resolved.startswith(self._root_with_sep)

    def _check(self, requested_path: Any) -> PathValidationResult:
        if not isinstance(requested_path, str) or not requested_path:
            return PathValidationResult.fail("Path is required")
        if not requested_path.strip():
            return PathValidationResult.fail("Path cannot be empty")

        for pattern in DANGEROUS_PATTERNS:
            if pattern.search(requested_path):
                return PathValidationResult.fail("Path contains dangerous pattern")

        candidate = requested_path.replace("\\", "/")
        if candidate.startswith("/") or DRIVE_LETTER.match(candidate):
            return PathValidationResult.fail("Absolute paths are not allowed")

        normalized = posixpath.normpath(candidate)

        # Compare against root + separator so that /vault never admits /vault-evil.
        absolute = os.path.normpath(os.path.join(self._root, *normalized.split("/")))
        if absolute != self._root and not absolute.startswith(self._root_with_sep):
            return PathValidationResult.fail("Path escapes vault directory")

        for part in normalized.split("/"):
            if part.startswith(".") and part != ".":
                return PathValidationResult.fail("Hidden files/folders are not allowed")

        return PathValidationResult.ok(normalized)


__all__ = [
    "PathValidator",
    "PathValidationResult",
    "ALLOWED_EXTENSIONS",
    "DEFAULT_EXTENSION",
]
