import os
from pathlib import Path

import pytest

from vaultgate.services.vault import VaultService, sanitize_path


@pytest.fixture
def service(config) -> VaultService:
    return VaultService(config=config)


def test_sanitize_path_blocks_escape(vault_root: Path) -> None:
    with pytest.raises(ValueError):
        sanitize_path(vault_root, "../outside.md")


def test_sanitize_path_blocks_sibling_with_shared_prefix(vault_root: Path) -> None:
    with pytest.raises(ValueError):
        sanitize_path(vault_root, f"../{vault_root.name}-evil/note.md")


@pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
def test_sanitize_path_blocks_symlink_escape(vault_root: Path, tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (vault_root / "link").symlink_to(outside, target_is_directory=True)

    with pytest.raises(ValueError):
        sanitize_path(vault_root, "link/secret.md")


def test_write_and_read_note_round_trip(service: VaultService) -> None:
    service.write("note.md", "Hello World")

    assert service.exists("note.md")
    assert service.read("note.md") == "Hello World"


def test_read_missing_note_raises(service: VaultService) -> None:
    with pytest.raises(FileNotFoundError):
        service.read("missing.md")


def test_write_requires_existing_parent(service: VaultService) -> None:
    with pytest.raises(FileNotFoundError):
        service.write("Projects/a.md", "x")

    service.create_folder("Projects")
    service.write("Projects/a.md", "x")

    assert service.read("Projects/a.md") == "x"


def test_create_folder_refuses_existing_note(service: VaultService) -> None:
    service.write("Projects", "not a folder")

    with pytest.raises(FileExistsError):
        service.create_folder("Projects")


def test_stat_reports_size_and_millisecond_times(service: VaultService) -> None:
    service.write("note.md", "12345")

    stat = service.stat("note.md")

    assert stat.size == 5
    assert stat.modified > 10**12


def test_read_metadata_collects_frontmatter_and_tags(service: VaultService) -> None:
    service.write(
        "note.md",
        "---\nstatus: draft\ntags: [planning, q3]\n---\n# Title\nWork on #roadmap and #team/infra.\n",
    )

    metadata = service.read_metadata("note.md")

    assert metadata["frontmatter"]["status"] == "draft"
    assert metadata["tags"] == ["#planning", "#q3", "#roadmap", "#team/infra"]


def test_read_metadata_without_frontmatter(service: VaultService) -> None:
    service.write("plain.md", "just text")

    metadata = service.read_metadata("plain.md")

    assert metadata == {"frontmatter": None, "tags": []}


def test_list_markdown_files_skips_hidden_folders(service: VaultService, vault_root: Path) -> None:
    (vault_root / "Projects").mkdir()
    (vault_root / ".obsidian").mkdir()
    (vault_root / "Projects" / "b.md").write_text("b")
    (vault_root / "a.md").write_text("a")
    (vault_root / ".obsidian" / "workspace.md").write_text("hidden")
    (vault_root / "image.png").write_bytes(b"\x89PNG")

    assert service.list_markdown_files() == ["a.md", "Projects/b.md"]
