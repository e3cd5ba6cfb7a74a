"""Shared fixtures for archive tests."""

from __future__ import annotations

import sys
import typing as typ
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

if typ.TYPE_CHECKING:
    from tar_archive import TarArchive

WORKSPACE_FILES: typ.Final[dict[str, bytes]] = {
    "LICENSE": b"GNU GENERAL PUBLIC LICENSE\nVersion 3\n",
    "CITATION.cff": b"cff-version: 1.2.0\ntitle: tbr\n",
    "Cargo.lock": b"# generated\nversion = 3\n",
    "Cargo.toml": b'[package]\nname = "tbr"\n',
    ".renovaterc.json5": b'{ extends: ["config:base"] }\n',
    "docs/index.md": b"# Index\n",
    "docs/guide/intro.md": b"# Introduction\n",
    "blob.bin": bytes(range(256)) * 8,
}


@pytest.fixture
def workspace_files() -> dict[str, bytes]:
    """Return the relative paths and contents of the workspace fixture."""
    return dict(WORKSPACE_FILES)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Provision a source tree that archive members are collected from."""
    root = tmp_path / "workspace"
    for relative, content in WORKSPACE_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


@pytest.fixture
def archive_path(tmp_path: Path) -> Path:
    """Return a not-yet-existing archive location outside the workspace."""
    output = tmp_path / "output"
    output.mkdir()
    return output / "archive.tar"


@pytest.fixture
def tar_archive(workspace: Path, archive_path: Path) -> TarArchive:
    """Provide a facade whose members resolve against ``workspace``."""
    from tar_archive import TarArchive

    return TarArchive(archive_path, base_dir=workspace)
