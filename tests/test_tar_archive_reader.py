"""Reader tests for listing, streaming, and guarded extraction."""

from __future__ import annotations

import io
import tarfile
import typing as typ

import pytest

from tar_archive_errors import (
    ArchiveIOError,
    ArchiveNotFoundError,
    UnsafeMemberError,
)
from tar_archive_members import collect_members
from tar_archive_merge import upsert
from tar_archive_reader import (
    extract_archive,
    iter_entries,
    iter_member_names,
    list_members,
)

if typ.TYPE_CHECKING:
    from pathlib import Path


def _build_raw_archive(archive: Path, members: list[tarfile.TarInfo]) -> None:
    """Write ``members`` verbatim, bypassing the archive helpers."""
    with tarfile.open(archive, "w") as tar:
        for member in members:
            payload = f"{member.name}\n".encode()
            if member.isreg():
                member.size = len(payload)
                tar.addfile(member, io.BytesIO(payload))
            else:
                tar.addfile(member)


def _member(
    name: str, kind: bytes = tarfile.REGTYPE, linkname: str = ""
) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = kind
    info.linkname = linkname
    info.mode = 0o644
    return info


def test_iter_entries_streams_content(workspace: Path, archive_path: Path) -> None:
    """Yield each entry with its header and readable content."""
    upsert(archive_path, collect_members(["LICENSE", "docs/guide"], base_dir=workspace))

    seen = []
    for entry in iter_entries(archive_path):
        payload = entry.content.read() if entry.content is not None else None
        seen.append((entry.name, entry.header.isdir(), payload))

    assert seen == [
        ("LICENSE", False, b"GNU GENERAL PUBLIC LICENSE\nVersion 3\n"),
        ("docs/guide", True, None),
        ("docs/guide/intro.md", False, b"# Introduction\n"),
    ]


def test_iter_member_names_is_lazy(archive_path: Path) -> None:
    """Defer opening the archive until the first name is requested."""
    names = iter_member_names(archive_path)

    with pytest.raises(ArchiveNotFoundError, match="archive not found"):
        next(names)


def test_list_members_of_missing_archive(archive_path: Path) -> None:
    """Report listing an absent archive as not found."""
    with pytest.raises(ArchiveNotFoundError):
        list_members(archive_path)


def test_list_members_of_truncated_archive(archive_path: Path) -> None:
    """Report unreadable containers as I/O failures."""
    archive_path.write_bytes(b"\x01" * 100)

    with pytest.raises(ArchiveIOError, match="cannot read archive"):
        list_members(archive_path)


def test_extract_creates_destination_and_parents(
    workspace: Path, archive_path: Path, tmp_path: Path
) -> None:
    """Create missing directories for nested members."""
    upsert(archive_path, collect_members(["docs/guide/intro.md"], base_dir=workspace))
    destination = tmp_path / "unpacked" / "deeper"

    extract_archive(archive_path, destination)

    extracted = destination / "docs" / "guide" / "intro.md"
    assert extracted.read_bytes() == b"# Introduction\n"


def test_extract_refuses_members_escaping_destination(
    archive_path: Path, tmp_path: Path
) -> None:
    """Stop at a member that would land outside the destination."""
    _build_raw_archive(archive_path, [_member("good.txt"), _member("../evil.txt")])
    destination = tmp_path / "unpacked"

    with pytest.raises(UnsafeMemberError, match="outside destination"):
        extract_archive(archive_path, destination)

    assert (destination / "good.txt").read_text(encoding="utf-8") == "good.txt\n"
    assert not (tmp_path / "evil.txt").exists()


def test_extract_refuses_links_escaping_destination(
    archive_path: Path, tmp_path: Path
) -> None:
    """Refuse symbolic links pointing outside the destination."""
    _build_raw_archive(
        archive_path, [_member("passwd", tarfile.SYMTYPE, "../../etc/passwd")]
    )

    with pytest.raises(UnsafeMemberError, match="link entry outside destination"):
        extract_archive(archive_path, tmp_path / "unpacked")


def test_extract_refuses_special_files(archive_path: Path, tmp_path: Path) -> None:
    """Refuse device and FIFO entries."""
    _build_raw_archive(archive_path, [_member("pipe", tarfile.FIFOTYPE)])

    with pytest.raises(UnsafeMemberError, match="unsupported tar entry type"):
        extract_archive(archive_path, tmp_path / "unpacked")


def test_extract_missing_archive(archive_path: Path, tmp_path: Path) -> None:
    """Report extracting an absent archive as not found."""
    with pytest.raises(ArchiveNotFoundError):
        extract_archive(archive_path, tmp_path / "unpacked")


def test_extract_applies_directory_attributes_last(
    archive_path: Path, tmp_path: Path
) -> None:
    """Write a read-only directory's contents before restoring its attributes."""
    directory = _member("locked", tarfile.DIRTYPE)
    directory.mode = 0o555
    directory.mtime = 1_000_000_000
    _build_raw_archive(archive_path, [directory, _member("locked/notes.txt")])
    destination = tmp_path / "unpacked"

    try:
        extract_archive(archive_path, destination)

        locked = destination / "locked"
        assert (locked / "notes.txt").read_text(encoding="utf-8") == (
            "locked/notes.txt\n"
        )
        assert locked.stat().st_mtime == 1_000_000_000
    finally:
        if (destination / "locked").exists():
            (destination / "locked").chmod(0o755)
