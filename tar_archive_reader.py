"""Streaming access to existing TAR containers.

The reader opens containers in ``tarfile``'s forward-only stream mode: each
entry's content is only readable until the next entry is requested, which is
all the merge step needs to copy members across and keeps memory flat for
large archives.
"""

from __future__ import annotations

import dataclasses as dc
import logging
import os
import sys
import tarfile
import typing as typ
from pathlib import Path

from tar_archive_errors import (
    ArchiveIOError,
    ArchiveNotFoundError,
    UnsafeMemberError,
)
from tar_archive_writer import ARCHIVE_ENCODING

if typ.TYPE_CHECKING:
    from tar_archive_paths import ArchivePath

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ArchiveEntry",
    "extract_archive",
    "iter_entries",
    "iter_member_names",
    "list_members",
]


@dc.dataclass(frozen=True)
class ArchiveEntry:
    """One member of a container: stored name, header, and content stream.

    ``content`` is ``None`` for entries without data (directories, links) and
    is only readable until the next entry is produced.
    """

    name: ArchivePath
    header: tarfile.TarInfo
    content: typ.IO[bytes] | None


def iter_entries(archive: Path) -> typ.Iterator[ArchiveEntry]:
    """Yield the entries of ``archive`` in stored order.

    The walk is lazy, single-pass and cannot be restarted; the container is
    closed once the generator is exhausted or discarded.

    Raises
    ------
    ArchiveNotFoundError
        When ``archive`` does not exist.
    ArchiveIOError
        When the container cannot be read or is malformed.
    """
    with _open_stream(archive) as tar:
        for member in _iter_members(tar, archive):
            content = tar.extractfile(member) if member.isreg() else None
            yield ArchiveEntry(member.name, member, content)


def iter_member_names(archive: Path) -> typ.Iterator[ArchivePath]:
    """Yield only the stored names of ``archive``'s entries."""
    for entry in iter_entries(archive):
        yield entry.name


def list_members(archive: Path) -> list[ArchivePath]:
    """Return the stored names of ``archive``'s entries in order.

    Examples
    --------
    >>> list_members(Path("release.tar"))  # doctest: +SKIP
    ['CHANGELOG.md', 'LICENSE']
    """
    return list(iter_member_names(archive))


def extract_archive(archive: Path, destination: Path) -> None:
    """Write every member of ``archive`` below ``destination``.

    Parent directories are created as needed. Directory permissions and
    timestamps are applied once every member is written, so a read-only
    directory does not lock out its own contents. Extraction stops at the
    first member that cannot be written; members extracted before it stay in
    place.

    Raises
    ------
    UnsafeMemberError
        When a member or link target would land outside ``destination``, or
        the member is a device or FIFO.
    """
    destination = Path(destination)
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        message = f"cannot create destination {os.fspath(destination)!r}: {error}"
        raise ArchiveIOError(message) from error
    safe_root = destination.resolve()

    extract_kwargs = {}
    if sys.version_info >= (3, 12):
        extract_kwargs["filter"] = "data"

    extracted: list[ArchivePath] = []
    with _open_stream(archive) as tar:
        members = _validated_members(tar, archive, safe_root, extracted)
        try:
            tar.extractall(destination, members=members, **extract_kwargs)
        except tarfile.TarError as error:
            message = f"refusing to extract {_last(extracted)}: {error}"
            raise UnsafeMemberError(message) from error
        except OSError as error:
            message = f"cannot extract {_last(extracted)}: {error}"
            raise ArchiveIOError(message) from error
    LOGGER.info(
        "extracted %d members from %s into %s", len(extracted), archive, destination
    )


def _open_stream(archive: Path) -> tarfile.TarFile:
    """Open ``archive`` for a forward-only read."""
    try:
        return tarfile.open(archive, mode="r|", encoding=ARCHIVE_ENCODING)
    except FileNotFoundError as error:
        message = f"archive not found at {os.fspath(archive)!s}"
        raise ArchiveNotFoundError(message) from error
    except (OSError, tarfile.TarError) as error:
        message = f"cannot read archive {os.fspath(archive)!r}: {error}"
        raise ArchiveIOError(message) from error


def _iter_members(
    tar: tarfile.TarFile, archive: Path
) -> typ.Iterator[tarfile.TarInfo]:
    """Yield ``tar``'s members, mapping read failures onto archive errors."""
    while True:
        try:
            member = tar.next()
        except (OSError, tarfile.TarError) as error:
            message = f"cannot read archive {os.fspath(archive)!r}: {error}"
            raise ArchiveIOError(message) from error
        if member is None:
            return
        yield member


def _validated_members(
    tar: tarfile.TarFile,
    archive: Path,
    safe_root: Path,
    extracted: list[ArchivePath],
) -> typ.Iterator[tarfile.TarInfo]:
    """Yield ``tar``'s members one at a time once each passes validation."""
    for member in _iter_members(tar, archive):
        _validate_member(member, safe_root)
        extracted.append(member.name)
        yield member


def _last(names: list[ArchivePath]) -> str:
    return repr(names[-1]) if names else "archive"


def _validate_member(member: tarfile.TarInfo, safe_root: Path) -> None:
    """Abort when ``member`` is unsupported or would escape ``safe_root``."""
    if not (member.isreg() or member.isdir() or member.issym() or member.islnk()):
        message = f"refusing to extract unsupported tar entry type: {member.name!r}"
        raise UnsafeMemberError(message)

    candidate_path = (safe_root / member.name).resolve()
    message = f"refusing to extract member outside destination: {member.name!r}"
    _assert_within_destination(candidate_path, safe_root, message)

    if member.islnk():
        target_path = safe_root.joinpath(member.linkname).resolve(strict=False)
    elif member.issym():
        target_path = _resolve_link_target(candidate_path, member.linkname)
    else:
        return
    message = f"refusing to extract link entry outside destination: {member.name!r}"
    _assert_within_destination(target_path, safe_root, message)


def _resolve_link_target(candidate_path: Path, linkname: str) -> Path:
    """Return the absolute path a link would resolve to when extracted."""
    link_target = Path(linkname)
    if link_target.is_absolute():
        return link_target.resolve()
    return (candidate_path.parent / link_target).resolve()


def _assert_within_destination(path: Path, safe_root: Path, message: str) -> None:
    try:
        path.relative_to(safe_root)
    except ValueError as error:
        raise UnsafeMemberError(message) from error
