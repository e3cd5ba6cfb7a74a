"""Upsert members into a TAR container through a staged rewrite.

TAR has no way to replace a member in place, so every ``add`` builds a complete
new container in a private scratch directory and swaps it over the original
with :func:`os.replace`. The rename is the only commit point: any failure
before it leaves the original archive byte-for-byte untouched.

The rewritten container holds the pending members first, in collection order,
followed by every old entry whose name is not superseded, in its original
relative order and with its original header.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
import typing as typ
from pathlib import Path

from tar_archive_errors import ArchiveIOError, ScratchSpaceError
from tar_archive_paths import member_key
from tar_archive_reader import iter_entries
from tar_archive_writer import ArchiveWriter

if typ.TYPE_CHECKING:
    from tar_archive_members import PendingMemberSet
    from tar_archive_paths import ArchivePath

LOGGER = logging.getLogger(__name__)

__all__ = ["SCRATCH_PREFIX", "create", "update", "upsert"]

SCRATCH_PREFIX: typ.Final[str] = ".tbr-"


def upsert(
    archive: Path,
    pending: PendingMemberSet,
    *,
    scratch_dir: Path | None = None,
) -> None:
    """Insert or replace ``pending`` in ``archive``, creating it when absent.

    Parameters
    ----------
    archive : Path
        Container to update.
    pending : PendingMemberSet
        Members to write, as returned by
        :func:`tar_archive_members.collect_members`.
    scratch_dir : Path, optional
        Directory that receives the private staging area. Defaults to the
        archive's own directory so the final rename never crosses
        filesystems.
    """
    archive = Path(archive)
    if archive.exists():
        update(archive, pending, scratch_dir=scratch_dir)
    else:
        create(archive, pending, scratch_dir=scratch_dir)


def create(
    archive: Path,
    pending: PendingMemberSet,
    *,
    scratch_dir: Path | None = None,
) -> None:
    """Write a new container at ``archive`` holding exactly ``pending``."""
    archive = Path(archive)
    if not archive.parent.is_dir():
        message = f"cannot create archive {os.fspath(archive)!r}: no such directory"
        raise ArchiveIOError(message)

    with _scratch_directory(archive, scratch_dir) as scratch:
        staged = scratch / archive.name
        with ArchiveWriter.create(staged) as writer:
            _append_pending(writer, pending)
        _install(staged, archive)
    LOGGER.info("created %s with %d members", archive, len(pending))


def update(
    archive: Path,
    pending: PendingMemberSet,
    *,
    scratch_dir: Path | None = None,
) -> None:
    """Rewrite ``archive`` with ``pending`` in front of the surviving entries."""
    archive = Path(archive)
    superseded = pending.names

    with _scratch_directory(archive, scratch_dir) as scratch:
        staged = scratch / archive.name
        with ArchiveWriter.create(staged) as writer:
            _append_pending(writer, pending)
            carried = _carry_over(writer, archive, superseded)
        _copy_mode(archive, staged)
        _install(staged, archive)
    LOGGER.info(
        "updated %s: %d members written, %d carried over",
        archive,
        len(pending),
        carried,
    )


def _append_pending(writer: ArchiveWriter, pending: PendingMemberSet) -> None:
    for member in pending:
        writer.append_path(member.source, member.name)


def _carry_over(
    writer: ArchiveWriter, archive: Path, superseded: frozenset[ArchivePath]
) -> int:
    """Copy every entry of ``archive`` not named in ``superseded``."""
    carried = 0
    with contextlib.closing(iter_entries(archive)) as entries:
        for entry in entries:
            if member_key(entry.name) in superseded:
                LOGGER.debug("dropping superseded member %s", entry.name)
                continue
            writer.append_entry(entry.header, entry.content)
            carried += 1
    return carried


@contextlib.contextmanager
def _scratch_directory(archive: Path, scratch_dir: Path | None) -> typ.Iterator[Path]:
    """Provide a private directory that is removed once the rewrite ends."""
    parent = archive.parent if scratch_dir is None else Path(scratch_dir)
    try:
        scratch = tempfile.TemporaryDirectory(prefix=SCRATCH_PREFIX, dir=parent)
    except OSError as error:
        message = f"cannot allocate scratch space in {os.fspath(parent)!r}: {error}"
        raise ScratchSpaceError(message) from error
    with scratch as directory:
        yield Path(directory)


def _copy_mode(archive: Path, staged: Path) -> None:
    """Carry the original archive's permission bits over to the rewrite."""
    try:
        shutil.copymode(archive, staged)
    except OSError as error:
        message = f"cannot copy permissions of {os.fspath(archive)!r}: {error}"
        raise ArchiveIOError(message) from error


def _install(staged: Path, archive: Path) -> None:
    """Atomically replace ``archive`` with ``staged``."""
    try:
        os.replace(staged, archive)
    except OSError as error:
        message = f"cannot install rewritten archive at {os.fspath(archive)!r}: {error}"
        raise ArchiveIOError(message) from error
    LOGGER.debug("installed %s", archive)
