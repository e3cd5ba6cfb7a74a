"""Facade for interacting with TAR archives on the filesystem.

:class:`TarArchive` is the public surface: it checks presence, lists, extracts,
removes, and upserts members by delegating to the focused helper modules.
Callers that need the lower-level pieces can import them from here as well.

Example
-------
>>> from pathlib import Path
>>> tar = TarArchive(Path("/tmp/release.tar"))
>>> tar.add_files(["LICENSE", "docs"])  # doctest: +SKIP
>>> tar.list()  # doctest: +SKIP
['LICENSE', 'docs', 'docs/index.md']
"""

from __future__ import annotations

import dataclasses as dc
import logging
import os
import typing as typ
from pathlib import Path

from tar_archive_errors import ArchiveIOError, ArchiveNotFoundError
from tar_archive_members import PendingMember, PendingMemberSet, collect_members
from tar_archive_merge import upsert
from tar_archive_paths import ArchivePath
from tar_archive_reader import (
    ArchiveEntry,
    extract_archive,
    iter_entries,
    list_members,
)

LOGGER = logging.getLogger(__name__)

ArchiveListing = list[ArchivePath]

__all__ = [
    "ArchiveEntry",
    "ArchiveListing",
    "ArchivePath",
    "PendingMember",
    "PendingMemberSet",
    "TarArchive",
]


@dc.dataclass(frozen=True)
class TarArchive:
    """A TAR archive at ``path``; constructing one touches nothing on disk.

    Parameters
    ----------
    path : Path
        Location of the archive file.
    base_dir : Path, optional
        Directory that relative member paths passed to :meth:`add_files` are
        resolved against. Defaults to the current working directory.
    scratch_dir : Path, optional
        Where rewrites are staged. Defaults to the archive's directory; a
        different directory must live on the same filesystem.
    """

    path: Path
    base_dir: Path = dc.field(default_factory=Path)
    scratch_dir: Path | None = None

    def __post_init__(self) -> None:
        """Coerce path-like arguments to :class:`~pathlib.Path`."""
        object.__setattr__(self, "path", Path(self.path))
        object.__setattr__(self, "base_dir", Path(self.base_dir))
        if self.scratch_dir is not None:
            object.__setattr__(self, "scratch_dir", Path(self.scratch_dir))

    def exists(self) -> bool:
        """Return whether the archive file exists."""
        return self.path.exists()

    def add_files(self, paths: typ.Iterable[str | os.PathLike[str]]) -> None:
        """Add or replace the members named by ``paths``.

        Directories are added with their contents, symbolic links are replaced
        by their targets, and absent paths are skipped. The archive is created
        when it does not exist yet.
        """
        pending = collect_members(paths, base_dir=self.base_dir)
        upsert(self.path, pending, scratch_dir=self.scratch_dir)

    def entries(self) -> typ.Iterator[ArchiveEntry]:
        """Yield the archive's entries lazily in stored order."""
        return iter_entries(self.path)

    def list(self) -> ArchiveListing:
        """Return the names of the archive's members in stored order."""
        return list_members(self.path)

    def extract(self, destination: str | os.PathLike[str]) -> None:
        """Extract every member below ``destination``."""
        extract_archive(self.path, Path(destination))

    def remove(self) -> None:
        """Delete the archive file."""
        try:
            self.path.unlink()
        except FileNotFoundError as error:
            message = f"archive not found at {self.path!s}"
            raise ArchiveNotFoundError(message) from error
        except OSError as error:
            message = f"cannot remove archive {os.fspath(self.path)!r}: {error}"
            raise ArchiveIOError(message) from error
        LOGGER.info("removed %s", self.path)
