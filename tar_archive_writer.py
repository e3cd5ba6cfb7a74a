"""Write members into a freshly created TAR container.

:class:`ArchiveWriter` is a thin wrapper over :class:`tarfile.TarFile` that
maps write failures onto the archive error taxonomy and guarantees the
container is finalised. ``tarfile`` skips the end-of-archive blocks when its
context manager exits with an exception, so the writer closes the stream itself
on every exit path and a failed write still leaves a well-formed container
behind.
"""

from __future__ import annotations

import logging
import os
import tarfile
import typing as typ
from pathlib import Path

from tar_archive_errors import ArchiveEncodingError, ArchiveIOError

if typ.TYPE_CHECKING:
    from types import TracebackType

    from tar_archive_paths import ArchivePath

LOGGER = logging.getLogger(__name__)

__all__ = ["ARCHIVE_ENCODING", "ArchiveWriter"]

ARCHIVE_ENCODING: typ.Final[str] = "utf-8"


class ArchiveWriter:
    """Append members to a new TAR container at ``path``."""

    def __init__(self, tar: tarfile.TarFile, path: Path) -> None:
        """Wrap an open ``tar`` stream writing to ``path``."""
        self._tar = tar
        self._finalized = False
        self.path = path
        self.count = 0

    @classmethod
    def create(cls, path: Path) -> ArchiveWriter:
        """Create an empty container at ``path``, replacing any file there."""
        path = Path(path)
        try:
            tar = tarfile.open(
                path,
                mode="w",
                format=tarfile.PAX_FORMAT,
                encoding=ARCHIVE_ENCODING,
            )
        except OSError as error:
            message = f"cannot create archive {os.fspath(path)!r}: {error}"
            raise ArchiveIOError(message) from error
        return cls(tar, path)

    def __enter__(self) -> ArchiveWriter:
        """Return the writer for use as a context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Finalise the container, leaving any in-flight error to propagate."""
        if exc_type is None:
            self.finalize()
            return
        try:
            self.finalize()
        except ArchiveIOError:
            LOGGER.exception("failed to finalise %s after an earlier error", self.path)

    def append_path(self, source: Path, name: ArchivePath) -> None:
        """Append the file or directory entry at ``source`` under ``name``.

        Directories are written as a single directory entry; their contents are
        appended by the caller. Regular files always carry their own bytes,
        even when another member is a hard link to the same inode.
        """
        try:
            header = self._tar.gettarinfo(os.fspath(source), arcname=name)
            if header is None:
                message = f"cannot append {os.fspath(source)!r}: unsupported file type"
                raise ArchiveIOError(message)
            if header.islnk():
                _store_as_regular_file(header, source)
            if header.isreg():
                with open(source, "rb") as content:
                    self._tar.addfile(header, content)
            else:
                self._tar.addfile(header)
        except UnicodeError as error:
            message = f"cannot encode archive member {name!r}: {error}"
            raise ArchiveEncodingError(message) from error
        except (OSError, tarfile.TarError) as error:
            LOGGER.error("failed to append %s to %s: %s", source, self.path, error)
            message = f"cannot append {os.fspath(source)!r} to archive: {error}"
            raise ArchiveIOError(message) from error
        self.count += 1

    def append_entry(
        self, header: tarfile.TarInfo, content: typ.IO[bytes] | None
    ) -> None:
        """Append an entry read from another container, header and bytes as-is."""
        try:
            self._tar.addfile(header, content)
        except UnicodeError as error:
            message = f"cannot encode archive member {header.name!r}: {error}"
            raise ArchiveEncodingError(message) from error
        except (OSError, tarfile.TarError) as error:
            LOGGER.error(
                "failed to copy %s into %s: %s", header.name, self.path, error
            )
            message = f"cannot copy archive member {header.name!r}: {error}"
            raise ArchiveIOError(message) from error
        self.count += 1

    def finalize(self) -> None:
        """Write the end-of-archive marker and close the container."""
        if self._finalized:
            return
        self._finalized = True
        try:
            self._tar.close()
        except OSError as error:
            message = f"cannot finalise archive {os.fspath(self.path)!r}: {error}"
            raise ArchiveIOError(message) from error


def _store_as_regular_file(header: tarfile.TarInfo, source: Path) -> None:
    """Turn a hard link record produced by ``gettarinfo`` into a file entry.

    A link record only names an earlier member. Replacing that member in a
    later upsert would silently change what the link extracts to.
    """
    header.type = tarfile.REGTYPE
    header.linkname = ""
    header.size = os.stat(source).st_size
