"""Path classification helpers for archive member collection.

The collector asks two questions of every requested path: what kind of
filesystem object sits there, and which name it would carry inside the
archive. Both answers live here so the collection algorithm stays free of
``stat`` plumbing.
"""

from __future__ import annotations

import enum
import os
import stat
from pathlib import Path, PurePosixPath

from tar_archive_errors import ArchiveEncodingError, ArchiveIOError

ArchivePath = str

__all__ = [
    "ArchivePath",
    "PathKind",
    "archive_path",
    "classify_path",
    "member_key",
    "read_link_target",
    "resolve_source",
]


class PathKind(enum.Enum):
    """Kinds of filesystem objects the collector distinguishes."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    ABSENT = "absent"
    OTHER = "other"


def classify_path(path: Path) -> PathKind:
    """Return the kind of ``path`` without following a final symbolic link.

    Examples
    --------
    >>> classify_path(Path("/definitely/not/here"))
    <PathKind.ABSENT: 'absent'>
    """
    try:
        mode = os.lstat(path).st_mode
    except (FileNotFoundError, NotADirectoryError):
        return PathKind.ABSENT
    except OSError as error:
        message = f"cannot inspect {os.fspath(path)!r}: {error.strerror or error}"
        raise ArchiveIOError(message) from error

    if stat.S_ISLNK(mode):
        return PathKind.SYMLINK
    if stat.S_ISDIR(mode):
        return PathKind.DIRECTORY
    if stat.S_ISREG(mode):
        return PathKind.FILE
    return PathKind.OTHER


def archive_path(path: str | os.PathLike[str]) -> ArchivePath:
    """Normalise a requested path to the name it carries inside an archive.

    Separators become ``/``, redundant separators and ``.`` components are
    dropped, and leading slashes are stripped the way TAR stores absolute
    names. ``..`` components are kept verbatim.

    Raises
    ------
    ArchiveEncodingError
        When the name cannot be encoded as UTF-8, which is the only encoding
        the archive writer emits.

    Examples
    --------
    >>> archive_path("./docs//guide.md")
    'docs/guide.md'
    >>> archive_path("/etc/hosts")
    'etc/hosts'
    """
    name = member_key(os.fspath(path).replace(os.sep, "/"))
    try:
        name.encode("utf-8")
    except UnicodeEncodeError as error:
        message = f"path {name!r} cannot be represented as UTF-8"
        raise ArchiveEncodingError(message) from error
    return name


def member_key(name: str) -> ArchivePath:
    """Return the comparison key for a name already stored in an archive."""
    return PurePosixPath(name).as_posix().lstrip("/") or "."


def resolve_source(request: str | os.PathLike[str], base_dir: Path) -> Path:
    """Return the filesystem location of ``request`` relative to ``base_dir``."""
    return Path(base_dir) / request


def read_link_target(link: Path) -> str:
    """Return the raw text stored in the symbolic link at ``link``."""
    try:
        return os.readlink(link)
    except OSError as error:
        message = f"cannot resolve symbolic link {os.fspath(link)!r}: {error}"
        raise ArchiveIOError(message) from error
