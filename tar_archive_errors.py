"""Error taxonomy shared by the archive helpers.

Every failure raised by the archive modules derives from :class:`ArchiveError`
and carries the ``sysexits`` code the command line front end should exit with.
Lower layers wrap ``OSError`` and :mod:`tarfile` failures into these classes so
callers only have to handle one hierarchy.
"""

from __future__ import annotations

import typing as typ

__all__ = [
    "EX_DATAERR",
    "EX_IOERR",
    "EX_NOINPUT",
    "EX_SOFTWARE",
    "EX_UNAVAILABLE",
    "EX_USAGE",
    "ArchiveEncodingError",
    "ArchiveError",
    "ArchiveIOError",
    "ArchiveNotFoundError",
    "ArchiveUsageError",
    "CompressorError",
    "MemberCycleError",
    "ScratchSpaceError",
    "UnsafeMemberError",
]

EX_USAGE: typ.Final[int] = 64
EX_DATAERR: typ.Final[int] = 65
EX_NOINPUT: typ.Final[int] = 66
EX_UNAVAILABLE: typ.Final[int] = 69
EX_SOFTWARE: typ.Final[int] = 70
EX_IOERR: typ.Final[int] = 74


class ArchiveError(Exception):
    """Base class for archive failures."""

    exit_code: typ.ClassVar[int] = EX_SOFTWARE


class ArchiveNotFoundError(ArchiveError):
    """The archive a read or removal operates on does not exist."""

    exit_code: typ.ClassVar[int] = EX_NOINPUT


class ArchiveIOError(ArchiveError):
    """Reading, writing, or renaming on the filesystem failed."""

    exit_code: typ.ClassVar[int] = EX_IOERR


class ScratchSpaceError(ArchiveIOError):
    """The scratch directory for a rewrite could not be allocated."""

    exit_code: typ.ClassVar[int] = EX_UNAVAILABLE


class MemberCycleError(ArchiveIOError):
    """A directory was reached again while walking its own contents."""


class UnsafeMemberError(ArchiveIOError):
    """A member would be extracted outside the destination directory."""

    exit_code: typ.ClassVar[int] = EX_DATAERR


class CompressorError(ArchiveError):
    """A Brotli stream is corrupt, truncated, or could not be produced."""

    exit_code: typ.ClassVar[int] = EX_DATAERR


class ArchiveEncodingError(ArchiveError):
    """A path cannot be represented in the archive's text encoding."""

    exit_code: typ.ClassVar[int] = EX_DATAERR


class ArchiveUsageError(ArchiveError):
    """The caller asked for something the tool does not support."""

    exit_code: typ.ClassVar[int] = EX_USAGE
