"""Collect the members an ``add`` call writes into an archive.

The requested paths are a mix of regular files, directories and symbolic
links. :func:`collect_members` flattens them into a :class:`PendingMemberSet`
whose order decides which entry wins when the same name is reachable twice:

1. the files of a batch (directories included, since TAR stores directory
   entries) in first-seen order,
2. the contents of each directory of the batch, recursively,
3. the targets of the batch's symbolic links, recursively.

Symbolic links are never stored as links. When the link text names an existing
path relative to the base directory, that *target path* is requested in place
of the link; otherwise the link is skipped.

Example
-------
>>> from pathlib import Path
>>> pending = collect_members(["README.md", "docs"], base_dir=Path("."))
>>> [member.name for member in pending]  # doctest: +SKIP
['README.md', 'docs', 'docs/index.md']
"""

from __future__ import annotations

import dataclasses as dc
import logging
import os
import typing as typ
from pathlib import Path

from tar_archive_errors import ArchiveIOError, MemberCycleError
from tar_archive_paths import (
    ArchivePath,
    PathKind,
    archive_path,
    classify_path,
    read_link_target,
    resolve_source,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["PendingMember", "PendingMemberSet", "collect_members"]

DirectoryIdentity = tuple[int, int]


@dc.dataclass(frozen=True)
class PendingMember:
    """A member queued for writing: its archive name and where to read it."""

    name: ArchivePath
    source: Path


@dc.dataclass(frozen=True)
class PendingMemberSet:
    """Ordered, duplicate-free members written by one ``add`` call."""

    members: tuple[PendingMember, ...] = ()

    @property
    def names(self) -> frozenset[ArchivePath]:
        """Return the archive names that supersede existing entries."""
        return frozenset(member.name for member in self.members)

    def __iter__(self) -> typ.Iterator[PendingMember]:
        """Iterate over the members in write order."""
        return iter(self.members)

    def __len__(self) -> int:
        """Return the number of pending members."""
        return len(self.members)


@dc.dataclass(frozen=True)
class _Batch:
    requests: tuple[str, ...]
    ancestors: frozenset[DirectoryIdentity] = frozenset()


@dc.dataclass(frozen=True)
class _DirectoryVisit:
    request: str
    source: Path
    ancestors: frozenset[DirectoryIdentity]


_WorkItem = _Batch | _DirectoryVisit


def collect_members(
    paths: typ.Iterable[str | os.PathLike[str]],
    *,
    base_dir: Path | None = None,
) -> PendingMemberSet:
    """Resolve ``paths`` into the ordered members an ``add`` call writes.

    Parameters
    ----------
    paths : Iterable[str | os.PathLike[str]]
        Requested input paths. Relative paths are resolved against
        ``base_dir`` and keep their relative spelling as archive names.
    base_dir : Path, optional
        Directory relative requests and link targets are resolved against.
        Defaults to the current working directory.

    Returns
    -------
    PendingMemberSet
        The members to write. Absent paths, broken links and special files
        are skipped. A name requested twice keeps its first position.

    Raises
    ------
    ArchiveIOError
        When a directory cannot be read or a link cannot be resolved.
    MemberCycleError
        When a directory turns up again inside its own contents.
    """
    base = Path() if base_dir is None else Path(base_dir)
    collected: list[PendingMember] = []
    seen: set[ArchivePath] = set()
    worklist: list[_WorkItem] = [_Batch(tuple(os.fspath(path) for path in paths))]

    while worklist:
        item = worklist.pop()
        if isinstance(item, _DirectoryVisit):
            children = _expand_directory(item)
            if children is not None:
                worklist.append(children)
            continue

        followups = _partition_batch(item, base, seen, collected)
        worklist.extend(reversed(followups))

    LOGGER.debug("collected %d archive members", len(collected))
    return PendingMemberSet(tuple(collected))


def _partition_batch(
    batch: _Batch,
    base: Path,
    seen: set[ArchivePath],
    collected: list[PendingMember],
) -> list[_WorkItem]:
    """Emit the batch's files and return the follow-up work in visit order."""
    directories: list[_WorkItem] = []
    link_targets: list[str] = []

    for request in batch.requests:
        name = archive_path(request)
        if name in seen:
            LOGGER.debug("skipping already collected path %s", request)
            continue
        seen.add(name)

        source = resolve_source(request, base)
        kind = classify_path(source)
        if kind is PathKind.DIRECTORY:
            collected.append(PendingMember(name, source))
            directories.append(_DirectoryVisit(request, source, batch.ancestors))
        elif kind is PathKind.FILE:
            collected.append(PendingMember(name, source))
        elif kind is PathKind.SYMLINK:
            target = _dereference(source, base)
            if target is not None:
                link_targets.append(target)
        else:
            LOGGER.debug("skipping %s path %s", kind.value, request)

    followups = directories
    if link_targets:
        followups.append(_Batch(tuple(link_targets)))
    return followups


def _expand_directory(visit: _DirectoryVisit) -> _Batch | None:
    """Return the batch of ``visit``'s children, or ``None`` when it is empty."""
    identity = _directory_identity(visit.source)
    if identity in visit.ancestors:
        message = f"directory {visit.request!r} contains itself"
        raise MemberCycleError(message)

    children = _read_children(visit.source)
    if not children:
        return None

    requests = tuple(os.path.join(visit.request, child) for child in children)
    return _Batch(requests, visit.ancestors | {identity})


def _dereference(link: Path, base: Path) -> str | None:
    """Return the link's target request, or ``None`` when the target is absent."""
    target = read_link_target(link)
    if not os.path.exists(resolve_source(target, base)):
        LOGGER.debug("skipping broken symbolic link %s -> %s", link, target)
        return None
    return target


def _read_children(directory: Path) -> list[str]:
    """Return the names inside ``directory`` in sorted order."""
    try:
        return sorted(os.listdir(directory))
    except OSError as error:
        message = f"cannot read directory {os.fspath(directory)!r}: {error}"
        raise ArchiveIOError(message) from error


def _directory_identity(directory: Path) -> DirectoryIdentity:
    """Return the ``(st_dev, st_ino)`` pair identifying ``directory``."""
    try:
        status = os.stat(directory)
    except OSError as error:
        message = f"cannot inspect directory {os.fspath(directory)!r}: {error}"
        raise ArchiveIOError(message) from error
    return status.st_dev, status.st_ino
