#!/usr/bin/env -S uv run python
"""Command line interface for TAR and Brotli archives.

The ``tbr`` command takes an operation, an archive, and optionally the files to
add. The archive type is chosen from the archive's extension: ``.tar`` archives
support every operation, ``.br`` archives wrap a single file.

Examples
--------
Create or update an archive, then list and unpack it::

    tbr create release.tar LICENSE 'docs/*.md'
    tbr list release.tar
    tbr unpack release.tar -d /tmp/release

Defaults may be provided through the environment, for example
``TBR_DESTINATION=/tmp/release tbr unpack release.tar``.
"""

# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "cyclopts>=3,<4",
#     "Brotli>=1.1",
# ]
# ///
from __future__ import annotations

import enum
import glob
import logging
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter

from brotli_archive import BROTLI_SUFFIX, BrotliArchive
from tar_archive import TarArchive
from tar_archive_errors import ArchiveError, ArchiveUsageError

LOGGER = logging.getLogger(__name__)

TAR_SUFFIX: typ.Final[str] = ".tar"


class Mode(enum.Enum):
    """The possible ways to interact with an archive."""

    CONTENT = "archive content preview"
    EXTRACTION = "archive extraction"
    REMOVAL = "archive removal"
    UPDATE = "archive update"

    def __str__(self) -> str:
        """Return the human readable operation name."""
        return self.value


MODE_ALIASES: typ.Final[dict[str, Mode]] = {
    "compress": Mode.UPDATE,
    "create": Mode.UPDATE,
    "edit": Mode.UPDATE,
    "update": Mode.UPDATE,
    "content": Mode.CONTENT,
    "info": Mode.CONTENT,
    "list": Mode.CONTENT,
    "show": Mode.CONTENT,
    "delete": Mode.REMOVAL,
    "remove": Mode.REMOVAL,
    "decompress": Mode.EXTRACTION,
    "extract": Mode.EXTRACTION,
    "uncompress": Mode.EXTRACTION,
    "unpack": Mode.EXTRACTION,
}


class ArchiveHandler(typ.Protocol):
    """Protocol describing the per-archive-type command handlers."""

    def __call__(
        self,
        mode: Mode,
        archive: Path,
        patterns: typ.Sequence[str],
        *,
        destination: Path,
        base_dir: Path,
    ) -> None:
        """Perform ``mode`` on ``archive``."""
        ...


app = App(
    name="tbr",
    help="Interact with TAR and Brotli archives.",
    config=cyclopts.config.Env("TBR_", command=False),
)


def parse_mode(text: str) -> Mode:
    """Map an operation verb onto its :class:`Mode`.

    Examples
    --------
    >>> parse_mode("unpack")
    <Mode.EXTRACTION: 'archive extraction'>
    """
    try:
        return MODE_ALIASES[text]
    except KeyError as error:
        message = f"{text!r} is not supported, yet"
        raise ArchiveUsageError(message) from error


def resolve_files(patterns: typ.Iterable[str], base_dir: Path) -> list[str]:
    """Expand glob ``patterns`` relative to ``base_dir``.

    Matches of one pattern are sorted; the order of the patterns is kept.
    Hidden files match wildcards too. A pattern without matches contributes
    nothing.
    """
    paths: list[str] = []
    for pattern in patterns:
        matches = glob.glob(pattern, root_dir=base_dir, include_hidden=True)
        paths.extend(sorted(matches))
    return paths


def _tar_command(
    mode: Mode,
    archive: Path,
    patterns: typ.Sequence[str],
    *,
    destination: Path,
    base_dir: Path,
) -> None:
    tar = TarArchive(archive, base_dir=base_dir)
    if mode is Mode.CONTENT:
        for name in tar.list():
            print(name)
    elif mode is Mode.EXTRACTION:
        tar.extract(destination)
    elif mode is Mode.REMOVAL:
        tar.remove()
    else:
        tar.add_files(resolve_files(patterns, base_dir))


def _brotli_command(
    mode: Mode,
    archive: Path,
    patterns: typ.Sequence[str],
    *,
    destination: Path,
    base_dir: Path,
) -> None:
    single = BrotliArchive(archive)
    if mode is Mode.CONTENT:
        message = "Brotli archives hold a single stream and cannot be listed."
        raise ArchiveUsageError(message)
    if mode is Mode.EXTRACTION:
        single.decompress(destination)
    elif mode is Mode.REMOVAL:
        single.remove()
    else:
        files = resolve_files(patterns, base_dir)
        if len(files) != 1:
            message = f"a Brotli archive holds exactly one file, got {len(files)}"
            raise ArchiveUsageError(message)
        single.compress(base_dir / files[0])


ARCHIVE_HANDLERS: typ.Final[dict[str, ArchiveHandler]] = {
    TAR_SUFFIX: _tar_command,
    BROTLI_SUFFIX: _brotli_command,
}


def run_archive_command(
    mode: Mode,
    archive: Path,
    patterns: typ.Sequence[str] = (),
    *,
    destination: Path | None = None,
    base_dir: Path | None = None,
) -> None:
    """Dispatch ``mode`` to the handler for ``archive``'s type.

    Parameters
    ----------
    mode : Mode
        Operation to perform.
    archive : Path
        Archive to operate on; its extension selects the archive type.
    patterns : Sequence[str]
        Glob patterns naming the files to add in :attr:`Mode.UPDATE`.
    destination : Path, optional
        Extraction directory. Defaults to the current working directory.
    base_dir : Path, optional
        Directory patterns and member paths are resolved against. Defaults to
        the current working directory.

    Raises
    ------
    ArchiveUsageError
        When the archive lacks an extension or its type is unsupported.
    """
    archive = Path(archive)
    if not archive.suffix:
        message = "Please specify the archive to work on with its extension."
        raise ArchiveUsageError(message)

    handler = ARCHIVE_HANDLERS.get(archive.suffix)
    if handler is None:
        message = "This archive type is not supported."
        raise ArchiveUsageError(message)

    LOGGER.debug("%s of %s", mode, archive)
    handler(
        mode,
        archive,
        patterns,
        destination=Path() if destination is None else Path(destination),
        base_dir=Path() if base_dir is None else Path(base_dir),
    )


@app.default
def main(
    mode: str,
    archive: Path,
    *files: str,
    destination: typ.Annotated[
        Path,
        Parameter(name=["--destination", "-d"], env_var="TBR_DESTINATION"),
    ] = Path(),
    base_dir: typ.Annotated[
        Path,
        Parameter(env_var="TBR_BASE_DIR"),
    ] = Path(),
    verbose: typ.Annotated[
        bool,
        Parameter(env_var="TBR_VERBOSE"),
    ] = False,
) -> None:
    """Interact with the given archive.

    Parameters
    ----------
    mode : str
        The operation: ``create``/``update``/``compress``/``edit``,
        ``list``/``show``/``info``/``content``,
        ``extract``/``unpack``/``decompress``/``uncompress``, or
        ``remove``/``delete``.
    archive : Path
        The archive to interact with, including its extension.
    files : str
        Glob patterns naming the file(s) to add to the archive.
    destination : Path, optional
        The directory to unpack the archive's files into; defaults to the
        current working directory. Also read from ``TBR_DESTINATION``.
    base_dir : Path, optional
        Directory files are resolved against; defaults to the current working
        directory. Also read from ``TBR_BASE_DIR``.
    verbose : bool, optional
        Log every classification and copy decision. Also read from
        ``TBR_VERBOSE``.

    Raises
    ------
    SystemExit
        With the ``sysexits`` code matching the failure.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    try:
        run_archive_command(
            parse_mode(mode),
            archive,
            files,
            destination=destination,
            base_dir=base_dir,
        )
    except ArchiveError as error:
        LOGGER.error("tbr %s %s failed: %s", mode, archive, error)
        raise SystemExit(error.exit_code) from error


if __name__ == "__main__":
    app()
