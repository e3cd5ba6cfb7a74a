"""Single-file Brotli archives.

A Brotli archive wraps exactly one byte stream; it has no members and never
participates in the TAR upsert logic. Compression always uses the best quality
setting. Both directions stream the data through :mod:`brotli` in fixed-size
chunks, so large files never have to fit in memory.

Example
-------
>>> from pathlib import Path
>>> archive = BrotliArchive(Path("/tmp/notes.txt.br"))
>>> archive.compress(Path("notes.txt"))  # doctest: +SKIP
>>> archive.decompress(Path("/tmp/unpacked"))  # doctest: +SKIP
PosixPath('/tmp/unpacked/notes.txt')
"""

from __future__ import annotations

import dataclasses as dc
import functools
import logging
import os
import typing as typ
from pathlib import Path

import brotli

from tar_archive_errors import (
    ArchiveIOError,
    ArchiveNotFoundError,
    CompressorError,
)

LOGGER = logging.getLogger(__name__)

__all__ = [
    "BROTLI_QUALITY",
    "BROTLI_SUFFIX",
    "BrotliArchive",
]

BROTLI_SUFFIX: typ.Final[str] = ".br"
BROTLI_QUALITY: typ.Final[int] = 11
BROTLI_MODE: typ.Final[int] = brotli.MODE_GENERIC
CHUNK_SIZE: typ.Final[int] = 64 * 1024


@dc.dataclass(frozen=True)
class BrotliArchive:
    """A Brotli-compressed file at ``path``."""

    path: Path

    def __post_init__(self) -> None:
        """Coerce ``path`` to :class:`~pathlib.Path`."""
        object.__setattr__(self, "path", Path(self.path))

    @property
    def inner_name(self) -> str:
        """Return the name of the file the archive decompresses to."""
        return self.path.name.removesuffix(BROTLI_SUFFIX)

    def exists(self) -> bool:
        """Return whether the archive file exists."""
        return self.path.exists()

    def compress(self, source: str | os.PathLike[str]) -> None:
        """Compress ``source`` into this archive, replacing any previous one.

        Raises
        ------
        ArchiveNotFoundError
            When ``source`` is not a regular file.
        ArchiveIOError
            When reading ``source`` or writing the archive fails.
        """
        source = Path(source)
        if not source.is_file():
            message = f"cannot compress {os.fspath(source)!r}: not a regular file"
            raise ArchiveNotFoundError(message)

        compressor = brotli.Compressor(mode=BROTLI_MODE, quality=BROTLI_QUALITY)
        try:
            with source.open("rb") as reader, self.path.open("wb") as writer:
                for chunk in _chunks(reader):
                    writer.write(compressor.process(chunk))
                writer.write(compressor.finish())
        except OSError as error:
            LOGGER.error("failed to compress %s: %s", source, error)
            message = f"cannot compress {os.fspath(source)!r}: {error}"
            raise ArchiveIOError(message) from error
        except brotli.error as error:
            message = f"brotli failed to compress {os.fspath(source)!r}: {error}"
            raise CompressorError(message) from error
        LOGGER.info("%s -> %s", source, self.path)

    def decompress(self, destination: str | os.PathLike[str]) -> Path:
        """Decompress this archive into ``destination`` and return the new file.

        The new file is named after the archive without its ``.br`` suffix.

        Raises
        ------
        ArchiveNotFoundError
            When the archive does not exist.
        CompressorError
            When the archive is not a complete Brotli stream.
        """
        if not self.exists():
            message = f"archive not found at {self.path!s}"
            raise ArchiveNotFoundError(message)

        destination = Path(destination)
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            message = f"cannot create destination {os.fspath(destination)!r}: {error}"
            raise ArchiveIOError(message) from error

        target = destination / self.inner_name
        decompressor = brotli.Decompressor()
        try:
            with self.path.open("rb") as reader, target.open("wb") as writer:
                for chunk in _chunks(reader):
                    writer.write(decompressor.process(chunk))
        except OSError as error:
            message = f"cannot decompress {os.fspath(self.path)!r}: {error}"
            raise ArchiveIOError(message) from error
        except brotli.error as error:
            message = f"{os.fspath(self.path)!r} is not a valid Brotli stream: {error}"
            raise CompressorError(message) from error

        if not decompressor.is_finished():
            message = f"{os.fspath(self.path)!r} ends in the middle of a Brotli stream"
            raise CompressorError(message)
        LOGGER.info("%s -> %s", self.path.name, target)
        return target

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


def _chunks(reader: typ.BinaryIO) -> typ.Iterator[bytes]:
    return iter(functools.partial(reader.read, CHUNK_SIZE), b"")
