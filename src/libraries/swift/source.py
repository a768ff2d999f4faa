"""Byte sources that can be sliced into segments and streamed."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Protocol, Union, runtime_checkable

from upath import UPath

__all__ = [
    "BytesSource",
    "DEFAULT_BLOCK_SIZE",
    "FileSource",
    "PathLike",
    "RangeBody",
    "UploadSource",
]

DEFAULT_BLOCK_SIZE = 1024 * 1024

PathLike = Union[UPath, Path, str]


@runtime_checkable
class UploadSource(Protocol):
    """Immutable byte source with a known size and sequential range reads."""

    name: str
    size: int

    def iter_range(
        self, start: int, end: int, block_size: int = DEFAULT_BLOCK_SIZE
    ) -> Iterator[bytes]:
        """Yield successive blocks covering ``[start, end)``."""


class FileSource:
    """Upload source backed by a local file or any :class:`upath.UPath`."""

    def __init__(self, path: PathLike) -> None:
        self.path = path if isinstance(path, UPath) else UPath(path)
        self.name = self.path.name
        self.size = int(self.path.stat().st_size)

    def iter_range(
        self, start: int, end: int, block_size: int = DEFAULT_BLOCK_SIZE
    ) -> Iterator[bytes]:
        remaining = end - start
        with self.path.open("rb") as handle:
            handle.seek(start)
            while remaining > 0:
                block = handle.read(min(block_size, remaining))
                if not block:
                    raise OSError(
                        f"Unexpected end of file in {self.path} at offset {end - remaining}"
                    )
                remaining -= len(block)
                yield block

    def __repr__(self) -> str:
        return f"FileSource({str(self.path)!r}, size={self.size})"


class BytesSource:
    """Upload source over an in-memory buffer."""

    def __init__(self, data: bytes, name: str = "<bytes>") -> None:
        self._data = bytes(data)
        self.name = name
        self.size = len(self._data)

    def iter_range(
        self, start: int, end: int, block_size: int = DEFAULT_BLOCK_SIZE
    ) -> Iterator[bytes]:
        if end > self.size:
            raise OSError(f"Range end {end} is past the end of {self.name}")
        view = memoryview(self._data)
        for offset in range(start, end, block_size):
            yield bytes(view[offset : min(offset + block_size, end)])


class RangeBody:
    """Sized, re-iterable request body streaming one segment of a source.

    ``len()`` lets HTTP clients send a ``Content-Length`` header instead of
    falling back to chunked transfer encoding.
    """

    def __init__(
        self,
        source: UploadSource,
        start: int,
        end: int,
        block_size: int = DEFAULT_BLOCK_SIZE,
    ) -> None:
        self.source = source
        self.start = start
        self.end = end
        self.block_size = block_size

    def __len__(self) -> int:
        return self.end - self.start

    def __iter__(self) -> Iterator[bytes]:
        return self.source.iter_range(self.start, self.end, self.block_size)

    def read_all(self) -> bytes:
        return b"".join(self)
