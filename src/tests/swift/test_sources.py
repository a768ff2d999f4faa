"""Tests for upload sources and streamed request bodies."""

from __future__ import annotations

from pathlib import Path

import pytest
from upath import UPath

from libraries.swift.source import BytesSource, FileSource, RangeBody, UploadSource


def test_file_source_reads_ranges(tmp_path: Path) -> None:
    path = tmp_path / "plate.exr"
    path.write_bytes(b"abcdefghij")

    source = FileSource(path)

    assert source.name == "plate.exr"
    assert source.size == 10
    assert list(source.iter_range(2, 9, block_size=3)) == [b"cde", b"fgh", b"i"]
    assert isinstance(source, UploadSource)


def test_file_source_accepts_strings_and_upaths(tmp_path: Path) -> None:
    path = tmp_path / "plate.exr"
    path.write_bytes(b"xyz")

    assert FileSource(str(path)).size == 3
    assert FileSource(UPath(path)).size == 3


def test_file_source_detects_truncation(tmp_path: Path) -> None:
    path = tmp_path / "plate.exr"
    path.write_bytes(b"abcdefghij")
    source = FileSource(path)
    path.write_bytes(b"abc")

    with pytest.raises(OSError, match="Unexpected end of file"):
        list(source.iter_range(0, 10))


def test_missing_file_raises_os_error(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        FileSource(tmp_path / "missing.exr")


def test_bytes_source_rejects_ranges_past_the_end() -> None:
    source = BytesSource(b"abc")

    with pytest.raises(OSError):
        list(source.iter_range(0, 4))


def test_range_body_is_sized_and_reiterable() -> None:
    body = RangeBody(BytesSource(b"0123456789"), 3, 8, block_size=2)

    assert len(body) == 5
    assert list(body) == [b"34", b"56", b"7"]
    assert body.read_all() == b"34567"
