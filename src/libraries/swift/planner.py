"""Partition a file into fixed-size upload segments."""

from __future__ import annotations

from typing import List

from .models import DEFAULT_SEGMENT_SIZE, Segment

__all__ = ["plan_segments"]


def plan_segments(
    file_size: int,
    max_segment_size: int = DEFAULT_SEGMENT_SIZE,
    *,
    object_path: str | None = None,
) -> List[Segment]:
    """Return segments covering ``[0, file_size)`` in index order.

    Every segment except the last is exactly *max_segment_size* bytes long.
    A zero byte file still produces one empty segment so the object is
    created. When only one segment is produced and *object_path* is given,
    that segment is uploaded straight to the final object path and no
    manifest is written.
    """

    if file_size < 0:
        raise ValueError("file_size must not be negative")
    if max_segment_size < 1:
        raise ValueError("max_segment_size must be a positive integer")

    segments: List[Segment] = []
    position = 0
    while position < file_size or not segments:
        size = min(file_size - position, max_segment_size)
        segments.append(
            Segment(
                index=len(segments),
                start=position,
                end=position + size,
                size=size,
            )
        )
        position += size

    if len(segments) == 1 and object_path is not None:
        segments[0].remote_path = object_path
    return segments
