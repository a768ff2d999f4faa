"""Data model shared by the planner, scheduler, uploader and manifest builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List

from .source import UploadSource

__all__ = [
    "CompletionLatch",
    "Credentials",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_SEGMENT_SIZE",
    "InflightEntry",
    "ManifestEntry",
    "ProgressCallback",
    "Segment",
    "SEGMENTS_PREFIX",
    "UploadJob",
    "UploadOptions",
]

DEFAULT_SEGMENT_SIZE = 100 * 1024 * 1024
DEFAULT_CONCURRENCY = 3
SEGMENTS_PREFIX = "segments"

# (fraction, delta, total_bytes_sent)
ProgressCallback = Callable[[float, int, int], None]


@dataclass(frozen=True)
class Credentials:
    """Identity service credentials."""

    auth_url: str
    username: str
    password: str = field(repr=False)
    tenant: str


@dataclass
class Segment:
    """Contiguous byte range ``[start, end)`` uploaded as its own object."""

    index: int
    start: int
    end: int
    size: int
    digest: str | None = None
    remote_path: str | None = None
    bytes_sent: int = 0
    done: bool = False

    def reset_progress(self) -> None:
        self.bytes_sent = 0

    def mark_done(self) -> None:
        self.done = True
        self.bytes_sent = self.size


@dataclass(frozen=True)
class ManifestEntry:
    """One line of a static large object manifest."""

    path: str
    digest: str
    size_bytes: int

    def to_payload(self) -> dict[str, Any]:
        return {"path": self.path, "etag": self.digest, "size_bytes": self.size_bytes}


@dataclass(frozen=True)
class InflightEntry:
    """A segment currently owned by an upload attempt."""

    request_id: int
    segment: Segment


class CompletionLatch:
    """Latch that runs its listeners exactly once."""

    def __init__(self) -> None:
        self._fired = False
        self._listeners: list[Callable[[], None]] = []

    @property
    def fired(self) -> bool:
        return self._fired

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def fire(self) -> bool:
        """Fire the latch; return ``False`` if it had already fired."""

        if self._fired:
            return False
        self._fired = True
        for listener in self._listeners:
            listener()
        return True


@dataclass
class UploadOptions:
    """Caller tunables for :func:`libraries.swift.upload_file`."""

    concurrency: int = DEFAULT_CONCURRENCY
    delete_at: int | None = None
    segment_size: int = DEFAULT_SEGMENT_SIZE
    on_progress: ProgressCallback | None = None
    on_complete: Callable[[], None] | None = None
    max_segment_attempts: int | None = None

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be a positive integer")
        if self.segment_size < 1:
            raise ValueError("segment_size must be a positive integer")
        if self.max_segment_attempts is not None and self.max_segment_attempts < 1:
            raise ValueError("max_segment_attempts must be a positive integer")


@dataclass
class UploadJob:
    """Aggregate owning every segment of one file upload."""

    source: UploadSource
    container: str
    object_path: str
    segments: List[Segment]
    concurrency: int = DEFAULT_CONCURRENCY
    delete_at: int | None = None
    latch: CompletionLatch = field(default_factory=CompletionLatch)

    @property
    def file_size(self) -> int:
        return self.source.size

    @property
    def is_segmented(self) -> bool:
        """Whether a manifest is needed to stitch the segments together."""

        return len(self.segments) > 1

    @property
    def is_complete(self) -> bool:
        return all(segment.done for segment in self.segments)

    @property
    def bytes_sent(self) -> int:
        return sum(segment.bytes_sent for segment in self.segments)

    @property
    def object_url_path(self) -> str:
        return f"{self.container}/{self.object_path}"

    def segment_path(self, digest: str) -> str:
        """Content addressed remote path for a segment with *digest*."""

        return f"{SEGMENTS_PREFIX}/{digest}"
