"""Per-segment upload state machine: hash, check, conditionally upload."""

from __future__ import annotations

import asyncio
import hashlib
from enum import Enum
from typing import Any, Callable, Protocol

import structlog

from .errors import (
    HashError,
    NotFoundError,
    ServiceUnavailableError,
    SwiftError,
)
from .models import Segment, UploadJob
from .retry import SEGMENT_BACKOFF_SECONDS, Sleep
from .source import DEFAULT_BLOCK_SIZE, RangeBody
from .transport import (
    DELETE_AT_HEADER,
    ETAG_HEADER,
    REMOVE_DELETE_AT_HEADER,
    SwiftConnection,
)

log = structlog.get_logger(__name__)

__all__ = ["ErrorReporter", "SegmentState", "SegmentUploader"]


class ErrorReporter(Protocol):
    """Collaborator notified of recoverable segment failures."""

    def __call__(self, event: str, **fields: Any) -> Any:
        ...


class SegmentState(str, Enum):
    """Stages of a single upload attempt."""

    UNHASHED = "unhashed"
    HASHED = "hashed"
    CHECKED = "checked"
    UPLOADED = "uploaded"
    FAILED = "failed"


class SegmentUploader:
    """Run upload attempts for the segments of one :class:`UploadJob`.

    An attempt walks ``UNHASHED -> HASHED -> CHECKED -> UPLOADED``. Any
    :class:`SwiftError` along the way is reported to *error_log*, the fixed
    backoff elapses and the attempt ends in ``FAILED`` with the segment left
    not done. The digest survives failed attempts so hashing is not repeated.

    The caller must not run two attempts on the same segment at once.
    """

    def __init__(
        self,
        job: UploadJob,
        connection: SwiftConnection,
        *,
        on_progress: Callable[[int], None] | None = None,
        error_log: ErrorReporter | None = None,
        sleep: Sleep = asyncio.sleep,
        backoff: float = SEGMENT_BACKOFF_SECONDS,
        block_size: int = DEFAULT_BLOCK_SIZE,
    ) -> None:
        self._job = job
        self._connection = connection
        self._on_progress = on_progress
        self._error_log: ErrorReporter = error_log or log.warning
        self._sleep = sleep
        self._backoff = backoff
        self._block_size = block_size

    async def run(self, segment: Segment) -> SegmentState:
        """Perform one attempt and return the state it ended in."""

        state = SegmentState.UNHASHED
        try:
            digest = await self._hash(segment)
            state = SegmentState.HASHED

            path = self._remote_path(segment, digest)
            await self._check(segment, path)
            state = SegmentState.CHECKED

            if not segment.done:
                await self._upload(segment, path, digest)
            state = SegmentState.UPLOADED
        except SwiftError as exc:
            self._error_log(
                "swift.segment.attempt_failed",
                index=segment.index,
                state=state.value,
                error_type=type(exc).__name__,
                error=str(exc),
                backoff=self._backoff,
            )
            await self._sleep(self._backoff)
            return SegmentState.FAILED

        log.debug(
            "swift.segment.completed",
            index=segment.index,
            remote_path=segment.remote_path,
            size=segment.size,
        )
        return state

    # State transitions ------------------------------------------------

    async def _hash(self, segment: Segment) -> str:
        if not segment.digest:
            segment.digest = await asyncio.to_thread(self._compute_digest, segment)
        return segment.digest

    def _compute_digest(self, segment: Segment) -> str:
        digest = hashlib.md5()
        try:
            for block in self._job.source.iter_range(
                segment.start, segment.end, self._block_size
            ):
                digest.update(block)
        except OSError as exc:
            raise HashError(
                f"Unable to read segment {segment.index} of {self._job.source.name}: {exc}"
            ) from exc
        return digest.hexdigest()

    def _remote_path(self, segment: Segment, digest: str) -> str:
        if segment.remote_path is None:
            segment.remote_path = self._job.segment_path(digest)
        return f"{self._job.container}/{segment.remote_path}"

    async def _check(self, segment: Segment, path: str) -> None:
        try:
            response = await self._connection.head(path)
        except NotFoundError:
            segment.reset_progress()
            return
        except ServiceUnavailableError:
            self._error_log(
                "swift.segment.check_unavailable", index=segment.index, path=path
            )
            segment.reset_progress()
            return

        remote_digest = _strip_quotes(response.header("etag"))
        if remote_digest != segment.digest:
            segment.reset_progress()
            return

        await self._reconcile_expiry(
            path, _parse_delete_at(response.header("x-delete-at"))
        )
        log.info("swift.segment.already_present", index=segment.index, path=path)
        self._mark_done(segment)

    async def _reconcile_expiry(self, path: str, remote_delete_at: int | None) -> None:
        wanted = self._job.delete_at
        if wanted is None:
            if remote_delete_at is None:
                return
            headers = {REMOVE_DELETE_AT_HEADER: "1"}
        else:
            if remote_delete_at is not None and remote_delete_at >= wanted:
                return
            headers = {DELETE_AT_HEADER: str(wanted)}

        log.info(
            "swift.segment.update_expiry",
            path=path,
            remote_delete_at=remote_delete_at,
            delete_at=wanted,
        )
        await self._connection.post(path, headers=headers)

    async def _upload(self, segment: Segment, path: str, digest: str) -> None:
        headers = {ETAG_HEADER: digest}
        if self._job.delete_at is not None:
            headers[DELETE_AT_HEADER] = str(self._job.delete_at)

        def _on_progress(fraction: float, delta: int, loaded: int) -> None:
            if segment.done:
                return
            previous = segment.bytes_sent
            segment.bytes_sent = min(max(previous, loaded), segment.size)
            if segment.bytes_sent != previous:
                self._notify(segment.bytes_sent - previous)

        body = RangeBody(
            self._job.source, segment.start, segment.end, self._block_size
        )
        await self._connection.put(
            path, headers=headers, body=body, on_progress=_on_progress
        )
        self._mark_done(segment)

    def _mark_done(self, segment: Segment) -> None:
        previous = segment.bytes_sent
        segment.mark_done()
        if segment.bytes_sent != previous:
            self._notify(segment.bytes_sent - previous)

    def _notify(self, delta: int) -> None:
        if self._on_progress is not None:
            self._on_progress(delta)


def _strip_quotes(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip().strip('"')


def _parse_delete_at(value: str | None) -> int | None:
    """Parse an ``X-Delete-At`` header; missing, zero and garbage mean none."""

    if not value:
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return None
    return parsed or None
