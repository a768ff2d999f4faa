"""Bounded-concurrency dispatch of segment upload attempts."""

from __future__ import annotations

import asyncio
import functools
import itertools
from collections import defaultdict
from typing import Callable, Dict, List, Protocol, Tuple

import structlog

from .errors import SegmentRetryError
from .models import InflightEntry, ProgressCallback, Segment, UploadJob
from .retry import SEGMENT_BACKOFF_SECONDS, Sleep
from .segment import ErrorReporter, SegmentState, SegmentUploader
from .transport import SwiftConnection

log = structlog.get_logger(__name__)

__all__ = ["AttemptRunner", "ChunkScheduler"]


class AttemptRunner(Protocol):
    """Anything able to run one upload attempt for a segment."""

    async def run(self, segment: Segment) -> SegmentState:
        ...


class ChunkScheduler:
    """Drive every segment of *job* to completion.

    Segments wait in an unsent stack and are popped last-in-first-out, so a
    segment that just failed is the next one retried. At most
    ``job.concurrency`` attempts are in flight at any time and a segment is
    never owned by two attempts at once. When every segment is done the
    job's completion latch fires, exactly once.

    Failed attempts are re-queued without limit unless *max_attempts* is
    given, in which case running out of attempts aborts the job with
    :class:`SegmentRetryError`. There is no cancellation handle.
    """

    def __init__(
        self,
        job: UploadJob,
        connection: SwiftConnection | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        on_complete: Callable[[], None] | None = None,
        error_log: ErrorReporter | None = None,
        sleep: Sleep = asyncio.sleep,
        backoff: float = SEGMENT_BACKOFF_SECONDS,
        max_attempts: int | None = None,
        runner: AttemptRunner | None = None,
    ) -> None:
        if runner is None:
            if connection is None:
                raise ValueError("Either a connection or a runner must be provided")
            runner = SegmentUploader(
                job,
                connection,
                on_progress=self.report_progress,
                error_log=error_log,
                sleep=sleep,
                backoff=backoff,
            )
        self._job = job
        self._runner = runner
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._max_attempts = max_attempts

        self._unsent: List[Segment] = list(job.segments)
        self._inflight: Dict[int, InflightEntry] = {}
        self._tasks: set[asyncio.Task[SegmentState]] = set()
        self._request_ids = itertools.count()
        self._attempts: Dict[int, int] = defaultdict(int)
        self._finished: asyncio.Future[int] | None = None

    @property
    def inflight(self) -> Tuple[InflightEntry, ...]:
        return tuple(self._inflight.values())

    @property
    def unsent(self) -> Tuple[Segment, ...]:
        return tuple(self._unsent)

    def attempts_for(self, segment: Segment) -> int:
        return self._attempts[segment.index]

    async def run(self) -> int:
        """Upload every segment and return the number of bytes confirmed."""

        if self._job.latch.fired:
            return self._job.bytes_sent

        self._finished = asyncio.get_running_loop().create_future()
        self._job.latch.add_listener(self._handle_job_complete)
        log.info(
            "swift.scheduler.start",
            segments=len(self._job.segments),
            concurrency=self._job.concurrency,
        )
        self._start_sends()
        try:
            return await self._finished
        finally:
            for task in list(self._tasks):
                task.cancel()

    def report_progress(self, delta: int) -> None:
        """Recompute the aggregate fraction after a byte-level tick."""

        if self._on_progress is None:
            return
        total = self._job.bytes_sent
        size = self._job.file_size
        fraction = total / size if size else 1.0
        self._on_progress(fraction, delta, total)

    # Dispatch -----------------------------------------------------------

    def _start_sends(self) -> None:
        if self._job.is_complete:
            self._job.latch.fire()
            return

        while len(self._inflight) < self._job.concurrency and self._unsent:
            segment = self._unsent.pop()
            entry = InflightEntry(request_id=next(self._request_ids), segment=segment)
            self._inflight[entry.request_id] = entry
            self._attempts[segment.index] += 1

            task = asyncio.ensure_future(self._runner.run(segment))
            self._tasks.add(task)
            task.add_done_callback(functools.partial(self._attempt_done, entry))

    def _attempt_done(
        self, entry: InflightEntry, task: asyncio.Task[SegmentState]
    ) -> None:
        self._tasks.discard(task)
        self._inflight.pop(entry.request_id, None)
        if task.cancelled():
            return
        error = task.exception()
        if self._is_finished():
            return
        if error is not None:
            self._abort(error)
            return

        segment = entry.segment
        if not segment.done:
            attempts = self._attempts[segment.index]
            if self._max_attempts is not None and attempts >= self._max_attempts:
                log.error(
                    "swift.scheduler.segment_exhausted",
                    index=segment.index,
                    attempts=attempts,
                )
                self._abort(
                    SegmentRetryError(
                        segment.index, attempts, bytes_sent=self._job.bytes_sent
                    )
                )
                return
            self._unsent.append(segment)

        self._start_sends()

    def _handle_job_complete(self) -> None:
        bytes_sent = self._job.bytes_sent
        log.info("swift.scheduler.complete", bytes_sent=bytes_sent)
        if self._on_complete is not None:
            try:
                self._on_complete()
            except Exception as exc:
                log.error("swift.scheduler.on_complete_failed", error=str(exc))
                self._abort(exc)
                return
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(bytes_sent)

    def _abort(self, error: BaseException) -> None:
        if self._finished is not None and not self._finished.done():
            self._finished.set_exception(error)
        for task in list(self._tasks):
            task.cancel()

    def _is_finished(self) -> bool:
        return self._finished is not None and self._finished.done()
