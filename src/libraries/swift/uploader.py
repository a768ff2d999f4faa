"""Caller-facing entry points for segmented uploads."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Awaitable, Union

import structlog

from .auth import Authenticator, KeystoneAuthenticator, resolve_endpoint
from .errors import AuthError, SwiftError
from .manifest import ManifestBuilder
from .models import Credentials, UploadJob, UploadOptions
from .planner import plan_segments
from .retry import SEGMENT_BACKOFF_SECONDS, Sleep
from .scheduler import ChunkScheduler
from .segment import ErrorReporter
from .source import FileSource, PathLike, UploadSource
from .transport import RequestsTransport, SwiftConnection, Transport

log = structlog.get_logger(__name__)

__all__ = ["run_upload", "upload_file"]


async def upload_file(
    credentials: Credentials,
    source: Union[UploadSource, PathLike],
    container: str,
    object_path: str,
    options: UploadOptions | None = None,
    *,
    authenticator: Authenticator | None = None,
    transport: Transport | None = None,
    sleep: Sleep = asyncio.sleep,
    error_log: ErrorReporter | None = None,
    service: str = "swift",
    backoff: float = SEGMENT_BACKOFF_SECONDS,
) -> int:
    """Upload *source* to ``container/object_path`` and return bytes sent.

    Files larger than ``options.segment_size`` are stored as content
    addressed segments under ``container/segments/`` and stitched together
    with a manifest. Segments that already exist with a matching digest are
    not sent again, which makes re-running an interrupted upload cheap.

    Raises :class:`AuthError`, :class:`ManifestError` or
    :class:`SegmentRetryError`; each carries the partial ``bytes_sent``.
    Segment level failures are retried internally and never raised.
    """

    if not container:
        raise ValueError("container must be provided")
    if not object_path:
        raise ValueError("object_path must be provided")

    options = options or UploadOptions()
    if not isinstance(source, UploadSource):
        source = FileSource(source)
    authenticator = authenticator or KeystoneAuthenticator()
    transport = transport or RequestsTransport()

    try:
        auth = await asyncio.to_thread(authenticator.authenticate, credentials)
        endpoint_url = resolve_endpoint(auth, service)
    except AuthError as exc:
        log.error("swift.upload.auth_failed", auth_url=credentials.auth_url, error=str(exc))
        raise

    segments = plan_segments(source.size, options.segment_size, object_path=object_path)
    job = UploadJob(
        source=source,
        container=container,
        object_path=object_path,
        segments=segments,
        concurrency=options.concurrency,
        delete_at=options.delete_at,
    )
    log.info(
        "swift.upload.start",
        name=source.name,
        destination=job.object_url_path,
        size=source.size,
        segments=len(segments),
        concurrency=job.concurrency,
    )

    connection = SwiftConnection(endpoint_url, auth.token, transport)
    scheduler = ChunkScheduler(
        job,
        connection,
        on_progress=options.on_progress,
        on_complete=options.on_complete,
        error_log=error_log,
        sleep=sleep,
        backoff=backoff,
        max_attempts=options.max_segment_attempts,
    )
    byte_count = await scheduler.run()

    await ManifestBuilder(connection, sleep=sleep).publish(job)

    log.info("swift.upload.complete", destination=job.object_url_path, bytes_sent=byte_count)
    return byte_count


def run_upload(*args: Any, **kwargs: Any) -> int:
    """Blocking wrapper around :func:`upload_file`."""

    return _run_blocking(upload_file(*args, **kwargs))


def _run_blocking(awaitable: Awaitable[int]) -> int:
    async def _consume() -> int:
        return await awaitable

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_consume())

    result: int | None = None
    error: BaseException | None = None

    def _runner() -> None:
        nonlocal result, error
        try:
            result = asyncio.run(_consume())
        except BaseException as exc:
            error = exc

    thread = threading.Thread(target=_runner, name="SwiftUploadRunner")
    thread.start()
    thread.join()

    if error is not None:
        raise error
    if result is None:
        raise SwiftError("Upload runner finished without a result")
    return result
