"""Compose uploaded segments into one static large object."""

from __future__ import annotations

import asyncio
from typing import List

import structlog

from .errors import ManifestError, SwiftError
from .models import ManifestEntry, UploadJob
from .retry import MANIFEST_RETRY_POLICY, RetryPolicy, Sleep, retry_async
from .transport import DELETE_AT_HEADER, MANIFEST_TIMEOUT, Response, SwiftConnection

log = structlog.get_logger(__name__)

__all__ = ["MANIFEST_QUERY", "ManifestBuilder", "build_manifest_entries"]

MANIFEST_QUERY = "multipart-manifest=put"


def build_manifest_entries(job: UploadJob) -> List[ManifestEntry]:
    """Return manifest entries for *job* ordered by segment index."""

    entries: List[ManifestEntry] = []
    for segment in sorted(job.segments, key=lambda item: item.index):
        if not segment.done or segment.digest is None or segment.remote_path is None:
            raise ManifestError(
                f"Segment {segment.index} is not uploaded; refusing to write a manifest",
                bytes_sent=job.bytes_sent,
            )
        entries.append(
            ManifestEntry(
                path=f"{job.container}/{segment.remote_path}",
                digest=segment.digest,
                size_bytes=segment.size,
            )
        )
    return entries


class ManifestBuilder:
    """Create the manifest object once every segment is in place."""

    def __init__(
        self,
        connection: SwiftConnection,
        *,
        retry_policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        timeout: float = MANIFEST_TIMEOUT,
    ) -> None:
        self._connection = connection
        self._retry_policy = retry_policy or MANIFEST_RETRY_POLICY
        self._sleep = sleep
        self._timeout = timeout

    async def publish(self, job: UploadJob) -> Response | None:
        """Write the manifest for *job*; single-segment jobs need none."""

        if not job.is_segmented:
            return None

        entries = build_manifest_entries(job)
        payload = [entry.to_payload() for entry in entries]
        headers: dict[str, str] = {}
        if job.delete_at is not None:
            headers[DELETE_AT_HEADER] = str(job.delete_at)
        path = f"{job.object_url_path}?{MANIFEST_QUERY}"

        async def _put() -> Response:
            return await self._connection.put(
                path, headers=headers, json=payload, timeout=self._timeout
            )

        try:
            response = await retry_async(
                _put,
                self._retry_policy,
                retry_on=(SwiftError,),
                sleep=self._sleep,
                description="manifest_put",
            )
        except SwiftError as exc:
            log.error(
                "swift.manifest.failed",
                path=job.object_url_path,
                segments=len(entries),
                error=str(exc),
            )
            raise ManifestError(
                f"Unable to create manifest {job.object_url_path}: {exc}",
                bytes_sent=job.bytes_sent,
            ) from exc

        log.info(
            "swift.manifest.created", path=job.object_url_path, segments=len(entries)
        )
        return response
