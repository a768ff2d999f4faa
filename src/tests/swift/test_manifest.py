"""Tests for manifest composition and publishing."""

from __future__ import annotations

import asyncio
import hashlib
from typing import Any

import pytest

from libraries.swift.errors import ManifestError, StatusError, TransportError
from libraries.swift.manifest import ManifestBuilder, build_manifest_entries
from libraries.swift.models import ManifestEntry, UploadJob
from libraries.swift.planner import plan_segments
from libraries.swift.retry import RetryPolicy
from libraries.swift.source import BytesSource
from libraries.swift.transport import SwiftConnection

DATA = b"0123456789"


def _completed_job(*, delete_at: int | None = None, segment_size: int = 4) -> UploadJob:
    source = BytesSource(DATA)
    job = UploadJob(
        source=source,
        container="media",
        object_path="shots/clip.mov",
        segments=plan_segments(source.size, segment_size, object_path="shots/clip.mov"),
        delete_at=delete_at,
    )
    for segment in job.segments:
        digest = hashlib.md5(DATA[segment.start : segment.end]).hexdigest()
        segment.digest = digest
        if segment.remote_path is None:
            segment.remote_path = job.segment_path(digest)
        segment.mark_done()
    return job


def _builder(swift: Any, sleep: Any, **kwargs: Any) -> ManifestBuilder:
    return ManifestBuilder(SwiftConnection(swift.endpoint, "tok", swift), sleep=sleep, **kwargs)


def test_entries_follow_segment_order() -> None:
    job = _completed_job()

    entries = build_manifest_entries(job)

    assert entries == [
        ManifestEntry(
            path=f"media/segments/{hashlib.md5(DATA[0:4]).hexdigest()}",
            digest=hashlib.md5(DATA[0:4]).hexdigest(),
            size_bytes=4,
        ),
        ManifestEntry(
            path=f"media/segments/{hashlib.md5(DATA[4:8]).hexdigest()}",
            digest=hashlib.md5(DATA[4:8]).hexdigest(),
            size_bytes=4,
        ),
        ManifestEntry(
            path=f"media/segments/{hashlib.md5(DATA[8:10]).hexdigest()}",
            digest=hashlib.md5(DATA[8:10]).hexdigest(),
            size_bytes=2,
        ),
    ]


def test_incomplete_segments_are_refused() -> None:
    job = _completed_job()
    job.segments[1].done = False

    with pytest.raises(ManifestError):
        build_manifest_entries(job)


def test_publish_puts_manifest_with_expiry(swift: Any, recording_sleep: Any) -> None:
    job = _completed_job(delete_at=2_000_000_000)

    asyncio.run(_builder(swift, recording_sleep).publish(job))

    (request,) = swift.calls("PUT")
    assert request.url.endswith("/media/shots/clip.mov?multipart-manifest=put")
    assert request.headers["X-Delete-At"] == "2000000000"
    assert request.headers["X-Auth-Token"] == "tok"
    body = swift.manifests["media/shots/clip.mov"]["body"]
    assert [entry["size_bytes"] for entry in body] == [4, 4, 2]
    assert set(body[0]) == {"path", "etag", "size_bytes"}
    assert recording_sleep.delays == []


def test_single_segment_jobs_need_no_manifest(swift: Any, recording_sleep: Any) -> None:
    job = _completed_job(segment_size=100)

    result = asyncio.run(_builder(swift, recording_sleep).publish(job))

    assert result is None
    assert swift.requests == []


def test_publish_retries_with_growing_backoff(swift: Any, recording_sleep: Any) -> None:
    swift.fail(
        "PUT",
        "media/shots/clip.mov",
        StatusError(500),
        TransportError("timeout"),
    )
    job = _completed_job()

    asyncio.run(_builder(swift, recording_sleep).publish(job))

    assert len(swift.calls("PUT")) == 3
    assert recording_sleep.delays == pytest.approx([0.15, 0.45])
    assert "media/shots/clip.mov" in swift.manifests


def test_exhausted_retries_raise_manifest_error(swift: Any, recording_sleep: Any) -> None:
    swift.fail("PUT", "media/shots/clip.mov", *[StatusError(500) for _ in range(5)])
    job = _completed_job()

    with pytest.raises(ManifestError) as excinfo:
        asyncio.run(_builder(swift, recording_sleep).publish(job))

    assert excinfo.value.bytes_sent == len(DATA)
    assert len(swift.calls("PUT")) == 5
    assert recording_sleep.delays == pytest.approx([0.15, 0.45, 1.35, 4.05])
    assert swift.manifests == {}


def test_custom_retry_policy_is_honoured(swift: Any, recording_sleep: Any) -> None:
    swift.fail("PUT", "media/shots/clip.mov", StatusError(500), StatusError(500))
    job = _completed_job()
    policy = RetryPolicy(max_attempts=2, base_delay=1.0, multiplier=2.0)

    with pytest.raises(ManifestError):
        asyncio.run(_builder(swift, recording_sleep, retry_policy=policy).publish(job))

    assert recording_sleep.delays == [2.0]


def test_manifest_backoff_triples_after_each_failure() -> None:
    policy = RetryPolicy()

    assert [policy.delay_for(attempt) for attempt in range(1, 5)] == pytest.approx(
        [0.15, 0.45, 1.35, 4.05]
    )
    assert RetryPolicy(max_delay=1.0).delay_for(4) == 1.0
