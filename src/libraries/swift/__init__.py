"""Segmented, resumable uploads to Swift compatible object storage."""

from .auth import AuthResult, Authenticator, KeystoneAuthenticator, resolve_endpoint
from .errors import (
    AuthError,
    HashError,
    ManifestError,
    NotFoundError,
    SegmentRetryError,
    ServiceUnavailableError,
    StatusError,
    SwiftError,
    TransportError,
)
from .manifest import ManifestBuilder, build_manifest_entries
from .models import (
    CompletionLatch,
    Credentials,
    InflightEntry,
    ManifestEntry,
    Segment,
    UploadJob,
    UploadOptions,
)
from .planner import plan_segments
from .retry import RetryPolicy
from .scheduler import ChunkScheduler
from .segment import SegmentState, SegmentUploader
from .source import BytesSource, FileSource, RangeBody, UploadSource
from .transport import Request, RequestsTransport, Response, SwiftConnection, Transport
from .uploader import run_upload, upload_file

__all__ = [
    "AuthError",
    "AuthResult",
    "Authenticator",
    "BytesSource",
    "ChunkScheduler",
    "CompletionLatch",
    "Credentials",
    "FileSource",
    "HashError",
    "InflightEntry",
    "KeystoneAuthenticator",
    "ManifestBuilder",
    "ManifestEntry",
    "ManifestError",
    "NotFoundError",
    "RangeBody",
    "Request",
    "RequestsTransport",
    "Response",
    "RetryPolicy",
    "Segment",
    "SegmentRetryError",
    "SegmentState",
    "SegmentUploader",
    "ServiceUnavailableError",
    "StatusError",
    "SwiftConnection",
    "SwiftError",
    "Transport",
    "TransportError",
    "UploadJob",
    "UploadOptions",
    "UploadSource",
    "build_manifest_entries",
    "plan_segments",
    "resolve_endpoint",
    "run_upload",
    "upload_file",
]
