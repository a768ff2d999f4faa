"""Exception hierarchy for the segmented Swift upload engine."""

from __future__ import annotations

from typing import Any, Mapping

__all__ = [
    "AuthError",
    "HashError",
    "ManifestError",
    "NotFoundError",
    "SegmentRetryError",
    "ServiceUnavailableError",
    "StatusError",
    "SwiftError",
    "TransportError",
    "status_error",
]


class SwiftError(RuntimeError):
    """Base class for every error raised by :mod:`libraries.swift`.

    ``bytes_sent`` records how many bytes reached the object store before a
    fatal error aborted the upload.
    """

    def __init__(self, message: str, *, bytes_sent: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.bytes_sent = bytes_sent


class AuthError(SwiftError):
    """Raised when the credential exchange fails or no endpoint matches."""


class HashError(SwiftError):
    """Raised when a segment cannot be read while computing its digest."""


class TransportError(SwiftError):
    """Raised for network level failures (timeouts, resets, bad status lines)."""


class StatusError(SwiftError):
    """Raised when the object store answers with an HTTP status >= 400."""

    def __init__(
        self,
        status: int,
        message: str | None = None,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message or f"HTTP {status}")
        self.status = status
        self.body = body
        self.headers = dict(headers or {})


class NotFoundError(StatusError):
    """The requested object does not exist (HTTP 404)."""


class ServiceUnavailableError(StatusError):
    """The object store is temporarily unavailable (HTTP 503)."""


class ManifestError(SwiftError):
    """Raised when the manifest object could not be created after retries."""


class SegmentRetryError(SwiftError):
    """Raised when a segment exceeded the configured attempt ceiling."""

    def __init__(self, index: int, attempts: int, *, bytes_sent: int = 0) -> None:
        super().__init__(
            f"Segment {index} failed after {attempts} attempts",
            bytes_sent=bytes_sent,
        )
        self.index = index
        self.attempts = attempts


def status_error(
    status: int, *, body: Any = None, headers: Mapping[str, str] | None = None
) -> StatusError:
    """Return the :class:`StatusError` subclass matching *status*."""

    if status == 404:
        return NotFoundError(status, "Object not found", body=body, headers=headers)
    if status == 503:
        return ServiceUnavailableError(
            status, "Service unavailable", body=body, headers=headers
        )
    return StatusError(status, body=body, headers=headers)
