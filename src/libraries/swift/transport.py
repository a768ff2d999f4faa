"""HTTP transport used to talk to the Swift object store."""

from __future__ import annotations

import asyncio
import json as jsonlib
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Protocol, Sized, Union

import requests
import structlog
from requests import Session

from .errors import TransportError, status_error
from .models import ProgressCallback
from .source import RangeBody

log = structlog.get_logger(__name__)

__all__ = [
    "AUTH_TOKEN_HEADER",
    "DELETE_AT_HEADER",
    "ETAG_HEADER",
    "MANIFEST_TIMEOUT",
    "REMOVE_DELETE_AT_HEADER",
    "Request",
    "RequestsTransport",
    "Response",
    "SEGMENT_TIMEOUT",
    "SwiftConnection",
    "Transport",
]

AUTH_TOKEN_HEADER = "X-Auth-Token"
ETAG_HEADER = "Etag"
DELETE_AT_HEADER = "X-Delete-At"
REMOVE_DELETE_AT_HEADER = "X-Remove-Delete-At"

SEGMENT_TIMEOUT = 2 * 60.0
MANIFEST_TIMEOUT = 10 * 60.0

Body = Union[bytes, RangeBody]


@dataclass
class Request:
    """A single HTTP request."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Body | None = None
    json: Any = None
    timeout: float = SEGMENT_TIMEOUT
    on_progress: ProgressCallback | None = None


@dataclass
class Response:
    """Result of a successful (status < 400) request."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)


class Transport(Protocol):
    """Issue one HTTP request.

    Implementations raise :class:`~libraries.swift.errors.TransportError` for
    network failures and a :class:`~libraries.swift.errors.StatusError`
    subclass for HTTP status codes >= 400. ``request.on_progress`` receives
    ``(fraction, delta, loaded)`` ticks while the body is being sent.
    """

    async def send(self, request: Request) -> Response:
        ...


class _ProgressBody:
    """Wrap a sized body and report every block handed to the socket."""

    def __init__(
        self, body: Body, callback: Callable[[float, int, int], None]
    ) -> None:
        self._body = body
        self._total = len(body)
        self._callback = callback

    def __len__(self) -> int:
        return self._total

    def __iter__(self) -> Iterator[bytes]:
        loaded = 0
        blocks = (self._body,) if isinstance(self._body, bytes) else self._body
        for block in blocks:
            loaded += len(block)
            yield block
            self._callback(loaded / self._total, len(block), loaded)


class RequestsTransport:
    """:class:`Transport` built on :mod:`requests`.

    Blocking calls run in a worker thread. Progress ticks are handed back to
    the event loop so callers only ever observe them on the loop thread.
    """

    def __init__(self, session: Session | None = None) -> None:
        self._session = session or requests.Session()

    async def send(self, request: Request) -> Response:
        loop = asyncio.get_running_loop()
        headers = dict(request.headers)
        data: bytes | Sized | None = request.body

        if request.json is not None:
            data = jsonlib.dumps(request.json).encode("utf-8")
            headers.setdefault("Content-Type", "application/json")
        elif request.body is not None and len(request.body) == 0:
            data = b""
        elif request.body is not None and request.on_progress is not None:
            on_progress = request.on_progress

            def _tick(fraction: float, delta: int, loaded: int) -> None:
                loop.call_soon_threadsafe(on_progress, fraction, delta, loaded)

            data = _ProgressBody(request.body, _tick)

        return await asyncio.to_thread(
            self._send_blocking,
            request.method,
            request.url,
            headers,
            data,
            request.timeout,
        )

    def _send_blocking(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        data: Any,
        timeout: float,
    ) -> Response:
        try:
            response = self._session.request(
                method, url, headers=dict(headers), data=data, timeout=timeout
            )
        except (requests.RequestException, OSError) as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        status = int(response.status_code)
        response_headers = {
            str(key).lower(): str(value) for key, value in response.headers.items()
        }
        body = _decode_body(response, response_headers)

        if status < 100 or status > 599:
            raise TransportError(f"{method} {url} returned invalid status {status}")
        if status >= 400:
            raise status_error(status, body=body, headers=response_headers)
        return Response(status=status, headers=response_headers, body=body)


def _decode_body(response: requests.Response, headers: Mapping[str, str]) -> Any:
    content = response.content or b""
    if not content:
        return None
    if "json" in headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            log.warning("swift.transport.invalid_json", url=response.url)
    return response.text


class SwiftConnection:
    """Authenticated view of a Swift storage endpoint."""

    def __init__(self, endpoint_url: str, token: str, transport: Transport) -> None:
        if not endpoint_url:
            raise ValueError("endpoint_url must be provided")
        self.endpoint_url = endpoint_url.rstrip("/")
        self.token = token
        self.transport = transport

    def url_for(self, path: str) -> str:
        return f"{self.endpoint_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: Body | None = None,
        json: Any = None,
        timeout: float = SEGMENT_TIMEOUT,
        on_progress: ProgressCallback | None = None,
    ) -> Response:
        request_headers = dict(headers or {})
        request_headers[AUTH_TOKEN_HEADER] = self.token
        request = Request(
            method=method,
            url=self.url_for(path),
            headers=request_headers,
            body=body,
            json=json,
            timeout=timeout,
            on_progress=on_progress,
        )
        return await self.transport.send(request)

    async def head(self, path: str, **kwargs: Any) -> Response:
        return await self.request("HEAD", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Response:
        return await self.request("PUT", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Response:
        return await self.request("POST", path, **kwargs)
