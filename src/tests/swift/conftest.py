"""Shared fakes for the segmented upload engine tests."""

from __future__ import annotations

import asyncio
import hashlib
from collections import defaultdict
from typing import Any

import pytest

from libraries.swift.auth import AuthResult
from libraries.swift.errors import StatusError, status_error
from libraries.swift.models import Credentials
from libraries.swift.transport import Request, Response

ENDPOINT = "https://swift.example.test/v1/AUTH_demo"
TOKEN = "token-123"


class FakeSwift:
    """In-memory Swift object store implementing the transport protocol."""

    endpoint = ENDPOINT

    def __init__(self) -> None:
        self.objects: dict[str, dict[str, Any]] = {}
        self.manifests: dict[str, dict[str, Any]] = {}
        self.requests: list[Request] = []
        self.failures: dict[tuple[str, str], list[BaseException]] = defaultdict(list)
        self.head_barrier: asyncio.Event | None = None
        self.head_barrier_size = 0
        self.pending_heads = 0
        self.active_paths: set[str] = set()
        self.max_active_paths = 0

    # Setup helpers ------------------------------------------------------

    def seed(self, path: str, data: bytes, delete_at: int | None = None) -> str:
        etag = hashlib.md5(data).hexdigest()
        self.objects[path] = {"etag": etag, "data": data, "delete_at": delete_at}
        return etag

    def fail(self, method: str, path: str, *errors: BaseException) -> None:
        self.failures[(method, path)].extend(errors)

    def wait_for_heads(self, count: int) -> None:
        """Hold HEAD requests until *count* of them are pending at once."""

        self.head_barrier = asyncio.Event()
        self.head_barrier_size = count

    # Inspection helpers -------------------------------------------------

    def calls(self, method: str, prefix: str = "") -> list[Request]:
        return [
            request
            for request in self.requests
            if request.method == method and self._path(request).startswith(prefix)
        ]

    def _path(self, request: Request) -> str:
        assert request.url.startswith(self.endpoint + "/")
        return request.url[len(self.endpoint) + 1 :]

    # Transport ----------------------------------------------------------

    async def send(self, request: Request) -> Response:
        self.requests.append(request)
        path, _, query = self._path(request).partition("?")

        self.active_paths.add(path)
        self.max_active_paths = max(self.max_active_paths, len(self.active_paths))
        try:
            await asyncio.sleep(0)
            queue = self.failures.get((request.method, path))
            if queue:
                raise queue.pop(0)
            if request.method == "HEAD":
                return await self._head(path)
            if request.method == "PUT" and query == "multipart-manifest=put":
                return self._put_manifest(path, request)
            if request.method == "PUT":
                return self._put(path, request)
            if request.method == "POST":
                return self._post(path, request)
            raise StatusError(405)
        finally:
            self.active_paths.discard(path)

    async def _head(self, path: str) -> Response:
        if self.head_barrier is not None:
            self.pending_heads += 1
            if self.pending_heads >= self.head_barrier_size:
                self.head_barrier.set()
            await asyncio.wait_for(self.head_barrier.wait(), timeout=2)

        stored = self.objects.get(path)
        if stored is None:
            raise status_error(404)
        headers = {"etag": stored["etag"]}
        if stored["delete_at"] is not None:
            headers["x-delete-at"] = str(stored["delete_at"])
        return Response(status=200, headers=headers)

    def _put(self, path: str, request: Request) -> Response:
        body = request.body
        if body is None:
            data = b""
        elif isinstance(body, bytes):
            data = body
        else:
            blocks = []
            loaded = 0
            total = len(body)
            for block in body:
                blocks.append(block)
                loaded += len(block)
                if request.on_progress is not None:
                    request.on_progress(loaded / total, len(block), loaded)
            data = b"".join(blocks)

        etag = hashlib.md5(data).hexdigest()
        if request.headers.get("Etag", etag) != etag:
            raise StatusError(422, "Unprocessable Entity")
        delete_at = request.headers.get("X-Delete-At")
        self.objects[path] = {
            "etag": etag,
            "data": data,
            "delete_at": int(delete_at) if delete_at else None,
        }
        return Response(status=201, headers={"etag": etag})

    def _put_manifest(self, path: str, request: Request) -> Response:
        self.manifests[path] = {"body": request.json, "headers": dict(request.headers)}
        return Response(status=201)

    def _post(self, path: str, request: Request) -> Response:
        stored = self.objects.get(path)
        if stored is None:
            raise status_error(404)
        if "X-Remove-Delete-At" in request.headers:
            stored["delete_at"] = None
        if "X-Delete-At" in request.headers:
            stored["delete_at"] = int(request.headers["X-Delete-At"])
        return Response(status=202)


class StaticAuthenticator:
    """Authenticator returning a fixed token and service catalogue."""

    def __init__(self, endpoints: dict[str, list[dict[str, str]]] | None = None) -> None:
        if endpoints is None:
            endpoints = {"swift": [{"publicURL": ENDPOINT}]}
        self.endpoints = endpoints
        self.calls: list[Credentials] = []

    def authenticate(self, credentials: Credentials) -> AuthResult:
        self.calls.append(credentials)
        return AuthResult(token=TOKEN, endpoints=self.endpoints)


class RecordingSleep:
    """Async sleep replacement recording requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def swift() -> FakeSwift:
    return FakeSwift()


@pytest.fixture
def authenticator() -> StaticAuthenticator:
    return StaticAuthenticator()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        auth_url="https://identity.example.test/v2.0/",
        username="demo",
        password="secret",
        tenant="demo-tenant",
    )


@pytest.fixture
def authenticator_factory() -> type[StaticAuthenticator]:
    return StaticAuthenticator
