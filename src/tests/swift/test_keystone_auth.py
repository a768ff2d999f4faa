"""Tests for the Keystone token exchange."""

from __future__ import annotations

import json
from typing import Any

import pytest
import requests

from libraries.swift.auth import AuthResult, KeystoneAuthenticator, resolve_endpoint
from libraries.swift.errors import AuthError
from libraries.swift.models import Credentials

TOKENS_URL = "https://identity.example.test/v2.0/tokens"


class _StubResponse:
    """Minimal response object mimicking :class:`requests.Response`."""

    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self.status_code = status_code
        self.ok = status_code < 400
        if isinstance(payload, bytes):
            self._content = payload
        elif payload is None:
            self._content = b""
        else:
            self._content = json.dumps(payload).encode("utf-8")

    @property
    def content(self) -> bytes:
        return self._content

    def json(self) -> Any:
        return json.loads(self._content.decode("utf-8"))


class _StubSession:
    def __init__(self, response: _StubResponse | Exception) -> None:
        self._response = response
        self.calls: list[tuple[str, dict[str, Any], float]] = []

    def post(self, url: str, json: dict[str, Any], timeout: float) -> _StubResponse:
        self.calls.append((url, json, timeout))
        if isinstance(self._response, Exception):
            raise self._response
        return self._response


def _catalogue(token: str = "abc") -> dict[str, Any]:
    return {
        "access": {
            "token": {"id": token, "expires": "2030-01-01T00:00:00Z"},
            "serviceCatalog": [
                {
                    "name": "swift",
                    "type": "object-store",
                    "endpoints": [
                        {
                            "region": "RegionOne",
                            "publicURL": "https://swift.example.test/v1/AUTH_demo",
                            "internalURL": "http://10.0.0.5/v1/AUTH_demo",
                        }
                    ],
                },
                {"name": "nova", "endpoints": [{"publicURL": "https://nova.test"}]},
            ],
        }
    }


def test_authenticate_posts_password_credentials(credentials: Credentials) -> None:
    session = _StubSession(_StubResponse(_catalogue()))

    result = KeystoneAuthenticator(session=session).authenticate(credentials)  # type: ignore[arg-type]

    ((url, payload, timeout),) = session.calls
    assert url == TOKENS_URL
    assert timeout == 10.0
    assert payload == {
        "auth": {
            "passwordCredentials": {"username": "demo", "password": "secret"},
            "tenantName": "demo-tenant",
        }
    }
    assert result.token == "abc"
    assert sorted(result.endpoints) == ["nova", "swift"]


def test_public_and_internal_endpoints_resolve(credentials: Credentials) -> None:
    session = _StubSession(_StubResponse(_catalogue()))
    result = KeystoneAuthenticator(session=session).authenticate(credentials)  # type: ignore[arg-type]

    assert resolve_endpoint(result) == "https://swift.example.test/v1/AUTH_demo"
    assert resolve_endpoint(result, endpoint_type="internalURL") == "http://10.0.0.5/v1/AUTH_demo"


def test_resolve_endpoint_without_swift_service_fails() -> None:
    result = AuthResult(token="abc", endpoints={"nova": [{"publicURL": "x"}]})

    with pytest.raises(AuthError, match="swift"):
        resolve_endpoint(result)


def test_rejected_credentials_raise_auth_error(credentials: Credentials) -> None:
    session = _StubSession(_StubResponse({"error": {"code": 401}}, status_code=401))

    with pytest.raises(AuthError, match="401"):
        KeystoneAuthenticator(session=session).authenticate(credentials)  # type: ignore[arg-type]


def test_unreachable_identity_service_raises_auth_error(credentials: Credentials) -> None:
    session = _StubSession(requests.ConnectionError("refused"))

    with pytest.raises(AuthError, match="unreachable"):
        KeystoneAuthenticator(session=session).authenticate(credentials)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        {"access": {"serviceCatalog": []}},
        {"access": {"token": {"id": ""}}},
    ],
)
def test_malformed_responses_raise_auth_error(
    credentials: Credentials, payload: Any
) -> None:
    session = _StubSession(_StubResponse(payload))

    with pytest.raises(AuthError):
        KeystoneAuthenticator(session=session).authenticate(credentials)  # type: ignore[arg-type]


def test_token_is_hidden_from_repr() -> None:
    result = AuthResult(token="super-secret", endpoints={})

    assert "super-secret" not in repr(result)
