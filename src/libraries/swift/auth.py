"""Token acquisition against a Keystone style identity service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

import requests
import structlog
from requests import Session

from .errors import AuthError
from .models import Credentials

log = structlog.get_logger(__name__)

__all__ = [
    "AUTH_TIMEOUT",
    "AuthResult",
    "Authenticator",
    "KeystoneAuthenticator",
    "resolve_endpoint",
]

AUTH_TIMEOUT = 10.0


@dataclass(frozen=True)
class AuthResult:
    """Bearer token plus the service catalogue keyed by service name."""

    token: str = field(repr=False)
    endpoints: Mapping[str, Sequence[Mapping[str, Any]]] = field(default_factory=dict)


class Authenticator(Protocol):
    """Exchange credentials for a token and service endpoints."""

    def authenticate(self, credentials: Credentials) -> AuthResult:
        ...


class KeystoneAuthenticator:
    """Authenticate with the Keystone v2 ``tokens`` API."""

    def __init__(
        self, *, session: Session | None = None, timeout: float = AUTH_TIMEOUT
    ) -> None:
        self._session = session or requests.Session()
        self._timeout = timeout

    def authenticate(self, credentials: Credentials) -> AuthResult:
        url = f"{credentials.auth_url.rstrip('/')}/tokens"
        payload = {
            "auth": {
                "passwordCredentials": {
                    "username": credentials.username,
                    "password": credentials.password,
                },
                "tenantName": credentials.tenant,
            }
        }
        log.debug("swift.auth.request", url=url, username=credentials.username)
        try:
            response = self._session.post(url, json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            log.error("swift.auth.unreachable", url=url, error=str(exc))
            raise AuthError(f"Identity service at {url} is unreachable: {exc}") from exc

        if not response.ok:
            log.error("swift.auth.failed", url=url, status=response.status_code)
            raise AuthError(
                f"Identity service rejected the credentials (HTTP {response.status_code})"
            )

        try:
            data = response.json() if response.content else {}
        except ValueError as exc:
            raise AuthError("Identity service returned an invalid JSON payload") from exc

        access = data.get("access") or {}
        token = (access.get("token") or {}).get("id")
        if not token:
            log.error("swift.auth.missing_token", url=url)
            raise AuthError("Authentication response did not contain a token")

        endpoints: dict[str, Sequence[Mapping[str, Any]]] = {}
        for service in access.get("serviceCatalog") or []:
            name = service.get("name")
            if name:
                endpoints[str(name)] = list(service.get("endpoints") or [])

        log.info(
            "swift.auth.authenticated",
            username=credentials.username,
            services=sorted(endpoints),
        )
        return AuthResult(token=str(token), endpoints=endpoints)


def resolve_endpoint(
    result: AuthResult, service: str = "swift", endpoint_type: str = "publicURL"
) -> str:
    """Return the first *endpoint_type* URL advertised for *service*."""

    for endpoint in result.endpoints.get(service, ()):
        url = endpoint.get(endpoint_type)
        if url:
            return str(url)
    raise AuthError(f"No '{service}' endpoint was found in the service catalogue")
