"""Authenticated HTTP sessions and the CSRF handshake.

Every tenant gets its own :class:`requests.Session`. Mutating requests
(POST/PUT) additionally need a CSRF token and the cookies that came with it;
:func:`fetch_session_context` obtains a fresh pair right before each one.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import requests
import urllib3
from requests.auth import AuthBase, HTTPBasicAuth
from requests.cookies import RequestsCookieJar

from ciflow.config import AUTH_BASIC, AUTH_OAUTH, TenantConfiguration
from ciflow.errors import ConnectionFailedError, InvalidResponseError, raise_for_response

logger = logging.getLogger(__name__)

CSRF_HEADER = "X-CSRF-Token"
_TOKEN_REFRESH_MARGIN_SECONDS = 60
_DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


class ClientCredentialsAuth(AuthBase):
    """OAuth2 client-credentials grant with a cached, auto-refreshed bearer token."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        timeout: float | None = None,
        verify: bool = True,
    ) -> None:
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._verify = verify
        self._token: str | None = None
        self._token_expiry: float = 0.0

    def __call__(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        request.headers["Authorization"] = f"Bearer {self._ensure_token()}"
        return request

    def _ensure_token(self) -> str:
        if self._token and time.time() < self._token_expiry - _TOKEN_REFRESH_MARGIN_SECONDS:
            return self._token

        logger.info("Requesting access token from %s", self._token_url)
        try:
            resp = requests.post(
                self._token_url,
                data={"grant_type": "client_credentials"},
                auth=HTTPBasicAuth(self._client_id, self._client_secret),
                headers={"Accept": "application/json"},
                timeout=self._timeout,
                verify=self._verify,
            )
        except requests.RequestException as exc:
            raise ConnectionFailedError(f"connection error: {exc}") from exc

        raise_for_response(resp)

        try:
            payload = resp.json()
            self._token = payload["access_token"]
            lifetime = float(payload.get("expires_in") or _DEFAULT_TOKEN_LIFETIME_SECONDS)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise InvalidResponseError(resp.status_code, resp.text) from exc
        self._token_expiry = time.time() + lifetime
        logger.debug("Access token obtained, valid for %ds", lifetime)
        return self._token


def build_session(tenant: TenantConfiguration, timeout: float | None = None) -> requests.Session:
    """Return a session that authenticates every request for *tenant*.

    An unknown authorization type yields a session without credentials;
    the service will then reject the requests.
    """
    session = requests.Session()
    session.headers.update({"Accept": "application/json"})
    session.verify = tenant.verify_ssl
    if not tenant.verify_ssl:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    auth = tenant.authorization
    if auth.type == AUTH_OAUTH:
        session.auth = ClientCredentialsAuth(
            auth.token_url,
            auth.client_id,
            auth.client_secret,
            timeout=timeout,
            verify=tenant.verify_ssl,
        )
    elif auth.type == AUTH_BASIC:
        session.auth = HTTPBasicAuth(auth.username, auth.password)
    else:
        logger.warning(
            "Tenant %s has unsupported authorization type %r, sending no credentials",
            tenant.key,
            auth.type,
        )
    return session


@dataclass(frozen=True)
class SessionContext:
    """CSRF token and cookies from one handshake with one tenant."""

    csrf_token: str
    cookies: RequestsCookieJar = field(default_factory=RequestsCookieJar)

    def headers(self) -> dict[str, str]:
        return {CSRF_HEADER: self.csrf_token}


def fetch_session_context(
    session: requests.Session,
    tenant: TenantConfiguration,
    timeout: float | None = None,
) -> SessionContext:
    """GET the API root with ``X-CSRF-Token: Fetch`` and keep the token and cookies."""
    url = f"{tenant.api_url}/"
    logger.debug("Fetching CSRF token from %s", url)
    try:
        resp = session.get(url, headers={CSRF_HEADER: "Fetch"}, timeout=timeout)
    except requests.RequestException as exc:
        raise ConnectionFailedError(f"connection error: {exc}") from exc

    token = resp.headers.get(CSRF_HEADER, "")
    if not token:
        logger.warning(
            "No CSRF token returned by %s (HTTP %d)", tenant.key, resp.status_code
        )
    cookies = RequestsCookieJar()
    cookies.update(resp.cookies)
    return SessionContext(csrf_token=token, cookies=cookies)
