"""Client for the Cloud Integration design-time OData API.

One :class:`IntegrationClient` talks to one tenant. Read calls are plain
GETs; every POST/PUT first performs a fresh CSRF handshake and replays the
token and cookies it returned.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import IO, Any

import requests

from ciflow.batch import build_configuration_batch, configuration_path
from ciflow.client.session import SessionContext, build_session, fetch_session_context
from ciflow.config import TenantConfiguration
from ciflow.errors import (
    ConnectionFailedError,
    InvalidResponseError,
    ResponseReadError,
    raise_for_response,
)
from ciflow.models.configuration import ConfigurationParameter
from ciflow.models.flow import ACTIVE_VERSION, IntegrationFlow
from ciflow.models.odata import quote_literal, unwrap_entity, unwrap_results
from ciflow.models.package import IntegrationPackage

logger = logging.getLogger(__name__)

_DOWNLOAD_CHUNK_BYTES = 64 * 1024


def artifact_path(flow_id: str, version: str = ACTIVE_VERSION) -> str:
    return (
        f"IntegrationDesigntimeArtifacts(Id={quote_literal(flow_id)},"
        f"Version={quote_literal(version)})"
    )


def package_path(package_id: str) -> str:
    return f"IntegrationPackages({quote_literal(package_id)})"


def _encode_content(content: IO[bytes] | None) -> str:
    """Base64 of the whole stream; empty string when there is no content."""
    if content is None:
        return ""
    return base64.b64encode(content.read()).decode("ascii")


def _decode(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise InvalidResponseError(resp.status_code, resp.text) from exc


def _entity(resp: requests.Response) -> dict[str, Any]:
    """The single entity of a 2xx OData response."""
    try:
        return unwrap_entity(_decode(resp))
    except ValueError as exc:
        raise InvalidResponseError(resp.status_code, resp.text) from exc


def _results(resp: requests.Response) -> list[dict[str, Any]]:
    try:
        return unwrap_results(_decode(resp))
    except ValueError as exc:
        raise InvalidResponseError(resp.status_code, resp.text) from exc


class IntegrationClient:
    """Design-time API operations against one tenant.

    Attributes:
        tenant: The tenant this client is bound to.
        session: Authenticated session built from the tenant's credentials.
    """

    def __init__(
        self,
        tenant: TenantConfiguration,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.tenant = tenant
        self._timeout = timeout
        self.session = session if session is not None else build_session(tenant, timeout)

    def __enter__(self) -> IntegrationClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    # ── Request plumbing ────────────────────────────────────────────────

    def _url(self, path: str) -> str:
        return f"{self.tenant.api_url}/{path}"

    def _request(
        self,
        method: str,
        path: str,
        context: SessionContext | None = None,
        check: bool = True,
        **kwargs: Any,
    ) -> requests.Response:
        url = self._url(path)
        logger.info("%s %s", method, url)

        if context is not None:
            headers = dict(kwargs.pop("headers", None) or {})
            headers.update(context.headers())
            kwargs["headers"] = headers
            kwargs["cookies"] = context.cookies

        try:
            resp = self.session.request(method, url, timeout=self._timeout, **kwargs)
        except (
            requests.exceptions.ChunkedEncodingError,
            requests.exceptions.ContentDecodingError,
        ) as exc:
            raise ResponseReadError(f"cannot read body: {exc}") from exc
        except requests.RequestException as exc:
            raise ConnectionFailedError(f"connection error: {exc}") from exc

        logger.debug("%s %s -> HTTP %d", method, url, resp.status_code)
        if check:
            raise_for_response(resp)
        return resp

    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Mutating request with a freshly fetched CSRF token."""
        context = fetch_session_context(self.session, self.tenant, self._timeout)
        return self._request(method, path, context=context, **kwargs)

    def _stream_to(self, path: str, sink: IO[bytes]) -> int:
        resp = self._request("GET", path, check=False, stream=True)
        written = 0
        try:
            raise_for_response(resp)
            for chunk in resp.iter_content(chunk_size=_DOWNLOAD_CHUNK_BYTES):
                sink.write(chunk)
                written += len(chunk)
        except requests.RequestException as exc:
            raise ResponseReadError(f"cannot read body: {exc}") from exc
        finally:
            resp.close()
        return written

    # ── Packages ────────────────────────────────────────────────────────

    def list_packages(self) -> list[IntegrationPackage]:
        resp = self._request("GET", "IntegrationPackages")
        return [IntegrationPackage.from_odata(e) for e in _results(resp)]

    def inspect_package(self, package_id: str) -> IntegrationPackage:
        resp = self._request("GET", package_path(package_id))
        return IntegrationPackage.from_odata(_entity(resp))

    def list_package_flows(self, package_id: str) -> list[IntegrationFlow]:
        resp = self._request("GET", f"{package_path(package_id)}/IntegrationDesigntimeArtifacts")
        return [IntegrationFlow.from_odata(e) for e in _results(resp)]

    def download_package(self, package_id: str, sink: IO[bytes]) -> int:
        """Stream the package zip into *sink*.

        The service refuses packages that hold artifacts in draft state.
        """
        return self._stream_to(f"{package_path(package_id)}/$value", sink)

    # ── Flows ───────────────────────────────────────────────────────────

    def inspect_flow(self, flow_id: str, version: str = ACTIVE_VERSION) -> IntegrationFlow:
        resp = self._request("GET", artifact_path(flow_id, version))
        return IntegrationFlow.from_odata(_entity(resp))

    def download_flow(
        self, flow_id: str, sink: IO[bytes], version: str = ACTIVE_VERSION
    ) -> int:
        """Stream the flow's zip content into *sink* and return the byte count."""
        return self._stream_to(f"{artifact_path(flow_id, version)}/$value", sink)

    def create_flow(
        self,
        name: str,
        flow_id: str,
        package_id: str,
        content: IO[bytes] | None = None,
    ) -> IntegrationFlow:
        """Create a flow; without *content* the service creates an empty flow."""
        body = {"Name": name, "Id": flow_id, "PackageId": package_id}
        encoded = _encode_content(content)
        if encoded:
            body["ArtifactContent"] = encoded

        resp = self._send("POST", "IntegrationDesigntimeArtifacts", json=body)
        return IntegrationFlow.from_odata(_entity(resp))

    def update_flow(
        self,
        name: str,
        flow_id: str,
        version: str = ACTIVE_VERSION,
        content: IO[bytes] | None = None,
    ) -> str:
        """Rename a flow and, when *content* is given, replace its artifact."""
        body = {"Name": name}
        encoded = _encode_content(content)
        if encoded:
            body["ArtifactContent"] = encoded

        resp = self._send("PUT", artifact_path(flow_id, version), json=body)
        return resp.text

    def deploy_flow(self, flow_id: str, version: str = ACTIVE_VERSION) -> str:
        """Trigger deployment; returns the task id used to poll the deploy status."""
        path = (
            f"DeployIntegrationDesigntimeArtifact"
            f"?Id={quote_literal(flow_id)}&Version={quote_literal(version)}"
        )
        resp = self._send("POST", path)
        return resp.text

    # ── Configuration parameters ────────────────────────────────────────

    def get_flow_configurations(
        self, flow_id: str, version: str = ACTIVE_VERSION
    ) -> list[ConfigurationParameter]:
        resp = self._request("GET", f"{artifact_path(flow_id, version)}/Configurations")
        return [ConfigurationParameter.from_odata(e) for e in _results(resp)]

    def update_flow_configuration(
        self,
        flow_id: str,
        parameter: ConfigurationParameter,
        version: str = ACTIVE_VERSION,
    ) -> str:
        path = configuration_path(flow_id, parameter.key, version)
        resp = self._send("PUT", path, json=parameter.update_body())
        return resp.text

    def update_flow_configurations(
        self,
        flow_id: str,
        parameters: list[ConfigurationParameter],
        version: str = ACTIVE_VERSION,
        batch: bool = True,
    ) -> str:
        """Set several parameters, in one ``$batch`` round trip by default.

        With ``batch=False`` each parameter is sent as its own PUT and the
        response bodies are joined.
        """
        if not parameters:
            raise ValueError("no configuration parameters to update")

        if not batch:
            bodies = [self.update_flow_configuration(flow_id, p, version) for p in parameters]
            return "\n".join(bodies) + "\n"

        builder = build_configuration_batch(flow_id, parameters, version)
        logger.info(
            "Updating %d configuration parameters of %s in one batch", len(builder), flow_id
        )
        resp = self._send(
            "POST",
            "$batch",
            data=builder.build().encode("utf-8"),
            headers={"Content-Type": builder.content_type},
        )
        return resp.text + "\n"

    # ── Resources ───────────────────────────────────────────────────────

    def update_resource(
        self,
        flow_id: str,
        resource_file: str | Path,
        resource_name: str = "",
        resource_type: str = "groovy",
        version: str = ACTIVE_VERSION,
    ) -> None:
        """Replace a flow resource (script, mapping, schema...) with a local file."""
        resource_file = Path(resource_file)
        name = resource_name or resource_file.name
        with resource_file.open("rb") as fh:
            body = {"ResourceContent": _encode_content(fh)}

        path = (
            f"{artifact_path(flow_id, version)}/$links/Resources("
            f"Name={quote_literal(name)},ResourceType={quote_literal(resource_type)})"
        )
        self._send("PUT", path, json=body)
