"""Move an integration flow between tenants, or copy it within one.

A transport runs once through these steps and stops at the first error:

1. inspect the source flow (active version)
2. download its archive into a private temporary directory
3. if the destination id differs, rewrite the archive's identity
4. look the destination flow up (best effort)
5. update the destination if it exists, create it otherwise
6. write a summary to the caller's output

The temporary directory, and every archive in it, is removed however the
transport ends. Nothing is rolled back on the destination tenant.
"""

from __future__ import annotations

import json
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from ciflow.archive import adjust_identity
from ciflow.client.api import IntegrationClient
from ciflow.config import TenantConfiguration
from ciflow.errors import CIFlowError, NotFoundError
from ciflow.models.flow import ACTIVE_VERSION, IntegrationFlow

logger = logging.getLogger(__name__)

_DOWNLOAD_FILE_NAME = "download.zip"


@dataclass(frozen=True)
class TransportResult:
    """What a transport or copy did on the destination tenant."""

    flow_id: str
    bytes_transferred: int
    created: bool
    renamed: bool
    name: str
    package_id: str
    response: str = ""

    @property
    def updated(self) -> bool:
        return not self.created


@dataclass(frozen=True)
class _DownloadedFlow:
    flow: IntegrationFlow
    archive: Path
    size: int
    renamed: bool


def _fetch_archive(
    out: TextIO,
    client: IntegrationClient,
    source_flow_id: str,
    destination_flow_id: str,
    workdir: Path,
) -> _DownloadedFlow:
    """Steps 1-3: inspect, download and, when the ids differ, rename."""
    source_flow = client.inspect_flow(source_flow_id, ACTIVE_VERSION)

    archive = workdir / _DOWNLOAD_FILE_NAME
    with archive.open("xb") as sink:
        size = client.download_flow(source_flow_id, sink, ACTIVE_VERSION)
    out.write(f"Content downloaded.\nnumber of bytes: {size}\n")

    renamed = source_flow_id != destination_flow_id
    if renamed:
        archive = adjust_identity(archive, source_flow_id, destination_flow_id, workdir)
        out.write(f"Archive identity changed from {source_flow_id} to {destination_flow_id}\n")

    return _DownloadedFlow(flow=source_flow, archive=archive, size=size, renamed=renamed)


def _lookup_destination(
    client: IntegrationClient, flow_id: str, strict: bool
) -> IntegrationFlow | None:
    """Step 4: the destination flow, or None when it cannot be found.

    Any error means "does not exist yet" unless *strict* is set, in which
    case only a 404 does.
    """
    try:
        return client.inspect_flow(flow_id, ACTIVE_VERSION)
    except NotFoundError:
        logger.info("Flow %s does not exist on %s yet", flow_id, client.tenant.key)
        return None
    except CIFlowError as exc:
        if strict:
            raise
        logger.warning(
            "Lookup of flow %s on %s failed, treating it as absent: %s",
            flow_id,
            client.tenant.key,
            exc,
        )
        return None


def _create(
    out: TextIO,
    client: IntegrationClient,
    downloaded: _DownloadedFlow,
    flow_id: str,
    name: str | None,
    package_id: str | None,
) -> TransportResult:
    if not name:
        name = downloaded.flow.name
        out.write(f"Destination flow name not given, using the source name: {name}\n")
    if not package_id:
        package_id = downloaded.flow.package_id
        out.write(f"Destination package not given, using the source package: {package_id}\n")

    with downloaded.archive.open("rb") as content:
        created = client.create_flow(name, flow_id, package_id, content)

    response = json.dumps({"d": created.to_dict()}, indent="\t")
    out.write("Integration flow created.\n")
    out.write(response + "\n")
    return TransportResult(
        flow_id=created.id or flow_id,
        bytes_transferred=downloaded.size,
        created=True,
        renamed=downloaded.renamed,
        name=name,
        package_id=package_id,
        response=response,
    )


def _update(
    out: TextIO,
    client: IntegrationClient,
    downloaded: _DownloadedFlow,
    existing: IntegrationFlow,
    name: str | None,
) -> TransportResult:
    if not name:
        name = existing.name
        out.write(f"Destination flow name not given, keeping the existing name: {name}\n")

    with downloaded.archive.open("rb") as content:
        response = client.update_flow(name, existing.id, ACTIVE_VERSION, content)

    out.write(f"Integration flow updated: {existing.id}\n")
    if response.strip():
        out.write(f"Response: {response}\n")
    return TransportResult(
        flow_id=existing.id,
        bytes_transferred=downloaded.size,
        created=False,
        renamed=downloaded.renamed,
        name=name,
        package_id=existing.package_id,
        response=response,
    )


def transport_flow(
    out: TextIO,
    source: TenantConfiguration,
    source_flow_id: str,
    destination: TenantConfiguration,
    destination_flow_id: str,
    destination_flow_name: str | None = None,
    destination_package_id: str | None = None,
    strict: bool = False,
    timeout: float | None = None,
) -> TransportResult:
    """Publish the active version of a source flow on the destination tenant.

    The destination is updated when it already has *destination_flow_id*
    and created otherwise. Name and package default to the existing
    destination's name (update) or the source's name and package (create).
    """
    logger.info(
        "Transporting %s from %s to %s on %s",
        source_flow_id,
        source.key,
        destination_flow_id,
        destination.key,
    )
    with (
        IntegrationClient(source, timeout=timeout) as source_client,
        IntegrationClient(destination, timeout=timeout) as destination_client,
        tempfile.TemporaryDirectory(prefix="ciflow-") as workdir,
    ):
        downloaded = _fetch_archive(
            out, source_client, source_flow_id, destination_flow_id, Path(workdir)
        )

        existing = _lookup_destination(destination_client, destination_flow_id, strict)
        if existing is not None and existing.id:
            return _update(out, destination_client, downloaded, existing, destination_flow_name)

        return _create(
            out,
            destination_client,
            downloaded,
            destination_flow_id,
            destination_flow_name,
            destination_package_id,
        )


def copy_flow(
    out: TextIO,
    tenant: TenantConfiguration,
    source_flow_id: str,
    destination_flow_id: str,
    destination_flow_name: str | None = None,
    destination_package_id: str | None = None,
    timeout: float | None = None,
) -> TransportResult:
    """Create a copy of a flow under a new id on the same tenant."""
    if source_flow_id == destination_flow_id:
        raise ValueError("the copy needs a destination id different from the source id")

    with (
        IntegrationClient(tenant, timeout=timeout) as client,
        tempfile.TemporaryDirectory(prefix="ciflow-") as workdir,
    ):
        downloaded = _fetch_archive(
            out, client, source_flow_id, destination_flow_id, Path(workdir)
        )
        return _create(
            out,
            client,
            downloaded,
            destination_flow_id,
            destination_flow_name,
            destination_package_id,
        )
