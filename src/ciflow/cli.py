"""Command-line entrypoint.

Usage::

    ciflow package ls
    ciflow -t dev flow transport PurchaseOrder PurchaseOrder -d qa
    ciflow flow update-configs PurchaseOrder -p Key=bodySize,Value=105
"""

from __future__ import annotations

import functools
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from ciflow import __version__
from ciflow.client.api import IntegrationClient
from ciflow.config import (
    CONFIG_FILE_NAME,
    ConfigurationFile,
    TenantConfiguration,
    configuration_template,
    configure_logging,
    load_configuration_file,
    write_configuration_file,
)
from ciflow.errors import CIFlowError
from ciflow.models import ACTIVE_VERSION, load_parameters, parse_parameter
from ciflow.printers import print_configurations, print_entity, print_flows, print_packages
from ciflow.transport import copy_flow, transport_flow

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class _State:
    """Configuration file and tenant selection shared by all sub-commands."""

    def __init__(self, config_path: Path | None, tenant_key: str | None) -> None:
        self.config_path = config_path
        self.tenant_key = tenant_key
        self._config: ConfigurationFile | None = None

    @property
    def config(self) -> ConfigurationFile:
        if self._config is None:
            self._config = load_configuration_file(self.config_path)
        return self._config

    def tenant(self, key: str | None = None) -> TenantConfiguration:
        return self.config.tenant(key or self.tenant_key)

    def client(self) -> IntegrationClient:
        return IntegrationClient(self.tenant())


pass_state = click.make_pass_decorator(_State)


def _handle_errors(func: F) -> F:
    """Turn engine errors into a clean exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (CIFlowError, ValueError, OSError) as exc:
            logger.debug("Command failed", exc_info=True)
            raise click.ClickException(str(exc)) from exc

    return wrapper  # type: ignore[return-value]


def _download_to(path: Path, download: Callable[[Any], int]) -> int:
    """Run *download* into a new file; the file is removed if it fails."""
    with path.open("xb") as sink:
        try:
            return download(sink)
        except BaseException:
            sink.close()
            path.unlink(missing_ok=True)
            raise


# ── Root ────────────────────────────────────────────────────────────────


@click.group("ciflow")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Configuration file (default: $CIFLOW_CONFIG, ./{CONFIG_FILE_NAME}, ~/.cig/{CONFIG_FILE_NAME}).",
)
@click.option(
    "-t",
    "--tenant-key",
    default=None,
    help="Tenant key from the configuration file (default: ActiveTenantKey).",
)
@click.option(
    "--log-level",
    default=None,
    help="Logging level (overrides CIFLOW_LOG_LEVEL env var).",
)
@click.version_option(__version__, prog_name="ciflow")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, tenant_key: str | None, log_level: str | None) -> None:
    """Cloud Integration command-line tool for design-time artifacts."""
    configure_logging(log_level)
    ctx.obj = _State(config_path, tenant_key)


@cli.command("generate-config")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path(CONFIG_FILE_NAME),
    show_default=True,
    help="File to write.",
)
@_handle_errors
def generate_config(output: Path) -> None:
    """Write a configuration file template to fill in.

    Place the file in the working directory or in ~/.cig/.
    """
    path = write_configuration_file(configuration_template(), output)
    click.echo(f"Configuration template written to {path}")


# ── Packages ────────────────────────────────────────────────────────────


@cli.group("package")
def package() -> None:
    """Integration packages."""


@package.command("ls")
@click.argument("package_id", required=False)
@pass_state
@_handle_errors
def package_ls(state: _State, package_id: str | None) -> None:
    """List integration packages, or the flows of PACKAGE_ID."""
    with state.client() as client:
        if package_id:
            print_flows(sys.stdout, client.list_package_flows(package_id))
        else:
            print_packages(sys.stdout, client.list_packages())


@package.command("inspect")
@click.argument("package_id")
@pass_state
@_handle_errors
def package_inspect(state: _State, package_id: str) -> None:
    """Show the details of an integration package."""
    with state.client() as client:
        print_entity(sys.stdout, client.inspect_package(package_id).to_dict())


@package.command("download")
@click.argument("package_id")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Output file (default: <package-id>.zip).")
@pass_state
@_handle_errors
def package_download(state: _State, package_id: str, output: Path | None) -> None:
    """Download an integration package as a zip file.

    Fails when the package holds artifacts in draft state.
    """
    output = output or Path(f"{package_id}.zip")
    with state.client() as client:
        size = _download_to(output, lambda sink: client.download_package(package_id, sink))
    click.echo(f"{output} created\nnumber of bytes: {size}")


# ── Flows ───────────────────────────────────────────────────────────────


@cli.group("flow")
def flow() -> None:
    """Integration flows."""


@flow.command("inspect")
@click.argument("flow_id")
@click.option("-v", "--version", "version", default=ACTIVE_VERSION, show_default=True)
@pass_state
@_handle_errors
def flow_inspect(state: _State, flow_id: str, version: str) -> None:
    """Show an integration flow by id and version."""
    with state.client() as client:
        print_entity(sys.stdout, client.inspect_flow(flow_id, version).to_dict())


@flow.command("download")
@click.argument("flow_id")
@click.option("-v", "--version", "version", default=ACTIVE_VERSION, show_default=True)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Output file (default: <flow-id>.zip).")
@pass_state
@_handle_errors
def flow_download(state: _State, flow_id: str, version: str, output: Path | None) -> None:
    """Download the content of an integration flow as a zip file."""
    output = output or Path(f"{flow_id}.zip")
    with state.client() as client:
        size = _download_to(output, lambda sink: client.download_flow(flow_id, sink, version))
    click.echo(f"Content downloaded.\nnumber of bytes: {size}")


@flow.command("create")
@click.option("-n", "--name", required=True, help="Integration flow name.")
@click.option("-i", "--id", "flow_id", required=True, help="Integration flow id.")
@click.option("-p", "--package-id", required=True, help="Id of the owning package.")
@click.option("-f", "--content-file-name", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Flow content (.zip); omit to create an empty flow.")
@pass_state
@_handle_errors
def flow_create(
    state: _State, name: str, flow_id: str, package_id: str, content_file_name: Path | None
) -> None:
    """Create or upload an integration flow."""
    with state.client() as client:
        if content_file_name is None:
            created = client.create_flow(name, flow_id, package_id)
        else:
            with content_file_name.open("rb") as content:
                created = client.create_flow(name, flow_id, package_id, content)
    print_entity(sys.stdout, created.to_dict())


@flow.command("update")
@click.option("-n", "--name", required=True, help="Integration flow name.")
@click.option("-i", "--id", "flow_id", required=True, help="Integration flow id.")
@click.option("-v", "--version", "version", default=ACTIVE_VERSION, show_default=True)
@click.option("-f", "--content-file-name", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="New flow content (.zip); omit to only rename.")
@pass_state
@_handle_errors
def flow_update(
    state: _State, name: str, flow_id: str, version: str, content_file_name: Path | None
) -> None:
    """Update the name and content of an integration flow."""
    with state.client() as client:
        if content_file_name is None:
            client.update_flow(name, flow_id, version)
        else:
            with content_file_name.open("rb") as content:
                client.update_flow(name, flow_id, version, content)
    click.echo(f"Integration flow: {flow_id} updated")


@flow.command("deploy")
@click.argument("flow_id")
@click.option("-v", "--version", "version", default=ACTIVE_VERSION, show_default=True)
@pass_state
@_handle_errors
def flow_deploy(state: _State, flow_id: str, version: str) -> None:
    """Deploy an integration flow."""
    with state.client() as client:
        task_id = client.deploy_flow(flow_id, version)
    click.echo(f"Task ID:\n{task_id}")


@flow.command("copy")
@click.argument("source_flow_id")
@click.argument("destination_flow_id")
@click.option("-n", "--dest-flow-name", default=None, help="Name of the copy (default: source name).")
@click.option("-p", "--dest-package-id", default=None, help="Package of the copy (default: source package).")
@pass_state
@_handle_errors
def flow_copy(
    state: _State,
    source_flow_id: str,
    destination_flow_id: str,
    dest_flow_name: str | None,
    dest_package_id: str | None,
) -> None:
    """Copy an integration flow within the tenant."""
    copy_flow(
        sys.stdout,
        state.tenant(),
        source_flow_id,
        destination_flow_id,
        dest_flow_name,
        dest_package_id,
    )


@flow.command("transport")
@click.argument("source_flow_id")
@click.argument("destination_flow_id")
@click.option("-d", "--dest-tenant-key", required=True, help="Destination tenant key from the configuration file.")
@click.option("-n", "--dest-flow-name", default=None, help="Destination flow name.")
@click.option("-p", "--dest-package-id", default=None, help="Destination package id.")
@click.option("--strict", is_flag=True, default=False,
              help="Abort when the destination lookup fails for any reason other than 404.")
@pass_state
@_handle_errors
def flow_transport(
    state: _State,
    source_flow_id: str,
    destination_flow_id: str,
    dest_tenant_key: str,
    dest_flow_name: str | None,
    dest_package_id: str | None,
    strict: bool,
) -> None:
    """Transport an integration flow between tenants."""
    transport_flow(
        sys.stdout,
        state.tenant(),
        source_flow_id,
        state.tenant(dest_tenant_key),
        destination_flow_id,
        dest_flow_name,
        dest_package_id,
        strict=strict,
    )


@flow.command("describe-configs")
@click.argument("flow_id")
@click.option("-v", "--version", "version", default=ACTIVE_VERSION, show_default=True)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Also save the parameters to this file (usable with update-configs -f).")
@pass_state
@_handle_errors
def flow_describe_configs(state: _State, flow_id: str, version: str, output: Path | None) -> None:
    """Show the configuration parameters of an integration flow."""
    with state.client() as client:
        parameters = client.get_flow_configurations(flow_id, version)
    print_configurations(sys.stdout, parameters)
    if output is not None:
        with output.open("x", encoding="utf-8") as fh:
            print_configurations(fh, parameters)
        logger.info("Configuration written to %s", output)


@flow.command("update-configs")
@click.argument("flow_id")
@click.option("-p", "--parameter", "parameters", multiple=True,
              help="Parameter in the form Key=<key>,Value=<value>; repeatable.")
@click.option("-f", "--input-file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="File in the describe-configs output format.")
@click.option("-v", "--version", "version", default=ACTIVE_VERSION, show_default=True)
@click.option("--batch/--no-batch", default=True, show_default=True,
              help="Send all parameters in one $batch request.")
@pass_state
@_handle_errors
def flow_update_configs(
    state: _State,
    flow_id: str,
    parameters: tuple[str, ...],
    input_file: Path | None,
    version: str,
    batch: bool,
) -> None:
    """Update configuration parameters of an integration flow."""
    all_parameters = load_parameters(input_file) if input_file else []
    all_parameters.extend(parse_parameter(p) for p in parameters)

    with state.client() as client:
        response = client.update_flow_configurations(flow_id, all_parameters, version, batch=batch)
    click.echo(response, nl=False)


# ── Resources ───────────────────────────────────────────────────────────


@cli.group("resource")
def resource() -> None:
    """Resources (scripts, mappings, schemas) of integration flows."""


@resource.command("update")
@click.argument("resource_name", required=False, default="")
@click.option("-i", "--flow-id", required=True, help="Integration flow id.")
@click.option("-v", "--flow-version", default=ACTIVE_VERSION, show_default=True)
@click.option("-y", "--resource-type", default="groovy", show_default=True,
              help="edmx, groovy, jar, js, mmap, opmap, wsdl, xsd or xslt.")
@click.option("-f", "--resource-file-name", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              required=True, help="Local resource file.")
@pass_state
@_handle_errors
def resource_update(
    state: _State,
    resource_name: str,
    flow_id: str,
    flow_version: str,
    resource_type: str,
    resource_file_name: Path,
) -> None:
    """Replace a resource of an integration flow with a local file.

    RESOURCE_NAME defaults to the file name.
    """
    with state.client() as client:
        client.update_resource(
            flow_id, resource_file_name, resource_name, resource_type, flow_version
        )
    click.echo(f"Resource {resource_name or resource_file_name.name} of {flow_id} updated")


def main() -> None:
    cli(prog_name="ciflow")


if __name__ == "__main__":
    main()
