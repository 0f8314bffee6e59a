"""Render service responses for the terminal."""

from __future__ import annotations

import json
from typing import Any, TextIO

from rich.console import Console
from rich.table import Table

from ciflow.models.configuration import ConfigurationParameter, parameters_to_json
from ciflow.models.flow import IntegrationFlow
from ciflow.models.package import IntegrationPackage

_MAX_NAME = 50
_MAX_DESCRIPTION = 40


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _console(out: TextIO) -> Console:
    return Console(file=out, soft_wrap=True)


def print_packages(out: TextIO, packages: list[IntegrationPackage]) -> None:
    table = Table(show_edge=False)
    for header in ("Id", "Name", "Version", "Vendor", "Mode", "CreatedBy"):
        table.add_column(header)
    for pkg in packages:
        table.add_row(pkg.id, pkg.name, pkg.version, pkg.vendor, pkg.mode, pkg.created_by)
    _console(out).print(table)


def print_flows(out: TextIO, flows: list[IntegrationFlow]) -> None:
    table = Table(show_edge=False)
    for header in ("Id", "Version", "PackageId", "Name", "Description"):
        table.add_column(header)
    for flow in flows:
        table.add_row(
            flow.id,
            flow.version,
            flow.package_id,
            _truncate(flow.name, _MAX_NAME),
            _truncate(flow.description, _MAX_DESCRIPTION),
        )
    _console(out).print(table)


def print_entity(out: TextIO, entity: dict[str, Any]) -> None:
    """Indented JSON in the service's ``{"d": ...}`` shape."""
    out.write(json.dumps({"d": entity}, indent="\t") + "\n")


def print_configurations(out: TextIO, parameters: list[ConfigurationParameter]) -> None:
    out.write(parameters_to_json(parameters) + "\n")
