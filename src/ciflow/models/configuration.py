"""Externalized configuration parameters of an integration flow."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ciflow.models.odata import unwrap_results, wrap_results

_PARAMETER_RE = re.compile(r"^Key=(?P<key>.*?),Value=(?P<value>.*)$", re.DOTALL)


@dataclass(frozen=True)
class ConfigurationParameter:
    """One key/value pair; ``data_type`` is passed through untouched (e.g. ``xsd:string``)."""

    key: str
    value: str
    data_type: str = ""

    @classmethod
    def from_odata(cls, entity: dict[str, Any]) -> ConfigurationParameter:
        return cls(
            key=entity.get("ParameterKey") or "",
            value=entity.get("ParameterValue") or "",
            data_type=entity.get("DataType") or "",
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "ParameterKey": self.key,
            "ParameterValue": self.value,
            "DataType": self.data_type,
        }

    def update_body(self) -> dict[str, str]:
        """Body of the PUT that sets this parameter."""
        return {"ParameterValue": self.value, "DataType": self.data_type}


def parse_parameter(text: str) -> ConfigurationParameter:
    """Parse the command-line form ``Key=<key>,Value=<value>``."""
    match = _PARAMETER_RE.match(text)
    if match is None or not match.group("key"):
        raise ValueError(f"invalid parameter {text!r}, expected Key=<key>,Value=<value>")
    return ConfigurationParameter(key=match.group("key"), value=match.group("value"))


def parameters_to_json(parameters: list[ConfigurationParameter]) -> str:
    """Render parameters in the format :func:`load_parameters` reads back."""
    return json.dumps(wrap_results([p.to_dict() for p in parameters]), indent="\t")


def load_parameters(path: str | Path) -> list[ConfigurationParameter]:
    """Read parameters from a file in the ``describe-configs`` output format."""
    with Path(path).open(encoding="utf-8") as fh:
        payload = json.load(fh)
    return [ConfigurationParameter.from_odata(item) for item in unwrap_results(payload)]
