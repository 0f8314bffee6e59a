"""Domain models for integration packages, flows and their configuration."""

from ciflow.models.configuration import (
    ConfigurationParameter,
    load_parameters,
    parameters_to_json,
    parse_parameter,
)
from ciflow.models.flow import ACTIVE_VERSION, IntegrationFlow
from ciflow.models.package import IntegrationPackage

__all__ = [
    "ACTIVE_VERSION",
    "ConfigurationParameter",
    "IntegrationFlow",
    "IntegrationPackage",
    "load_parameters",
    "parameters_to_json",
    "parse_parameter",
]
