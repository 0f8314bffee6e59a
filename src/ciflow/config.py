"""Tenant configuration and the configuration file that holds it.

The engine only ever receives resolved :class:`TenantConfiguration` values.
Finding and reading the file is the command-line layer's job and lives in
:func:`load_configuration_file`.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ciflow.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"
CONFIG_ENV_VAR = "CIFLOW_CONFIG"
LOG_LEVEL_ENV_VAR = "CIFLOW_LOG_LEVEL"

AUTH_OAUTH = "oauth"
AUTH_BASIC = "basic"


@dataclass(frozen=True)
class AuthorizationConfig:
    """How to authenticate against one tenant.

    ``type`` is ``oauth`` (client credentials) or ``basic``; only the fields
    belonging to that type are used.
    """

    type: str = ""
    username: str = ""
    password: str = ""
    client_id: str = ""
    client_secret: str = ""
    token_url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthorizationConfig:
        return cls(
            type=str(data.get("Type", "")).lower(),
            username=data.get("Username", ""),
            password=data.get("Password", ""),
            client_id=data.get("ClientID", ""),
            client_secret=data.get("ClientSecret", ""),
            token_url=data.get("TokenURL", ""),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "Type": self.type,
            "Username": self.username,
            "Password": self.password,
            "ClientID": self.client_id,
            "ClientSecret": self.client_secret,
            "TokenURL": self.token_url,
        }


@dataclass(frozen=True)
class TenantConfiguration:
    """One tenant of the integration service: its key, API root and credentials.

    ``verify_ssl`` is off only for test tenants behind self-signed certificates.
    """

    key: str
    api_url: str
    authorization: AuthorizationConfig = field(default_factory=AuthorizationConfig)
    verify_ssl: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TenantConfiguration:
        return cls(
            key=data.get("Key", ""),
            api_url=str(data.get("ApiURL", "")).rstrip("/"),
            authorization=AuthorizationConfig.from_dict(data.get("Authorization") or {}),
            verify_ssl=bool(data.get("VerifySSL", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "Key": self.key,
            "ApiURL": self.api_url,
            "Authorization": self.authorization.to_dict(),
            "VerifySSL": self.verify_ssl,
        }


@dataclass(frozen=True)
class ConfigurationFile:
    """Parsed contents of ``config.json``."""

    active_tenant_key: str = ""
    tenants: tuple[TenantConfiguration, ...] = ()
    path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: Path | None = None) -> ConfigurationFile:
        tenants = tuple(TenantConfiguration.from_dict(t) for t in data.get("Tenants") or [])
        return cls(
            active_tenant_key=data.get("ActiveTenantKey", ""),
            tenants=tenants,
            path=path,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ActiveTenantKey": self.active_tenant_key,
            "Tenants": [t.to_dict() for t in self.tenants],
        }

    def tenant(self, key: str | None = None) -> TenantConfiguration:
        """Return the tenant named *key*, or the active tenant when *key* is empty."""
        wanted = key or self.active_tenant_key
        if not wanted:
            raise ConfigurationError("no tenant key given and ActiveTenantKey is not set")

        for tenant in self.tenants:
            if tenant.key == wanted:
                if not tenant.api_url:
                    raise ConfigurationError(
                        f"tenant {wanted!r} has no ApiURL in the configuration file"
                    )
                return tenant

        known = ", ".join(t.key for t in self.tenants) or "none"
        raise ConfigurationError(f"tenant {wanted!r} not found (configured: {known})")


def default_config_paths() -> list[Path]:
    """Candidate locations, in lookup order, when no path is given."""
    paths = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        paths.append(Path(env_path))
    paths.append(Path.cwd() / CONFIG_FILE_NAME)
    paths.append(Path.home() / ".cig" / CONFIG_FILE_NAME)
    return paths


def load_configuration_file(path: str | Path | None = None) -> ConfigurationFile:
    """Read the configuration file.

    With no *path*, the ``CIFLOW_CONFIG`` variable, ``./config.json`` and
    ``~/.cig/config.json`` are tried in that order.
    """
    candidates = [Path(path)] if path else default_config_paths()

    for candidate in candidates:
        if not candidate.is_file():
            logger.debug("No configuration file at %s", candidate)
            continue

        logger.info("Config file path: %s", candidate)
        try:
            with candidate.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"error reading {candidate}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError(f"{candidate} does not contain a JSON object")
        return ConfigurationFile.from_dict(data, path=candidate)

    searched = ", ".join(str(c) for c in candidates)
    raise ConfigurationError(f"error opening {CONFIG_FILE_NAME}: searched {searched}")


def configuration_template() -> ConfigurationFile:
    """A configuration file with one OAuth and one basic-auth tenant to fill in."""
    return ConfigurationFile(
        active_tenant_key="dev",
        tenants=(
            TenantConfiguration(
                key="dev",
                api_url="https://<tenant>.it-cpi.cfapps.eu10.hana.ondemand.com/api/v1",
                authorization=AuthorizationConfig(
                    type=AUTH_OAUTH,
                    client_id="<client id>",
                    client_secret="<client secret>",
                    token_url="https://<subdomain>.authentication.eu10.hana.ondemand.com/oauth/token",
                ),
            ),
            TenantConfiguration(
                key="qa",
                api_url="https://<tenant>.hana.ondemand.com/api/v1",
                authorization=AuthorizationConfig(
                    type=AUTH_BASIC,
                    username="<user>",
                    password="<password>",
                ),
            ),
        ),
    )


def write_configuration_file(config: ConfigurationFile, path: str | Path) -> Path:
    """Write *config* as JSON; refuses to overwrite an existing file."""
    target = Path(path)
    try:
        with target.open("x", encoding="utf-8") as fh:
            json.dump(config.to_dict(), fh, indent=2)
            fh.write("\n")
    except OSError as exc:
        raise ConfigurationError(f"cannot write {target}: {exc}") from exc
    return target


def configure_logging(level: str | None = None) -> None:
    """Set up logging; *level* falls back to ``CIFLOW_LOG_LEVEL`` then WARNING."""
    name = level or os.environ.get(LOG_LEVEL_ENV_VAR, "WARNING")
    logging.basicConfig(
        level=getattr(logging, name.upper(), logging.WARNING),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
