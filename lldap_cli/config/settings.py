"""Settings loader with config file, environment and CLI precedence.

Resolution is a pure merge over layers, lowest priority first:

    defaults < config file < environment < command-line flags

Each layer is a plain dict of the ``ClientConfig`` fields it knows about;
``merge_layers`` lets a later non-empty value override an earlier one.
"""
from __future__ import annotations
import logging
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

from lldap_cli.core.lldap.exceptions import ConfigError
from lldap_cli.core.lldap.password import DEFAULT_SET_PASSWORD_COMMAND

logger = logging.getLogger(__name__)

DEFAULT_HTTP_HOST = "localhost"
DEFAULT_HTTP_PORT = 17170
DEFAULT_HTTP_URL = f"http://{DEFAULT_HTTP_HOST}:{DEFAULT_HTTP_PORT}"
DEFAULT_CONFIG_FILE = "/etc/lldap.toml"

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


@dataclass(frozen=True)
class Endpoints:
    """API paths, relative to the server base URL."""
    login: str = "/auth/simple/login"
    graphql: str = "/api/graphql"
    logout: str = "/auth/logout"
    refresh: str = "/auth/refresh"


@dataclass(frozen=True)
class ClientConfig:
    """Resolved client configuration. Built once per invocation."""
    http_url: str = DEFAULT_HTTP_URL
    username: str = ""
    password: Optional[str] = None
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    endpoints: Endpoints = field(default_factory=Endpoints)

    # Diagnostics
    debug: bool = False
    audit_signing_key: Optional[str] = None

    # Uploads are confined to this directory when set
    upload_dir: Optional[str] = None

    set_password_command: str = DEFAULT_SET_PASSWORD_COMMAND

    def url_for(self, endpoint: str) -> str:
        """Absolute URL for one of the ``Endpoints`` fields."""
        return f"{self.http_url.rstrip('/')}{getattr(self.endpoints, endpoint)}"


_ENDPOINT_FIELDS = {f.name for f in fields(Endpoints)}
_CONFIG_FIELDS = {f.name for f in fields(ClientConfig)} | _ENDPOINT_FIELDS


def merge_layers(*layers: Mapping[str, Any]) -> dict[str, Any]:
    """Merge configuration layers; later layers win.

    ``None`` and empty strings never override, so an unset flag or an empty
    environment variable leaves the lower layer's value in place.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if key not in _CONFIG_FIELDS:
                raise ConfigError(f"Unknown configuration key: {key}")
            if value is None or value == "":
                continue
            merged[key] = value
    return merged


def _first_env(environ: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_config_file(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Read server address and admin credentials from an LLDAP TOML file.

    Recognised keys: ``http_host``, ``http_port``, ``ldap_user_dn`` and
    ``ldap_user_pass``, either at top level or in an ``[ldap]`` table.

    Returns:
        Configuration layer (empty if the file does not exist)

    Raises:
        ConfigError: If the file exists but cannot be read or parsed
    """
    config_path = Path(path)
    if not config_path.is_file():
        return {}

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to read config file {config_path}: {e}") from e

    ldap_section = data.get("ldap") if isinstance(data.get("ldap"), dict) else {}

    def lookup(key: str) -> Any:
        return ldap_section.get(key, data.get(key))

    layer: dict[str, Any] = {}
    host = data.get("http_host")
    port = data.get("http_port")
    if host or port:
        layer["http_url"] = f"http://{host or DEFAULT_HTTP_HOST}:{port or DEFAULT_HTTP_PORT}"
    if lookup("ldap_user_dn"):
        layer["username"] = str(lookup("ldap_user_dn"))
    if lookup("ldap_user_pass"):
        layer["password"] = str(lookup("ldap_user_pass"))
    return layer


def load_environment(environ: Mapping[str, str]) -> dict[str, Any]:
    """Configuration layer from ``LLDAP_*`` environment variables."""
    return {
        "http_url": _first_env(environ, "LLDAP_HTTP_URL", "LLDAP_HTTPURL"),
        "username": environ.get("LLDAP_USERNAME"),
        "password": environ.get("LLDAP_PASSWORD"),
        "token": environ.get("LLDAP_TOKEN"),
        "refresh_token": _first_env(environ, "LLDAP_REFRESH_TOKEN", "LLDAP_REFRESHTOKEN"),
        "login": environ.get("LLDAP_HTTPENDPOINT_AUTH"),
        "graphql": environ.get("LLDAP_HTTPENDPOINT_GRAPH"),
        "logout": environ.get("LLDAP_HTTPENDPOINT_LOGOUT"),
        "refresh": environ.get("LLDAP_HTTPENDPOINT_REFRESH"),
        "debug": _parse_bool(environ.get("LLDAP_DEBUG")),
        "upload_dir": environ.get("LLDAP_UPLOAD_DIR"),
        "audit_signing_key": environ.get("LLDAP_AUDIT_SIGNING_KEY"),
        "set_password_command": environ.get("LLDAP_SET_PASSWORD_BIN"),
    }


def _is_insecure_remote(http_url: str) -> bool:
    parsed = urlparse(http_url)
    return parsed.scheme == "http" and (parsed.hostname or "") not in _LOCAL_HOSTS


def build_config(cli_options: Optional[Mapping[str, Any]] = None,
                 environ: Optional[Mapping[str, str]] = None) -> ClientConfig:
    """Build the client configuration from all layers.

    Args:
        cli_options: Values from command-line flags; may include
            ``config_file`` to select the TOML file
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Immutable ClientConfig

    Raises:
        ConfigError: If no token is supplied and no username is configured
    """
    environ = os.environ if environ is None else environ
    cli = dict(cli_options or {})
    config_file = cli.pop("config_file", None) or environ.get("LLDAP_CONFIG") or DEFAULT_CONFIG_FILE

    merged = merge_layers(
        load_config_file(config_file),
        load_environment(environ),
        cli,
    )

    endpoints = Endpoints(**{k: merged.pop(k) for k in list(merged) if k in _ENDPOINT_FIELDS})
    config = ClientConfig(endpoints=endpoints, **merged)

    if not config.token and not config.refresh_token and not config.username:
        raise ConfigError(
            "Username is required. Set via -D option, LLDAP_USERNAME env var, or config file."
        )

    if _is_insecure_remote(config.http_url):
        logger.warning(
            "Using insecure HTTP connection to non-localhost server %s. "
            "Consider using HTTPS for production environments.", config.http_url
        )

    return config
