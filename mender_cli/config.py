"""Configuration loader for mender-cli."""

from __future__ import annotations

import os
import ssl
from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urlparse

from . import constants


class ConfigError(ValueError):
    """Raised when the resolved configuration cannot be used."""


@dataclass(slots=True)
class ServerConfig:
    url: str = constants.DEFAULT_SERVER_URL
    token: str = ""
    cert_file: Optional[Path] = None  # CA bundle for self-signed servers
    timeout_seconds: float = constants.DEFAULT_TIMEOUT_SECONDS


@dataclass(slots=True)
class InventoryConfig:
    serial_attribute: str = constants.DEFAULT_SERIAL_ATTRIBUTE
    artifact_attribute: str = constants.DEFAULT_ARTIFACT_ATTRIBUTE
    page_size: int = constants.DEFAULT_PAGE_SIZE


@dataclass(slots=True)
class LoggingConfig:
    level: str = "WARNING"
    path: Optional[Path] = None


@dataclass(slots=True)
class CliConfig:
    server: ServerConfig
    inventory: InventoryConfig
    logging: LoggingConfig
    raw: ConfigParser
    path: Path
    env_overrides: list[str] = field(default_factory=list)

    @property
    def base_url(self) -> str:
        return self.server.url.rstrip("/")


def _optional_path(value: Optional[str]) -> Optional[Path]:
    if value is None or not value.strip():
        return None
    return Path(value.strip()).expanduser()


def load_config(
    path: Optional[Path] = None, *, environ: Optional[Mapping[str, str]] = None
) -> CliConfig:
    """Load configuration from disk and the environment, applying defaults."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    parser = ConfigParser(interpolation=None)
    parser.read_dict(
        {
            "server": {
                "url": constants.DEFAULT_SERVER_URL,
                "token": "",
                "cert_file": "",
                "timeout_seconds": str(constants.DEFAULT_TIMEOUT_SECONDS),
            },
            "inventory": {
                "serial_attribute": constants.DEFAULT_SERIAL_ATTRIBUTE,
                "artifact_attribute": constants.DEFAULT_ARTIFACT_ATTRIBUTE,
                "page_size": str(constants.DEFAULT_PAGE_SIZE),
            },
            "logging": {
                "level": "WARNING",
                "path": "",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    try:
        timeout_value = parser.getfloat(
            "server", "timeout_seconds", fallback=constants.DEFAULT_TIMEOUT_SECONDS
        )
        page_size_value = parser.getint(
            "inventory", "page_size", fallback=constants.DEFAULT_PAGE_SIZE
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid numeric value in {config_path}: {exc}") from exc

    server = ServerConfig(
        url=parser.get("server", "url").strip() or constants.DEFAULT_SERVER_URL,
        token=parser.get("server", "token", fallback="").strip(),
        cert_file=_optional_path(parser.get("server", "cert_file", fallback=None)),
        timeout_seconds=max(1.0, timeout_value),
    )

    inventory = InventoryConfig(
        serial_attribute=parser.get("inventory", "serial_attribute").strip()
        or constants.DEFAULT_SERIAL_ATTRIBUTE,
        artifact_attribute=parser.get("inventory", "artifact_attribute").strip()
        or constants.DEFAULT_ARTIFACT_ATTRIBUTE,
        page_size=max(1, min(constants.MAX_PAGE_SIZE, page_size_value)),
    )

    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="WARNING").strip().upper()
        or "WARNING",
        path=_optional_path(parser.get("logging", "path", fallback=None)),
    )

    config = CliConfig(
        server=server,
        inventory=inventory,
        logging=logging_config,
        raw=parser,
        path=config_path,
    )

    _apply_environment(config, env)
    validate_config(config)
    return config


def _apply_environment(config: CliConfig, env: Mapping[str, str]) -> None:
    url = env.get(constants.ENV_SERVER_URL, "").strip()
    if url:
        config.server.url = url
        config.env_overrides.append(constants.ENV_SERVER_URL)

    token = env.get(constants.ENV_TOKEN, "").strip()
    if token:
        config.server.token = token
        config.env_overrides.append(constants.ENV_TOKEN)

    cert_file = _optional_path(env.get(constants.ENV_CERT_FILE))
    if cert_file is not None:
        config.server.cert_file = cert_file
        config.env_overrides.append(constants.ENV_CERT_FILE)


def apply_overrides(
    config: CliConfig,
    *,
    server_url: Optional[str] = None,
    token: Optional[str] = None,
    cert_file: Optional[Path] = None,
) -> CliConfig:
    """Apply command-line overrides on top of the loaded configuration."""

    if server_url:
        config.server.url = server_url.strip()
    if token:
        config.server.token = token.strip()
    if cert_file is not None:
        config.server.cert_file = cert_file.expanduser()

    validate_config(config)
    return config


def validate_config(config: CliConfig) -> None:
    parsed = urlparse(config.server.url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(
            f"Server URL must be an http(s) URL, got {config.server.url!r}"
        )

    cert_file = config.server.cert_file
    if cert_file is None:
        return
    if not cert_file.is_file():
        raise ConfigError(f"Certificate file {cert_file} does not exist")
    try:
        ssl.create_default_context(cafile=str(cert_file))
    except (ssl.SSLError, OSError) as exc:
        raise ConfigError(
            f"Certificate file {cert_file} is not a usable CA bundle: {exc}"
        ) from exc


def store_token(config: CliConfig, token: str) -> None:
    """Record a freshly issued token so that save_config persists it.

    The token is only valid on the server that issued it, so the effective
    server URL and CA bundle are written alongside it.
    """

    config.server.token = token
    if not config.raw.has_section("server"):
        config.raw.add_section("server")
    config.raw.set("server", "token", token)
    config.raw.set("server", "url", config.server.url)
    if config.server.cert_file is not None:
        config.raw.set("server", "cert_file", str(config.server.cert_file))


def save_config(config: CliConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)

    # The file may hold an API token.
    if hasattr(os, "chmod"):
        os.chmod(config_path, 0o600)
