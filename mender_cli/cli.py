"""Command-line interface for mender-cli."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from . import constants, formatting
from .client import MenderApiError, MenderClient
from .config import CliConfig, ConfigError, apply_overrides, load_config, save_config, store_token
from .logging import configure_logging, level_for_verbosity
from .version import __version__

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUN_ERROR = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.APP_NAME,
        description="A small command line tool to perform tasks on a Mender server using its APIs.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--server", help="Mender server URL")
    parser.add_argument("--token", help="API token returned by the login command")
    parser.add_argument(
        "--cert-file", type=Path, help="CA certificate bundle for self-signed servers"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (repeatable)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    login_parser = subparsers.add_parser(
        "login", help="Return a token used in other subcommands"
    )
    login_parser.add_argument("email", help="User email used to login to the Mender server")
    login_parser.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin",
    )
    login_parser.add_argument(
        "--save",
        action="store_true",
        help="Store the token in the configuration file",
    )

    deploy_parser = subparsers.add_parser(
        "deploy", help="Deploy an artifact to every device of a group"
    )
    deploy_parser.add_argument("group", help="Device group to deploy to")
    deploy_parser.add_argument("artifact", help="Name of the artifact to deploy")
    deploy_parser.add_argument(
        "name", nargs="?", default="", help="Deployment name (default: artifact name)"
    )

    getid_parser = subparsers.add_parser(
        "getid", help="Return the Mender id of the device with the given serial number"
    )
    getid_parser.add_argument("serial_number", help="Serial number of the device")
    getid_parser.add_argument(
        "--attribute",
        help="Inventory attribute holding the serial number "
        f"(default: {constants.DEFAULT_SERIAL_ATTRIBUTE})",
    )

    getinfo_parser = subparsers.add_parser(
        "getinfo", help="Print the inventory of the device with the given Mender id"
    )
    getinfo_parser.add_argument("id", help="Mender id of the device")
    getinfo_parser.add_argument(
        "--json", action="store_true", help="Print the raw inventory record as JSON"
    )

    subparsers.add_parser(
        "count-artifacts", help="Count devices per installed artifact"
    )

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        apply_overrides(
            config,
            server_url=args.server,
            token=args.token,
            cert_file=args.cert_file,
        )
    except ConfigError as exc:
        configure_logging(level_for_verbosity("WARNING", args.verbose))
        LOGGER.error("Config error: %s", exc)
        return EXIT_CONFIG_ERROR

    configure_logging(
        level_for_verbosity(config.logging.level, args.verbose),
        log_path=config.logging.path,
        verbose_http=args.verbose >= 2,
    )

    if args.command == "show-config":
        _show_config(config)
        return EXIT_OK

    if args.command != "login" and not config.server.token:
        LOGGER.error(
            "Config error: no API token configured; run '%s login EMAIL' or set %s",
            constants.APP_NAME,
            constants.ENV_TOKEN,
        )
        return EXIT_CONFIG_ERROR

    try:
        handler = _HANDLERS[args.command]
        output = handler(config, args)
    except KeyboardInterrupt:
        LOGGER.error("Interrupted")
        return EXIT_INTERRUPTED
    except ValueError as exc:
        LOGGER.error("Config error: %s", exc)
        return EXIT_CONFIG_ERROR
    except (MenderApiError, aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
        LOGGER.error("Run error: %s", str(exc) or exc.__class__.__name__)
        return EXIT_RUN_ERROR

    print(output)
    return EXIT_OK


def _run(
    config: CliConfig, operation: Callable[[MenderClient], Awaitable[Any]]
) -> Any:
    async def runner() -> Any:
        async with MenderClient(config) as client:
            return await operation(client)

    return asyncio.run(runner())


def _read_password(from_stdin: bool) -> str:
    if from_stdin:
        return sys.stdin.readline().rstrip("\r\n")
    try:
        return getpass.getpass("Type password: ")
    except EOFError as exc:
        raise ValueError("No password provided") from exc


def _cmd_login(config: CliConfig, args: argparse.Namespace) -> str:
    password = _read_password(args.password_stdin)
    token = _run(config, lambda client: client.login(args.email, password))

    if args.save:
        store_token(config, token)
        save_config(config)
        LOGGER.info("Stored token in %s", config.path)

    return formatting.format_token(token)


def _cmd_deploy(config: CliConfig, args: argparse.Namespace) -> str:
    count = _run(
        config, lambda client: client.deploy(args.group, args.artifact, args.name)
    )
    return formatting.format_deployed(count)


def _cmd_getid(config: CliConfig, args: argparse.Namespace) -> str:
    device_id = _run(
        config,
        lambda client: client.get_id(args.serial_number, attribute=args.attribute),
    )
    return formatting.format_device_id(device_id)


def _cmd_getinfo(config: CliConfig, args: argparse.Namespace) -> str:
    payload = _run(config, lambda client: client.get_info(args.id))
    return formatting.format_device_info(payload, as_json=args.json)


def _cmd_count_artifacts(config: CliConfig, args: argparse.Namespace) -> str:
    counts = _run(config, lambda client: client.count_artifacts())
    return formatting.format_artifact_counts(counts)


_HANDLERS: dict[str, Callable[[CliConfig, argparse.Namespace], str]] = {
    "login": _cmd_login,
    "deploy": _cmd_deploy,
    "getid": _cmd_getid,
    "getinfo": _cmd_getinfo,
    "count-artifacts": _cmd_count_artifacts,
}


def _show_config(config: CliConfig) -> None:
    print(f"Configuration loaded from {config.path!s}\n")
    for section in config.raw.sections():
        print(f"[{section}]")
        for key, value in config.raw[section].items():
            if key == "token" and value:
                value = value[:8] + "..."
            print(f"{key} = {value}")
        print()

    if config.env_overrides:
        print("Overridden by environment: " + ", ".join(config.env_overrides))
    print(f"Effective server: {config.base_url}")


if __name__ == "__main__":
    sys.exit(main())
