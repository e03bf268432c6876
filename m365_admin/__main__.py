"""
M365 Admin CLI — Entry point

Usage:
    m365-admin aad o365group add -n Finance -d "Finance team" -m finance --owners a@contoso.com
    m365-admin graph schemaextension remove --id exttyee4dv5_MySchemaExtension
    m365-admin spo app uninstall --id <GUID> --site-url https://contoso.sharepoint.com
    m365-admin spo hubsite disconnect --url https://contoso.sharepoint.com/sites/Sales
    m365-admin spo sitescript set --id <GUID> --title "Contoso" --version 2

Connection options (any command):
    --profile <name>                # named connection profile
    --tenant-id X --client-id Y     # ad-hoc connection
    --config config.json            # JSON config file
    --delegated                     # device-code auth flow

Profile management:
    m365-admin profile add <name> --tenant-id ... --client-id ... [--spo-url ...]
    m365-admin profile list
    m365-admin profile remove <name>
    m365-admin profile set-default <name>
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sqlite3
import sys
from pathlib import Path
from typing import Any, Optional

from . import __version__
from . import config as cli_config
from .config import CliConfig, CertificateAuth, DelegatedAuth, OUTPUT_MODES
from .safety.guardian import SafetyGuardian
from .auth.authenticator import Authenticator
from .rest.client import RestClient
from .cache.store import ContextCache
from .commands import ALL_COMMANDS, BaseCommand, CommandContext
from .errors import CommandError, to_command_error
from .output import format_output
from .profiles import ProfileStore, ConnectionProfile, resolve_profile

logger = logging.getLogger("m365_admin.cli")


# ---------------------------------------------------------------------------
# Profile management sub-commands
# ---------------------------------------------------------------------------

def _cmd_profile(args: argparse.Namespace) -> int:
    """Handle `profile add|list|remove|set-default` sub-commands."""
    action = args.profile_action

    if action == "list":
        return _profile_list()
    elif action == "add":
        return _profile_add(args)
    elif action == "remove":
        return _profile_remove(args)
    elif action == "set-default":
        return _profile_set_default(args)
    return 0


def _profile_list() -> int:
    store = ProfileStore.load()
    profiles = store.list_profiles()
    if not profiles:
        print("No profiles configured. Add one with:\n")
        print("  m365-admin profile add <name> \\")
        print("    --tenant-id <GUID> --client-id <GUID> --cert-path ./base64.txt")
        return 0

    print(f"\n  {'Name':<20s} {'Tenant ID':<38s} {'Client ID':<38s} {'SharePoint URL':<40s} {'Default'}")
    print(f"  {'─'*20} {'─'*38} {'─'*38} {'─'*40} {'─'*7}")
    for p in profiles:
        default_marker = "  ✓" if p.name == store.default_profile else ""
        name_col = p.name + (f" ({p.display_name})" if p.display_name else "")
        print(f"  {name_col:<20s} {p.tenant_id:<38s} {p.client_id:<38s} {p.spo_url or '-':<40s}{default_marker}")
    print()
    return 0


def _profile_add(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    name = args.profile_name
    if store.get(name):
        print(f"  Profile '{name}' already exists. It will be overwritten.")

    profile = ConnectionProfile(
        name=name,
        tenant_id=args.tenant_id,
        client_id=args.client_id,
        cert_path=args.cert_path or "./base64.txt",
        spo_url=(args.spo_url or "").rstrip("/"),
        display_name=args.display_name or "",
    )
    set_as_default = args.set_default or not store.profiles
    store.add(profile, set_default=set_as_default)
    print(f"  ✅ Profile '{name}' saved.")
    if set_as_default:
        print("  ✅ Set as default profile.")
    return 0


def _profile_remove(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    if store.remove(args.profile_name):
        print(f"  ✅ Profile '{args.profile_name}' removed.")
        return 0
    print(f"  ❌ Profile '{args.profile_name}' not found.")
    return 1


def _profile_set_default(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    if store.set_default(args.profile_name):
        print(f"  ✅ Default profile set to '{args.profile_name}'.")
        return 0
    print(f"  ❌ Profile '{args.profile_name}' not found.")
    return 1


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _connection_options() -> argparse.ArgumentParser:
    """Options shared by every tenant command."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--profile", "-p",
        default=None,
        help="Connection profile name to use (run 'profile list' to see available)",
    )
    common.add_argument("--config", type=Path, help="Path to JSON configuration file")
    common.add_argument(
        "--delegated",
        action="store_true",
        help="Use delegated (device-code) authentication instead of certificate",
    )
    common.add_argument("--tenant-id", default=None, help="Tenant ID (overrides profile)")
    common.add_argument("--client-id", default=None, help="Client ID (overrides profile)")
    common.add_argument(
        "--cert-path",
        type=Path,
        help="Path to base64-encoded certificate file (overrides profile)",
    )
    common.add_argument(
        "--spo-url",
        default=None,
        help="SharePoint tenant root URL, e.g. https://contoso.sharepoint.com",
    )
    common.add_argument(
        "--output", "-o",
        choices=OUTPUT_MODES,
        default=None,
        help="Output type (default: text)",
    )
    common.add_argument("--no-cache", action="store_true", help="Don't read or store cached context")
    common.add_argument("--verbose", action="store_true", help="Run in verbose mode")
    common.add_argument("--debug", action="store_true", help="Run in debug mode")
    return common


def _add_profile_parsers(subparsers) -> None:
    prof_parser = subparsers.add_parser("profile", help="Manage connection profiles")
    prof_sub = prof_parser.add_subparsers(dest="profile_action", help="Profile actions")
    prof_parser.set_defaults(help_parser=prof_parser)

    add_p = prof_sub.add_parser("add", help="Add or update a connection profile")
    add_p.add_argument("profile_name", help="Short name for the profile (e.g. 'contoso-prod')")
    add_p.add_argument("--tenant-id", required=True, help="Entra tenant ID (GUID)")
    add_p.add_argument("--client-id", required=True, help="App registration client ID (GUID)")
    add_p.add_argument("--cert-path", default="./base64.txt", help="Path to base64-encoded PFX (default: ./base64.txt)")
    add_p.add_argument("--spo-url", help="SharePoint tenant root URL (discovered when omitted)")
    add_p.add_argument("--display-name", help="Friendly tenant display name")
    add_p.add_argument("--set-default", action="store_true", help="Set as default profile")

    prof_sub.add_parser("list", help="List all configured profiles")

    rm_p = prof_sub.add_parser("remove", help="Remove a profile")
    rm_p.add_argument("profile_name", help="Name of the profile to remove")

    sd_p = prof_sub.add_parser("set-default", help="Set the default profile")
    sd_p.add_argument("profile_name", help="Name of the profile to set as default")


def _add_command_parsers(subparsers, commands: list[BaseCommand]) -> None:
    """Build the `<area> <noun> <verb>` tree from command names."""
    common = _connection_options()
    groups: dict[tuple[str, ...], Any] = {(): subparsers}

    for command in commands:
        *path, verb = command.name.split()
        prefix: tuple[str, ...] = ()
        for part in path:
            parent = groups[prefix]
            prefix = prefix + (part,)
            if prefix not in groups:
                group_parser = parent.add_parser(part, help=f"{' '.join(prefix)} commands")
                group_parser.set_defaults(help_parser=group_parser)
                groups[prefix] = group_parser.add_subparsers(metavar="<command>")

        leaf = groups[prefix].add_parser(
            verb,
            parents=[common],
            help=command.description,
            description=command.description,
        )
        command.add_arguments(leaf)
        leaf.set_defaults(command=command)


def build_parser(commands: Optional[list[BaseCommand]] = None) -> argparse.ArgumentParser:
    if commands is None:
        commands = [cls() for cls in ALL_COMMANDS]

    parser = argparse.ArgumentParser(
        prog="m365-admin",
        description="Manage Microsoft 365 and SharePoint Online from the command line",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.set_defaults(help_parser=parser, command=None)

    subparsers = parser.add_subparsers(dest="area", metavar="<command>")
    _add_profile_parsers(subparsers)
    _add_command_parsers(subparsers, commands)
    return parser


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def build_config(args: argparse.Namespace) -> tuple[CliConfig, Optional[ConnectionProfile]]:
    """Build configuration from profile, CLI args, or config file."""
    if args.config:
        if not args.config.exists():
            raise CommandError(f"Configuration file '{args.config}' not found")
        try:
            config = CliConfig.from_file(args.config)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise CommandError(f"Invalid configuration file '{args.config}': {e}") from e
    else:
        config = CliConfig()

    if args.delegated:
        config.auth.mode = "delegated"

    profile = None
    if args.profile:
        profile = resolve_profile(args.profile)
        if not profile:
            raise CommandError(
                f"Profile '{args.profile}' not found. Use 'profile list' to see available profiles."
            )
    elif not args.config and not args.tenant_id:
        profile = resolve_profile()

    # CLI flags override profile values which override the config file
    if profile:
        tenant_id = args.tenant_id or profile.tenant_id
        client_id = args.client_id or profile.client_id
        cert_path = str(args.cert_path) if args.cert_path else profile.resolve_cert_path()
    elif args.tenant_id and args.client_id:
        tenant_id = args.tenant_id
        client_id = args.client_id
        cert_path = str(args.cert_path) if args.cert_path else "./base64.txt"
    elif config.auth.certificate:
        tenant_id = config.auth.certificate.tenant_id
        client_id = config.auth.certificate.client_id
        cert_path = str(args.cert_path) if args.cert_path else config.auth.certificate.certificate_path
    elif config.auth.delegated:
        tenant_id = config.auth.delegated.tenant_id
        client_id = config.auth.delegated.client_id
        cert_path = ""
    else:
        raise CommandError(
            "No tenant credentials found. Use --profile <name>, "
            "--tenant-id X --client-id Y, or --config config.json. "
            "To create a profile: m365-admin profile add <name> --tenant-id <GUID> --client-id <GUID>"
        )

    if config.auth.mode == "delegated":
        config.auth.delegated = DelegatedAuth(tenant_id=tenant_id, client_id=client_id)
    else:
        password = config.auth.certificate.certificate_password if config.auth.certificate else ""
        config.auth.certificate = CertificateAuth(
            tenant_id=tenant_id,
            client_id=client_id,
            certificate_path=cert_path,
            certificate_password=password,
        )

    if args.spo_url:
        config.spo_url = args.spo_url.rstrip("/")
    if args.output:
        config.output.mode = args.output
    if args.no_cache:
        config.cache_enabled = False
    config.verbose = config.verbose or args.verbose
    config.debug = config.debug or args.debug

    return config, profile


def configure_logging(verbose: bool, debug: bool) -> None:
    if debug:
        level = logging.DEBUG
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    elif verbose:
        level = logging.INFO
        fmt = "%(message)s"
    else:
        level = logging.WARNING
        fmt = "%(levelname)s: %(message)s"
    logging.basicConfig(level=level, format=fmt, stream=sys.stderr, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)


def open_cache() -> ContextCache:
    """Open the context cache and drop entries that have expired."""
    try:
        cache = ContextCache(cli_config.CACHE_FILE)
        cache.clear_expired()
    except (OSError, sqlite3.Error) as e:
        raise CommandError(
            f"Unable to open cache '{cli_config.CACHE_FILE}': {e}. Use --no-cache to run without it"
        ) from e
    return cache


# ---------------------------------------------------------------------------
# Command execution
# ---------------------------------------------------------------------------

async def run_command(
    command: BaseCommand,
    ctx: CommandContext,
    args: argparse.Namespace,
) -> Any:
    """
    Validate options, run the command and map failures to CommandError.

    Returns:
        The command result (None when there is nothing to print).
    """
    message = command.validate(args)
    if message is not None:
        raise CommandError(message)

    try:
        return await command.action(ctx, args)
    except CommandError:
        raise
    except Exception as e:
        logger.debug(f"{command.name} failed", exc_info=True)
        raise to_command_error(e) from e


async def main_async(argv: Optional[list[str]] = None) -> int:
    """Async entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.area == "profile":
        if not args.profile_action:
            args.help_parser.print_help()
            return 0
        return _cmd_profile(args)

    command: Optional[BaseCommand] = args.command
    if command is None:
        args.help_parser.print_help()
        return 0

    configure_logging(args.verbose, args.debug)

    try:
        # Bad options are reported before credentials are looked up
        message = command.validate(args)
        if message is not None:
            raise CommandError(message)

        config, profile = build_config(args)
        configure_logging(config.verbose, config.debug)

        guardian = SafetyGuardian()
        authenticator = Authenticator(config.auth)
        cache = open_cache() if config.cache_enabled else None
        identity = (
            config.auth.delegated if config.auth.mode == "delegated"
            else config.auth.certificate
        )

        async with RestClient(authenticator.get_token, guardian) as client:
            ctx = CommandContext(
                client=client,
                guardian=guardian,
                cache=cache,
                profile=profile,
                tenant_id=identity.tenant_id,
                spo_url=config.spo_url,
                cache_scope=f"{identity.tenant_id}:{identity.client_id}:{config.auth.mode}",
            )
            result = await run_command(command, ctx, args)
            logger.debug(f"Requests: {client.get_stats()}; safety: {guardian.get_audit_record()}")
    except CommandError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if result is not None:
        print(format_output(result, config.output.mode))
    return 0


def main():
    """Synchronous entry point for `python -m m365_admin` and `m365-admin`."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
