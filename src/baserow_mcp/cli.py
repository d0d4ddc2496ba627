"""CLI entry point for ``baserow-mcp``.

Subcommands
-----------
``baserow-mcp``                 – (default) run the MCP server.
``baserow-mcp auth``            – store a Baserow database token in the keychain.
``baserow-mcp auth --status``   – check where a token is configured.
``baserow-mcp auth --logout``   – delete the stored token.
``baserow-mcp tables``          – show which tables the allow-list exposes.
"""

from __future__ import annotations

import argparse
import getpass
import sys

from pydantic import ValidationError

from baserow_mcp.allowlist import TABLES, AllowList, ConfigurationError
from baserow_mcp.credentials import (
    TokenSource,
    find_api_token,
    forget_api_token,
    save_api_token,
)
from baserow_mcp.settings import get_settings


# ── Subcommands ─────────────────────────────────────────────────────────────


def _run_auth(args: argparse.Namespace) -> None:
    """Handle ``baserow-mcp auth``."""
    if args.status:
        _auth_status()
        return
    if args.logout:
        _auth_logout()
        return
    _auth_login()


def _auth_status() -> None:
    """Show which token the server will use."""
    found = find_api_token(get_settings())
    if found is None:
        print("✗ No API token found. Run 'baserow-mcp auth' to store one.")
    elif found.source is TokenSource.ENVIRONMENT:
        print("✓ BASEROW_API_TOKEN is set in the environment / .env.")
    else:
        print("✓ An API token is stored in the system keychain.")


def _auth_logout() -> None:
    """Delete the stored API token."""
    if forget_api_token():
        print("✓ API token removed from system keychain.")
    else:
        print("⚠ Could not delete, keychain backend may not be available.")


def _auth_login() -> None:
    """Prompt for a database token and store it in the keychain.

    Database tokens are created in Baserow under Settings → Database tokens.
    """
    try:
        token = getpass.getpass("Paste your Baserow database token: ").strip()
    except (KeyboardInterrupt, EOFError):
        print("\n✗ Cancelled.", file=sys.stderr)
        sys.exit(1)

    if not token:
        print("✗ No token entered.", file=sys.stderr)
        sys.exit(1)

    if save_api_token(token):
        print("✓ API token stored in system keychain.")
    else:
        print(
            "⚠ Could not store in keychain.\n"
            "  Set the token in your .env file as BASEROW_API_TOKEN=<paste-token-here>"
        )
        sys.exit(1)


def _run_tables(_args: argparse.Namespace) -> None:
    """Handle ``baserow-mcp tables``: print the effective allow-list."""
    try:
        allow_list = AllowList.from_settings(get_settings())
    except (ConfigurationError, ValidationError) as exc:
        print(f"✗ {exc}", file=sys.stderr)
        sys.exit(1)

    configured = {table.name: table for table in allow_list.tables()}
    for name in TABLES:
        table = configured.get(name)
        if table is None:
            print(f"  ✗ {name:<24} (BASEROW_TABLE_ID_{name.upper()} not set)")
        else:
            print(f"  ✓ {name:<24} {table.id}")


def _run_serve(_args: argparse.Namespace) -> None:
    """Handle the default (no subcommand) action: run the MCP server."""
    from baserow_mcp.server import main as server_main

    server_main()


# ── Argument parser ─────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="baserow-mcp",
        description="Baserow manufacturing MCP server",
    )
    subparsers = parser.add_subparsers(dest="command")

    auth_parser = subparsers.add_parser(
        "auth",
        help="Store a Baserow database token in the system keychain.",
    )
    auth_group = auth_parser.add_mutually_exclusive_group()
    auth_group.add_argument(
        "--status",
        action="store_true",
        help="Check whether a token is configured.",
    )
    auth_group.add_argument(
        "--logout",
        action="store_true",
        help="Remove the stored token from the keychain.",
    )

    subparsers.add_parser(
        "tables",
        help="Show which tables are configured in the allow-list.",
    )

    return parser


def main() -> None:
    """CLI entry point: ``baserow-mcp``."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "auth":
        _run_auth(args)
    elif args.command == "tables":
        _run_tables(args)
    else:
        _run_serve(args)
