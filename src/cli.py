"""Console entry point for the Cloud SQL security manager CLI."""

from __future__ import annotations

import argparse
import getpass
import json
import logging
from typing import List

from config import TOKEN_SOURCES, ConnectionConfig
from connection import Connection
from errors import CloudSqlError
from log_utils import setup_logging
from templates import API_BASE


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description=(
            "Manage SSL enforcement, authorized networks and user passwords "
            "of a Cloud SQL instance"
        )
    )
    parser.add_argument("--project", required=True, help="GCP project ID")
    parser.add_argument("--instance", required=True, help="Cloud SQL instance name")
    parser.add_argument("--api-base", default=API_BASE, help=argparse.SUPPRESS)
    parser.add_argument(
        "--timeout", type=int, default=60, help="Per-request timeout (seconds)"
    )
    parser.add_argument("--poll-interval", type=float, default=1.0)
    parser.add_argument(
        "--poll-timeout",
        type=float,
        default=None,
        help="Give up waiting for an operation after this many seconds",
    )
    parser.add_argument(
        "--token-source", choices=TOKEN_SOURCES, default="google-auth"
    )
    parser.add_argument("--no-progress", action="store_true")
    parser.add_argument(
        "--no-duplicates",
        action="store_true",
        help="Do not add a network that is already authorized",
    )
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--log-file", default=None)

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("show", help="Print the instance configuration as JSON")
    sub.add_parser("public-ip", help="Print the instance's PRIMARY address")
    sub.add_parser("enable-ssl", help="Require SSL connections")
    sub.add_parser("disable-ssl", help="Stop requiring SSL connections")

    whitelist = sub.add_parser("whitelist", help="Authorize a network")
    whitelist.add_argument("name", help="Label for the entry")
    whitelist.add_argument("value", help="IP address or CIDR range")

    blacklist = sub.add_parser("blacklist", help="Remove an authorized network")
    blacklist.add_argument("value", help="IP address or CIDR range")

    password = sub.add_parser("set-password", help="Set a database user's password")
    password.add_argument("user")
    password.add_argument(
        "--password", default=None, help="New password (prompted when omitted)"
    )
    return parser


def run_command(conn: Connection, args: argparse.Namespace):
    """Dispatch a parsed subcommand; returns a JSON-serializable result."""
    if args.command == "show":
        return conn.instance.to_dict()
    if args.command == "public-ip":
        return conn.get_public_ip()
    if args.command == "enable-ssl":
        return conn.enable_ssl().to_dict()
    if args.command == "disable-ssl":
        return conn.disable_ssl().to_dict()
    if args.command == "whitelist":
        op = conn.whitelist_ip(args.name, args.value)
        return op.to_dict() if op else None
    if args.command == "blacklist":
        return conn.blacklist_ip(args.value).to_dict()
    if args.command == "set-password":
        password = args.password or getpass.getpass(f"New password for {args.user}: ")
        return conn.set_user_password(args.user, password).to_dict()
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    config = ConnectionConfig.from_args(args)
    logger = setup_logging(verbose=config.verbose, log_file=config.log_file)

    try:
        conn = Connection.from_config(config, logger=logger)
        result = run_command(conn, args)
    except CloudSqlError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    if isinstance(result, str):
        print(result)
    elif result is not None:
        print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
