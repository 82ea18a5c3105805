# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""
oracle-provision - provision oracle identities on the ixo chain.

Commands:
  oracle-provision login                       Log in with the mobile wallet
  oracle-provision logout                      Forget the cached login
  oracle-provision whoami                      Show the logged-in wallet
  oracle-provision create-user                 Create an oracle account
  oracle-provision create-entity               Create an oracle entity
  oracle-provision update-entity add-controller
"""

from __future__ import annotations

import argparse
import sys

from ..core.logging import configure_logging
from ..core.networks import Network
from .commands import COMMAND_MODULES


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="oracle-provision",
        description="Provision oracle identities: account, DID, Matrix account and entity",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  oracle-provision --network devnet login
  oracle-provision create-user --pin 123456 --oracle-name "My oracle"
  oracle-provision create-entity --pin 123456 --profile profile.json \\
      --parent-protocol did:ixo:entity:... --oracle-name "My oracle" --price 10
  oracle-provision update-entity add-controller --entity-did ... --controller-did ...

Results are printed as JSON on stdout and include every generated secret.
        """,
    )
    parser.add_argument(
        "--network",
        choices=[n.value for n in Network],
        default=None,
        help="Chain network (default: ORACLE_NETWORK or devnet)",
    )
    parser.add_argument("--home-server", default=None, help="Matrix home server URL for the oracle")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Log as JSON lines on stderr")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in COMMAND_MODULES:
        module.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)
    configure_logging(level="DEBUG" if args.verbose else None, json_format=True if args.json_logs else None)

    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
