# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Operator wallet commands.

Commands:
    oracle-provision login      Log in with the mobile wallet (QR code)
    oracle-provision logout     Forget the cached login
    oracle-provision whoami     Show the logged-in wallet
"""

from __future__ import annotations

import argparse
from typing import Any

from ...core.exceptions import ConfigurationError
from ...signing.wallet import Authenticated, WalletAccount
from ..runtime import build_context, run_command, signing_session, wallet_store


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the wallet commands."""
    login_p = subparsers.add_parser("login", help="Log in with the mobile wallet")
    login_p.set_defaults(func=cmd_login)

    logout_p = subparsers.add_parser("logout", help="Forget the cached wallet login")
    logout_p.set_defaults(func=cmd_logout)

    whoami_p = subparsers.add_parser("whoami", help="Show the logged-in wallet")
    whoami_p.set_defaults(func=cmd_whoami)


def _summary(account: WalletAccount) -> dict[str, Any]:
    return {
        "address": account.address,
        "did": account.did,
        "network": account.network,
        "name": account.name,
        "matrixUserId": account.matrix.user_id if account.matrix else None,
    }


def cmd_login(args: argparse.Namespace) -> int:
    """Log in through SignX and cache the wallet."""

    async def run() -> dict[str, Any]:
        session = signing_session(build_context(args))
        try:
            account = (await session.login()).unwrap()
        finally:
            await session.close()
        wallet_store().save(account)
        return _summary(account)

    return run_command(run)


def cmd_logout(args: argparse.Namespace) -> int:
    """Remove the cached wallet login."""

    async def run() -> dict[str, Any]:
        return {"loggedOut": wallet_store().clear()}

    return run_command(run)


def cmd_whoami(args: argparse.Namespace) -> int:
    """Show the cached wallet login."""

    async def run() -> dict[str, Any]:
        identity = wallet_store().load()
        if not isinstance(identity, Authenticated):
            raise ConfigurationError("Not logged in", missing=["wallet"])
        return _summary(identity.account)

    return run_command(run)
