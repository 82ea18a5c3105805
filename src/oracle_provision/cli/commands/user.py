# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Oracle account registration.

Commands:
    oracle-provision create-user --pin 123456 --oracle-name "My oracle"
"""

from __future__ import annotations

import argparse
from typing import Any

from ...orchestrator import ProvisioningOrchestrator, ProvisioningResult
from ..runtime import build_context, load_json_file, run_command, signing_session, wallet_store


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the create-user command."""
    user_p = subparsers.add_parser(
        "create-user",
        help="Create a funded oracle account with a DID and a Matrix account",
    )
    user_p.add_argument("--pin", required=True, help="6-digit PIN protecting the Matrix vault")
    user_p.add_argument("--oracle-name", required=True, help="Display name of the oracle")
    user_p.add_argument("--avatar-url", help="Avatar URL for the oracle's Matrix account")
    user_p.add_argument("--resume", help="Partial result JSON from a failed run")
    user_p.set_defaults(func=cmd_create_user)


def cmd_create_user(args: argparse.Namespace) -> int:
    """Register an oracle account and print every generated secret."""

    async def run() -> dict[str, Any]:
        context = build_context(args)
        resume = ProvisioningResult.from_dict(load_json_file(args.resume, "resume")) if args.resume else None
        signing = signing_session(context)
        orchestrator = ProvisioningOrchestrator(context, wallet_store().load(), signing)
        try:
            result = await orchestrator.register_oracle(
                args.pin,
                args.oracle_name,
                avatar_url=args.avatar_url,
                resume=resume,
            )
        finally:
            await orchestrator.close()
            await signing.close()
        return result.to_dict()

    return run_command(run)
