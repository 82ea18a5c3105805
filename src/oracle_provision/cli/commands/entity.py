# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Oracle entity commands.

Commands:
    oracle-provision create-entity --pin ... --profile profile.json --parent-protocol did:ixo:entity:...
    oracle-provision update-entity add-controller --entity-did ... --controller-did ...
"""

from __future__ import annotations

import argparse
from typing import Any

from ...core.exceptions import ValidationError
from ...entity.documents import OracleConfig, OracleProfile
from ...entity.provisioner import EntityProvisioner
from ...matrix.provisioner import MessagingAccountProvisioner
from ...orchestrator import ProvisioningOrchestrator, ProvisioningResult
from ..runtime import build_context, load_json_file, run_command, signing_session, wallet_store


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the entity command group."""
    create_p = subparsers.add_parser("create-entity", help="Create an oracle and its on-chain entity")
    create_p.add_argument("--pin", required=True, help="6-digit PIN protecting the oracle's Matrix vault")
    create_p.add_argument("--profile", required=True, help="Profile JSON file (orgName, name, logo, coverImage, ...)")
    create_p.add_argument("--services", help="JSON file with a list of extra entity services")
    create_p.add_argument("--parent-protocol", required=True, help="DID of the protocol the oracle belongs to")
    create_p.add_argument("--oracle-name", required=True, help="Name of the oracle")
    create_p.add_argument("--price", type=float, default=0, help="Monthly price in credits (default 0)")
    create_p.add_argument("--resume", help="Partial result JSON from a failed run")
    create_p.set_defaults(func=cmd_create_entity)

    update_p = subparsers.add_parser("update-entity", help="Update an existing entity")
    update_sub = update_p.add_subparsers(dest="update_command", required=True)

    controller_p = update_sub.add_parser("add-controller", help="Add a controller to an entity")
    controller_p.add_argument("--entity-did", required=True, help="DID of the entity to update")
    controller_p.add_argument("--controller-did", required=True, help="DID to add as controller")
    controller_p.set_defaults(func=cmd_add_controller)


def _load_services(path: str | None) -> list[dict[str, str]]:
    if not path:
        return []
    services = load_json_file(path, "services")
    if not isinstance(services, list) or not all(isinstance(s, dict) for s in services):
        raise ValidationError("Services file must contain a JSON list of objects", field="services")
    return services


def cmd_create_entity(args: argparse.Namespace) -> int:
    """Register an oracle and mint its entity with profile, domain card and configs."""

    async def run() -> dict[str, Any]:
        context = build_context(args)
        profile = OracleProfile.from_dict(load_json_file(args.profile, "profile"))
        services = _load_services(args.services)
        resume = ProvisioningResult.from_dict(load_json_file(args.resume, "resume")) if args.resume else None

        signing = signing_session(context)
        orchestrator = ProvisioningOrchestrator(context, wallet_store().load(), signing)
        try:
            result = await orchestrator.create_oracle(
                args.pin,
                profile,
                services,
                OracleConfig(oracle_name=args.oracle_name, price=args.price),
                args.parent_protocol,
                resume=resume,
            )
        finally:
            await orchestrator.close()
            await signing.close()
        return result.to_dict()

    return run_command(run)


def cmd_add_controller(args: argparse.Namespace) -> int:
    """Add a controller DID to an entity."""

    async def run() -> dict[str, Any]:
        context = build_context(args)
        signing = signing_session(context)
        messaging = MessagingAccountProvisioner(context)
        try:
            entities = EntityProvisioner(context, wallet_store().load(), signing, messaging)
            tx = await entities.add_controller(args.entity_did, args.controller_did)
        finally:
            await messaging.close()
            await signing.close()
        return {"entityDid": args.entity_did, "controllerDid": args.controller_did, "txHash": tx.tx_hash}

    return run_command(run)
