# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Oracle entity creation.

``create_entity`` provisions a fresh oracle identity, then builds the entity
around it. Every on-chain step is signed by the operator's wallet through the
remote signing session; every upload uses the oracle's own Matrix account.

A failure after the entity is minted leaves it on-chain without some of its
linked resources. ``add_linked_resources`` and ``add_controller`` are the way
to complete or repair it; nothing is rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from ..chain.client import find_event_attribute
from ..chain.messages import (
    agent_iid_context,
    linked_entity,
    linked_resource,
    matrix_service,
    msg_add_controller,
    msg_add_linked_resource,
    msg_create_entity,
    verification_methods,
)
from ..chain.signer import BroadcastResult
from ..core.config import ProvisioningContext
from ..core.exceptions import MessagingError, ProvisioningError
from ..core.logging import log_step
from ..core.validation import validate_did, validate_entity_did, validate_required
from ..identity.account import Account, did_from_address
from ..matrix.provisioner import MessagingAccount, MessagingAccountProvisioner
from ..matrix.session import MatrixSession
from ..matrix.upload import UploadedResource, public_upload
from ..signing.session import CancellationToken, RemoteSigningSession
from ..signing.wallet import Identity, require_authenticated
from .documents import OracleConfig, OracleProfile, authz_config, domain_card, pricing_config, profile_document
from .indexer import submit_to_domain_indexer

logger = logging.getLogger(__name__)

ENTITY_DID_EVENT = "wasm"
ENTITY_DID_ATTRIBUTE = "token_id"


@dataclass(frozen=True)
class ResourceKind:
    """How one kind of document is named on upload and described on-chain."""

    fragment: str
    type: str
    description: str
    file_name: str

    def linked(self, uploaded: UploadedResource) -> dict[str, str]:
        return linked_resource(
            f"{{id}}#{self.fragment}",
            self.type,
            proof=uploaded.proof,
            service_endpoint=uploaded.service_endpoint,
            description=self.description,
        )


PROFILE = ResourceKind("pro", "Settings", "Profile", "profile")
DOMAIN_CARD = ResourceKind("dmn", "domainCard", "Domain Card", "domainCard")
AUTHZ_CONFIG = ResourceKind("orz", "oracleAuthZConfig", "Orale AuthZ Config", "authz")
PRICING_LIST = ResourceKind("fee", "pricingList", "Pricing List", "fees")


@dataclass(frozen=True)
class RegisteredOracle:
    """The oracle's own account and messaging account."""

    account: Account
    messaging: MessagingAccount


class OracleRegistrar(Protocol):
    def __call__(self, *, oracle_name: str, avatar_url: str | None, home_server_url: str) -> Awaitable[RegisteredOracle]: ...


@dataclass
class EntityResult:
    entity_did: str
    oracle: RegisteredOracle
    resources: dict[str, dict[str, str]] = field(default_factory=dict)
    indexed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "entityDid": self.entity_did,
            "oracleAddress": self.oracle.account.address,
            "oracleDid": self.oracle.account.did,
            "resources": self.resources,
            "indexed": self.indexed,
        }


ProgressCallback = Callable[[str, Any], None]


class EntityProvisioner:
    """Creates and maintains oracle entities for the logged-in operator wallet."""

    def __init__(
        self,
        context: ProvisioningContext,
        identity: Identity,
        signing: RemoteSigningSession,
        messaging: MessagingAccountProvisioner,
        registrar: OracleRegistrar | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.context = context
        self.operator = require_authenticated(identity).account
        self.signing = signing
        self.messaging = messaging
        self.registrar = registrar
        self._http = http

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http or self.messaging.http

    async def _sign(self, messages: list, cancel: CancellationToken | None) -> BroadcastResult:
        return await self.signing.sign(messages, self.operator, cancel=cancel)

    async def _upload(self, session: MatrixSession, kind: ResourceKind, document: dict[str, Any]) -> dict[str, str]:
        uploaded = await public_upload(session, document, kind.file_name)
        return kind.linked(uploaded)

    async def create_entity(
        self,
        profile: OracleProfile,
        services: Sequence[dict[str, str]],
        oracle_config: OracleConfig,
        parent_protocol: str,
        home_server_url: str | None = None,
        oracle: RegisteredOracle | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> EntityResult:
        """Provision an oracle and mint its entity. Returns the entity DID and what was attached.

        ``oracle`` (or an ``oracle`` value in the context) skips the nested
        registration when it already happened. Without either, ``registrar``
        creates one.
        ``on_progress`` receives ``("oracle", RegisteredOracle)`` and
        ``("entity_did", str)`` as soon as each exists.
        """
        endpoints = self.context.require_endpoints()
        hs = (home_server_url or self.context.require_home_server_url()).rstrip("/")
        validate_required(parent_protocol, "parent_protocol")
        validate_required(oracle_config.oracle_name, "oracle_name")

        def notify(name: str, value: Any) -> None:
            if on_progress is not None:
                on_progress(name, value)

        if oracle is None:
            oracle = self.context.get("oracle") if self.registrar is not None else self.context.require("oracle")
        if oracle is None:
            log_step(logger, "entity", "Creating oracle wallet and Matrix account")
            oracle = await self.registrar(
                oracle_name=oracle_config.oracle_name,
                avatar_url=profile.logo or None,
                home_server_url=hs,
            )
        notify("oracle", oracle)

        resources: dict[str, dict[str, str]] = {}
        session = self.messaging.open_session(oracle.messaging)
        try:
            resources["profile"] = await self._upload(session, PROFILE, profile_document(profile))
            log_step(logger, "entity", "Profile uploaded", endpoint=resources["profile"]["serviceEndpoint"])

            msg = msg_create_entity(
                owner_did=self.operator.did,
                owner_address=self.operator.address,
                verifications=verification_methods(
                    self.operator.did,
                    self.operator.public_key_bytes,
                    self.operator.address,
                    self.operator.did,
                    self.operator.key_type,
                ),
                relayer_node=endpoints.relayer_node_did,
                services=[matrix_service(hs), *services],
                context=agent_iid_context([("class", parent_protocol)]),
                linked_resources=[resources["profile"]],
                linked_entities=[
                    linked_entity(endpoints.memory_engine_did),
                    linked_entity(did_from_address(oracle.account.address)),
                ],
            )
            logger.info("Sign this transaction to create the entity")
            result = await self._sign([msg], cancel)
            entity_did = find_event_attribute(result, ENTITY_DID_EVENT, ENTITY_DID_ATTRIBUTE)
            if not entity_did:
                raise ProvisioningError(
                    f"Entity created in tx {result.tx_hash} but no entity DID found in its events",
                    details={"tx_hash": result.tx_hash},
                    step="create_entity",
                )
            notify("entity_did", entity_did)
            log_step(logger, "entity", "Entity created", entity_did=entity_did, tx_hash=result.tx_hash)

            resources["domain_card"] = await self._upload(
                session, DOMAIN_CARD, domain_card(profile, entity_did, self.operator.did)
            )
            logger.info("Sign to add domain card to the entity")
            await self.add_linked_resources(entity_did, [resources["domain_card"]], cancel=cancel)

            resources["authz"], resources["fees"] = await asyncio.gather(
                self._upload(
                    session,
                    AUTHZ_CONFIG,
                    authz_config(entity_did, oracle.account.address, oracle_config.oracle_name),
                ),
                self._upload(session, PRICING_LIST, pricing_config(entity_did, oracle_config.price, endpoints.fee_denom)),
            )
            logger.info("Sign to edit the entity and add the config files")
            await self.add_linked_resources(entity_did, [resources["authz"], resources["fees"]], cancel=cancel)
            log_step(logger, "entity", "Config files attached", entity_did=entity_did)
        except BaseException:
            # Stop only: a resumed run still uploads with this access token.
            await session.stop()
            raise

        indexed = await submit_to_domain_indexer(self.http, endpoints.domain_indexer_url, entity_did)
        try:
            await session.logout()
        except MessagingError as e:
            logger.warning(f"Failed to log out the upload session for {entity_did}: {e.message}")
        return EntityResult(entity_did=entity_did, oracle=oracle, resources=resources, indexed=indexed)

    async def add_linked_resources(
        self,
        entity_did: str,
        resources: Sequence[dict[str, str]],
        cancel: CancellationToken | None = None,
    ) -> BroadcastResult:
        """Attach ``resources`` to ``entity_did`` in one transaction."""
        if not resources:
            raise ProvisioningError("No linked resources to add", step="add_linked_resources")
        messages = [msg_add_linked_resource(entity_did, resource, self.operator.address) for resource in resources]
        result = await self._sign(messages, cancel)
        logger.info(f"Added {len(messages)} linked resource(s) to {entity_did}")
        return result

    async def add_controller(
        self,
        entity_did: str,
        controller_did: str,
        cancel: CancellationToken | None = None,
    ) -> BroadcastResult:
        validate_entity_did(entity_did)
        validate_did(controller_did, "controller_did")
        logger.info(f"Sign to add controller {controller_did} to entity {entity_did}")
        result = await self._sign([msg_add_controller(entity_did, controller_did, self.operator.address)], cancel)
        logger.info(f"Controller {controller_did} added to entity {entity_did}")
        return result
