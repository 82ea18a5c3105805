# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Typed chain messages for DID documents, entities and transfers.

Messages are kept as ``type_url`` plus a JSON-shaped value using the chain's
camelCase field names. Protobuf encoding happens in the transaction backend.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from bip_utils import Base58Encoder

MSG_CREATE_IID_DOCUMENT = "/ixo.iid.v1beta1.MsgCreateIidDocument"
MSG_ADD_LINKED_RESOURCE = "/ixo.iid.v1beta1.MsgAddLinkedResource"
MSG_ADD_CONTROLLER = "/ixo.iid.v1beta1.MsgAddController"
MSG_CREATE_ENTITY = "/ixo.entity.v1beta1.MsgCreateEntity"
MSG_SEND = "/cosmos.bank.v1beta1.MsgSend"

SECP_VERIFICATION_TYPE = "EcdsaSecp256k1VerificationKey2019"
ED_VERIFICATION_TYPE = "Ed25519VerificationKey2018"
ACCOUNT_VERIFICATION_TYPE = "CosmosAccountAddress"

IXO_CONTEXT = "https://w3id.org/ixo/ns/protocol/"
WEB3_CONTEXT = "https://ipfs.io/ipfs/"

# Entities are created with a fixed validity window of roughly one century.
ENTITY_LIFETIME = timedelta(days=100 * 365)


@dataclass(frozen=True)
class ChainMessage:
    """One message of a transaction body."""

    type_url: str
    value: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"typeUrl": self.type_url, "value": self.value}


def service(service_id: str, service_type: str, endpoint: str) -> dict[str, str]:
    return {"id": service_id, "type": service_type, "serviceEndpoint": endpoint}


def matrix_service(home_server_url: str, did: str = "{id}") -> dict[str, str]:
    return service(f"{did}#matrix", "MatrixHomeServer", home_server_url)


def linked_resource(
    resource_id: str,
    resource_type: str,
    proof: str,
    service_endpoint: str,
    description: str,
    media_type: str = "application/json",
) -> dict[str, str]:
    return {
        "id": resource_id,
        "type": resource_type,
        "description": description,
        "mediaType": media_type,
        "serviceEndpoint": service_endpoint,
        "proof": proof,
        "encrypted": "false",
        "right": "",
    }


def linked_entity(
    entity_id: str,
    entity_type: str = "agent",
    relationship: str = "admin",
    service_name: str = "matrix",
) -> dict[str, str]:
    return {
        "id": entity_id,
        "type": entity_type,
        "relationship": relationship,
        "service": service_name,
    }


def verification_methods(
    did: str,
    pubkey: bytes,
    address: str,
    controller: str,
    key_type: str = "secp",
) -> list[dict[str, Any]]:
    """Authentication methods for a key: the key itself and its account address.

    ``key_type`` is ``secp`` or ``ed``.
    """
    if key_type not in ("secp", "ed"):
        raise ValueError(f"Unsupported verification key type: {key_type}")
    method_type = SECP_VERIFICATION_TYPE if key_type == "secp" else ED_VERIFICATION_TYPE
    return [
        {
            "relationships": ["authentication"],
            "method": {
                "id": did,
                "type": method_type,
                "controller": controller,
                "publicKeyMultibase": "z" + Base58Encoder.Encode(pubkey),
            },
        },
        {
            "relationships": ["authentication"],
            "method": {
                "id": f"{did}#{address}",
                "type": ACCOUNT_VERIFICATION_TYPE,
                "controller": controller,
                "blockchainAccountID": address,
            },
        },
    ]


def agent_iid_context(entries: Iterable[tuple[str, str]] = ()) -> list[dict[str, str]]:
    """Base ixo contexts followed by caller entries such as ``("class", protocol_did)``."""
    context = [
        {"key": "ixo", "val": IXO_CONTEXT},
        {"key": "web3", "val": WEB3_CONTEXT},
    ]
    context.extend({"key": key, "val": val} for key, val in entries)
    return context


def _timestamp(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat().replace("+00:00", "Z")


def msg_create_iid_document(
    did: str,
    verifications: list[dict[str, Any]],
    signer: str,
    services: Sequence[dict[str, str]] | None = None,
) -> ChainMessage:
    value: dict[str, Any] = {
        "id": did,
        "verifications": verifications,
        "signer": signer,
        "controllers": [did],
    }
    if services:
        value["services"] = list(services)
    return ChainMessage(MSG_CREATE_IID_DOCUMENT, value)


def msg_create_entity(
    *,
    owner_did: str,
    owner_address: str,
    verifications: list[dict[str, Any]],
    relayer_node: str,
    services: Sequence[dict[str, str]],
    context: list[dict[str, str]],
    linked_resources: Sequence[dict[str, str]] = (),
    linked_entities: Sequence[dict[str, str]] = (),
    entity_type: str = "oracle",
    now: datetime | None = None,
) -> ChainMessage:
    start = now or datetime.now(UTC)
    return ChainMessage(
        MSG_CREATE_ENTITY,
        {
            "entityType": entity_type,
            "context": context,
            "entityStatus": 0,
            "verification": verifications,
            "controller": [owner_did],
            "ownerAddress": owner_address,
            "ownerDid": owner_did,
            "relayerNode": relayer_node,
            "service": list(services),
            "linkedResource": list(linked_resources),
            "accordedRight": [],
            "linkedEntity": list(linked_entities),
            "linkedClaim": [],
            "startDate": _timestamp(start),
            "endDate": _timestamp(start + ENTITY_LIFETIME),
        },
    )


def msg_add_linked_resource(did: str, resource: dict[str, str], signer: str) -> ChainMessage:
    return ChainMessage(
        MSG_ADD_LINKED_RESOURCE,
        {"id": did, "linkedResource": dict(resource), "signer": signer},
    )


def msg_add_controller(did: str, controller_did: str, signer: str) -> ChainMessage:
    return ChainMessage(
        MSG_ADD_CONTROLLER,
        {"id": did, "controllerDid": controller_did, "signer": signer},
    )


def msg_send(from_address: str, to_address: str, amount: int, denom: str = "uixo") -> ChainMessage:
    return ChainMessage(
        MSG_SEND,
        {
            "fromAddress": from_address,
            "toAddress": to_address,
            "amount": [{"denom": denom, "amount": str(amount)}],
        },
    )
