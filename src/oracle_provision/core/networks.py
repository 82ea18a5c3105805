# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Per-network endpoints and well-known identifiers.

Usage:
    from oracle_provision.core.networks import Network, endpoints_for
    eps = endpoints_for(Network.DEVNET)
    eps.chain_rest_url
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import urlparse

from .exceptions import ValidationError


class Network(StrEnum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"

    @classmethod
    def parse(cls, value: str | Network) -> Network:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(n.value for n in cls)
            raise ValidationError(f"Invalid network: {value}. Valid networks are: {valid}", field="network", value=value)


@dataclass(frozen=True)
class NetworkEndpoints:
    """Service endpoints and fixed DIDs for one network."""

    network: Network
    chain_rpc_url: str
    chain_rest_url: str
    signx_url: str
    matrix_home_server_url: str
    matrix_room_bot_url: str
    matrix_state_bot_url: str
    domain_indexer_url: str
    portal_url: str
    relayer_node_did: str
    memory_engine_did: str
    fee_denom: str


# Pricing denom: native token on devnet, IBC USDC elsewhere.
_IBC_USDC = "ibc/6BBE9BD4246F8E04948D5A4EEE7164B2630263B9EBB5E7DC5F0A46C62A2FF97B"

NATIVE_DENOM = "uixo"

_ENDPOINTS: dict[Network, NetworkEndpoints] = {
    Network.MAINNET: NetworkEndpoints(
        network=Network.MAINNET,
        chain_rpc_url="https://impacthub.ixo.world/rpc/",
        chain_rest_url="https://impacthub.ixo.world/rest/",
        signx_url="https://signx.ixo.earth",
        matrix_home_server_url="https://mx.ixo.earth",
        matrix_room_bot_url="https://rooms.bot.mx.ixo.earth",
        matrix_state_bot_url="https://state.bot.mx.ixo.earth",
        domain_indexer_url="https://domain-indexer.ixo.earth/index",
        portal_url="https://ixo-portal.vercel.app",
        relayer_node_did="did:ixo:entity:2f22535f8b179a51d77a0e302e68d35d",
        memory_engine_did="did:ixo:ixo1d39eutxdc0e8mnp0fmzqjdy6aaf26s9hzrk33r",
        fee_denom=_IBC_USDC,
    ),
    Network.TESTNET: NetworkEndpoints(
        network=Network.TESTNET,
        chain_rpc_url="https://testnet.ixo.earth/rpc/",
        chain_rest_url="https://testnet.ixo.earth/rest/",
        signx_url="https://signx.testnet.ixo.earth",
        matrix_home_server_url="https://testmx.ixo.earth",
        matrix_room_bot_url="https://rooms.bot.testmx.ixo.earth",
        matrix_state_bot_url="https://state.bot.testmx.ixo.earth",
        domain_indexer_url="https://domain-indexer.testnet.ixo.earth/index",
        portal_url="https://ixo-portal.vercel.app",
        relayer_node_did="did:ixo:entity:3d079ebc0b332aad3305bb4a51c72edb",
        memory_engine_did="did:ixo:ixo14vjrckltpngugp03tcasfgh5qakey9n3sgm6y2",
        fee_denom=_IBC_USDC,
    ),
    Network.DEVNET: NetworkEndpoints(
        network=Network.DEVNET,
        chain_rpc_url="https://devnet.ixo.earth/rpc/",
        chain_rest_url="https://devnet.ixo.earth/rest/",
        signx_url="https://signx.devnet.ixo.earth",
        matrix_home_server_url="https://devmx.ixo.earth",
        matrix_room_bot_url="https://rooms.bot.devmx.ixo.earth",
        matrix_state_bot_url="https://state.bot.devmx.ixo.earth",
        domain_indexer_url="https://domain-indexer.devnet.ixo.earth/index",
        portal_url="https://ixo-portal.vercel.app",
        relayer_node_did="did:ixo:entity:2f22535f8b179a51d77a0e302e68d35d",
        memory_engine_did="did:ixo:ixo17w9u5uk4qjyjgeyqfpnp92jwy58faey9vvp3ar",
        fee_denom=NATIVE_DENOM,
    ),
}


def endpoints_for(network: Network | str) -> NetworkEndpoints:
    """Return the endpoint table for ``network``."""
    return _ENDPOINTS[Network.parse(network)]


@dataclass(frozen=True)
class MatrixUrls:
    home_server_url: str
    room_bot_url: str
    state_bot_url: str
    bids_bot_url: str
    claims_bot_url: str


def derive_matrix_urls(home_server_url: str) -> MatrixUrls:
    """Derive the bot URLs that sit beside a home server.

    ``https://devmx.ixo.earth`` -> ``https://rooms.bot.devmx.ixo.earth`` etc.
    """
    parsed = urlparse(home_server_url)
    if not parsed.scheme or not parsed.hostname:
        raise ValidationError("Matrix home server URL must be absolute", field="home_server_url", value=home_server_url)
    host = parsed.hostname
    if parsed.port:
        host = f"{host}:{parsed.port}"
    scheme = parsed.scheme
    return MatrixUrls(
        home_server_url=home_server_url,
        room_bot_url=f"{scheme}://rooms.bot.{host}",
        state_bot_url=f"{scheme}://state.bot.{host}",
        bids_bot_url=f"{scheme}://bids.bot.{host}",
        claims_bot_url=f"{scheme}://claims.bot.{host}",
    )
