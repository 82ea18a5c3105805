# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Account creation and idempotent on-chain DID documents."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from ..chain.client import ChainQueryClient
from ..chain.feegrant import select_fee_granter
from ..chain.messages import msg_create_iid_document, verification_methods
from ..chain.signer import LocalKeySigner, TxBackend, load_tx_backend
from ..core.config import ProvisioningContext
from ..core.exceptions import ChainQueryError, ConfirmationTimeoutError
from ..core.networks import Network, endpoints_for
from .account import Account

logger = logging.getLogger(__name__)


class AccountProvisioner:
    """Creates oracle accounts and makes sure each has a DID document.

    ``ensure_did`` is safe to call repeatedly: an existing document turns it
    into a single read.
    """

    def __init__(
        self,
        context: ProvisioningContext,
        chain: ChainQueryClient | None = None,
        backend: TxBackend | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.context = context
        self._chain = chain
        self._backend = backend
        self._sleep = sleep

    def create_account(self, words: int = 24) -> Account:
        account = Account.generate(words)
        logger.info(f"Generated account {account.address}")
        return account

    def _chain_client(self, network: Network) -> ChainQueryClient:
        if self._chain is not None:
            return self._chain
        self._chain = ChainQueryClient(
            endpoints_for(network).chain_rest_url,
            timeout=self.context.settings.http_timeout,
        )
        return self._chain

    def _tx_backend(self, network: Network) -> TxBackend:
        if self._backend is None:
            self._backend = load_tx_backend(self.context.settings.tx_backend, endpoints_for(network))
        return self._backend

    async def did_exists(self, did: str, network: Network | str | None = None) -> bool:
        net = Network.parse(network) if network is not None else self.context.require_network()
        return await self._chain_client(net).did_exists(did)

    async def _fee_granter(self, chain: ChainQueryClient, address: str) -> str | None:
        try:
            allowances = await chain.get_fee_allowances(address)
        except ChainQueryError as e:
            logger.warning(f"Could not look up fee allowances for {address}: {e.message}")
            return None
        granter = select_fee_granter(allowances)
        if granter:
            logger.info(f"Using fee granter {granter}")
        else:
            logger.info(f"No usable fee allowance for {address}, account pays its own gas")
        return granter

    async def ensure_did(
        self,
        account: Account,
        network: Network | str | None = None,
        extra_services: Sequence[dict[str, str]] = (),
    ) -> str:
        """Return the account's DID, creating its document on-chain if needed.

        Raises:
            ConfirmationTimeoutError: The document was created but could not be
                read back after the settle delay.
            BroadcastError: The chain rejected the create transaction.
        """
        net = Network.parse(network) if network is not None else self.context.require_network()
        chain = self._chain_client(net)
        did = account.did

        if await chain.did_exists(did):
            logger.info(f"DID {did} already exists, skipping creation")
            return did

        granter = await self._fee_granter(chain, account.address)
        msg = msg_create_iid_document(
            did,
            verification_methods(did, account.public_key, account.address, did, "secp"),
            signer=account.address,
            services=list(extra_services),
        )
        signer = LocalKeySigner(self._tx_backend(net), account)
        await signer.sign_and_broadcast([msg], granter=granter)

        await self._sleep(self.context.settings.did_settle_delay)
        if not await chain.did_exists(did):
            raise ConfirmationTimeoutError(f"DID document {did} not found after creation", resource_id=did)
        logger.info(f"Created DID document {did}")
        return did

    async def close(self) -> None:
        if self._chain is not None:
            await self._chain.close()
