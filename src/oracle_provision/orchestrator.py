# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Top-level provisioning runs.

Steps run in a fixed order and each records its output in a
:class:`ProvisioningResult`. When a step fails, :class:`StepFailedError`
carries the result so far; passing it back as ``resume`` skips every step it
already completed.

Order:
    register_oracle: create_account -> fund_account -> ensure_did -> register_messaging
    create_oracle:   register_oracle steps -> create_entity
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

import httpx

from .chain.messages import matrix_service
from .core.config import ProvisioningContext
from .core.exceptions import ConfigurationError, ConflictError, StepFailedError
from .core.logging import get_run_id, log_step, run_context
from .core.validation import validate_pin, validate_required
from .entity.documents import OracleConfig, OracleProfile
from .entity.provisioner import EntityProvisioner, EntityResult, RegisteredOracle
from .identity.account import Account
from .identity.provisioner import AccountProvisioner
from .matrix.provisioner import MessagingAccount, MessagingAccountProvisioner, MessagingSecrets
from .signing.session import CancellationToken, RemoteSigningSession
from .signing.wallet import Identity, send_tokens

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProvisioningStep(StrEnum):
    CREATE_ACCOUNT = "create_account"
    FUND_ACCOUNT = "fund_account"
    ENSURE_DID = "ensure_did"
    REGISTER_MESSAGING = "register_messaging"
    CREATE_ENTITY = "create_entity"


@dataclass
class ProvisioningResult:
    """Everything a run generated. The only record of the secrets in it."""

    network: str
    pin: str = ""
    address: str = ""
    did: str = ""
    mnemonic: str = ""
    messaging: MessagingAccount | None = None
    messaging_secrets: MessagingSecrets | None = None
    entity_did: str = ""
    completed: list[str] = field(default_factory=list)

    def done(self, step: ProvisioningStep) -> bool:
        return step.value in self.completed

    def mark(self, step: ProvisioningStep) -> None:
        if step.value not in self.completed:
            self.completed.append(step.value)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "network": self.network,
            "address": self.address,
            "did": self.did,
            "mnemonic": self.mnemonic,
        }
        if self.messaging is not None:
            data.update(self.messaging.to_dict())
        elif self.messaging_secrets is not None:
            data.update(self.messaging_secrets.to_dict())
        data["pin"] = self.pin
        if self.entity_did:
            data["entityDid"] = self.entity_did
        data["completedSteps"] = list(self.completed)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvisioningResult:
        messaging = MessagingAccount.from_dict(data) if data.get("matrixAccessToken") else None
        secrets = MessagingSecrets.from_dict(data) if data.get("matrixMnemonic") and messaging is None else None
        return cls(
            network=data.get("network", ""),
            pin=data.get("pin", ""),
            address=data.get("address", ""),
            did=data.get("did", ""),
            mnemonic=data.get("mnemonic", ""),
            messaging=messaging,
            messaging_secrets=secrets,
            entity_did=data.get("entityDid", ""),
            completed=list(data.get("completedSteps", [])),
        )


class ProvisioningOrchestrator:
    """Runs the provisioning pipeline for one operator wallet.

    Owns the network and home server selection through ``context``; every
    component receives that same context.
    """

    def __init__(
        self,
        context: ProvisioningContext,
        identity: Identity,
        signing: RemoteSigningSession,
        accounts: AccountProvisioner | None = None,
        messaging: MessagingAccountProvisioner | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.context = context
        self.identity = identity
        self.signing = signing
        self.accounts = accounts or AccountProvisioner(context)
        self.messaging = messaging or MessagingAccountProvisioner(context, http=http)
        self._http = http

    async def _run_step(
        self,
        result: ProvisioningResult,
        step: ProvisioningStep,
        action: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            value = await action()
        except StepFailedError:
            raise
        except Exception as e:
            logger.error(f"Step {step} failed: {e}")
            raise StepFailedError(step.value, e, partial=result) from e
        result.mark(step)
        return value

    async def register_oracle(
        self,
        pin: str,
        oracle_name: str,
        avatar_url: str | None = None,
        home_server_url: str | None = None,
        resume: ProvisioningResult | None = None,
        cancel: CancellationToken | None = None,
    ) -> ProvisioningResult:
        """Create a funded oracle account with a DID document and a messaging account."""
        validate_pin(pin)
        validate_required(oracle_name, "oracle_name")
        network = self.context.require_network()
        hs = (home_server_url or self.context.require_home_server_url()).rstrip("/")
        result = resume or ProvisioningResult(network=network.value)
        result.pin = pin

        with run_context(get_run_id()):
            if result.done(ProvisioningStep.CREATE_ACCOUNT):
                account = Account.from_mnemonic(result.mnemonic)
            else:

                async def create() -> Account:
                    return self.accounts.create_account()

                account = await self._run_step(result, ProvisioningStep.CREATE_ACCOUNT, create)
                result.address, result.did, result.mnemonic = account.address, account.did, account.mnemonic
            log_step(logger, "register", "Oracle account ready", address=account.address)

            if not result.done(ProvisioningStep.FUND_ACCOUNT):
                amount = self.context.settings.transfer_amount
                logger.info(f"Sign to transfer {amount}uixo to the oracle account {account.address}")
                await self._run_step(
                    result,
                    ProvisioningStep.FUND_ACCOUNT,
                    lambda: send_tokens(self.identity, self.signing, account.address, amount, cancel=cancel),
                )

            if not result.done(ProvisioningStep.ENSURE_DID):
                await self._run_step(
                    result,
                    ProvisioningStep.ENSURE_DID,
                    lambda: self.accounts.ensure_did(account, network, [matrix_service(hs, account.did)]),
                )
                log_step(logger, "register", "DID document ready", did=account.did)

            if not result.done(ProvisioningStep.REGISTER_MESSAGING):

                def keep_secrets(secrets: MessagingSecrets) -> None:
                    result.messaging_secrets = secrets

                result.messaging = await self._run_step(
                    result,
                    ProvisioningStep.REGISTER_MESSAGING,
                    lambda: self.messaging.register(
                        account,
                        pin,
                        oracle_name,
                        avatar_url,
                        hs,
                        secrets=result.messaging_secrets,
                        on_secrets=keep_secrets,
                    ),
                )
                log_step(logger, "register", "Messaging account ready", user_id=result.messaging.user_id)

        return result

    async def create_oracle(
        self,
        pin: str,
        profile: OracleProfile,
        services: Sequence[dict[str, str]],
        oracle_config: OracleConfig,
        parent_protocol: str,
        home_server_url: str | None = None,
        resume: ProvisioningResult | None = None,
        cancel: CancellationToken | None = None,
    ) -> ProvisioningResult:
        """Register an oracle and mint its entity with all linked resources."""
        validate_pin(pin)
        network = self.context.require_network()
        result = resume or ProvisioningResult(network=network.value)
        result.pin = pin
        if result.entity_did and not result.done(ProvisioningStep.CREATE_ENTITY):
            raise ConflictError(
                f"Entity {result.entity_did} was already minted; finish it with update-entity",
                existing_id=result.entity_did,
            )
        if result.done(ProvisioningStep.CREATE_ENTITY):
            return result

        async def registrar(*, oracle_name: str, avatar_url: str | None, home_server_url: str) -> RegisteredOracle:
            await self.register_oracle(pin, oracle_name, avatar_url, home_server_url, resume=result, cancel=cancel)
            return _registered(result)

        context = self.context
        if result.done(ProvisioningStep.REGISTER_MESSAGING):
            context = context.with_values(oracle=_registered(result))
        entities = EntityProvisioner(
            context,
            self.identity,
            self.signing,
            self.messaging,
            registrar=registrar,
            http=self._http,
        )

        def progress(name: str, value: Any) -> None:
            if name == "entity_did":
                result.entity_did = value

        with run_context(get_run_id()):
            entity: EntityResult = await self._run_step(
                result,
                ProvisioningStep.CREATE_ENTITY,
                lambda: entities.create_entity(
                    profile,
                    services,
                    oracle_config,
                    parent_protocol,
                    home_server_url=home_server_url,
                    on_progress=progress,
                    cancel=cancel,
                ),
            )
        result.entity_did = entity.entity_did
        log_step(logger, "entity", "Oracle entity created", entity_did=entity.entity_did)
        return result

    async def close(self) -> None:
        await self.accounts.close()
        await self.messaging.close()


def _registered(result: ProvisioningResult) -> RegisteredOracle:
    if result.messaging is None:
        raise ConfigurationError("Messaging account missing from a completed registration", missing=["messaging"])
    return RegisteredOracle(account=Account.from_mnemonic(result.mnemonic), messaging=result.messaging)
