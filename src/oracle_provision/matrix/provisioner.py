# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Messaging account provisioning for an oracle account.

``register`` runs, in order:
1. Username availability (taken -> ConflictError, nothing submitted,
   unless resuming with the secrets of an earlier attempt)
2. Signature-authorized account creation through the room bot, skipped
   when the resumed account already exists
3. Password login
4. Display name and avatar (best-effort)
5. Cross-signing bootstrap, only when absent
6. Private room resolve-or-create, join and membership check
7. PIN-encrypted messaging mnemonic stored as room state
8. Client stop; the access token stays valid for later uploads

The secrets are never persisted here; ``on_secrets`` hands them to the
caller before anything is created.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from ..core.config import ProvisioningContext
from ..core.exceptions import ConflictError, CrossSigningError, MessagingError
from ..core.logging import log_step
from ..core.networks import derive_matrix_urls
from ..core.validation import validate_pin
from ..identity.account import Account, generate_mnemonic
from . import vault
from .crosssigning import CrossSigningBootstrapper
from .derivation import (
    passphrase_from_mnemonic,
    password_from_mnemonic,
    user_id_from_username,
    username_from_address,
)
from .registration import RegistrationClient, UsernameAvailability, check_username_availability
from .rooms import RoomBotClient, ensure_private_room, store_encrypted_mnemonic
from .session import MatrixCredentials, MatrixSession

logger = logging.getLogger(__name__)

DEVICE_NAME = "Oracles CLI"
MESSAGING_MNEMONIC_WORDS = 12

SessionFactory = Callable[[str], MatrixSession]


@dataclass(frozen=True)
class MessagingSecrets:
    """Secrets of a messaging account. The mnemonic is the root of the other two."""

    mnemonic: str
    password: str
    recovery_phrase: str

    @classmethod
    def from_mnemonic(cls, mnemonic: str) -> MessagingSecrets:
        return cls(
            mnemonic=mnemonic,
            password=password_from_mnemonic(mnemonic),
            recovery_phrase=passphrase_from_mnemonic(mnemonic),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "matrixMnemonic": self.mnemonic,
            "matrixPassword": self.password,
            "matrixRecoveryPhrase": self.recovery_phrase,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MessagingSecrets:
        return cls(
            mnemonic=data["matrixMnemonic"],
            password=data["matrixPassword"],
            recovery_phrase=data["matrixRecoveryPhrase"],
        )


@dataclass(frozen=True)
class MessagingAccount:
    home_server_url: str
    user_id: str
    access_token: str
    device_id: str
    room_id: str
    secrets: MessagingSecrets
    device_name: str = DEVICE_NAME

    @property
    def credentials(self) -> MatrixCredentials:
        return MatrixCredentials(
            home_server_url=self.home_server_url,
            user_id=self.user_id,
            access_token=self.access_token,
            device_id=self.device_id,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "matrixUserId": self.user_id,
            "matrixRoomId": self.room_id,
            **self.secrets.to_dict(),
            "matrixAccessToken": self.access_token,
            "matrixHomeServerUrl": self.home_server_url,
            "matrixDeviceName": self.device_name,
            "matrixDeviceId": self.device_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MessagingAccount:
        return cls(
            home_server_url=data["matrixHomeServerUrl"],
            user_id=data["matrixUserId"],
            access_token=data["matrixAccessToken"],
            device_id=data.get("matrixDeviceId", ""),
            room_id=data["matrixRoomId"],
            secrets=MessagingSecrets.from_dict(data),
            device_name=data.get("matrixDeviceName", DEVICE_NAME),
        )


class MessagingAccountProvisioner:
    """Registers and configures the Matrix account bound to an oracle account."""

    def __init__(
        self,
        context: ProvisioningContext,
        http: httpx.AsyncClient | None = None,
        session_factory: SessionFactory | None = None,
        bootstrapper_factory: Callable[[MatrixSession], CrossSigningBootstrapper] = CrossSigningBootstrapper,
    ):
        self.context = context
        self._http = http
        self._owns_http = http is None
        self._session_factory = session_factory or self._default_session
        self._bootstrapper_factory = bootstrapper_factory

    def _default_session(self, home_server_url: str) -> MatrixSession:
        return MatrixSession(home_server_url, timeout=self.context.settings.http_timeout)

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.context.settings.http_timeout)
            self._owns_http = True
        return self._http

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def register(
        self,
        account: Account,
        pin: str,
        display_name: str,
        avatar_url: str | None = None,
        home_server_url: str | None = None,
        force_reset: bool = False,
        secrets: MessagingSecrets | None = None,
        on_secrets: Callable[[MessagingSecrets], None] | None = None,
    ) -> MessagingAccount:
        """Create the messaging account for ``account`` and return its credentials.

        ``on_secrets`` receives the generated secrets before the account is
        created, so a later failure cannot lose them. Passing those
        ``secrets`` back resumes: an account that already exists is logged
        into with them instead of being a conflict.

        Raises:
            ConflictError: A messaging account already exists for this address.
            MessagingError: Registration, login or room state failed.
            CrossSigningError: Cross-signing could not be bootstrapped.
            RoomError: The private room could not be created or joined.
        """
        validate_pin(pin)
        hs = (home_server_url or self.context.require_home_server_url()).rstrip("/")
        room_bot_url = derive_matrix_urls(hs).room_bot_url

        resumed = secrets is not None
        if secrets is None:
            secrets = MessagingSecrets.from_mnemonic(generate_mnemonic(MESSAGING_MNEMONIC_WORDS))
        username = username_from_address(account.address)

        availability = await check_username_availability(self.http, hs, username)
        if availability == UsernameAvailability.TAKEN and not resumed:
            raise ConflictError(
                "Matrix account already exists",
                existing_id=user_id_from_username(username, hs),
            )
        if on_secrets is not None:
            on_secrets(secrets)

        if availability == UsernameAvailability.AVAILABLE:
            await RegistrationClient(room_bot_url, self.http).register_with_signature(account, secrets.password)
            log_step(logger, "messaging", "Matrix account created", username=username)
        else:
            logger.info(f"Matrix account {username} already exists, logging in with the stored password")

        session = self._session_factory(hs)
        try:
            creds = await session.login(username, secrets.password, DEVICE_NAME)
            await self._set_profile(session, display_name, avatar_url)
            await self._ensure_cross_signing(session, secrets, force_reset)

            room_id = await ensure_private_room(session, RoomBotClient(room_bot_url, self.http), account.address, account.did)
            log_step(logger, "messaging", "Private room ready", room_id=room_id)

            await store_encrypted_mnemonic(session, room_id, vault.encrypt_secret(secrets.mnemonic, pin))
            log_step(logger, "messaging", "Encrypted messaging mnemonic stored in room", room_id=room_id)
        finally:
            await session.stop()

        return MessagingAccount(
            home_server_url=hs,
            user_id=creds.user_id,
            access_token=creds.access_token,
            device_id=creds.device_id,
            room_id=room_id,
            secrets=secrets,
        )

    async def _set_profile(self, session: MatrixSession, display_name: str, avatar_url: str | None) -> None:
        try:
            await session.set_display_name(display_name)
            if avatar_url:
                await session.set_avatar_url(avatar_url)
        except MessagingError as e:
            logger.warning(f"Failed to set display name or avatar url: {e.message}")

    async def _ensure_cross_signing(self, session: MatrixSession, secrets: MessagingSecrets, force_reset: bool) -> None:
        bootstrapper = self._bootstrapper_factory(session)
        if await bootstrapper.has_cross_signing():
            logger.info("Cross-signing already set up")
            return
        if not await bootstrapper.setup(secrets.recovery_phrase, secrets.password, force_reset=force_reset):
            raise CrossSigningError("Failed to setup cross signing", operation="setup")
        log_step(logger, "messaging", "Cross-signing set up")

    def open_session(self, account: MessagingAccount) -> MatrixSession:
        """A session restored from ``account``'s access token, without a new login."""
        session = self._session_factory(account.home_server_url)
        session.start(account.credentials)
        return session

    async def logout(self, account: MessagingAccount) -> None:
        """Invalidate ``account``'s access token."""
        await self.open_session(account).logout()
