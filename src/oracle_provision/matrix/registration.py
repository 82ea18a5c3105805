# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Matrix account creation through the room bot.

The bot creates the account after checking a secp256k1 signature over a
timestamped challenge. The password travels ECIES-encrypted to the bot's
current public key, which is fetched fresh on every call.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import ecies
import httpx

from ..core.exceptions import MessagingError
from ..identity.account import Account

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreationChallenge:
    address: str
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat().replace("+00:00", "Z"))
    service: str = "matrix"
    type: str = "create-account"

    def to_json(self) -> str:
        payload = {
            "timestamp": self.timestamp,
            "address": self.address,
            "service": self.service,
            "type": self.type,
        }
        return json.dumps(payload, separators=(",", ":"))

    def to_base64(self) -> str:
        return base64.b64encode(self.to_json().encode("utf-8")).decode("ascii")


@dataclass(frozen=True)
class PublicKeyInfo:
    public_key: str
    fingerprint: str
    algorithm: str = ""
    usage: str = ""


@dataclass(frozen=True)
class UserCreationResult:
    success: bool
    matrix_user_id: str
    address: str
    message: str = ""


def encrypt_password(password: str, public_key_hex: str) -> str:
    """ECIES-encrypt ``password`` to a secp256k1 public key; hex output."""
    return ecies.encrypt(public_key_hex, password.encode("utf-8")).hex()


class UsernameAvailability(StrEnum):
    AVAILABLE = "available"
    TAKEN = "taken"


_TAKEN_ERRCODES = {"M_USER_IN_USE", "M_EXCLUSIVE"}


async def check_username_availability(
    http: httpx.AsyncClient,
    home_server_url: str,
    username: str,
) -> UsernameAvailability:
    """Ask the home server whether ``username`` is free.

    A failed check raises MessagingError rather than reading as "taken".
    """
    url = f"{home_server_url.rstrip('/')}/_matrix/client/v3/register/available"
    try:
        resp = await http.get(url, params={"username": username})
    except httpx.HTTPError as e:
        raise MessagingError(f"Username availability check failed: {e}", operation="register_available") from e

    try:
        body = resp.json()
    except ValueError:
        body = {}

    if resp.status_code == 200 and body.get("available"):
        return UsernameAvailability.AVAILABLE
    errcode = body.get("errcode")
    if errcode in _TAKEN_ERRCODES:
        return UsernameAvailability.TAKEN
    raise MessagingError(
        f"Username availability check failed: {resp.status_code} {body.get('error', resp.text)}",
        operation="register_available",
        errcode=errcode,
    )


class RegistrationClient:
    """Room bot endpoints for password-encrypted, signature-authorized signup."""

    def __init__(self, room_bot_url: str, http: httpx.AsyncClient):
        self.room_bot_url = room_bot_url.rstrip("/")
        self.http = http

    async def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = await self.http.request(method, f"{self.room_bot_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            raise MessagingError(f"Room bot request failed: {e}", operation=operation) from e
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 400:
            raise MessagingError(
                body.get("error") or f"Room bot returned {resp.status_code}",
                operation=operation,
                errcode=body.get("errcode"),
            )
        return body

    async def fetch_public_key(self) -> PublicKeyInfo:
        body = await self._request("GET", "/public-key", "fetch_public_key")
        if not body.get("publicKey"):
            raise MessagingError("Room bot returned no public key", operation="fetch_public_key")
        return PublicKeyInfo(
            public_key=body["publicKey"],
            fingerprint=body.get("fingerprint", ""),
            algorithm=body.get("algorithm", ""),
            usage=body.get("usage", ""),
        )

    async def create_user(self, address: str, password: str, signature: str, challenge: str) -> UserCreationResult:
        key = await self.fetch_public_key()
        payload = {
            "address": address,
            "encryptedPassword": encrypt_password(password, key.public_key),
            "publicKeyFingerprint": key.fingerprint,
            "secpResult": {"signature": signature, "challenge": challenge},
        }
        body = await self._request("POST", "/user/create", "create_user", json=payload)
        result = UserCreationResult(
            success=bool(body.get("success")),
            matrix_user_id=body.get("matrixUserId", ""),
            address=body.get("address", address),
            message=body.get("message", ""),
        )
        if not result.success:
            raise MessagingError(
                result.message or "Failed to create matrix account via API",
                operation="create_user",
            )
        logger.debug(f"Room bot created {result.matrix_user_id}: {result.message}")
        return result

    async def register_with_signature(self, account: Account, password: str) -> UserCreationResult:
        """Sign a fresh challenge with ``account`` and create its Matrix user."""
        challenge = CreationChallenge(address=account.address).to_base64()
        signature = account.sign_challenge_b64(challenge)
        return await self.create_user(account.address, password, signature, challenge)
